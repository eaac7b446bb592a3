#!/usr/bin/env python3
import sys, json, argparse, logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from lark import Lark, Token
from lark.exceptions import UnexpectedCharacters

log = logging.getLogger("swimc")

DEFAULT_MAX_DEPTH = 256

# ---------------------------------------------------------------- lexer

# Only the terminals matter here: the grammar exists so lark compiles a basic
# lexer for them. Parsing is done by hand in Parser below.
GRAMMAR = r"""
start: _token*

_token: NUMBER | TIME | TIMES | METERS | KILOMETERS | SECONDS | WORD
      | LBRACE | RBRACE | LPAR | RPAR | COMMA | AT

TIME.2: /[0-9]+:[0-9]+s?/
NUMBER: /[0-9]+/

TIMES: "x"
METERS: "m"
KILOMETERS: "km"
SECONDS: "s"
WORD: /[a-zA-Z][a-zA-Z.\-]*/

LBRACE: "{"
RBRACE: "}"
LPAR: "("
RPAR: ")"
COMMA: ","
AT: "@"

COMMENT: /#[^\n]*/
       | /\/\/[^\n]*/
       | /\/\*([^*]|\*[^\/])*\*\//
WS: /[ \t\r\n]+/

%ignore WS
%ignore COMMENT
"""

# Keyword strings share WORD's priority, so lark re-types a WORD to TIMES,
# METERS, KILOMETERS or SECONDS only when the whole word equals the keyword.
_LEXER = Lark(GRAMMAR, start="start", parser="lalr", lexer="basic")

ERROR = "ERROR"

def tokenize(text:str)->List[Token]:
    """Scan text into lark tokens.

    A character no terminal accepts becomes a single ERROR token and ends the
    scan; the parser reports it when it reaches that slot.
    """
    tokens: List[Token] = []
    try:
        for tok in _LEXER.lex(text):
            tokens.append(tok)
    except UnexpectedCharacters as e:
        pos = e.pos_in_stream
        tokens.append(Token(ERROR, text[pos], start_pos=pos, line=e.line, column=e.column, end_pos=pos+1))
        log.debug("lexing stopped at line %s col %s on %r", e.line, e.column, text[pos])
    log.debug("lexed %d tokens", len(tokens))
    return tokens

# ---------------------------------------------------------------- AST

class Unit(str, Enum):
    METERS = "m"
    KILOMETERS = "km"

METERS_PER_UNIT = {Unit.METERS: 1, Unit.KILOMETERS: 1000}

@dataclass(frozen=True)
class Distance:
    value: int
    unit: Unit = Unit.METERS

    @property
    def meters(self)->int: return self.value * METERS_PER_UNIT[self.unit]
    def to_dict(self): return {"value": self.value, "unit": self.unit.value}

@dataclass(frozen=True)
class Stroke:
    name: str
    modifiers: Tuple[str, ...] = ()

    def to_dict(self): return {"name": self.name, "modifiers": list(self.modifiers)}

@dataclass(frozen=True)
class Seconds:
    seconds: int

    def to_dict(self): return {"kind": "seconds", "seconds": self.seconds}

@dataclass(frozen=True)
class MinutesSeconds:
    minutes: int
    seconds: int

    def to_dict(self): return {"kind": "minutes_seconds", "minutes": self.minutes, "seconds": self.seconds}

Interval = Union[Seconds, MinutesSeconds]

@dataclass(frozen=True)
class Statement:
    """Leaf swim: distance, stroke and an optional send-off interval."""
    distance: Distance
    stroke: Stroke
    interval: Optional[Interval] = None

    def to_dict(self):
        return {"type": "STATEMENT", "distance": self.distance.to_dict(), "stroke": self.stroke.to_dict(),
                "interval": self.interval.to_dict() if self.interval else None}

@dataclass(frozen=True)
class Repetition:
    count: int
    set: "Set"

    def to_dict(self): return {"type": "REPETITION", "count": self.count, "set": self.set.to_dict()}

@dataclass(frozen=True)
class Block:
    sets: Tuple["Set", ...] = ()

    def to_dict(self): return {"type": "BLOCK", "sets": [s.to_dict() for s in self.sets]}

# Closed union: every consumer below handles exactly these three.
Set = Union[Repetition, Block, Statement]

@dataclass(frozen=True)
class Workout:
    sets: Tuple[Set, ...] = ()

    def to_dict(self): return {"type": "WORKOUT", "sets": [s.to_dict() for s in self.sets]}

def _unknown(node)->TypeError:
    return TypeError(f"not a workout node: {node!r}")

# ---------------------------------------------------------------- parser

class SwimSyntaxError(ValueError):
    """First lexical or syntax failure of a parse.

    `index` is the position in the token list, `token` the offending token or
    None when input ran out.
    """
    def __init__(self, msg:str, index:int, token:Optional[Token]=None):
        where = f"at token {index}"
        if token is None: where += " (end of input)"
        elif token.line is not None: where += f", line {token.line} col {token.column}"
        super().__init__(f"{msg} {where}")
        self.msg = msg; self.index = index; self.token = token

class Parser:
    def __init__(self, tokens:Iterable[Token], max_depth:int=DEFAULT_MAX_DEPTH):
        self.tokens = list(tokens)
        self.pos = 0
        self.depth = 0
        self.max_depth = max_depth

    # helpers

    def peek(self, n:int=0)->Optional[Token]:
        i = self.pos + n
        return self.tokens[i] if i < len(self.tokens) else None

    def next(self)->Optional[Token]:
        tok = self.peek()
        if tok is not None: self.pos += 1
        return tok

    def at(self, *types:str, n:int=0)->bool:
        tok = self.peek(n)
        return tok is not None and tok.type in types

    def error(self, msg:str, index:Optional[int]=None)->SwimSyntaxError:
        index = self.pos if index is None else index
        tok = self.tokens[index] if index < len(self.tokens) else None
        if tok is not None and tok.type == ERROR:
            msg = f"Unrecognized input {tok.value!r}"
        return SwimSyntaxError(msg, index, tok)

    def expect(self, types:Tuple[str, ...], msg:str)->Token:
        if not self.at(*types): raise self.error(msg)
        return self.next()

    # grammar

    def parse(self)->Workout:
        sets = []
        while self.peek() is not None:
            sets.append(self.parse_set())
        log.debug("parsed %d top-level sets", len(sets))
        return Workout(tuple(sets))

    def parse_set(self)->Set:
        if self.depth >= self.max_depth:
            raise self.error(f"Sets nested deeper than {self.max_depth}")
        self.depth += 1
        try:
            if self.at("NUMBER"):
                if self.at("TIMES", n=1): return self.parse_repetition()
                return self.parse_statement()
            if self.at("LBRACE"): return self.parse_block()
            raise self.error("Expected number or '{'")
        finally:
            self.depth -= 1

    def parse_repetition(self)->Repetition:
        count = int(self.expect(("NUMBER",), "Expected number for repetition count"))
        self.expect(("TIMES",), "Expected 'x' after repetition count")
        return Repetition(count, self.parse_set())

    def parse_block(self)->Block:
        self.expect(("LBRACE",), "Expected '{'")
        sets = []
        while True:
            if self.peek() is None: raise self.error("Unexpected end of input in block")
            if self.at("RBRACE"):
                self.next(); break
            sets.append(self.parse_set())
        return Block(tuple(sets))

    def parse_statement(self)->Statement:
        distance = self.parse_distance()
        stroke = self.parse_stroke()
        interval = self.parse_interval()
        return Statement(distance, stroke, interval)

    def parse_distance(self)->Distance:
        value = int(self.expect(("NUMBER",), "Expected number for distance"))
        unit = self.expect(("METERS", "KILOMETERS"), "Expected 'm' or 'km' for distance unit")
        return Distance(value, Unit.METERS if unit.type == "METERS" else Unit.KILOMETERS)

    def parse_stroke(self)->Stroke:
        name = str(self.expect(("WORD",), "Expected stroke name"))
        modifiers = []
        if self.at("LPAR"):
            self.next()
            while True:
                modifiers.append(str(self.expect(("WORD",), "Expected modifier in parentheses")))
                sep = self.expect(("COMMA", "RPAR"), "Expected ',' or ')' after modifier")
                if sep.type == "RPAR": break
        return Stroke(name, tuple(modifiers))

    def parse_interval(self)->Optional[Interval]:
        if not self.at("AT"): return None
        self.next()
        if self.at("NUMBER"):
            n = int(self.next())
            if self.at("SECONDS"): self.next()
            return Seconds(n)
        index = self.pos
        tok = self.expect(("TIME",), "Expected number or time after '@'")
        parts = str(tok).split(":")
        if len(parts) != 2: raise self.error("Invalid time format", index)
        try: minutes = int(parts[0])
        except ValueError: raise self.error("Invalid minutes", index) from None
        try: seconds = int(parts[1].rstrip("s"))
        except ValueError: raise self.error("Invalid seconds", index) from None
        return MinutesSeconds(minutes, seconds)

def parse_swim_text(text:str, max_depth:int=DEFAULT_MAX_DEPTH)->Workout:
    return Parser(tokenize(text), max_depth=max_depth).parse()

# ---------------------------------------------------------------- analysis

def total_distance(node)->int:
    """Meters swum by node, repetitions multiplied through every level."""
    if isinstance(node, (Workout, Block)): return sum(total_distance(s) for s in node.sets)
    if isinstance(node, Repetition): return node.count * total_distance(node.set)
    if isinstance(node, Statement): return node.distance.meters
    raise _unknown(node)

def _merge(dists:Iterable[Dict[str,int]])->Dict[str,int]:
    out: Dict[str,int] = {}
    for d in dists:
        for stroke, meters in d.items(): out[stroke] = out.get(stroke, 0) + meters
    return out

def stroke_distribution(node)->Dict[str,int]:
    """Meters per stroke name.

    A repetition scales its child's distribution once instead of walking the
    child count times. Strokes under a 0x repetition stay in the result with 0.
    """
    if isinstance(node, (Workout, Block)): return _merge(stroke_distribution(s) for s in node.sets)
    if isinstance(node, Repetition):
        return {stroke: node.count * meters for stroke, meters in stroke_distribution(node.set).items()}
    if isinstance(node, Statement): return {node.stroke.name: node.distance.meters}
    raise _unknown(node)

def summarize(workout:Workout)->Dict[str,Any]:
    dist = stroke_distribution(workout)
    return {"total_m": total_distance(workout), "strokes": {k: dist[k] for k in sorted(dist)}}

# ---------------------------------------------------------------- rendering

INDENT = "    "

def render_interval(iv:Interval)->str:
    if isinstance(iv, Seconds): return f"@{iv.seconds}s"
    if isinstance(iv, MinutesSeconds): return f"@{iv.minutes}:{iv.seconds:02d}"
    raise _unknown(iv)

def render_stroke(st:Stroke)->str:
    return st.name + (f"({', '.join(st.modifiers)})" if st.modifiers else "")

def render(node, level:int=0)->str:
    """Notation text for any AST node; Workout output ends with a newline."""
    if isinstance(node, Workout): return "".join(render(s) + "\n" for s in node.sets)
    if isinstance(node, Repetition): return f"{node.count}x {render(node.set, level)}"
    if isinstance(node, Block):
        pad = INDENT * level
        inner = "".join(f"{pad}{INDENT}{render(s, level+1)}\n" for s in node.sets)
        return "{\n" + inner + pad + "}"
    if isinstance(node, Statement):
        d = node.distance
        txt = f"{d.value}{d.unit.value} {render_stroke(node.stroke)}"
        return txt + (" " + render_interval(node.interval) if node.interval else "")
    raise _unknown(node)

# ---------------------------------------------------------------- cli

def _load(path:str, max_depth:int)->Workout:
    try:
        text = Path(path).read_text()
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr); sys.exit(1)
    try:
        return parse_swim_text(text, max_depth=max_depth)
    except SwimSyntaxError as e:
        print(f"Parse error: {e}", file=sys.stderr); sys.exit(2)

def main(argv=None):
    ap = argparse.ArgumentParser(prog="swimc", description="Parse swim workouts and total their distance")
    ap.add_argument("-v","--verbose", action="store_true", help="debug logging on stderr")
    ap.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="maximum set nesting depth")
    sub = ap.add_subparsers(dest="cmd", required=True)
    p1 = sub.add_parser("tokens"); p1.add_argument("file")
    p2 = sub.add_parser("parse");  p2.add_argument("file"); p2.add_argument("-o","--out")
    p3 = sub.add_parser("stats");  p3.add_argument("file"); p3.add_argument("--format", choices=["text","json"], default="text")
    p4 = sub.add_parser("fmt");    p4.add_argument("file"); p4.add_argument("-i","--in-place", action="store_true"); p4.add_argument("-o","--out")
    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.cmd=="tokens":
        try: text = Path(args.file).read_text()
        except OSError as e:
            print(f"Cannot read {args.file}: {e}", file=sys.stderr); sys.exit(1)
        for tok in tokenize(text): print(f"{tok.type} {tok.value!r} {tok.line}:{tok.column}")
        sys.exit(0)

    workout = _load(args.file, args.max_depth)

    if args.cmd=="parse":
        data = json.dumps(workout.to_dict(), ensure_ascii=False, indent=2)
        if args.out: Path(args.out).write_text(data); print(f"Saved -> {args.out}")
        else: print(data)
        sys.exit(0)
    if args.cmd=="stats":
        summary = summarize(workout)
        if args.format=="json": print(json.dumps(summary, indent=2))
        else:
            print(f"Total distance: {summary['total_m']}m")
            for stroke, meters in summary["strokes"].items(): print(f"  {stroke}: {meters}m")
        sys.exit(0)
    if args.cmd=="fmt":
        text = render(workout)
        if args.out: Path(args.out).write_text(text); print(f"Saved -> {args.out}")
        elif args.in_place: Path(args.file).write_text(text)
        else: print(text, end="")
        sys.exit(0)

if __name__ == "__main__":
    main()
