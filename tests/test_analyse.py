import pytest

try:
    import swimc as sc
except Exception as e:  # pragma: no cover
    pytest.skip(f"swimc unavailable: {e}", allow_module_level=True)


def stats(text):
    w = sc.parse_swim_text(text)
    return sc.total_distance(w), sc.stroke_distribution(w)


def test_two_statements():
    assert stats("100m fly @ 1:30\n200m free @ 2:00") == (300, {"fly": 100, "free": 200})


def test_repetition_over_block():
    total, dist = stats("4x {\n  25m choice (easy) @ 60s\n  12x50m free @ 60s\n}")
    assert total == 4 * (25 + 12 * 50) == 2500
    assert dist == {"choice": 100, "free": 2400}


def test_mixed_top_level():
    text = "1x100m fly @ 1:30\n50m fly @ 60s\n4x {\n  25m choice (easy) @ 60s\n  12x50m free @ 60s\n}"
    total, dist = stats(text)
    assert total == 2650
    assert dist == {"fly": 150, "choice": 100, "free": 2400}


def test_kilometers_count_as_thousand_meters():
    assert stats("1km free @ 15:00\n500m fly @ 8:00") == (1500, {"free": 1000, "fly": 500})
    assert stats("2x { 1km free @ 8:00\n100m fly @ 2:00 }") == (2200, {"free": 2000, "fly": 200})


def test_nested_repetitions_multiply():
    assert stats("3x { 2x100m free @ 1:30 }") == (600, {"free": 600})
    assert stats("2x 3x 4x 10m kick") == (240, {"kick": 240})


def test_zero_repetition_keeps_stroke_at_zero():
    assert stats("0x50m free @ 30s") == (0, {"free": 0})
    assert stats("0x { 50m free\n25m back }\n100m back") == (100, {"free": 0, "back": 100})


def test_modifiers_do_not_split_strokes():
    assert stats("50m free(pull)\n50m free") == (100, {"free": 100})


def test_distribution_sums_to_total():
    text = "200m free\n3x { 2x { 50m fly(drill) 25m back } 100m breast }\n1km choice\n0x 25m im"
    total, dist = stats(text)
    assert sum(dist.values()) == total == 200 + 3 * (2 * 75 + 100) + 1000


def test_repetition_scales_child_totals():
    child = sc.Block((sc.Statement(sc.Distance(50), sc.Stroke("free")),
                      sc.Statement(sc.Distance(1, sc.Unit.KILOMETERS), sc.Stroke("back"))))
    for count in (0, 1, 7):
        rep = sc.Repetition(count, child)
        assert sc.total_distance(rep) == count * sc.total_distance(child)
        assert sc.stroke_distribution(rep) == {"free": 50 * count, "back": 1000 * count}


def test_empty_workout():
    assert stats("") == (0, {})


def test_summarize_sorts_strokes():
    s = sc.summarize(sc.parse_swim_text("100m free\n50m back\n25m fly"))
    assert s["total_m"] == 175
    assert list(s["strokes"]) == ["back", "fly", "free"]


def test_unknown_node_is_rejected():
    with pytest.raises(TypeError):
        sc.total_distance(sc.Workout(("100m free",)))
    with pytest.raises(TypeError):
        sc.stroke_distribution(sc.Stroke("free"))
