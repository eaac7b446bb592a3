import sys
from pathlib import Path

# Tests import the top-level swimc module straight from the repository root
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
