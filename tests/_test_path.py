"""Test helpers.

Puts `src/` on sys.path so tests run from a plain checkout:
  project_root/
    src/
      photoprint/
      photo_print.py
    tests/
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
