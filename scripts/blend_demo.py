#!/usr/bin/env python3
"""
Toy topology blend runner.

Usage (from repo root):
    python scripts/blend_demo.py --length 40 --step 4
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from topoblend.demo import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main())
