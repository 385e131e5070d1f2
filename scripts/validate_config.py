#!/usr/bin/env python3
"""Check the shipped tax-year configurations from a source checkout."""

from __future__ import annotations

import sys
from pathlib import Path

# Make ``src`` importable when the package is not installed.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from ukpayroll.backend.config.validator import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
