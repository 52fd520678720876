#!/usr/bin/env python3
"""
EDI Converter Command Line Tool

Runs the x12-edi CLI from a source checkout without installing the package.

Usage:
    python main.py to-json input.edi [output.json] [--lenient]
    python main.py to-edi input.json [output.edi] [--format]
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from edi_cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
