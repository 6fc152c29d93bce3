#!/usr/bin/env python3
"""Compare a PDF sheet template's form fields against the exporter's catalogue."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

from pypdf import PdfReader

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rangerbot.config import DEFAULT_TEMPLATE_PATH
from rangerbot.sheet.fields import destination_names


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "template",
        type=Path,
        nargs="?",
        default=DEFAULT_TEMPLATE_PATH,
        help="PDF template to inspect.",
    )
    parser.add_argument(
        "--unused",
        action="store_true",
        help="Also list template fields the exporter never writes.",
    )
    args = parser.parse_args()

    reader = PdfReader(args.template)
    fields = reader.get_fields() or {}
    present = set(fields)
    catalogue = set(destination_names())

    matched = sorted(present & catalogue)
    missing = sorted(catalogue - present)
    print(f"{len(present)} field(s) in {args.template}")
    print(f"{len(matched)} catalogue destination(s) present, {len(missing)} absent")
    for name in matched:
        kind = str(fields[name].get("/FT", "?"))
        print(f"  ✓ {name} [{kind}]")
    if args.unused:
        for name in sorted(present - catalogue):
            print(f"  · {name} (not written)")


if __name__ == "__main__":
    main()
