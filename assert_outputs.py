"""
Check that every scanner output file exists.

Usage:
  python assert_outputs.py [output_dir]

Exits 1 and lists the missing paths (sorted) when any file is absent.
"""

import sys

from lp_outputs import missing_outputs


def run(output_dir=None) -> int:
    missing = missing_outputs(output_dir)
    if not missing:
        print("[assert_outputs] OK: all scanner outputs exist.")
        return 0

    print("[assert_outputs] Missing scanner outputs:", file=sys.stderr)
    for path in missing:
        print(f" - {path}", file=sys.stderr)
    print("[assert_outputs] Hint: generate them with `python main.py`.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(run(sys.argv[1] if len(sys.argv) > 1 else None))
