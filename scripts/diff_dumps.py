#!/usr/bin/env python3
"""Compare two parameter files and show what changed.

Usage
-----
    python scripts/diff_dumps.py before.txt after.txt
    python scripts/diff_dumps.py --tolerance 1e-6 before.txt after.txt
"""

from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from mavconf._api.param_file import format_param_value, read_param_file  # noqa: E402
from mavconf.exceptions import MavconfError  # noqa: E402

MISSING = "<missing>"


def _format(value: float | None) -> str:
    return MISSING if value is None else format_param_value(value)


def _diff(
    old: dict[str, float],
    new: dict[str, float],
    tolerance: float,
) -> list[tuple[str, float | None, float | None]]:
    results: list[tuple[str, float | None, float | None]] = []
    for name in sorted(set(old) | set(new)):
        old_val = old.get(name)
        new_val = new.get(name)
        if old_val is None or new_val is None:
            results.append((name, old_val, new_val))
        elif not math.isclose(old_val, new_val, rel_tol=0.0, abs_tol=tolerance) and not (
            math.isnan(old_val) and math.isnan(new_val)
        ):
            results.append((name, old_val, new_val))
    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Diff two mavconf parameter files.")
    parser.add_argument("old", help="Older parameter file")
    parser.add_argument("new", help="Newer parameter file")
    parser.add_argument("--tolerance", type=float, default=0.0, help="Ignore changes up to this absolute amount")
    args = parser.parse_args()

    file_old, file_new = Path(args.old), Path(args.new)

    print(f"Old: {file_old.name}")
    print(f"New: {file_new.name}")
    print()

    try:
        old = read_param_file(file_old)
        new = read_param_file(file_new)
    except MavconfError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    results = _diff(old, new, args.tolerance)
    if not results:
        print("No differences found.")
        return 0

    name_w = max(max(len(r[0]) for r in results), 4)
    old_w = max(max(len(_format(r[1])) for r in results), 3)
    new_w = max(max(len(_format(r[2])) for r in results), 3)

    header = f"{'Name':<{name_w}}  {'Old':<{old_w}}  {'New':<{new_w}}"
    print(header)
    print("─" * len(header))

    for name, old_val, new_val in results:
        print(f"{name:<{name_w}}  {_format(old_val):<{old_w}}  {_format(new_val):<{new_w}}")

    print(f"\n{len(results)} difference(s) found.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
