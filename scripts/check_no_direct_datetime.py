"""Fails when package code reads the clock without going through TimeProvider."""
from __future__ import annotations

import ast
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
PACKAGE_DIR = ROOT / "techschool"
ALLOWED = {PACKAGE_DIR / "core" / "time_provider.py"}

CLOCK_CALLS = {("datetime", "now"), ("datetime", "utcnow"), ("datetime", "today"), ("date", "today")}


def clock_calls(source: str) -> list[tuple[int, str]]:
    found = []
    for node in ast.walk(ast.parse(source)):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        target = node.func.value
        # Matches both `datetime.now()` and `datetime.datetime.now()`.
        owner = target.attr if isinstance(target, ast.Attribute) else getattr(target, "id", None)
        if (owner, node.func.attr) in CLOCK_CALLS:
            found.append((node.lineno, f"{owner}.{node.func.attr}()"))
    return found


def find_violations(package_dir: Path = PACKAGE_DIR) -> list[str]:
    violations = []
    for file_path in sorted(package_dir.rglob("*.py")):
        if file_path in ALLOWED:
            continue
        for line_no, call in clock_calls(file_path.read_text(encoding="utf-8")):
            violations.append(f"{file_path.relative_to(ROOT)}:{line_no}: {call}")
    return violations


def main() -> int:
    violations = find_violations()
    if violations:
        print("Direct clock reads found, use techschool.core.time_provider instead:")
        for item in violations:
            print(f" - {item}")
        return 1
    print("No direct clock reads in techschool/.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
