from __future__ import annotations

import importlib.util
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]


def _load_checker():
    module_spec = importlib.util.spec_from_file_location("check_no_direct_datetime", ROOT / "scripts" / "check_no_direct_datetime.py")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_package_reads_the_clock_only_through_time_provider() -> None:
    violations = _load_checker().find_violations()
    assert not violations, "Direct clock reads found:\n" + "\n".join(violations)


def test_checker_flags_module_and_class_level_calls() -> None:
    checker = _load_checker()
    source = "import datetime\nfrom datetime import date\na = datetime.datetime.now()\nb = date.today()\nc = date(2026, 1, 1)\n"
    assert checker.clock_calls(source) == [(3, "datetime.now()"), (4, "date.today()")]
