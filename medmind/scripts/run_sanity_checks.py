from __future__ import annotations

import argparse
import json
import logging
from typing import Sequence

from medmind.fixtures.sanity import CaseCheck, check_demo_cache
from medmind.internal_core.config import load_config


def _format_check(check: CaseCheck) -> str:
    if check.ok:
        return f"{check.case_id}: ok"
    return f"{check.case_id}: FAILED ({'; '.join(check.failures)})"


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run every cached demo record through the post-processing pipeline and report failures."
    )
    parser.add_argument(
        "--case",
        action="append",
        dest="cases",
        default=None,
        help="Cached case id to check (repeatable; default: all cached cases).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON instead of one line per case.",
    )
    args = parser.parse_args(argv)

    config = load_config()
    logging.basicConfig(level=config.MEDMIND_LOG_LEVEL)
    checks = check_demo_cache(args.cases, config=config)

    if args.json:
        print(
            json.dumps(
                [{"case_id": item.case_id, "ok": item.ok, "failures": item.failures} for item in checks],
                indent=2,
            )
        )
    else:
        for item in checks:
            print(_format_check(item))
        passed = sum(1 for item in checks if item.ok)
        print(f"passed: {passed}/{len(checks)}")

    return 0 if all(item.ok for item in checks) else 1


if __name__ == "__main__":
    raise SystemExit(main())
