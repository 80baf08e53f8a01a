"""
CLI wrapper for compute_and_save_result().

Usage:
    fortune compute --birth-date YYYY-MM-DD [--birth-time HH:MM] \
        [--timezone ZONE | --latitude LAT --longitude LON] \
        --focus FOCUS --situation SITUATION --strategy STRATEGY \
        --avoid ITEM [--avoid ITEM ...] --energy ENERGY [--target-year YEAR]
    fortune show
    fortune clear
"""

import argparse
import json
import logging
import sys
from datetime import datetime

from fortune import settings
from fortune.analysis import BirthInput
from fortune.context import AVOID_OPTIONS, Energy, FocusArea, Strategy, UserContext
from fortune.create_report import compute_and_save_result, timezone_for_location
from fortune.errors import ResultIntegrityError
from fortune.storage import JsonFileRepository

logger = logging.getLogger(__name__)

# Birth years below this are rejected at the interface, not by the engine
MIN_BIRTH_YEAR = 1900


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fortune", description="Four Pillars chart and yearly report.")
    parser.add_argument("--result-path", dest="result_path", default=None,
                        help="JSON file holding the current result (default: $FORTUNE_RESULT_PATH)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    compute = sub.add_parser("compute", help="Compute, store and print a new result.")
    compute.add_argument("--birth-date", required=True, dest="birth_date")
    compute.add_argument("--birth-time", dest="birth_time", default=None,
                         help="HH:MM local clock time; omit if unknown")
    compute.add_argument("--timezone", default=None)
    compute.add_argument("--latitude", type=float, default=None)
    compute.add_argument("--longitude", type=float, default=None)
    compute.add_argument("--focus", required=True, choices=[f.value for f in FocusArea])
    compute.add_argument("--situation", required=True)
    compute.add_argument("--strategy", required=True, choices=[s.value for s in Strategy])
    compute.add_argument("--avoid", required=True, action="append", choices=AVOID_OPTIONS)
    compute.add_argument("--energy", required=True, choices=[e.value for e in Energy])
    compute.add_argument("--target-year", dest="target_year", type=int, default=None)

    sub.add_parser("show", help="Print the current result.")
    sub.add_parser("clear", help="Delete the current result.")
    return parser


def parse_birth(args) -> BirthInput:
    try:
        birth_date = datetime.strptime(args.birth_date, "%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Birth date {args.birth_date!r} is not a valid YYYY-MM-DD date") from None
    if birth_date.year < MIN_BIRTH_YEAR:
        raise ValueError(f"Birth year must be {MIN_BIRTH_YEAR} or later")

    timezone = args.timezone
    if timezone is None and args.latitude is not None and args.longitude is not None:
        timezone = timezone_for_location(args.latitude, args.longitude)
        logger.info("Detected timezone %s from coordinates", timezone)

    if args.birth_time is None:
        return BirthInput(birth_date.year, birth_date.month, birth_date.day,
                          hour_unknown=True, timezone=timezone)

    try:
        hour, minute = map(int, args.birth_time.split(":"))
    except ValueError:
        raise ValueError(f"Birth time {args.birth_time!r} is not HH:MM") from None
    return BirthInput(birth_date.year, birth_date.month, birth_date.day,
                      hour, minute, timezone=timezone)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    repository = JsonFileRepository(args.result_path or settings.result_path())

    try:
        if args.command == "compute":
            birth = parse_birth(args)
            context = UserContext.create(args.focus, args.situation, args.strategy,
                                         args.avoid, args.energy)
            target_year = args.target_year if args.target_year is not None else settings.target_year()
            record = compute_and_save_result(birth, context, repository,
                                             target_year=target_year,
                                             thresholds=settings.BalanceThresholds.from_env())
            print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        elif args.command == "show":
            record = repository.load()
            if record is None:
                print("No stored result.", file=sys.stderr)
                return 1
            print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        elif args.command == "clear":
            repository.clear()
    except ResultIntegrityError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 3
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
