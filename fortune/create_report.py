"""
Report creation library.
Computes the chart profile and yearly report from birth data and the
reader's selections, then stores them as the single current result.

Usage from Python:
    from fortune.analysis import BirthInput
    from fortune.context import UserContext
    from fortune.create_report import compute_and_save_result
    from fortune.storage import JsonFileRepository

    record = compute_and_save_result(
        BirthInput(1990, 1, 1, 12, 0, timezone="Asia/Shanghai"),
        UserContext.create("career", "seeking_promotion", "aggressive",
                           ["overwork"], "moderate"),
        JsonFileRepository("chart_data/latest_result.json"),
    )
"""

import logging
from typing import Optional

from timezonefinder import TimezoneFinder

from fortune import settings
from fortune.analysis import BirthInput, build_chart_profile
from fortune.context import UserContext
from fortune.report import generate_report
from fortune.settings import BalanceThresholds
from fortune.storage import ResultRepository, StoredResult

logger = logging.getLogger(__name__)

_tf = None


def timezone_for_location(latitude: float, longitude: float) -> Optional[str]:
    """
    Determine the IANA timezone name for birth coordinates.

    Returns None for points with no timezone (open ocean). The finder
    loads its polygon data on first use.
    """
    global _tf
    if _tf is None:
        _tf = TimezoneFinder()
    return _tf.timezone_at(lat=latitude, lng=longitude)


def compute_result(birth: BirthInput, context: UserContext, target_year=None,
                   thresholds: Optional[BalanceThresholds] = None) -> StoredResult:
    """
    Compute profile and report and wrap them in a new record (not saved).

    This is where FORTUNE_TARGET_YEAR and FORTUNE_BALANCE_* are read; the
    values are then passed down explicitly.

    Raises:
        InvalidCalendarDate, InvalidTimeOfDay: bad birth data
    """
    if target_year is None:
        target_year = settings.target_year()
    if thresholds is None:
        thresholds = BalanceThresholds.from_env()

    profile = build_chart_profile(birth, target_year=target_year, thresholds=thresholds)
    report = generate_report(profile, context)

    chart = profile.to_dict()
    chart["birth"] = birth.to_dict()
    return StoredResult.create(
        chart_profile=chart,
        user_context=context.to_dict(),
        report=report.to_dict(),
    )


def compute_and_save_result(birth: BirthInput, context: UserContext,
                            repository: ResultRepository, target_year=None,
                            thresholds: Optional[BalanceThresholds] = None) -> StoredResult:
    """
    Compute a result and make it the repository's current record.

    This is the main entry point. Any previous record is overwritten, and
    nothing is stored if the computation raises.

    Args:
        birth: birth date, time and timezone
        context: the reader's selections
        repository: where the current result lives
        target_year: report year; defaults to FORTUNE_TARGET_YEAR / 2026
        thresholds: balance cut-offs; defaults to FORTUNE_BALANCE_* / built-ins

    Returns:
        the StoredResult that was saved
    """
    record = compute_result(birth, context, target_year=target_year, thresholds=thresholds)
    repository.save(record)
    logger.debug("Current result is now %s", record.token)
    return record
