"""Environment-driven settings shared across the fortune package."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TARGET_YEAR = 2026
DEFAULT_RESULT_PATH = Path(__file__).parent.parent / "chart_data" / "latest_result.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class BalanceThresholds:
    """
    Tunable cut-offs for the five-way balance classification.

    `skew` is (max/avg - 1) - (1 - min/avg); `cv` is the coefficient of
    variation (population std / avg). Defaults keep the deficient gates
    implied by their skew thresholds, which is what keeps the classifier
    monotonic when the dominant element grows.
    """
    balanced_dispersion: float = 0.15
    extreme_dispersion: float = 0.5
    excessive_skew: float = 1.2
    elevated_skew: float = 0.4
    deficient_dispersion: float = 0.3
    deficient_skew: float = 0.7
    diminished_skew: float = 0.4

    @classmethod
    def from_env(cls) -> "BalanceThresholds":
        defaults = cls()
        return cls(
            balanced_dispersion=_env_float("FORTUNE_BALANCE_BALANCED_DISPERSION", defaults.balanced_dispersion),
            extreme_dispersion=_env_float("FORTUNE_BALANCE_EXTREME_DISPERSION", defaults.extreme_dispersion),
            excessive_skew=_env_float("FORTUNE_BALANCE_EXCESSIVE_SKEW", defaults.excessive_skew),
            elevated_skew=_env_float("FORTUNE_BALANCE_ELEVATED_SKEW", defaults.elevated_skew),
            deficient_dispersion=_env_float("FORTUNE_BALANCE_DEFICIENT_DISPERSION", defaults.deficient_dispersion),
            deficient_skew=_env_float("FORTUNE_BALANCE_DEFICIENT_SKEW", defaults.deficient_skew),
            diminished_skew=_env_float("FORTUNE_BALANCE_DIMINISHED_SKEW", defaults.diminished_skew),
        )


def target_year() -> int:
    """Report year; every chart is scored against this year's pillar."""
    return _env_int("FORTUNE_TARGET_YEAR", DEFAULT_TARGET_YEAR)


def result_path() -> Path:
    """Where the JSON repository keeps the single most recent result."""
    raw = os.getenv("FORTUNE_RESULT_PATH")
    return Path(raw) if raw else DEFAULT_RESULT_PATH
