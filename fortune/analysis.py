"""
Chart analysis on top of the raw pillars.

Takes the element distribution and Day Master from fortune.bazi and derives:
- balance category (five-step severity scale)
- favorable / unfavorable elements
- interaction with the report year's pillar
- the assembled ChartProfile consumed by the report layer

Like fortune.bazi, nothing here performs I/O or uses randomness.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fortune import settings
from fortune.astro_calendar import TimezoneResolution
from fortune.bazi import (
    Element,
    FourPillars,
    HeavenlyStem,
    Relation,
    TenGodWeight,
    annual_pillar,
    compute_pillars,
    controlled_by,
    controls,
    element_distribution,
    element_relationship,
    generated_by,
    generates,
    rank_ten_gods,
)
from fortune.settings import BalanceThresholds

logger = logging.getLogger(__name__)


# ============================================================
# BALANCE CLASSIFICATION
# ============================================================

class BalanceCategory(Enum):
    CRITICALLY_EXCESSIVE = "critically_excessive"
    ELEVATED = "elevated"
    BALANCED = "balanced"
    DIMINISHED = "diminished"
    CRITICALLY_DEFICIENT = "critically_deficient"

    @property
    def severity(self) -> int:
        """+2 (critically excessive) down to -2 (critically deficient)."""
        return _SEVERITY[self]

    @property
    def is_strong(self) -> bool:
        return self.severity > 0

    @property
    def is_weak(self) -> bool:
        return self.severity < 0


_SEVERITY = {
    BalanceCategory.CRITICALLY_EXCESSIVE: 2,
    BalanceCategory.ELEVATED: 1,
    BalanceCategory.BALANCED: 0,
    BalanceCategory.DIMINISHED: -1,
    BalanceCategory.CRITICALLY_DEFICIENT: -2,
}


@dataclass(frozen=True)
class DistributionStats:
    avg: float
    max: float
    min: float
    std: float

    @property
    def dispersion(self) -> float:
        """Coefficient of variation, std / avg."""
        return self.std / self.avg

    @property
    def skew(self) -> float:
        """How far the peak overshoots the mean, minus how far the trough undershoots it."""
        return (self.max / self.avg - 1) - (1 - self.min / self.avg)


def distribution_stats(distribution: dict[Element, float]) -> DistributionStats:
    values = [distribution[e] for e in Element]
    avg = sum(values) / len(values)
    variance = sum((v - avg) ** 2 for v in values) / len(values)
    return DistributionStats(avg=avg, max=max(values), min=min(values), std=math.sqrt(variance))


def classify_balance(distribution: dict[Element, float],
                     thresholds: Optional[BalanceThresholds] = None) -> BalanceCategory:
    """
    Classify an element distribution on the five-step balance scale.

    Checked in priority order:
    1. low dispersion → BALANCED, whatever min and max are
    2. strong upward skew with high dispersion → CRITICALLY_EXCESSIVE
    3. upward skew → ELEVATED
    4. strong downward skew with high dispersion → CRITICALLY_DEFICIENT
    5. downward skew → DIMINISHED
    6. otherwise BALANCED

    Every quantity is a ratio to the mean, so scaling all five weights by
    the same factor never changes the result. Without explicit thresholds
    the built-in defaults apply; environment overrides are read by the
    callers at the process boundary, never here.

    Raises:
        ValueError: if the distribution sums to zero (no chart contributes)
    """
    thresholds = thresholds or BalanceThresholds()
    stats = distribution_stats(distribution)
    if stats.avg <= 0:
        raise ValueError("Cannot classify an empty element distribution")

    dispersion, skew = stats.dispersion, stats.skew

    if dispersion < thresholds.balanced_dispersion:
        return BalanceCategory.BALANCED
    if skew >= thresholds.excessive_skew and dispersion >= thresholds.extreme_dispersion:
        return BalanceCategory.CRITICALLY_EXCESSIVE
    if skew >= thresholds.elevated_skew:
        return BalanceCategory.ELEVATED
    if skew <= -thresholds.deficient_skew and dispersion >= thresholds.deficient_dispersion:
        return BalanceCategory.CRITICALLY_DEFICIENT
    if skew <= -thresholds.diminished_skew:
        return BalanceCategory.DIMINISHED
    return BalanceCategory.BALANCED


# ============================================================
# FAVORABLE / UNFAVORABLE ELEMENTS (用神 / 忌神)
# ============================================================

@dataclass(frozen=True)
class Favorability:
    favorable: tuple[Element, ...]
    unfavorable: tuple[Element, ...]

    def to_dict(self):
        return {
            "favorable": [e.value for e in self.favorable],
            "unfavorable": [e.value for e in self.unfavorable],
        }


def _unique(elements) -> tuple[Element, ...]:
    return tuple(dict.fromkeys(elements))


def resolve_favorability(day_element: Element, balance: BalanceCategory) -> Favorability:
    """
    Pick the helpful and harmful elements for a Day Master.

    - Strong chart (elevated/excessive): favor what controls, drains and
      consumes the DM (controls, generates, controlled_by); the DM's own
      element is unfavorable.
    - Weak chart (diminished/deficient): favor what produces the DM and the
      DM's own element; the other three are unfavorable.
    - Balanced: favor the DM's element and its producer; nothing is
      marked unfavorable.
    """
    x = day_element
    if balance.is_strong:
        favorable = [controls(x), generates(x), controlled_by(x)]
        unfavorable = [x]
    elif balance.is_weak:
        favorable = [generated_by(x), x]
        unfavorable = [controls(x), generates(x), controlled_by(x)]
    else:
        favorable = [x, generated_by(x)]
        unfavorable = []
    return Favorability(_unique(favorable), _unique(unfavorable))


# ============================================================
# ANNUAL (TARGET-YEAR) INTERACTION
# ============================================================

class InteractionCategory(Enum):
    STRONG_BOOST = "strong_boost"
    BOOST = "boost"
    OPPORTUNITY = "opportunity"
    DRAIN = "drain"
    CHALLENGE = "challenge"
    PRESSURE = "pressure"

    @property
    def is_favorable(self) -> bool:
        return self in (InteractionCategory.STRONG_BOOST,
                        InteractionCategory.BOOST,
                        InteractionCategory.OPPORTUNITY)


_B = BalanceCategory
_I = InteractionCategory

# Rows: how the year's element stands to the DM. Columns: chart balance.
# Supportive years matter most to weak charts; adverse years turn into
# opportunities once the chart is strong enough to use them.
INTERACTION_TABLE = {
    Relation.SAME: {
        _B.CRITICALLY_DEFICIENT: _I.STRONG_BOOST,
        _B.DIMINISHED: _I.STRONG_BOOST,
        _B.BALANCED: _I.BOOST,
        _B.ELEVATED: _I.BOOST,
        _B.CRITICALLY_EXCESSIVE: _I.CHALLENGE,
    },
    Relation.PRODUCES_ME: {
        _B.CRITICALLY_DEFICIENT: _I.STRONG_BOOST,
        _B.DIMINISHED: _I.STRONG_BOOST,
        _B.BALANCED: _I.BOOST,
        _B.ELEVATED: _I.BOOST,
        _B.CRITICALLY_EXCESSIVE: _I.BOOST,
    },
    Relation.I_PRODUCE: {
        _B.CRITICALLY_DEFICIENT: _I.CHALLENGE,
        _B.DIMINISHED: _I.DRAIN,
        _B.BALANCED: _I.DRAIN,
        _B.ELEVATED: _I.OPPORTUNITY,
        _B.CRITICALLY_EXCESSIVE: _I.OPPORTUNITY,
    },
    Relation.I_CONTROL: {
        _B.CRITICALLY_DEFICIENT: _I.CHALLENGE,
        _B.DIMINISHED: _I.CHALLENGE,
        _B.BALANCED: _I.OPPORTUNITY,
        _B.ELEVATED: _I.OPPORTUNITY,
        _B.CRITICALLY_EXCESSIVE: _I.OPPORTUNITY,
    },
    Relation.CONTROLS_ME: {
        _B.CRITICALLY_DEFICIENT: _I.PRESSURE,
        _B.DIMINISHED: _I.PRESSURE,
        _B.BALANCED: _I.CHALLENGE,
        _B.ELEVATED: _I.OPPORTUNITY,
        _B.CRITICALLY_EXCESSIVE: _I.OPPORTUNITY,
    },
}

BASE_STRENGTH = {
    _I.STRONG_BOOST: 85,
    _I.BOOST: 75,
    _I.OPPORTUNITY: 70,
    _I.DRAIN: 60,
    _I.CHALLENGE: 55,
    _I.PRESSURE: 45,
}

REINFORCE_ADJUSTMENT = 8
DAMPEN_ADJUSTMENT = 5
STRENGTH_RANGE = (30, 95)


# Why the report year acts on the Day Master the way it does
YEAR_RELATION_REASON = {
    Relation.SAME: "The year's {element} matches the Day Master: confidence grows, so take the initiative",
    Relation.PRODUCES_ME: "The year's {element} feeds the Day Master: mentors help and study pays off",
    Relation.I_PRODUCE: "The year's {element} draws on the Day Master: much giving and expression, so pace yourself",
    Relation.CONTROLS_ME: "The year's {element} restrains the Day Master: meet the challenges with flexibility",
    Relation.I_CONTROL: "The year's {element} is wealth to the Day Master: more openings, but guard against risk",
}


@dataclass(frozen=True)
class AnnualInteraction:
    year: int
    year_element: Element
    relation: Relation
    category: InteractionCategory
    strength: int

    @property
    def brief_reason(self) -> str:
        return YEAR_RELATION_REASON[self.relation].format(element=self.year_element.value)

    def to_dict(self):
        return {
            "year": self.year,
            "year_element": self.year_element.value,
            "relation": self.relation.value,
            "category": self.category.value,
            "strength": self.strength,
            "brief_reason": self.brief_reason,
        }


def interaction_strength(category: InteractionCategory, year_weight: float, mean_weight: float) -> int:
    """
    Numeric strength of an interaction, clamped to [30, 95].

    A year element already above the chart mean reinforces the effect
    (favorable categories rise, adverse ones fall); below the mean it
    dampens it.
    """
    strength = BASE_STRENGTH[category]
    if year_weight > mean_weight:
        strength += REINFORCE_ADJUSTMENT if category.is_favorable else -REINFORCE_ADJUSTMENT
    elif year_weight < mean_weight:
        strength += -DAMPEN_ADJUSTMENT if category.is_favorable else DAMPEN_ADJUSTMENT
    low, high = STRENGTH_RANGE
    return max(low, min(high, strength))


def score_annual_interaction(day_element: Element,
                             distribution: dict[Element, float],
                             balance: BalanceCategory,
                             target_year: Optional[int] = None) -> AnnualInteraction:
    """
    Score how the report year's element acts on the Day Master.

    The year element is the stem element of the year's annual pillar
    (2026 Bing Wu → fire).

    Args:
        day_element: the Day Master's element
        distribution: five-element weights of the natal chart
        balance: balance category of that distribution
        target_year: report year; defaults to settings.DEFAULT_TARGET_YEAR
    """
    year = target_year if target_year is not None else settings.DEFAULT_TARGET_YEAR
    year_element = annual_pillar(year).stem.element
    relation = element_relationship(day_element, year_element)
    category = INTERACTION_TABLE[relation][balance]

    mean_weight = sum(distribution.values()) / len(distribution)
    strength = interaction_strength(category, distribution[year_element], mean_weight)

    return AnnualInteraction(
        year=year,
        year_element=year_element,
        relation=relation,
        category=category,
        strength=strength,
    )


# ============================================================
# FULL CHART PROFILE
# ============================================================

@dataclass(frozen=True)
class BirthInput:
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    hour_unknown: bool = False
    timezone: Optional[str] = None

    def to_dict(self):
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "hour": None if self.hour_unknown else self.hour,
            "minute": None if self.hour_unknown else self.minute,
            "hour_unknown": self.hour_unknown,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class ChartProfile:
    pillars: FourPillars
    day_master: HeavenlyStem
    # Compared but not hashed; every other field is immutable
    element_distribution: dict = field(hash=False)
    balance: BalanceCategory
    top_ten_gods: tuple[TenGodWeight, ...]
    favorable_elements: tuple[Element, ...]
    unfavorable_elements: tuple[Element, ...]
    annual_interaction: AnnualInteraction
    timezone: TimezoneResolution

    @property
    def hour_known(self) -> bool:
        return self.pillars.hour_known

    def to_dict(self):
        return {
            "pillars": self.pillars.to_dict(),
            "day_master": {
                "stem": self.day_master.pinyin,
                "chinese": self.day_master.chinese,
                "element": self.day_master.element.value,
                "polarity": self.day_master.polarity.value,
                "description": str(self.day_master),
            },
            "element_distribution": {e.value: w for e, w in self.element_distribution.items()},
            "balance": self.balance.value,
            "top_ten_gods": [entry.to_dict() for entry in self.top_ten_gods],
            "favorable_elements": [e.value for e in self.favorable_elements],
            "unfavorable_elements": [e.value for e in self.unfavorable_elements],
            "annual_interaction": self.annual_interaction.to_dict(),
            "hour_known": self.hour_known,
            "timezone": self.timezone.to_dict(),
        }


def build_chart_profile(birth: BirthInput,
                        target_year: Optional[int] = None,
                        thresholds: Optional[BalanceThresholds] = None) -> ChartProfile:
    """
    Compute a full chart profile from birth data.

    Runs the six steps in order: pillars, element distribution, balance,
    Ten Gods ranking, favorable elements, annual interaction. Nothing else
    feeds the result: target_year and thresholds default to the built-in
    constants, not to the environment.

    Raises:
        InvalidCalendarDate, InvalidTimeOfDay: see compute_pillars
    """
    pillars, resolution = compute_pillars(
        birth.year, birth.month, birth.day,
        birth.hour, birth.minute,
        hour_unknown=birth.hour_unknown,
        timezone=birth.timezone,
    )
    day_master = pillars.day_master

    elements = element_distribution(pillars)
    balance = classify_balance(elements, thresholds)
    gods = rank_ten_gods(pillars, day_master)
    favorability = resolve_favorability(day_master.element, balance)
    interaction = score_annual_interaction(day_master.element, elements, balance, target_year)

    logger.debug("Chart profile: day master %s, balance %s, %d interaction %s (%d)",
                 day_master, balance.value, interaction.year,
                 interaction.category.value, interaction.strength)

    return ChartProfile(
        pillars=pillars,
        day_master=day_master,
        element_distribution=elements,
        balance=balance,
        top_ten_gods=tuple(gods),
        favorable_elements=favorability.favorable,
        unfavorable_elements=favorability.unfavorable,
        annual_interaction=interaction,
        timezone=resolution,
    )
