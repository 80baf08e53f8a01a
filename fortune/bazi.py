"""
BaZi (Four Pillars of Destiny) computation engine.

Handles:
- Gregorian to BaZi pillar conversion (timezone-normalized)
- Hidden stem extraction
- Element distribution across stems, branches and hidden stems
- Ten Gods ranking against the Day Master
- Annual pillar for the report year

Design principle: every function here is pure. Same input, same pillars.
Interpretation lives in fortune.analysis and fortune.report.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from fortune.astro_calendar import (
    DAY_EPOCH_BRANCH_INDEX,
    DAY_EPOCH_STEM_INDEX,
    TimezoneResolution,
    days_since_epoch,
    resolve_timezone,
    solar_month,
    to_reference_time,
    validate_date,
    validate_time,
)
from fortune.errors import InvalidCalendarDate

logger = logging.getLogger(__name__)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple[str, ...]  # pinyin names [main_qi, middle_qi, residual_qi]

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch
    position: str  # "year", "month", "day", "hour", "annual"

    def __str__(self):
        return f"{self.stem.pinyin} {self.branch.pinyin} ({self.stem.polarity.value} {self.stem.element.value} {self.branch.animal})"

    def to_dict(self):
        return {
            "position": self.position,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
                "hidden_stems": list(self.branch.hidden_stems),
            },
            "combined": f"{self.stem.chinese}{self.branch.chinese}",
            "description": str(self),
        }


@dataclass(frozen=True)
class FourPillars:
    """The natal chart. `hour` is None when the birth time is unknown."""
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Optional[Pillar] = None

    @property
    def day_master(self) -> HeavenlyStem:
        return self.day.stem

    @property
    def hour_known(self) -> bool:
        return self.hour is not None

    def present(self) -> Iterator[Pillar]:
        """Yield the pillars that exist, in year, month, day, hour order."""
        for pillar in (self.year, self.month, self.day, self.hour):
            if pillar is not None:
                yield pillar

    def to_dict(self):
        return {
            "year": self.year.to_dict(),
            "month": self.month.to_dict(),
            "day": self.day.to_dict(),
            "hour": self.hour.to_dict() if self.hour else None,
        }


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("Gui",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("Ji", "Gui", "Xin")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("Jia", "Bing", "Wu")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("Yi",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("Wu", "Yi", "Gui")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("Bing", "Wu", "Geng")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("Ding", "Ji")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("Ji", "Ding", "Yi")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("Geng", "Ren", "Wu")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("Xin",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("Wu", "Xin", "Ding")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("Ren", "Jia")),
)

# Lookup helpers
STEM_BY_PINYIN = {s.pinyin: s for s in HEAVENLY_STEMS}
STEM_BY_CHINESE = {s.chinese: s for s in HEAVENLY_STEMS}
BRANCH_BY_PINYIN = {b.pinyin: b for b in EARTHLY_BRANCHES}
BRANCH_BY_CHINESE = {b.chinese: b for b in EARTHLY_BRANCHES}


def hidden_stems(branch: EarthlyBranch) -> list[HeavenlyStem]:
    """Hidden stems of a branch, main qi first."""
    return [STEM_BY_PINYIN[pinyin] for pinyin in branch.hidden_stems]


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def year_pillar(year: int) -> Pillar:
    """
    Compute the Year Pillar.

    The pillar changes on January 1st; no Li Chun adjustment is made.

    Args:
        year: Gregorian year
    """
    # (year - 4) indexes the cycle: year 4 CE was Jia Zi
    stem_index = (year - 4) % 10
    branch_index = (year - 4) % 12

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="year"
    )


def month_pillar(year_stem_index: int, month: int, day: int) -> Pillar:
    """
    Compute the Month Pillar from the approximate solar month.

    Args:
        year_stem_index: index of the year's heavenly stem (0-9)
        month, day: Gregorian month and day, located against the Jie table
    """
    solar = solar_month(month, day)
    stem_index = (year_stem_index * 2 + solar) % 10
    branch_index = (solar + 2) % 12

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="month"
    )


def day_pillar(year: int, month: int, day: int) -> Pillar:
    """
    Compute the Day Pillar by counting days from a fixed epoch.

    1900-01-01 was Jia Xu; the 60-day cycle advances one step per day.
    Verified against published day pillars (1949-10-01 = Jia Zi,
    2000-01-01 = Wu Wu).
    """
    count = days_since_epoch(year, month, day)
    stem_index = (DAY_EPOCH_STEM_INDEX + count) % 10
    branch_index = (DAY_EPOCH_BRANCH_INDEX + count) % 12

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="day"
    )


def hour_branch_index(hour: int) -> int:
    """
    Map a clock hour to its two-hour branch (shi chen).

    23:00-00:59 = Zi (Rat)      = branch 0
    01:00-02:59 = Chou (Ox)     = branch 1
    ...
    21:00-22:59 = Hai (Pig)     = branch 11

    Windows start on odd hours, so minutes never change the branch.
    """
    if hour == 23 or hour == 0:
        return 0
    return ((hour + 1) // 2) % 12


def hour_pillar(day_stem_index: int, hour: int) -> Pillar:
    """
    Compute the Hour Pillar using the Five Rats Escape (Wu Shu Dun) rule.

    Args:
        day_stem_index: index of the day's heavenly stem (0-9)
        hour: hour in 24h format, already normalized to reference time
    """
    branch_index = hour_branch_index(hour)
    stem_index = (day_stem_index * 2 + branch_index) % 10

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="hour"
    )


def annual_pillar(year: int) -> Pillar:
    """Compute the annual pillar for a given year."""
    stem_index = (year - 4) % 10
    branch_index = (year - 4) % 12
    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="annual"
    )


def compute_pillars(year: int, month: int, day: int,
                    hour: int = 0, minute: int = 0,
                    hour_unknown: bool = False,
                    timezone: Optional[str] = None) -> tuple[FourPillars, TimezoneResolution]:
    """
    Compute the four pillars for a birth moment.

    When the hour is known, the wall time is first shifted into the reference
    timezone, which can move the date by a day. When it is unknown, the date
    is used as given and no hour pillar is produced.

    Args:
        year, month, day: birth date (proleptic Gregorian)
        hour, minute: local clock time; ignored when hour_unknown
        hour_unknown: True if the birth time is not known
        timezone: IANA identifier of the birth clock; unknown ones fall back
            to the reference offset

    Returns:
        (FourPillars, TimezoneResolution)

    Raises:
        InvalidCalendarDate: the date does not exist, or the timezone shift
            moves it past year 9999
        InvalidTimeOfDay: hour/minute out of range with a known hour
    """
    validate_date(year, month, day)
    resolution = resolve_timezone(timezone)

    if hour_unknown:
        yp = year_pillar(year)
        pillars = FourPillars(
            year=yp,
            month=month_pillar(yp.stem.index, month, day),
            day=day_pillar(year, month, day),
        )
        logger.debug("Pillars for %04d-%02d-%02d (hour unknown): %s",
                     year, month, day, [str(p) for p in pillars.present()])
        return pillars, resolution

    validate_time(hour, minute)
    try:
        moment = to_reference_time(datetime(year, month, day, hour, minute), resolution)
    except OverflowError as exc:
        raise InvalidCalendarDate(
            f"{year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d} {resolution.timezone} "
            f"falls outside the supported calendar range in reference time") from exc

    yp = year_pillar(moment.year)
    dp = day_pillar(moment.year, moment.month, moment.day)
    pillars = FourPillars(
        year=yp,
        month=month_pillar(yp.stem.index, moment.month, moment.day),
        day=dp,
        hour=hour_pillar(dp.stem.index, moment.hour),
    )
    logger.debug("Pillars for %s (reference time): %s",
                 moment.isoformat(), [str(p) for p in pillars.present()])
    return pillars, resolution


# ============================================================
# FIVE-PHASE CYCLES
# ============================================================

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

PRODUCED_BY = {child: parent for parent, child in PRODUCTION_CYCLE.items()}
CONTROLLED_BY = {target: source for source, target in CONTROL_CYCLE.items()}


def generates(element: Element) -> Element:
    """The element this one produces (Wood → Fire)."""
    return PRODUCTION_CYCLE[element]


def generated_by(element: Element) -> Element:
    """The element that produces this one (Fire ← Wood)."""
    return PRODUCED_BY[element]


def controls(element: Element) -> Element:
    """The element this one suppresses (Wood → Earth)."""
    return CONTROL_CYCLE[element]


def controlled_by(element: Element) -> Element:
    """The element that suppresses this one (Wood ← Metal)."""
    return CONTROLLED_BY[element]


class Relation(Enum):
    """How another element stands to the Day Master's element."""
    SAME = "same"
    PRODUCES_ME = "produces_me"
    I_PRODUCE = "i_produce"
    I_CONTROL = "i_control"
    CONTROLS_ME = "controls_me"


def element_relationship(day_master_element: Element, other_element: Element) -> Relation:
    """Determine the elemental relationship from DM's perspective."""
    if day_master_element == other_element:
        return Relation.SAME
    elif PRODUCTION_CYCLE[other_element] == day_master_element:
        return Relation.PRODUCES_ME
    elif PRODUCTION_CYCLE[day_master_element] == other_element:
        return Relation.I_PRODUCE
    elif CONTROL_CYCLE[day_master_element] == other_element:
        return Relation.I_CONTROL
    elif CONTROL_CYCLE[other_element] == day_master_element:
        return Relation.CONTROLS_ME
    else:
        raise ValueError(f"No valid relationship between {day_master_element} and {other_element}")


# ============================================================
# ELEMENT DISTRIBUTION ANALYSIS
# ============================================================

STEM_WEIGHT = 2.0
BRANCH_WEIGHT = 1.5
HIDDEN_WEIGHTS = (0.8, 0.4, 0.2)  # main, middle, residual qi


def element_distribution(pillars: FourPillars) -> dict[Element, float]:
    """
    Sum weighted element presence across all present pillars.

    Per pillar:
    - Visible stem: 2.0
    - Branch primary element: 1.5
    - Hidden stems: 0.8 (main qi), 0.4 (middle qi), 0.2 (residual qi)

    Always returns all five elements; an absent hour pillar simply adds
    nothing.
    """
    distribution = {e: 0.0 for e in Element}

    for pillar in pillars.present():
        distribution[pillar.stem.element] += STEM_WEIGHT
        distribution[pillar.branch.element] += BRANCH_WEIGHT
        for weight, hidden in zip(HIDDEN_WEIGHTS, hidden_stems(pillar.branch)):
            distribution[hidden.element] += weight

    return {e: round(w, 4) for e, w in distribution.items()}


# ============================================================
# TEN GODS (十神) RELATIONSHIP MAPPING
# ============================================================

class TenGod(Enum):
    # Declaration order is the canonical tie-break order
    COMPANION = "companion"                  # 比肩 Bi Jian
    ROB_WEALTH = "rob_wealth"                # 劫财 Jie Cai
    EATING_GOD = "eating_god"                # 食神 Shi Shen
    HURTING_OFFICER = "hurting_officer"      # 伤官 Shang Guan
    DIRECT_WEALTH = "direct_wealth"          # 正财 Zheng Cai
    INDIRECT_WEALTH = "indirect_wealth"      # 偏财 Pian Cai
    DIRECT_OFFICER = "direct_officer"        # 正官 Zheng Guan
    SEVEN_KILLINGS = "seven_killings"        # 七杀 Qi Sha
    DIRECT_RESOURCE = "direct_resource"      # 正印 Zheng Yin
    INDIRECT_RESOURCE = "indirect_resource"  # 偏印 Pian Yin


TEN_GOD_CHINESE = {
    TenGod.COMPANION: "比肩",
    TenGod.ROB_WEALTH: "劫财",
    TenGod.EATING_GOD: "食神",
    TenGod.HURTING_OFFICER: "伤官",
    TenGod.DIRECT_WEALTH: "正财",
    TenGod.INDIRECT_WEALTH: "偏财",
    TenGod.DIRECT_OFFICER: "正官",
    TenGod.SEVEN_KILLINGS: "七杀",
    TenGod.DIRECT_RESOURCE: "正印",
    TenGod.INDIRECT_RESOURCE: "偏印",
}

# One-line readings shown next to each ranked god
TEN_GOD_BRIEF = {
    TenGod.COMPANION: "Self-reliance and peer rivalry; wins come through partnership",
    TenGod.ROB_WEALTH: "An active social life with outside help, but resources leak easily",
    TenGod.EATING_GOD: "Talent for expression and creative thinking; enjoys life",
    TenGod.HURTING_OFFICER: "Breaks new ground with sharp words and a rebellious streak",
    TenGod.DIRECT_WEALTH: "Steady money management and honest, practical dealing",
    TenGod.INDIRECT_WEALTH: "Spots windfall chances and thrives on a wide network",
    TenGod.DIRECT_OFFICER: "Takes responsibility, follows the rules, earns standing",
    TenGod.SEVEN_KILLINGS: "Bold and decisive under the pressure of authority",
    TenGod.DIRECT_RESOURCE: "Learns readily, draws mentors, cultivates inner calm",
    TenGod.INDIRECT_RESOURCE: "Original insight and specialist skill; thinks off the beaten path",
}

TEN_GODS = {
    # (relationship, same_polarity): god
    (Relation.SAME, True): TenGod.COMPANION,
    (Relation.SAME, False): TenGod.ROB_WEALTH,
    (Relation.PRODUCES_ME, True): TenGod.INDIRECT_RESOURCE,
    (Relation.PRODUCES_ME, False): TenGod.DIRECT_RESOURCE,
    (Relation.I_PRODUCE, True): TenGod.EATING_GOD,
    (Relation.I_PRODUCE, False): TenGod.HURTING_OFFICER,
    (Relation.I_CONTROL, True): TenGod.INDIRECT_WEALTH,
    (Relation.I_CONTROL, False): TenGod.DIRECT_WEALTH,
    (Relation.CONTROLS_ME, True): TenGod.SEVEN_KILLINGS,
    (Relation.CONTROLS_ME, False): TenGod.DIRECT_OFFICER,
}

TEN_GOD_ORDER = {god: i for i, god in enumerate(TenGod)}

VISIBLE_STEM_GOD_WEIGHT = 3.0
HIDDEN_GOD_WEIGHTS = (1.2, 0.6, 0.3)  # main, middle, residual qi


def ten_god(day_master: HeavenlyStem, other: HeavenlyStem) -> TenGod:
    """
    Determine the Ten God relationship between the Day Master and another stem.

    The Day Master against itself is always COMPANION (the self category).
    """
    relationship = element_relationship(day_master.element, other.element)
    same_polarity = (day_master.polarity == other.polarity)
    return TEN_GODS[(relationship, same_polarity)]


@dataclass(frozen=True)
class TenGodWeight:
    god: TenGod
    weight: float

    @property
    def brief(self) -> str:
        return TEN_GOD_BRIEF[self.god]

    def to_dict(self):
        return {
            "god": self.god.value,
            "chinese": TEN_GOD_CHINESE[self.god],
            "weight": self.weight,
            "brief": self.brief,
        }


def ten_god_weights(pillars: FourPillars, day_master: HeavenlyStem) -> dict[TenGod, float]:
    """
    Weigh every Ten God present in the chart.

    Visible stems count 3.0 (the day pillar's own stem included, as
    COMPANION); hidden stems 1.2 / 0.6 / 0.3 by rank.
    """
    weights = {god: 0.0 for god in TenGod}
    for pillar in pillars.present():
        weights[ten_god(day_master, pillar.stem)] += VISIBLE_STEM_GOD_WEIGHT
        for weight, hidden in zip(HIDDEN_GOD_WEIGHTS, hidden_stems(pillar.branch)):
            weights[ten_god(day_master, hidden)] += weight
    return {god: round(w, 4) for god, w in weights.items()}


def rank_ten_gods(pillars: FourPillars, day_master: HeavenlyStem,
                  limit: int = 3) -> list[TenGodWeight]:
    """
    Return the heaviest Ten Gods, descending, ties in canonical order.

    Zero-weight gods are never returned, so the list may be shorter
    than `limit`.
    """
    weights = ten_god_weights(pillars, day_master)
    ranked = sorted(
        (item for item in weights.items() if item[1] > 0),
        key=lambda item: (-item[1], TEN_GOD_ORDER[item[0]]),
    )
    return [TenGodWeight(god, weight) for god, weight in ranked[:limit]]


# ============================================================
# TEST / VERIFICATION
# ============================================================

if __name__ == "__main__":
    print("=" * 60)
    print("BaZi Computation Test: 1990-01-01 12:00 (Asia/Shanghai)")
    print("=" * 60)

    # Expected: Geng Wu, Ding Chou, Bing Yin, Jia Wu
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")

    print(f"\nDay Master: {chart.day_master}")
    print("\nFour Pillars:")
    for p in chart.present():
        print(f"  {p.position.capitalize():6s}: {p}")

    print("\nElement Distribution:")
    for element, weight in sorted(element_distribution(chart).items(),
                                  key=lambda x: -x[1]):
        bar = "█" * int(weight * 2)
        print(f"  {element.value:6s}: {weight:4.1f} {bar}")

    print("\nTop Ten Gods:")
    for entry in rank_ten_gods(chart, chart.day_master):
        print(f"  {TEN_GOD_CHINESE[entry.god]} {entry.god.value}: {entry.weight}")

    print(f"\n2026 Annual Pillar: {annual_pillar(2026)}")
