"""
Yearly report generation.

Turns a finished ChartProfile plus the reader's UserContext into the
overall outlook, five life domains, twelve months and the basis text.
Only category fields of the profile are read; nothing is recomputed
except the report year's month pillars.

Where several phrasings are equivalent the choice goes through an
injected random.Random. The default one is seeded from the inputs, so
the same profile and context always regenerate the same report.
"""

import hashlib
import json
import logging
import random
from dataclasses import asdict, dataclass
from typing import Optional

from fortune.analysis import ChartProfile, InteractionCategory
from fortune.astro_calendar import solar_term_for
from fortune.bazi import Relation, annual_pillar, element_relationship, month_pillar
from fortune.context import Energy, FocusArea, Strategy, UserContext

logger = logging.getLogger(__name__)

_I = InteractionCategory

SCORE_RANGE = (40, 95)


# ============================================================
# REPORT STRUCTURE
# ============================================================

@dataclass(frozen=True)
class OverallOutlook:
    score: int
    headline: str
    keywords: list
    advice: str


@dataclass(frozen=True)
class DomainOutlook:
    name: str
    score: int
    trend: str  # rising, steady, fluctuating, under_pressure
    bright_spot: str
    pitfall: str
    actions: list
    basis: str


@dataclass(frozen=True)
class MonthOutlook:
    month: int
    pillar: str
    solar_term: str
    tag: str
    theme: str
    reminders: list
    good_for: str
    method: str


@dataclass(frozen=True)
class Basis:
    theory: str
    rules: str
    disclaimer: str


@dataclass(frozen=True)
class Report:
    year: int
    overall: OverallOutlook
    domains: list
    months: list
    basis: Basis

    def to_dict(self):
        return asdict(self)


# ============================================================
# CONTENT TABLES
# ============================================================

CATEGORY_SCORE_BONUS = {
    _I.STRONG_BOOST: 15,
    _I.BOOST: 10,
    _I.OPPORTUNITY: 8,
    _I.DRAIN: -5,
    _I.CHALLENGE: -8,
    _I.PRESSURE: -10,
}

ENERGY_SCORE_BONUS = {
    Energy.ABUNDANT: 2,
    Energy.MODERATE: 0,
    Energy.LIMITED: -3,
}

HEADLINES = {
    _I.STRONG_BOOST: ("The year's fire carries you forward",
                      "Right time, right footing: go big",
                      "Wind at your back all year"),
    _I.BOOST: ("A supportive year to build on",
               "Steady tailwinds, steady gains",
               "Help arrives when you ask for it"),
    _I.OPPORTUNITY: ("Openings appear; take the ones that fit",
                     "Strong enough to turn pressure into gain",
                     "A year of chances for the prepared"),
    _I.DRAIN: ("Effort in, results later",
               "Give generously, rest deliberately",
               "A year of output and slow harvest"),
    _I.CHALLENGE: ("Tests that sharpen you",
                   "Turn friction into momentum",
                   "Pick your battles and win them"),
    _I.PRESSURE: ("Bend, don't break",
                  "Pressure now, resilience later",
                  "Steady hands through a demanding year"),
}

KEYWORDS = {
    _I.STRONG_BOOST: ("confidence", "visibility", "momentum"),
    _I.BOOST: ("support", "growth", "learning"),
    _I.OPPORTUNITY: ("initiative", "timing", "reward"),
    _I.DRAIN: ("expression", "output", "pacing"),
    _I.CHALLENGE: ("focus", "adaptability", "discipline"),
    _I.PRESSURE: ("patience", "flexibility", "self-care"),
}

EXTRA_KEYWORD = {
    _I.DRAIN: "work-rest balance",
    _I.CHALLENGE: "choose battles",
    _I.PRESSURE: "soft power",
}

ADVICE = {
    _I.STRONG_BOOST: "Step forward and show your work, but keep pride in check.",
    _I.BOOST: "Lean on mentors and study; compound small wins.",
    _I.OPPORTUNITY: "Read the situation, seize what fits, and do not overreach.",
    _I.DRAIN: "Budget your energy; put effort where expression pays off.",
    _I.CHALLENGE: "Prepare before you engage; one clear win beats many skirmishes.",
    _I.PRESSURE: "Yield where it costs little, borrow strength from allies, and wait for the opening.",
}

FOCUS_DOMAIN = {
    FocusArea.CAREER: "career",
    FocusArea.WEALTH: "wealth",
    FocusArea.ROMANCE: "romance",
    FocusArea.HEALTH: "health",
    FocusArea.SOCIAL: "social",
}

DOMAINS = ("career", "wealth", "romance", "health", "social")

# Per-domain score adjustment for each interaction category
DOMAIN_ADJUSTMENTS = {
    "career": {_I.STRONG_BOOST: 8, _I.BOOST: 8, _I.OPPORTUNITY: 5, _I.PRESSURE: -5},
    "wealth": {_I.OPPORTUNITY: 6, _I.DRAIN: -3},
    "romance": {_I.STRONG_BOOST: 4, _I.CHALLENGE: -3},
    "health": {_I.DRAIN: -8, _I.PRESSURE: -5},
    "social": {_I.STRONG_BOOST: 8, _I.BOOST: 8, _I.OPPORTUNITY: 5},
}

DOMAIN_CONTENT = {
    "career": {
        "bright_spot": "Room to show creativity and speak up",
        "pitfall": "Impatience and going it alone",
        "actions": ["Deepen one core skill",
                    "Use moments of visibility well",
                    "Invest in your working relationships"],
        "basis": "The year's fire favors expression and recognition at work",
    },
    "wealth": {
        "bright_spot": "Regular income holds; side chances appear",
        "pitfall": "Impulse purchases and speculative bets",
        "actions": ["Keep a plain budget",
                    "Look for one new income stream",
                    "Plan large outlays ahead"],
        "basis": "Fire feeds earth, so gains come steadily rather than suddenly",
    },
    "romance": {
        "bright_spot": "Feelings are easier to express",
        "pitfall": "Quick tempers and heated words",
        "actions": ["Say what you appreciate, out loud",
                    "Cool down before hard conversations",
                    "Make unhurried time together"],
        "basis": "Strong fire warms relationships but flares easily",
    },
    "health": {
        "bright_spot": "Plenty of drive and vitality",
        "pitfall": "Overheating, heart strain and burnout",
        "actions": ["Keep regular sleep hours",
                    "Move a little every day",
                    "Eat light and drink water"],
        "basis": "A fire year calls for keeping water and fire in balance",
    },
    "social": {
        "bright_spot": "An active social season; your circle grows",
        "pitfall": "Sharp words that bruise allies",
        "actions": ["Say yes to new circles",
                    "Soften how you deliver hard truths",
                    "Look after the relationships that matter"],
        "basis": "The year strengthens presence and persuasion",
    },
}

MONTH_THEMES = {
    "auspicious": ("Things fall into place", "Ride the good current", "A bright stretch"),
    "caution": ("Move carefully", "Keep a low profile", "Avoid rash moves"),
    "steady": ("Steady progress", "Business as usual", "Hold your line"),
    "opportunity": ("Seize the opening", "Take the initiative", "Room to stretch"),
    "challenge": ("Meet it head-on", "Turn risk into footing", "Borrow strength"),
    "turning_point": ("Read the shift", "Adapt and replan", "Change course wisely"),
}

RELATION_MONTH_TAG = {
    Relation.SAME: "steady",
    Relation.PRODUCES_ME: "steady",
    Relation.I_CONTROL: "opportunity",
    Relation.I_PRODUCE: "turning_point",
    Relation.CONTROLS_ME: "challenge",
}

GENERAL_REMINDERS = (
    "Mind your words and manners",
    "Act decisively once the timing is right",
    "Stay calm and decide on facts",
    "Listen before you answer",
    "Look after your health",
    "Tend to your key relationships",
)

AVOID_REMINDERS = {
    "impulsive_investment": "Sleep on every investment decision",
    "job_hopping": "Finish what you started before switching",
    "open_conflict": "Disagree in private, not in public",
    "overwork": "Protect at least one rest day a week",
    "overspending": "Check the budget before big purchases",
    "late_nights": "Be in bed before midnight",
    "gossip": "Keep confidences and skip the rumor mill",
    "risky_travel": "Plan trips with safety margins",
    "lending_money": "Decline loans you cannot afford to lose",
    "rushed_commitment": "Give big promises a cooling-off period",
}

HOLD_METHOD = "Hold steady; consolidate before moving"
PRESS_METHOD = "Act early and press the advantage"

GOOD_FOR = {
    FocusArea.CAREER: ("Training and courses", "Pitching ideas", "Negotiating roles", "Signing agreements"),
    FocusArea.WEALTH: ("Reviewing finances", "Business talks", "Rebalancing savings", "Closing deals"),
    FocusArea.ROMANCE: ("Social gatherings", "Meaningful dates", "Honest conversations", "Family visits"),
    FocusArea.HEALTH: ("Health check-ups", "Starting a routine", "Rest and recovery", "Outdoor activity"),
    FocusArea.SOCIAL: ("Networking events", "Reconnecting with friends", "Team projects", "Finding a mentor"),
}

BASIS = Basis(
    theory=(
        "This reading follows the Zi Ping school of Four Pillars analysis. "
        "The Day Master (the stem of the day pillar) represents you; the five "
        "elements wood, fire, earth, metal and water interact through cycles "
        "of production and control; the Ten Gods describe how each stem in "
        "the chart relates to the Day Master."
    ),
    rules=(
        "Year pillar: changes on January 1st. Month pillar: approximate solar "
        "terms. Day pillar: counted from a fixed epoch day. Hour pillar: "
        "two-hour branches, only when the birth time is known. The report "
        "year's element is compared with the Day Master's element and the "
        "chart's balance to classify the year."
    ),
    disclaimer=(
        "For entertainment and reflection only. Nothing here is investment, "
        "medical or legal advice. The analysis is simplified; treat it as one "
        "perspective among many."
    ),
)


# ============================================================
# SCORING HELPERS
# ============================================================

def _clamp(score: int) -> int:
    low, high = SCORE_RANGE
    return max(low, min(high, score))


def strategy_bonus(strategy: Strategy, profile: ChartProfile) -> int:
    """Reward a strategy that suits the chart's strength."""
    if strategy is Strategy.STEADY_DEFENSE:
        return 5 if profile.balance.is_weak else 0
    if strategy is Strategy.AGGRESSIVE:
        return 5 if profile.balance.is_strong else 0
    if strategy is Strategy.DEFEND_THEN_ATTACK:
        return 3
    return 2


def trend_for(score: int) -> str:
    if score >= 80:
        return "rising"
    if score >= 70:
        return "steady"
    if score >= 60:
        return "fluctuating"
    return "under_pressure"


def report_seed(profile: ChartProfile, context: UserContext) -> str:
    """Stable seed for phrase selection, derived from the report inputs."""
    payload = json.dumps({"profile": profile.to_dict(), "context": context.to_dict()},
                         sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# ============================================================
# SECTIONS
# ============================================================

def generate_overall(profile: ChartProfile, context: UserContext, rng: random.Random) -> OverallOutlook:
    category = profile.annual_interaction.category
    score = _clamp(70
                   + CATEGORY_SCORE_BONUS[category]
                   + strategy_bonus(context.strategy, profile)
                   + ENERGY_SCORE_BONUS[context.energy])

    keywords = list(KEYWORDS[category])
    if category in EXTRA_KEYWORD:
        keywords.append(EXTRA_KEYWORD[category])

    return OverallOutlook(
        score=score,
        headline=rng.choice(HEADLINES[category]),
        keywords=keywords,
        advice=ADVICE[category],
    )


def generate_domains(profile: ChartProfile, context: UserContext, rng: random.Random) -> list[DomainOutlook]:
    category = profile.annual_interaction.category
    focus_domain = FOCUS_DOMAIN[context.focus]

    domains = []
    for name in DOMAINS:
        score = 65 + rng.randint(0, 9)
        if name == focus_domain:
            score += 10
        score += DOMAIN_ADJUSTMENTS[name].get(category, 0)
        if name == "health" and context.energy is Energy.LIMITED:
            score -= 5
        score = _clamp(score)

        content = DOMAIN_CONTENT[name]
        domains.append(DomainOutlook(
            name=name,
            score=score,
            trend=trend_for(score),
            bright_spot=content["bright_spot"],
            pitfall=content["pitfall"],
            actions=list(content["actions"]),
            basis=content["basis"],
        ))
    return domains


def month_method(strategy: Strategy, month: int) -> str:
    """One-line tactic for a month given the reader's chosen strategy."""
    first_half = month <= 6
    if strategy is Strategy.STEADY_DEFENSE:
        return HOLD_METHOD
    if strategy is Strategy.AGGRESSIVE:
        return PRESS_METHOD
    if strategy is Strategy.DEFEND_THEN_ATTACK:
        return HOLD_METHOD if first_half else PRESS_METHOD
    return PRESS_METHOD if first_half else HOLD_METHOD


def month_tag(profile: ChartProfile, month_element) -> str:
    if month_element in profile.favorable_elements:
        return "auspicious"
    if month_element in profile.unfavorable_elements:
        return "caution"
    relation = element_relationship(profile.day_master.element, month_element)
    return RELATION_MONTH_TAG[relation]


def generate_months(profile: ChartProfile, context: UserContext, rng: random.Random) -> list[MonthOutlook]:
    year_stem_index = annual_pillar(profile.annual_interaction.year).stem.index
    good_for = GOOD_FOR[context.focus]

    months = []
    for month in range(1, 13):
        # Mid-month always sits past that month's Jie boundary
        pillar = month_pillar(year_stem_index, month, 15)
        term = solar_term_for(month, 15)
        tag = month_tag(profile, pillar.branch.element)

        avoid = context.avoid[(month - 1) % len(context.avoid)]
        reminders = [AVOID_REMINDERS[avoid]]
        general = rng.choice(GENERAL_REMINDERS)
        if general not in reminders:
            reminders.append(general)

        months.append(MonthOutlook(
            month=month,
            pillar=f"{pillar.stem.pinyin} {pillar.branch.pinyin}",
            solar_term=term.name,
            tag=tag,
            theme=rng.choice(MONTH_THEMES[tag]),
            reminders=reminders,
            good_for=good_for[(month - 1) % len(good_for)],
            method=month_method(context.strategy, month),
        ))
    return months


def generate_report(profile: ChartProfile, context: UserContext,
                    rng: Optional[random.Random] = None) -> Report:
    """
    Generate the full yearly report.

    Args:
        profile: finished chart profile
        context: the reader's selections
        rng: phrase selector; defaults to one seeded from the inputs

    Returns:
        Report with overall outlook, 5 domains, 12 months and basis text
    """
    if rng is None:
        rng = random.Random(report_seed(profile, context))

    report = Report(
        year=profile.annual_interaction.year,
        overall=generate_overall(profile, context, rng),
        domains=generate_domains(profile, context, rng),
        months=generate_months(profile, context, rng),
        basis=BASIS,
    )
    logger.debug("Report for %d: overall %d (%s)", report.year,
                 report.overall.score, profile.annual_interaction.category.value)
    return report
