"""
User-selected context for a report: what the reader asks about and how
they intend to play the year.
"""

from dataclasses import dataclass
from enum import Enum

from fortune.errors import InvalidUserContext


class FocusArea(Enum):
    CAREER = "career"    # 求官
    WEALTH = "wealth"    # 求财
    ROMANCE = "romance"  # 婚恋
    HEALTH = "health"    # 康宁
    SOCIAL = "social"    # 交游


class Strategy(Enum):
    STEADY_DEFENSE = "steady_defense"          # 稳守
    AGGRESSIVE = "aggressive"                  # 进取
    DEFEND_THEN_ATTACK = "defend_then_attack"  # 先守后攻
    ATTACK_THEN_DEFEND = "attack_then_defend"  # 先攻后守


class Energy(Enum):
    ABUNDANT = "abundant"
    MODERATE = "moderate"
    LIMITED = "limited"


SITUATION_OPTIONS = {
    FocusArea.CAREER: ("seeking_promotion", "changing_jobs", "starting_business",
                       "exam_or_certification", "stable_position"),
    FocusArea.WEALTH: ("salary_growth", "side_income", "investing",
                       "debt_repayment", "business_revenue"),
    FocusArea.ROMANCE: ("single_looking", "new_relationship", "long_term_relationship",
                        "considering_marriage", "recovering_from_breakup"),
    FocusArea.HEALTH: ("general_wellbeing", "recovering", "stress_and_sleep",
                       "fitness_goal", "caring_for_family"),
    FocusArea.SOCIAL: ("expanding_network", "team_conflict", "finding_mentor",
                       "relocating", "reconnecting"),
}

AVOID_OPTIONS = (
    "impulsive_investment",
    "job_hopping",
    "open_conflict",
    "overwork",
    "overspending",
    "late_nights",
    "gossip",
    "risky_travel",
    "lending_money",
    "rushed_commitment",
)

MAX_AVOID = 3


def _parse(enum_cls, value, field_name):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidUserContext(f"Unknown {field_name} {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class UserContext:
    """
    Immutable report options.

    Build it with UserContext.create() to accept plain strings; the
    constructor itself also validates, so an invalid instance never exists.
    """
    focus: FocusArea
    situation: str
    strategy: Strategy
    avoid: tuple[str, ...]
    energy: Energy

    def __post_init__(self):
        if not isinstance(self.focus, FocusArea):
            raise InvalidUserContext(f"focus must be a FocusArea, got {self.focus!r}")
        if not isinstance(self.strategy, Strategy):
            raise InvalidUserContext(f"strategy must be a Strategy, got {self.strategy!r}")
        if not isinstance(self.energy, Energy):
            raise InvalidUserContext(f"energy must be an Energy, got {self.energy!r}")
        if self.situation not in SITUATION_OPTIONS[self.focus]:
            raise InvalidUserContext(
                f"Situation {self.situation!r} does not belong to focus {self.focus.value!r}")
        if not 1 <= len(self.avoid) <= MAX_AVOID:
            raise InvalidUserContext(f"Choose between 1 and {MAX_AVOID} things to avoid")
        if len(set(self.avoid)) != len(self.avoid):
            raise InvalidUserContext("Avoid selections must be distinct")
        unknown = [a for a in self.avoid if a not in AVOID_OPTIONS]
        if unknown:
            raise InvalidUserContext(f"Unknown avoid selection(s): {', '.join(unknown)}")

    @classmethod
    def create(cls, focus, situation, strategy, avoid, energy) -> "UserContext":
        return cls(
            focus=_parse(FocusArea, focus, "focus"),
            situation=situation,
            strategy=_parse(Strategy, strategy, "strategy"),
            avoid=tuple(avoid),
            energy=_parse(Energy, energy, "energy"),
        )

    def to_dict(self):
        return {
            "focus": self.focus.value,
            "situation": self.situation,
            "strategy": self.strategy.value,
            "avoid": list(self.avoid),
            "energy": self.energy.value,
        }
