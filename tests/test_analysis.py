"""
Tests for fortune.analysis: balance, favorability, annual interaction and the profile.
"""

import json

import pytest

from fortune.analysis import (
    INTERACTION_TABLE,
    STRENGTH_RANGE,
    YEAR_RELATION_REASON,
    BalanceCategory,
    BirthInput,
    InteractionCategory,
    build_chart_profile,
    classify_balance,
    distribution_stats,
    interaction_strength,
    resolve_favorability,
    score_annual_interaction,
)
from fortune.bazi import Element, Relation, compute_pillars, element_distribution, rank_ten_gods
from fortune.errors import InvalidCalendarDate
from fortune.settings import BalanceThresholds

ORDER = (Element.METAL, Element.FIRE, Element.EARTH, Element.WATER, Element.WOOD)


def dist(*weights):
    """Distribution from weights in metal, fire, earth, water, wood order."""
    return dict(zip(ORDER, map(float, weights)))


REFERENCE = dist(2.2, 9.0, 3.3, 0.4, 4.3)


# --- balance ---

def test_stats_of_reference_chart():
    stats = distribution_stats(REFERENCE)
    assert stats.avg == pytest.approx(3.84)
    assert stats.skew == pytest.approx(0.4479, abs=1e-3)
    assert stats.dispersion == pytest.approx(0.75, abs=0.01)


def test_reference_chart_is_elevated():
    assert classify_balance(REFERENCE) is BalanceCategory.ELEVATED


@pytest.mark.parametrize("weight", [0.5, 1.0, 7.5, 1000.0])
def test_equal_weights_are_balanced(weight):
    assert classify_balance(dist(*[weight] * 5)) is BalanceCategory.BALANCED


def test_one_dominant_element_is_critically_excessive():
    assert classify_balance(dist(10, 1, 1, 1, 1)) is BalanceCategory.CRITICALLY_EXCESSIVE


def test_one_missing_element_is_critically_deficient():
    assert classify_balance(dist(0, 3, 3, 3, 3)) is BalanceCategory.CRITICALLY_DEFICIENT


def test_one_weak_element_is_diminished():
    assert classify_balance(dist(0.2, 3, 3, 3, 3)) is BalanceCategory.DIMINISHED


def test_small_spread_is_balanced():
    assert classify_balance(dist(3.2, 3.0, 2.9, 3.1, 2.8)) is BalanceCategory.BALANCED


@pytest.mark.parametrize("weights", [
    (2.2, 9.0, 3.3, 0.4, 4.3),
    (10, 1, 1, 1, 1),
    (0, 3, 3, 3, 3),
    (0.2, 3, 3, 3, 3),
    (3, 2.5, 2, 1.5, 1),
])
@pytest.mark.parametrize("factor", [0.01, 3.7, 250])
def test_classification_is_scale_invariant(weights, factor):
    scaled = dist(*[w * factor for w in weights])
    assert classify_balance(scaled) is classify_balance(dist(*weights))


@pytest.mark.parametrize("base", [
    (3, 2.5, 2, 1.5, 1),
    (2.5, 2.167, 2.167, 2.167, 1),
    (1, 1, 1, 1, 0.1),
    (2, 2, 2, 2, 2),
])
def test_growing_the_dominant_element_never_weakens_the_category(base):
    previous = None
    for step in range(40):
        weights = (base[0] + step * 0.5,) + tuple(base[1:])
        severity = classify_balance(dist(*weights)).severity
        if previous is not None:
            assert severity >= previous
        previous = severity


def test_empty_distribution_rejected():
    with pytest.raises(ValueError):
        classify_balance(dist(0, 0, 0, 0, 0))


def test_custom_thresholds():
    relaxed = BalanceThresholds(elevated_skew=0.5)
    assert classify_balance(REFERENCE, relaxed) is BalanceCategory.BALANCED


def test_thresholds_from_environment(monkeypatch):
    monkeypatch.setenv("FORTUNE_BALANCE_ELEVATED_SKEW", "0.5")
    thresholds = BalanceThresholds.from_env()
    assert thresholds.elevated_skew == 0.5
    assert classify_balance(REFERENCE, thresholds) is BalanceCategory.BALANCED


def test_classification_ignores_environment(monkeypatch):
    monkeypatch.setenv("FORTUNE_BALANCE_BALANCED_DISPERSION", "0.9")
    monkeypatch.setenv("FORTUNE_BALANCE_ELEVATED_SKEW", "0.5")
    assert classify_balance(REFERENCE) is BalanceCategory.ELEVATED


def test_malformed_threshold_env_uses_default(monkeypatch):
    monkeypatch.setenv("FORTUNE_BALANCE_ELEVATED_SKEW", "lots")
    assert BalanceThresholds.from_env().elevated_skew == 0.4


def test_severity_scale():
    assert [c.severity for c in BalanceCategory] == [2, 1, 0, -1, -2]
    assert BalanceCategory.ELEVATED.is_strong
    assert BalanceCategory.DIMINISHED.is_weak
    assert not BalanceCategory.BALANCED.is_strong
    assert not BalanceCategory.BALANCED.is_weak


# --- favorability ---

def test_strong_fire_favors_its_outlets():
    fav = resolve_favorability(Element.FIRE, BalanceCategory.ELEVATED)
    assert fav.favorable == (Element.METAL, Element.EARTH, Element.WATER)
    assert fav.unfavorable == (Element.FIRE,)


def test_weak_fire_favors_support():
    fav = resolve_favorability(Element.FIRE, BalanceCategory.CRITICALLY_DEFICIENT)
    assert fav.favorable == (Element.WOOD, Element.FIRE)
    assert fav.unfavorable == (Element.METAL, Element.EARTH, Element.WATER)


def test_balanced_has_no_unfavorable():
    fav = resolve_favorability(Element.WATER, BalanceCategory.BALANCED)
    assert fav.favorable == (Element.WATER, Element.METAL)
    assert fav.unfavorable == ()


@pytest.mark.parametrize("element", list(Element))
@pytest.mark.parametrize("balance", list(BalanceCategory))
def test_favorable_and_unfavorable_are_disjoint(element, balance):
    fav = resolve_favorability(element, balance)
    assert fav.favorable
    assert not set(fav.favorable) & set(fav.unfavorable)
    assert len(set(fav.favorable)) == len(fav.favorable)


def test_favorability_to_dict():
    fav = resolve_favorability(Element.FIRE, BalanceCategory.ELEVATED)
    assert fav.to_dict() == {"favorable": ["metal", "earth", "water"], "unfavorable": ["fire"]}


# --- annual interaction ---

def test_interaction_table_is_total():
    assert set(INTERACTION_TABLE) == set(Relation)
    for row in INTERACTION_TABLE.values():
        assert set(row) == set(BalanceCategory)


@pytest.mark.parametrize("category", list(InteractionCategory))
@pytest.mark.parametrize("year_weight", [0.0, 3.0, 50.0])
def test_strength_stays_in_range(category, year_weight):
    low, high = STRENGTH_RANGE
    assert low <= interaction_strength(category, year_weight, 3.0) <= high


def test_strength_adjustments():
    assert interaction_strength(InteractionCategory.BOOST, 5.0, 3.0) == 83
    assert interaction_strength(InteractionCategory.BOOST, 1.0, 3.0) == 70
    assert interaction_strength(InteractionCategory.BOOST, 3.0, 3.0) == 75
    assert interaction_strength(InteractionCategory.PRESSURE, 5.0, 3.0) == 37
    assert interaction_strength(InteractionCategory.DRAIN, 1.0, 3.0) == 65


def test_reference_interaction_with_2026():
    interaction = score_annual_interaction(Element.FIRE, REFERENCE, BalanceCategory.ELEVATED, 2026)
    assert interaction.year_element is Element.FIRE
    assert interaction.relation is Relation.SAME
    assert interaction.category is InteractionCategory.BOOST
    assert interaction.strength == 83


def test_weak_wood_is_drained_by_fire_year():
    weights = dist(3, 1, 3, 3, 2)
    interaction = score_annual_interaction(Element.WOOD, weights, BalanceCategory.DIMINISHED, 2026)
    assert interaction.relation is Relation.I_PRODUCE
    assert interaction.category is InteractionCategory.DRAIN
    assert interaction.strength == 65


def test_deficient_metal_under_fire_pressure():
    weights = dist(1, 6, 2, 2, 2)
    interaction = score_annual_interaction(Element.METAL, weights,
                                           BalanceCategory.CRITICALLY_DEFICIENT, 2026)
    assert interaction.relation is Relation.CONTROLS_ME
    assert interaction.category is InteractionCategory.PRESSURE
    assert interaction.strength == 37


def test_other_target_year():
    # 2024 is Jia Chen, a wood year
    interaction = score_annual_interaction(Element.FIRE, REFERENCE, BalanceCategory.ELEVATED, 2024)
    assert interaction.year_element is Element.WOOD
    assert interaction.relation is Relation.PRODUCES_ME


def test_every_relation_has_a_reason():
    assert set(YEAR_RELATION_REASON) == set(Relation)


def test_brief_reason_names_the_year_element():
    interaction = score_annual_interaction(Element.WATER, REFERENCE, BalanceCategory.BALANCED, 2026)
    assert interaction.relation is Relation.I_CONTROL
    assert interaction.brief_reason == YEAR_RELATION_REASON[Relation.I_CONTROL].format(element="fire")
    assert "fire" in interaction.brief_reason
    assert interaction.to_dict()["brief_reason"] == interaction.brief_reason


def test_target_year_ignores_environment(monkeypatch):
    monkeypatch.setenv("FORTUNE_TARGET_YEAR", "2027")
    interaction = score_annual_interaction(Element.FIRE, REFERENCE, BalanceCategory.ELEVATED)
    assert interaction.year == 2026


def test_profile_ignores_environment(monkeypatch, sample_birth, sample_profile):
    monkeypatch.setenv("FORTUNE_TARGET_YEAR", "2030")
    monkeypatch.setenv("FORTUNE_BALANCE_BALANCED_DISPERSION", "0.9")
    assert build_chart_profile(sample_birth, target_year=2026) == sample_profile


def test_target_year_defaults_to_2026():
    interaction = score_annual_interaction(Element.FIRE, REFERENCE, BalanceCategory.ELEVATED)
    assert interaction.year == 2026


# --- chart profile ---

def test_reference_profile(sample_profile):
    assert sample_profile.day_master.chinese == "丙"
    assert sample_profile.balance is BalanceCategory.ELEVATED
    assert [e.god.value for e in sample_profile.top_ten_gods] == [
        "rob_wealth", "indirect_resource", "companion"]
    assert sample_profile.favorable_elements == (Element.METAL, Element.EARTH, Element.WATER)
    assert sample_profile.unfavorable_elements == (Element.FIRE,)
    assert sample_profile.annual_interaction.category is InteractionCategory.BOOST
    assert sample_profile.annual_interaction.strength == 83
    assert sample_profile.hour_known
    assert sample_profile.timezone.recognized


def test_profile_equals_step_by_step_composition(sample_birth, sample_profile):
    pillars, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    elements = element_distribution(pillars)
    balance = classify_balance(elements)
    favorability = resolve_favorability(pillars.day_master.element, balance)

    assert sample_profile.pillars == pillars
    assert sample_profile.element_distribution == elements
    assert sample_profile.balance is balance
    assert list(sample_profile.top_ten_gods) == rank_ten_gods(pillars, pillars.day_master)
    assert sample_profile.favorable_elements == favorability.favorable
    assert sample_profile.annual_interaction == score_annual_interaction(
        pillars.day_master.element, elements, balance, 2026)


def test_profile_is_deterministic(sample_birth):
    assert build_chart_profile(sample_birth, 2026) == build_chart_profile(sample_birth, 2026)


def test_profile_is_hashable(sample_birth, sample_profile):
    again = build_chart_profile(sample_birth, target_year=2026)
    assert hash(again) == hash(sample_profile)
    assert len({sample_profile, again}) == 1


def test_profile_without_hour():
    profile = build_chart_profile(BirthInput(1990, 1, 1, hour_unknown=True), target_year=2026)
    assert not profile.hour_known
    assert profile.element_distribution[Element.FIRE] == pytest.approx(6.7)
    assert profile.balance is BalanceCategory.ELEVATED
    assert profile.to_dict()["pillars"]["hour"] is None


def test_profile_to_dict_is_json_ready(sample_profile):
    data = json.loads(json.dumps(sample_profile.to_dict(), ensure_ascii=False))
    assert data["balance"] == "elevated"
    assert data["day_master"]["chinese"] == "丙"
    assert data["element_distribution"]["fire"] == pytest.approx(9.0)
    assert data["annual_interaction"] == {
        "year": 2026, "year_element": "fire", "relation": "same",
        "category": "boost", "strength": 83,
        "brief_reason": YEAR_RELATION_REASON[Relation.SAME].format(element="fire"),
    }
    assert data["timezone"]["timezone"] == "Asia/Shanghai"


def test_profile_rejects_impossible_date():
    with pytest.raises(InvalidCalendarDate):
        build_chart_profile(BirthInput(2023, 2, 29, 9, 0))


def test_birth_input_to_dict_hides_unknown_time():
    assert BirthInput(1990, 1, 1, 7, 15, hour_unknown=True).to_dict()["hour"] is None
    assert BirthInput(1990, 1, 1, 7, 15).to_dict()["minute"] == 15
