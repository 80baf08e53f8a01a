"""
Tests for fortune.bazi: pillars, element distribution and Ten Gods.
"""

import pytest

from fortune.bazi import (
    BRANCH_BY_CHINESE,
    EARTHLY_BRANCHES,
    HEAVENLY_STEMS,
    STEM_BY_CHINESE,
    TEN_GOD_BRIEF,
    Element,
    FourPillars,
    Pillar,
    Relation,
    TenGod,
    annual_pillar,
    compute_pillars,
    controlled_by,
    controls,
    day_pillar,
    element_distribution,
    element_relationship,
    generated_by,
    generates,
    hidden_stems,
    hour_branch_index,
    hour_pillar,
    month_pillar,
    rank_ten_gods,
    ten_god,
    ten_god_weights,
    year_pillar,
)
from fortune.errors import InvalidCalendarDate, InvalidTimeOfDay


def combined(pillar):
    return pillar.to_dict()["combined"]


def make_pillar(chinese, position):
    return Pillar(STEM_BY_CHINESE[chinese[0]], BRANCH_BY_CHINESE[chinese[1]], position)


# --- pillars ---

def test_reference_chart():
    chart, resolution = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    assert [combined(p) for p in chart.present()] == ["庚午", "丁丑", "丙寅", "甲午"]
    assert chart.day_master.chinese == "丙"
    assert chart.day_master.element is Element.FIRE
    assert resolution.recognized


def test_compute_pillars_is_deterministic():
    first, _ = compute_pillars(1984, 7, 19, 8, 45, timezone="Europe/Paris")
    second, _ = compute_pillars(1984, 7, 19, 8, 45, timezone="Europe/Paris")
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_hour_unknown_has_three_pillars():
    chart, _ = compute_pillars(1990, 1, 1, hour_unknown=True, timezone="Asia/Shanghai")
    assert chart.hour is None
    assert not chart.hour_known
    assert [combined(p) for p in chart.present()] == ["庚午", "丁丑", "丙寅"]
    assert chart.to_dict()["hour"] is None


def test_hour_unknown_skips_timezone_shift():
    # Noon in New York would cross midnight; without an hour the date stands
    chart, _ = compute_pillars(1990, 1, 1, hour_unknown=True, timezone="America/New_York")
    assert combined(chart.day) == "丙寅"


def test_hour_unknown_ignores_out_of_range_hour():
    chart, _ = compute_pillars(1990, 1, 1, hour=24, hour_unknown=True)
    assert chart.hour is None


def test_new_york_noon_moves_to_next_day():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="America/New_York")
    assert combined(chart.day) == "丁卯"
    assert combined(chart.hour) == "辛丑"
    assert combined(chart.year) == "庚午"
    assert combined(chart.month) == "丁丑"


def test_new_york_after_midnight_stays_on_date():
    chart, _ = compute_pillars(1990, 1, 1, 0, 30, timezone="America/New_York")
    assert combined(chart.day) == "丙寅"
    assert chart.hour.branch.chinese == "未"


def test_unknown_timezone_uses_reference_offset():
    chart, resolution = compute_pillars(1990, 1, 1, 12, 0, timezone="Nowhere/Special")
    assert not resolution.recognized
    assert [combined(p) for p in chart.present()] == ["庚午", "丁丑", "丙寅", "甲午"]


def test_invalid_date_raises():
    with pytest.raises(InvalidCalendarDate):
        compute_pillars(1990, 2, 30, 12, 0)


def test_invalid_hour_raises_when_known():
    with pytest.raises(InvalidTimeOfDay):
        compute_pillars(1990, 1, 1, 24, 0)


def test_shift_past_calendar_end_is_invalid_date():
    with pytest.raises(InvalidCalendarDate):
        compute_pillars(9999, 12, 31, 23, 0, timezone="America/Los_Angeles")


def test_shift_at_calendar_end_within_range():
    chart, _ = compute_pillars(9999, 12, 31, 10, 0, timezone="Asia/Tokyo")
    assert chart.hour_known


@pytest.mark.parametrize("year,month,day,expected", [
    (1900, 1, 1, "甲戌"),
    (1949, 10, 1, "甲子"),
    (2000, 1, 1, "戊午"),
])
def test_known_day_pillars(year, month, day, expected):
    assert combined(day_pillar(year, month, day)) == expected


def test_day_pillar_cycle_repeats_every_sixty_days():
    assert day_pillar(1990, 1, 1) == day_pillar(1990, 3, 2)


def test_year_pillar_changes_on_january_first():
    assert combined(year_pillar(1984)) == "甲子"
    assert combined(year_pillar(1990)) == "庚午"
    assert combined(year_pillar(2026)) == "丙午"


def test_annual_pillar():
    pillar = annual_pillar(2026)
    assert combined(pillar) == "丙午"
    assert pillar.position == "annual"
    assert pillar.stem.element is Element.FIRE


def test_month_pillar_formula():
    # Geng year, January 1st: solar month 11
    pillar = month_pillar(6, 1, 1)
    assert combined(pillar) == "丁丑"
    # The branch advances by one at Li Chun
    assert month_pillar(6, 2, 4).branch.index == month_pillar(6, 2, 3).branch.index + 1


@pytest.mark.parametrize("hour,branch", [
    (23, 0), (0, 0), (1, 1), (2, 1), (3, 2), (11, 6), (12, 6), (13, 7), (21, 11), (22, 11),
])
def test_hour_branch_index(hour, branch):
    assert hour_branch_index(hour) == branch


def test_hour_pillar_five_rats_rule():
    # Jia day starts its Zi hour on Jia
    assert combined(hour_pillar(0, 0)) == "甲子"
    # Bing day at noon
    assert combined(hour_pillar(2, 12)) == "甲午"


def test_stem_and_branch_tables():
    assert [s.index for s in HEAVENLY_STEMS] == list(range(10))
    assert [b.index for b in EARTHLY_BRANCHES] == list(range(12))
    for branch in EARTHLY_BRANCHES:
        assert 1 <= len(hidden_stems(branch)) <= 3


# --- element cycles ---

def test_cycles_are_consistent():
    for element in Element:
        assert generated_by(generates(element)) is element
        assert controlled_by(controls(element)) is element


def test_element_relationship_covers_all_pairs():
    for dm in Element:
        relations = {element_relationship(dm, other) for other in Element}
        assert relations == set(Relation)


def test_element_relationship_examples():
    assert element_relationship(Element.FIRE, Element.WOOD) is Relation.PRODUCES_ME
    assert element_relationship(Element.FIRE, Element.EARTH) is Relation.I_PRODUCE
    assert element_relationship(Element.FIRE, Element.METAL) is Relation.I_CONTROL
    assert element_relationship(Element.FIRE, Element.WATER) is Relation.CONTROLS_ME


# --- element distribution ---

def test_reference_distribution():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    dist = element_distribution(chart)
    assert dist[Element.METAL] == pytest.approx(2.2)
    assert dist[Element.FIRE] == pytest.approx(9.0)
    assert dist[Element.EARTH] == pytest.approx(3.3)
    assert dist[Element.WATER] == pytest.approx(0.4)
    assert dist[Element.WOOD] == pytest.approx(4.3)


def test_distribution_without_hour():
    chart, _ = compute_pillars(1990, 1, 1, hour_unknown=True)
    dist = element_distribution(chart)
    assert dist[Element.METAL] == pytest.approx(2.2)
    assert dist[Element.FIRE] == pytest.approx(6.7)
    assert dist[Element.EARTH] == pytest.approx(2.9)
    assert dist[Element.WATER] == pytest.approx(0.4)
    assert dist[Element.WOOD] == pytest.approx(2.3)


@pytest.mark.parametrize("year", [1900, 1955, 1977, 1990, 2003, 2024])
def test_distribution_has_five_elements_and_positive_total(year):
    for month in range(1, 13):
        chart, _ = compute_pillars(year, month, 10, 6, 0)
        dist = element_distribution(chart)
        assert set(dist) == set(Element)
        assert all(w >= 0 for w in dist.values())
        assert sum(dist.values()) > 0


# --- ten gods ---

def test_day_master_against_itself_is_companion():
    for stem in HEAVENLY_STEMS:
        assert ten_god(stem, stem) is TenGod.COMPANION


def test_reference_top_ten_gods():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    ranked = rank_ten_gods(chart, chart.day_master)
    assert [(e.god, e.weight) for e in ranked] == [
        (TenGod.ROB_WEALTH, pytest.approx(5.4)),
        (TenGod.INDIRECT_RESOURCE, pytest.approx(4.2)),
        (TenGod.COMPANION, pytest.approx(3.6)),
    ]


def test_reference_ten_god_weights():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    weights = ten_god_weights(chart, chart.day_master)
    assert weights[TenGod.INDIRECT_WEALTH] == pytest.approx(3.0)
    assert weights[TenGod.HURTING_OFFICER] == pytest.approx(2.4)
    assert weights[TenGod.SEVEN_KILLINGS] == 0.0
    assert weights[TenGod.DIRECT_RESOURCE] == 0.0


def test_ten_god_ties_follow_canonical_order():
    chart = FourPillars(
        year=make_pillar("乙子", "year"),
        month=make_pillar("庚申", "month"),
        day=make_pillar("甲子", "day"),
    )
    ranked = rank_ten_gods(chart, chart.day_master)
    assert [e.god for e in ranked] == [
        TenGod.SEVEN_KILLINGS,  # 4.2
        TenGod.COMPANION,       # 3.0, listed before its tie
        TenGod.ROB_WEALTH,      # 3.0
    ]


def test_rank_omits_zero_weight_gods():
    chart = FourPillars(
        year=make_pillar("甲卯", "year"),
        month=make_pillar("乙卯", "month"),
        day=make_pillar("甲卯", "day"),
    )
    ranked = rank_ten_gods(chart, chart.day_master, limit=10)
    assert [e.god for e in ranked] == [TenGod.ROB_WEALTH, TenGod.COMPANION]


@pytest.mark.parametrize("year", [1950, 1968, 1991, 2010])
def test_ranking_properties(year):
    for month in (1, 4, 7, 10):
        chart, _ = compute_pillars(year, month, 20, 17, 0)
        ranked = rank_ten_gods(chart, chart.day_master)
        weights = [e.weight for e in ranked]
        assert 1 <= len(ranked) <= 3
        assert weights == sorted(weights, reverse=True)
        assert ten_god_weights(chart, chart.day_master)[TenGod.COMPANION] >= 3.0


def test_ten_god_weight_to_dict():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    top = rank_ten_gods(chart, chart.day_master)[0]
    assert top.to_dict() == {
        "god": "rob_wealth",
        "chinese": "劫财",
        "weight": pytest.approx(5.4),
        "brief": TEN_GOD_BRIEF[TenGod.ROB_WEALTH],
    }


def test_every_ten_god_has_a_brief():
    assert set(TEN_GOD_BRIEF) == set(TenGod)
    assert all(TEN_GOD_BRIEF[god] for god in TenGod)


def test_ranked_gods_carry_their_brief():
    chart, _ = compute_pillars(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")
    for entry in rank_ten_gods(chart, chart.day_master):
        assert entry.brief == TEN_GOD_BRIEF[entry.god]
        assert entry.to_dict()["brief"] == entry.brief
