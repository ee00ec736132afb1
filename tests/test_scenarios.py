"""Tests for late-game scenario classification."""

import pytest

from src.football.engine.scenarios import (
    DEFAULT_RULES,
    ScenarioRule,
    classify_scenario,
    get_scenario_label,
)
from src.football.models.schemas import MatchStateInput, ScenarioTag, TeamStrengthInput


def make_match(**overrides) -> MatchStateInput:
    values = dict(
        fixture_id=1,
        minute=80,
        score_home=1,
        score_away=1,
        shots_home=6,
        shots_away=4,
        xg_home=0.8,
        xg_away=0.7,
    )
    values.update(overrides)
    return MatchStateInput(**values)


@pytest.fixture
def strong_home():
    return TeamStrengthInput(home_strength=80, away_strength=60)


class TestClassifyScenario:
    """Tests for classify_scenario."""

    def test_blowout_overrides_everything(self, strong_home):
        match = make_match(score_home=0, score_away=3, xg_home=3.0)
        assert classify_scenario(match, strong_home) == ScenarioTag.BLOWOUT

    def test_strong_behind(self, strong_home):
        match = make_match(score_home=0, score_away=1)
        assert classify_scenario(match, strong_home) == ScenarioTag.STRONG_BEHIND

    def test_strong_side_dominating_a_draw(self, strong_home):
        match = make_match(score_home=0, score_away=0, xg_home=1.5, xg_away=0.3)
        assert classify_scenario(match, strong_home) == ScenarioTag.STRONG_BEHIND

    def test_weak_defend_on_narrow_gap(self):
        strength = TeamStrengthInput(home_strength=65, away_strength=60)
        match = make_match(score_home=0, score_away=1)
        assert classify_scenario(match, strength) == ScenarioTag.WEAK_DEFEND

    def test_strength_rules_need_strength(self):
        match = make_match(score_home=0, score_away=1, xg_home=0.5, xg_away=0.6)
        assert classify_scenario(match) == ScenarioTag.BALANCED_LATE

    def test_deadlock_break(self):
        match = make_match(minute=72, score_home=0, score_away=0, xg_home=0.5, xg_away=0.3)
        assert classify_scenario(match) == ScenarioTag.DEADLOCK_BREAK

    def test_over_sprint(self):
        match = make_match(score_home=2, score_away=1, xg_home=2.6, xg_away=1.6)
        assert classify_scenario(match) == ScenarioTag.OVER_SPRINT

    def test_balanced_late(self):
        assert classify_scenario(make_match()) == ScenarioTag.BALANCED_LATE

    def test_generic_when_nothing_matches(self):
        match = make_match(score_home=3, score_away=1, xg_home=1.2, xg_away=0.8)
        assert classify_scenario(match) == ScenarioTag.GENERIC

    def test_custom_rule_order(self):
        match = make_match(score_home=0, score_away=0, minute=75, xg_home=0.6, xg_away=0.4)
        balanced_first = (DEFAULT_RULES[-1],) + DEFAULT_RULES[:-1]
        assert classify_scenario(match) == ScenarioTag.DEADLOCK_BREAK
        assert classify_scenario(match, rules=balanced_first) == ScenarioTag.BALANCED_LATE

    def test_extra_rule(self):
        always = ScenarioRule(ScenarioTag.OVER_SPRINT, lambda ctx: True)
        assert classify_scenario(make_match(), rules=(always,)) == ScenarioTag.OVER_SPRINT

    def test_rule_order(self):
        assert [r.tag for r in DEFAULT_RULES] == [
            ScenarioTag.BLOWOUT,
            ScenarioTag.STRONG_BEHIND,
            ScenarioTag.WEAK_DEFEND,
            ScenarioTag.DEADLOCK_BREAK,
            ScenarioTag.OVER_SPRINT,
            ScenarioTag.BALANCED_LATE,
        ]

    def test_labels(self):
        for tag in ScenarioTag:
            assert get_scenario_label(tag)


class TestStrengthFromStandings:
    """Tests for TeamStrengthInput.from_standings."""

    def test_rank_scale(self):
        strength = TeamStrengthInput.from_standings(1, 20)
        assert strength.home_strength == 100.0
        assert strength.away_strength == 5.0
        assert strength.is_home_strong
        assert strength.strength_gap == pytest.approx(95.0)

    def test_form_adjustment_is_capped(self):
        strength = TeamStrengthInput.from_standings(5, 10, home_form=0.5, away_form=-2.0)
        assert strength.home_strength == 85.0
        assert strength.away_strength == 45.0

        top = TeamStrengthInput.from_standings(1, 1, home_form=3.0)
        assert top.home_strength == 100.0
        assert not top.is_home_strong and not top.is_away_strong

    def test_league_size(self):
        assert TeamStrengthInput.from_standings(9, 18, league_size=18).away_strength == 5.6
