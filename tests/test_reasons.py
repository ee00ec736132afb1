"""Tests for top-3 reason extraction."""

from src.football.engine.reasons import extract_reasons, get_reason_labels
from src.football.engine.scoring import MultiFactorScorer
from src.football.models.schemas import MatchStateInput, TeamStrengthInput


def make_match(**overrides) -> MatchStateInput:
    values = dict(
        fixture_id=7,
        minute=82,
        score_home=1,
        score_away=1,
        shots_home=12,
        shots_away=8,
        shots_on_home=6,
        shots_on_away=3,
        corners_home=5,
        corners_away=4,
        xg_home=1.4,
        xg_away=0.9,
        shots_last_15=6,
    )
    values.update(overrides)
    return MatchStateInput(**values)


class TestExtractReasons:
    """Tests for extract_reasons."""

    def test_top_three_by_priority(self):
        match = make_match()
        result = MultiFactorScorer().score(match)
        reasons = extract_reasons(result, match)
        assert get_reason_labels(reasons) == ["Attacking pressure", "Momentum surge", "Level game"]
        assert reasons[0].detail == "shots on target 6-3"
        assert str(reasons[2]) == "Level game (1-1)"

    def test_strong_side_behind_detail(self):
        match = make_match(score_home=0, score_away=1)
        strength = TeamStrengthInput(home_strength=80, away_strength=60)
        result = MultiFactorScorer().score(match, strength=strength)
        reasons = extract_reasons(result, match, strength, limit=10)
        by_label = {r.label: r for r in reasons}
        assert by_label["Strong side behind"].detail == "strength gap 20"
        assert by_label["Home chasing"].detail == "0-1"
        assert by_label["Final stretch"].detail == "13 minutes left"

    def test_limit(self):
        match = make_match(corners_home=9, corners_away=2)
        result = MultiFactorScorer().score(match)
        assert len(extract_reasons(result, match)) == 3
        assert len(extract_reasons(result, match, limit=1)) == 1
