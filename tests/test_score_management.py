"""
Tests for result payloads and knockout winner resolution.
"""

import pytest

from models import ScoreInput
from score_management import ScoreManagementService
from tournament_errors import ValidationError

FIXTURE = {"id": "f1", "home_player_id": "home", "away_player_id": "away"}


class TestResolveWinner:

    def test_regulation_decides(self):
        assert ScoreManagementService.resolve_winner(FIXTURE, {"home_goals_ft": 2, "away_goals_ft": 1}) == "home"
        assert ScoreManagementService.resolve_winner(FIXTURE, {"home_goals_ft": 0, "away_goals_ft": 1}) == "away"

    def test_extra_time_decides_a_level_match(self):
        result = {"home_goals_ft": 1, "away_goals_ft": 1, "et_home_goals": 1, "et_away_goals": 2}
        assert ScoreManagementService.resolve_winner(FIXTURE, result) == "away"

    def test_penalties_decide_after_level_extra_time(self):
        result = {
            "home_goals_ft": 1, "away_goals_ft": 1,
            "et_home_goals": 2, "et_away_goals": 2,
            "pen_home_goals": 5, "pen_away_goals": 4,
        }
        assert ScoreManagementService.resolve_winner(FIXTURE, result) == "home"

    def test_penalties_without_extra_time(self):
        result = {"home_goals_ft": 0, "away_goals_ft": 0, "pen_home_goals": 3, "pen_away_goals": 4}
        assert ScoreManagementService.resolve_winner(FIXTURE, result) == "away"

    def test_level_without_decider_is_undetermined(self):
        assert ScoreManagementService.resolve_winner(FIXTURE, {"home_goals_ft": 2, "away_goals_ft": 2}) is None
        level_pens = {"home_goals_ft": 0, "away_goals_ft": 0, "pen_home_goals": 3, "pen_away_goals": 3}
        assert ScoreManagementService.resolve_winner(FIXTURE, level_pens) is None

    def test_missing_result_is_undetermined(self):
        assert ScoreManagementService.resolve_winner(FIXTURE, None) is None

    def test_loser_is_the_other_player(self):
        assert ScoreManagementService.resolve_loser(FIXTURE, {"home_goals_ft": 3, "away_goals_ft": 0}) == "away"
        assert ScoreManagementService.resolve_loser(FIXTURE, {"home_goals_ft": 1, "away_goals_ft": 1}) is None


class TestResultPayloads:

    def test_group_result(self):
        payload = ScoreManagementService.build_group_result("f1", 3, 1)
        assert payload["fixture_id"] == "f1"
        assert (payload["home_goals_ft"], payload["away_goals_ft"]) == (3, 1)
        assert payload["id"]

    def test_group_result_rejects_negative_goals(self):
        with pytest.raises(ValidationError):
            ScoreManagementService.build_group_result("f1", -1, 0)

    def test_extra_time_dropped_when_not_played(self):
        score = ScoreInput(home_goals_ft=2, away_goals_ft=1, et_home_goals=4, et_away_goals=0)
        payload = ScoreManagementService.build_ko_result("f1", score)
        assert payload["went_extra_time"] is False
        assert payload["et_home_goals"] is None and payload["et_away_goals"] is None

    def test_penalties_kept_only_with_shootout(self):
        score = ScoreInput(
            home_goals_ft=1, away_goals_ft=1,
            went_extra_time=True, et_home_goals=1, et_away_goals=1,
            pen_home_goals=4, pen_away_goals=2,
        )
        payload = ScoreManagementService.build_ko_result("f1", score)
        assert payload["pen_home_goals"] is None

        score.went_to_penalties = True
        payload = ScoreManagementService.build_ko_result("f1", score)
        assert (payload["pen_home_goals"], payload["pen_away_goals"]) == (4, 2)

    def test_missing_extra_time_score_rejected(self):
        score = ScoreInput(home_goals_ft=0, away_goals_ft=0, went_extra_time=True)
        with pytest.raises(ValidationError, match="extra time"):
            ScoreManagementService.build_ko_result("f1", score)

    def test_missing_penalty_score_rejected(self):
        score = ScoreInput(home_goals_ft=0, away_goals_ft=0, went_to_penalties=True, pen_home_goals=3)
        with pytest.raises(ValidationError, match="Penalty"):
            ScoreManagementService.build_ko_result("f1", score)
