"""Score management service: result payloads and knockout winner resolution"""
from typing import Dict, Optional

from models import Result, ScoreInput
from tournament_errors import ValidationError


class ScoreManagementService:
    @staticmethod
    def build_group_result(fixture_id: str, home_goals: int, away_goals: int) -> Dict:
        """Group matches only record the regulation score"""
        if home_goals is None or away_goals is None or home_goals < 0 or away_goals < 0:
            raise ValidationError("Group result needs non-negative home and away goals")
        return Result(
            fixture_id=fixture_id,
            home_goals_ft=home_goals,
            away_goals_ft=away_goals,
        ).model_dump()

    @staticmethod
    def build_ko_result(fixture_id: str, score: ScoreInput) -> Dict:
        """
        Regulation score is always kept, extra time only when it was played,
        penalties only when a shootout happened
        """
        payload = {
            "fixture_id": fixture_id,
            "home_goals_ft": score.home_goals_ft,
            "away_goals_ft": score.away_goals_ft,
            "went_extra_time": bool(score.went_extra_time),
        }

        if score.went_extra_time:
            if score.et_home_goals is None or score.et_away_goals is None:
                raise ValidationError("Extra time was played but the extra time score is missing")
            payload["et_home_goals"] = score.et_home_goals
            payload["et_away_goals"] = score.et_away_goals

        if score.went_to_penalties:
            if score.pen_home_goals is None or score.pen_away_goals is None:
                raise ValidationError("Penalty shootout score is missing")
            payload["pen_home_goals"] = score.pen_home_goals
            payload["pen_away_goals"] = score.pen_away_goals

        return Result(**payload).model_dump()

    @staticmethod
    def resolve_winner(fixture: Dict, result: Optional[Dict]) -> Optional[str]:
        """
        Regulation goals first; if level, extra time goals (regulation goals
        stand in when extra time was not recorded); if still level, penalties.
        None means the winner cannot be determined yet.
        """
        if not result:
            return None

        home = fixture["home_player_id"]
        away = fixture["away_player_id"]

        ft_h = result.get("home_goals_ft") or 0
        ft_a = result.get("away_goals_ft") or 0
        if ft_h != ft_a:
            return home if ft_h > ft_a else away

        et_h = result.get("et_home_goals")
        et_a = result.get("et_away_goals")
        et_h = ft_h if et_h is None else et_h
        et_a = ft_a if et_a is None else et_a
        if et_h != et_a:
            return home if et_h > et_a else away

        pen_h = result.get("pen_home_goals")
        pen_a = result.get("pen_away_goals")
        if pen_h is not None and pen_a is not None and pen_h != pen_a:
            return home if pen_h > pen_a else away

        return None

    @staticmethod
    def resolve_loser(fixture: Dict, result: Optional[Dict]) -> Optional[str]:
        winner = ScoreManagementService.resolve_winner(fixture, result)
        if winner is None:
            return None
        return fixture["away_player_id"] if winner == fixture["home_player_id"] else fixture["home_player_id"]
