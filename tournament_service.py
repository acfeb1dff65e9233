"""
Tournament Management Service
Pure tournament algorithms: tiers, group draw, field allocation,
referee selection and standings. No store access happens here.
"""

import random
import logging
from typing import List, Dict, Any, Optional, Set, Tuple

from tournament_errors import ValidationError

logger = logging.getLogger(__name__)

TIER_COUNT = 4
GROUP_SIZE = 4
NO_FIELD = 9999  # Sahasız maçlar slot sıralamasında en sona düşer


class TournamentService:
    """Service for tournament operations"""

    @staticmethod
    def compute_tiers(tournament_id: str, players: List[Dict]) -> List[Dict]:
        """
        Split enrolled players into 4 equal skill tiers
        players must be in enrollment order; the sort is stable so equal
        rankings keep that order. Tier 1 holds the strongest quarter.
        """
        n = len(players)
        if n == 0:
            raise ValidationError("No players enrolled in the tournament")
        if n % TIER_COUNT != 0:
            raise ValidationError(f"Enrolled player count must be a multiple of 4 (got {n})")

        ranked = sorted(players, key=lambda p: p.get("ranking") or 0, reverse=True)
        block = n // TIER_COUNT

        return [
            {
                "tournament_id": tournament_id,
                "player_id": p["id"],
                "tier": i // block + 1
            }
            for i, p in enumerate(ranked)
        ]

    @staticmethod
    def group_name(index: int) -> str:
        """0 -> A, 25 -> Z, 26 -> AA"""
        name = ""
        index += 1
        while index:
            index, rem = divmod(index - 1, 26)
            name = chr(65 + rem) + name
        return name

    @staticmethod
    def draw_groups(tier_rows: List[Dict], rng: Optional[random.Random] = None) -> List[Tuple[str, List[Dict]]]:
        """
        Draw groups of 4 with one player from each tier
        Returns [(group_name, [tier rows ordered by tier])]
        """
        rng = rng or random.Random()

        by_tier = []
        for tier in range(1, TIER_COUNT + 1):
            members = [r for r in tier_rows if r["tier"] == tier]
            rng.shuffle(members)
            by_tier.append(members)

        groups_count = len(by_tier[0])
        if not groups_count or any(len(members) != groups_count for members in by_tier):
            sizes = ", ".join(f"tier {i + 1}: {len(m)}" for i, m in enumerate(by_tier))
            raise ValidationError(f"Tiers are inconsistent ({sizes}); recompute the tiers")

        return [
            (TournamentService.group_name(g), [by_tier[t][g] for t in range(TIER_COUNT)])
            for g in range(groups_count)
        ]

    @staticmethod
    def allocate_fields(fixtures: List[Dict], round_index_by_id: Dict[str, int], fields_total: int) -> Dict[str, int]:
        """
        Assign field numbers per round
        First matches of every group's round are placed before the second
        matches, then fields are handed out 1..fields_total cyclically.
        Returns fixture_id -> field_number
        """
        if fields_total < 1:
            raise ValidationError("fields_total must be at least 1")

        assignments = {}
        for idx in sorted(set(round_index_by_id.values())):
            in_round = [f for f in fixtures if round_index_by_id.get(f.get("round_id")) == idx]
            for slot_in in sorted({f.get("slot_in_round") or 1 for f in in_round}):
                wave = sorted(
                    (f for f in in_round if (f.get("slot_in_round") or 1) == slot_in),
                    key=lambda f: f.get("seq", 0)
                )
                for i, fixture in enumerate(wave):
                    assignments[fixture["id"]] = i % fields_total + 1
        return assignments

    @staticmethod
    def split_into_slots(fixtures: List[Dict], fields_total: int) -> List[List[Dict]]:
        """
        Recover play order (by field number, unassigned last) and cut the
        round into waves of fields_total simultaneous matches
        """
        fields_total = max(1, fields_total)
        ordered = sorted(
            fixtures,
            key=lambda f: (f.get("field_number") or NO_FIELD, f.get("seq", 0))
        )
        return [ordered[i:i + fields_total] for i in range(0, len(ordered), fields_total)]

    @staticmethod
    def referee_candidates(
        fixture: Dict,
        player_ids: List[str],
        occupied: Set[str],
        used: Set[str],
        group_by_player: Dict[str, str]
    ) -> List[str]:
        """Players free in this slot, outside the fixture's group, not yet refereeing"""
        return [
            pid for pid in player_ids
            if pid not in occupied
            and pid not in used
            and group_by_player.get(pid) != fixture.get("group_id")
        ]

    @staticmethod
    def pick_referee(fixture: Dict, candidates: List[str], club_by_player: Dict[str, Optional[str]]) -> Tuple[str, bool]:
        """
        Prefer a referee whose club differs from both players' clubs
        Returns (referee_id, preferred_match)
        """
        home_club = club_by_player.get(fixture["home_player_id"])
        away_club = club_by_player.get(fixture["away_player_id"])

        for pid in candidates:
            club = club_by_player.get(pid)
            if club != home_club and club != away_club:
                return pid, True
        return candidates[0], False

    @staticmethod
    def calculate_standings(tournament_id: str, group_id: str, rows: List[Tuple[Dict, Dict]]) -> List[Dict]:
        """
        Fold (fixture, result) pairs of one group into standing rows
        Rows are created on first touch; win 3, draw 1, loss 0.
        """
        table: Dict[str, Dict[str, Any]] = {}

        def ensure(player_id: str) -> Dict[str, Any]:
            if player_id not in table:
                table[player_id] = {
                    "tournament_id": tournament_id,
                    "group_id": group_id,
                    "player_id": player_id,
                    "played": 0, "won": 0, "drawn": 0, "lost": 0,
                    "gf": 0, "ga": 0, "gd": 0, "points": 0
                }
            return table[player_id]

        def apply(row: Dict[str, Any], gf: int, ga: int):
            row["played"] += 1
            row["gf"] += gf
            row["ga"] += ga
            row["gd"] = row["gf"] - row["ga"]
            if gf > ga:
                row["won"] += 1
                row["points"] += 3
            elif gf == ga:
                row["drawn"] += 1
                row["points"] += 1
            else:
                row["lost"] += 1

        for fixture, result in rows:
            home_goals = int(result.get("home_goals_ft") or 0)
            away_goals = int(result.get("away_goals_ft") or 0)
            apply(ensure(fixture["home_player_id"]), home_goals, away_goals)
            apply(ensure(fixture["away_player_id"]), away_goals, home_goals)

        return list(table.values())

    @staticmethod
    def sort_standings(rows: List[Dict]) -> List[Dict]:
        """Points, then goal difference, then goals for"""
        return sorted(rows, key=lambda r: (r["points"], r["gd"], r["gf"]), reverse=True)
