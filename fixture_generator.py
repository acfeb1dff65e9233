"""
Fikstür oluşturma algoritmaları
Group round robin for groups of 4 and the gold/silver knockout brackets
"""
from typing import List, Dict, Optional, Tuple

from models import Fixture, FixtureStage, RoundName, Round

# Turno -> (slot 1 eşleşmesi, slot 2 eşleşmesi), A..D = tier 1..4
GROUP_SCHEDULE = [
    ((0, 1), (2, 3)),  # A-B, C-D
    ((0, 2), (1, 3)),  # A-C, B-D
    ((0, 3), (1, 2)),  # A-D, B-C
]

# 1-8, 4-5, 2-7, 3-6: top seeds can only meet in the final
QUARTER_SEED_ORDER = [0, 7, 3, 4, 1, 6, 2, 5]
BRACKET_SIZE = 8

NEXT_ROUND_NAME = {
    4: RoundName.SEMI,
    2: RoundName.FINAL,
}


class FixtureGenerator:

    @staticmethod
    def generate_group_round_robin(
        tournament_id: str,
        group_id: str,
        member_ids: List[str],
        seq_start: int = 0
    ) -> Tuple[List[Dict], List[Dict]]:
        """
        Three rounds of two matches for a group of four
        member_ids must be ordered by tier (A, B, C, D).
        Returns (rounds, fixtures)
        """
        if len(member_ids) != 4:
            raise ValueError("Round robin schedule needs exactly 4 players")

        rounds = []
        fixtures = []
        seq = seq_start
        for index, pairings in enumerate(GROUP_SCHEDULE, start=1):
            rnd = Round(tournament_id=tournament_id, group_id=group_id, index_small=index)
            rounds.append(rnd.model_dump())

            for slot_in_round, (home, away) in enumerate(pairings, start=1):
                fixture = Fixture(
                    tournament_id=tournament_id,
                    stage=FixtureStage.GROUP,
                    seq=seq,
                    group_id=group_id,
                    round_id=rnd.id,
                    slot_in_round=slot_in_round,
                    home_player_id=member_ids[home],
                    away_player_id=member_ids[away],
                )
                fixtures.append(fixture.model_dump())
                seq += 1

        return rounds, fixtures

    @staticmethod
    def make_quarter_pairs(seed_ids: List[str]) -> List[Tuple[str, str]]:
        """Pair a full pool of 8 seeds; smaller pools produce nothing"""
        if len(seed_ids) < BRACKET_SIZE:
            return []
        order = QUARTER_SEED_ORDER
        return [(seed_ids[order[i]], seed_ids[order[i + 1]]) for i in range(0, len(order), 2)]

    @staticmethod
    def generate_knockout_quarters(
        tournament_id: str,
        stage: FixtureStage,
        seed_ids: List[str],
        seq_start: int = 0
    ) -> List[Dict]:
        fixtures = []
        for i, (home, away) in enumerate(FixtureGenerator.make_quarter_pairs(seed_ids)):
            fixtures.append(Fixture(
                tournament_id=tournament_id,
                stage=stage,
                seq=seq_start + i,
                round_order=1,
                round_name=RoundName.QUARTER,
                home_player_id=home,
                away_player_id=away,
            ).model_dump())
        return fixtures

    @staticmethod
    def next_round_name(winner_count: int) -> Optional[RoundName]:
        """4 winners -> semi, 2 -> final, anything else ends the bracket"""
        return NEXT_ROUND_NAME.get(winner_count)

    @staticmethod
    def generate_next_knockout_round(
        tournament_id: str,
        stage: str,
        round_order: int,
        winner_ids: List[str],
        seq_start: int = 0
    ) -> List[Dict]:
        """Pair consecutive winners into the next round"""
        round_name = FixtureGenerator.next_round_name(len(winner_ids))
        if round_name is None:
            return []

        fixtures = []
        for i in range(0, len(winner_ids), 2):
            fixtures.append(Fixture(
                tournament_id=tournament_id,
                stage=stage,
                seq=seq_start + i // 2,
                round_order=round_order + 1,
                round_name=round_name,
                home_player_id=winner_ids[i],
                away_player_id=winner_ids[i + 1],
            ).model_dump())
        return fixtures

    @staticmethod
    def generate_third_place(
        tournament_id: str,
        stage: str,
        final_round_order: int,
        loser_ids: List[str],
        seq: int = 0
    ) -> Optional[Dict]:
        """Semi-final losers meet at the same round order as the final"""
        if len(loser_ids) != 2:
            return None
        return Fixture(
            tournament_id=tournament_id,
            stage=stage,
            seq=seq,
            round_order=final_round_order,
            round_name=RoundName.THIRD_PLACE,
            is_third_place=True,
            home_player_id=loser_ids[0],
            away_player_id=loser_ids[1],
        ).model_dump()
