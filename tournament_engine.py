"""
Tournament Engine
Group stage scheduling and knockout progression against the tournament store.

Every operation reads current store state, validates before writing and
rebuilds derived rows with delete-then-insert. The store offers no
cross-call transaction, so a crash mid-step can leave a stage half rebuilt;
re-running the same step from scratch repairs it.
"""

import random
import logging
from datetime import datetime
from typing import List, Dict, Any, Optional

from models import (
    Group, GroupMember, FixtureStage, RoundName, ScoreInput, GroupScoreInput,
    TournamentStatus, KNOCKOUT_STAGES
)
from tournament_store import (
    TournamentStore, TOURNAMENTS, PLAYERS, ENROLLMENTS, TIERS, GROUPS,
    GROUP_MEMBERS, ROUNDS, FIXTURES, RESULTS, STANDINGS
)
from tournament_service import TournamentService
from fixture_generator import FixtureGenerator, BRACKET_SIZE
from score_management import ScoreManagementService
from tournament_errors import (
    TournamentError, ValidationError, ConstraintError, NotFoundError
)
from tournament_lifecycle import require_status, next_status, is_valid_transition

logger = logging.getLogger(__name__)

GROUP_STAGE = FixtureStage.GROUP.value


class TournamentEngine:
    """Admin entry points of the scheduling and progression engine"""

    def __init__(self, store: TournamentStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    # ==================== HELPERS ====================

    async def get_tournament(self, tournament_id: str) -> Dict:
        tournament = await self.store.find_one(TOURNAMENTS, {"id": tournament_id})
        if not tournament:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    async def _set_status(self, tournament: Dict, status: TournamentStatus):
        await self.store.update_by_id(
            TOURNAMENTS, tournament["id"],
            {"status": status.value, "updated_at": datetime.utcnow()}
        )
        logger.info(f"🔄 Tournament {tournament['id']}: {tournament.get('status')} -> {status.value}")
        tournament["status"] = status.value

    async def _advance(self, tournament: Dict, operation: str):
        target = next_status(tournament, operation)
        if target is not None:
            await self._set_status(tournament, target)

    async def _enrolled_players(self, tournament_id: str) -> List[Dict]:
        """Enrolled players in enrollment order"""
        enrollments = await self.store.find(
            ENROLLMENTS, {"tournament_id": tournament_id}, sort=[("seq", 1)]
        )
        player_ids = [e["player_id"] for e in enrollments]
        if not player_ids:
            return []

        players = await self.store.find(PLAYERS, {"id": {"$in": player_ids}})
        by_id = {p["id"]: p for p in players}
        missing = [pid for pid in player_ids if pid not in by_id]
        if missing:
            logger.warning(f"⚠️ {len(missing)} enrollments point to unknown players: {missing}")
        return [by_id[pid] for pid in player_ids if pid in by_id]

    async def _get_fixture(self, tournament_id: str, fixture_id: str) -> Dict:
        fixture = await self.store.find_one(FIXTURES, {"id": fixture_id, "tournament_id": tournament_id})
        if not fixture:
            raise NotFoundError(f"Fixture {fixture_id} not found in tournament {tournament_id}")
        return fixture

    async def _results_by_fixture(self, fixtures: List[Dict]) -> Dict[str, Dict]:
        if not fixtures:
            return {}
        results = await self.store.find(RESULTS, {"fixture_id": {"$in": [f["id"] for f in fixtures]}})
        return {r["fixture_id"]: r for r in results}

    async def _delete_fixtures(self, filters: Dict[str, Any]) -> int:
        """Delete fixtures matching filters together with their results"""
        old = await self.store.find(FIXTURES, filters)
        if not old:
            return 0
        await self.store.delete_many(RESULTS, {"fixture_id": {"$in": [f["id"] for f in old]}})
        return await self.store.delete_many(FIXTURES, filters)

    # ==================== TIERS & DRAW ====================

    async def compute_tiers(self, tournament_id: str) -> List[Dict]:
        """Rank enrolled players and split them into 4 equal tiers"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "compute_tiers")

        players = await self._enrolled_players(tournament_id)
        tiers = TournamentService.compute_tiers(tournament_id, players)

        await self.store.delete_many(TIERS, {"tournament_id": tournament_id})
        await self.store.insert_many(TIERS, tiers)

        logger.info(f"📊 Tiers computed for {tournament_id}: {len(tiers)} players, {len(tiers) // 4} per tier")
        return tiers

    async def draw_groups(self, tournament_id: str) -> Dict[str, List[Dict]]:
        """Draw groups of 4 taking one player per tier"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "draw_groups")

        tier_rows = await self.store.find(TIERS, {"tournament_id": tournament_id})
        drawn = TournamentService.draw_groups(tier_rows, self.rng)

        # Kura tekrar çekiliyorsa eski gruplar silinir
        await self.store.delete_many(GROUP_MEMBERS, {"tournament_id": tournament_id})
        await self.store.delete_many(GROUPS, {"tournament_id": tournament_id})

        groups = []
        members = []
        for name, tier_members in drawn:
            group = Group(tournament_id=tournament_id, name=name).model_dump()
            groups.append(group)
            for row in tier_members:
                members.append(GroupMember(
                    tournament_id=tournament_id,
                    group_id=group["id"],
                    player_id=row["player_id"],
                    tier=row["tier"]
                ).model_dump())

        await self.store.insert_many(GROUPS, groups)
        await self.store.insert_many(GROUP_MEMBERS, members)
        await self._advance(tournament, "draw_groups")

        logger.info(f"✅ Draw completed for {tournament_id}: {len(groups)} groups of 4")
        return {"groups": groups, "members": members}

    # ==================== GROUP STAGE ====================

    async def _ordered_groups(self, tournament_id: str) -> List[Dict]:
        groups = await self.store.find(GROUPS, {"tournament_id": tournament_id})
        return sorted(groups, key=lambda g: (len(g["name"]), g["name"]))

    async def build_group_rounds_and_fixtures(self, tournament_id: str) -> Dict[str, int]:
        """Create the 3 rounds and 6 fixtures of every group"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "build_group_rounds_and_fixtures")

        groups = await self._ordered_groups(tournament_id)
        if not groups:
            raise ValidationError("No groups drawn for this tournament")

        # Tüm gruplar yazmadan önce kontrol edilir
        plan = []
        for group in groups:
            members = await self.store.find(GROUP_MEMBERS, {"group_id": group["id"]}, sort=[("tier", 1)])
            if len(members) != 4:
                raise ValidationError(f"Group {group['name']} has {len(members)} players instead of 4")
            plan.append((group, [m["player_id"] for m in members]))

        await self._delete_fixtures({"tournament_id": tournament_id, "stage": GROUP_STAGE})
        await self.store.delete_many(ROUNDS, {"tournament_id": tournament_id})
        await self.store.delete_many(STANDINGS, {"tournament_id": tournament_id})

        all_rounds = []
        all_fixtures = []
        for group, member_ids in plan:
            rounds, fixtures = FixtureGenerator.generate_group_round_robin(
                tournament_id, group["id"], member_ids, seq_start=len(all_fixtures)
            )
            all_rounds.extend(rounds)
            all_fixtures.extend(fixtures)

        await self.store.insert_many(ROUNDS, all_rounds)
        await self.store.insert_many(FIXTURES, all_fixtures)
        await self._advance(tournament, "build_group_rounds_and_fixtures")

        logger.info(f"✅ Group schedule built for {tournament_id}: {len(all_rounds)} rounds, {len(all_fixtures)} fixtures")
        return {"rounds": len(all_rounds), "fixtures": len(all_fixtures)}

    async def assign_fields_per_round(self, tournament_id: str) -> Dict[str, int]:
        """Give every group fixture a field number, round by round"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "assign_fields_per_round")

        fields_total = int(tournament.get("fields_total") or 0)
        if fields_total < 1:
            raise ValidationError("Tournament needs at least one field (fields_total >= 1)")

        rounds = await self.store.find(ROUNDS, {"tournament_id": tournament_id})
        fixtures = await self.store.find(FIXTURES, {"tournament_id": tournament_id, "stage": GROUP_STAGE})
        if not rounds or not fixtures:
            raise ValidationError("Group rounds and fixtures must be generated before assigning fields")

        assignments = TournamentService.allocate_fields(
            fixtures, {r["id"]: r["index_small"] for r in rounds}, fields_total
        )
        for fixture_id, field_number in assignments.items():
            await self.store.update_by_id(FIXTURES, fixture_id, {"field_number": field_number})

        logger.info(f"✅ Fields assigned for {tournament_id}: {len(assignments)} fixtures on {fields_total} fields")
        return {"assigned": len(assignments), "fields_total": fields_total}

    async def assign_referees_global(self, tournament_id: str) -> Dict[str, int]:
        """
        Assign a neutral referee to every group fixture
        Within one simultaneous slot a referee is never playing, never from
        the fixture's own group and never used twice. A referee from a club
        other than both players' clubs is preferred when one is available.
        """
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "assign_referees_global")

        players = await self._enrolled_players(tournament_id)
        player_ids = [p["id"] for p in players]
        club_by_player = {p["id"]: p.get("club_id") for p in players}

        members = await self.store.find(GROUP_MEMBERS, {"tournament_id": tournament_id})
        group_by_player = {m["player_id"]: m["group_id"] for m in members}

        rounds = await self.store.find(ROUNDS, {"tournament_id": tournament_id})
        fixtures = await self.store.find(FIXTURES, {"tournament_id": tournament_id, "stage": GROUP_STAGE})
        if not rounds or not fixtures:
            raise ValidationError("Group rounds and fixtures must be generated before assigning referees")
        if all(f.get("field_number") is None for f in fixtures):
            raise ValidationError("Fields must be assigned before assigning referees")

        fields_total = max(1, int(tournament.get("fields_total") or 1))
        assigned = 0
        fallbacks = 0

        for idx in sorted({r["index_small"] for r in rounds}):
            round_ids = {r["id"] for r in rounds if r["index_small"] == idx}
            in_round = [f for f in fixtures if f.get("round_id") in round_ids]

            for slot in TournamentService.split_into_slots(in_round, fields_total):
                occupied = set()
                for match in slot:
                    occupied.add(match["home_player_id"])
                    occupied.add(match["away_player_id"])
                used = set()

                for match in slot:
                    candidates = TournamentService.referee_candidates(
                        match, player_ids, occupied, used, group_by_player
                    )
                    if not candidates:
                        raise ConstraintError(
                            f"No eligible referee for fixture {match['id']} in round {idx}. "
                            f"Add participants or reduce the number of fields."
                        )

                    referee_id, preferred = TournamentService.pick_referee(match, candidates, club_by_player)
                    if not preferred:
                        fallbacks += 1
                        logger.info(f"ℹ️ Fixture {match['id']}: no referee from another club, using {referee_id}")

                    await self.store.update_by_id(
                        FIXTURES, match["id"],
                        {"referee_player_id": referee_id, "referee_external_name": None}
                    )
                    used.add(referee_id)
                    assigned += 1

        logger.info(f"✅ Referees assigned for {tournament_id}: {assigned} fixtures, {fallbacks} same-club fallbacks")
        return {"assigned": assigned, "same_club_fallbacks": fallbacks}

    async def build_group_stage(self, tournament_id: str) -> Dict[str, Any]:
        """Rounds, fields and referees in one admin action"""
        schedule = await self.build_group_rounds_and_fixtures(tournament_id)
        fields = await self.assign_fields_per_round(tournament_id)
        referees = await self.assign_referees_global(tournament_id)
        return {**schedule, "fields": fields, "referees": referees}

    async def set_fixture_referee(
        self,
        tournament_id: str,
        fixture_id: str,
        player_id: Optional[str] = None,
        external_name: Optional[str] = None
    ) -> Dict:
        """Manual referee override: an enrolled player or an external name, never both"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "set_fixture_referee")

        external_name = (external_name or "").strip() or None
        if player_id and external_name:
            raise ValidationError("Referee must be either a player or an external name, not both")

        fixture = await self._get_fixture(tournament_id, fixture_id)
        if player_id:
            if player_id in (fixture["home_player_id"], fixture["away_player_id"]):
                raise ValidationError("A player cannot referee their own match")
            enrolled = await self.store.find_one(
                ENROLLMENTS, {"tournament_id": tournament_id, "player_id": player_id}
            )
            if not enrolled:
                raise ValidationError(f"Player {player_id} is not enrolled in this tournament")

        changes = {"referee_player_id": player_id or None, "referee_external_name": external_name}
        await self.store.update_by_id(FIXTURES, fixture_id, changes)
        fixture.update(changes)
        return fixture

    async def list_fixtures(self, tournament_id: str, stage: Optional[FixtureStage] = None) -> List[Dict]:
        await self.get_tournament(tournament_id)
        filters: Dict[str, Any] = {"tournament_id": tournament_id}
        if stage:
            filters["stage"] = stage.value
        fixtures = await self.store.find(FIXTURES, filters, sort=[("seq", 1)])
        results = await self._results_by_fixture(fixtures)
        for fixture in fixtures:
            fixture["result"] = results.get(fixture["id"])
        return fixtures

    # ==================== STANDINGS ====================

    async def recompute_standings(self, tournament_id: str) -> Dict[str, int]:
        """Rebuild all group standings from recorded group results"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "recompute_standings")

        groups = await self._ordered_groups(tournament_id)
        await self.store.delete_many(STANDINGS, {"tournament_id": tournament_id})

        fixtures = await self.store.find(
            FIXTURES, {"tournament_id": tournament_id, "stage": GROUP_STAGE}, sort=[("seq", 1)]
        )
        results = await self._results_by_fixture(fixtures)

        total = 0
        for group in groups:
            rows = [
                (f, results[f["id"]]) for f in fixtures
                if f.get("group_id") == group["id"] and f["id"] in results
            ]
            if not rows:
                continue
            standings = TournamentService.calculate_standings(tournament_id, group["id"], rows)
            await self.store.insert_many(STANDINGS, standings)
            total += len(standings)

        logger.info(f"📊 Standings recomputed for {tournament_id}: {total} rows from {len(results)} results")
        return {"groups": len(groups), "rows": total}

    async def get_group_standings(self, tournament_id: str) -> Dict[str, List[Dict]]:
        """Standings per group name, best first"""
        await self.get_tournament(tournament_id)
        groups = await self._ordered_groups(tournament_id)
        rows = await self.store.find(STANDINGS, {"tournament_id": tournament_id})
        return {
            g["name"]: TournamentService.sort_standings([r for r in rows if r["group_id"] == g["id"]])
            for g in groups
        }

    async def record_group_result(self, tournament_id: str, fixture_id: str, home_goals: int, away_goals: int) -> Dict:
        """Save a group result and refresh the standings"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "record_group_result")

        fixture = await self._get_fixture(tournament_id, fixture_id)
        if fixture["stage"] != GROUP_STAGE:
            raise ValidationError(f"Fixture {fixture_id} is a knockout fixture")

        payload = ScoreManagementService.build_group_result(fixture_id, home_goals, away_goals)
        result = await self.store.upsert(RESULTS, "fixture_id", payload)
        await self.recompute_standings(tournament_id)
        return result

    async def record_slot_results(self, tournament_id: str, scores: List[GroupScoreInput]) -> List[Dict]:
        """Save the results of one simultaneous slot, then refresh standings once"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "record_group_result")

        payloads = []
        for score in scores:
            if not score.fixture_id:
                raise ValidationError("Every slot result needs a fixture_id")
            fixture = await self._get_fixture(tournament_id, score.fixture_id)
            if fixture["stage"] != GROUP_STAGE:
                raise ValidationError(f"Fixture {score.fixture_id} is a knockout fixture")
            payloads.append(ScoreManagementService.build_group_result(
                score.fixture_id, score.home_goals, score.away_goals
            ))

        saved = [await self.store.upsert(RESULTS, "fixture_id", p) for p in payloads]
        await self.recompute_standings(tournament_id)
        return saved

    # ==================== KNOCKOUT ====================

    async def generate_knockout(self, tournament_id: str) -> Dict[str, int]:
        """
        Seed gold (ranks 1-8) and silver (ranks 9-16) quarter-finals
        A pool with fewer than 8 players gets no bracket.
        """
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "generate_knockout")

        players = await self._enrolled_players(tournament_id)
        ranked = sorted(players, key=lambda p: p.get("ranking") or 0, reverse=True)
        if len(ranked) < BRACKET_SIZE:
            raise ValidationError(
                f"Knockout needs at least {BRACKET_SIZE} enrolled players (got {len(ranked)})"
            )

        gold_seeds = [p["id"] for p in ranked[:BRACKET_SIZE]]
        silver_seeds = [p["id"] for p in ranked[BRACKET_SIZE:2 * BRACKET_SIZE]]
        if len(silver_seeds) < BRACKET_SIZE:
            logger.warning(
                f"⚠️ Only {len(silver_seeds)} players for the silver bracket in {tournament_id}, "
                f"silver stage skipped"
            )

        await self._delete_fixtures({"tournament_id": tournament_id, "stage": {"$ne": GROUP_STAGE}})

        gold = FixtureGenerator.generate_knockout_quarters(tournament_id, FixtureStage.GOLD, gold_seeds)
        silver = FixtureGenerator.generate_knockout_quarters(
            tournament_id, FixtureStage.SILVER, silver_seeds, seq_start=len(gold)
        )
        await self.store.insert_many(FIXTURES, gold + silver)
        await self._advance(tournament, "generate_knockout")

        counts = {"gold_count": len(gold) * 2, "silver_count": len(silver) * 2}
        logger.info(f"✅ Knockout generated for {tournament_id}: {counts}")
        return counts

    async def record_ko_result(self, tournament_id: str, fixture_id: str, score: ScoreInput) -> Dict:
        """Upsert a knockout result, then try to advance the bracket"""
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "record_ko_result")

        fixture = await self._get_fixture(tournament_id, fixture_id)
        if fixture["stage"] == GROUP_STAGE:
            raise ValidationError(f"Fixture {fixture_id} is a group fixture")

        payload = ScoreManagementService.build_ko_result(fixture_id, score)
        result = await self.store.upsert(RESULTS, "fixture_id", payload)

        try:
            await self.progress_if_round_complete(tournament_id)
        except TournamentError as e:
            logger.error(f"❌ Knockout progression failed for {tournament_id}: {e.message}", exc_info=True)

        return result

    def _stage_order(self, fixtures: List[Dict]) -> List[str]:
        present = {f["stage"] for f in fixtures}
        known = [s.value for s in KNOCKOUT_STAGES if s.value in present]
        return known + sorted(present - set(known))

    async def progress_if_round_complete(self, tournament_id: str) -> Dict[str, Any]:
        """
        Create the next knockout round of every stage whose current round is
        fully decided. Rounds complete strictly in order, an existing next
        round is never duplicated and an undecided tie stalls the stage.
        """
        tournament = await self.get_tournament(tournament_id)
        require_status(tournament, "progress_if_round_complete")

        fixtures = await self.store.find(
            FIXTURES, {"tournament_id": tournament_id, "stage": {"$ne": GROUP_STAGE}}, sort=[("seq", 1)]
        )
        if not fixtures:
            return {"created": 0, "champions": {}, "completed": False}

        results = await self._results_by_fixture(fixtures)
        next_seq = max(f.get("seq", 0) for f in fixtures) + 1
        created = []
        champions = {}
        stages = self._stage_order(fixtures)

        for stage in stages:
            stage_fixtures = [f for f in fixtures if f["stage"] == stage]
            bracket = [f for f in stage_fixtures if not f.get("is_third_place")]
            orders = sorted({f["round_order"] for f in bracket})

            for order in orders:
                round_fixtures = [f for f in bracket if f["round_order"] == order]
                if not all(f["id"] in results for f in round_fixtures):
                    break

                # An existing next round is never rewritten, even if an earlier result was edited
                if any(f["round_order"] == order + 1 for f in bracket):
                    continue

                winners = [ScoreManagementService.resolve_winner(f, results.get(f["id"])) for f in round_fixtures]
                if any(w is None for w in winners):
                    logger.warning(f"⚠️ {stage} round {order}: tied result without a decider, bracket stalled")
                    break

                if len(winners) == 1:
                    champions[stage] = winners[0]
                    break

                new_fixtures = FixtureGenerator.generate_next_knockout_round(
                    tournament_id, stage, order, winners, seq_start=next_seq
                )
                if not new_fixtures:
                    logger.info(f"🏁 {stage}: {len(winners)} winners after round {order}, no further round")
                    break
                next_seq += len(new_fixtures)

                if new_fixtures[0]["round_name"] == RoundName.FINAL.value and tournament.get("third_place_match"):
                    losers = [ScoreManagementService.resolve_loser(f, results.get(f["id"])) for f in round_fixtures]
                    third = FixtureGenerator.generate_third_place(
                        tournament_id, stage, order + 1, losers, seq=next_seq
                    )
                    if third:
                        new_fixtures.append(third)
                        next_seq += 1

                await self.store.insert_many(FIXTURES, new_fixtures)
                created.extend(new_fixtures)
                logger.info(
                    f"✅ {stage}: round {order + 1} ({new_fixtures[0]['round_name']}) created "
                    f"with {len(new_fixtures)} fixtures"
                )

        completed = self._is_completed(stages, fixtures, results, champions)
        if completed and tournament.get("status") != TournamentStatus.COMPLETED.value:
            if is_valid_transition(TournamentStatus(tournament["status"]), TournamentStatus.COMPLETED):
                await self._set_status(tournament, TournamentStatus.COMPLETED)
                logger.info(f"🏆 Tournament {tournament_id} completed: {champions}")

        return {"created": len(created), "champions": champions, "completed": completed}

    @staticmethod
    def _is_completed(stages: List[str], fixtures: List[Dict], results: Dict[str, Dict], champions: Dict[str, str]) -> bool:
        """Every stage has a champion and any third-place match is decided"""
        for stage in stages:
            if stage not in champions:
                return False
            for f in fixtures:
                if f["stage"] == stage and f.get("is_third_place"):
                    if ScoreManagementService.resolve_winner(f, results.get(f["id"])) is None:
                        return False
        return True
