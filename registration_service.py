"""
Kayıt işlemleri
Clubs, players, tournaments and the enrollment list that feeds the engine
"""

import logging
from datetime import datetime
from typing import List, Dict, Optional

from models import (
    Club, ClubCreate, Player, PlayerCreate, Tournament, TournamentCreate,
    Enrollment, TournamentStatus
)
from tournament_store import TournamentStore, CLUBS, PLAYERS, TOURNAMENTS, ENROLLMENTS
from tournament_errors import ValidationError, NotFoundError
from tournament_lifecycle import require_status, next_status

logger = logging.getLogger(__name__)


class RegistrationService:

    def __init__(self, store: TournamentStore):
        self.store = store

    async def create_club(self, data: ClubCreate) -> Dict:
        club = Club(**data.model_dump()).model_dump()
        await self.store.insert_many(CLUBS, [club])
        logger.info(f"✅ Club created: {club['name']}")
        return club

    async def list_clubs(self) -> List[Dict]:
        return await self.store.find(CLUBS, {}, sort=[("name", 1)])

    async def register_player(self, data: PlayerCreate) -> Dict:
        if data.club_id and not await self.store.find_one(CLUBS, {"id": data.club_id}):
            raise NotFoundError(f"Club {data.club_id} not found")

        player = Player(**data.model_dump()).model_dump()
        await self.store.insert_many(PLAYERS, [player])
        logger.info(f"✅ Player registered: {player['full_name']} (ranking {player['ranking']})")
        return player

    async def list_players(self) -> List[Dict]:
        return await self.store.find(PLAYERS, {}, sort=[("ranking", -1)])

    async def update_player_ranking(self, player_id: str, ranking: int) -> Dict:
        player = await self.store.find_one(PLAYERS, {"id": player_id})
        if not player:
            raise NotFoundError(f"Player {player_id} not found")

        await self.store.update_by_id(PLAYERS, player_id, {"ranking": ranking})
        player["ranking"] = ranking
        return player

    async def create_tournament(self, data: TournamentCreate) -> Dict:
        tournament = Tournament(**data.model_dump()).model_dump()
        await self.store.insert_many(TOURNAMENTS, [tournament])
        logger.info(f"✅ Tournament created: {tournament['name']} ({tournament['fields_total']} fields)")
        return tournament

    async def list_tournaments(self, status: Optional[TournamentStatus] = None) -> List[Dict]:
        filters = {"status": status.value} if status else {}
        return await self.store.find(TOURNAMENTS, filters, sort=[("created_at", -1)])

    async def set_enrollments(self, tournament_id: str, player_ids: List[str]) -> List[Dict]:
        """
        Replace the enrollment list of a tournament
        List order becomes enrollment order; duplicates keep their first
        position. Changing the list sends a drawn tournament back to signup.
        """
        tournament = await self.store.find_one(TOURNAMENTS, {"id": tournament_id})
        if not tournament:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        require_status(tournament, "set_enrollments")

        ordered = list(dict.fromkeys(player_ids))
        if ordered:
            known = await self.store.find(PLAYERS, {"id": {"$in": ordered}})
            missing = set(ordered) - {p["id"] for p in known}
            if missing:
                raise ValidationError(f"Unknown players: {', '.join(sorted(missing))}")

        enrollments = [
            Enrollment(tournament_id=tournament_id, player_id=pid, seq=i).model_dump()
            for i, pid in enumerate(ordered)
        ]
        await self.store.delete_many(ENROLLMENTS, {"tournament_id": tournament_id})
        await self.store.insert_many(ENROLLMENTS, enrollments)

        target = next_status(tournament, "set_enrollments")
        if target is not None:
            await self.store.update_by_id(
                TOURNAMENTS, tournament_id, {"status": target.value, "updated_at": datetime.utcnow()}
            )
            logger.info(f"🔄 Tournament {tournament_id}: enrollments changed, back to {target.value}")

        logger.info(f"✅ {len(enrollments)} players enrolled in {tournament_id}")
        return enrollments

    async def list_enrollments(self, tournament_id: str) -> List[Dict]:
        return await self.store.find(ENROLLMENTS, {"tournament_id": tournament_id}, sort=[("seq", 1)])
