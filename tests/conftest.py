"""
Shared fixtures: an in-memory TournamentStore and tournament factories.
"""

import copy
import random
from typing import Any, Dict, List

import pytest

from models import ClubCreate, PlayerCreate, TournamentCreate, ScoreInput
from tournament_store import TournamentStore, FIXTURES, RESULTS
from tournament_engine import TournamentEngine
from registration_service import RegistrationService


def _matches(document: Dict, filters: Dict[str, Any]) -> bool:
    for field, expected in filters.items():
        value = document.get(field)
        if isinstance(expected, dict) and "$in" in expected:
            if value not in expected["$in"]:
                return False
        elif isinstance(expected, dict) and "$ne" in expected:
            if value == expected["$ne"]:
                return False
        elif value != expected:
            return False
    return True


class InMemoryStore(TournamentStore):
    """Dict backed store with the same filter subset the Mongo store receives"""

    def __init__(self):
        self.collections: Dict[str, List[Dict]] = {}

    def rows(self, collection: str) -> List[Dict]:
        return self.collections.setdefault(collection, [])

    async def find(self, collection, filters, sort=None, limit=0):
        found = [d for d in self.rows(collection) if _matches(d, filters)]
        for field, direction in reversed(list(sort or [])):
            found.sort(key=lambda d: (d.get(field) is None, d.get(field)), reverse=direction < 0)
        if limit:
            found = found[:limit]
        return copy.deepcopy(found)

    async def insert_many(self, collection, documents):
        self.rows(collection).extend(copy.deepcopy(documents))
        return documents

    async def delete_many(self, collection, filters):
        before = self.rows(collection)
        kept = [d for d in before if not _matches(d, filters)]
        self.collections[collection] = kept
        return len(before) - len(kept)

    async def update_by_id(self, collection, doc_id, changes):
        for document in self.rows(collection):
            if document.get("id") == doc_id:
                document.update(copy.deepcopy(changes))

    async def upsert(self, collection, key, document):
        for existing in self.rows(collection):
            if existing.get(key) == document[key]:
                existing.update({k: copy.deepcopy(v) for k, v in document.items() if k != "id"})
                return copy.deepcopy(existing)
        self.rows(collection).append(copy.deepcopy(document))
        return copy.deepcopy(document)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def engine(store, rng):
    return TournamentEngine(store, rng=rng)


@pytest.fixture
def registration(store):
    return RegistrationService(store)


@pytest.fixture
def make_tournament(registration):
    """
    Factory for an enrolled tournament: players get distinct rankings
    (first player strongest) and are spread over 4 clubs round robin.
    """
    async def _make(players: int = 16, fields_total: int = 2, third_place_match: bool = False, clubs: int = 4):
        club_ids = []
        for c in range(clubs):
            club = await registration.create_club(ClubCreate(name=f"Club {c + 1}"))
            club_ids.append(club["id"])

        created = []
        for i in range(players):
            created.append(await registration.register_player(PlayerCreate(
                full_name=f"Player {i + 1}",
                ranking=1000 - i * 10,
                club_id=club_ids[i % clubs] if club_ids else None
            )))

        tournament = await registration.create_tournament(TournamentCreate(
            name="Spring Cup",
            fields_total=fields_total,
            third_place_match=third_place_match
        ))
        await registration.set_enrollments(tournament["id"], [p["id"] for p in created])
        return tournament, created

    return _make


@pytest.fixture
def make_group_stage(make_tournament, engine):
    """Factory for a tournament with tiers, groups, fixtures, fields and referees in place"""
    async def _make(players: int = 16, fields_total: int = 2, third_place_match: bool = False):
        tournament, created = await make_tournament(players, fields_total, third_place_match)
        await engine.compute_tiers(tournament["id"])
        await engine.draw_groups(tournament["id"])
        await engine.build_group_stage(tournament["id"])
        return tournament, created

    return _make


@pytest.fixture
def play_knockout(engine, store):
    """Record a 1-0 home win for every open knockout fixture until nothing is left to play"""
    async def _play(tournament_id: str, stage: str = None):
        while True:
            filters = {"tournament_id": tournament_id, "stage": stage or {"$ne": "group"}}
            fixtures = await store.find(FIXTURES, filters, sort=[("seq", 1)])
            results = await store.find(RESULTS, {"fixture_id": {"$in": [f["id"] for f in fixtures]}})
            decided = {r["fixture_id"] for r in results}
            pending = [f for f in fixtures if f["id"] not in decided]
            if not pending:
                return
            for fixture in pending:
                await engine.record_ko_result(
                    tournament_id, fixture["id"], ScoreInput(home_goals_ft=1, away_goals_ft=0)
                )

    return _play
