"""
Tournament Store
CRUD primitives the engine uses against the persistence layer.
The engine never caches documents between calls; every read hits the store.
"""

import logging
from typing import List, Dict, Any, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from tournament_errors import StoreError

logger = logging.getLogger(__name__)

# Collections used by the engine
CLUBS = "clubs"
PLAYERS = "players"
TOURNAMENTS = "tournaments"
ENROLLMENTS = "enrollments"
TIERS = "tiers"
GROUPS = "groups"
GROUP_MEMBERS = "group_members"
ROUNDS = "rounds"
FIXTURES = "fixtures"
RESULTS = "results"
STANDINGS = "standings"

# (field, direction) with 1 = ascending, -1 = descending
SortSpec = Optional[Sequence[Tuple[str, int]]]


class TournamentStore:
    """
    Store contract: bulk read, bulk insert, bulk delete, update by id,
    upsert by unique key. Filters are Mongo style mappings supporting plain
    equality, {"$in": [...]} and {"$ne": value}.
    """

    async def find(self, collection: str, filters: Dict[str, Any],
                   sort: SortSpec = None, limit: int = 0) -> List[Dict]:
        raise NotImplementedError

    async def insert_many(self, collection: str, documents: List[Dict]) -> List[Dict]:
        raise NotImplementedError

    async def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        raise NotImplementedError

    async def update_by_id(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def upsert(self, collection: str, key: str, document: Dict) -> Dict:
        raise NotImplementedError

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict]:
        rows = await self.find(collection, filters, limit=1)
        return rows[0] if rows else None


class MongoTournamentStore(TournamentStore):
    """TournamentStore backed by a motor database"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def find(self, collection, filters, sort=None, limit=0):
        try:
            cursor = self.db[collection].find(filters, {"_id": 0})
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ find failed on {collection}: {e}")
            raise StoreError(f"Read from {collection} failed: {e}") from e

    async def insert_many(self, collection, documents):
        if not documents:
            return []
        try:
            # insert_many adds _id in place, copy so callers keep clean dicts
            await self.db[collection].insert_many([dict(d) for d in documents])
            return documents
        except PyMongoError as e:
            logger.error(f"❌ insert_many failed on {collection}: {e}")
            raise StoreError(f"Insert into {collection} failed: {e}") from e

    async def delete_many(self, collection, filters):
        try:
            result = await self.db[collection].delete_many(filters)
            return result.deleted_count
        except PyMongoError as e:
            logger.error(f"❌ delete_many failed on {collection}: {e}")
            raise StoreError(f"Delete from {collection} failed: {e}") from e

    async def update_by_id(self, collection, doc_id, changes):
        try:
            await self.db[collection].update_one({"id": doc_id}, {"$set": changes})
        except PyMongoError as e:
            logger.error(f"❌ update failed on {collection}/{doc_id}: {e}")
            raise StoreError(f"Update of {collection}/{doc_id} failed: {e}") from e

    async def upsert(self, collection, key, document):
        try:
            # Mevcut kaydın id'si korunur
            payload = {k: v for k, v in document.items() if k != "id"}
            await self.db[collection].update_one(
                {key: document[key]},
                {"$set": payload, "$setOnInsert": {"id": document.get("id")}},
                upsert=True
            )
            return await self.db[collection].find_one({key: document[key]}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"❌ upsert failed on {collection}: {e}")
            raise StoreError(f"Upsert into {collection} failed: {e}") from e

    async def ensure_indexes(self):
        """Unique key for result upserts plus the lookups the engine does most"""
        try:
            await self.db[RESULTS].create_index("fixture_id", unique=True)
            await self.db[FIXTURES].create_index([("tournament_id", 1), ("stage", 1), ("round_order", 1)])
            await self.db[ENROLLMENTS].create_index([("tournament_id", 1), ("player_id", 1)], unique=True)
            logger.info("✅ Tournament indexes ensured")
        except PyMongoError as e:
            raise StoreError(f"Index creation failed: {e}") from e
