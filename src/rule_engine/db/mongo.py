from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Optional

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


DEFAULT_DB_NAME = "ruleengine"


@dataclass(frozen=True)
class MongoCollections:
    """Convenience wrapper for app collections."""

    proms: Collection
    rules: Collection

    # Integer id sequences ({_id: <sequence name>, seq: <last value>}).
    counters: Collection


class MongoManager:
    """
    MongoDB connection manager.

    Maintains one MongoClient for the rule engine's storage DB and hands out
    collection handles and integer id sequences.
    """

    def __init__(self, app_mongo_uri: str, db_name: str = DEFAULT_DB_NAME):
        self._app_mongo_uri = app_mongo_uri
        self._db_name = db_name
        self._app_client: Optional[MongoClient] = None
        self._lock = RLock()

    def connect_app(self) -> None:
        """Initialize app Mongo client if needed."""
        with self._lock:
            if self._app_client is not None:
                return
            # MongoClient is thread-safe and manages internal pooling.
            self._app_client = MongoClient(self._app_mongo_uri, connect=True)

    # PUBLIC_INTERFACE
    def ping(self, timeout_ms: int = 1500) -> bool:
        """
        Ping the configured MongoDB to validate connectivity.

        This is used by startup validation and the connectivity-check endpoint.
        """
        try:
            if self._app_client is None:
                self.connect_app()
            assert self._app_client is not None
            self._app_client.admin.command("ping", maxTimeMS=int(max(250, timeout_ms)))
            return True
        except PyMongoError:
            logger.exception("Mongo ping failed (PyMongoError)")
            return False

    def close(self) -> None:
        """Close the app Mongo client."""
        with self._lock:
            if self._app_client is not None:
                try:
                    self._app_client.close()
                except PyMongoError:
                    logger.exception("Error closing app MongoClient")
                self._app_client = None

    def app_db(self) -> Database:
        """Return the rule engine database handle."""
        if self._app_client is None:
            self.connect_app()
        assert self._app_client is not None
        return self._app_client[self._db_name]

    def collections(self) -> MongoCollections:
        """Return app collections."""
        db = self.app_db()
        return MongoCollections(
            proms=db["proms"],
            rules=db["rules"],
            counters=db["counters"],
        )

    def next_id(self, sequence: str) -> int:
        """Atomically allocate the next integer id for a sequence (starts at 1)."""
        doc = self.collections().counters.find_one_and_update(
            {"_id": sequence},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])

    def init_indexes(self) -> None:
        """Create required indexes (idempotent)."""
        cols = self.collections()

        # ---- Proms ----
        cols.proms.create_index([("id", ASCENDING)], unique=True, name="idx_proms_id")

        # ---- Rules ----
        cols.rules.create_index([("id", ASCENDING)], unique=True, name="idx_rules_id")
        # Common query: all rules of one prom, in creation order.
        cols.rules.create_index([("promId", ASCENDING), ("id", ASCENDING)], name="idx_rules_promId_id")
