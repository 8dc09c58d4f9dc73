"""
Per-user document storage on MongoDB.

``HealthStore`` is the only place that talks to pymongo. Every read, replace and
delete is scoped by ``user_id``: callers never build an owner filter themselves.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient

from chat_sessions import SESSION_LIMIT, ChatSession, group_sessions
from errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

USERS = "users"
CHATS = "chats"
SYMPTOM_ANALYSES = "symptom_analyses"

Sort = Sequence[Tuple[str, int]]


def object_id(record_id: Any) -> ObjectId:
    if isinstance(record_id, ObjectId):
        return record_id
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        raise InvalidInput("Invalid record ID")


class HealthStore:
    def __init__(self, db):
        self.db = db

    @classmethod
    def from_uri(cls, uri: str) -> "HealthStore":
        client = MongoClient(uri, tz_aware=True)
        return cls(client.get_default_database())

    # ---------------- Users ----------------
    def create_user(self, doc: Dict[str, Any]) -> str:
        result = self.db[USERS].insert_one(doc)
        return str(result.inserted_id)

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        return self.db[USERS].find_one({"email": email.lower()})

    def find_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            oid = object_id(user_id)
        except InvalidInput:
            return None
        return self.db[USERS].find_one({"_id": oid})

    # ---------------- Records ----------------
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db[collection].insert_one(record)
        record["_id"] = result.inserted_id
        return record

    def insert_many(self, collection: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        result = self.db[collection].insert_many(records)
        for record, inserted_id in zip(records, result.inserted_ids):
            record["_id"] = inserted_id
        return records

    def find(
        self,
        collection: str,
        user_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        query = dict(filter or {})
        query["user_id"] = user_id
        cursor = self.db[collection].find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_since(self, collection: str, user_id: str, since: datetime, limit: int = 0) -> List[Dict[str, Any]]:
        """Records measured at or after ``since``, newest first."""
        return self.find(
            collection,
            user_id,
            {"timestamp": {"$gte": since}},
            sort=[("timestamp", DESCENDING)],
            limit=limit,
        )

    def replace(self, collection: str, user_id: str, record_id: Any, record: Dict[str, Any]) -> Dict[str, Any]:
        """Swap the stored document for ``record``, keeping its original ``created_at``."""
        oid = object_id(record_id)
        owner_filter = {"_id": oid, "user_id": user_id}
        existing = self.db[collection].find_one(owner_filter, {"created_at": 1})
        if existing is None:
            raise NotFound()
        record = dict(record)
        record.pop("_id", None)
        record["user_id"] = user_id
        if "created_at" in existing:
            record["created_at"] = existing["created_at"]
        result = self.db[collection].replace_one(owner_filter, record)
        if result.matched_count == 0:
            raise NotFound()
        record["_id"] = oid
        return record

    def delete_one(self, collection: str, user_id: str, record_id: Any) -> None:
        result = self.db[collection].delete_one({"_id": object_id(record_id), "user_id": user_id})
        if result.deleted_count == 0:
            raise NotFound()

    def delete_many(self, collection: str, user_id: str, filter: Optional[Dict[str, Any]] = None) -> int:
        query = dict(filter or {})
        query["user_id"] = user_id
        result = self.db[collection].delete_many(query)
        logger.info("Deleted %d documents from %s", result.deleted_count, collection)
        return result.deleted_count

    # ---------------- Chat ----------------
    def chat_messages(self, user_id: str, session_id: Optional[str] = None, limit: int = 0) -> List[Dict[str, Any]]:
        """Messages in chronological order, optionally for one session."""
        query = {"session_id": session_id} if session_id else None
        return self.find(CHATS, user_id, query, sort=[("created_at", ASCENDING), ("_id", ASCENDING)], limit=limit)

    def chat_sessions(self, user_id: str, limit: int = SESSION_LIMIT) -> List[ChatSession]:
        return group_sessions(self.chat_messages(user_id), limit=limit)
