from __future__ import annotations

from typing import List, Optional

from fastapi import Request

from src.rule_engine.schemas.common import utc_now
from src.rule_engine.schemas.proms import Prom, PromCreate, PromUpdate
from src.rule_engine.db.mongo import MongoManager
from src.rule_engine.state import get_state

PROMS_SEQUENCE = "proms"


# PUBLIC_INTERFACE
def doc_to_prom(doc: dict) -> Prom:
    """Convert a stored prom document to the API/builder model."""
    return Prom(id=int(doc["id"]), url=doc.get("url") or "")


# PUBLIC_INTERFACE
def list_prom_docs(mongo: MongoManager) -> List[dict]:
    """Return raw prom docs ordered by id (used by the API and the rules sync loop)."""
    return list(mongo.collections().proms.find({}, projection={"_id": 0}).sort("id", 1))


# PUBLIC_INTERFACE
def list_proms(request: Request) -> List[Prom]:
    """Return all registered Prometheus instances ordered by id."""
    return [doc_to_prom(d) for d in list_prom_docs(get_state(request.app).mongo)]


# PUBLIC_INTERFACE
def get_prom(request: Request, prom_id: int) -> Optional[Prom]:
    """Get a single prom by id. Returns None if not found."""
    cols = get_state(request.app).mongo.collections()
    doc = cols.proms.find_one({"id": int(prom_id)}, projection={"_id": 0})
    return doc_to_prom(doc) if doc else None


# PUBLIC_INTERFACE
def prom_exists(request: Request, prom_id: int) -> bool:
    """Return True when a prom with this id is registered."""
    cols = get_state(request.app).mongo.collections()
    return cols.proms.count_documents({"id": int(prom_id)}, limit=1) > 0


# PUBLIC_INTERFACE
def create_prom(request: Request, payload: PromCreate) -> Prom:
    """Register a new Prometheus instance with a freshly allocated id."""
    mongo = get_state(request.app).mongo
    now = utc_now()
    doc = {
        "id": mongo.next_id(PROMS_SEQUENCE),
        "url": payload.url.strip(),
        "createdAt": now,
        "updatedAt": now,
    }
    mongo.collections().proms.insert_one(doc)
    return doc_to_prom(doc)


# PUBLIC_INTERFACE
def update_prom(request: Request, prom_id: int, payload: PromUpdate) -> Optional[Prom]:
    """Update a prom record. Returns None if not found."""
    cols = get_state(request.app).mongo.collections()
    existing = cols.proms.find_one({"id": int(prom_id)}, projection={"_id": 0})
    if not existing:
        return None

    updated = dict(existing)
    if payload.url is not None:
        updated["url"] = payload.url.strip()
    updated["updatedAt"] = utc_now()

    cols.proms.replace_one({"id": int(prom_id)}, updated, upsert=False)
    return doc_to_prom(updated)


# PUBLIC_INTERFACE
def delete_prom(request: Request, prom_id: int) -> bool:
    """Delete a prom record. Returns True if deleted, False if not found."""
    cols = get_state(request.app).mongo.collections()
    res = cols.proms.delete_one({"id": int(prom_id)})
    return res.deleted_count > 0
