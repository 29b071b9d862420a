from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request

from src.rule_engine.schemas.common import utc_now
from src.rule_engine.schemas.rules import Rule, RuleCreate, RuleUpdate
from src.rule_engine.db.mongo import MongoManager
from src.rule_engine.state import get_state

logger = logging.getLogger(__name__)

RULES_SEQUENCE = "rules"


# PUBLIC_INTERFACE
def doc_to_rule(doc: dict) -> Rule:
    """Convert a stored rule document to the API/builder model."""
    return Rule(
        id=int(doc["id"]),
        prom_id=int(doc["promId"]),
        expr=doc.get("expr", ""),
        op=doc.get("op", ""),
        value=doc.get("value", ""),
        for_=doc.get("for", ""),
        labels=dict(doc.get("labels") or {}),
        summary=doc.get("summary", ""),
        description=doc.get("description", ""),
    )


def _editable_fields(payload: RuleCreate) -> Dict[str, Any]:
    return {
        "promId": int(payload.prom_id),
        "expr": payload.expr.strip(),
        "op": payload.op.strip(),
        "value": payload.value.strip(),
        "for": payload.for_.strip(),
        "labels": dict(payload.labels),
        "summary": payload.summary,
        "description": payload.description,
    }


def _build_rules_query(prom_id: Optional[int]) -> Dict[str, Any]:
    if prom_id is None:
        return {}
    return {"promId": int(prom_id)}


# PUBLIC_INTERFACE
def list_rule_docs(mongo: MongoManager, prom_id: Optional[int] = None) -> List[dict]:
    """Return raw rule docs in id order, optionally only those owned by one prom."""
    cols = mongo.collections()
    return list(cols.rules.find(_build_rules_query(prom_id), projection={"_id": 0}).sort("id", 1))


# PUBLIC_INTERFACE
def list_rules(request: Request, prom_id: Optional[int] = None) -> List[Rule]:
    """List rules in id order, optionally only those owned by one prom."""
    return [doc_to_rule(d) for d in list_rule_docs(get_state(request.app).mongo, prom_id=prom_id)]


# PUBLIC_INTERFACE
def count_rules_for_prom(request: Request, prom_id: int) -> int:
    """Count rules owned by a prom."""
    cols = get_state(request.app).mongo.collections()
    return int(cols.rules.count_documents({"promId": int(prom_id)}))


# PUBLIC_INTERFACE
def create_rule(request: Request, payload: RuleCreate) -> Rule:
    """Create a new rule with a freshly allocated integer id."""
    mongo = get_state(request.app).mongo
    now = utc_now()
    doc = {"id": mongo.next_id(RULES_SEQUENCE), **_editable_fields(payload), "createdAt": now, "updatedAt": now}
    mongo.collections().rules.insert_one(doc)
    logger.info("Created rule id=%s promId=%s", doc["id"], doc["promId"])
    return doc_to_rule(doc)


# PUBLIC_INTERFACE
def get_rule(request: Request, rule_id: int) -> Optional[Rule]:
    """Fetch a rule by id; returns None if not found."""
    cols = get_state(request.app).mongo.collections()
    doc = cols.rules.find_one({"id": int(rule_id)}, projection={"_id": 0})
    return doc_to_rule(doc) if doc else None


def _apply_rule_update(existing: dict, payload: RuleUpdate) -> dict:
    updated = dict(existing)

    if payload.prom_id is not None:
        updated["promId"] = int(payload.prom_id)
    if payload.expr is not None:
        updated["expr"] = payload.expr.strip()
    if payload.op is not None:
        updated["op"] = payload.op.strip()
    if payload.value is not None:
        updated["value"] = payload.value.strip()
    if payload.for_ is not None:
        updated["for"] = payload.for_.strip()
    if payload.labels is not None:
        updated["labels"] = dict(payload.labels)
    if payload.summary is not None:
        updated["summary"] = payload.summary
    if payload.description is not None:
        updated["description"] = payload.description

    updated["updatedAt"] = utc_now()
    return updated


# PUBLIC_INTERFACE
def put_rule(request: Request, rule_id: int, payload: RuleCreate) -> Optional[Rule]:
    """Full replace of a rule's editable fields. Returns None if not found."""
    cols = get_state(request.app).mongo.collections()
    existing = cols.rules.find_one({"id": int(rule_id)}, projection={"_id": 0})
    if not existing:
        return None

    now = utc_now()
    doc = {
        "id": int(rule_id),
        **_editable_fields(payload),
        "createdAt": existing.get("createdAt", now),
        "updatedAt": now,
    }
    cols.rules.replace_one({"id": int(rule_id)}, doc, upsert=False)
    return doc_to_rule(doc)


# PUBLIC_INTERFACE
def patch_rule(request: Request, rule_id: int, payload: RuleUpdate) -> Optional[Rule]:
    """Partial update of a rule. Returns None if not found."""
    cols = get_state(request.app).mongo.collections()
    existing = cols.rules.find_one({"id": int(rule_id)}, projection={"_id": 0})
    if not existing:
        return None

    updated = _apply_rule_update(existing, payload)
    cols.rules.replace_one({"id": int(rule_id)}, updated, upsert=False)
    return doc_to_rule(updated)


# PUBLIC_INTERFACE
def delete_rule(request: Request, rule_id: int) -> bool:
    """Delete a rule. Returns True if deleted, False if not found."""
    cols = get_state(request.app).mongo.collections()
    res = cols.rules.delete_one({"id": int(rule_id)})
    return res.deleted_count > 0
