from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request, Response, status

from src.rule_engine.routers.responses import YAML_MEDIA_TYPE, yaml_response
from src.rule_engine.schemas.common import ErrorResponse
from src.rule_engine.schemas.rules import PromRules, Rule, RuleCreate, RulesResp, RuleUpdate
from src.rule_engine.services import proms_service, rules_service
from src.rule_engine.services.rule_document import prom_rules

router = APIRouter(prefix="/api/v1/rules", tags=["Rules"])


def _validate_required(payload: RuleCreate | RuleUpdate) -> None:
    for name in ("expr", "op", "value"):
        v = getattr(payload, name)
        if v is not None and not v.strip():
            raise HTTPException(status_code=400, detail=f"{name} must not be empty")


def _validate_prom(request: Request, prom_id: Optional[int]) -> None:
    if prom_id is not None and not proms_service.prom_exists(request, prom_id):
        raise HTTPException(status_code=400, detail=f"prom {prom_id} not found")


@router.get(
    "",
    response_model=RulesResp,
    summary="List rules",
    description="List alerting rules. Optionally filter to the rules owned by one prom.",
    operation_id="list_rules",
)
def list_rules(
    request: Request,
    prom_id: Optional[int] = Query(default=None, description="Optional owning prom filter."),
) -> RulesResp:
    """List rules."""
    return RulesResp(data=rules_service.list_rules(request, prom_id=prom_id))


@router.get(
    "/content",
    response_class=Response,
    responses={200: {"content": {YAML_MEDIA_TYPE: {}}}, 500: {"model": ErrorResponse}},
    summary="Render rule file",
    description="Render every stored rule as one Prometheus rule file (group 'ruleengine').",
    operation_id="render_rules_content",
)
def render_content(request: Request) -> Response:
    """Render all rules as YAML."""
    return yaml_response(rules_service.list_rules(request))


@router.get(
    "/partitions",
    response_model=List[PromRules],
    summary="Rules grouped by prom",
    description="Partition stored rules by owning prom id. Prom entries carry only the id.",
    operation_id="list_rule_partitions",
)
def list_partitions(request: Request) -> List[PromRules]:
    """Group rules by prom."""
    return prom_rules(rules_service.list_rules(request))


@router.post(
    "",
    response_model=Rule,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create rule",
    description="Create a new alerting rule for a registered prom.",
    operation_id="create_rule",
)
def create_rule(request: Request, payload: RuleCreate) -> Rule:
    """Create a rule."""
    _validate_required(payload)
    _validate_prom(request, payload.prom_id)
    return rules_service.create_rule(request, payload)


@router.get(
    "/{rule_id}",
    response_model=Rule,
    responses={404: {"model": ErrorResponse}},
    summary="Get rule",
    description="Fetch a single rule by id.",
    operation_id="get_rule",
)
def get_rule(request: Request, rule_id: int = Path(..., description="Rule id.")) -> Rule:
    """Get a rule by id."""
    rule = rules_service.get_rule(request, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="rule not found")
    return rule


@router.put(
    "/{rule_id}",
    response_model=Rule,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Replace rule",
    description="Replace an existing rule by id (full update). The id never changes.",
    operation_id="put_rule",
)
def put_rule(
    request: Request,
    payload: RuleCreate,
    rule_id: int = Path(..., description="Rule id."),
) -> Rule:
    """Replace a rule."""
    _validate_required(payload)
    _validate_prom(request, payload.prom_id)
    updated = rules_service.put_rule(request, rule_id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="rule not found")
    return updated


@router.patch(
    "/{rule_id}",
    response_model=Rule,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update rule",
    description="Patch an existing rule by id (partial update).",
    operation_id="patch_rule",
)
def patch_rule(
    request: Request,
    payload: RuleUpdate,
    rule_id: int = Path(..., description="Rule id."),
) -> Rule:
    """Patch a rule."""
    _validate_required(payload)
    _validate_prom(request, payload.prom_id)
    updated = rules_service.patch_rule(request, rule_id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="rule not found")
    return updated


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete rule",
    description="Delete a rule by id.",
    operation_id="delete_rule",
)
def delete_rule(request: Request, rule_id: int = Path(..., description="Rule id.")) -> None:
    """Delete a rule."""
    ok = rules_service.delete_rule(request, rule_id)
    if not ok:
        raise HTTPException(status_code=404, detail="rule not found")
    return None
