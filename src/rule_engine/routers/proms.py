from __future__ import annotations

from fastapi import APIRouter, HTTPException, Path, Request, Response, status

from src.rule_engine.routers.responses import YAML_MEDIA_TYPE, yaml_response
from src.rule_engine.schemas.common import ErrorResponse
from src.rule_engine.schemas.proms import Prom, PromCreate, PromsResp, PromUpdate
from src.rule_engine.schemas.rules import RulesResp
from src.rule_engine.services import proms_service, rules_service

router = APIRouter(prefix="/api/v1/proms", tags=["Proms"])


def _require_prom(request: Request, prom_id: int) -> Prom:
    prom = proms_service.get_prom(request, prom_id)
    if not prom:
        raise HTTPException(status_code=404, detail="prom not found")
    return prom


@router.get(
    "",
    response_model=PromsResp,
    summary="List proms",
    description="Return all registered Prometheus instances.",
    operation_id="list_proms",
)
def list_proms(request: Request) -> PromsResp:
    """List all proms."""
    return PromsResp(data=proms_service.list_proms(request))


@router.post(
    "",
    response_model=Prom,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Register prom",
    description="Register a Prometheus instance whose rule file this service manages.",
    operation_id="create_prom",
)
def create_prom(request: Request, payload: PromCreate) -> Prom:
    """Register a prom."""
    if not payload.url.strip():
        raise HTTPException(status_code=400, detail="url must not be empty")
    return proms_service.create_prom(request, payload)


@router.get(
    "/{prom_id}",
    response_model=Prom,
    responses={404: {"model": ErrorResponse}},
    summary="Get prom",
    description="Fetch a single prom by id.",
    operation_id="get_prom",
)
def get_prom(request: Request, prom_id: int = Path(..., description="Prom id")) -> Prom:
    """Fetch a prom."""
    return _require_prom(request, prom_id)


@router.put(
    "/{prom_id}",
    response_model=Prom,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update prom",
    description="Update an existing prom by id (partial update supported).",
    operation_id="update_prom",
)
def update_prom(
    request: Request,
    payload: PromUpdate,
    prom_id: int = Path(..., description="Prom id"),
) -> Prom:
    """Update a prom."""
    if payload.url is not None and not payload.url.strip():
        raise HTTPException(status_code=400, detail="url must not be empty")
    prom = proms_service.update_prom(request, prom_id, payload)
    if not prom:
        raise HTTPException(status_code=404, detail="prom not found")
    return prom


@router.delete(
    "/{prom_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete prom",
    description="Delete a prom by id. Fails while the prom still owns rules.",
    operation_id="delete_prom",
)
def delete_prom(request: Request, prom_id: int = Path(..., description="Prom id")) -> None:
    """Delete a prom."""
    _require_prom(request, prom_id)
    owned = rules_service.count_rules_for_prom(request, prom_id)
    if owned:
        raise HTTPException(status_code=409, detail=f"prom still owns {owned} rule(s)")
    proms_service.delete_prom(request, prom_id)
    return None


@router.get(
    "/{prom_id}/rules",
    response_model=RulesResp,
    responses={404: {"model": ErrorResponse}},
    summary="List prom rules",
    description="List the rules owned by one prom.",
    operation_id="list_prom_rules",
)
def list_prom_rules(request: Request, prom_id: int = Path(..., description="Prom id")) -> RulesResp:
    """List rules of a prom."""
    _require_prom(request, prom_id)
    return RulesResp(data=rules_service.list_rules(request, prom_id=prom_id))


@router.get(
    "/{prom_id}/rules/content",
    response_class=Response,
    responses={200: {"content": {YAML_MEDIA_TYPE: {}}}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Render prom rule file",
    description="Render the rule file this prom should load (group 'ruleengine').",
    operation_id="render_prom_rules_content",
)
def render_prom_rules(request: Request, prom_id: int = Path(..., description="Prom id")) -> Response:
    """Render a prom's rules as YAML."""
    _require_prom(request, prom_id)
    return yaml_response(rules_service.list_rules(request, prom_id=prom_id))
