from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.rule_engine.schemas.common import RESP_CODE_OK, RESP_MSG_OK
from src.rule_engine.schemas.proms import Prom


class RuleBase(BaseModel):
    """Common fields for a Prometheus alerting rule."""

    model_config = ConfigDict(populate_by_name=True)

    prom_id: int = Field(..., description="Id of the Prometheus instance that owns this rule.")
    expr: str = Field(..., description="PromQL expression compared against `value` with `op`.")
    op: str = Field(..., description="Comparison operator, e.g. '==', '>', '<='.")
    value: str = Field(..., description="Threshold compared with the expression result.")
    for_: str = Field(
        "",
        alias="for",
        description="How long the condition must hold before the alert fires (e.g. '5m').",
    )
    labels: Dict[str, str] = Field(default_factory=dict, description="Extra labels attached to the alert.")
    summary: str = Field("", description="Short human-readable summary.")
    description: str = Field("", description="Human-readable description.")


class RuleCreate(RuleBase):
    """Request model for creating a rule."""


class RuleUpdate(BaseModel):
    """Request model for partial update (PATCH)."""

    model_config = ConfigDict(populate_by_name=True)

    prom_id: Optional[int] = Field(default=None, description="Owning Prometheus instance id.")
    expr: Optional[str] = Field(default=None, description="PromQL expression.")
    op: Optional[str] = Field(default=None, description="Comparison operator.")
    value: Optional[str] = Field(default=None, description="Threshold value.")
    for_: Optional[str] = Field(default=None, alias="for", description="Minimum duration.")
    labels: Optional[Dict[str, str]] = Field(default=None, description="Alert labels (replaces existing).")
    summary: Optional[str] = Field(default=None, description="Short human-readable summary.")
    description: Optional[str] = Field(default=None, description="Human-readable description.")


class Rule(BaseModel):
    """An alerting rule as stored and as consumed by the rule document builder.

    Fields are declared in wire order, id first.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., description="Rule id, assigned on creation and never changed.")
    prom_id: int = Field(..., description="Id of the Prometheus instance that owns this rule.")
    expr: str = Field(..., description="PromQL expression compared against `value` with `op`.")
    op: str = Field(..., description="Comparison operator, e.g. '==', '>', '<='.")
    value: str = Field(..., description="Threshold compared with the expression result.")
    for_: str = Field("", alias="for", description="How long the condition must hold before the alert fires.")
    labels: Dict[str, str] = Field(default_factory=dict, description="Extra labels attached to the alert.")
    summary: str = Field("", description="Short human-readable summary.")
    description: str = Field("", description="Human-readable description.")


class RulesResp(BaseModel):
    """Envelope for listing rules."""

    code: int = Field(RESP_CODE_OK, description="Response code; 0 means success.")
    msg: str = Field(RESP_MSG_OK, description="Response message.")
    data: List[Rule] = Field(default_factory=list, description="Alerting rules.")


class PromRules(BaseModel):
    """The rules owned by one Prometheus instance."""

    prom: Prom = Field(..., description="Owning Prometheus instance (only id is populated).")
    rules: List[Rule] = Field(default_factory=list, description="Rules in their input order.")
