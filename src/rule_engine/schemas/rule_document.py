from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

# Field declaration order below is the key order of the emitted YAML.


class RuleAnnotations(BaseModel):
    """Annotations attached to every generated alerting rule."""

    rule_id: str
    prom_id: str
    summary: str
    description: str


class AlertingRule(BaseModel):
    """One entry of a Prometheus rule group."""

    model_config = ConfigDict(populate_by_name=True)

    alert: str
    expr: str
    for_: str = Field(..., alias="for")
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: RuleAnnotations


class RuleGroup(BaseModel):
    """A named rule group."""

    name: str
    rules: List[AlertingRule] = Field(default_factory=list)


class RuleGroupsDocument(BaseModel):
    """Top level of a Prometheus rule file."""

    groups: List[RuleGroup] = Field(default_factory=list)
