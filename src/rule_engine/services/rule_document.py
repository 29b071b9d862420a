"""Rule document builder.

Turns stored alerting rules into the Prometheus rule-file format and splits
rules by the Prometheus instance that owns them. Everything here is pure: no
I/O and no mutation of the inputs.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

import yaml

from src.rule_engine.schemas.proms import Prom
from src.rule_engine.schemas.rule_document import AlertingRule, RuleAnnotations, RuleGroup, RuleGroupsDocument
from src.rule_engine.schemas.rules import PromRules, Rule

# Prometheus-side consumers match on this group name; do not change it.
RULE_GROUP_NAME = "ruleengine"


class EncodingError(Exception):
    """Raised when a rule document cannot be encoded as YAML."""


def _alerting_rule(rule: Rule) -> AlertingRule:
    return AlertingRule(
        alert=str(rule.id),
        expr=" ".join([rule.expr, rule.op, rule.value]),
        for_=rule.for_,
        labels=dict(rule.labels),
        annotations=RuleAnnotations(
            rule_id=str(rule.id),
            prom_id=str(rule.prom_id),
            summary=rule.summary,
            description=rule.description,
        ),
    )


# PUBLIC_INTERFACE
def build_document(rules: Iterable[Rule]) -> RuleGroupsDocument:
    """Build the typed rule document: all rules in one group, input order preserved."""
    return RuleGroupsDocument(
        groups=[RuleGroup(name=RULE_GROUP_NAME, rules=[_alerting_rule(r) for r in rules])]
    )


# PUBLIC_INTERFACE
def rules_content(rules: Iterable[Rule]) -> bytes:
    """
    Serialize rules into a Prometheus rule file (UTF-8 YAML bytes).

    Raises:
      EncodingError: the YAML encoder rejected the document.
    """
    data = build_document(rules).model_dump(by_alias=True)
    try:
        return yaml.safe_dump(
            data,
            encoding="utf-8",
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    except yaml.YAMLError as exc:
        raise EncodingError(f"failed to encode rule document: {exc}") from exc


# PUBLIC_INTERFACE
def prom_rules(rules: Iterable[Rule]) -> List[PromRules]:
    """
    Partition rules by prom_id in a single stable pass.

    Partitions come out in first-seen order of prom ids; rules keep their
    relative input order. The Prom descriptors only carry the id.
    """
    grouped: Dict[int, List[Rule]] = {}
    for rule in rules:
        grouped.setdefault(rule.prom_id, []).append(rule)

    return [PromRules(prom=Prom(id=prom_id), rules=items) for prom_id, items in grouped.items()]
