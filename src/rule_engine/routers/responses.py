from __future__ import annotations

import logging
from typing import List

from fastapi import HTTPException, Response

from src.rule_engine.schemas.rules import Rule
from src.rule_engine.services.rule_document import EncodingError, rules_content

logger = logging.getLogger(__name__)

YAML_MEDIA_TYPE = "application/x-yaml"


# PUBLIC_INTERFACE
def yaml_response(rules: List[Rule]) -> Response:
    """Render rules as a Prometheus rule file; encoder failures become HTTP 500."""
    try:
        content = rules_content(rules)
    except EncodingError as exc:
        logger.exception("Rule document encoding failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Response(content=content, media_type=YAML_MEDIA_TYPE)
