from __future__ import annotations

import pytest
import yaml
from fastapi import HTTPException

from src.rule_engine.routers import responses
from src.rule_engine.routers.responses import YAML_MEDIA_TYPE, yaml_response
from src.rule_engine.services.rule_document import EncodingError


def test_yaml_response_renders_rule_file(make_rule):
    res = yaml_response([make_rule(1, 10)])
    assert res.status_code == 200
    assert res.media_type == YAML_MEDIA_TYPE
    doc = yaml.safe_load(res.body)
    assert doc["groups"][0]["rules"][0]["alert"] == "1"


def test_yaml_response_maps_encoding_error_to_500(monkeypatch, make_rule):
    def _boom(rules):
        raise EncodingError("failed to encode rule document: bad value")

    monkeypatch.setattr(responses, "rules_content", _boom)

    with pytest.raises(HTTPException) as excinfo:
        yaml_response([make_rule(1, 10)])
    assert excinfo.value.status_code == 500
    assert "failed to encode" in excinfo.value.detail
    assert isinstance(excinfo.value.__cause__, EncodingError)
