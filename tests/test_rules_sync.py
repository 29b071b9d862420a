from __future__ import annotations

import dataclasses
import os

import httpx
import pytest
import yaml

from src.rule_engine.config import BackendConfig
from src.rule_engine.db.mongo import MongoManager
from src.rule_engine.schemas.proms import Prom
from src.rule_engine.services import rules_sync
from src.rule_engine.services.proms_service import list_prom_docs
from src.rule_engine.services.rule_document import EncodingError
from src.rule_engine.services.rules_service import list_rule_docs
from src.rule_engine.services.rules_sync import (
    reload_prometheus,
    render_rule_files,
    rule_file_path,
    sync_once,
    write_rule_file,
)
from src.rule_engine.state import AppState


def _alerts(content: bytes) -> list:
    return [r["alert"] for r in yaml.safe_load(content)["groups"][0]["rules"]]


def test_render_rule_files_one_document_per_registered_prom(make_rule):
    proms = [Prom(id=1, url="http://a:9090"), Prom(id=2, url="http://b:9090"), Prom(id=3)]
    rules = [make_rule(10, 1), make_rule(11, 2), make_rule(12, 1), make_rule(13, 99)]

    contents = render_rule_files(proms, rules)

    assert set(contents) == {1, 2, 3}
    assert _alerts(contents[1]) == ["10", "12"]
    assert _alerts(contents[2]) == ["11"]
    # A prom without rules still gets an (empty) rule file.
    assert _alerts(contents[3]) == []


def test_rule_file_path_is_per_prom(tmp_path):
    assert rule_file_path(tmp_path, 7) == tmp_path / "prom_7.rules.yml"


def test_write_rule_file_reports_changes(tmp_path):
    path = tmp_path / "nested" / "prom_1.rules.yml"

    assert write_rule_file(path, b"groups: []\n") is True
    assert path.read_bytes() == b"groups: []\n"
    assert write_rule_file(path, b"groups: []\n") is False
    assert write_rule_file(path, b"groups:\n- name: ruleengine\n  rules: []\n") is True
    assert not path.with_name(path.name + ".tmp").exists()


@pytest.mark.anyio
async def test_reload_prometheus_posts_reload_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url)))
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        ok = await reload_prometheus(client, Prom(id=1, url="http://prom:9090/"))

    assert ok is True
    assert seen == [("POST", "http://prom:9090/-/reload")]


@pytest.mark.anyio
async def test_reload_prometheus_returns_false_on_error_status():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(403))) as client:
        assert await reload_prometheus(client, Prom(id=1, url="http://prom:9090")) is False


@pytest.mark.anyio
async def test_reload_prometheus_skips_prom_without_url():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await reload_prometheus(client, Prom(id=1)) is False


@pytest.mark.anyio
async def test_sync_once_writes_changed_files_and_reloads(clean_db, mongo_uri, tmp_path):
    clean_db["proms"].insert_many(
        [
            {"id": 1, "url": "http://prom-a:9090"},
            {"id": 2, "url": "http://prom-b:9090"},
        ]
    )
    clean_db["rules"].insert_one(
        {
            "id": 5,
            "promId": 1,
            "expr": "up",
            "op": "==",
            "value": "0",
            "for": "1m",
            "labels": {},
            "summary": "s",
            "description": "d",
        }
    )

    config = BackendConfig(
        mongo_uri=mongo_uri,
        mongo_db_name=clean_db.name,
        rules_sync_enabled=True,
        rules_sync_interval_sec=1,
        rules_output_dir=str(tmp_path),
        prom_reload_enabled=True,
        prom_reload_timeout_sec=1,
        mongo_uri_source="RULE_ENGINE_MONGO_URI",
    )
    state = AppState(config=config, mongo=MongoManager(mongo_uri, clean_db.name))

    reloaded = []

    def handler(request: httpx.Request) -> httpx.Response:
        reloaded.append(request.url.host)
        return httpx.Response(200)

    try:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            changed = await sync_once(state, client)
            assert changed == [1, 2]
            assert sorted(reloaded) == ["prom-a", "prom-b"]
            assert _alerts((tmp_path / "prom_1.rules.yml").read_bytes()) == ["5"]
            assert _alerts((tmp_path / "prom_2.rules.yml").read_bytes()) == []

            # Nothing changed => nothing rewritten or reloaded.
            reloaded.clear()
            assert await sync_once(state, client) == []
            assert reloaded == []

            # Reload disabled => files still written, no HTTP calls.
            clean_db["rules"].delete_many({})
            state.config = dataclasses.replace(config, prom_reload_enabled=False)
            assert await sync_once(state, client) == [1]
            assert reloaded == []
    finally:
        state.mongo.close()


def test_render_rule_files_skips_prom_whose_document_fails_to_encode(monkeypatch, make_rule):
    real_rules_content = rules_sync.rules_content

    def _fail_for_prom_2(rules):
        rules = list(rules)
        if any(r.prom_id == 2 for r in rules):
            raise EncodingError("cannot encode")
        return real_rules_content(rules)

    monkeypatch.setattr(rules_sync, "rules_content", _fail_for_prom_2)

    proms = [Prom(id=1), Prom(id=2), Prom(id=3)]
    contents = render_rule_files(proms, [make_rule(1, 1), make_rule(2, 2), make_rule(3, 3)])

    assert set(contents) == {1, 3}
    assert _alerts(contents[1]) == ["1"]
    assert _alerts(contents[3]) == ["3"]


def test_write_rule_file_removes_temp_file_when_replace_fails(monkeypatch, tmp_path):
    def _replace_fails(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(rules_sync.os, "replace", _replace_fails)
    path = tmp_path / "prom_1.rules.yml"

    with pytest.raises(OSError):
        write_rule_file(path, b"groups: []\n")

    assert os.listdir(tmp_path) == []


def test_list_docs_helpers_return_sorted_docs_without_object_ids(clean_db, mongo_uri):
    clean_db["proms"].insert_many([{"id": 2, "url": "http://b:9090"}, {"id": 1, "url": "http://a:9090"}])
    clean_db["rules"].insert_many(
        [
            {"id": 8, "promId": 2, "expr": "up", "op": "==", "value": "0"},
            {"id": 3, "promId": 1, "expr": "up", "op": "==", "value": "0"},
            {"id": 5, "promId": 2, "expr": "up", "op": "==", "value": "0"},
        ]
    )
    mongo = MongoManager(mongo_uri, clean_db.name)
    try:
        proms = list_prom_docs(mongo)
        assert [d["id"] for d in proms] == [1, 2]
        assert all("_id" not in d for d in proms)

        assert [d["id"] for d in list_rule_docs(mongo)] == [3, 5, 8]
        assert [d["id"] for d in list_rule_docs(mongo, prom_id=2)] == [5, 8]
    finally:
        mongo.close()
