from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import httpx

from src.rule_engine.schemas.proms import Prom
from src.rule_engine.schemas.rules import Rule
from src.rule_engine.services.proms_service import doc_to_prom, list_prom_docs
from src.rule_engine.services.rule_document import EncodingError, prom_rules, rules_content
from src.rule_engine.services.rules_service import doc_to_rule, list_rule_docs
from src.rule_engine.state import AppState

logger = logging.getLogger(__name__)


async def _run_in_thread(func, *args, **kwargs):
    """Run blocking pymongo / filesystem calls in a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


# PUBLIC_INTERFACE
def render_rule_files(proms: List[Prom], rules: List[Rule]) -> Dict[int, bytes]:
    """
    Render one rule document per registered prom.

    A prom without rules still gets a document (with an empty rule list) so
    rules deleted from the store disappear from its rule file. Rules owned by
    an unregistered prom are skipped.
    """
    known = {p.id for p in proms}
    by_prom: Dict[int, List[Rule]] = {p.id: [] for p in proms}
    for part in prom_rules(rules):
        if part.prom.id not in known:
            logger.warning("Skipping %d rule(s) for unregistered promId=%s", len(part.rules), part.prom.id)
            continue
        by_prom[part.prom.id] = part.rules

    contents: Dict[int, bytes] = {}
    for prom_id, items in by_prom.items():
        try:
            contents[prom_id] = rules_content(items)
        except EncodingError:
            logger.exception("Rendering rule file failed for promId=%s", prom_id)
    return contents


# PUBLIC_INTERFACE
def rule_file_path(output_dir: str | Path, prom_id: int) -> Path:
    """Location of the rule file for one prom."""
    return Path(output_dir) / f"prom_{prom_id}.rules.yml"


# PUBLIC_INTERFACE
def write_rule_file(path: Path, content: bytes) -> bool:
    """
    Write content to path atomically.

    Returns True when the file was (re)written, False when it already held
    exactly this content.
    """
    if path.exists() and path.read_bytes() == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_bytes(content)
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    return True


# PUBLIC_INTERFACE
async def reload_prometheus(client: httpx.AsyncClient, prom: Prom) -> bool:
    """Ask a Prometheus server to reload its configuration (POST /-/reload)."""
    if not prom.url:
        logger.warning("promId=%s has no url; skipping reload", prom.id)
        return False

    url = prom.url.rstrip("/") + "/-/reload"
    try:
        res = await client.post(url)
        res.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Prometheus reload failed for promId=%s url=%s", prom.id, url)
        return False

    logger.info("Reloaded Prometheus promId=%s", prom.id)
    return True


async def _load_proms(state: AppState) -> List[Prom]:
    docs = await _run_in_thread(list_prom_docs, state.mongo)
    return [doc_to_prom(d) for d in docs]


async def _load_rules(state: AppState) -> List[Rule]:
    docs = await _run_in_thread(list_rule_docs, state.mongo)
    return [doc_to_rule(d) for d in docs]


# PUBLIC_INTERFACE
async def sync_once(state: AppState, client: httpx.AsyncClient) -> List[int]:
    """
    Render and write every prom's rule file, reloading proms whose file changed.

    Returns the ids of proms whose rule file was rewritten.
    """
    proms = await _load_proms(state)
    rules = await _load_rules(state)
    contents = render_rule_files(proms, rules)

    changed: List[int] = []
    for prom in proms:
        content = contents.get(prom.id)
        if content is None:
            continue
        path = rule_file_path(state.config.rules_output_dir, prom.id)
        try:
            wrote = await _run_in_thread(write_rule_file, path, content)
        except OSError:
            logger.exception("Writing rule file failed for promId=%s path=%s", prom.id, path)
            continue
        if not wrote:
            continue

        changed.append(prom.id)
        logger.info("Rule file updated promId=%s path=%s", prom.id, path)
        if state.config.prom_reload_enabled:
            await reload_prometheus(client, prom)

    return changed


# PUBLIC_INTERFACE
async def rules_sync_loop(state: AppState, shutdown_event: asyncio.Event) -> None:
    """
    Background loop that keeps on-disk Prometheus rule files in line with the rule store.

    - Reads all proms and rules
    - Renders one 'ruleengine' rule group per prom
    - Rewrites a prom's file only when its content changed, then triggers /-/reload
    """
    interval = max(1, int(state.config.rules_sync_interval_sec))
    logger.info("Rules sync started (interval=%ss, dir=%s)", interval, state.config.rules_output_dir)

    async with httpx.AsyncClient(timeout=float(state.config.prom_reload_timeout_sec)) as client:
        while not shutdown_event.is_set():
            tick_started = datetime.now(timezone.utc)
            try:
                await sync_once(state, client)
            except Exception:
                logger.exception("Rules sync tick failed")

            elapsed = (datetime.now(timezone.utc) - tick_started).total_seconds()
            sleep_for = max(0.1, interval - elapsed)
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=sleep_for)
            except asyncio.TimeoutError:
                pass

    logger.info("Rules sync stopped")
