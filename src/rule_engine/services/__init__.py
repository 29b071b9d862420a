"""Business-logic layer.

- rule_document.py (pure rule-file builder and per-prom partitioning)
- proms_service.py / rules_service.py (MongoDB-backed CRUD)
- rules_sync.py (background rule file sync + Prometheus reload)
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.
