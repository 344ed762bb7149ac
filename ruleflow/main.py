# ruleflow/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from ruleflow.core.config import settings
from ruleflow.automation.api.rules_api import router as automation_router
from ruleflow.automation.runtime import ensure_started, stop_if_running

log = logging.getLogger("web")

# ─────────────────────────────────────────────────────────────────────────────
# Приложение
# ─────────────────────────────────────────────────────────────────────────────
app = FastAPI(title="ruleflow")

app.include_router(automation_router)


# ─────────────────────────────────────────────────────────────────────────────
# Старт / стоп
# ─────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def _startup():
    # 1) грузим YAML
    settings.load_yaml_config()

    # 2) БД + хранилища + правила из rules.yaml
    ensure_started()

    log.info("automation api ready (storage=%s)", settings.storage_kind)


@app.on_event("shutdown")
def _shutdown():
    stop_if_running()


@app.get("/")
def root():
    return RedirectResponse(url="/docs", status_code=302)
