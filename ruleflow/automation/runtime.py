# ruleflow/automation/runtime.py
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruleflow.automation import AutomationContext, build_memory_context
from ruleflow.automation.rules.actions import AuditLogWriter
from ruleflow.automation.rules.engine import RuleEngine
from ruleflow.automation.rules.gateway import RuleGateway
from ruleflow.automation.rules.sql_repositories import (
    SqlExecutionStorage,
    SqlRecordStore,
    SqlRuleStorage,
)
from ruleflow.automation.rules.storage import RulesRepository
from ruleflow.automation.rules.types import Rule
from ruleflow.automation.rules_loader import load_rules_from_yaml
from ruleflow.core.config import settings
from ruleflow.db import session as db_session
from ruleflow.db.models import AuditLog
from ruleflow.services.messaging import MessagingClient

log = logging.getLogger("automation")

# Глобальный синглтон
_LOCK = threading.Lock()
_CTX: Optional[AutomationContext] = None


def _make_audit_writer() -> AuditLogWriter:
    """log_event → строка в audit_logs (своя короткая сессия на запись)."""
    def _write(entry: Dict[str, Any]) -> None:
        with db_session.SessionLocal() as db:
            db.add(AuditLog(**entry))
            db.commit()

    return _write


def _build_context() -> AutomationContext:
    messaging = MessagingClient.from_cfg(settings.messaging, timeout=settings.messaging_timeout_s)
    common = dict(
        messaging=messaging,
        webhook_timeout_s=settings.webhook_timeout_s,
        max_depth=settings.max_rule_depth,
    )

    if settings.storage_kind == "memory":
        log.info("automation storage: memory")
        return build_memory_context(**common)

    if settings.storage_kind != "sql":
        raise ValueError(f"automation.storage: unknown value {settings.storage_kind!r} (memory | sql)")

    if db_session.engine is None:
        db_session.configure()
    db_session.init_db()

    repo = RulesRepository(
        SqlRuleStorage(db_session.SessionLocal),
        SqlExecutionStorage(db_session.SessionLocal),
    )
    log.info("automation storage: sql (%s)", db_session.engine.url.render_as_string(hide_password=True))
    return AutomationContext(
        repo=repo,
        record_store=SqlRecordStore(db_session.engine),
        write_audit_log=_make_audit_writer(),
        **common,
    )


def _initial_load(ctx: AutomationContext) -> None:
    """
    Правила из YAML: для memory всегда, для sql только
    если таблица правил пустая (иначе БД главнее файла).
    """
    path = settings.rules_path
    if not Path(path).exists():
        log.info("rules file %s not found, starting without preset rules", path)
        return
    if settings.storage_kind == "sql" and ctx.repo.list_rules():
        log.info("rules table is not empty, %s is not loaded", path)
        return
    loaded = load_rules_from_yaml(path, ctx.repo)
    log.info("loaded %d rules from %s", len(loaded), path)


def ensure_started() -> AutomationContext:
    """
    Инициализировать автоматизацию, если ещё не инициализирована.
    Вызываем один раз на старте приложения (после load_yaml_config).
    """
    global _CTX
    with _LOCK:
        if _CTX is None:
            ctx = _build_context()
            _initial_load(ctx)
            _CTX = ctx
        return _CTX


def set_context(ctx: Optional[AutomationContext]) -> None:
    """Подменить контекст целиком (тесты, встраивание в чужое приложение)."""
    global _CTX
    with _LOCK:
        _CTX = ctx


def context() -> Optional[AutomationContext]:
    return _CTX


def engine_instance() -> Optional[RuleEngine]:
    """Вернёт текущий RuleEngine (или None, если не инициализирован)."""
    return _CTX.engine if _CTX is not None else None


def gateway() -> Optional[RuleGateway]:
    return _CTX.gateway if _CTX is not None else None


def rules_repo() -> Optional[RulesRepository]:
    """Вернёт репозиторий правил/журнала, если автоматика инициализирована."""
    return _CTX.repo if _CTX is not None else None


def reload_rules(path: Optional[str] = None) -> List[Rule]:
    """Перечитать YAML с правилами: старые правила заменяются целиком."""
    ctx = _CTX
    if ctx is None:
        raise RuntimeError("Automation is not initialized")
    p = path or settings.rules_path
    loaded = load_rules_from_yaml(p, ctx.repo, replace=True)
    log.info("reloaded %d rules from %s", len(loaded), p)
    return loaded


def stop_if_running() -> None:
    global _CTX
    with _LOCK:
        if _CTX is not None:
            session = getattr(_CTX.messaging, "session", None)
            try:
                if session is not None:
                    session.close()
            finally:
                _CTX = None
