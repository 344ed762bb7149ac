# ruleflow/automation/__init__.py
from __future__ import annotations

from typing import Any, Iterable, Optional

from ruleflow.automation.rules.actions import ActionExecutor, AuditLogWriter
from ruleflow.automation.rules.engine import RuleEngine
from ruleflow.automation.rules.gateway import RuleGateway
from ruleflow.automation.rules.repositories import (
    InMemoryExecutionStorage,
    InMemoryRecordStore,
    InMemoryRuleStorage,
)
from ruleflow.automation.rules.storage import RecordStore, RulesRepository
from ruleflow.automation.rules.types import Rule


class AutomationContext:
    """
    Держим всё в одном месте:
    - репозиторий правил + журнал выполнений
    - исполнители действий (почта / SMS / таблицы / вебхуки / аудит)
    - движок и точку входа (gateway)
    """

    def __init__(
        self,
        *,
        repo: RulesRepository,
        record_store: Optional[RecordStore] = None,
        messaging: Any = None,
        write_audit_log: Optional[AuditLogWriter] = None,
        http_session: Any = None,
        webhook_timeout_s: Optional[float] = 30.0,
        max_depth: int = 5,
        rules: Optional[Iterable[Rule]] = None,
    ) -> None:
        # 1) исполнители действий; invoke_rule подставит gateway
        actions = ActionExecutor(
            record_store=record_store,
            send_email=messaging.send_email if messaging is not None else None,
            send_sms=messaging.send_sms if messaging is not None else None,
            write_audit_log=write_audit_log,
            http_session=http_session,
            webhook_timeout_s=webhook_timeout_s,
        )

        # 2) движок + точка входа
        engine = RuleEngine(rules_repo=repo, actions=actions)
        gateway = RuleGateway(rules_repo=repo, engine=engine, max_depth=max_depth)

        # если нам уже принесли правила: загрузим
        for r in rules or ():
            repo.save_rule(r)

        self.repo = repo
        self.records = record_store
        self.messaging = messaging
        self.actions = actions
        self.engine = engine
        self.gateway = gateway


def build_memory_context(
    *,
    record_store: Optional[RecordStore] = None,
    max_executions: int = 1000,
    **kwargs: Any,
) -> AutomationContext:
    """
    Всё в памяти процесса. Аудит (log_event) по умолчанию пишется
    в ту же таблицу audit_logs in-memory хранилища.
    """
    repo = RulesRepository(InMemoryRuleStorage(), InMemoryExecutionStorage(max_entries=max_executions))
    records = record_store if record_store is not None else InMemoryRecordStore()
    kwargs.setdefault("write_audit_log", lambda entry: records.insert("audit_logs", entry))
    return AutomationContext(repo=repo, record_store=records, **kwargs)


__all__ = ["AutomationContext", "build_memory_context"]
