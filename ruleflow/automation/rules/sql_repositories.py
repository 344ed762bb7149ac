# ruleflow/automation/rules/sql_repositories.py
"""
Хранилища на SQLAlchemy: правила (lowcode_rules), журнал выполнений
(lowcode_rule_executions) и произвольные таблицы для действий с записями.

Каждый вызов: своя короткая сессия, общих сессий между потоками нет.
"""
from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import MetaData, Table
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ruleflow.db.models import LowcodeRule, RuleExecution

from .storage import ExecutionStorage, RecordStore, RuleStorage
from .types import Execution, ExecutionStatus, Rule

SessionFactory = Callable[[], Session]


# ======================================================================
# 1. ПРАВИЛА
# ======================================================================

def _row_to_rule(r: LowcodeRule) -> Rule:
    return Rule(
        id=r.id,
        key=r.rule_key,
        name=r.rule_name or r.id,
        description=r.description,
        trigger_type=r.trigger_type or "manual",
        trigger_config=r.trigger_config or {},
        conditions=r.conditions if r.conditions is not None else [],
        actions=r.actions if r.actions is not None else [],
        is_active=bool(r.is_active),
        priority=int(r.priority or 0),
    )


class SqlRuleStorage(RuleStorage):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        with self._session_factory() as db:
            row = db.get(LowcodeRule, rule_id)
            return _row_to_rule(row) if row is not None else None

    def list_rules(self) -> List[Rule]:
        with self._session_factory() as db:
            rows = db.query(LowcodeRule).order_by(LowcodeRule.priority.desc(), LowcodeRule.id).all()
            return [_row_to_rule(r) for r in rows]

    def save_rule(self, rule: Rule) -> None:
        with self._session_factory() as db:
            row = db.get(LowcodeRule, rule.id) or LowcodeRule(id=rule.id)
            row.rule_key = rule.key
            row.rule_name = rule.name
            row.description = rule.description
            row.trigger_type = rule.trigger_type
            row.trigger_config = rule.trigger_config
            row.conditions = rule.conditions
            row.actions = rule.actions
            row.is_active = rule.is_active
            row.priority = rule.priority
            db.add(row)
            db.commit()

    def delete_rule(self, rule_id: str) -> None:
        with self._session_factory() as db:
            row = db.get(LowcodeRule, rule_id)
            if row is not None:
                db.delete(row)
                db.commit()


# ======================================================================
# 2. ЖУРНАЛ ВЫПОЛНЕНИЙ
# ======================================================================

def _row_to_execution(r: RuleExecution) -> Execution:
    return Execution(
        id=r.id,
        rule_id=r.rule_id,
        triggered_by=r.triggered_by,
        trigger_data=r.trigger_data or {},
        status=ExecutionStatus(r.status),
        output_data=r.output_data,
        error_message=r.error_message,
        execution_time_ms=r.execution_time_ms,
        created_at=r.created_at,
        finished_at=r.finished_at,
    )


class SqlExecutionStorage(ExecutionStorage):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create(self, execution: Execution) -> Execution:
        with self._session_factory() as db:
            db.add(
                RuleExecution(
                    id=execution.id,
                    rule_id=execution.rule_id,
                    triggered_by=execution.triggered_by,
                    trigger_data=execution.trigger_data,
                    input_data=execution.trigger_data,
                    status=execution.status.value,
                    created_at=execution.created_at,
                )
            )
            db.commit()
        return execution

    def update(self, execution: Execution) -> None:
        with self._session_factory() as db:
            row = db.get(RuleExecution, execution.id)
            if row is None:
                raise LookupError(f"execution {execution.id} not found")
            row.status = execution.status.value
            row.output_data = execution.output_data
            row.error_message = execution.error_message
            row.execution_time_ms = execution.execution_time_ms
            row.finished_at = execution.finished_at
            db.commit()

    def get(self, execution_id: str) -> Optional[Execution]:
        with self._session_factory() as db:
            row = db.get(RuleExecution, execution_id)
            return _row_to_execution(row) if row is not None else None

    def list_recent(
        self,
        limit: int = 100,
        rule_id: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> List[Execution]:
        with self._session_factory() as db:
            q = db.query(RuleExecution)
            if rule_id:
                q = q.filter(RuleExecution.rule_id == rule_id)
            if status is not None:
                q = q.filter(RuleExecution.status == status.value)
            rows = q.order_by(RuleExecution.created_at.desc()).limit(limit).all()
            return [_row_to_execution(r) for r in rows]


# ======================================================================
# 3. ПРОИЗВОЛЬНЫЕ ТАБЛИЦЫ
# ======================================================================

class SqlRecordStore(RecordStore):
    """
    Таблица по имени (reflection), строка по колонке id.
    Неизвестная таблица / колонка → исключение SQLAlchemy, оно уйдёт
    в результат действия как ошибка.
    """

    def __init__(self, engine: Engine, id_column: str = "id") -> None:
        self._engine = engine
        self._id_column = id_column
        self._metadata = MetaData()
        self._lock = Lock()

    def _table(self, name: str) -> Table:
        if not name:
            raise ValueError("table is not set")
        with self._lock:
            if name in self._metadata.tables:
                return self._metadata.tables[name]
            return Table(name, self._metadata, autoload_with=self._engine)

    def insert(self, table: str, data: Dict[str, Any]) -> Any:
        t = self._table(table)
        with self._engine.begin() as conn:
            res = conn.execute(t.insert().values(**data))
            pk = res.inserted_primary_key
        if pk and pk[0] is not None:
            return pk[0]
        return data.get(self._id_column)

    def update(self, table: str, record_id: Any, data: Dict[str, Any]) -> None:
        t = self._table(table)
        with self._engine.begin() as conn:
            conn.execute(t.update().where(t.c[self._id_column] == record_id).values(**data))

    def delete(self, table: str, record_id: Any) -> None:
        t = self._table(table)
        with self._engine.begin() as conn:
            conn.execute(t.delete().where(t.c[self._id_column] == record_id))
