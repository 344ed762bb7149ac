# ruleflow/automation/rules/repositories.py
from __future__ import annotations

import copy
from collections import deque
from itertools import count
from threading import RLock
from typing import Any, Deque, Dict, List, Optional

from .types import Execution, ExecutionStatus, Rule
from .storage import ExecutionStorage, RecordStore, RuleStorage


# ======================================================================
# 1. IN-MEMORY ХРАНИЛИЩЕ ПРАВИЛ
# ======================================================================

class InMemoryRuleStorage(RuleStorage):
    """
    Простейшее хранилище правил в памяти.
    Подходит для unit-тестов и запуска с rules.yaml без БД.
    """

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}
        self._lock = RLock()

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        with self._lock:
            return self._rules.get(rule_id)

    def list_rules(self) -> List[Rule]:
        with self._lock:
            return sorted(self._rules.values(), key=lambda r: -r.priority)

    def save_rule(self, rule: Rule) -> None:
        with self._lock:
            self._rules[rule.id] = rule

    def delete_rule(self, rule_id: str) -> None:
        with self._lock:
            self._rules.pop(rule_id, None)


# ======================================================================
# 2. IN-MEMORY ЖУРНАЛ ВЫПОЛНЕНИЙ
# ======================================================================

class InMemoryExecutionStorage(ExecutionStorage):
    """
    Журнал выполнений в памяти.
    Хранит последние N записей (по умолчанию 1000) в deque.
    """

    def __init__(self, max_entries: int = 1000) -> None:
        self._max_entries = max_entries
        self._entries: Deque[Execution] = deque(maxlen=max_entries)
        self._by_id: Dict[str, Execution] = {}
        self._lock = RLock()

    def create(self, execution: Execution) -> Execution:
        with self._lock:
            if len(self._entries) == self._max_entries:
                # самая старая запись вытесняется из deque: убираем и из индекса
                oldest = self._entries[-1]
                self._by_id.pop(oldest.id, None)
            self._entries.appendleft(execution)  # новые: в начало
            self._by_id[execution.id] = execution
        return execution

    def update(self, execution: Execution) -> None:
        with self._lock:
            if execution.id in self._by_id:
                self._by_id[execution.id].__dict__.update(execution.__dict__)

    def get(self, execution_id: str) -> Optional[Execution]:
        with self._lock:
            return self._by_id.get(execution_id)

    def list_recent(
        self,
        limit: int = 100,
        rule_id: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> List[Execution]:
        with self._lock:
            items = [
                e for e in self._entries
                if (rule_id is None or e.rule_id == rule_id)
                and (status is None or e.status == status)
            ]
            return items[:limit]


# ======================================================================
# 3. IN-MEMORY ТАБЛИЦЫ (для действий с записями)
# ======================================================================

class InMemoryRecordStore(RecordStore):
    """
    Таблицы-словари: {table: {id: row}}.
    Неизвестная таблица: ошибка, если список таблиц задан заранее.
    """

    def __init__(self, tables: Optional[List[str]] = None) -> None:
        self._tables: Dict[str, Dict[Any, Dict[str, Any]]] = {t: {} for t in (tables or [])}
        self._strict = tables is not None
        self._ids = count(1)
        self._lock = RLock()

    def _table(self, table: str) -> Dict[Any, Dict[str, Any]]:
        if not table:
            raise ValueError("table is not set")
        if table not in self._tables:
            if self._strict:
                raise KeyError(f"relation \"{table}\" does not exist")
            self._tables[table] = {}
        return self._tables[table]

    def insert(self, table: str, data: Dict[str, Any]) -> Any:
        with self._lock:
            rows = self._table(table)
            row = copy.deepcopy(data)
            record_id = row.get("id") or str(next(self._ids))
            row["id"] = record_id
            rows[record_id] = row
            return record_id

    def update(self, table: str, record_id: Any, data: Dict[str, Any]) -> None:
        with self._lock:
            row = self._table(table).get(record_id)
            if row is not None:
                row.update(copy.deepcopy(data))

    def delete(self, table: str, record_id: Any) -> None:
        with self._lock:
            self._table(table).pop(record_id, None)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._tables.get(table, {}).values()]
