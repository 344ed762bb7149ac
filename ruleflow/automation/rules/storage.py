# ruleflow/automation/rules/storage.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .types import Execution, ExecutionStatus, Rule


# ======================================================================
# 1. ХРАНИЛИЩЕ ПРАВИЛ
# ======================================================================

class RuleStorage(ABC):
    """
    Абстрактное хранилище правил.
    Реализации:
      - in-memory (тесты, стенд)
      - SQL (таблица lowcode_rules)
    """

    @abstractmethod
    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Вернёт правило по id или None."""
        raise NotImplementedError

    @abstractmethod
    def list_rules(self) -> List[Rule]:
        """Вернёт все правила (включая неактивные), по убыванию priority."""
        raise NotImplementedError

    @abstractmethod
    def save_rule(self, rule: Rule) -> None:
        """Создать или обновить правило."""
        raise NotImplementedError

    @abstractmethod
    def delete_rule(self, rule_id: str) -> None:
        """Удалить правило по id (если нет, ничего не делаем)."""
        raise NotImplementedError


# ======================================================================
# 2. ЖУРНАЛ ВЫПОЛНЕНИЙ
# ======================================================================

class ExecutionStorage(ABC):
    """
    Журнал выполнений. Запись создаётся один раз (RUNNING)
    и один раз обновляется в конце. Движок ничего не удаляет.
    """

    @abstractmethod
    def create(self, execution: Execution) -> Execution:
        raise NotImplementedError

    @abstractmethod
    def update(self, execution: Execution) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, execution_id: str) -> Optional[Execution]:
        raise NotImplementedError

    @abstractmethod
    def list_recent(
        self,
        limit: int = 100,
        rule_id: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> List[Execution]:
        """Последние записи (новые первыми), с фильтрами."""
        raise NotImplementedError


# ======================================================================
# 3. ХРАНИЛИЩЕ ЗАПИСЕЙ (для create/update/delete_record и т.п.)
# ======================================================================

class RecordStore(ABC):
    """Таблица по имени + строка по id + обновление колонок. Больше движку не нужно."""

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> Any:
        """Вставить строку, вернуть её id."""
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, record_id: Any, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, table: str, record_id: Any) -> None:
        raise NotImplementedError


# ======================================================================
# 4. КОМПОЗИТ ДЛЯ ДВИЖКА
# ======================================================================

class RulesRepository:
    """
    Удобная обёртка, чтобы движок получил
    и правила, и журнал в одном объекте.
    """

    def __init__(
        self,
        rules: RuleStorage,
        executions: ExecutionStorage,
    ) -> None:
        self._rules = rules
        self._executions = executions

    # --- правила -------------------------------------------------------

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get_rule(rule_id)

    def get_active_rule(self, rule_id: str) -> Optional[Rule]:
        rule = self._rules.get_rule(rule_id)
        if rule is None or not rule.is_active:
            return None
        return rule

    def list_rules(self) -> List[Rule]:
        return self._rules.list_rules()

    def save_rule(self, rule: Rule) -> None:
        self._rules.save_rule(rule)

    def delete_rule(self, rule_id: str) -> None:
        self._rules.delete_rule(rule_id)

    # --- журнал --------------------------------------------------------

    def create_execution(self, execution: Execution) -> Execution:
        return self._executions.create(execution)

    def update_execution(self, execution: Execution) -> None:
        self._executions.update(execution)

    def get_execution(self, execution_id: str) -> Optional[Execution]:
        return self._executions.get(execution_id)

    def list_recent_executions(
        self,
        limit: int = 100,
        rule_id: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> List[Execution]:
        return self._executions.list_recent(limit=limit, rule_id=rule_id, status=status)
