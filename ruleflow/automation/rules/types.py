# ruleflow/automation/rules/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# === 1. БАЗОВЫЕ ENUM'Ы =======================================================

class ConditionOperator(Enum):
    """Операторы условий."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IN_LIST = "in_list"
    IN = "in"                    # старое имя in_list
    NOT_IN_LIST = "not_in_list"
    MATCHES_REGEX = "matches_regex"
    BETWEEN = "between"


class ConditionLogic(Enum):
    """Как соединить результат условия со СЛЕДУЮЩИМ условием."""
    AND = "AND"
    OR = "OR"


class ActionType(Enum):
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    SEND_NOTIFICATION = "send_notification"
    CREATE_RECORD = "create_record"
    UPDATE_RECORD = "update_record"
    DELETE_RECORD = "delete_record"
    ASSIGN_USER = "assign_user"
    CHANGE_STATUS = "change_status"
    CALL_WEBHOOK = "call_webhook"
    EXECUTE_RULE = "execute_rule"
    LOG_EVENT = "log_event"


class ExecutionStatus(Enum):
    """Статус записи в журнале выполнений. RUNNING: единственный нетерминальный."""
    RUNNING = "running"
    SKIPPED = "skipped"
    SUCCESS = "success"
    FAILED = "failed"


# === 2. ОШИБКИ ===============================================================

class RuleEngineError(Exception):
    """Базовая ошибка движка."""


class RuleDefinitionError(RuleEngineError):
    """Структурная ошибка: conditions/actions правила не разбираются."""


class ActionConfigError(RuleEngineError):
    """Конфиг конкретного действия неполный или кривой (ошибка только этого действия)."""


class ExecutionStoreError(RuleEngineError):
    """Не удалось создать/обновить запись журнала выполнений."""


# === 3. ПРАВИЛО ==============================================================

@dataclass
class Condition:
    """
    Одно условие: field (путь через точку) / operator / value.
    logic: как склеить результат с СЛЕДУЮЩИМ условием.
    """
    field: str
    operator: str
    value: Any = None
    logic: ConditionLogic = ConditionLogic.AND
    id: Optional[str] = None


@dataclass
class Action:
    """Описание одного действия. config: сырой словарь, типизируется в ActionExecutor."""
    id: str
    type: str
    config: Dict[str, Any] = field(default_factory=dict)
    order: Union[int, float] = 0


@dataclass
class Rule:
    """
    Правило автоматизации в том виде, как оно лежит в хранилище.

    conditions / actions: сырые данные (список словарей или JSON-строка);
    разбираются уже во время выполнения, чтобы кривое правило
    попало в журнал как failed, а не уронило загрузку.
    """
    id: str
    name: str
    key: Optional[str] = None
    trigger_type: str = "manual"
    trigger_config: Dict[str, Any] = field(default_factory=dict)
    conditions: Union[List[Dict[str, Any]], str] = field(default_factory=list)
    actions: Union[List[Dict[str, Any]], str] = field(default_factory=list)
    is_active: bool = True
    priority: int = 0
    description: Optional[str] = None


# === 4. ЖУРНАЛ ВЫПОЛНЕНИЙ ====================================================

@dataclass
class Execution:
    """
    Запись аудита: одна попытка выполнить правило на одном trigger_data.
    Создаётся сразу в RUNNING и ровно один раз переводится в терминальный статус.
    """
    id: str
    rule_id: str
    triggered_by: Optional[str]
    trigger_data: Dict[str, Any]
    status: ExecutionStatus = ExecutionStatus.RUNNING
    output_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None


@dataclass
class ActionContext:
    """Что знает действие о текущем запуске (нужно execute_rule и журналу)."""
    rule_id: str
    execution_id: Optional[str] = None
    depth: int = 0


# === 5. ТИПИЗИРОВАННЫЕ КОНФИГИ ДЕЙСТВИЙ ======================================

@dataclass
class SendEmailConfig:
    to: str
    subject: str = ""
    body: str = ""


@dataclass
class SendSmsConfig:
    to: str
    message: str = ""


@dataclass
class SendNotificationConfig:
    user_id: str
    title: str = ""
    message: str = ""
    severity: str = "info"


@dataclass
class CreateRecordConfig:
    table: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateRecordConfig:
    table: str
    record_id: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeleteRecordConfig:
    table: str
    record_id: str


@dataclass
class AssignUserConfig:
    table: str
    record_id: str
    user_id: str
    field: str = "assigned_to"


@dataclass
class ChangeStatusConfig:
    table: str
    record_id: str
    status: Any
    field: str = "status"


@dataclass
class CallWebhookConfig:
    url: str
    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass
class ExecuteRuleConfig:
    rule_id: str


@dataclass
class LogEventConfig:
    message: str
    level: str = "info"
