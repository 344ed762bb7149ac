# ruleflow/automation/rules/actions.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .storage import RecordStore
from .templates import interpolate, interpolate_mapping, stringify
from .types import (
    Action,
    ActionConfigError,
    ActionContext,
    ActionType,
    AssignUserConfig,
    CallWebhookConfig,
    ChangeStatusConfig,
    CreateRecordConfig,
    DeleteRecordConfig,
    ExecuteRuleConfig,
    LogEventConfig,
    SendEmailConfig,
    SendNotificationConfig,
    SendSmsConfig,
    UpdateRecordConfig,
)

log = logging.getLogger("automation")


# ---- типы коллбеков, которые нам нужно будет передать снаружи --------------

# Письмо: to, subject, html
SendEmailFunc = Callable[[str, str, str], None]

# SMS: to, message
SendSmsFunc = Callable[[str, str], None]

# Запись в аудит: готовая строка для audit_logs
AuditLogWriter = Callable[[Dict[str, Any]], None]

# Запуск другого правила: rule_id, trigger_data, depth → (http-статус, тело ответа)
InvokeRuleFunc = Callable[[str, Dict[str, Any], int], Tuple[int, Dict[str, Any]]]

# Разбор сырого config (+ trigger_data для шаблонов) → типизированный конфиг
ConfigDecoder = Callable[[Dict[str, Any], Dict[str, Any]], Any]

# Исполнитель: типизированный конфиг, trigger_data, контекст → результат {success, ...}
ActionHandler = Callable[[Any, Dict[str, Any], ActionContext], Dict[str, Any]]


@dataclass
class _Registration:
    decode: ConfigDecoder
    handler: ActionHandler


# --------------------------------------------------------------------------- #
# Разбор конфигов
# --------------------------------------------------------------------------- #

def _required(raw: Dict[str, Any], key: str) -> Any:
    value = raw.get(key)
    if value is None or value == "":
        raise ActionConfigError(f"config.{key} is required")
    return value


def _templated(raw: Dict[str, Any], key: str, data: Dict[str, Any], default: str = "") -> str:
    return interpolate(stringify(raw.get(key, default)), data)


def _record_data(raw: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return interpolate_mapping(raw.get("data"), data)
    except TypeError as exc:
        raise ActionConfigError(f"config.data: {exc}") from None


def decode_send_email(raw: Dict[str, Any], data: Dict[str, Any]) -> SendEmailConfig:
    cfg = SendEmailConfig(
        to=_templated(raw, "to", data),
        subject=_templated(raw, "subject", data),
        body=_templated(raw, "body", data),
    )
    if not cfg.to:
        raise ActionConfigError("config.to is empty")
    return cfg


def decode_send_sms(raw: Dict[str, Any], data: Dict[str, Any]) -> SendSmsConfig:
    cfg = SendSmsConfig(to=_templated(raw, "to", data), message=_templated(raw, "message", data))
    if not cfg.to:
        raise ActionConfigError("config.to is empty")
    return cfg


def decode_send_notification(raw: Dict[str, Any], data: Dict[str, Any]) -> SendNotificationConfig:
    return SendNotificationConfig(
        user_id=_templated(raw, "user_id", data),
        title=_templated(raw, "title", data),
        message=_templated(raw, "message", data),
        severity=str(raw.get("severity") or "info"),
    )


def decode_create_record(raw: Dict[str, Any], data: Dict[str, Any]) -> CreateRecordConfig:
    return CreateRecordConfig(table=str(_required(raw, "table")), data=_record_data(raw, data))


def decode_update_record(raw: Dict[str, Any], data: Dict[str, Any]) -> UpdateRecordConfig:
    return UpdateRecordConfig(
        table=str(_required(raw, "table")),
        record_id=_templated(raw, "record_id", data),
        data=_record_data(raw, data),
    )


def decode_delete_record(raw: Dict[str, Any], data: Dict[str, Any]) -> DeleteRecordConfig:
    return DeleteRecordConfig(
        table=str(_required(raw, "table")),
        record_id=_templated(raw, "record_id", data),
    )


def decode_assign_user(raw: Dict[str, Any], data: Dict[str, Any]) -> AssignUserConfig:
    return AssignUserConfig(
        table=str(_required(raw, "table")),
        record_id=_templated(raw, "record_id", data),
        user_id=_templated(raw, "user_id", data),
        field=str(raw.get("field") or "assigned_to"),
    )


def decode_change_status(raw: Dict[str, Any], data: Dict[str, Any]) -> ChangeStatusConfig:
    return ChangeStatusConfig(
        table=str(_required(raw, "table")),
        record_id=_templated(raw, "record_id", data),
        status=raw.get("status"),
        field=str(raw.get("field") or "status"),
    )


def decode_call_webhook(raw: Dict[str, Any], data: Dict[str, Any]) -> CallWebhookConfig:
    headers = raw.get("headers") or {}
    if not isinstance(headers, dict):
        raise ActionConfigError("config.headers must be an object")

    body = raw.get("body")
    if isinstance(body, str):
        body = interpolate(body, data)
    elif isinstance(body, (dict, list)):
        body = json.dumps(body, ensure_ascii=False)
    elif body is not None:
        body = stringify(body)

    return CallWebhookConfig(
        url=str(_required(raw, "url")),
        method=str(raw.get("method") or "POST").upper(),
        headers={str(k): stringify(v) for k, v in headers.items()},
        body=body,
    )


def decode_execute_rule(raw: Dict[str, Any], data: Dict[str, Any]) -> ExecuteRuleConfig:
    return ExecuteRuleConfig(rule_id=str(_required(raw, "rule_id")))


def decode_log_event(raw: Dict[str, Any], data: Dict[str, Any]) -> LogEventConfig:
    return LogEventConfig(
        message=_templated(raw, "message", data),
        level=str(raw.get("level") or "info").lower(),
    )


_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class ActionExecutor:
    """
    Исполняет действия правила.

    Реестр: тип действия → (разбор конфига, исполнитель). Новый тип
    добавляется через register(), центральный switch не трогаем.

    Конкретную БД, почту, SMS и аудит сюда не шьём:
    всё передаётся в __init__ объектами/коллбеками.
    """

    def __init__(
        self,
        *,
        record_store: Optional[RecordStore] = None,
        send_email: Optional[SendEmailFunc] = None,
        send_sms: Optional[SendSmsFunc] = None,
        write_audit_log: Optional[AuditLogWriter] = None,
        invoke_rule: Optional[InvokeRuleFunc] = None,
        http_session: Any = None,
        webhook_timeout_s: Optional[float] = 30.0,
        notifications_table: str = "notifications",
    ) -> None:
        self._records = record_store
        self._send_email = send_email
        self._send_sms = send_sms
        self._write_audit_log = write_audit_log
        self._invoke_rule = invoke_rule
        # requests.Session или сам модуль requests: у обоих есть .request()
        self._http = http_session if http_session is not None else requests
        self._webhook_timeout_s = webhook_timeout_s
        self._notifications_table = notifications_table

        self._registry: Dict[str, _Registration] = {}
        self._register_builtin()

    # --------------------------------------------------------------------- #
    # РЕЕСТР
    # --------------------------------------------------------------------- #
    def register(self, action_type: str, handler: ActionHandler, decode: ConfigDecoder) -> None:
        """Зарегистрировать (или переопределить) исполнителя для типа действия."""
        self._registry[action_type] = _Registration(decode=decode, handler=handler)

    def registered_types(self) -> List[str]:
        return sorted(self._registry)

    @property
    def rule_invoker(self) -> Optional[InvokeRuleFunc]:
        return self._invoke_rule

    def set_rule_invoker(self, invoke_rule: InvokeRuleFunc) -> None:
        self._invoke_rule = invoke_rule

    def _register_builtin(self) -> None:
        self.register(ActionType.SEND_EMAIL.value, self._do_send_email, decode_send_email)
        self.register(ActionType.SEND_SMS.value, self._do_send_sms, decode_send_sms)
        self.register(ActionType.SEND_NOTIFICATION.value, self._do_send_notification, decode_send_notification)
        self.register(ActionType.CREATE_RECORD.value, self._do_create_record, decode_create_record)
        self.register(ActionType.UPDATE_RECORD.value, self._do_update_record, decode_update_record)
        self.register(ActionType.DELETE_RECORD.value, self._do_delete_record, decode_delete_record)
        self.register(ActionType.ASSIGN_USER.value, self._do_assign_user, decode_assign_user)
        self.register(ActionType.CHANGE_STATUS.value, self._do_change_status, decode_change_status)
        self.register(ActionType.CALL_WEBHOOK.value, self._do_call_webhook, decode_call_webhook)
        self.register(ActionType.EXECUTE_RULE.value, self._do_execute_rule, decode_execute_rule)
        self.register(ActionType.LOG_EVENT.value, self._do_log_event, decode_log_event)

    # --------------------------------------------------------------------- #
    # ПУБЛИЧНЫЙ МЕТОД: выполнить ОДНО действие
    # --------------------------------------------------------------------- #
    def execute_action(
        self,
        action: Action,
        trigger_data: Dict[str, Any],
        ctx: ActionContext,
    ) -> Dict[str, Any]:
        """
        Выполнить одно действие и вернуть результат {success, ...}.
        Исключения наружу не выпускаем никогда.
        """
        reg = self._registry.get(action.type)
        if reg is None:
            # type не указан → "undefined"
            name = action.type or "undefined"
            log.warning("Unknown action type: %s (rule=%s)", name, ctx.rule_id)
            return {"success": False, "error": f"Unknown action type: {name}"}

        try:
            config = reg.decode(action.config or {}, trigger_data)
            return reg.handler(config, trigger_data, ctx)
        except Exception as exc:  # noqa: BLE001
            # тут мы не падаем, а возвращаем success=False
            err_txt = str(exc) or exc.__class__.__name__
            log.warning(
                "action %s (%s) failed in rule %s: %s",
                action.id, action.type, ctx.rule_id, err_txt,
            )
            return {"success": False, "error": err_txt}

    # --------------------------------------------------------------------- #
    # ВНУТРЕННИЕ: конкретные действия
    # --------------------------------------------------------------------- #
    def _require_records(self) -> RecordStore:
        if self._records is None:
            raise RuntimeError("Record store is not provided")
        return self._records

    def _do_send_email(self, cfg: SendEmailConfig, data, ctx) -> Dict[str, Any]:
        if self._send_email is None:
            raise RuntimeError("Email sender is not provided")
        self._send_email(cfg.to, cfg.subject, cfg.body)
        return {"success": True, "to": cfg.to, "subject": cfg.subject}

    def _do_send_sms(self, cfg: SendSmsConfig, data, ctx) -> Dict[str, Any]:
        if self._send_sms is None:
            raise RuntimeError("SMS sender is not provided")
        self._send_sms(cfg.to, cfg.message)
        return {"success": True, "to": cfg.to}

    def _do_send_notification(self, cfg: SendNotificationConfig, data, ctx) -> Dict[str, Any]:
        self._require_records().insert(
            self._notifications_table,
            {
                "user_id": cfg.user_id,
                "title": cfg.title,
                "message": cfg.message,
                "severity": cfg.severity,
            },
        )
        return {"success": True, "user_id": cfg.user_id}

    def _do_create_record(self, cfg: CreateRecordConfig, data, ctx) -> Dict[str, Any]:
        record_id = self._require_records().insert(cfg.table, cfg.data)
        return {"success": True, "record_id": record_id}

    def _do_update_record(self, cfg: UpdateRecordConfig, data, ctx) -> Dict[str, Any]:
        self._require_records().update(cfg.table, cfg.record_id, cfg.data)
        return {"success": True, "record_id": cfg.record_id}

    def _do_delete_record(self, cfg: DeleteRecordConfig, data, ctx) -> Dict[str, Any]:
        self._require_records().delete(cfg.table, cfg.record_id)
        return {"success": True, "record_id": cfg.record_id}

    def _do_assign_user(self, cfg: AssignUserConfig, data, ctx) -> Dict[str, Any]:
        self._require_records().update(cfg.table, cfg.record_id, {cfg.field: cfg.user_id})
        return {"success": True, "record_id": cfg.record_id, "user_id": cfg.user_id}

    def _do_change_status(self, cfg: ChangeStatusConfig, data, ctx) -> Dict[str, Any]:
        self._require_records().update(cfg.table, cfg.record_id, {cfg.field: cfg.status})
        return {"success": True, "record_id": cfg.record_id, "status": cfg.status}

    def _do_call_webhook(self, cfg: CallWebhookConfig, data, ctx) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        headers.update(cfg.headers)

        body = None
        if cfg.method != "GET" and cfg.body is not None:
            body = cfg.body.encode("utf-8")

        resp = self._http.request(
            cfg.method,
            cfg.url,
            headers=headers,
            data=body,
            timeout=self._webhook_timeout_s,
        )
        try:
            text = resp.text
        except Exception:  # noqa: BLE001
            text = None

        if not resp.ok:
            log.info("webhook %s %s → HTTP %s", cfg.method, cfg.url, resp.status_code)
        return {"success": bool(resp.ok), "status": resp.status_code, "response": text}

    def _do_execute_rule(self, cfg: ExecuteRuleConfig, data, ctx: ActionContext) -> Dict[str, Any]:
        if self._invoke_rule is None:
            raise RuntimeError("Rule invoker is not provided")
        status_code, body = self._invoke_rule(cfg.rule_id, data, ctx.depth + 1)
        return {"success": status_code < 400, "child_rule_id": cfg.rule_id, "result": body}

    def _do_log_event(self, cfg: LogEventConfig, data, ctx: ActionContext) -> Dict[str, Any]:
        if self._write_audit_log is None:
            raise RuntimeError("Audit log writer is not provided")

        log.log(_LOG_LEVELS.get(cfg.level, logging.INFO), "rule %s: %s", ctx.rule_id, cfg.message)
        self._write_audit_log(
            {
                "action": "lowcode_rule_log",
                "table_name": "lowcode_rules",
                "new_data": {"message": cfg.message, "level": cfg.level, "trigger_data": data},
                "category": "automation",
                "severity": cfg.level,
            }
        )
        return {"success": True, "message": cfg.message}
