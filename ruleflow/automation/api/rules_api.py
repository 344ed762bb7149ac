# ruleflow/automation/api/rules_api.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ruleflow.automation import runtime
from ruleflow.automation.rules.types import Execution, ExecutionStatus
from ruleflow.automation.rules_loader import rule_from_dict, rule_to_dict
from ruleflow.core.config import settings

router = APIRouter(prefix="/api/automation", tags=["automation"])
log = logging.getLogger("automation.api")


def _require_ctx():
    ctx = runtime.context()
    if ctx is None:
        raise HTTPException(500, "Automation engine is not initialized")
    return ctx


def _execution_to_dict(ex: Execution) -> Dict[str, Any]:
    return {
        "id": ex.id,
        "rule_id": ex.rule_id,
        "triggered_by": ex.triggered_by,
        "trigger_data": ex.trigger_data,
        "status": ex.status.value,
        "output_data": ex.output_data,
        "error_message": ex.error_message,
        "execution_time_ms": ex.execution_time_ms,
        "created_at": ex.created_at.isoformat() if ex.created_at else None,
        "finished_at": ex.finished_at.isoformat() if ex.finished_at else None,
    }


# ---------------------------------------------------------------------------
# DTO
# ---------------------------------------------------------------------------

class ExecuteDTO(BaseModel):
    rule_id: str
    # Any, а не Dict: не-объект отдаём в gateway, он ответит 400 в своём формате
    trigger_data: Any = None
    triggered_by: Optional[str] = None


class RuleSaveDTO(BaseModel):
    """
    Правило для upsert. conditions/actions: как в БД:
    список объектов или JSON-строка (её разберём при проверке).
    """
    id: str
    key: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    trigger_type: str = "manual"
    trigger_config: Dict[str, Any] = {}
    conditions: Union[List[Any], str, None] = None
    actions: Union[List[Any], str, None] = None
    is_active: bool = True
    priority: int = 0


# ---------------------------------------------------------------------------
# Запуск
# ---------------------------------------------------------------------------

@router.post("/execute")
def execute_rule(body: ExecuteDTO):
    ctx = _require_ctx()
    resp = ctx.gateway.invoke(body.rule_id, body.trigger_data, body.triggered_by)
    return JSONResponse(status_code=resp.status_code, content=resp.body)


# ---------------------------------------------------------------------------
# Правила
# ---------------------------------------------------------------------------

@router.get("/rules")
def list_rules() -> List[Dict[str, Any]]:
    ctx = _require_ctx()
    return [rule_to_dict(r) for r in ctx.repo.list_rules()]


@router.get("/rules/{rule_id}")
def get_rule(rule_id: str) -> Dict[str, Any]:
    ctx = _require_ctx()
    rule = ctx.repo.get_rule(rule_id)
    if rule is None:
        raise HTTPException(404, "Rule not found")
    return rule_to_dict(rule)


@router.post("/rules")
def save_rule(body: RuleSaveDTO):
    """Создать или обновить правило (upsert по id)."""
    ctx = _require_ctx()
    try:
        rule = rule_from_dict(body.model_dump(), path="rule")
    except ValueError as e:
        log.warning("rule rejected: %s", e)
        raise HTTPException(400, str(e))

    ctx.repo.save_rule(rule)
    log.info("rule %s saved", rule.id)
    return {"ok": True, "id": rule.id}


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str):
    ctx = _require_ctx()
    if ctx.repo.get_rule(rule_id) is None:
        raise HTTPException(404, "Rule not found")
    ctx.repo.delete_rule(rule_id)
    log.info("rule %s deleted", rule_id)
    return {"ok": True}


@router.post("/reload")
def reload_rules():
    _require_ctx()
    try:
        loaded = runtime.reload_rules()
    except FileNotFoundError:
        raise HTTPException(404, f"rules file not found: {settings.rules_path}")
    except ValueError as e:
        log.error("rules reload failed: %s", e)
        raise HTTPException(400, f"rules load failed: {e}")
    return {"ok": True, "rules_count": len(loaded)}


# ---------------------------------------------------------------------------
# Журнал выполнений
# ---------------------------------------------------------------------------

@router.get("/executions")
def list_executions(
    limit: int = Query(100, ge=1, le=1000),
    rule_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    ctx = _require_ctx()
    st = None
    if status:
        try:
            st = ExecutionStatus(status)
        except ValueError:
            raise HTTPException(400, f"unknown status: {status}")

    items = ctx.repo.list_recent_executions(limit=limit, rule_id=rule_id, status=st)
    return [_execution_to_dict(ex) for ex in items]


@router.get("/executions/{execution_id}")
def get_execution(execution_id: str) -> Dict[str, Any]:
    ctx = _require_ctx()
    ex = ctx.repo.get_execution(execution_id)
    if ex is None:
        raise HTTPException(404, "Execution not found")
    return _execution_to_dict(ex)


@router.get("/health")
def health():
    ctx = runtime.context()
    if ctx is None:
        return {"ok": False, "started": False}
    return {
        "ok": True,
        "started": True,
        "storage": settings.storage_kind,
        "rules_count": len(ctx.repo.list_rules()),
        "action_types": ctx.actions.registered_types(),
    }
