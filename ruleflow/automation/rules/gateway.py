# ruleflow/automation/rules/gateway.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .engine import RuleEngine, SKIP_REASON
from .storage import RulesRepository
from .types import ExecutionStatus, ExecutionStoreError

log = logging.getLogger("automation")


@dataclass
class GatewayResponse:
    """Ответ точки входа: http-статус + тело (как его увидит вызывающий)."""
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class RuleGateway:
    """
    Единая точка входа: (rule_id, trigger_data, triggered_by) → ответ.

    Сюда же приходит действие execute_rule (вложенный запуск),
    с depth+1. Глубже max_depth не идём: иначе правило,
    которое вызывает само себя, крутится до падения процесса.
    """

    def __init__(
        self,
        *,
        rules_repo: RulesRepository,
        engine: RuleEngine,
        max_depth: int = 5,
    ) -> None:
        self._repo = rules_repo
        self._engine = engine
        self._max_depth = max_depth

        # если ActionExecutor не получил invoke_rule при создании: подставим свой
        if engine.actions.rule_invoker is None:
            engine.actions.set_rule_invoker(self.invoke_child)

    # ------------------------------------------------------------------ #
    def invoke(
        self,
        rule_id: str,
        trigger_data: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        *,
        depth: int = 0,
    ) -> GatewayResponse:
        trigger_data = {} if trigger_data is None else trigger_data
        log.info("Executing rule: %s (depth=%d)", rule_id, depth)
        if log.isEnabledFor(logging.DEBUG):
            log.debug("Trigger data: %s", json.dumps(trigger_data, ensure_ascii=False, default=str))

        if not isinstance(trigger_data, dict):
            return GatewayResponse(400, {"success": False, "error": "trigger_data must be an object"})

        if depth > self._max_depth:
            log.warning("rule %s: nesting depth %d exceeds %d", rule_id, depth, self._max_depth)
            return GatewayResponse(
                508,
                {
                    "success": False,
                    "error": f"Maximum rule nesting depth ({self._max_depth}) exceeded",
                },
            )

        try:
            rule = self._repo.get_active_rule(rule_id)
        except Exception as exc:  # noqa: BLE001
            log.exception("rule %s: lookup failed", rule_id)
            return GatewayResponse(500, {"success": False, "error": str(exc) or exc.__class__.__name__})
        if rule is None:
            log.error("Rule not found or inactive: %s", rule_id)
            return GatewayResponse(404, {"success": False, "error": "Rule not found or inactive"})

        try:
            outcome = self._engine.run(rule, trigger_data, triggered_by=triggered_by, depth=depth)
        except ExecutionStoreError as exc:
            return GatewayResponse(500, {"success": False, "error": str(exc)})

        ex = outcome.execution
        if ex.status == ExecutionStatus.SKIPPED:
            return GatewayResponse(
                200,
                {
                    "success": True,
                    "execution_id": ex.id,
                    "status": ex.status.value,
                    "reason": SKIP_REASON,
                },
            )

        if ex.status == ExecutionStatus.FAILED:
            return GatewayResponse(
                500,
                {"success": False, "execution_id": ex.id, "error": ex.error_message},
            )

        log.info(
            "rule %s: execution completed in %sms (%d actions, %d failed)",
            rule_id, ex.execution_time_ms, outcome.actions_executed, outcome.actions_failed,
        )
        return GatewayResponse(
            200,
            {
                "success": True,
                "execution_id": ex.id,
                "status": ex.status.value,
                "actions_executed": outcome.actions_executed,
                "actions_failed": outcome.actions_failed,
                "execution_time_ms": ex.execution_time_ms,
            },
        )

    # ------------------------------------------------------------------ #
    def invoke_child(self, rule_id: str, trigger_data: Dict[str, Any], depth: int) -> Tuple[int, Dict[str, Any]]:
        """Вход для действия execute_rule: без triggered_by, с глубиной вложенности."""
        resp = self.invoke(rule_id, trigger_data, None, depth=depth)
        return resp.status_code, resp.body
