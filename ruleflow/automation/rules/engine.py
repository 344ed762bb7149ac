# ruleflow/automation/rules/engine.py
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .actions import ActionExecutor
from .evaluator import ConditionEvaluator
from .parsing import parse_actions, parse_conditions
from .storage import RulesRepository
from .types import (
    ActionContext,
    Execution,
    ExecutionStatus,
    ExecutionStoreError,
    Rule,
)

log = logging.getLogger("automation")

SKIP_REASON = "Conditions not met"


@dataclass
class RunOutcome:
    """Что получилось у одного запуска правила."""
    execution: Execution
    actions_executed: int = 0
    actions_failed: int = 0


class RuleEngine:
    """
    Оркестратор одного запуска правила:
      - создаёт запись в журнале (сразу RUNNING)
      - проверяет условия
      - выполняет действия строго по order, по одному
      - переводит запись в skipped / success / failed

    ВАЖНО:
    - упавшее действие НЕ делает запуск failed: ошибка остаётся
      в output_data.actions[i].result, остальные действия выполняются
    - failed: только если сломано само правило (conditions/actions не разбираются)
    """

    def __init__(
        self,
        *,
        rules_repo: RulesRepository,
        actions: ActionExecutor,
        evaluator: Optional[ConditionEvaluator] = None,
    ) -> None:
        self._repo = rules_repo
        self._actions = actions
        self._evaluator = evaluator or ConditionEvaluator()

    @property
    def actions(self) -> ActionExecutor:
        return self._actions

    # ------------------------------------------------------------------ #
    # ПУБЛИЧНЫЙ API
    # ------------------------------------------------------------------ #
    def run(
        self,
        rule: Rule,
        trigger_data: Dict[str, Any],
        *,
        triggered_by: Optional[str] = None,
        depth: int = 0,
    ) -> RunOutcome:
        execution = Execution(
            id=str(uuid.uuid4()),
            rule_id=rule.id,
            triggered_by=triggered_by or None,
            trigger_data=trigger_data,
        )
        try:
            execution = self._repo.create_execution(execution)
        except Exception as exc:
            log.error("Failed to create execution record for rule %s: %s", rule.id, exc)
            raise ExecutionStoreError("Failed to create execution record") from exc

        started = time.monotonic()
        ctx = ActionContext(rule_id=rule.id, execution_id=execution.id, depth=depth)
        results: List[Dict[str, Any]] = []

        try:
            conditions = parse_conditions(rule.conditions)
            log.debug("rule %s: evaluating %d conditions", rule.id, len(conditions))

            if not self._evaluator.evaluate(conditions, trigger_data):
                log.info("rule %s (%s): conditions not met", rule.id, rule.name)
                self._finish(
                    execution,
                    ExecutionStatus.SKIPPED,
                    started,
                    output_data={"reason": SKIP_REASON},
                )
                return RunOutcome(execution=execution)

            actions = parse_actions(rule.actions)
            log.info("rule %s (%s): executing %d actions", rule.id, rule.name, len(actions))

            for action in actions:
                result = self._actions.execute_action(action, trigger_data, ctx)
                results.append({"action_id": action.id, "type": action.type, "result": result})
                log.debug("rule %s: action %s (%s) → %s", rule.id, action.id, action.type, result)

            self._finish(
                execution,
                ExecutionStatus.SUCCESS,
                started,
                output_data={"actions": results},
            )

        except Exception as exc:  # noqa: BLE001
            error = str(exc) or exc.__class__.__name__
            log.error("rule %s execution %s failed: %s", rule.id, execution.id, error)
            self._finish(
                execution,
                ExecutionStatus.FAILED,
                started,
                output_data={"actions": results},
                error_message=error,
            )

        failed = sum(1 for r in results if not r["result"].get("success"))
        return RunOutcome(execution=execution, actions_executed=len(results), actions_failed=failed)

    # ------------------------------------------------------------------ #
    # ВНУТРЕННЕЕ
    # ------------------------------------------------------------------ #
    def _finish(
        self,
        execution: Execution,
        status: ExecutionStatus,
        started: float,
        *,
        output_data: Dict[str, Any],
        error_message: Optional[str] = None,
    ) -> None:
        """Единственное обновление записи журнала: терминальный статус."""
        execution.execution_time_ms = int((time.monotonic() - started) * 1000)
        execution.status = status
        execution.output_data = output_data
        execution.error_message = error_message
        execution.finished_at = datetime.now(timezone.utc)
        try:
            self._repo.update_execution(execution)
        except Exception:  # noqa: BLE001
            # запись останется в RUNNING: это видно в журнале
            log.exception("Failed to update execution %s to %s", execution.id, status.value)
