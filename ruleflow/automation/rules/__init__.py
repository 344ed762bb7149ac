# ruleflow/automation/rules/__init__.py
"""
Движок low-code правил (Rules Engine).

Состав:
  - types.py            → модели правил, условий, действий, журнала, конфиги действий
  - templates.py        → подстановка {{путь.к.полю}} из trigger_data
  - evaluator.py        → проверка условий (левая свёртка AND/OR)
  - parsing.py          → разбор сырых conditions/actions (JSON-строка или список)
  - actions.py          → реестр и исполнители действий
  - storage.py          → интерфейсы хранилищ + RulesRepository
  - repositories.py     → in-memory реализации
  - sql_repositories.py → реализации на SQLAlchemy
  - engine.py           → один запуск правила (журнал + условия + действия)
  - gateway.py          → точка входа: rule_id → http-статус + тело
"""
from .actions import ActionExecutor
from .engine import RuleEngine, RunOutcome
from .evaluator import ConditionEvaluator
from .gateway import GatewayResponse, RuleGateway
from .storage import RulesRepository

__all__ = [
    "ActionExecutor",
    "RuleEngine",
    "RunOutcome",
    "ConditionEvaluator",
    "GatewayResponse",
    "RuleGateway",
    "RulesRepository",
]
