# ruleflow/automation/rules_loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from ruleflow.automation.rules.parsing import parse_actions, parse_conditions
from ruleflow.automation.rules.storage import RulesRepository
from ruleflow.automation.rules.types import Rule, RuleDefinitionError


def _require_str(v: Any, path: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{path}: должна быть непустая строка")
    return v.strip()


def rule_from_dict(rd: Dict[str, Any], *, path: str = "rule", validate: bool = True) -> Rule:
    """
    Словарь (из YAML или из API) → Rule.

    validate=True: сразу прогоняем conditions/actions через разбор,
    чтобы кривое правило не попало в хранилище.
    """
    if not isinstance(rd, dict):
        raise ValueError(f"{path}: должен быть объект")

    rid = _require_str(rd.get("id"), f"{path}.id")
    name = str(rd.get("name") or rd.get("rule_name") or rid)

    conditions = rd.get("conditions") or []
    actions = rd.get("actions") or []

    if validate:
        try:
            parse_conditions(conditions, strict=True)
            parse_actions(actions, strict=True)
        except RuleDefinitionError as e:
            raise ValueError(f"{path}.{e}") from None

    trigger_config = rd.get("trigger_config") or {}
    if not isinstance(trigger_config, dict):
        raise ValueError(f"{path}.trigger_config: должен быть объект")

    try:
        priority = int(rd.get("priority", 0) or 0)
    except (TypeError, ValueError):
        raise ValueError(f"{path}.priority: должно быть целым числом") from None

    return Rule(
        id=rid,
        key=rd.get("key") or rd.get("rule_key") or rid,
        name=name,
        description=rd.get("description"),
        trigger_type=str(rd.get("trigger_type") or "manual"),
        trigger_config=trigger_config,
        conditions=conditions,
        actions=actions,
        is_active=bool(rd.get("is_active", True)),
        priority=priority,
    )


def rule_to_dict(rule: Rule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "key": rule.key,
        "name": rule.name,
        "description": rule.description,
        "trigger_type": rule.trigger_type,
        "trigger_config": rule.trigger_config,
        "conditions": rule.conditions,
        "actions": rule.actions,
        "is_active": rule.is_active,
        "priority": rule.priority,
    }


def load_rules_from_yaml(path: str, repo: RulesRepository, *, replace: bool = False) -> List[Rule]:
    """
    Загружает правила из YAML-файла вида:

    rules:
      - id: "new_company_welcome"
        name: "Приветствие новой компании"
        trigger_type: "record_created"
        priority: 10
        conditions:
          - { field: "company.status", operator: "equals", value: "active", logic: "AND" }
          - { field: "company.email", operator: "is_not_empty" }
        actions:
          - id: "a1"
            type: "send_email"
            order: 1
            config:
              to: "{{company.email}}"
              subject: "Добро пожаловать, {{company.name}}"

    replace=True: старые правила в repo перед загрузкой удаляются.
    Весь файл проверяется до записи: одна ошибка → ничего не загружено.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"rules file not found: {path}")

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: корень должен быть объектом с ключом rules")

    items = data.get("rules") or []
    if not isinstance(items, list):
        raise ValueError(f"{path}: rules должен быть массивом")

    loaded = [rule_from_dict(rd, path=f"rules[{i}]") for i, rd in enumerate(items)]

    if replace:
        for r in list(repo.list_rules()):
            repo.delete_rule(r.id)

    for rule in loaded:
        repo.save_rule(rule)

    return loaded
