# tests/test_engine_gateway.py
import pytest

from ruleflow.automation import build_memory_context
from ruleflow.automation.rules.types import ExecutionStatus, Rule

ACTIVE = [{"field": "company.status", "operator": "equals", "value": "active"}]
DATA = {"company": {"status": "active", "name": "ACME", "email": "hi@acme.io"}}


def test_unknown_and_inactive_rules_are_404(ctx, add_rule):
    add_rule("off", is_active=False)

    for rid in ("nope", "off"):
        resp = ctx.gateway.invoke(rid, DATA)
        assert resp.status_code == 404
        assert resp.body == {"success": False, "error": "Rule not found or inactive"}

    assert ctx.repo.list_recent_executions() == []


def test_non_object_trigger_data_is_400(ctx, add_rule):
    add_rule("r1")
    assert ctx.gateway.invoke("r1", ["not", "a", "dict"]).status_code == 400


def test_conditions_not_met_is_skipped(ctx, add_rule, messaging):
    add_rule("r1", conditions=ACTIVE, actions=[{"type": "send_email", "config": {"to": "x@y.z"}}])

    resp = ctx.gateway.invoke("r1", {"company": {"status": "lead"}}, triggered_by="user-1")

    assert resp.status_code == 200
    assert resp.body["status"] == "skipped"
    assert resp.body["reason"] == "Conditions not met"
    assert messaging.emails == []

    ex = ctx.repo.get_execution(resp.body["execution_id"])
    assert ex.status is ExecutionStatus.SKIPPED
    assert ex.triggered_by == "user-1"
    assert ex.output_data == {"reason": "Conditions not met"}
    assert ex.finished_at is not None


def test_empty_conditions_always_run(ctx, add_rule, records):
    add_rule("r1", actions=[{"type": "create_record", "config": {"table": "t", "data": {"a": "1"}}}])
    resp = ctx.gateway.invoke("r1")
    assert resp.body["status"] == "success"
    assert len(records.rows("t")) == 1


def test_failing_action_does_not_stop_the_rest(ctx, add_rule, http, make_response, records):
    http.responses.append(make_response(500, "upstream down"))
    add_rule(
        "r1",
        conditions=ACTIVE,
        actions=[
            {"id": "hook", "type": "call_webhook", "order": 1, "config": {"url": "https://h"}},
            {"id": "log", "type": "log_event", "order": 2, "config": {"message": "welcome {{company.name}}"}},
        ],
    )

    resp = ctx.gateway.invoke("r1", DATA)

    assert resp.status_code == 200
    body = resp.body
    assert body["success"] is True
    assert body["status"] == "success"
    assert body["actions_executed"] == 2
    assert body["actions_failed"] == 1
    assert isinstance(body["execution_time_ms"], int)

    ex = ctx.repo.get_execution(body["execution_id"])
    assert ex.status is ExecutionStatus.SUCCESS
    hook, log = ex.output_data["actions"]
    assert hook["action_id"] == "hook"
    assert hook["result"] == {"success": False, "status": 500, "response": "upstream down"}
    assert log["result"]["success"] is True
    assert records.rows("audit_logs")[0]["new_data"]["message"] == "welcome ACME"


def test_actions_run_in_order(ctx, add_rule):
    add_rule(
        "r1",
        actions=[
            {"id": "c", "type": "log_event", "order": 3, "config": {"message": "c"}},
            {"id": "a", "type": "log_event", "order": 1, "config": {"message": "a"}},
            {"id": "b", "type": "log_event", "order": 1, "config": {"message": "b"}},
        ],
    )
    body = ctx.gateway.invoke("r1").body
    ex = ctx.repo.get_execution(body["execution_id"])
    assert [a["action_id"] for a in ex.output_data["actions"]] == ["a", "b", "c"]


def test_unknown_action_type_is_a_failed_action_not_a_failed_run(ctx, add_rule):
    add_rule("r1", actions=[{"id": "x", "type": "teleport"}])
    resp = ctx.gateway.invoke("r1")
    assert resp.status_code == 200
    assert resp.body["actions_failed"] == 1
    ex = ctx.repo.get_execution(resp.body["execution_id"])
    assert ex.output_data["actions"][0]["result"]["error"] == "Unknown action type: teleport"


def test_action_without_type_fails_alone(ctx, add_rule, records):
    add_rule(
        "r1",
        actions=[
            {"id": "x", "config": {}},
            {"id": "log", "type": "log_event", "config": {"message": "still here"}},
        ],
    )

    resp = ctx.gateway.invoke("r1")

    assert resp.status_code == 200
    assert resp.body["actions_executed"] == 2
    assert resp.body["actions_failed"] == 1
    ex = ctx.repo.get_execution(resp.body["execution_id"])
    results = {a["action_id"]: a["result"] for a in ex.output_data["actions"]}
    assert results["x"] == {"success": False, "error": "Unknown action type: undefined"}
    assert results["log"]["success"] is True
    assert len(records.rows("audit_logs")) == 1


def test_non_and_logic_joins_as_or(ctx, add_rule):
    add_rule(
        "r1",
        conditions=[
            {"field": "a", "operator": "equals", "value": 1, "logic": "XOR"},
            {"field": "b", "operator": "equals", "value": 1},
        ],
    )
    assert ctx.gateway.invoke("r1", {"a": 0, "b": 1}).body["status"] == "success"
    assert ctx.gateway.invoke("r1", {"a": 0, "b": 0}).body["status"] == "skipped"


def test_fractional_order_is_not_truncated(ctx, add_rule):
    add_rule(
        "r1",
        actions=[
            {"id": "late", "type": "log_event", "order": 1.5, "config": {"message": "late"}},
            {"id": "early", "type": "log_event", "order": 1.2, "config": {"message": "early"}},
        ],
    )
    body = ctx.gateway.invoke("r1").body
    ex = ctx.repo.get_execution(body["execution_id"])
    assert [a["action_id"] for a in ex.output_data["actions"]] == ["early", "late"]
    assert ex.created_at.tzinfo is not None
    assert ex.finished_at.tzinfo is not None


@pytest.mark.parametrize(
    "kw",
    [
        {"conditions": "{broken json"},
        {"actions": [{"type": "log_event"}, "not-an-object"]},
    ],
)
def test_malformed_rule_is_failed(ctx, add_rule, kw):
    add_rule("r1", **kw)

    resp = ctx.gateway.invoke("r1")

    assert resp.status_code == 500
    assert resp.body["success"] is False
    assert resp.body["error"]
    ex = ctx.repo.get_execution(resp.body["execution_id"])
    assert ex.status is ExecutionStatus.FAILED
    assert ex.error_message == resp.body["error"]
    assert ex.output_data == {"actions": []}


def test_conditions_as_json_string(ctx, add_rule):
    add_rule("r1", conditions='[{"field": "n", "operator": "greater_than", "value": 5}]')
    assert ctx.gateway.invoke("r1", {"n": "7"}).body["status"] == "success"
    assert ctx.gateway.invoke("r1", {"n": "3"}).body["status"] == "skipped"


def test_execution_store_failure_is_500(ctx, add_rule, monkeypatch):
    add_rule("r1")

    def boom(execution):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(ctx.repo, "create_execution", boom)
    resp = ctx.gateway.invoke("r1")
    assert resp.status_code == 500
    assert resp.body == {"success": False, "error": "Failed to create execution record"}


def test_rule_lookup_failure_is_500(ctx, add_rule, monkeypatch):
    add_rule("r1")

    def boom(rule_id):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(ctx.repo, "get_active_rule", boom)
    resp = ctx.gateway.invoke("r1")
    assert resp.status_code == 500
    assert resp.body == {"success": False, "error": "connection refused"}
    assert ctx.repo.list_recent_executions() == []


def test_execute_rule_runs_child_with_same_data(ctx, add_rule, records):
    add_rule("child", conditions=ACTIVE, actions=[{"type": "create_record", "config": {"table": "t", "data": {"n": "{{company.name}}"}}}])
    add_rule("parent", actions=[{"type": "execute_rule", "config": {"rule_id": "child"}}])

    resp = ctx.gateway.invoke("parent", DATA)

    assert resp.body["actions_failed"] == 0
    assert records.rows("t")[0]["n"] == "ACME"
    child_runs = ctx.repo.list_recent_executions(rule_id="child")
    assert len(child_runs) == 1
    assert child_runs[0].triggered_by is None


def test_execute_missing_child_is_a_failed_action(ctx, add_rule):
    add_rule("parent", actions=[{"type": "execute_rule", "config": {"rule_id": "ghost"}}])
    resp = ctx.gateway.invoke("parent")
    assert resp.status_code == 200
    ex = ctx.repo.get_execution(resp.body["execution_id"])
    result = ex.output_data["actions"][0]["result"]
    assert result["success"] is False
    assert result["result"]["error"] == "Rule not found or inactive"


def test_self_recursion_stops_at_max_depth():
    ctx = build_memory_context(max_depth=2)
    ctx.repo.save_rule(Rule(id="loop", name="loop", actions=[{"type": "execute_rule", "config": {"rule_id": "loop"}}]))

    resp = ctx.gateway.invoke("loop", {})

    assert resp.status_code == 200
    runs = ctx.repo.list_recent_executions(rule_id="loop")
    # глубины 0, 1, 2; третий вложенный вызов отбит с 508
    assert len(runs) == 3
    assert all(r.status is ExecutionStatus.SUCCESS for r in runs)

    deepest = [r for r in runs if not r.output_data["actions"][0]["result"]["success"]]
    assert len(deepest) == 1
    child = deepest[0].output_data["actions"][0]["result"]["result"]
    assert child == {"success": False, "error": "Maximum rule nesting depth (2) exceeded"}


def test_depth_over_limit_is_508(ctx, add_rule):
    add_rule("r1")
    resp = ctx.gateway.invoke("r1", {}, depth=6)
    assert resp.status_code == 508
    assert ctx.repo.list_recent_executions() == []


def test_executions_listing_filters(ctx, add_rule):
    add_rule("a", conditions=ACTIVE)
    add_rule("b")
    ctx.gateway.invoke("a", {})
    ctx.gateway.invoke("a", DATA)
    ctx.gateway.invoke("b", {})

    assert len(ctx.repo.list_recent_executions()) == 3
    assert len(ctx.repo.list_recent_executions(rule_id="a")) == 2
    skipped = ctx.repo.list_recent_executions(status=ExecutionStatus.SKIPPED)
    assert [e.rule_id for e in skipped] == ["a"]
    # новые: первыми
    assert ctx.repo.list_recent_executions(limit=1)[0].rule_id == "b"
