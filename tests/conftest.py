# tests/conftest.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from ruleflow.automation import build_memory_context
from ruleflow.automation.rules.repositories import InMemoryRecordStore
from ruleflow.automation.rules.types import Rule
from ruleflow.services.messaging import MessagingError


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "ok") -> None:
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeHttp:
    """Вместо requests / requests.Session: запоминает запросы, отдаёт заготовленные ответы."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[FakeResponse] = []
        self.exc: Optional[Exception] = None

    def request(self, method: str, url: str, **kw: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kw})
        if self.exc is not None:
            raise self.exc
        return self.responses.pop(0) if self.responses else FakeResponse()

    def post(self, url: str, **kw: Any) -> FakeResponse:
        return self.request("POST", url, **kw)


class FakeMessaging:
    def __init__(self) -> None:
        self.emails: List[tuple] = []
        self.sms: List[tuple] = []
        self.fail = False

    def send_email(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise MessagingError("Email API error: 500")
        self.emails.append((to, subject, html))

    def send_sms(self, to: str, message: str) -> None:
        if self.fail:
            raise MessagingError("Sms API error: 500")
        self.sms.append((to, message))


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def messaging() -> FakeMessaging:
    return FakeMessaging()


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def ctx(http, messaging, records):
    return build_memory_context(record_store=records, messaging=messaging, http_session=http)


@pytest.fixture
def add_rule(ctx):
    """add_rule("r1", conditions=[...], actions=[...]) → Rule в репозитории ctx."""

    def _add(rule_id: str, **kw: Any) -> Rule:
        kw.setdefault("name", rule_id)
        rule = Rule(id=rule_id, **kw)
        ctx.repo.save_rule(rule)
        return rule

    return _add
