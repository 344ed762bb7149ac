# ruleflow/services/messaging.py
"""
Отправка писем и SMS через HTTP-шлюзы (email_url / sms_url из секции messaging).

Шлюз принимает JSON и авторизацию Bearer <api_key>:
  email: {"to": ..., "subject": ..., "html": ...}
  sms:   {"to": ..., "message": ...}

Ошибка HTTP / сети → MessagingError (её поймает исполнитель действия).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests


class MessagingError(RuntimeError):
    pass


class MessagingClient:
    def __init__(
        self,
        *,
        email_url: str = "",
        sms_url: str = "",
        api_key: str = "",
        timeout: Optional[float] = 10,
        session: Optional[requests.Session] = None,
    ):
        self.email_url = (email_url or "").strip()
        self.sms_url = (sms_url or "").strip()
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.log = logging.getLogger("messaging")

    @classmethod
    def from_cfg(cls, cfg: Dict[str, Any], timeout: Optional[float] = 10) -> "MessagingClient":
        return cls(
            email_url=cfg.get("email_url", ""),
            sms_url=cfg.get("sms_url", ""),
            api_key=cfg.get("api_key", ""),
            timeout=timeout,
        )

    def _post(self, url: str, payload: Dict[str, Any], kind: str) -> None:
        if not url:
            raise MessagingError(f"{kind} gateway url is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            r = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.log.error("%s gateway request failed: %s", kind, e)
            raise MessagingError(f"{kind} gateway unreachable: {e}") from e

        if not r.ok:
            self.log.error("%s HTTP %s: %s", kind, r.status_code, r.text[:500])
            raise MessagingError(f"{kind.capitalize()} API error: {r.status_code}")

    def send_email(self, to: str, subject: str, html: str) -> None:
        self._post(self.email_url, {"to": to, "subject": subject, "html": html}, "email")
        self.log.info("email sent to %s (%s)", to, subject)

    def send_sms(self, to: str, message: str) -> None:
        self._post(self.sms_url, {"to": to, "message": message}, "sms")
        self.log.info("sms sent to %s", to)
