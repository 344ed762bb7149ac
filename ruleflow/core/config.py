# ruleflow/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # путь к основному YAML (можно переопределить переменной окружения CONFIG_FILE)
    config_file: str = Field(default="config.yaml", validation_alias="CONFIG_FILE")

    # файл с описанием правил (RULES_FILE перекрывает automation.rules_file из YAML)
    rules_file: Optional[str] = Field(default=None, validation_alias="RULES_FILE")

    # внутреннее хранилище загруженного YAML
    _cfg: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _config_path: Path | None = PrivateAttr(default=None)

    # ───────── пути ─────────
    @property
    def config_path(self) -> Path:
        if self._config_path is None:
            p = Path(self.config_file)
            if not p.is_absolute():
                p = Path.cwd() / p
            self._config_path = p
        return self._config_path

    # ───────── YAML cfg ─────────
    @property
    def cfg(self) -> Dict[str, Any]:
        return self._cfg

    def get_cfg(self) -> Dict[str, Any]:
        return self._cfg

    def set_cfg(self, data: Dict[str, Any]) -> None:
        self._cfg = data or {}

    def load_yaml_config(self) -> None:
        p = self.config_path
        if p.exists():
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{p}: корень конфигурации должен быть объектом")
            self._cfg = data
        else:
            self._cfg = {}

    # ───────── удобные секции ─────────
    @property
    def automation(self) -> Dict[str, Any]:
        return self._cfg.get("automation", {}) or {}

    @property
    def messaging(self) -> Dict[str, Any]:
        return self._cfg.get("messaging", {}) or {}

    @property
    def webhooks(self) -> Dict[str, Any]:
        return self._cfg.get("webhooks", {}) or {}

    @property
    def db_url(self) -> str:
        return (self._cfg.get("db", {}) or {}).get("url", "sqlite:///./data/data.db")

    @property
    def storage_kind(self) -> str:
        # "sql": правила и журнал в БД, "memory": только в памяти процесса
        return str(self.automation.get("storage", "sql")).lower()

    @property
    def rules_path(self) -> str:
        return self.rules_file or str(self.automation.get("rules_file", "data/rules.yaml"))

    @property
    def max_rule_depth(self) -> int:
        return int(self.automation.get("max_rule_depth", 5))

    @property
    def webhook_timeout_s(self) -> Optional[float]:
        # 0 / null → без таймаута (как было изначально)
        raw = self.webhooks.get("timeout_s", 30)
        return float(raw) if raw else None

    @property
    def messaging_timeout_s(self) -> Optional[float]:
        raw = self.messaging.get("timeout_s", 10)
        return float(raw) if raw else None


settings = Settings()
