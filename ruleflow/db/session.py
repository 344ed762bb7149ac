# ruleflow/db/session.py
from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ruleflow.core.config import settings
from ruleflow.db.models import Base  # важно, чтобы модели были импортированы


def _ensure_sqlite_dir(db_url: str) -> None:
    # sqlite:///./data/data.db  → ./data
    prefix = "sqlite:///"
    if db_url.startswith(prefix):
        fs_path = db_url[len(prefix):]
        # :memory:: ничего не делаем
        if fs_path == ":memory:":
            return
        Path(fs_path).resolve().parent.mkdir(parents=True, exist_ok=True)


engine = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)


def configure(db_url: str | None = None):
    """(Пере)создать engine. Вызывается на старте, после чтения YAML."""
    global engine
    url = db_url or settings.db_url
    _ensure_sqlite_dir(url)
    engine = create_engine(url, future=True)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    """Создать таблицы, если их ещё нет."""
    if engine is None:
        configure()
    Base.metadata.create_all(bind=engine)

