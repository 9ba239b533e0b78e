# -*- coding: utf-8 -*-
"""SQLAlchemy engine and session factory for the SQL repository."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DB_URL = "sqlite:///data/token_transfers.db"


def _ensure_sqlite_parent_dir(db_url: str) -> None:
    # sqlite:///relative/path.db or sqlite:////abs/path.db
    if not db_url.startswith("sqlite:"):
        return
    if db_url.startswith("sqlite:////"):
        path = db_url.replace("sqlite:////", "/", 1)
    elif db_url.startswith("sqlite:///"):
        path = db_url.replace("sqlite:///", "", 1)
    else:
        return
    if path in (":memory:", ""):
        return
    Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def create_db_engine(db_url: Optional[str] = None, *, echo: bool = False) -> Engine:
    url = db_url or DEFAULT_DB_URL
    _ensure_sqlite_parent_dir(url)
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite:"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, future=True, pool_pre_ping=True, echo=echo, connect_args=connect_args)


class SessionProvider:
    """Light wrapper to create SQLAlchemy sessions bound to one engine."""

    def __init__(self, db_url: Optional[str] = None, *, echo: bool = False) -> None:
        self.engine = create_db_engine(db_url, echo=echo)
        self._factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)

    def session(self) -> Session:
        return self._factory()

    def dispose(self) -> None:
        self.engine.dispose()
