"""Engine, session factory and declarative base for the back office tables."""
from __future__ import annotations

import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tourops.db")
SQL_ECHO = os.getenv("TOUROPS_SQL_ECHO", "").lower() in {"1", "true", "yes"}


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"future": True, "echo": SQL_ECHO}
    if make_url(url).get_backend_name() == "sqlite":
        # Request handlers and the session may sit on different threads.
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()
