from __future__ import annotations

from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from erp_hub.config import Settings

_settings = Settings()

_connect_args = {"check_same_thread": False} if _settings.database_url.startswith("sqlite") else {}

engine: Engine = create_engine(_settings.database_url, connect_args=_connect_args)


def init_db(bind: Engine | None = None) -> None:
    target = bind or engine
    # Import table modules so their metadata is registered
    from erp_hub.models import (  # noqa: F401
        action_item,
        attachment,
        category,
        email,
        issue,
        meeting,
        note,
        setting,
        vendor_ticket,
        zendesk_ticket,
    )

    if target.url.get_backend_name() == "sqlite" and target.url.database not in (None, "", ":memory:"):
        # Enable WAL
        with target.begin() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
            conn.exec_driver_sql("PRAGMA synchronous=NORMAL;")
    SQLModel.metadata.create_all(target)
