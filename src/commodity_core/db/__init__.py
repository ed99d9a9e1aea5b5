"""Database layer: engine, session, ORM base."""

from commodity_core.db.base import Base
from commodity_core.db.engine import get_engine, get_session, init_engine, session_scope

__all__ = ["Base", "get_engine", "get_session", "init_engine", "session_scope"]
