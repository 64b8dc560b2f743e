"""Database utilities package."""

from .base import Base, dispose_engine, get_engine, get_session_factory, session_scope, utcnow

__all__ = ["Base", "dispose_engine", "get_engine", "get_session_factory", "session_scope", "utcnow"]
