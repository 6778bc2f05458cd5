"""Database package."""

from simonkey.db.base import engine, async_session_maker, Base, get_db

__all__ = ["engine", "async_session_maker", "Base", "get_db"]
