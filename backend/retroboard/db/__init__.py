"""Database package."""

from retroboard.db.base import Base
from retroboard.db.session import DBSession, get_db_session

__all__ = ["Base", "DBSession", "get_db_session"]
