"""Database helpers (handle, models, collection queries)."""

from .session import Base, Database
from .query import CollectionQuery

__all__ = ["Base", "Database", "CollectionQuery"]
