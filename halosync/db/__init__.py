"""Database layer for HaloSync with async SQLAlchemy."""

from halosync.db.connection import close_db, get_session, init_db
from halosync.db.models import (
    Base,
    ConnectionModel,
    KnowledgeBaseItemModel,
    KnowledgeBaseSyncModel,
)

__all__ = [
    "Base",
    "ConnectionModel",
    "KnowledgeBaseItemModel",
    "KnowledgeBaseSyncModel",
    "close_db",
    "get_session",
    "init_db",
]
