"""Knowledge-base synchronization from HaloPSA into the local store."""

from halosync.knowledge.types import (
    KnowledgeCategory,
    KnowledgeItemDraft,
    SyncMode,
    SyncResult,
    SyncStatus,
)

__all__ = [
    "KnowledgeCategory",
    "KnowledgeItemDraft",
    "SyncMode",
    "SyncResult",
    "SyncStatus",
]
