"""Knowledge-base sync types."""

from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class KnowledgeCategory(str, Enum):
    CONFIGURATION = "CONFIGURATION"
    CUSTOM_FIELDS = "CUSTOM_FIELDS"
    WORKFLOWS = "WORKFLOWS"
    TEMPLATES = "TEMPLATES"
    CLIENTS = "CLIENTS"
    AGENTS = "AGENTS"
    TICKETS = "TICKETS"
    REPORTS = "REPORTS"
    CANNED_TEXT = "CANNED_TEXT"


class SyncStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class SyncMode(str, Enum):
    """``quick`` syncs core configuration plus agents and teams; ``full`` syncs everything."""

    QUICK = "quick"
    FULL = "full"


class KnowledgeItemDraft(BaseModel):
    """One knowledge-base item as produced by a sync phase, before upsert."""

    category: KnowledgeCategory
    subcategory: str | None = None
    title: str
    content: dict[str, Any] = Field(default_factory=dict)
    summary: str | None = None
    source_id: str | None = None
    source_name: str | None = None


class SyncResult(BaseModel):
    """Outcome of one synchronization run."""

    sync_id: UUID | None = None
    status: SyncStatus = SyncStatus.IN_PROGRESS
    sync_type: SyncMode = SyncMode.FULL
    items_added: int = 0
    items_updated: int = 0
    items_removed: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float | None = None

    def record_error(self, message: str) -> None:
        self.errors.append(message)
        self.error_count += 1

    def final_status(self) -> SyncStatus:
        """Status implied by the accumulated counters."""
        if self.error_count and not (self.items_added or self.items_updated):
            return SyncStatus.FAILED
        if self.error_count:
            return SyncStatus.PARTIAL
        return SyncStatus.COMPLETED
