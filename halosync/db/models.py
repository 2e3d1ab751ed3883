"""SQLAlchemy async database models for HaloSync.

Connections hold encrypted PSA credentials; knowledge-base items and sync
records are the local store the synchronization orchestrator writes to.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from halosync.knowledge.types import KnowledgeCategory, SyncStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_values(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ConnectionModel(Base):
    """A user's HaloPSA endpoint and encrypted API credentials."""

    __tablename__ = "halo_connections"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    base_url: Mapped[str] = mapped_column(Text, nullable=False)

    # AES-256-GCM blobs, never plaintext
    client_id_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    client_secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    tenant: Mapped[str | None] = mapped_column(Text)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Last connection test
    test_status: Mapped[str] = mapped_column(Text, nullable=False, default="UNTESTED")
    test_message: Mapped[str | None] = mapped_column(Text)
    last_tested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Python-side default keeps sub-second ordering on SQLite
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "test_status IN ('UNTESTED', 'SUCCESS', 'FAILED')",
            name="check_connection_test_status_valid",
        ),
        Index("idx_connections_user_default", "user_id", "is_default"),
        # At most one default connection per user
        Index(
            "uq_connections_one_default_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_default = true"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ConnectionModel(id={self.id}, name={self.name!r}, base_url={self.base_url!r})>"


class KnowledgeBaseItemModel(Base):
    """One synchronized PSA record (or aggregate summary) for a user."""

    __tablename__ = "knowledge_base_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    category: Mapped[str] = mapped_column(Text, nullable=False)
    subcategory: Mapped[str | None] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    summary: Mapped[str | None] = mapped_column(Text)

    # PSA identity; NULL for aggregates such as the client summary
    source_id: Mapped[str | None] = mapped_column(Text)
    source_name: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            _in_values("category", KnowledgeCategory), name="check_kb_category_valid"
        ),
        Index("idx_kb_items_user_category_source", "user_id", "category", "source_id"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeBaseItemModel(category={self.category}, title={self.title!r})>"


class KnowledgeBaseSyncModel(Base):
    """Audit record for one synchronization run. Finalized exactly once."""

    __tablename__ = "knowledge_base_syncs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    connection_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("halo_connections.id", ondelete="SET NULL")
    )

    status: Mapped[str] = mapped_column(Text, nullable=False, default=SyncStatus.IN_PROGRESS.value)
    sync_type: Mapped[str] = mapped_column(Text, nullable=False, default="full")

    items_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_removed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list | None] = mapped_column(JSON)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(_in_values("status", SyncStatus), name="check_kb_sync_status_valid"),
        CheckConstraint("items_added >= 0", name="check_items_added_non_negative"),
        CheckConstraint("items_updated >= 0", name="check_items_updated_non_negative"),
        CheckConstraint("error_count >= 0", name="check_error_count_non_negative"),
        Index("idx_kb_syncs_user_started", "user_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeBaseSyncModel(id={self.id}, status={self.status})>"
