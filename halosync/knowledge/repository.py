"""Knowledge-base item and sync-record persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from halosync.db.models import KnowledgeBaseItemModel, KnowledgeBaseSyncModel
from halosync.knowledge.types import (
    KnowledgeCategory,
    KnowledgeItemDraft,
    SyncMode,
    SyncResult,
    SyncStatus,
)

logger = logging.getLogger(__name__)


async def find_item(
    session: AsyncSession,
    user_id: str,
    category: KnowledgeCategory,
    source_id: str,
) -> KnowledgeBaseItemModel | None:
    """Find a user's item by its PSA identity within a category."""
    stmt = select(KnowledgeBaseItemModel).where(
        KnowledgeBaseItemModel.user_id == user_id,
        KnowledgeBaseItemModel.category == category.value,
        KnowledgeBaseItemModel.source_id == source_id,
    )
    return (await session.execute(stmt)).scalars().first()


async def find_item_by_content(
    session: AsyncSession, user_id: str, item: KnowledgeItemDraft
) -> KnowledgeBaseItemModel | None:
    """Find an aggregate item (no source id) by category, subcategory and title."""
    stmt = select(KnowledgeBaseItemModel).where(
        KnowledgeBaseItemModel.user_id == user_id,
        KnowledgeBaseItemModel.category == item.category.value,
        KnowledgeBaseItemModel.subcategory == item.subcategory,
        KnowledgeBaseItemModel.title == item.title,
        KnowledgeBaseItemModel.source_id.is_(None),
    )
    return (await session.execute(stmt)).scalars().first()


async def upsert_item(session: AsyncSession, user_id: str, item: KnowledgeItemDraft) -> bool:
    """Insert or update one knowledge-base item.

    Items with a source id are matched on (user, category, source id); items
    without one are matched on their category, subcategory and title.

    Returns:
        True if a new item was inserted, False if an existing one was updated
    """
    if item.source_id is not None:
        existing = await find_item(session, user_id, item.category, item.source_id)
    else:
        existing = await find_item_by_content(session, user_id, item)

    if existing is None:
        session.add(
            KnowledgeBaseItemModel(
                user_id=user_id,
                category=item.category.value,
                subcategory=item.subcategory,
                title=item.title,
                content=item.content,
                summary=item.summary,
                source_id=item.source_id,
                source_name=item.source_name,
            )
        )
        await session.flush()
        return True

    existing.title = item.title
    existing.content = item.content
    existing.summary = item.summary
    existing.subcategory = item.subcategory
    existing.source_name = item.source_name
    await session.flush()
    return False


async def create_sync_record(
    session: AsyncSession,
    user_id: str,
    connection_id: UUID | None = None,
    sync_type: SyncMode = SyncMode.FULL,
) -> KnowledgeBaseSyncModel:
    record = KnowledgeBaseSyncModel(
        user_id=user_id,
        connection_id=connection_id,
        status=SyncStatus.IN_PROGRESS.value,
        sync_type=sync_type.value,
    )
    session.add(record)
    await session.flush()
    return record


async def finalize_sync_record(
    session: AsyncSession, record: KnowledgeBaseSyncModel, result: SyncResult
) -> KnowledgeBaseSyncModel:
    """Write the final counters and status onto a sync record.

    Raises:
        RuntimeError: The record was already finalized
    """
    if record.status != SyncStatus.IN_PROGRESS.value:
        raise RuntimeError(f"Sync record {record.id} already finalized as {record.status}")

    record.status = result.status.value
    record.items_added = result.items_added
    record.items_updated = result.items_updated
    record.items_removed = result.items_removed
    record.error_count = result.error_count
    record.errors = list(result.errors)
    record.completed_at = datetime.now(timezone.utc)
    await session.flush()
    return record


async def get_latest_sync(session: AsyncSession, user_id: str) -> KnowledgeBaseSyncModel | None:
    stmt = (
        select(KnowledgeBaseSyncModel)
        .where(KnowledgeBaseSyncModel.user_id == user_id)
        .order_by(KnowledgeBaseSyncModel.started_at.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()


async def count_items_by_category(session: AsyncSession, user_id: str) -> dict[str, int]:
    stmt = (
        select(KnowledgeBaseItemModel.category, func.count(KnowledgeBaseItemModel.id))
        .where(KnowledgeBaseItemModel.user_id == user_id)
        .group_by(KnowledgeBaseItemModel.category)
    )
    return {category: count for category, count in (await session.execute(stmt)).all()}
