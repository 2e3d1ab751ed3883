"""Knowledge-base synchronization orchestrator.

Walks the HaloPSA resource families in a fixed order and upserts each record
into the user's knowledge base. Resilient by phase: one failing resource
family is recorded on the sync record and the run moves on.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from halosync.config import AppConfig, get_config
from halosync.connections.service import build_client, describe, get_active_connection, mark_used
from halosync.core.logging import bind_sync_context, clear_sync_context
from halosync.db.models import ConnectionModel, KnowledgeBaseSyncModel
from halosync.knowledge import repository
from halosync.knowledge.types import (
    KnowledgeCategory,
    KnowledgeItemDraft,
    SyncMode,
    SyncResult,
    SyncStatus,
)
from halosync.psa.cache import ResponseCache
from halosync.psa.errors import NoActiveConnectionError, PhaseError
from halosync.psa.services import HaloServices
from halosync.security.cipher import CredentialCipher

logger = structlog.get_logger(__name__)

ServicesFactory = Callable[[ConnectionModel], HaloServices]


@dataclass
class SyncPhase:
    label: str
    collect: Callable[[HaloServices], Awaitable[list[KnowledgeItemDraft]]]
    quick: bool = False


def _draft(
    category: KnowledgeCategory,
    subcategory: str,
    title: str,
    content: dict[str, Any],
    summary: str,
    source_id: Any = None,
) -> KnowledgeItemDraft:
    return KnowledgeItemDraft(
        category=category,
        subcategory=subcategory,
        title=title,
        content=content,
        summary=summary,
        source_id=str(source_id) if source_id is not None else None,
        source_name=title if source_id is not None else None,
    )


class KnowledgeSyncOrchestrator:
    """Runs one knowledge-base synchronization for one user.

    Responsibilities:
    1. Resolve the user's active connection (fail before recording anything)
    2. Create the sync record and execute each phase in order
    3. Upsert every fetched record, counting adds and updates
    4. Finalize the sync record exactly once
    """

    def __init__(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        mode: SyncMode = SyncMode.FULL,
        services_factory: ServicesFactory | None = None,
        cipher: CredentialCipher | None = None,
        cache: ResponseCache | None = None,
        config: AppConfig | None = None,
    ):
        """Initialize orchestrator.

        Args:
            session: Database session; the orchestrator commits its own progress
            user_id: Owner of the connection and knowledge base
            mode: ``full`` runs every phase, ``quick`` only the core ones
            services_factory: Builds services for a connection (tests inject fakes)
            cipher: Credential cipher; defaults to the process-wide one
            cache: Response cache shared with other runs (None disables caching)
            config: Application config; defaults to ``get_config()``
        """
        self.session = session
        self.user_id = user_id
        self.mode = mode
        self.config = config or get_config()
        self.cipher = cipher
        self.cache = cache
        self.services_factory = services_factory or self._default_services

    def _default_services(self, connection: ConnectionModel) -> HaloServices:
        client = build_client(connection, cipher=self.cipher, cache=self.cache)
        return HaloServices.from_client(client, self.config.psa.default_page_size)

    @property
    def phases(self) -> list[SyncPhase]:
        return [
            SyncPhase("ticket types", self._ticket_types, quick=True),
            SyncPhase("statuses", self._statuses, quick=True),
            SyncPhase("priorities", self._priorities, quick=True),
            SyncPhase("categories", self._categories),
            SyncPhase("custom fields", self._custom_fields),
            SyncPhase("workflows", self._workflows),
            SyncPhase("email templates", self._email_templates),
            SyncPhase("ticket templates", self._ticket_templates),
            SyncPhase("clients", self._clients),
            SyncPhase("agents", self._agents, quick=True),
            SyncPhase("teams", self._teams, quick=True),
        ]

    async def run(self) -> SyncResult:
        """Execute the synchronization.

        Returns:
            SyncResult with counters, errors and final status

        Raises:
            NoActiveConnectionError: User has no active connection (no record created)
        """
        connection = await get_active_connection(self.session, self.user_id)
        if connection is None:
            raise NoActiveConnectionError()

        started = time.monotonic()
        await mark_used(self.session, connection)
        record = await repository.create_sync_record(
            self.session, self.user_id, connection.id, self.mode
        )
        result = SyncResult(sync_id=record.id, sync_type=self.mode)
        bind_sync_context(user_id=self.user_id, sync_id=str(record.id))
        logger.info("kb_sync_started", mode=self.mode.value, connection=describe(connection))
        await self.session.commit()

        try:
            await self.session.refresh(connection)
            services = self.services_factory(connection)
            try:
                for phase in self.phases:
                    if self.mode is SyncMode.QUICK and not phase.quick:
                        continue
                    await self._run_phase(phase, services, result)
            finally:
                await services.close()

            result.status = result.final_status()
            result.duration_seconds = time.monotonic() - started
            await self.session.refresh(record)
            await repository.finalize_sync_record(self.session, record, result)
            await self.session.commit()

        except Exception as exc:
            logger.error("kb_sync_failed", error=str(exc), exc_info=True)
            result.record_error(str(exc) or type(exc).__name__)
            result.status = SyncStatus.FAILED
            result.duration_seconds = time.monotonic() - started
            await self._finalize_failed(record, result)
            raise
        finally:
            clear_sync_context()

        logger.info(
            "kb_sync_completed",
            status=result.status.value,
            added=result.items_added,
            updated=result.items_updated,
            errors=result.error_count,
            duration_seconds=round(result.duration_seconds or 0.0, 2),
        )
        return result

    async def _run_phase(
        self,
        phase: SyncPhase,
        services: HaloServices,
        result: SyncResult,
    ) -> None:
        bind_sync_context(phase=phase.label)
        # Counted locally; a phase's rows and counts land together or not at all
        added = updated = 0
        try:
            items = await phase.collect(services)
            for item in items:
                if await repository.upsert_item(self.session, self.user_id, item):
                    added += 1
                else:
                    updated += 1
            await self.session.commit()
        except Exception as exc:
            error = PhaseError(f"Failed to sync {phase.label}", exc)
            logger.warning("kb_sync_phase_failed", error=str(error))
            result.record_error(str(error))
            await self.session.rollback()
            return

        result.items_added += added
        result.items_updated += updated
        logger.info("kb_sync_phase_completed", added=added, updated=updated)

    async def _finalize_failed(self, record: KnowledgeBaseSyncModel, result: SyncResult) -> None:
        await self.session.rollback()
        await self.session.refresh(record)
        if record.status != SyncStatus.IN_PROGRESS.value:
            return
        await repository.finalize_sync_record(self.session, record, result)
        await self.session.commit()

    # Phases

    async def _ticket_types(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.CONFIGURATION,
                "ticket_types",
                t.name,
                t.model_dump(),
                t.description or f"Ticket type: {t.name}",
                t.id,
            )
            for t in await services.configuration.list_ticket_types()
        ]

    async def _statuses(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.CONFIGURATION,
                "statuses",
                s.name,
                s.model_dump(),
                f"Status: {s.name} ({s.state_label})",
                s.id,
            )
            for s in await services.configuration.list_ticket_statuses()
        ]

    async def _priorities(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.CONFIGURATION,
                "priorities",
                p.name,
                p.model_dump(),
                f"Priority level: {p.name}" + (" (Default)" if p.is_default else ""),
                p.id,
            )
            for p in await services.configuration.list_priorities()
        ]

    async def _categories(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.CONFIGURATION,
                "categories",
                c.name,
                c.model_dump(),
                f"Category: {c.name}" + (f" (Level {c.level})" if c.parent_id else ""),
                c.id,
            )
            for c in await services.configuration.list_categories()
        ]

    async def _custom_fields(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        drafts = []
        for field in await services.configuration.list_custom_fields():
            name = field.label or field.name
            drafts.append(
                _draft(
                    KnowledgeCategory.CUSTOM_FIELDS,
                    field.table or "custom_field",
                    name,
                    field.model_dump(),
                    f"Custom field: {name} ({field.type or 'unknown'})",
                    field.id,
                )
            )
        return drafts

    async def _workflows(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.WORKFLOWS,
                "workflow",
                w.name,
                w.model_dump(),
                f"Workflow: {w.name} ({'Active' if w.is_active else 'Inactive'})",
                w.id,
            )
            for w in await services.configuration.list_workflows()
        ]

    async def _email_templates(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.TEMPLATES,
                "email_template",
                t.name,
                t.model_dump(),
                f"Email template: {t.name}",
                t.id,
            )
            for t in await services.configuration.list_email_templates()
        ]

    async def _ticket_templates(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        return [
            _draft(
                KnowledgeCategory.TEMPLATES,
                "ticket_template",
                t.name,
                t.model_dump(),
                f"Ticket template: {t.name}",
                t.id,
            )
            for t in await services.configuration.list_ticket_templates()
        ]

    async def _clients(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        clients = await services.clients.list_active()
        if not clients:
            return []

        drafts = [
            _draft(
                KnowledgeCategory.CLIENTS,
                "summary",
                "Client Summary",
                {
                    "totalClients": len(clients),
                    "clients": [
                        {"id": c.id, "name": c.name, "openTickets": c.open_ticket_count}
                        for c in clients
                    ],
                },
                f"{len(clients)} active clients in HaloPSA",
            )
        ]

        ranked = sorted(clients, key=lambda c: c.open_ticket_count, reverse=True)
        for client in ranked[: self.config.sync.top_clients]:
            drafts.append(
                _draft(
                    KnowledgeCategory.CLIENTS,
                    "client",
                    client.name,
                    {
                        "id": client.id,
                        "name": client.name,
                        "email": client.accounts_email_address,
                        "openTickets": client.open_ticket_count,
                    },
                    f"Client: {client.name} - {client.open_ticket_count} open tickets",
                    client.id,
                )
            )
        return drafts

    async def _agents(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        limit = self.config.sync.agent_limit
        drafts = []
        for agent in (await services.agents.list_active(count=limit))[:limit]:
            team = agent.primary_team_name
            drafts.append(
                _draft(
                    KnowledgeCategory.AGENTS,
                    "agent",
                    agent.full_name,
                    {"id": agent.id, "name": agent.full_name, "email": agent.email, "team": team},
                    f"Agent: {agent.full_name}" + (f" - Team: {team}" if team else ""),
                    agent.id,
                )
            )
        return drafts

    async def _teams(self, services: HaloServices) -> list[KnowledgeItemDraft]:
        limit = self.config.sync.team_limit
        return [
            _draft(
                KnowledgeCategory.AGENTS,
                "team",
                team.name,
                team.model_dump(),
                f"Team: {team.name}",
                team.id,
            )
            for team in (await services.teams.list({"count": limit}))[:limit]
        ]


async def run_full_sync(
    session: AsyncSession,
    user_id: str,
    *,
    mode: SyncMode = SyncMode.FULL,
    services_factory: ServicesFactory | None = None,
    cipher: CredentialCipher | None = None,
    cache: ResponseCache | None = None,
    config: AppConfig | None = None,
) -> SyncResult:
    """Convenience wrapper: build an orchestrator and run it."""
    orchestrator = KnowledgeSyncOrchestrator(
        session,
        user_id,
        mode=mode,
        services_factory=services_factory,
        cipher=cipher,
        cache=cache,
        config=config,
    )
    return await orchestrator.run()


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_sync_status(
    session: AsyncSession,
    user_id: str,
    stale_after_hours: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Summarize the latest sync and the user's knowledge-base contents.

    ``needs_sync`` is true when there has never been a sync, or the last one
    completed more than ``stale_after_hours`` ago.
    """
    if stale_after_hours is None:
        stale_after_hours = get_config().sync.stale_after_hours
    now = now or datetime.now(timezone.utc)

    last = await repository.get_latest_sync(session, user_id)
    by_category = await repository.count_items_by_category(session, user_id)

    last_sync = None
    needs_sync = last is None
    if last is not None:
        completed_at = _as_utc(last.completed_at)
        last_sync = {
            "id": str(last.id),
            "status": last.status,
            "sync_type": last.sync_type,
            "items_added": last.items_added,
            "items_updated": last.items_updated,
            "items_removed": last.items_removed,
            "error_count": last.error_count,
            "errors": last.errors or [],
            "started_at": _as_utc(last.started_at),
            "completed_at": completed_at,
        }
        needs_sync = completed_at is not None and (
            now - completed_at > timedelta(hours=stale_after_hours)
        )

    return {
        "last_sync": last_sync,
        "total_items": sum(by_category.values()),
        "items_by_category": by_category,
        "needs_sync": needs_sync,
    }
