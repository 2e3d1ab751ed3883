"""Ticket and action services."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import HaloError, WriteError
from halosync.psa.models import Action, DuplicateCandidate, MergeResult, Ticket, TicketStats
from halosync.psa.services.base import BaseService, parse_write_response
from halosync.psa.transforms import transform_action, transform_ticket

logger = logging.getLogger(__name__)

# HaloPSA's stock "Closed" status id
CLOSED_STATUS_ID = 9


class ActionService(BaseService[Action]):
    endpoint = "/Actions"
    resource_name = "Action"

    def transform(self, data: dict[str, Any]) -> Action:
        return transform_action(data)

    async def list_for_ticket(self, ticket_id: int, include_system: bool = True) -> list[Action]:
        data = await self.client.get(
            self.endpoint, {"ticket_id": ticket_id, "excludesys": not include_system}
        )
        if isinstance(data, dict) and isinstance(data.get("actions"), list):
            data = data["actions"]
        if not isinstance(data, list):
            return []
        return [self.transform(item) for item in data if isinstance(item, dict)]


class TicketService(BaseService[Ticket]):
    endpoint = "/Tickets"
    resource_name = "Ticket"
    cache_ttl = CacheTTL.TICKETS

    def __init__(self, client, default_page_size: int = 50):
        super().__init__(client, default_page_size)
        self.actions = ActionService(client)

    def transform(self, data: dict[str, Any]) -> Ticket:
        return transform_ticket(data)

    async def list_open(
        self,
        client_id: int | None = None,
        agent_id: int | None = None,
        team_id: int | None = None,
        count: int = 50,
        **params: Any,
    ) -> list[Ticket]:
        return await self.list(
            {
                "count": count,
                "open_only": True,
                "client_id": client_id,
                "agent_id": agent_id,
                "team_id": team_id,
                **params,
            }
        )

    async def list_closed(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        client_id: int | None = None,
        count: int = 50,
        **params: Any,
    ) -> list[Ticket]:
        return await self.list(
            {
                "count": count,
                "closed_only": True,
                "datesearch": "datecleared",
                "startdate": start_date,
                "enddate": end_date,
                "client_id": client_id,
                **params,
            }
        )

    async def list_by_status(self, status_id: int, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"status_id": status_id, "count": count, **params})

    async def list_by_client(self, client_id: int, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"client_id": client_id, "count": count, **params})

    async def list_by_agent(self, agent_id: int, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"agent_id": agent_id, "count": count, **params})

    async def list_sla_breached(self, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"slabreached": True, "count": count, **params})

    async def list_unassigned(self, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"unassigned": True, "count": count, **params})

    async def search(self, query: str, count: int = 50, **params: Any) -> list[Ticket]:
        return await self.list({"search": query, "count": count, **params})

    async def get_with_actions(self, ticket_id: int) -> Ticket:
        """Fetch a ticket with details and its full action history."""
        ticket = await self.get(ticket_id, {"includedetails": True})
        ticket.actions = await self.actions.list_for_ticket(ticket_id)
        return ticket

    async def add_action(
        self,
        ticket_id: int,
        note: str,
        outcome_id: int | None = None,
        hidden_from_user: bool = False,
        time_taken: float | None = None,
    ) -> Action:
        payload: dict[str, Any] = {
            "ticket_id": ticket_id,
            "note": note,
            "hiddenfromuser": hidden_from_user,
        }
        if outcome_id:
            payload["outcome_id"] = outcome_id
        if time_taken:
            payload["timetaken"] = time_taken

        data = await self.client.post(self.actions.endpoint, [payload])
        records = parse_write_response(data)
        if not records:
            raise WriteError("Action")
        return transform_action(records[0])

    async def assign(
        self, ticket_id: int, agent_id: int | None = None, team_id: int | None = None
    ) -> Ticket:
        payload: dict[str, Any] = {"id": ticket_id}
        if agent_id is not None:
            payload["agent_id"] = agent_id
        if team_id is not None:
            payload["team_id"] = team_id
        return await self.update(payload)

    async def close(
        self, ticket_id: int, note: str | None = None, status_id: int = CLOSED_STATUS_ID
    ) -> Ticket:
        """Close a ticket, optionally adding a closing note first."""
        if note:
            await self.add_action(ticket_id, note)
        return await self.update({"id": ticket_id, "status_id": status_id})

    async def get_summary_stats(
        self, client_id: int | None = None, agent_id: int | None = None
    ) -> TicketStats:
        tickets = await self.list({"count": 1000, "client_id": client_id, "agent_id": agent_id})
        open_tickets = [t for t in tickets if t.is_open]

        def group(items: list[Ticket], field: str) -> dict[str, int]:
            return dict(Counter(getattr(t, field) or "Unassigned" for t in items))

        return TicketStats(
            total=len(tickets),
            open=len(open_tickets),
            closed=len(tickets) - len(open_tickets),
            sla_breached=sum(1 for t in open_tickets if t.is_sla_breached),
            by_status=group(tickets, "status_name"),
            by_priority=group(tickets, "priority_name"),
            by_agent=group(open_tickets, "agent_name"),
            by_client=group(tickets, "client_name"),
        )

    async def find_duplicates(
        self,
        ticket_id: int,
        hours_lookback: int = 72,
        similarity_threshold: float = 0.7,
    ) -> list[DuplicateCandidate]:
        """Find recent tickets from the same client with similar summaries.

        Similarity is the Jaccard index of lower-cased summary words, boosted
        by 0.1 for a shared first-level category and 0.05 for a shared
        priority, capped at 1.0.

        Returns:
            Candidates at or above the threshold, most similar first
        """
        source = await self.get(ticket_id)
        if not source.client_id:
            return []

        since = datetime.now(timezone.utc) - timedelta(hours=hours_lookback)
        candidates = await self.list(
            {"client_id": source.client_id, "startdate": since.isoformat(), "count": 100}
        )

        source_words = set(source.summary.lower().split())
        duplicates: list[DuplicateCandidate] = []

        for candidate in candidates:
            if candidate.id == ticket_id:
                continue
            candidate_words = set(candidate.summary.lower().split())
            if not source_words or not candidate_words:
                continue

            shared = source_words & candidate_words
            similarity = len(shared) / len(source_words | candidate_words)
            if source.category_1 and candidate.category_1 == source.category_1:
                similarity += 0.1
            if source.priority_id and candidate.priority_id == source.priority_id:
                similarity += 0.05
            similarity = min(similarity, 1.0)

            if similarity >= similarity_threshold:
                duplicates.append(
                    DuplicateCandidate(
                        ticket_id=candidate.id,
                        summary=candidate.summary,
                        status=candidate.status_name,
                        created=candidate.date_created,
                        similarity_score=round(similarity, 2),
                        matching_words=sorted(shared),
                    )
                )

        duplicates.sort(key=lambda d: d.similarity_score, reverse=True)
        return duplicates

    async def merge_tickets(
        self,
        primary_ticket_id: int,
        secondary_ticket_ids: list[int],
        merge_note: str | None = None,
    ) -> MergeResult:
        """Copy notes from secondary tickets into the primary, then close them.

        A failure on one secondary ticket is recorded and the rest continue.
        """
        result = MergeResult(primary_ticket_id=primary_ticket_id)

        await self.get(primary_ticket_id)
        note = merge_note or "Merged tickets: " + ", ".join(f"#{i}" for i in secondary_ticket_ids)
        await self.add_action(primary_ticket_id, f"--- TICKET MERGE ---\n{note}")

        for secondary_id in secondary_ticket_ids:
            try:
                secondary = await self.get_with_actions(secondary_id)
                copied = 0
                for action in secondary.actions:
                    if not action.note:
                        continue
                    await self.add_action(
                        primary_ticket_id,
                        f"[Merged from Ticket #{secondary_id}]\n"
                        f"Original author: {action.who or 'Unknown'}\n"
                        f"Original time: {action.action_time or 'Unknown'}\n\n"
                        f"{action.note}",
                        hidden_from_user=action.hidden_from_user,
                    )
                    copied += 1

                await self.close(
                    secondary_id,
                    f"This ticket has been merged into Ticket #{primary_ticket_id}.\n"
                    "All notes and attachments have been copied to the primary ticket.",
                )
                result.actions_copied += copied
                result.merged_tickets.append(
                    {"id": secondary_id, "summary": secondary.summary, "actions_copied": copied}
                )
            except HaloError as exc:
                logger.warning(f"Merging ticket {secondary_id} failed: {exc}")
                result.errors.append({"ticket_id": secondary_id, "error": str(exc)})

        return result
