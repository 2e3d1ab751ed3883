"""Unit tests for ticket and action services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from halosync.psa.errors import NotFoundError, WriteError
from halosync.psa.services.tickets import CLOSED_STATUS_ID, TicketService


def routed_get(routes: dict):
    """Build a client.get side effect that answers by path."""

    async def _get(path, params=None, *, cache_ttl=None):
        if path not in routes:
            raise NotFoundError(path.strip("/").split("/")[0], path.rsplit("/", 1)[-1])
        value = routes[path]
        return value(params) if callable(value) else value

    return _get


def echo_post():
    """client.post side effect that returns the posted records with ids."""

    async def _post(path, body=None):
        return [{"id": item.get("id", 1000 + i), **item} for i, item in enumerate(body)]

    return _post


class TestTicketQueries:
    """Test list helpers and their query parameters."""

    @pytest.mark.asyncio
    async def test_list_open(self, psa_client):
        psa_client.get.return_value = {"tickets": [{"id": 1, "summary": "a"}]}
        service = TicketService(psa_client)

        tickets = await service.list_open(client_id=4)

        assert [t.id for t in tickets] == [1]
        path, params = psa_client.get.await_args.args
        assert path == "/Tickets"
        assert params["open_only"] is True
        assert params["client_id"] == 4
        assert params["count"] == 50

    @pytest.mark.asyncio
    async def test_list_closed_uses_date_cleared(self, psa_client):
        service = TicketService(psa_client)

        await service.list_closed(start_date="2024-01-01", end_date="2024-01-31")

        params = psa_client.get.await_args.args[1]
        assert params["closed_only"] is True
        assert params["datesearch"] == "datecleared"
        assert params["startdate"] == "2024-01-01"

    @pytest.mark.asyncio
    async def test_sla_breached_flag(self, psa_client):
        service = TicketService(psa_client)

        await service.list_sla_breached(count=10)

        params = psa_client.get.await_args.args[1]
        assert params == {"slabreached": True, "count": 10}

    @pytest.mark.asyncio
    async def test_get_with_actions(self, psa_client):
        psa_client.get.side_effect = routed_get(
            {
                "/Tickets/5": {"id": 5, "summary": "printer"},
                "/Actions": {"actions": [{"id": 1, "note": "n1"}, {"id": 2, "note": "n2"}]},
            }
        )
        service = TicketService(psa_client)

        ticket = await service.get_with_actions(5)

        assert ticket.id == 5
        assert [a.note for a in ticket.actions] == ["n1", "n2"]


class TestTicketWrites:
    """Test action, assignment and close operations."""

    @pytest.mark.asyncio
    async def test_add_action_payload(self, psa_client):
        psa_client.post.side_effect = echo_post()
        service = TicketService(psa_client)

        action = await service.add_action(5, "Rebooted", outcome_id=3, time_taken=0.5)

        psa_client.post.assert_awaited_once_with(
            "/Actions",
            [
                {
                    "ticket_id": 5,
                    "note": "Rebooted",
                    "hiddenfromuser": False,
                    "outcome_id": 3,
                    "timetaken": 0.5,
                }
            ],
        )
        assert action.note == "Rebooted"

    @pytest.mark.asyncio
    async def test_add_action_empty_response(self, psa_client):
        psa_client.post.return_value = []
        service = TicketService(psa_client)

        with pytest.raises(WriteError):
            await service.add_action(5, "x")

    @pytest.mark.asyncio
    async def test_assign_only_sends_given_fields(self, psa_client):
        psa_client.post.side_effect = echo_post()
        service = TicketService(psa_client)

        await service.assign(5, agent_id=2)

        assert psa_client.post.await_args.args == ("/Tickets", [{"id": 5, "agent_id": 2}])

    @pytest.mark.asyncio
    async def test_close_with_note(self, psa_client):
        psa_client.post.side_effect = echo_post()
        service = TicketService(psa_client)

        ticket = await service.close(5, note="Resolved")

        paths = [call.args[0] for call in psa_client.post.await_args_list]
        assert paths == ["/Actions", "/Tickets"]
        assert psa_client.post.await_args.args[1] == [{"id": 5, "status_id": CLOSED_STATUS_ID}]
        assert ticket.status_id == CLOSED_STATUS_ID


class TestSummaryStats:
    @pytest.mark.asyncio
    async def test_groups_and_counts(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "status_name": "New", "priority_name": "High", "agent_name": "Sam", "client_name": "Acme"},
            {"id": 2, "status_name": "New", "priority_name": "Low", "client_name": "Acme", "slafixstate": 2},
            {"id": 3, "status_name": "Closed", "client_name": "Beta", "dateclosed": "2024-01-02"},
        ]
        service = TicketService(psa_client)

        stats = await service.get_summary_stats()

        assert stats.total == 3
        assert stats.open == 2
        assert stats.closed == 1
        assert stats.sla_breached == 1
        assert stats.by_status == {"New": 2, "Closed": 1}
        assert stats.by_agent == {"Sam": 1, "Unassigned": 1}
        assert stats.by_client == {"Acme": 2, "Beta": 1}
        assert psa_client.get.await_args.args[1]["count"] == 1000


class TestFindDuplicates:
    """Test similarity scoring of recent same-client tickets."""

    @pytest.mark.asyncio
    async def test_scores_and_filters(self, psa_client):
        recent = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
        psa_client.get.side_effect = routed_get(
            {
                "/Tickets/1": {
                    "id": 1,
                    "summary": "Email not syncing on phone",
                    "client_id": 7,
                    "category_1": "Email",
                    "priority_id": 2,
                },
                "/Tickets": [
                    {"id": 1, "summary": "Email not syncing on phone", "client_id": 7},
                    {
                        "id": 2,
                        "summary": "email not syncing on phone",
                        "client_id": 7,
                        "category_1": "Email",
                        "priority_id": 2,
                        "datecreated": recent,
                    },
                    {"id": 3, "summary": "Printer jammed", "client_id": 7},
                    {"id": 4, "summary": "", "client_id": 7},
                ],
            }
        )
        service = TicketService(psa_client)

        duplicates = await service.find_duplicates(1)

        assert [d.ticket_id for d in duplicates] == [2]
        assert duplicates[0].similarity_score == 1.0
        assert duplicates[0].matching_words == ["email", "not", "on", "phone", "syncing"]

    @pytest.mark.asyncio
    async def test_boosts_push_over_threshold(self, psa_client):
        psa_client.get.side_effect = routed_get(
            {
                "/Tickets/1": {
                    "id": 1,
                    "summary": "outlook crashes on start",
                    "client_id": 7,
                    "category_1": "Software",
                    "priority_id": 3,
                },
                "/Tickets": [
                    # Jaccard 3/5 = 0.6, plus 0.1 + 0.05
                    {
                        "id": 2,
                        "summary": "outlook crashes at start",
                        "client_id": 7,
                        "category_1": "Software",
                        "priority_id": 3,
                    },
                ],
            }
        )
        service = TicketService(psa_client)

        duplicates = await service.find_duplicates(1)

        assert duplicates[0].similarity_score == 0.75

    @pytest.mark.asyncio
    async def test_no_client_returns_empty(self, psa_client):
        psa_client.get.return_value = {"id": 1, "summary": "orphan"}
        service = TicketService(psa_client)

        assert await service.find_duplicates(1) == []


class TestMergeTickets:
    """Test merging secondaries into a primary ticket."""

    @pytest.mark.asyncio
    async def test_copies_notes_and_closes(self, psa_client):
        psa_client.get.side_effect = routed_get(
            {
                "/Tickets/1": {"id": 1, "summary": "primary"},
                "/Tickets/2": {"id": 2, "summary": "secondary"},
                "/Actions": [
                    {"id": 11, "note": "first note", "who": "Sam"},
                    {"id": 12, "note": ""},
                ],
            }
        )
        psa_client.post.side_effect = echo_post()
        service = TicketService(psa_client)

        result = await service.merge_tickets(1, [2])

        assert result.actions_copied == 1
        assert result.merged_tickets == [{"id": 2, "summary": "secondary", "actions_copied": 1}]
        assert result.errors == []

        notes = [
            call.args[1][0]["note"]
            for call in psa_client.post.await_args_list
            if call.args[0] == "/Actions"
        ]
        assert notes[0].startswith("--- TICKET MERGE ---")
        assert "[Merged from Ticket #2]" in notes[1]
        assert "Original author: Sam" in notes[1]
        assert "merged into Ticket #1" in notes[2]

    @pytest.mark.asyncio
    async def test_failed_secondary_recorded(self, psa_client):
        psa_client.get.side_effect = routed_get({"/Tickets/1": {"id": 1, "summary": "p"}})
        psa_client.post.side_effect = echo_post()
        service = TicketService(psa_client)

        result = await service.merge_tickets(1, [99])

        assert result.merged_tickets == []
        assert result.errors[0]["ticket_id"] == 99

    @pytest.mark.asyncio
    async def test_missing_primary_raises(self, psa_client):
        psa_client.get.side_effect = routed_get({})
        service = TicketService(psa_client)

        with pytest.raises(NotFoundError):
            await service.merge_tickets(1, [2])
