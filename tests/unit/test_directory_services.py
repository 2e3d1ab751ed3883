"""Unit tests for client, agent and asset services."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import NotFoundError
from halosync.psa.services.agents import AgentService, TeamService
from halosync.psa.services.assets import AssetService
from halosync.psa.services.clients import ClientService

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def by_path(routes: dict):
    async def _get(path, params=None, *, cache_ttl=None):
        return routes.get(path, [])

    return _get


class TestClientService:
    """Test client queries and statistics."""

    @pytest.mark.asyncio
    async def test_list_active_params(self, psa_client):
        psa_client.get.return_value = {"clients": [{"id": 1, "name": "Acme"}]}
        service = ClientService(psa_client)

        clients = await service.list_active(count=20)

        assert clients[0].name == "Acme"
        path, params = psa_client.get.await_args.args
        assert path == "/Client"
        assert params == {"includeactive": True, "includeinactive": False, "count": 20}
        assert psa_client.get.await_args.kwargs["cache_ttl"] == CacheTTL.LOOKUP

    @pytest.mark.asyncio
    async def test_get_with_details(self, psa_client):
        psa_client.get.side_effect = by_path(
            {
                "/Client/3": {"id": 3, "name": "Acme"},
                "/Site": [{"id": 10, "name": "HQ", "client_id": 3}],
                "/Users": [{"id": 20, "name": "Ada"}],
            }
        )
        service = ClientService(psa_client)

        client = await service.get_with_details(3)

        assert [s.name for s in client.sites] == ["HQ"]
        assert [u.name for u in client.users] == ["Ada"]
        first_call = psa_client.get.await_args_list[0]
        assert first_call.args == ("/Client/3", {"includedetails": True})

    @pytest.mark.asyncio
    async def test_summary_stats(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "name": "Acme", "open_ticket_count": 5},
            {"id": 2, "name": "Beta", "open_ticket_count": 0},
            {"id": 3, "name": "Gamma", "open_ticket_count": 9},
            {"id": 4, "name": "Gone", "inactive": True, "open_ticket_count": 50},
        ]
        service = ClientService(psa_client)

        stats = await service.get_summary_stats(top=2)

        assert stats.total == 4
        assert stats.active == 3
        assert stats.inactive == 1
        assert stats.total_open_tickets == 14
        assert stats.with_open_tickets == 2
        assert stats.top_by_tickets == [
            {"name": "Gamma", "count": 9},
            {"name": "Acme", "count": 5},
        ]

    @pytest.mark.asyncio
    async def test_users_by_client_include_inactive(self, psa_client):
        service = ClientService(psa_client)

        await service.users.list_by_client(3, include_inactive=True)

        path, params = psa_client.get.await_args.args
        assert path == "/Users"
        assert params["includeinactive"] is True


class TestAgentService:
    """Test agent and team queries."""

    @pytest.mark.asyncio
    async def test_list_active_params(self, psa_client):
        service = AgentService(psa_client)

        await service.list_active(count=5)

        assert psa_client.get.await_args.args == (
            "/Agent",
            {"includeenabled": True, "includedisabled": False, "count": 5},
        )

    @pytest.mark.asyncio
    async def test_get_current(self, psa_client):
        psa_client.get.return_value = {"id": 7, "name": "api", "firstname": "API", "surname": "User"}
        service = AgentService(psa_client)

        agent = await service.get_current()

        assert agent.full_name == "API User"
        psa_client.get.assert_awaited_once_with("/Agent/me")

    @pytest.mark.asyncio
    async def test_get_current_missing(self, psa_client):
        psa_client.get.return_value = []
        service = AgentService(psa_client)

        with pytest.raises(NotFoundError):
            await service.get_current()

    @pytest.mark.asyncio
    async def test_workload_stats(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "name": "a", "open_ticket_count": 4, "tickets_due_today": 1},
            {"id": 2, "name": "b", "open_ticket_count": 2, "tickets_due_today": 0},
        ]
        service = AgentService(psa_client)

        stats = await service.get_workload_stats()

        assert stats.total_open_tickets == 6
        assert stats.total_due_today == 1
        assert stats.average_tickets_per_agent == 3.0
        assert stats.agents[0] == {"id": 1, "name": "a", "open_tickets": 4, "tickets_due_today": 1}

    @pytest.mark.asyncio
    async def test_workload_stats_empty(self, psa_client):
        service = AgentService(psa_client)

        stats = await service.get_workload_stats()

        assert stats.average_tickets_per_agent == 0.0

    @pytest.mark.asyncio
    async def test_teams_list_active_filters_inactive(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "name": "L1"},
            {"id": 2, "name": "Old", "inactive": True},
        ]
        service = TeamService(psa_client)

        teams = await service.list_active()

        assert [t.name for t in teams] == ["L1"]


class TestAssetService:
    """Test asset queries and warranty windows."""

    @pytest.mark.asyncio
    async def test_list_by_type_param(self, psa_client):
        service = AssetService(psa_client)

        await service.list_by_type(4)

        assert psa_client.get.await_args.args[1]["assettype_id"] == 4

    @pytest.mark.asyncio
    async def test_warranty_expiring_window(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "warrantyexpiry": "2024-06-20T00:00:00Z"},
            {"id": 2, "warrantyexpiry": "2024-06-05T00:00:00Z"},
            {"id": 3, "warrantyexpiry": "2024-05-01T00:00:00Z"},
            {"id": 4, "warrantyexpiry": "2024-09-01T00:00:00Z"},
            {"id": 5},
        ]
        service = AssetService(psa_client)

        expiring = await service.list_warranty_expiring(days=30, now=NOW)

        assert [a.id for a in expiring] == [2, 1]

    @pytest.mark.asyncio
    async def test_warranty_expired(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "warrantyexpiry": "2024-05-01T00:00:00Z"},
            {"id": 2, "warrantyexpiry": "2024-07-01T00:00:00Z"},
        ]
        service = AssetService(psa_client)

        expired = await service.list_warranty_expired(now=NOW)

        assert [a.id for a in expired] == [1]

    @pytest.mark.asyncio
    async def test_summary_stats(self, psa_client):
        psa_client.get.return_value = [
            {"id": 1, "assettype_name": "Laptop", "client_name": "Acme"},
            {"id": 2, "assettype_name": "Laptop", "client_name": "Acme"},
            {"id": 3, "client_name": "Beta"},
            {"id": 4, "inactive": True},
        ]
        service = AssetService(psa_client)

        stats = await service.get_summary_stats()

        assert stats.total == 4
        assert stats.active == 3
        assert stats.by_type == {"Laptop": 2, "Unknown": 1}
        assert stats.top_by_client == {"Acme": 2, "Beta": 1}
        assert stats.warranty_expired == 0
