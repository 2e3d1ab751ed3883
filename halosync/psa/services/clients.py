"""Client (customer), site and end-user services."""

from __future__ import annotations

from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.models import Client, ClientStats, Site, User
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import transform_client, transform_site, transform_user


class SiteService(BaseService[Site]):
    endpoint = "/Site"
    resource_name = "Site"
    cache_ttl = CacheTTL.LOOKUP

    def transform(self, data: dict[str, Any]) -> Site:
        return transform_site(data)

    async def list_by_client(self, client_id: int, **params: Any) -> list[Site]:
        return await self.list({"client_id": client_id, **params})


class UserService(BaseService[User]):
    endpoint = "/Users"
    resource_name = "User"
    cache_ttl = CacheTTL.LOOKUP

    def transform(self, data: dict[str, Any]) -> User:
        return transform_user(data)

    async def list_by_client(
        self, client_id: int, include_inactive: bool = False, **params: Any
    ) -> list[User]:
        return await self.list(
            {
                "client_id": client_id,
                "includeactive": True,
                "includeinactive": include_inactive,
                **params,
            }
        )

    async def list_by_site(self, site_id: int, **params: Any) -> list[User]:
        return await self.list({"site_id": site_id, **params})

    async def search(self, query: str, count: int = 50, **params: Any) -> list[User]:
        return await self.list({"search": query, "count": count, **params})


class ClientService(BaseService[Client]):
    endpoint = "/Client"
    resource_name = "Client"
    cache_ttl = CacheTTL.LOOKUP

    def __init__(self, client, default_page_size: int = 100):
        super().__init__(client, default_page_size)
        self.sites = SiteService(client, default_page_size)
        self.users = UserService(client, default_page_size)

    def transform(self, data: dict[str, Any]) -> Client:
        return transform_client(data)

    async def list_active(self, count: int = 100, **params: Any) -> list[Client]:
        return await self.list(
            {"includeactive": True, "includeinactive": False, "count": count, **params}
        )

    async def list_inactive(self, count: int = 100, **params: Any) -> list[Client]:
        return await self.list(
            {"includeactive": False, "includeinactive": True, "count": count, **params}
        )

    async def search(self, query: str, count: int = 50, **params: Any) -> list[Client]:
        return await self.list({"search": query, "count": count, **params})

    async def get_with_details(self, client_id: int) -> Client:
        """Fetch a client together with its sites and active users."""
        client = await self.get(client_id, {"includedetails": True})
        client.sites = await self.sites.list_by_client(client_id)
        client.users = await self.users.list_by_client(client_id)
        return client

    async def get_summary_stats(self, top: int = 10) -> ClientStats:
        clients = await self.list({"count": 1000})
        active = [c for c in clients if not c.inactive]

        ranked = sorted(active, key=lambda c: c.open_ticket_count, reverse=True)
        return ClientStats(
            total=len(clients),
            active=len(active),
            inactive=len(clients) - len(active),
            total_open_tickets=sum(c.open_ticket_count for c in active),
            with_open_tickets=sum(1 for c in active if c.open_ticket_count > 0),
            top_by_tickets=[
                {"name": c.name, "count": c.open_ticket_count} for c in ranked[:top]
            ],
        )
