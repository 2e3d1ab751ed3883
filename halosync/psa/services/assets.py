"""Asset (configuration item) services."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.models import Asset, AssetStats, AssetType, parse_halo_datetime
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import transform_asset, transform_asset_type


class AssetTypeService(BaseService[AssetType]):
    endpoint = "/AssetType"
    resource_name = "AssetType"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> AssetType:
        return transform_asset_type(data)

    async def list_active(self, **params: Any) -> list[AssetType]:
        return [t for t in await self.list(params) if not t.inactive]


class AssetService(BaseService[Asset]):
    endpoint = "/Asset"
    resource_name = "Asset"
    cache_ttl = CacheTTL.LOOKUP

    def __init__(self, client, default_page_size: int = 100):
        super().__init__(client, default_page_size)
        self.asset_types = AssetTypeService(client, default_page_size)

    def transform(self, data: dict[str, Any]) -> Asset:
        return transform_asset(data)

    async def list_active(self, count: int = 100, **params: Any) -> list[Asset]:
        return await self.list(
            {"includeactive": True, "includeinactive": False, "count": count, **params}
        )

    async def list_by_client(self, client_id: int, **params: Any) -> list[Asset]:
        return await self.list({"client_id": client_id, **params})

    async def list_by_site(self, site_id: int, **params: Any) -> list[Asset]:
        return await self.list({"site_id": site_id, **params})

    async def list_by_type(self, asset_type_id: int, **params: Any) -> list[Asset]:
        return await self.list({"assettype_id": asset_type_id, **params})

    async def list_by_user(self, user_id: int, **params: Any) -> list[Asset]:
        return await self.list({"user_id": user_id, **params})

    async def search(self, query: str, count: int = 50, **params: Any) -> list[Asset]:
        return await self.list({"search": query, "count": count, **params})

    async def list_warranty_expiring(
        self, days: int = 30, count: int = 100, now: datetime | None = None, **params: Any
    ) -> list[Asset]:
        """Active assets whose warranty ends within ``days``, soonest first."""
        now = now or datetime.now(timezone.utc)
        cutoff = now + timedelta(days=days)

        expiring: list[tuple[datetime, Asset]] = []
        for asset in await self.list_active(count, **params):
            expiry = parse_halo_datetime(asset.warranty_expiry)
            if expiry is not None and now < expiry <= cutoff:
                expiring.append((expiry, asset))

        expiring.sort(key=lambda pair: pair[0])
        return [asset for _, asset in expiring]

    async def list_warranty_expired(
        self, count: int = 100, now: datetime | None = None, **params: Any
    ) -> list[Asset]:
        return [a for a in await self.list_active(count, **params) if a.warranty_expired(now)]

    async def get_summary_stats(self, client_id: int | None = None) -> AssetStats:
        assets = await self.list({"count": 1000, "client_id": client_id})
        active = [a for a in assets if not a.inactive]

        by_client = Counter(a.client_name or "Unknown" for a in active)
        return AssetStats(
            total=len(assets),
            active=len(active),
            inactive=len(assets) - len(active),
            by_type=dict(Counter(a.asset_type_name or "Unknown" for a in active)),
            warranty_expired=sum(1 for a in active if a.warranty_expired()),
            warranty_expiring_30d=len(await self.list_warranty_expiring(30)),
            top_by_client=dict(by_client.most_common(10)),
        )
