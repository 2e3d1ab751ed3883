"""Base class for HaloPSA resource services.

Defines the contract every resource family implements: one endpoint, one
pure ``transform`` from wire record to domain record, and the shared
list/get/create/update/delete operations.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from halosync.psa.client import PSAClient
from halosync.psa.errors import NotFoundError, WriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Envelope keys HaloPSA uses to wrap collections
LIST_ENVELOPE_KEYS = ("records", "tickets", "clients")


def parse_list_response(data: Any) -> list[dict[str, Any]]:
    """Extract wire records from a list response.

    Accepts a bare array or an object wrapping the array under one of the
    known envelope keys. Anything else yields an empty list.
    """
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        for key in LIST_ENVELOPE_KEYS:
            records = data.get(key)
            if isinstance(records, list):
                return [item for item in records if isinstance(item, dict)]
    return []


def parse_write_response(data: Any) -> list[dict[str, Any]]:
    """Extract records from a write response (array, envelope, or single object)."""
    records = parse_list_response(data)
    if records:
        return records
    if isinstance(data, dict) and data.get("id") is not None:
        return [data]
    return []


class BaseService(ABC, Generic[T]):
    """Abstract base class for one HaloPSA resource family.

    Subclasses set ``endpoint`` and ``resource_name`` and implement
    ``transform``. Writes follow HaloPSA's bulk-array convention: payloads are
    always posted as arrays, and single-item helpers return the first record.
    """

    endpoint: str = ""
    resource_name: str = "Resource"
    cache_ttl: float | None = None

    def __init__(self, client: PSAClient, default_page_size: int = 100):
        """Initialize service.

        Args:
            client: Authenticated API client for one connection
            default_page_size: ``count`` sent with list calls unless overridden
        """
        self.client = client
        self.default_page_size = default_page_size

    @abstractmethod
    def transform(self, data: dict[str, Any]) -> T:
        """Map one wire record to its domain record. Must never raise."""

    def _list_params(self, params: dict[str, Any] | None) -> dict[str, Any]:
        merged = dict(params or {})
        if merged.get("count") is None and self.default_page_size:
            merged["count"] = self.default_page_size
        return merged

    async def list_raw(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch a collection without transforming it."""
        data = await self.client.get(
            self.endpoint, self._list_params(params), cache_ttl=self.cache_ttl
        )
        return parse_list_response(data)

    async def list(self, params: dict[str, Any] | None = None) -> list[T]:
        """Fetch a collection and transform each record."""
        return [self.transform(item) for item in await self.list_raw(params)]

    async def get(self, resource_id: int | str, params: dict[str, Any] | None = None) -> T:
        """Fetch one record by id.

        Raises:
            NotFoundError: Upstream returned an empty or absent result
        """
        data = await self.client.get(
            f"{self.endpoint}/{resource_id}", params, cache_ttl=self.cache_ttl
        )
        if isinstance(data, list):
            data = data[0] if data else None
        if not data or not isinstance(data, dict):
            raise NotFoundError(self.resource_name, resource_id)
        return self.transform(data)

    async def create_many(self, items: list[dict[str, Any]]) -> list[T]:
        """Create records in one call.

        Raises:
            WriteError: PSA returned no records
        """
        return await self._write(items, "create")

    async def update_many(self, items: list[dict[str, Any]]) -> list[T]:
        """Update records in one call (HaloPSA upserts on POST with ``id``).

        Raises:
            WriteError: PSA returned no records
        """
        return await self._write(items, "update")

    async def create(self, item: dict[str, Any]) -> T:
        return (await self.create_many([item]))[0]

    async def update(self, item: dict[str, Any]) -> T:
        return (await self.update_many([item]))[0]

    async def delete(self, resource_id: int | str) -> None:
        await self.client.delete(f"{self.endpoint}/{resource_id}")

    async def _write(self, items: list[dict[str, Any]], operation: str) -> list[T]:
        data = await self.client.post(self.endpoint, items)
        records = parse_write_response(data)
        if not records:
            logger.warning(f"{operation} on {self.endpoint} returned no records")
            raise WriteError(self.resource_name, operation)
        return [self.transform(record) for record in records]
