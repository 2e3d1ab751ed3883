"""Canned text (quick response) services."""

from __future__ import annotations

import re
from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import ValidationError
from halosync.psa.models import (
    CANNED_TEXT_VARIABLES,
    CannedText,
    CannedTextCategory,
    CannedTextScope,
    CannedTextVariable,
)
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import (
    parse_scope,
    transform_canned_text,
    transform_canned_text_category,
)

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def replace_variables(content: str, variables: dict[str, str]) -> str:
    """Substitute ``{{key}}`` placeholders; unknown placeholders are left as-is."""
    for key, value in variables.items():
        content = content.replace(f"{{{{{key}}}}}", str(value))
    return content


class CannedTextService(BaseService[CannedText]):
    endpoint = "/CannedText"
    resource_name = "CannedText"
    cache_ttl = CacheTTL.LOOKUP

    def transform(self, data: dict[str, Any]) -> CannedText:
        return transform_canned_text(data)

    async def list_filtered(
        self,
        agent_id: int | None = None,
        team_id: int | None = None,
        category_id: int | None = None,
        scope: CannedTextScope | str | None = None,
        is_global: bool | None = None,
        search: str | None = None,
        count: int | None = None,
    ) -> list[CannedText]:
        params: dict[str, Any] = {}
        if agent_id:
            params["agent_id"] = agent_id
        if team_id:
            params["team_id"] = team_id
        if category_id:
            params["category_id"] = category_id
        if scope:
            params["scope"] = parse_scope(scope).value
        if is_global is not None:
            params["is_global"] = is_global
        if search:
            params["search"] = search
        if count:
            params["count"] = count
        return await self.list(params)

    async def list_by_scope(self, scope: CannedTextScope | str) -> list[CannedText]:
        return await self.list_filtered(scope=scope)

    async def list_by_category(self, category_id: int) -> list[CannedText]:
        return await self.list_filtered(category_id=category_id)

    async def get_available_for_agent(
        self, agent_id: int, team_id: int | None = None
    ) -> list[CannedText]:
        """Active texts an agent can use: global, then team, then personal.

        When the same id appears in more than one scope the later scope wins.
        Results are ordered by ``order``.
        """
        texts = await self.list_filtered(is_global=True)
        if team_id:
            texts += await self.list_filtered(team_id=team_id)
        texts += await self.list_filtered(agent_id=agent_id)

        by_id: dict[int, CannedText] = {}
        for text in texts:
            if text.is_active:
                by_id[text.id] = text
        return sorted(by_id.values(), key=lambda t: t.order)

    async def search(
        self, query: str, scope: CannedTextScope | str | None = None
    ) -> list[CannedText]:
        return await self.list_filtered(search=query, scope=scope)

    async def find_by_shortcut(
        self, shortcut: str, agent_id: int | None = None
    ) -> CannedText | None:
        if agent_id:
            texts = await self.get_available_for_agent(agent_id)
        else:
            texts = await self.list_filtered(is_global=True)

        wanted = shortcut.lower()
        for text in texts:
            if text.shortcut and text.shortcut.lower() == wanted:
                return text
        return None

    async def create_canned_text(
        self,
        name: str,
        content: str,
        shortcut: str | None = None,
        scope: CannedTextScope | str = CannedTextScope.ALL,
        category_id: int | None = None,
        agent_id: int | None = None,
        team_id: int | None = None,
        is_global: bool = False,
        html_content: str | None = None,
    ) -> CannedText:
        if not name or not content:
            raise ValidationError(["Canned text requires a name and content"])

        payload: dict[str, Any] = {
            "name": name,
            "content": content,
            "scope": parse_scope(scope).value,
            "is_global": is_global,
            "is_active": True,
        }
        if shortcut:
            payload["shortcut"] = shortcut
        if category_id:
            payload["category_id"] = category_id
        if agent_id:
            payload["agent_id"] = agent_id
        if team_id:
            payload["team_id"] = team_id
        if html_content:
            payload["html_content"] = html_content
        return await self.create(payload)

    async def get_expanded_content(self, canned_text_id: int, variables: dict[str, str]) -> str:
        text = await self.get(canned_text_id)
        return replace_variables(text.content, variables)

    async def expand_shortcut(
        self, shortcut: str, variables: dict[str, str], agent_id: int | None = None
    ) -> str | None:
        text = await self.find_by_shortcut(shortcut, agent_id)
        if text is None:
            return None
        return replace_variables(text.content, variables)

    def replace_variables(self, content: str, variables: dict[str, str]) -> str:
        return replace_variables(content, variables)

    def get_available_variables(
        self, scope: CannedTextScope | str | None = None
    ) -> list[CannedTextVariable]:
        if not scope or parse_scope(scope) is CannedTextScope.ALL:
            return list(CANNED_TEXT_VARIABLES)
        scope = parse_scope(scope)
        return [v for v in CANNED_TEXT_VARIABLES if v.scope in (scope, CannedTextScope.ALL)]

    def validate_variables(self, content: str) -> tuple[bool, list[str]]:
        """Check every ``{{name}}`` in content against the known variables.

        Returns:
            Tuple of (valid, unknown variables in order of appearance)
        """
        known = {v.name for v in CANNED_TEXT_VARIABLES}
        used = [f"{{{{{name}}}}}" for name in VARIABLE_PATTERN.findall(content)]
        unknown = [name for name in used if name not in known]
        return not unknown, unknown


class CannedTextCategoryService(BaseService[CannedTextCategory]):
    endpoint = "/CannedTextCategory"
    resource_name = "CannedTextCategory"
    cache_ttl = CacheTTL.LOOKUP

    def transform(self, data: dict[str, Any]) -> CannedTextCategory:
        return transform_canned_text_category(data)

    async def list_active(self) -> list[CannedTextCategory]:
        return [c for c in await self.list() if c.is_active]

    async def get_category_tree(self) -> list[CannedTextCategory]:
        """Root categories, each carrying its direct children."""
        categories = await self.list_active()
        roots = [c for c in categories if not c.parent_id]
        return [
            root.model_copy(
                update={"children": [c for c in categories if c.parent_id == root.id]}
            )
            for root in roots
        ]

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        parent_id: int | None = None,
        order: int | None = None,
    ) -> CannedTextCategory:
        if not name:
            raise ValidationError(["Category requires a name"])

        payload: dict[str, Any] = {"name": name, "is_active": True}
        if description:
            payload["description"] = description
        if parent_id:
            payload["parent_id"] = parent_id
        if order is not None:
            payload["order"] = order
        return await self.create(payload)
