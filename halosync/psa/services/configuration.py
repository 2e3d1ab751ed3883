"""Configuration service for HaloPSA system settings.

Each settings endpoint is a small ``BaseService`` subclass; ``ConfigurationService``
composes them behind one facade with ``list_*``/``get_*`` pairs and the
handful of write operations HaloPSA exposes for settings.
"""

from __future__ import annotations

from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import ValidationError
from halosync.psa.models import (
    Category,
    CustomField,
    EmailTemplate,
    Priority,
    Team,
    TicketStatus,
    TicketTemplate,
    TicketType,
    Workflow,
)
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import (
    transform_category,
    transform_custom_field,
    transform_email_template,
    transform_priority,
    transform_team,
    transform_ticket_status,
    transform_ticket_template,
    transform_ticket_type,
    transform_workflow,
)

CONFIG_PAGE_SIZE = 100


class _CustomFieldService(BaseService[CustomField]):
    endpoint = "/CustomField"
    resource_name = "CustomField"
    cache_ttl = CacheTTL.SCHEMA

    def transform(self, data: dict[str, Any]) -> CustomField:
        return transform_custom_field(data)


class _StatusService(BaseService[TicketStatus]):
    endpoint = "/Status"
    resource_name = "Status"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> TicketStatus:
        return transform_ticket_status(data)


class _TicketTypeService(BaseService[TicketType]):
    endpoint = "/TicketType"
    resource_name = "TicketType"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> TicketType:
        return transform_ticket_type(data)


class _PriorityService(BaseService[Priority]):
    endpoint = "/Priority"
    resource_name = "Priority"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> Priority:
        return transform_priority(data)


class _CategoryService(BaseService[Category]):
    endpoint = "/Category"
    resource_name = "Category"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> Category:
        return transform_category(data)


class _TeamConfigService(BaseService[Team]):
    endpoint = "/Team"
    resource_name = "Team"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> Team:
        return transform_team(data)


class _WorkflowService(BaseService[Workflow]):
    endpoint = "/Workflow"
    resource_name = "Workflow"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> Workflow:
        return transform_workflow(data)


class _EmailTemplateService(BaseService[EmailTemplate]):
    endpoint = "/EmailTemplate"
    resource_name = "EmailTemplate"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> EmailTemplate:
        return transform_email_template(data)


class _TicketTemplateService(BaseService[TicketTemplate]):
    endpoint = "/TicketTemplate"
    resource_name = "TicketTemplate"
    cache_ttl = CacheTTL.CONFIG

    def transform(self, data: dict[str, Any]) -> TicketTemplate:
        return transform_ticket_template(data)


def _require(data: dict[str, Any], resource: str) -> dict[str, Any]:
    if not data:
        raise ValidationError([f"{resource} payload is empty"])
    return data


class ConfigurationService:
    """Read/write access to HaloPSA settings (statuses, types, templates...)."""

    def __init__(self, client, page_size: int = CONFIG_PAGE_SIZE):
        self.client = client
        self.custom_fields = _CustomFieldService(client, page_size)
        self.statuses = _StatusService(client, page_size)
        self.ticket_types = _TicketTypeService(client, page_size)
        self.priorities = _PriorityService(client, page_size)
        self.categories = _CategoryService(client, page_size)
        self.teams = _TeamConfigService(client, page_size)
        self.workflows = _WorkflowService(client, page_size)
        self.email_templates = _EmailTemplateService(client, page_size)
        self.ticket_templates = _TicketTemplateService(client, page_size)

    # Custom fields

    async def list_custom_fields(self, params: dict[str, Any] | None = None) -> list[CustomField]:
        return await self.custom_fields.list(params)

    async def get_custom_field(self, field_id: int) -> CustomField:
        return await self.custom_fields.get(field_id)

    async def create_custom_field(self, data: dict[str, Any]) -> CustomField:
        return await self.custom_fields.create(_require(data, "CustomField"))

    # Statuses, types, priorities, categories, teams

    async def list_ticket_statuses(self, params: dict[str, Any] | None = None) -> list[TicketStatus]:
        return await self.statuses.list(params)

    async def get_ticket_status(self, status_id: int) -> TicketStatus:
        return await self.statuses.get(status_id)

    async def list_ticket_types(self, params: dict[str, Any] | None = None) -> list[TicketType]:
        return await self.ticket_types.list(params)

    async def get_ticket_type(self, type_id: int) -> TicketType:
        return await self.ticket_types.get(type_id)

    async def list_priorities(self, params: dict[str, Any] | None = None) -> list[Priority]:
        return await self.priorities.list(params)

    async def get_priority(self, priority_id: int) -> Priority:
        return await self.priorities.get(priority_id)

    async def list_categories(self, params: dict[str, Any] | None = None) -> list[Category]:
        return await self.categories.list(params)

    async def get_category(self, category_id: int) -> Category:
        return await self.categories.get(category_id)

    async def list_teams(self, params: dict[str, Any] | None = None) -> list[Team]:
        return await self.teams.list(params)

    async def get_team(self, team_id: int) -> Team:
        return await self.teams.get(team_id)

    # Workflows

    async def list_workflows(self, params: dict[str, Any] | None = None) -> list[Workflow]:
        return await self.workflows.list(params)

    async def get_workflow(self, workflow_id: int) -> Workflow:
        return await self.workflows.get(workflow_id)

    async def create_workflow(self, data: dict[str, Any]) -> Workflow:
        return await self.workflows.create(_require(data, "Workflow"))

    async def toggle_workflow(self, workflow_id: int, is_active: bool) -> Workflow:
        return await self.workflows.update({"id": workflow_id, "isActive": is_active})

    # Templates

    async def list_email_templates(self, params: dict[str, Any] | None = None) -> list[EmailTemplate]:
        return await self.email_templates.list(params)

    async def get_email_template(self, template_id: int) -> EmailTemplate:
        return await self.email_templates.get(template_id)

    async def create_email_template(self, data: dict[str, Any]) -> EmailTemplate:
        return await self.email_templates.create(_require(data, "EmailTemplate"))

    async def update_email_template(self, data: dict[str, Any]) -> EmailTemplate:
        if not data.get("id"):
            raise ValidationError(["EmailTemplate update requires an id"])
        return await self.email_templates.update(data)

    async def list_ticket_templates(self, params: dict[str, Any] | None = None) -> list[TicketTemplate]:
        return await self.ticket_templates.list(params)

    async def get_ticket_template(self, template_id: int) -> TicketTemplate:
        return await self.ticket_templates.get(template_id)

    async def create_ticket_template(self, data: dict[str, Any]) -> TicketTemplate:
        return await self.ticket_templates.create(_require(data, "TicketTemplate"))
