"""HaloPSA resource services."""

from __future__ import annotations

from dataclasses import dataclass

from halosync.psa.client import PSAClient
from halosync.psa.services.agents import AgentService, TeamService
from halosync.psa.services.assets import AssetService, AssetTypeService
from halosync.psa.services.base import BaseService, parse_list_response, parse_write_response
from halosync.psa.services.canned_text import CannedTextCategoryService, CannedTextService
from halosync.psa.services.clients import ClientService, SiteService, UserService
from halosync.psa.services.configuration import ConfigurationService
from halosync.psa.services.reports import DashboardService, ReportService, ScheduledReportService
from halosync.psa.services.tickets import ActionService, TicketService

__all__ = [
    "ActionService",
    "AgentService",
    "AssetService",
    "AssetTypeService",
    "BaseService",
    "CannedTextCategoryService",
    "CannedTextService",
    "ClientService",
    "ConfigurationService",
    "DashboardService",
    "HaloServices",
    "ReportService",
    "ScheduledReportService",
    "SiteService",
    "TeamService",
    "TicketService",
    "UserService",
    "parse_list_response",
    "parse_write_response",
]


@dataclass
class HaloServices:
    """One instance of every resource service, sharing a single client."""

    client: PSAClient
    tickets: TicketService
    clients: ClientService
    agents: AgentService
    teams: TeamService
    assets: AssetService
    configuration: ConfigurationService
    reports: ReportService
    canned_text: CannedTextService
    canned_text_categories: CannedTextCategoryService

    @classmethod
    def from_client(cls, client: PSAClient, page_size: int = 100) -> HaloServices:
        return cls(
            client=client,
            tickets=TicketService(client),
            clients=ClientService(client, page_size),
            agents=AgentService(client, page_size),
            teams=TeamService(client, page_size),
            assets=AssetService(client, page_size),
            configuration=ConfigurationService(client, page_size),
            reports=ReportService(client, page_size),
            canned_text=CannedTextService(client, page_size),
            canned_text_categories=CannedTextCategoryService(client, page_size),
        )

    async def close(self) -> None:
        await self.client.close()
