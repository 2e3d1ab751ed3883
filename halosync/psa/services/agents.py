"""Agent (technician) and team services."""

from __future__ import annotations

from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import NotFoundError
from halosync.psa.models import Agent, AgentWorkloadStats, Team
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import transform_agent, transform_team


class TeamService(BaseService[Team]):
    endpoint = "/Team"
    resource_name = "Team"
    cache_ttl = CacheTTL.LOOKUP

    def transform(self, data: dict[str, Any]) -> Team:
        return transform_team(data)

    async def list_active(self, **params: Any) -> list[Team]:
        return [team for team in await self.list(params) if not team.inactive]

    async def list_by_department(self, department_id: int, **params: Any) -> list[Team]:
        return await self.list({"department_id": department_id, **params})


class AgentService(BaseService[Agent]):
    endpoint = "/Agent"
    resource_name = "Agent"
    cache_ttl = CacheTTL.LOOKUP

    def __init__(self, client, default_page_size: int = 100):
        super().__init__(client, default_page_size)
        self.teams = TeamService(client, default_page_size)

    def transform(self, data: dict[str, Any]) -> Agent:
        return transform_agent(data)

    async def list_active(self, count: int = 100, **params: Any) -> list[Agent]:
        return await self.list(
            {"includeenabled": True, "includedisabled": False, "count": count, **params}
        )

    async def list_by_team(self, team_id: int, **params: Any) -> list[Agent]:
        return await self.list({"team_id": team_id, **params})

    async def list_by_department(self, department_id: int, **params: Any) -> list[Agent]:
        return await self.list({"department_id": department_id, **params})

    async def search(self, query: str, count: int = 50, **params: Any) -> list[Agent]:
        return await self.list({"search": query, "count": count, **params})

    async def get_current(self) -> Agent:
        """Return the agent the API credentials act as."""
        data = await self.client.get(f"{self.endpoint}/me")
        if not isinstance(data, dict) or not data:
            raise NotFoundError(self.resource_name, "me")
        return self.transform(data)

    async def get_workload_stats(self, agent_id: int | None = None) -> AgentWorkloadStats:
        agents = [await self.get(agent_id)] if agent_id else await self.list_active()

        rows = [
            {
                "id": agent.id,
                "name": agent.full_name,
                "open_tickets": agent.open_ticket_count,
                "tickets_due_today": agent.tickets_due_today,
            }
            for agent in agents
        ]
        total_open = sum(row["open_tickets"] for row in rows)
        return AgentWorkloadStats(
            agents=rows,
            total_open_tickets=total_open,
            total_due_today=sum(row["tickets_due_today"] for row in rows),
            average_tickets_per_agent=total_open / len(rows) if rows else 0.0,
        )
