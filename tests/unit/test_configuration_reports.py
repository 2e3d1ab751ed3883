"""Unit tests for configuration, report and dashboard services."""

from __future__ import annotations

import pytest

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import ValidationError
from halosync.psa.models import CustomField, EmailTemplate, TicketTemplate, Workflow
from halosync.psa.services.configuration import ConfigurationService
from halosync.psa.services.reports import DashboardService, ReportService, ScheduledReportService


async def echo_post(path, body=None):
    return [{"id": item.get("id", 500), **item} for item in body]


class TestConfigurationService:
    """Test settings reads and writes."""

    @pytest.mark.asyncio
    async def test_statuses_cached_as_config(self, psa_client):
        psa_client.get.return_value = [{"id": 1, "name": "New", "isOpen": True}]
        service = ConfigurationService(psa_client)

        statuses = await service.list_ticket_statuses()

        assert statuses[0].name == "New"
        assert psa_client.get.await_args.args[0] == "/Status"
        assert psa_client.get.await_args.kwargs["cache_ttl"] == CacheTTL.CONFIG

    @pytest.mark.asyncio
    async def test_custom_fields_cached_as_schema(self, psa_client):
        service = ConfigurationService(psa_client)

        await service.list_custom_fields()

        assert psa_client.get.await_args.kwargs["cache_ttl"] == CacheTTL.SCHEMA

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [
            ("list_ticket_types", "/TicketType"),
            ("list_priorities", "/Priority"),
            ("list_categories", "/Category"),
            ("list_teams", "/Team"),
            ("list_workflows", "/Workflow"),
            ("list_email_templates", "/EmailTemplate"),
            ("list_ticket_templates", "/TicketTemplate"),
        ],
    )
    async def test_list_endpoints(self, psa_client, method, path):
        service = ConfigurationService(psa_client)

        await getattr(service, method)()

        assert psa_client.get.await_args.args == (path, {"count": 100})

    @pytest.mark.asyncio
    async def test_get_priority(self, psa_client):
        psa_client.get.return_value = {"id": 2, "name": "High"}
        service = ConfigurationService(psa_client)

        priority = await service.get_priority(2)

        assert priority.name == "High"
        assert psa_client.get.await_args.args[0] == "/Priority/2"

    @pytest.mark.asyncio
    async def test_create_workflow(self, psa_client):
        psa_client.post.side_effect = echo_post
        service = ConfigurationService(psa_client)

        created = await service.create_workflow({"name": "Escalate", "isActive": True})

        assert isinstance(created, Workflow)
        assert created.name == "Escalate"
        psa_client.post.assert_awaited_once_with(
            "/Workflow", [{"name": "Escalate", "isActive": True}]
        )

    @pytest.mark.asyncio
    async def test_create_with_empty_payload(self, psa_client):
        service = ConfigurationService(psa_client)

        with pytest.raises(ValidationError):
            await service.create_custom_field({})

        psa_client.post.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,payload,expected",
        [
            ("create_custom_field", {"name": "CFassettag"}, CustomField),
            ("create_email_template", {"name": "Welcome"}, EmailTemplate),
            ("update_email_template", {"id": 3, "name": "Welcome"}, EmailTemplate),
            ("create_ticket_template", {"name": "New starter"}, TicketTemplate),
        ],
    )
    async def test_writes_return_single_record(self, psa_client, method, payload, expected):
        psa_client.post.side_effect = echo_post
        service = ConfigurationService(psa_client)

        record = await getattr(service, method)(payload)

        assert isinstance(record, expected)
        assert record.id == payload.get("id", 500)
        assert psa_client.post.await_args.args[1] == [payload]

    @pytest.mark.asyncio
    async def test_toggle_workflow(self, psa_client):
        psa_client.post.side_effect = echo_post
        service = ConfigurationService(psa_client)

        updated = await service.toggle_workflow(4, False)

        assert psa_client.post.await_args.args == ("/Workflow", [{"id": 4, "isActive": False}])
        assert isinstance(updated, Workflow)
        assert updated.is_active is False

    @pytest.mark.asyncio
    async def test_update_email_template_needs_id(self, psa_client):
        service = ConfigurationService(psa_client)

        with pytest.raises(ValidationError, match="requires an id"):
            await service.update_email_template({"subject": "Hi"})


class TestScheduledReports:
    """Test schedule validation."""

    @pytest.mark.asyncio
    async def test_schedule_weekly(self, psa_client):
        psa_client.post.side_effect = echo_post
        service = ScheduledReportService(psa_client)

        scheduled = await service.schedule(
            3, "Weekly SLA", "weekly", ["ops@example.com"], day_of_week=1, day_of_month=15
        )

        payload = psa_client.post.await_args.args[1][0]
        assert payload["day_of_week"] == 1
        assert "day_of_month" not in payload
        assert payload["time_of_day"] == "08:00"
        assert scheduled.frequency == "weekly"

    @pytest.mark.asyncio
    async def test_schedule_collects_errors(self, psa_client):
        service = ScheduledReportService(psa_client)

        with pytest.raises(ValidationError) as exc_info:
            await service.schedule(3, "x", "hourly", [], output_format="docx")

        assert len(exc_info.value.errors) == 3


class TestDashboards:
    """Test widget validation and dashboard creation."""

    @pytest.mark.parametrize(
        "kwargs,valid",
        [
            ({"widget_type": 0, "report_id": 5}, True),
            ({"widget_type": 1}, False),
            ({"widget_type": 2, "report_id": 0}, False),
            ({"widget_type": 6, "filter_id": 3}, True),
            ({"widget_type": 6}, False),
            ({"widget_type": 7, "filter_id": 3}, False),
            ({"widget_type": 7, "filter_id": 3, "ticket_area_id": 1}, True),
            ({"widget_type": 4}, True),
        ],
    )
    def test_validate_widget_config(self, psa_client, kwargs, valid):
        service = DashboardService(psa_client)

        ok, error = service.validate_widget_config(**kwargs)

        assert ok is valid
        assert (error is None) is valid

    @pytest.mark.asyncio
    async def test_create_dashboard_layout(self, psa_client):
        psa_client.post.side_effect = echo_post
        service = DashboardService(psa_client)

        await service.create_dashboard(
            "Ops", widgets=[{"title": "Open by team", "type": 0, "report_id": 9, "filter_id": None}]
        )

        payload = psa_client.post.await_args.args[1][0]
        assert payload["name"] == "Ops"
        assert payload["widgets"] == [
            {"i": "1", "x": 0, "y": 0, "w": 4, "h": 2, "title": "Open by team", "type": 0, "report_id": 9}
        ]

    @pytest.mark.asyncio
    async def test_create_dashboard_rejects_bad_widget(self, psa_client):
        service = DashboardService(psa_client)

        with pytest.raises(ValidationError):
            await service.create_dashboard("Ops", widgets=[{"title": "x", "type": 1}])

        psa_client.post.assert_not_awaited()


class TestReportService:
    """Test report execution and creation."""

    @pytest.mark.asyncio
    async def test_run(self, psa_client):
        async def _get(path, params=None, *, cache_ttl=None):
            if path == "/Report/3/run":
                return {"columns": ["a"], "rows": [{"a": 1}, {"a": 2}]}
            return {"id": 3, "name": "Open tickets"}

        psa_client.get.side_effect = _get
        service = ReportService(psa_client)

        result = await service.run(3, start_date="2024-01-01")

        assert result.report_name == "Open tickets"
        assert result.row_count == 2
        assert result.columns == ["a"]
        run_call = psa_client.get.await_args_list[0]
        assert run_call.args == ("/Report/3/run", {"startdate": "2024-01-01", "enddate": None})
        assert "cache_ttl" not in run_call.kwargs

    @pytest.mark.asyncio
    async def test_run_prefers_record_count(self, psa_client):
        async def _get(path, params=None, *, cache_ttl=None):
            if path.endswith("/run"):
                return {"rows": [{"a": 1}], "record_count": 40}
            return {"id": 3, "name": "r"}

        psa_client.get.side_effect = _get
        service = ReportService(psa_client)

        assert (await service.run(3)).row_count == 40

    @pytest.mark.asyncio
    async def test_create_report_payload(self, psa_client):
        psa_client.post.side_effect = echo_post
        service = ReportService(psa_client)

        report = await service.create_report(
            "Tickets by client", "SELECT 1", chart_type=0, x_axis="client"
        )

        payload = psa_client.post.await_args.args[1][0]
        assert payload["sql"] == "SELECT 1"
        assert payload["isshared"] is False
        assert payload["charttype"] == 0
        assert payload["xaxis"] == "client"
        assert "yaxis" not in payload
        assert report.sql_query == "SELECT 1"

    @pytest.mark.asyncio
    async def test_create_report_requires_sql(self, psa_client):
        service = ReportService(psa_client)

        with pytest.raises(ValidationError):
            await service.create_report("Empty", "")
