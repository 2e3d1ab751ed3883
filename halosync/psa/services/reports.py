"""Report, scheduled report and dashboard services."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from halosync.psa.cache import CacheTTL
from halosync.psa.errors import ValidationError
from halosync.psa.models import Dashboard, Report, ReportResult, ScheduledReport
from halosync.psa.services.base import BaseService
from halosync.psa.transforms import (
    REPORT_FORMATS,
    REPORT_FREQUENCIES,
    transform_dashboard,
    transform_report,
    transform_scheduled_report,
)

logger = logging.getLogger(__name__)

# Numeric widget types as HaloPSA stores them on a dashboard
REPORT_WIDGET_TYPES = {0: "bar chart", 1: "pie chart", 2: "counter (report-based)"}
FILTER_WIDGET_TYPES = {6: "list", 7: "counter (filter-based)"}


def _iso(value: datetime | str | None) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ScheduledReportService(BaseService[ScheduledReport]):
    endpoint = "/ScheduledReport"
    resource_name = "ScheduledReport"
    cache_ttl = CacheTTL.REPORTS

    def transform(self, data: dict[str, Any]) -> ScheduledReport:
        return transform_scheduled_report(data)

    async def list_by_report(self, report_id: int, **params: Any) -> list[ScheduledReport]:
        return await self.list({"report_id": report_id, **params})

    async def schedule(
        self,
        report_id: int,
        name: str,
        frequency: str,
        recipients: list[str],
        output_format: str = "pdf",
        time_of_day: str = "08:00",
        day_of_week: int | None = None,
        day_of_month: int | None = None,
    ) -> ScheduledReport:
        """Create a scheduled delivery of a report.

        Raises:
            ValidationError: Unknown frequency/format or no recipients
        """
        errors = []
        if frequency not in REPORT_FREQUENCIES:
            errors.append(f"Unknown frequency '{frequency}'")
        if output_format not in REPORT_FORMATS:
            errors.append(f"Unknown output format '{output_format}'")
        if not recipients:
            errors.append("At least one recipient is required")
        if errors:
            raise ValidationError(errors)

        payload: dict[str, Any] = {
            "report_id": report_id,
            "name": name,
            "frequency": frequency,
            "recipients": recipients,
            "output_format": output_format,
            "time_of_day": time_of_day,
        }
        if frequency == "weekly" and day_of_week:
            payload["day_of_week"] = day_of_week
        if frequency == "monthly" and day_of_month:
            payload["day_of_month"] = day_of_month
        return await self.create(payload)


class DashboardService(BaseService[Dashboard]):
    """Dashboards live under ``/DashboardLinks``; widgets are embedded."""

    endpoint = "/DashboardLinks"
    resource_name = "Dashboard"
    cache_ttl = CacheTTL.REPORTS

    def transform(self, data: dict[str, Any]) -> Dashboard:
        return transform_dashboard(data)

    async def list_all(self, count: int = 50, **params: Any) -> list[Dashboard]:
        return await self.list({"count": count, **params})

    async def list_shared(self, count: int = 50, **params: Any) -> list[Dashboard]:
        return await self.list({"is_shared": True, "count": count, **params})

    def validate_widget_config(
        self,
        widget_type: int,
        report_id: int | None = None,
        filter_id: int | None = None,
        ticket_area_id: int | None = None,
    ) -> tuple[bool, str | None]:
        """Check a widget has the references its type needs.

        Report-based types (0, 1, 2) need ``report_id > 0``; filter-based types
        (6, 7) need ``filter_id > 0`` and type 7 also ``ticket_area_id > 0``.

        Returns:
            Tuple of (valid, error message or None)
        """
        if widget_type in REPORT_WIDGET_TYPES and not (report_id and report_id > 0):
            return False, (
                f"Widget type '{REPORT_WIDGET_TYPES[widget_type]}' requires a valid "
                f"report_id > 0. Got report_id={report_id}."
            )

        if widget_type in FILTER_WIDGET_TYPES:
            if not (filter_id and filter_id > 0):
                return False, (
                    f"Widget type '{FILTER_WIDGET_TYPES[widget_type]}' requires a valid "
                    f"filter_id > 0. Got filter_id={filter_id}."
                )
            if widget_type == 7 and not (ticket_area_id and ticket_area_id > 0):
                return False, (
                    "Widget type 'counter (filter-based)' requires ticketarea_id > 0. "
                    f"Got ticketarea_id={ticket_area_id}."
                )

        return True, None

    async def create_dashboard(
        self, name: str, description: str | None = None, widgets: list[dict[str, Any]] | None = None
    ) -> Dashboard:
        """Create a dashboard; each widget dict carries ``title`` and ``type``.

        Raises:
            ValidationError: A widget is missing references its type needs
        """
        payload: dict[str, Any] = {"name": name}
        if description:
            payload["description"] = description

        if widgets:
            errors = []
            rows = []
            for index, widget in enumerate(widgets, start=1):
                valid, error = self.validate_widget_config(
                    widget.get("type", -1),
                    widget.get("report_id"),
                    widget.get("filter_id"),
                    widget.get("ticketarea_id"),
                )
                if not valid:
                    errors.append(error)
                rows.append(
                    {
                        "i": str(index),
                        "x": 0,
                        "y": 0,
                        "w": 4,
                        "h": 2,
                        **{k: v for k, v in widget.items() if v is not None},
                    }
                )
            if errors:
                raise ValidationError(errors)
            payload["widgets"] = rows

        return await self.create(payload)


class ReportService(BaseService[Report]):
    endpoint = "/Report"
    resource_name = "Report"
    cache_ttl = CacheTTL.REPORTS

    def __init__(self, client, default_page_size: int = 100):
        super().__init__(client, default_page_size)
        self.scheduled_reports = ScheduledReportService(client, default_page_size)
        self.dashboards = DashboardService(client, default_page_size)

    def transform(self, data: dict[str, Any]) -> Report:
        return transform_report(data)

    async def list_by_category(self, category: str, count: int = 50, **params: Any) -> list[Report]:
        return await self.list({"category": category, "count": count, **params})

    async def search(self, query: str, count: int = 50, **params: Any) -> list[Report]:
        return await self.list({"search": query, "count": count, **params})

    async def run(
        self,
        report_id: int,
        start_date: datetime | str | None = None,
        end_date: datetime | str | None = None,
    ) -> ReportResult:
        """Execute a report and return its rows. Results are never cached."""
        data = await self.client.get(
            f"{self.endpoint}/{report_id}/run",
            {"startdate": _iso(start_date), "enddate": _iso(end_date)},
        )
        data = data if isinstance(data, dict) else {}
        rows = data.get("rows") or []
        report = await self.get(report_id)

        return ReportResult(
            report_id=report_id,
            report_name=report.name,
            columns=data.get("columns") or [],
            rows=rows,
            row_count=data.get("record_count") or len(rows),
            executed_at=datetime.now(timezone.utc).isoformat(),
        )

    async def create_report(
        self,
        name: str,
        sql_query: str,
        description: str | None = None,
        category: str | None = None,
        is_shared: bool = False,
        chart_type: int | None = None,
        x_axis: str | None = None,
        y_axis: str | None = None,
    ) -> Report:
        """Create a custom SQL report.

        HaloPSA expects ``sql`` and ``isshared`` rather than the names used by
        the domain record. Chart settings are only sent with a chart type.
        """
        if not name or not sql_query:
            raise ValidationError(["Report requires a name and SQL query"])

        payload: dict[str, Any] = {"name": name, "sql": sql_query, "isshared": is_shared}
        if description:
            payload["description"] = description
        if category:
            payload["category"] = category
        if chart_type is not None:
            payload.update({"charttype": chart_type, "count": True, "showgraphvalues": True})
            if x_axis:
                payload["xaxis"] = x_axis
            if y_axis:
                payload["yaxis"] = y_axis

        report = await self.create(payload)
        logger.info(f"Created report '{report.name}' with ID {report.id}")
        return report
