"""Wire-format → domain transforms for HaloPSA records.

HaloPSA returns lower/snake-case keys, frequently omits fields and is loose
about types (ids as strings, booleans as "true"). Each ``transform_*``
function is pure and total: it never raises on sparse or oddly typed input.
"""

from __future__ import annotations

import logging
from typing import Any

from halosync.psa.models import (
    Action,
    Agent,
    Asset,
    AssetType,
    CannedText,
    CannedTextCategory,
    CannedTextScope,
    Category,
    Client,
    CustomField,
    Dashboard,
    DashboardWidget,
    EmailTemplate,
    Priority,
    Report,
    ScheduledReport,
    Site,
    Team,
    TeamMembership,
    Ticket,
    TicketStatus,
    TicketTemplate,
    TicketType,
    User,
    Workflow,
)

logger = logging.getLogger(__name__)

WIDGET_TYPES = {"chart", "bar", "pie", "line", "counter", "counter_report", "table", "list"}
REPORT_FREQUENCIES = {"daily", "weekly", "monthly"}
REPORT_FORMATS = {"pdf", "csv", "excel"}


# --- Coercion helpers --------------------------------------------------------


def _first(data: dict, *keys: str) -> Any:
    """Return the first present, non-None value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return _str(value)


def _int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except OverflowError:
        return None
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def _count(value: Any) -> int:
    return _int(value) or 0


def _float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "y"):
            return True
        if lowered in ("false", "0", "no", "n", ""):
            return False
    return default


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_str(item) for item in value if item is not None]


def _as_dict(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def _sla_state(value: Any) -> int | str | None:
    if value is None or isinstance(value, (int, str)):
        return value
    return _str(value)


# --- Tickets -----------------------------------------------------------------


def transform_action(data: Any) -> Action:
    data = _as_dict(data)
    return Action(
        id=_count(data.get("id")),
        ticket_id=_int(data.get("ticket_id")),
        note=_str(data.get("note")),
        who=_str(data.get("who")),
        who_type=_int(data.get("whotype")),
        outcome=_str(data.get("outcome")),
        outcome_id=_int(data.get("outcome_id")),
        action_time=_opt_str(data.get("actiontime")),
        time_taken=_float(data.get("timetaken")),
        hidden_from_user=_bool(data.get("hiddenfromuser")),
    )


def transform_ticket(data: Any) -> Ticket:
    data = _as_dict(data)
    return Ticket(
        id=_count(data.get("id")),
        summary=_str(data.get("summary")),
        details=_str(data.get("details")),
        ticket_type_id=_int(data.get("tickettype_id")),
        ticket_type_name=_str(data.get("tickettype_name")),
        category_1=_str(data.get("category_1")),
        category_2=_str(data.get("category_2")),
        category_3=_str(data.get("category_3")),
        status_id=_int(data.get("status_id")),
        status_name=_str(data.get("status_name")),
        priority_id=_int(data.get("priority_id")),
        priority_name=_str(data.get("priority_name")),
        client_id=_int(data.get("client_id")),
        client_name=_str(data.get("client_name")),
        site_id=_int(data.get("site_id")),
        site_name=_str(data.get("site_name")),
        user_id=_int(data.get("user_id")),
        user_name=_str(data.get("user_name")),
        agent_id=_int(data.get("agent_id")),
        agent_name=_str(data.get("agent_name")),
        team_id=_int(data.get("team_id")),
        team_name=_str(data.get("team")),
        date_created=_opt_str(data.get("datecreated")),
        date_closed=_opt_str(data.get("dateclosed")),
        due_date=_opt_str(data.get("duedate")),
        response_date=_opt_str(data.get("responsedate")),
        sla_response_time=_float(data.get("slaresponsetime")),
        sla_fix_time=_float(data.get("slafixtime")),
        sla_response_state=_sla_state(data.get("slaresponsestate")),
        sla_fix_state=_sla_state(data.get("slafixstate")),
        custom_fields=_dicts(data.get("customfields")),
        actions=[transform_action(a) for a in _dicts(data.get("actions"))],
    )


# --- Clients -----------------------------------------------------------------


def transform_site(data: Any) -> Site:
    data = _as_dict(data)
    return Site(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        client_id=_int(data.get("client_id")),
        client_name=_str(data.get("client_name")),
        line1=_str(data.get("line1")),
        line2=_str(data.get("line2")),
        line3=_str(data.get("line3")),
        line4=_str(data.get("line4")),
        postcode=_str(data.get("postcode")),
        country=_str(data.get("country")),
        phone_number=_str(data.get("phonenumber")),
        fax_number=_str(data.get("faxnumber")),
        inactive=_bool(data.get("inactive")),
        main_site=_bool(data.get("main_site")),
        user_count=_int(data.get("user_count")),
        custom_fields=_dicts(data.get("customfields")),
    )


def transform_user(data: Any) -> User:
    data = _as_dict(data)
    return User(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        first_name=_str(data.get("firstname")),
        surname=_str(data.get("surname")),
        email_address=_str(data.get("emailaddress")),
        phone_number=_str(data.get("phonenumber")),
        mobile_number=_str(data.get("mobilenumber")),
        client_id=_int(data.get("client_id")),
        client_name=_str(data.get("client_name")),
        site_id=_int(data.get("site_id")),
        site_name=_str(data.get("site_name")),
        department_id=_int(data.get("department_id")),
        department_name=_str(data.get("department_name")),
        inactive=_bool(data.get("inactive")),
        is_important_contact=_bool(data.get("isimportantcontact")),
        never_send_emails=_bool(data.get("neversendemails")),
        is_service_account=_bool(data.get("isserviceaccount")),
        date_created=_opt_str(data.get("datecreated")),
        custom_fields=_dicts(data.get("customfields")),
    )


def transform_client(data: Any) -> Client:
    data = _as_dict(data)
    return Client(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        inactive=_bool(data.get("inactive")),
        toplevel_id=_int(data.get("toplevel_id")),
        toplevel_name=_str(data.get("toplevel_name")),
        pritech=_int(data.get("pritech")),
        pritech_name=_str(data.get("pritech_name")),
        sectech=_int(data.get("sectech")),
        sectech_name=_str(data.get("sectech_name")),
        account_manager_tech=_int(data.get("accountmanagertech")),
        account_manager_tech_name=_str(data.get("accountmanagertech_name")),
        main_site_id=_int(data.get("main_site_id")),
        accounts_email_address=_str(data.get("accountsemailaddress")),
        accounts_first_name=_str(data.get("accountsfirstname")),
        accounts_last_name=_str(data.get("accountslastname")),
        open_ticket_count=_count(data.get("open_ticket_count")),
        opps_ticket_count=_count(data.get("opps_ticket_count")),
        notes=_str(data.get("notes")),
        date_created=_opt_str(data.get("datecreated")),
        colour=_str(data.get("colour")),
        custom_fields=_dicts(data.get("customfields")),
        sites=[transform_site(s) for s in _dicts(data.get("sites"))],
        users=[transform_user(u) for u in _dicts(data.get("users"))],
    )


# --- Agents ------------------------------------------------------------------


def transform_team_membership(data: Any) -> TeamMembership:
    """A bare integer is a team id with every access flag off."""
    if isinstance(data, int) and not isinstance(data, bool):
        return TeamMembership(team_id=data)
    data = _as_dict(data)
    return TeamMembership(
        agent_id=_int(data.get("agent_id")),
        team_id=_int(data.get("team_id")),
        team_name=_str(data.get("team_name")),
        department_id=_int(data.get("department_id")),
        role_id=_str(data.get("role_id")),
        unassigned_access=_bool(data.get("unassigned_access")),
        other_agent_access=_bool(data.get("otheragent_access")),
        for_tickets=_bool(data.get("fortickets")),
        for_projects=_bool(data.get("forprojects")),
        for_opps=_bool(data.get("foropps")),
        override_team_email=_bool(data.get("override_team_email")),
        in_section=_bool(data.get("in_section")),
    )


def transform_team(data: Any) -> Team:
    data = _as_dict(data)
    return Team(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        department_id=_int(data.get("department_id")),
        department_name=_str(data.get("department_name")),
        inactive=_bool(data.get("inactive")),
        agent_count=_int(data.get("agent_count")),
        open_ticket_count=_int(data.get("open_ticket_count")),
    )


def transform_agent(data: Any) -> Agent:
    data = _as_dict(data)
    teams = data.get("teams")
    return Agent(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        first_name=_str(data.get("firstname")),
        surname=_str(data.get("surname")),
        email=_str(data.get("email")),
        phone_number=_str(data.get("phonenumber")),
        mobile_number=_str(data.get("mobilenumber")),
        inactive=_bool(data.get("inactive")),
        is_enabled_for_unified_write=_bool(data.get("isenabledforunifiedwrite")),
        role=_str(data.get("role")),
        is_admin=_bool(data.get("isadmin")),
        department_id=_int(data.get("department_id")),
        department_name=_str(data.get("department_name")),
        teams=[transform_team_membership(t) for t in teams] if isinstance(teams, list) else [],
        team_names=_strings(data.get("team_names")),
        open_ticket_count=_count(data.get("open_ticket_count")),
        tickets_due_today=_count(data.get("tickets_due_today")),
        hours_worked_today=_float(data.get("hours_worked_today")),
        utilization_percentage=_float(data.get("utilization_percentage")),
        date_created=_opt_str(data.get("datecreated")),
        last_login_date=_opt_str(data.get("lastlogindate")),
    )


# --- Assets ------------------------------------------------------------------


def transform_asset_type(data: Any) -> AssetType:
    data = _as_dict(data)
    return AssetType(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        asset_group_id=_int(data.get("assetgroup_id")),
        asset_group_name=_str(data.get("assetgroup_name")),
        inactive=_bool(data.get("inactive")),
    )


def transform_asset(data: Any) -> Asset:
    data = _as_dict(data)
    return Asset(
        id=_count(data.get("id")),
        inventory_number=_str(data.get("inventory_number")),
        device_name=_str(data.get("devicename")),
        key_field=_str(data.get("key_field")),
        key_field2=_str(data.get("key_field2")),
        key_field3=_str(data.get("key_field3")),
        asset_type_id=_int(data.get("assettype_id")),
        asset_type_name=_str(data.get("assettype_name")),
        status_id=_int(data.get("status_id")),
        status_name=_str(data.get("status_name")),
        client_id=_int(data.get("client_id")),
        client_name=_str(data.get("client_name")),
        site_id=_int(data.get("site_id")),
        site_name=_str(data.get("site_name")),
        user_id=_int(data.get("user_id")),
        user_name=_str(data.get("user_name")),
        contract_id=_int(data.get("contract_id")),
        contract_name=_str(data.get("contract_name")),
        manufacturer=_str(data.get("manufacturer")),
        model=_str(data.get("model")),
        serial_number=_str(data.get("serialnumber")),
        ip_address=_str(data.get("ipaddress")),
        mac_address=_str(data.get("macaddress")),
        inactive=_bool(data.get("inactive")),
        bookmarked=_bool(data.get("bookmarked")),
        purchase_date=_opt_str(data.get("purchasedate")),
        warranty_expiry=_opt_str(data.get("warrantyexpiry")),
        last_audit_date=_opt_str(data.get("lastauditdate")),
        date_created=_opt_str(data.get("datecreated")),
        purchase_price=_float(data.get("purchaseprice")),
        monthly_cost=_float(data.get("monthlycost")),
        notes=_str(data.get("notes")),
        custom_fields=_dicts(data.get("customfields")),
        open_ticket_count=_int(data.get("open_ticket_count")),
    )


# --- Configuration -----------------------------------------------------------
# Configuration endpoints vary between HaloPSA versions, so both the
# lowercase and camelCase spellings are accepted.


def transform_custom_field(data: Any) -> CustomField:
    data = _as_dict(data)
    return CustomField(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        label=_str(data.get("label")),
        type=_str(_first(data, "type", "type_name")),
        table=_str(_first(data, "table", "table_name")),
        is_required=_bool(_first(data, "is_required", "isRequired", "mandatory")),
        is_visible=_bool(_first(data, "is_visible", "isVisible"), default=True),
        options=_strings(data.get("options")),
    )


def transform_ticket_status(data: Any) -> TicketStatus:
    data = _as_dict(data)
    return TicketStatus(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        is_open=_bool(_first(data, "is_open", "isOpen")),
        is_closed=_bool(_first(data, "is_closed", "isClosed")),
        is_default=_bool(_first(data, "is_default", "isDefault", "isdefault")),
        colour=_str(data.get("colour")),
    )


def transform_ticket_type(data: Any) -> TicketType:
    data = _as_dict(data)
    return TicketType(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        is_default=_bool(_first(data, "is_default", "isDefault", "isdefault")),
    )


def transform_priority(data: Any) -> Priority:
    data = _as_dict(data)
    return Priority(
        id=_count(_first(data, "id", "priorityid")),
        name=_str(data.get("name")),
        colour=_str(data.get("colour")),
        is_default=_bool(_first(data, "is_default", "isDefault", "isdefault")),
        sla_id=_int(_first(data, "sla_id", "slaId", "slaid")),
    )


def transform_category(data: Any) -> Category:
    data = _as_dict(data)
    return Category(
        id=_count(data.get("id")),
        name=_str(_first(data, "name", "value")),
        level=_int(_first(data, "level", "category_level", "categoryLevel")),
        parent_id=_int(_first(data, "parent_id", "parentId")),
    )


def transform_workflow(data: Any) -> Workflow:
    data = _as_dict(data)
    return Workflow(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        is_active=_bool(_first(data, "is_active", "isActive", "active")),
        trigger_type=_str(_first(data, "trigger_type", "triggerType")),
    )


def transform_email_template(data: Any) -> EmailTemplate:
    data = _as_dict(data)
    return EmailTemplate(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        subject=_str(data.get("subject")),
        body=_str(data.get("body")),
        is_active=_bool(_first(data, "is_active", "isActive", "active")),
    )


def transform_ticket_template(data: Any) -> TicketTemplate:
    data = _as_dict(data)
    return TicketTemplate(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        summary=_str(data.get("summary")),
        details=_str(data.get("details")),
        ticket_type_id=_int(_first(data, "tickettype_id", "ticketTypeId")),
        priority_id=_int(_first(data, "priority_id", "priorityId")),
        category_id=_int(_first(data, "category_id", "categoryId")),
    )


# --- Reports -----------------------------------------------------------------


def transform_report(data: Any) -> Report:
    data = _as_dict(data)
    return Report(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        category=_str(data.get("category")),
        sql_query=_str(_first(data, "sql_query", "sql")),
        is_shared=_bool(_first(data, "is_shared", "isshared")),
        author_id=_int(data.get("author_id")),
        author_name=_str(data.get("author_name")),
        date_created=_opt_str(data.get("datecreated")),
        date_modified=_opt_str(data.get("datemodified")),
    )


def transform_scheduled_report(data: Any) -> ScheduledReport:
    data = _as_dict(data)
    frequency = _str(data.get("frequency")).lower()
    output_format = _str(data.get("output_format")).lower()
    return ScheduledReport(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        report_id=_int(data.get("report_id")),
        report_name=_str(data.get("report_name")),
        frequency=frequency if frequency in REPORT_FREQUENCIES else "weekly",
        recipients=_strings(data.get("recipients")),
        output_format=output_format if output_format in REPORT_FORMATS else "pdf",
        time_of_day=_str(data.get("time_of_day")),
        day_of_week=_int(data.get("day_of_week")),
        day_of_month=_int(data.get("day_of_month")),
        is_active=_bool(data.get("is_active"), default=True),
        last_run=_opt_str(data.get("last_run")),
        next_run=_opt_str(data.get("next_run")),
    )


def transform_widget(data: Any) -> DashboardWidget:
    data = _as_dict(data)
    widget_type = _str(data.get("widget_type")).lower()
    return DashboardWidget(
        id=_count(data.get("id")),
        dashboard_id=_int(data.get("dashboard_id")),
        name=_str(_first(data, "name", "title")),
        widget_type=widget_type if widget_type in WIDGET_TYPES else "chart",
        report_id=_int(data.get("report_id")),
        filter_id=_int(data.get("filter_id")),
        ticket_area_id=_int(data.get("ticketarea_id")),
        width=_int(_first(data, "width", "w")) or 4,
        height=_int(_first(data, "height", "h")) or 2,
        position_x=_count(_first(data, "position_x", "x")),
        position_y=_count(_first(data, "position_y", "y")),
        colour=_str(data.get("initialcolour")),
    )


def transform_dashboard(data: Any) -> Dashboard:
    data = _as_dict(data)
    return Dashboard(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        is_shared=_bool(data.get("is_shared")),
        is_default=_bool(data.get("is_default")),
        author_id=_int(data.get("author_id")),
        author_name=_str(data.get("author_name")),
        widgets=[transform_widget(w) for w in _dicts(data.get("widgets"))],
    )


# --- Canned text -------------------------------------------------------------


def parse_scope(value: Any) -> CannedTextScope:
    """Map a free-text scope onto the known set; unknown values become ALL."""
    try:
        return CannedTextScope(_str(value).strip().lower())
    except ValueError:
        if value:
            logger.debug(f"Unknown canned text scope {value!r}, using 'all'")
        return CannedTextScope.ALL


def transform_canned_text(data: Any) -> CannedText:
    data = _as_dict(data)
    return CannedText(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        shortcut=_str(data.get("shortcut")),
        content=_str(data.get("content")),
        html_content=_str(data.get("html_content")),
        scope=parse_scope(data.get("scope")),
        category_id=_int(data.get("category_id")),
        category_name=_str(data.get("category_name")),
        agent_id=_int(data.get("agent_id")),
        agent_name=_str(data.get("agent_name")),
        team_id=_int(data.get("team_id")),
        team_name=_str(data.get("team_name")),
        is_global=_bool(data.get("is_global")),
        is_active=_bool(data.get("is_active"), default=True),
        usage_count=_count(data.get("usage_count")),
        last_used_at=_opt_str(data.get("last_used_at")),
        variables=_strings(data.get("variables")),
        order=_count(data.get("order")),
        created_at=_opt_str(data.get("created_at")),
        updated_at=_opt_str(data.get("updated_at")),
    )


def transform_canned_text_category(data: Any) -> CannedTextCategory:
    data = _as_dict(data)
    return CannedTextCategory(
        id=_count(data.get("id")),
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        parent_id=_int(data.get("parent_id")),
        parent_name=_str(data.get("parent_name")),
        order=_count(data.get("order")),
        text_count=_int(data.get("text_count")),
        is_active=_bool(data.get("is_active"), default=True),
        created_at=_opt_str(data.get("created_at")),
        updated_at=_opt_str(data.get("updated_at")),
    )
