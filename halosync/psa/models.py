"""Pydantic domain records for HaloPSA resources.

Every record is fully constructible from a sparse PSA payload: optional
fields default to an empty string, False, None or an empty list. Dates are
kept as the ISO strings HaloPSA sends; use ``parse_halo_datetime`` to compare.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CannedTextScope(str, Enum):
    """Where a canned text snippet may be used."""

    TICKET = "ticket"
    EMAIL = "email"
    CHAT = "chat"
    NOTE = "note"
    ALL = "all"


# --- Tickets -----------------------------------------------------------------


class Action(BaseModel):
    """Ticket action (note, email, status change)."""

    id: int = 0
    ticket_id: int | None = None
    note: str = ""
    who: str = ""
    who_type: int | None = None
    outcome: str = ""
    outcome_id: int | None = None
    action_time: str | None = None
    time_taken: float | None = None
    hidden_from_user: bool = False


class Ticket(BaseModel):
    id: int = 0
    summary: str = ""
    details: str = ""

    ticket_type_id: int | None = None
    ticket_type_name: str = ""
    category_1: str = ""
    category_2: str = ""
    category_3: str = ""

    status_id: int | None = None
    status_name: str = ""
    priority_id: int | None = None
    priority_name: str = ""

    client_id: int | None = None
    client_name: str = ""
    site_id: int | None = None
    site_name: str = ""
    user_id: int | None = None
    user_name: str = ""

    agent_id: int | None = None
    agent_name: str = ""
    team_id: int | None = None
    team_name: str = ""

    date_created: str | None = None
    date_closed: str | None = None
    due_date: str | None = None
    response_date: str | None = None

    sla_response_time: float | None = None
    sla_fix_time: float | None = None
    sla_response_state: int | str | None = None
    sla_fix_state: int | str | None = None

    custom_fields: list[dict[str, Any]] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return not self.date_closed

    @property
    def is_sla_breached(self) -> bool:
        breached = (2, "2", "B", "b")
        return self.sla_response_state in breached or self.sla_fix_state in breached


class TicketStats(BaseModel):
    total: int = 0
    open: int = 0
    closed: int = 0
    sla_breached: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_agent: dict[str, int] = Field(default_factory=dict)
    by_client: dict[str, int] = Field(default_factory=dict)


class DuplicateCandidate(BaseModel):
    ticket_id: int
    summary: str = ""
    status: str = ""
    created: str | None = None
    similarity_score: float
    matching_words: list[str] = Field(default_factory=list)


class MergeResult(BaseModel):
    primary_ticket_id: int
    merged_tickets: list[dict[str, Any]] = Field(default_factory=list)
    actions_copied: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


# --- Clients -----------------------------------------------------------------


class Site(BaseModel):
    id: int = 0
    name: str = ""
    client_id: int | None = None
    client_name: str = ""
    line1: str = ""
    line2: str = ""
    line3: str = ""
    line4: str = ""
    postcode: str = ""
    country: str = ""
    phone_number: str = ""
    fax_number: str = ""
    inactive: bool = False
    main_site: bool = False
    user_count: int | None = None
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)


class User(BaseModel):
    """End user (customer contact), not an agent."""

    id: int = 0
    name: str = ""
    first_name: str = ""
    surname: str = ""
    email_address: str = ""
    phone_number: str = ""
    mobile_number: str = ""
    client_id: int | None = None
    client_name: str = ""
    site_id: int | None = None
    site_name: str = ""
    department_id: int | None = None
    department_name: str = ""
    inactive: bool = False
    is_important_contact: bool = False
    never_send_emails: bool = False
    is_service_account: bool = False
    date_created: str | None = None
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        if self.first_name and self.surname:
            return f"{self.first_name} {self.surname}"
        return self.name


class Client(BaseModel):
    id: int = 0
    name: str = ""
    inactive: bool = False

    toplevel_id: int | None = None
    toplevel_name: str = ""
    pritech: int | None = None
    pritech_name: str = ""
    sectech: int | None = None
    sectech_name: str = ""
    account_manager_tech: int | None = None
    account_manager_tech_name: str = ""

    main_site_id: int | None = None
    accounts_email_address: str = ""
    accounts_first_name: str = ""
    accounts_last_name: str = ""

    open_ticket_count: int = 0
    opps_ticket_count: int = 0

    notes: str = ""
    date_created: str | None = None
    colour: str = ""
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)

    sites: list[Site] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)


class ClientStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    total_open_tickets: int = 0
    with_open_tickets: int = 0
    top_by_tickets: list[dict[str, Any]] = Field(default_factory=list)


# --- Agents ------------------------------------------------------------------


class TeamMembership(BaseModel):
    agent_id: int | None = None
    team_id: int | None = None
    team_name: str = ""
    department_id: int | None = None
    role_id: str = ""
    unassigned_access: bool = False
    other_agent_access: bool = False
    for_tickets: bool = False
    for_projects: bool = False
    for_opps: bool = False
    override_team_email: bool = False
    in_section: bool = False


class Team(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    department_id: int | None = None
    department_name: str = ""
    inactive: bool = False
    agent_count: int | None = None
    open_ticket_count: int | None = None


class Agent(BaseModel):
    id: int = 0
    name: str = ""
    first_name: str = ""
    surname: str = ""

    email: str = ""
    phone_number: str = ""
    mobile_number: str = ""

    inactive: bool = False
    is_enabled_for_unified_write: bool = False
    role: str = ""
    is_admin: bool = False

    department_id: int | None = None
    department_name: str = ""

    teams: list[TeamMembership] = Field(default_factory=list)
    team_names: list[str] = Field(default_factory=list)

    open_ticket_count: int = 0
    tickets_due_today: int = 0
    hours_worked_today: float | None = None
    utilization_percentage: float | None = None

    date_created: str | None = None
    last_login_date: str | None = None

    @property
    def full_name(self) -> str:
        if self.first_name and self.surname:
            return f"{self.first_name} {self.surname}"
        return self.name

    @property
    def primary_team_name(self) -> str:
        """First team name from the name list, else from memberships."""
        if self.team_names:
            return self.team_names[0]
        for membership in self.teams:
            if membership.team_name:
                return membership.team_name
        return ""


class AgentWorkloadStats(BaseModel):
    agents: list[dict[str, Any]] = Field(default_factory=list)
    total_open_tickets: int = 0
    total_due_today: int = 0
    average_tickets_per_agent: float = 0.0


# --- Assets ------------------------------------------------------------------


class AssetType(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    asset_group_id: int | None = None
    asset_group_name: str = ""
    inactive: bool = False


class Asset(BaseModel):
    id: int = 0
    inventory_number: str = ""
    device_name: str = ""
    key_field: str = ""
    key_field2: str = ""
    key_field3: str = ""

    asset_type_id: int | None = None
    asset_type_name: str = ""
    status_id: int | None = None
    status_name: str = ""

    client_id: int | None = None
    client_name: str = ""
    site_id: int | None = None
    site_name: str = ""
    user_id: int | None = None
    user_name: str = ""
    contract_id: int | None = None
    contract_name: str = ""

    manufacturer: str = ""
    model: str = ""
    serial_number: str = ""
    ip_address: str = ""
    mac_address: str = ""

    inactive: bool = False
    bookmarked: bool = False

    purchase_date: str | None = None
    warranty_expiry: str | None = None
    last_audit_date: str | None = None
    date_created: str | None = None

    purchase_price: float | None = None
    monthly_cost: float | None = None
    notes: str = ""
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)
    open_ticket_count: int | None = None

    @property
    def display_name(self) -> str:
        if self.device_name:
            return self.device_name
        if self.key_field:
            return self.key_field
        if self.inventory_number:
            return f"Asset #{self.inventory_number}"
        return f"Asset {self.id}"

    def warranty_expired(self, now: datetime | None = None) -> bool:
        expiry = parse_halo_datetime(self.warranty_expiry)
        if expiry is None:
            return False
        return (now or datetime.now(timezone.utc)) > expiry


class AssetStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    warranty_expired: int = 0
    warranty_expiring_30d: int = 0
    top_by_client: dict[str, int] = Field(default_factory=dict)


# --- Configuration -----------------------------------------------------------


class CustomField(BaseModel):
    id: int = 0
    name: str = ""
    label: str = ""
    type: str = ""
    table: str = ""
    is_required: bool = False
    is_visible: bool = True
    options: list[str] = Field(default_factory=list)


class TicketStatus(BaseModel):
    id: int = 0
    name: str = ""
    is_open: bool = False
    is_closed: bool = False
    is_default: bool = False
    colour: str = ""

    @property
    def state_label(self) -> str:
        if self.is_open:
            return "Open"
        if self.is_closed:
            return "Closed"
        return "Other"


class TicketType(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    is_default: bool = False


class Priority(BaseModel):
    id: int = 0
    name: str = ""
    colour: str = ""
    is_default: bool = False
    sla_id: int | None = None


class Category(BaseModel):
    id: int = 0
    name: str = ""
    level: int | None = None
    parent_id: int | None = None


class Workflow(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    is_active: bool = False
    trigger_type: str = ""


class EmailTemplate(BaseModel):
    id: int = 0
    name: str = ""
    subject: str = ""
    body: str = ""
    is_active: bool = False


class TicketTemplate(BaseModel):
    id: int = 0
    name: str = ""
    summary: str = ""
    details: str = ""
    ticket_type_id: int | None = None
    priority_id: int | None = None
    category_id: int | None = None


# --- Reports -----------------------------------------------------------------


class Report(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    category: str = ""
    sql_query: str = ""
    is_shared: bool = False
    author_id: int | None = None
    author_name: str = ""
    date_created: str | None = None
    date_modified: str | None = None


class ReportResult(BaseModel):
    report_id: int
    report_name: str = ""
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    executed_at: str


class ScheduledReport(BaseModel):
    id: int = 0
    name: str = ""
    report_id: int | None = None
    report_name: str = ""
    frequency: str = "weekly"  # daily, weekly, monthly
    recipients: list[str] = Field(default_factory=list)
    output_format: str = "pdf"  # pdf, csv, excel
    time_of_day: str = ""
    day_of_week: int | None = None
    day_of_month: int | None = None
    is_active: bool = True
    last_run: str | None = None
    next_run: str | None = None


class DashboardWidget(BaseModel):
    id: int = 0
    dashboard_id: int | None = None
    name: str = ""
    widget_type: str = "chart"
    report_id: int | None = None
    filter_id: int | None = None
    ticket_area_id: int | None = None
    width: int = 4
    height: int = 2
    position_x: int = 0
    position_y: int = 0
    colour: str = ""


class Dashboard(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    is_shared: bool = False
    is_default: bool = False
    author_id: int | None = None
    author_name: str = ""
    widgets: list[DashboardWidget] = Field(default_factory=list)


# --- Canned text -------------------------------------------------------------


class CannedText(BaseModel):
    id: int = 0
    name: str = ""
    shortcut: str = ""
    content: str = ""
    html_content: str = ""
    scope: CannedTextScope = CannedTextScope.ALL
    category_id: int | None = None
    category_name: str = ""
    agent_id: int | None = None
    agent_name: str = ""
    team_id: int | None = None
    team_name: str = ""
    is_global: bool = False
    is_active: bool = True
    usage_count: int = 0
    last_used_at: str | None = None
    variables: list[str] = Field(default_factory=list)
    order: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class CannedTextCategory(BaseModel):
    id: int = 0
    name: str = ""
    description: str = ""
    parent_id: int | None = None
    parent_name: str = ""
    order: int = 0
    text_count: int | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    children: list[CannedTextCategory] = Field(default_factory=list)


class CannedTextVariable(BaseModel):
    name: str
    display_name: str
    scope: CannedTextScope = CannedTextScope.ALL
    example: str = ""


CANNED_TEXT_VARIABLES: list[CannedTextVariable] = [
    CannedTextVariable(name="{{ticket.id}}", display_name="Ticket ID", scope=CannedTextScope.TICKET, example="12345"),
    CannedTextVariable(name="{{ticket.summary}}", display_name="Ticket Summary", scope=CannedTextScope.TICKET, example="Cannot connect to VPN"),
    CannedTextVariable(name="{{ticket.status}}", display_name="Ticket Status", scope=CannedTextScope.TICKET, example="Open"),
    CannedTextVariable(name="{{ticket.priority}}", display_name="Ticket Priority", scope=CannedTextScope.TICKET, example="High"),
    CannedTextVariable(name="{{client.name}}", display_name="Client Name", example="Acme Corp"),
    CannedTextVariable(name="{{client.contact}}", display_name="Client Contact", example="John Doe"),
    CannedTextVariable(name="{{user.name}}", display_name="User Name", example="Jane Smith"),
    CannedTextVariable(name="{{user.email}}", display_name="User Email", example="jane@example.com"),
    CannedTextVariable(name="{{agent.name}}", display_name="Agent Name", example="Support Agent"),
    CannedTextVariable(name="{{agent.email}}", display_name="Agent Email", example="agent@company.com"),
    CannedTextVariable(name="{{agent.phone}}", display_name="Agent Phone", example="+1 555-0123"),
    CannedTextVariable(name="{{date.today}}", display_name="Today's Date", example="2024-01-15"),
    CannedTextVariable(name="{{date.time}}", display_name="Current Time", example="14:30"),
    CannedTextVariable(name="{{date.datetime}}", display_name="Date and Time", example="2024-01-15 14:30"),
]


def parse_halo_datetime(value: str | None) -> datetime | None:
    """Parse a HaloPSA timestamp; naive values are taken as UTC.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
