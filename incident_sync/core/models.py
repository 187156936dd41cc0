"""Domain data models for incidents, their sub-resources, and sync results."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class UserModel:
    id: str
    name: str
    email: str


@dataclass(slots=True)
class RoleModel:
    role: str
    role_type: str
    assignee: str
    is_user: bool = False


@dataclass(slots=True)
class CustomFieldModel:
    name: str
    value: str


@dataclass(slots=True)
class TimestampModel:
    name: str
    value: str


@dataclass(slots=True)
class UpdateModel:
    id: str
    created_at: str
    message: str | None = None
    updater: str | None = None
    new_status: str | None = None
    new_status_category: str | None = None
    new_severity: str | None = None


@dataclass(slots=True)
class ActionModel:
    id: str
    status: str
    description: str | None = None
    assignee: str | None = None
    created_at: str | None = None
    completed_at: str | None = None


@dataclass(slots=True)
class FollowUpModel:
    id: str
    title: str
    status: str
    assignee: str | None = None
    issue_permalink: str | None = None
    created_at: str | None = None
    completed_at: str | None = None


@dataclass(slots=True)
class AttachmentModel:
    id: str
    permalink: str
    resource_type: str | None = None
    title: str | None = None


@dataclass(slots=True)
class FullIncident:
    id: str
    reference: str
    name: str
    created_at: str
    status: str
    status_category: str
    severity: str
    url: str
    summary: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    incident_type: str | None = None
    duration_minutes: int | None = None
    roles: list[RoleModel] = field(default_factory=list)
    custom_fields: list[CustomFieldModel] = field(default_factory=list)
    timestamps: list[TimestampModel] = field(default_factory=list)
    updates: list[UpdateModel] = field(default_factory=list)
    actions: list[ActionModel] = field(default_factory=list)
    follow_ups: list[FollowUpModel] = field(default_factory=list)
    attachments: list[AttachmentModel] = field(default_factory=list)
    # Set once the incident note is written; may differ from <folder>/<reference>.md
    note_path: str | None = None


@dataclass(slots=True)
class OnCallResult:
    schedules: list[str] = field(default_factory=list)


@dataclass(slots=True)
class IncidentResult:
    reference: str
    name: str
    status: str


@dataclass(slots=True)
class SyncResult:
    on_call: OnCallResult | None
    incidents: list[IncidentResult] = field(default_factory=list)
    full_incidents: list[FullIncident] = field(default_factory=list)


@dataclass(slots=True)
class ConnectionCheck:
    success: bool
    user: UserModel | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class HeadingInfo:
    """One entry of a document's heading index (line is zero-based)."""

    heading: str
    level: int
    line: int
