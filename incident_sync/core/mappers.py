"""Mapping raw incident.io JSON payloads into model instances."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pandas as pd

from .config import DELETED_STATUS, INCIDENT_APP_URL
from .models import (
    ActionModel,
    AttachmentModel,
    CustomFieldModel,
    FollowUpModel,
    FullIncident,
    IncidentResult,
    RoleModel,
    TimestampModel,
    UpdateModel,
    UserModel,
)
from .status import normalize_category


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an API timestamp into an aware UTC datetime (None if unparseable)."""
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def duration_minutes(created_at: str | None, closed_at: str | None) -> int | None:
    created = parse_timestamp(created_at)
    closed = parse_timestamp(closed_at)
    if created is None or closed is None:
        return None
    # half-up rounding, matching how the web app reports durations
    return math.floor((closed - created).total_seconds() / 60.0 + 0.5)


def incident_url(reference: str) -> str:
    return f"{INCIDENT_APP_URL}/{reference}"


def _name_of(node: Any) -> str | None:
    if isinstance(node, dict):
        return node.get("name")
    return None


def map_user(raw: dict[str, Any]) -> UserModel:
    return UserModel(
        id=str(raw.get("id") or ""),
        name=raw.get("name") or "",
        email=raw.get("email") or "",
    )


def _custom_field_value(entry: dict[str, Any]) -> str:
    if entry.get("value_text"):
        return str(entry["value_text"])
    single = entry.get("value_single_select") or {}
    if single.get("value"):
        return str(single["value"])
    multi = entry.get("value_multi_select") or []
    if multi:
        return ", ".join(str(v.get("value")) for v in multi if isinstance(v, dict) and v.get("value"))
    return ""


def map_custom_fields(entries: Iterable[dict[str, Any]] | None) -> list[CustomFieldModel]:
    out: list[CustomFieldModel] = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        name = _name_of(entry.get("custom_field"))
        if not name:
            continue
        value = _custom_field_value(entry)
        # Fields without a resolved value are not worth rendering
        if value:
            out.append(CustomFieldModel(name=name, value=value))
    return out


def map_roles(assignments: Iterable[dict[str, Any]] | None, user_id: str | None) -> list[RoleModel]:
    roles: list[RoleModel] = []
    for assignment in assignments or []:
        if not isinstance(assignment, dict):
            continue
        role = assignment.get("role")
        assignee = assignment.get("assignee")
        if not role or not assignee:
            continue
        roles.append(
            RoleModel(
                role=role.get("name") or "Unknown",
                role_type=role.get("role_type") or "custom",
                assignee=assignee.get("name") or "Unknown",
                is_user=bool(user_id) and assignee.get("id") == user_id,
            )
        )
    return roles


def has_role(raw_incident: dict[str, Any], user_id: str, role_type: str | None = None) -> bool:
    """True if ``user_id`` holds any role (or a role of ``role_type``) on the incident."""
    for assignment in raw_incident.get("incident_role_assignments") or []:
        if not isinstance(assignment, dict):
            continue
        if (assignment.get("assignee") or {}).get("id") != user_id:
            continue
        if role_type is None or (assignment.get("role") or {}).get("role_type") == role_type:
            return True
    return False


def status_category_of(raw_incident: dict[str, Any]) -> str | None:
    return (raw_incident.get("incident_status") or {}).get("category")


def build_basic_full_incident(raw: dict[str, Any], user_id: str | None = None) -> FullIncident:
    """Map the base incident record; sub-resource lists start empty."""
    reference = raw.get("reference") or ""
    created_at = raw.get("created_at") or ""
    closed_at = raw.get("closed_at") or None
    status = raw.get("incident_status") or {}
    return FullIncident(
        id=str(raw.get("id") or ""),
        reference=reference,
        name=raw.get("name") or "Untitled Incident",
        summary=raw.get("summary") or None,
        created_at=created_at,
        updated_at=raw.get("updated_at") or None,
        closed_at=closed_at,
        status=status.get("name") or "Unknown",
        status_category=normalize_category(status.get("category")),
        severity=_name_of(raw.get("severity")) or "Unknown",
        incident_type=_name_of(raw.get("incident_type")),
        url=incident_url(reference),
        duration_minutes=duration_minutes(created_at, closed_at) if closed_at else None,
        roles=map_roles(raw.get("incident_role_assignments"), user_id),
        custom_fields=map_custom_fields(raw.get("custom_field_entries")),
    )


def map_incident_result(raw: dict[str, Any]) -> IncidentResult:
    return IncidentResult(
        reference=raw.get("reference") or "",
        name=raw.get("name") or "",
        status=(raw.get("incident_status") or {}).get("name") or "Unknown",
    )


def map_update(raw: dict[str, Any]) -> UpdateModel:
    new_status = raw.get("new_incident_status") or {}
    return UpdateModel(
        id=str(raw.get("id") or ""),
        created_at=raw.get("created_at") or "",
        message=raw.get("message") or None,
        updater=_name_of(raw.get("updater")),
        new_status=new_status.get("name"),
        new_status_category=new_status.get("category"),
        new_severity=_name_of(raw.get("new_severity")),
    )


def map_action(raw: dict[str, Any]) -> ActionModel:
    return ActionModel(
        id=str(raw.get("id") or ""),
        status=raw.get("status") or "outstanding",
        description=raw.get("description") or None,
        assignee=_name_of(raw.get("assignee")),
        created_at=raw.get("created_at"),
        completed_at=raw.get("completed_at"),
    )


def map_follow_up(raw: dict[str, Any]) -> FollowUpModel:
    external = raw.get("external_issue_reference") or {}
    return FollowUpModel(
        id=str(raw.get("id") or ""),
        title=raw.get("title") or "Untitled follow-up",
        status=raw.get("status") or "outstanding",
        assignee=_name_of(raw.get("assignee")),
        issue_permalink=external.get("issue_permalink") or None,
        created_at=raw.get("created_at"),
        completed_at=raw.get("completed_at"),
    )


def map_attachment(raw: dict[str, Any]) -> AttachmentModel:
    resource = raw.get("resource") or {}
    return AttachmentModel(
        id=str(raw.get("id") or ""),
        permalink=resource.get("permalink") or "",
        resource_type=resource.get("resource_type"),
        title=resource.get("title"),
    )


def map_timestamps(values: Iterable[dict[str, Any]] | None) -> list[TimestampModel]:
    """Keep only valued timestamps, ordered by instant."""
    out: list[TimestampModel] = []
    for tv in values or []:
        if not isinstance(tv, dict):
            continue
        value = (tv.get("value") or {}).get("value")
        if not value:
            continue
        name = (tv.get("incident_timestamp") or {}).get("name") or "Timestamp"
        out.append(TimestampModel(name=name, value=value))

    def _sort_key(ts: TimestampModel):
        parsed = parse_timestamp(ts.value)
        return (parsed is None, parsed.timestamp() if parsed else 0.0)

    return sorted(out, key=_sort_key)


def drop_deleted(items: Iterable[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [i for i in items or [] if isinstance(i, dict) and i.get("status") != DELETED_STATUS]
