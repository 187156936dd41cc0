"""Render a FullIncident as a markdown note with YAML front matter."""

from __future__ import annotations

import json
import re
from datetime import datetime, tzinfo

from incident_sync.core.mappers import parse_timestamp
from incident_sync.core.models import ActionModel, AttachmentModel, FollowUpModel, FullIncident, UpdateModel
from incident_sync.notes.window import resolve_tz

_YAML_SPECIAL = re.compile(r"[:#\[\]{}\n\r\"'|>]")


def yaml_safe_value(value: str | int | float | None) -> str:
    """Encode a scalar for the front matter block.

    Strings with YAML-significant characters or surrounding whitespace are
    emitted as JSON strings (a valid YAML double-quoted scalar).
    """
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    text = str(value)
    if _YAML_SPECIAL.search(text) or text.strip() != text:
        return json.dumps(text, ensure_ascii=False)
    return text


def format_date(value: datetime | str | None, tz: str | tzinfo | None = None) -> str:
    """``YYYY-MM-DD HH:MM`` in the display timezone; naive datetimes are taken as local."""
    if value is None:
        return ""
    dt = parse_timestamp(value) if isinstance(value, str) else value
    if dt is None:
        return str(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone(resolve_tz(tz))
    return dt.strftime("%Y-%m-%d %H:%M")


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def format_frontmatter(incident: FullIncident) -> str:
    lines = [
        "---",
        f"incident_id: {yaml_safe_value(incident.id)}",
        f"reference: {yaml_safe_value(incident.reference)}",
        f"name: {yaml_safe_value(incident.name)}",
        f"created_at: {yaml_safe_value(incident.created_at)}",
        f"status: {yaml_safe_value(incident.status)}",
        f"severity: {yaml_safe_value(incident.severity)}",
        f"url: {yaml_safe_value(incident.url)}",
    ]
    if incident.updated_at:
        lines.append(f"updated_at: {yaml_safe_value(incident.updated_at)}")
    if incident.closed_at:
        lines.append(f"closed_at: {yaml_safe_value(incident.closed_at)}")
    if incident.incident_type:
        lines.append(f"type: {yaml_safe_value(incident.incident_type)}")
    if incident.duration_minutes is not None:
        lines.append(f"duration_minutes: {incident.duration_minutes}")
    lines.append("---")
    return "\n".join(lines)


def _update_sort_key(update: UpdateModel) -> float:
    parsed = parse_timestamp(update.created_at)
    return parsed.timestamp() if parsed else float("inf")


def format_update(update: UpdateModel, tz: str | tzinfo | None = None) -> list[str]:
    lines = [f"### {format_date(update.created_at, tz)}"]
    if update.new_status:
        lines.append(f"**Status changed:** → {update.new_status}")
        lines.append("")
    if update.new_severity:
        lines.append(f"**Severity changed:** → {update.new_severity}")
        lines.append("")
    if update.message:
        lines.append("> " + update.message.replace("\n", "\n> "))
    if update.updater:
        lines.append(f"— *{update.updater}*")
    lines.append("")
    return lines


def format_action(action: ActionModel) -> str:
    checkbox = "[x]" if action.status == "completed" else "[ ]"
    assignee = f" — *{action.assignee}*" if action.assignee else ""
    return f"- {checkbox} {action.description or 'Untitled action'}{assignee}"


def format_follow_up(follow_up: FollowUpModel) -> str:
    checkbox = "[x]" if follow_up.status == "completed" else "[ ]"
    assignee = f" — *{follow_up.assignee}*" if follow_up.assignee else " — *Unassigned*"
    if follow_up.issue_permalink:
        return f"- {checkbox} [{follow_up.title}]({follow_up.issue_permalink}){assignee}"
    return f"- {checkbox} {follow_up.title}{assignee}"


def format_attachment(attachment: AttachmentModel) -> str:
    title = attachment.title or attachment.resource_type or "Attachment"
    return f"- [{title}]({attachment.permalink})"


def format_incident_content(
    incident: FullIncident,
    now: datetime | None = None,
    tz: str | tzinfo | None = None,
) -> str:
    """Full note text. Only the trailing "Last synced" line depends on ``now``."""
    zone = resolve_tz(tz)
    lines: list[str] = [format_frontmatter(incident), ""]

    lines += [f"# {incident.reference}: {incident.name}", ""]
    if incident.summary:
        lines += [f"> {incident.summary}", ""]

    lines += ["## Overview", "", "| Field | Value |", "|-------|-------|"]
    lines.append(f"| **Status** | {incident.status} |")
    lines.append(f"| **Severity** | {incident.severity} |")
    if incident.incident_type:
        lines.append(f"| **Type** | {incident.incident_type} |")
    if incident.duration_minutes is not None:
        lines.append(f"| **Duration** | {format_duration(incident.duration_minutes)} |")
    lines.append(f"| **Created** | {format_date(incident.created_at, zone)} |")
    if incident.closed_at:
        lines.append(f"| **Resolved** | {format_date(incident.closed_at, zone)} |")
    lines.append(f"| **URL** | [View in incident.io]({incident.url}) |")
    lines.append("")

    if incident.timestamps:
        lines += ["## Timestamps", ""]
        lines += [f"- **{ts.name}:** {format_date(ts.value, zone)}" for ts in incident.timestamps]
        lines.append("")

    if incident.roles:
        lines += ["## Roles", ""]
        for role in incident.roles:
            you = " (you)" if role.is_user else ""
            lines.append(f"- **{role.role}:** {role.assignee}{you}")
        lines.append("")

    if incident.custom_fields:
        lines += ["## Custom Fields", ""]
        lines += [f"- **{cf.name}:** {cf.value}" for cf in incident.custom_fields]
        lines.append("")

    if incident.updates:
        lines += ["## Timeline", ""]
        for update in sorted(incident.updates, key=_update_sort_key):
            lines += format_update(update, zone)

    if incident.actions:
        lines += ["## Actions", ""]
        lines += [format_action(a) for a in incident.actions]
        lines.append("")

    if incident.follow_ups:
        lines += ["## Follow-ups", ""]
        lines += [format_follow_up(f) for f in incident.follow_ups]
        lines.append("")

    if incident.attachments:
        lines += ["## Attachments", ""]
        lines += [format_attachment(a) for a in incident.attachments]
        lines.append("")

    lines += ["---", f"*Last synced: {format_date(now or datetime.now(zone), zone)}*", ""]
    return "\n".join(lines)
