"""Render the daily-note summary section for one calendar day."""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from incident_sync.core.config import (
    INCIDENTS_HEADING,
    NO_INCIDENTS_PLACEHOLDER,
    NOT_ON_CALL_PLACEHOLDER,
    ON_CALL_HEADING,
)
from incident_sync.core.models import FullIncident, SyncResult
from incident_sync.core.settings import SyncSettings
from incident_sync.notes.store import normalize_path
from incident_sync.notes.window import filter_incidents_for_date, resolve_tz


def format_incident_link(incident: FullIncident, incident_notes_folder: str, use_wikilinks: bool = True) -> str:
    if use_wikilinks:
        # A renamed note keeps its own path; otherwise link the default location
        if incident.note_path:
            target = normalize_path(incident.note_path).removesuffix(".md")
        else:
            target = normalize_path(f"{incident_notes_folder}/{incident.reference}")
        return f"- [[{target}|{incident.reference}: {incident.name}]]"
    return f'- [{incident.reference}]({incident.url}): "{incident.name}" ({incident.status})'


def format_sync_result_for_date(
    result: SyncResult,
    day: date,
    settings: SyncSettings,
    *,
    today: date | None = None,
    use_wikilinks: bool = True,
    tz: str | tzinfo | None = None,
) -> str:
    """Section text (header included) for ``day``.

    Returns an empty string when ``omit_empty_sections`` is set and nothing
    would be shown, which callers treat as "remove the section".
    """
    zone = resolve_tz(tz if tz is not None else settings.timezone)
    today = today or datetime.now(zone).date()
    lines: list[str] = [settings.section_header, ""]

    # On-call is point-in-time; it means nothing on a past day's note
    if settings.show_on_call and day == today:
        if result.on_call and result.on_call.schedules:
            lines.append(ON_CALL_HEADING)
            lines.append(f"- On-call for: {', '.join(result.on_call.schedules)}")
            lines.append("")
        elif not settings.omit_empty_sections:
            lines += [ON_CALL_HEADING, NOT_ON_CALL_PLACEHOLDER, ""]

    if settings.show_incidents:
        active = filter_incidents_for_date(result.full_incidents, day, zone)
        if active:
            lines.append(INCIDENTS_HEADING)
            lines += [format_incident_link(i, settings.incident_notes_folder, use_wikilinks) for i in active]
            lines.append("")
        elif not settings.omit_empty_sections:
            lines += [INCIDENTS_HEADING, NO_INCIDENTS_PLACEHOLDER, ""]

    if len(lines) == 2 and settings.omit_empty_sections:
        return ""
    return "\n".join(lines).rstrip()
