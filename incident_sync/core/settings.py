"""User settings: dataclass defaults plus YAML load/save with validation."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import pytz
import yaml

from .config import (
    DEFAULT_AUTO_SYNC_FREQUENCY_MS,
    DEFAULT_INCIDENT_NOTES_FOLDER,
    DEFAULT_SECTION_HEADER,
    DEFAULT_USER_IDENTIFIER,
    MAX_HISTORICAL_DAYS,
    TIMEZONE,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "incident_sync.yaml"


@dataclass(slots=True)
class SyncSettings:
    # Plaintext key, only used when no secret store is available
    api_key: str | None = None
    api_key_configured: bool = False
    user_identifier: str = DEFAULT_USER_IDENTIFIER
    section_header: str = DEFAULT_SECTION_HEADER
    auto_sync_enabled: bool = True
    auto_sync_frequency: int = DEFAULT_AUTO_SYNC_FREQUENCY_MS
    show_on_call: bool = True
    show_incidents: bool = True
    omit_empty_sections: bool = True
    daily_notes_folder: str = ""  # empty = ask the daily-notes config provider
    incident_notes_folder: str = DEFAULT_INCIDENT_NOTES_FOLDER
    historical_sync_days: int = 0  # 0 = only active incidents
    update_previous_daily_notes: bool = False
    vault_path: str = "."
    timezone: str = TIMEZONE


def validate_non_negative_int(value: Any, maximum: int | None = None) -> int | None:
    """Parse ``value`` as an int in ``[0, maximum]``; None when invalid."""
    if isinstance(value, bool):
        return None
    try:
        num = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if num < 0:
        return None
    if maximum is not None and num > maximum:
        return None
    return num


def validate_section_header(value: Any) -> str | None:
    """A section header must be non-empty markdown heading text (starts with ``#``)."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or not trimmed.startswith("#"):
        return None
    return trimmed


def validate_timezone(value: Any) -> str | None:
    """Canonical zone name when pytz knows ``value``, else None."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return pytz.timezone(value.strip()).zone
    except pytz.UnknownTimeZoneError:
        return None


def _coerce(settings: SyncSettings, key: str, value: Any) -> None:
    default = getattr(settings, key)
    if key == "section_header":
        header = validate_section_header(value)
        if header is None:
            logger.warning("Ignoring invalid section_header %r; keeping %r", value, default)
            return
        settings.section_header = header
        return
    if key == "historical_sync_days":
        days = validate_non_negative_int(value, MAX_HISTORICAL_DAYS)
        if days is None:
            logger.warning(
                "Ignoring invalid historical_sync_days %r (expected 0-%s)", value, MAX_HISTORICAL_DAYS
            )
            return
        settings.historical_sync_days = days
        return
    if key == "timezone":
        zone = validate_timezone(value)
        if zone is None:
            logger.warning("Ignoring unknown timezone %r; keeping %r", value, default)
            return
        settings.timezone = zone
        return
    if key == "auto_sync_frequency":
        freq = validate_non_negative_int(value)
        if freq is None:
            logger.warning("Ignoring invalid auto_sync_frequency %r", value)
            return
        settings.auto_sync_frequency = freq
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            logger.warning("Ignoring non-boolean value for %s: %r", key, value)
            return
        setattr(settings, key, value)
        return
    if value is None:
        setattr(settings, key, None if key == "api_key" else default)
        return
    setattr(settings, key, str(value))


def settings_from_dict(data: dict[str, Any] | None) -> SyncSettings:
    settings = SyncSettings()
    known = {f.name for f in fields(SyncSettings)}
    for key, value in (data or {}).items():
        if key not in known:
            logger.debug("Ignoring unknown setting %s", key)
            continue
        _coerce(settings, key, value)
    return settings


def load_settings(path: str | Path | None = None) -> SyncSettings:
    """Load settings from YAML, falling back to defaults for anything missing."""
    yaml_path = Path(path or DEFAULT_SETTINGS_FILE)
    if not yaml_path.exists():
        return SyncSettings()
    try:
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read settings from %s: %s", yaml_path, exc)
        return SyncSettings()
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not contain a mapping; using defaults", yaml_path)
        return SyncSettings()
    return settings_from_dict(data)


def save_settings(settings: SyncSettings, path: str | Path | None = None) -> None:
    yaml_path = Path(path or DEFAULT_SETTINGS_FILE)
    data = asdict(settings)
    if not data.get("api_key"):
        data.pop("api_key", None)
    yaml_path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
