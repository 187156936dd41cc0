"""Locate dated daily notes and reconcile the incidents section inside them."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Protocol

from incident_sync.core.config import (
    DEFAULT_DAILY_NOTE_FORMAT,
    FALLBACK_DAILY_NOTE_FOLDERS,
    FALLBACK_DAILY_NOTE_FORMATS,
)
from incident_sync.core.models import SyncResult
from incident_sync.core.settings import SyncSettings
from incident_sync.render.daily_summary import format_sync_result_for_date

from .sections import reconcile_section, remove_section
from .store import DocumentStore, NoteFile, normalize_path
from .window import resolve_tz

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DailyNotesConfig:
    folder: str = ""
    format: str = DEFAULT_DAILY_NOTE_FORMAT


class DailyNotesConfigProvider(Protocol):
    def get_config(self) -> DailyNotesConfig | None: ...


class StaticDailyNotesConfig:
    def __init__(self, folder: str = "", fmt: str = DEFAULT_DAILY_NOTE_FORMAT):
        self._config = DailyNotesConfig(folder=folder, format=fmt)

    def get_config(self) -> DailyNotesConfig | None:
        return self._config


class VaultDailyNotesConfig:
    """Read the daily-notes location from an Obsidian vault's plugin settings.

    The Periodic Notes community plugin wins when its daily notes are
    enabled, then the core Daily Notes plugin. Returns None when neither
    has a usable configuration.
    """

    def __init__(self, vault_root: str | Path):
        self.vault_root = Path(vault_root)

    def _load_json(self, relative: str) -> dict:
        path = self.vault_root / ".obsidian" / relative
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Could not read %s: %s", path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get_config(self) -> DailyNotesConfig | None:
        periodic = self._load_json("plugins/periodic-notes/data.json").get("daily") or {}
        if isinstance(periodic, dict) and periodic.get("enabled"):
            return DailyNotesConfig(
                folder=periodic.get("folder") or "",
                format=periodic.get("format") or DEFAULT_DAILY_NOTE_FORMAT,
            )
        core = self._load_json("daily-notes.json")
        if core:
            return DailyNotesConfig(
                folder=core.get("folder") or "",
                format=core.get("format") or DEFAULT_DAILY_NOTE_FORMAT,
            )
        return None


def format_date_with_pattern(day: date, pattern: str) -> str:
    return (
        pattern.replace("YYYY", f"{day.year:04d}", 1)
        .replace("MM", f"{day.month:02d}", 1)
        .replace("DD", f"{day.day:02d}", 1)
    )


def _note_path(folder: str, name: str) -> str:
    return normalize_path(f"{folder}/{name}.md") if folder else f"{name}.md"


class DailyNoteManager:
    def __init__(
        self,
        store: DocumentStore,
        settings: SyncSettings,
        config_provider: DailyNotesConfigProvider | None = None,
        clock: Callable[[], date] | None = None,
    ):
        self.store = store
        self.settings = settings
        self.config_provider = config_provider
        self._clock = clock

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    def today(self) -> date:
        if self._clock is not None:
            return self._clock()
        return datetime.now(resolve_tz(self.settings.timezone)).date()

    # ------------------ Location ------------------
    def get_daily_notes_config(self) -> DailyNotesConfig:
        if self.settings.daily_notes_folder:
            return DailyNotesConfig(folder=self.settings.daily_notes_folder)
        if self.config_provider is not None:
            config = self.config_provider.get_config()
            if config is not None:
                return config
        return DailyNotesConfig()

    def get_daily_note_for_date(self, day: date) -> NoteFile | None:
        config = self.get_daily_notes_config()
        expected = _note_path(config.folder, format_date_with_pattern(day, config.format))
        doc = self.store.get_file(expected)
        if doc is not None:
            return doc

        # An explicit folder is authoritative; no guessing
        if self.settings.daily_notes_folder:
            logger.debug("Daily note not found at configured path %s", expected)
            return None

        for folder in FALLBACK_DAILY_NOTE_FOLDERS:
            for pattern in FALLBACK_DAILY_NOTE_FORMATS:
                doc = self.store.get_file(_note_path(folder, format_date_with_pattern(day, pattern)))
                if doc is not None:
                    return doc
        return None

    def get_daily_note(self) -> NoteFile | None:
        return self.get_daily_note_for_date(self.today())

    # ------------------ Section Updates ------------------
    def format_section(self, result: SyncResult, day: date, use_wikilinks: bool = True) -> str:
        return format_sync_result_for_date(
            result,
            day,
            self.settings,
            today=self.today(),
            use_wikilinks=use_wikilinks,
        )

    def update_daily_note(self, result: SyncResult, day: date | None = None) -> bool:
        """Insert, replace, or remove the section in the note for ``day``.

        Returns False when no daily note exists for that day or it could not
        be written.
        """
        target_day = day or self.today()
        doc = self.get_daily_note_for_date(target_day)
        if doc is None:
            logger.debug("No daily note found for %s", target_day)
            return False

        # An empty body means "nothing to report"; reconcile_section removes the section
        body = self.format_section(result, target_day)
        header = self.settings.section_header
        headings = self.store.headings(doc) or []
        try:
            self.store.process(doc, lambda text: reconcile_section(text, headings, header, body))
        except OSError as exc:
            logger.error("Error updating daily note %s: %s", doc.path, exc)
            return False
        return True

    def update_daily_note_for_date(self, day: date, result: SyncResult) -> bool:
        return self.update_daily_note(result, day)

    def remove_section_from_note(self, doc: NoteFile) -> bool:
        header = self.settings.section_header
        headings = self.store.headings(doc) or []
        try:
            self.store.process(doc, lambda text: remove_section(text, headings, header))
        except OSError as exc:
            logger.error("Error removing section from %s: %s", doc.path, exc)
            return False
        return True

    def clear_incidents_section(self) -> bool:
        doc = self.get_daily_note()
        if doc is None:
            return False
        return self.remove_section_from_note(doc)
