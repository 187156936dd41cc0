"""Create and refresh one markdown note per incident."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime

from incident_sync.core.models import FullIncident
from incident_sync.core.settings import SyncSettings
from incident_sync.render.incident_note import format_incident_content

from .store import DocumentStore, NoteFile, normalize_path

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"^---\n([\s\S]*?)\n---")
_INCIDENT_ID = re.compile(r"^incident_id:\s*(.+)$", re.MULTILINE)


class IncidentNoteManager:
    def __init__(self, store: DocumentStore, settings: SyncSettings):
        self.store = store
        self.settings = settings

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    def ensure_folder(self) -> bool:
        folder = self.settings.incident_notes_folder
        if not folder:
            return False
        if self.store.folder_exists(folder):
            return True
        try:
            self.store.create_folder(folder)
        except OSError as exc:
            logger.error("Error creating incidents folder %s: %s", folder, exc)
            return False
        return True

    def get_note_path(self, incident: FullIncident) -> str:
        return normalize_path(f"{self.settings.incident_notes_folder}/{incident.reference}.md")

    def find_existing_note_by_incident_id(self, incident_id: str) -> NoteFile | None:
        """Locate a renamed note through its ``incident_id`` front matter field."""
        folder = self.settings.incident_notes_folder
        if not folder:
            return None
        for doc in self.store.list_files(folder):
            match = _FRONTMATTER.match(self.store.read(doc))
            if not match:
                continue
            id_match = _INCIDENT_ID.search(match.group(1))
            if id_match and id_match.group(1).strip().strip('"') == incident_id:
                return doc
        return None

    def create_or_update_incident_note(self, incident: FullIncident, now: datetime | None = None) -> NoteFile | None:
        self.ensure_folder()
        path = self.get_note_path(incident)
        content = format_incident_content(incident, now=now, tz=self.settings.timezone)

        existing = self.store.get_file(path) or self.find_existing_note_by_incident_id(incident.id)
        if existing is not None:
            self.store.process(existing, lambda _old: content)
            return existing
        try:
            return self.store.create(path, content)
        except OSError as exc:
            logger.error("Error creating incident note %s: %s", path, exc)
            return None

    def sync_incidents(self, incidents: Iterable[FullIncident], now: datetime | None = None) -> dict[str, str]:
        """Write every incident note; returns incident id -> note path.

        Each incident's ``note_path`` is set to the note it was written to.
        """
        paths: dict[str, str] = {}
        for incident in incidents:
            doc = self.create_or_update_incident_note(incident, now=now)
            if doc is not None:
                incident.note_path = doc.path
                paths[incident.id] = doc.path
        return paths
