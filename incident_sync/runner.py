"""SyncRunner: one sync cycle from API fetch to written notes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta

from incident_sync.core.config import DEFAULT_BACKFILL_DAYS
from incident_sync.core.incident_client import IncidentIOAPI
from incident_sync.core.models import SyncResult
from incident_sync.core.service import IncidentService, ProgressCallback
from incident_sync.core.settings import SyncSettings
from incident_sync.core.status import is_active_category
from incident_sync.notes.daily import DailyNoteManager, DailyNotesConfigProvider
from incident_sync.notes.incidents import IncidentNoteManager
from incident_sync.notes.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncOutcome:
    ok: bool
    message: str
    result: SyncResult | None = None


def summarize(result: SyncResult) -> str:
    """Short outcome line, e.g. ``"2 active, 3 historical, 1 on-call"``."""
    total = len(result.full_incidents)
    active = sum(1 for inc in result.full_incidents if is_active_category(inc.status_category))
    on_call = len(result.on_call.schedules) if result.on_call else 0
    parts = []
    if active:
        parts.append(f"{active} active")
    if total > active:
        parts.append(f"{total - active} historical")
    if on_call:
        parts.append(f"{on_call} on-call")
    return ", ".join(parts) if parts else "Synced"


class SyncRunner:
    def __init__(
        self,
        settings: SyncSettings,
        api: IncidentIOAPI | None,
        store: DocumentStore,
        *,
        config_provider: DailyNotesConfigProvider | None = None,
        clock: Callable[[], date] | None = None,
    ):
        self.settings = settings
        self.api = api
        self.service = IncidentService(api) if api is not None else None
        self.daily_notes = DailyNoteManager(store, settings, config_provider, clock=clock)
        self.incident_notes = IncidentNoteManager(store, settings)
        self._is_syncing = False

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    def update_settings(self, settings: SyncSettings) -> None:
        """Swap in a new settings snapshot for the runner and both note managers."""
        self.settings = settings
        self.daily_notes.update_settings(settings)
        self.incident_notes.update_settings(settings)

    def _history_days(self) -> int | None:
        days = self.settings.historical_sync_days
        return days if days > 0 else None

    # ------------------ Sync Cycle ------------------
    def sync_to_daily(self, progress: ProgressCallback | None = None) -> SyncOutcome:
        # A second trigger is rejected, never queued behind the running cycle
        if self._is_syncing:
            return SyncOutcome(ok=False, message="Sync already in progress")
        if self.service is None:
            return SyncOutcome(ok=False, message="API key not configured")

        self._is_syncing = True
        settings = self.settings
        try:
            result = self.service.sync_data(settings.user_identifier, self._history_days(), progress=progress)

            if result.full_incidents:
                self.incident_notes.sync_incidents(result.full_incidents)

            updated = self.daily_notes.update_daily_note(result)

            if settings.update_previous_daily_notes and result.full_incidents:
                self.backfill_daily_notes(result)

            if not updated:
                return SyncOutcome(ok=False, message="No daily note found for today", result=result)
            message = summarize(result)
            logger.info("Sync finished: %s", message)
            return SyncOutcome(ok=True, message=message, result=result)
        except Exception as exc:
            logger.exception("Sync error: %s", exc)
            return SyncOutcome(ok=False, message=f"Sync failed: {exc}")
        finally:
            self._is_syncing = False

    def backfill_daily_notes(self, result: SyncResult) -> int:
        """Re-render the section on each previous day's note, oldest last.

        Days run sequentially. Returns the number of notes touched.
        """
        days = self.settings.historical_sync_days or DEFAULT_BACKFILL_DAYS
        today = self.daily_notes.today()
        logger.info("Backfilling last %s daily notes", days)
        touched = 0
        for offset in range(1, days + 1):
            if self.daily_notes.update_daily_note_for_date(today - timedelta(days=offset), result):
                touched += 1
        logger.info("Backfill complete (%s notes updated)", touched)
        return touched

    def clear_incidents_section(self) -> bool:
        return self.daily_notes.clear_incidents_section()
