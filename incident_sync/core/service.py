"""IncidentService: orchestrates user lookup, listing, and per-incident hydration."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from .config import BATCH_PAUSE_SECONDS, BATCH_SIZE
from .incident_client import IncidentIOAPI
from .mappers import map_incident_result
from .models import FullIncident, SyncResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]

T = TypeVar("T")
R = TypeVar("R")


class UserNotFoundError(LookupError):
    """No incident.io user matched the configured identifier."""


class IncidentService:
    def __init__(
        self,
        api: IncidentIOAPI,
        *,
        batch_size: int = BATCH_SIZE,
        batch_pause: float = BATCH_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self._sleep = sleep

    # ------------------ Batching ------------------
    def process_in_batches(
        self,
        items: Sequence[T],
        processor: Callable[[T], R],
        *,
        progress: ProgressCallback | None = None,
        label: str = "Processing",
    ) -> list[R]:
        """Run ``processor`` over ``items`` in fixed-width concurrent batches.

        A failing item is logged and dropped; the rest of its batch still
        completes. Results keep input order. Callers cannot tell "nothing
        matched" from "everything failed" by the result alone; the warning
        log is the only trace of dropped items.
        """
        results: list[R] = []
        total = len(items)
        failed = 0
        for start in range(0, total, self.batch_size):
            batch = items[start : start + self.batch_size]
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                futures = [pool.submit(processor, item) for item in batch]
                for fut in futures:
                    try:
                        results.append(fut.result())
                    except Exception as exc:
                        failed += 1
                        logger.warning("Batch item failed: %s", exc)
            completed = min(start + self.batch_size, total)
            logger.debug("Processed %s/%s", completed, total)
            if progress:
                progress(label, completed, total)
            if completed < total and self.batch_pause > 0:
                self._sleep(self.batch_pause)
        if failed:
            logger.warning("%s of %s batch items failed", failed, total)
        return results

    # ------------------ Sync ------------------
    def sync_data(
        self,
        user_identifier: str,
        days: int | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> SyncResult:
        """Fetch on-call status and fully hydrated incidents for one user.

        Parameters
        ----------
        user_identifier : str
            Email or name substring resolved via ``find_user``.
        days : int | None
            When set, list incidents created in the last ``days`` days;
            otherwise only currently active incidents.
        progress : callback, optional
            Receives ``(message, completed, total)`` after every batch.

        Raises
        ------
        UserNotFoundError
            If no user matches ``user_identifier``.
        """
        if progress:
            progress("Looking up user", None, None)
        user = self.api.find_user(user_identifier)
        if user is None:
            raise UserNotFoundError(f"Could not find user matching: {user_identifier}")

        logger.info("Starting sync for user")
        with ThreadPoolExecutor(max_workers=2) as pool:
            on_call_future = pool.submit(self.api.get_on_call_schedules, user.email)
            incidents_future = pool.submit(self.api.get_user_incidents_with_history, user.id, days)
            on_call = on_call_future.result()
            incidents: list[dict[str, Any]] = incidents_future.result()

        logger.info("Found %s incidents to process", len(incidents))
        incident_results = [map_incident_result(inc) for inc in incidents]

        if progress:
            progress("Fetching incident details", 0, len(incidents))
        full_incidents: list[FullIncident] = self.process_in_batches(
            incidents,
            lambda inc: self.api.get_full_incident_details(inc, user.id),
            progress=progress,
            label="Fetching incident details",
        )

        logger.info("Sync complete")
        return SyncResult(
            on_call=on_call if on_call.schedules else None,
            incidents=incident_results,
            full_incidents=full_incidents,
        )
