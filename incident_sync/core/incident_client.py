"""incident.io REST client (v1 + v2 namespaces, retries, cursor pagination)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytz
import requests

from .backoff import JitterFn, add_jitter, calculate_backoff
from .config import (
    API_BASE_V1,
    API_BASE_V2,
    MAX_RETRIES,
    PAGE_SIZE,
    REQUEST_TIMEOUT_SECONDS,
    SCHEDULE_CHECK_MAX_WORKERS,
    SUBRESOURCE_WORKERS,
    TIMEZONE,
)
from .mappers import (
    build_basic_full_incident,
    drop_deleted,
    duration_minutes,
    has_role,
    map_action,
    map_attachment,
    map_follow_up,
    map_timestamps,
    map_update,
    map_user,
    status_category_of,
)
from .models import (
    ActionModel,
    AttachmentModel,
    ConnectionCheck,
    FollowUpModel,
    FullIncident,
    OnCallResult,
    TimestampModel,
    UpdateModel,
    UserModel,
)
from .status import is_active_category, is_closed_category

logger = logging.getLogger(__name__)


class IncidentIOAPIError(RuntimeError):
    """Terminal API failure; ``status_code`` is None when no response was received."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class MaxRetriesExceeded(IncidentIOAPIError):
    def __init__(self, url: str, last_error: BaseException | None = None):
        message = f"Max retries ({MAX_RETRIES}) exceeded for: {url}"
        if last_error is not None:
            message = f"{message} (last error: {last_error})"
        super().__init__(message, url=url)
        self.last_error = last_error


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, IncidentIOAPIError) and exc.status_code == 404


def format_date_for_api(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IncidentIOAPI:
    def __init__(
        self,
        api_key: str,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        jitter: JitterFn = add_jitter,
        timezone: str = TIMEZONE,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self._sleep = sleep
        self._jitter = jitter
        self._tz = pytz.timezone(timezone)

    # ------------------ Transport ------------------
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _backoff(self, attempt: int, retry_after: str | None = None) -> None:
        delay_ms = calculate_backoff(attempt, retry_after, self._jitter)
        self._sleep(delay_ms / 1000.0)

    def request(self, endpoint: str, version: str = "v2", params: dict[str, Any] | None = None) -> Any:
        """Perform one logical GET, retrying transient failures.

        429 honours ``Retry-After``; 5xx and transport errors back off
        exponentially; any other non-2xx status fails immediately.
        """
        base = API_BASE_V1 if version == "v1" else API_BASE_V2
        url = f"{base}{endpoint}"
        last_error: requests.RequestException | None = None

        for attempt in range(MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
            except requests.RequestException as exc:
                last_error = exc
                logger.debug(
                    "Network error on %s, retrying (attempt %s/%s): %s", url, attempt + 1, MAX_RETRIES, exc
                )
                self._backoff(attempt)
                continue

            status = resp.status_code
            if 200 <= status < 300:
                try:
                    return resp.json()
                except ValueError as exc:
                    raise IncidentIOAPIError(
                        f"Invalid JSON from {url}", status_code=status, url=url
                    ) from exc
            if status == 429:
                logger.debug("Rate limited (429), retrying (attempt %s/%s)", attempt + 1, MAX_RETRIES)
                self._backoff(attempt, resp.headers.get("Retry-After"))
                continue
            if status >= 500:
                logger.debug("Server error (%s), retrying (attempt %s/%s)", status, attempt + 1, MAX_RETRIES)
                self._backoff(attempt)
                continue
            raise IncidentIOAPIError(
                f"API request failed with status {status}: {url}", status_code=status, url=url
            )

        raise MaxRetriesExceeded(url, last_error) from last_error

    # ------------------ Users ------------------
    def test_connection(self) -> ConnectionCheck:
        try:
            data = self.request("/users")
        except IncidentIOAPIError as exc:
            return ConnectionCheck(success=False, error=str(exc))
        users = (data or {}).get("users") or []
        if users:
            return ConnectionCheck(success=True, user=map_user(users[0]))
        return ConnectionCheck(success=False, error="No users found in response")

    def get_users(self) -> list[UserModel]:
        data = self.request("/users")
        return [map_user(u) for u in (data or {}).get("users") or []]

    def find_user(self, identifier: str) -> UserModel | None:
        """First user whose email or name contains ``identifier`` (case-insensitive).

        Several matches are not disambiguated; API order decides.
        """
        needle = identifier.lower()
        for user in self.get_users():
            if needle in user.email.lower() or needle in user.name.lower():
                return user
        return None

    # ------------------ Incidents ------------------
    def get_active_incidents(self) -> list[dict[str, Any]]:
        data = self.request("/incidents")
        return [
            inc for inc in (data or {}).get("incidents") or [] if is_active_category(status_category_of(inc))
        ]

    def get_user_incidents(self, user_id: str) -> list[dict[str, Any]]:
        """Active incidents the user is leading."""
        return [inc for inc in self.get_active_incidents() if has_role(inc, user_id, "lead")]

    def get_all_incidents_paginated(
        self,
        *,
        created_after: date | None = None,
        active_only: bool = False,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"page_size": PAGE_SIZE}
        if created_after is not None:
            params["created_at[gte]"] = format_date_for_api(created_after)
        if active_only:
            params["status_category[one_of]"] = "live,triage"

        out: list[dict[str, Any]] = []
        cursor = None
        while True:
            qp = dict(params)
            if cursor:
                qp["after"] = cursor
            data = self.request("/incidents", params=qp) or {}
            incidents = data.get("incidents") or []
            out.extend(incidents)
            logger.debug("Fetched page with %s incidents (total: %s)", len(incidents), len(out))
            cursor = (data.get("pagination_meta") or {}).get("after")
            if len(incidents) < PAGE_SIZE or not cursor:
                break
        return out

    def get_user_incidents_with_history(self, user_id: str, days: int | None = None) -> list[dict[str, Any]]:
        """Incidents where the user holds any role.

        With ``days`` the listing covers incidents created in the last ``days``
        days; otherwise only currently active incidents are requested.
        """
        if days:
            cutoff = datetime.now(self._tz).date() - timedelta(days=days)
            incidents = self.get_all_incidents_paginated(created_after=cutoff)
        else:
            incidents = self.get_all_incidents_paginated(active_only=True)
        logger.debug("Fetched %s incidents from API", len(incidents))
        mine = [inc for inc in incidents if has_role(inc, user_id)]
        logger.debug("%s incidents involve user", len(mine))
        return mine

    # ------------------ Incident Sub-resources ------------------
    def _fetch_list(self, endpoint: str, key: str, incident_id: str, label: str, version: str = "v2") -> list:
        """Fetch one optional sub-resource; failures degrade to an empty list."""
        try:
            data = self.request(endpoint, version, params={"incident_id": incident_id})
        except IncidentIOAPIError as exc:
            # 404 means the feature is not enabled for this organisation
            if not is_not_found(exc):
                logger.error("Error fetching %s for incident %s: %s", label, incident_id, exc)
            return []
        return (data or {}).get(key) or []

    def get_incident_updates(self, incident_id: str) -> list[UpdateModel]:
        raw = self._fetch_list("/incident_updates", "incident_updates", incident_id, "updates")
        return [map_update(u) for u in raw]

    def get_incident_follow_ups(self, incident_id: str) -> list[FollowUpModel]:
        raw = self._fetch_list("/follow_ups", "follow_ups", incident_id, "follow-ups")
        return [map_follow_up(f) for f in drop_deleted(raw)]

    def get_incident_actions(self, incident_id: str) -> list[ActionModel]:
        raw = self._fetch_list("/actions", "actions", incident_id, "actions")
        return [map_action(a) for a in drop_deleted(raw)]

    def get_incident_attachments(self, incident_id: str) -> list[AttachmentModel]:
        raw = self._fetch_list(
            "/incident_attachments", "incident_attachments", incident_id, "attachments", version="v1"
        )
        return [map_attachment(a) for a in raw]

    def get_incident_timestamps(self, incident_id: str) -> list[TimestampModel]:
        raw = self._fetch_list(
            "/incident_timestamp_values", "incident_timestamp_values", incident_id, "timestamps"
        )
        return map_timestamps(raw)

    def get_full_incident_details(self, incident: dict[str, Any], user_id: str | None = None) -> FullIncident:
        """Base record plus the five sub-resources, fetched concurrently."""
        full = build_basic_full_incident(incident, user_id)
        logger.debug("Fetching full details for %s", full.reference)

        with ThreadPoolExecutor(max_workers=SUBRESOURCE_WORKERS) as pool:
            f_updates = pool.submit(self.get_incident_updates, full.id)
            f_follow_ups = pool.submit(self.get_incident_follow_ups, full.id)
            f_actions = pool.submit(self.get_incident_actions, full.id)
            f_attachments = pool.submit(self.get_incident_attachments, full.id)
            f_timestamps = pool.submit(self.get_incident_timestamps, full.id)
            full.updates = f_updates.result()
            full.follow_ups = f_follow_ups.result()
            full.actions = f_actions.result()
            full.attachments = f_attachments.result()
            full.timestamps = f_timestamps.result()

        # The incidents listing does not always carry closed_at; the timeline does
        if not full.closed_at and is_closed_category(full.status_category):
            closed_update = next(
                (u for u in full.updates if is_closed_category(u.new_status_category)),
                None,
            )
            if closed_update is not None:
                full.closed_at = closed_update.created_at
                full.duration_minutes = duration_minutes(full.created_at, full.closed_at)
        return full

    # ------------------ On-call ------------------
    def get_schedules(self) -> list[dict[str, Any]]:
        data = self.request("/schedules")
        return (data or {}).get("schedules") or []

    def get_schedule_entries(self, schedule_id: str, now: str) -> dict[str, Any]:
        return self.request(
            "/schedule_entries",
            params={
                "schedule_id": schedule_id,
                "entry_window_start": now,
                "entry_window_end": now,
            },
        )

    def _is_on_call(self, schedule: dict[str, Any], email: str, now: str) -> bool:
        try:
            entries = self.get_schedule_entries(schedule.get("id"), now) or {}
        except IncidentIOAPIError as exc:
            logger.error("Error checking schedule %s: %s", schedule.get("name"), exc)
            return False
        final = (entries.get("schedule_entries") or {}).get("final") or []
        target = email.lower()
        return any(((e.get("user") or {}).get("email") or "").lower() == target for e in final)

    def get_on_call_schedules(self, email: str, now: str | None = None) -> OnCallResult:
        schedules = self.get_schedules()
        if not schedules:
            return OnCallResult()
        now = now or utc_now_iso()
        workers = max(1, min(SCHEDULE_CHECK_MAX_WORKERS, len(schedules)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            checks = list(pool.map(lambda s: self._is_on_call(s, email, now), schedules))
        return OnCallResult(schedules=[s.get("name") for s, on in zip(schedules, checks, strict=True) if on])
