"""Central configuration: API endpoints, retry/batch tuning, and note defaults."""

from __future__ import annotations

from collections.abc import Sequence

# =============================================================================
# incident.io Connection Settings
# =============================================================================
API_BASE_V1 = "https://api.incident.io/v1"
API_BASE_V2 = "https://api.incident.io/v2"
INCIDENT_APP_URL = "https://app.incident.io/incidents"
TIMEZONE = "UTC"

REQUEST_TIMEOUT_SECONDS: float = 30.0

# =============================================================================
# Retry / Backoff
# =============================================================================
MAX_RETRIES: int = 5
INITIAL_BACKOFF_MS: int = 500
MAX_BACKOFF_MS: int = 30000
JITTER_MIN: float = 0.75
JITTER_MAX: float = 1.25

# =============================================================================
# Pagination & Fan-out
# =============================================================================
PAGE_SIZE: int = 250  # max allowed by the incidents endpoint

# Each incident fans out to five sub-resource requests, so a batch of 5
# incidents keeps at most 25 requests in flight.
BATCH_SIZE: int = 5
BATCH_PAUSE_SECONDS: float = 0.05
SUBRESOURCE_WORKERS: int = 5
SCHEDULE_CHECK_MAX_WORKERS: int = 8

# =============================================================================
# Incident Status Categories
# =============================================================================
STATUS_CATEGORIES: Sequence[str] = (
    "live",
    "triage",
    "closed",
    "merged",
    "declined",
    "paused",
)

# Categories that count as "currently active" for the active-only listing
ACTIVE_STATUS_CATEGORIES: frozenset[str] = frozenset({"live", "triage"})

CLOSED_STATUS_CATEGORY = "closed"

# Sub-resource records with this status are dropped on fetch
DELETED_STATUS = "deleted"

# =============================================================================
# Settings Defaults & Limits
# =============================================================================
DEFAULT_USER_IDENTIFIER = "james"
DEFAULT_SECTION_HEADER = "## Incidents"
DEFAULT_INCIDENT_NOTES_FOLDER = "Incidents"
DEFAULT_AUTO_SYNC_FREQUENCY_MS: int = 300000  # 5 minutes
MAX_HISTORICAL_DAYS: int = 90
DEFAULT_BACKFILL_DAYS: int = 30  # used when backfilling without a history window

# =============================================================================
# Daily Notes Discovery
# =============================================================================
DEFAULT_DAILY_NOTE_FORMAT = "YYYY-MM-DD"
FALLBACK_DAILY_NOTE_FORMATS: Sequence[str] = ("YYYY-MM-DD", "DD-MM-YYYY", "MM-DD-YYYY")
FALLBACK_DAILY_NOTE_FOLDERS: Sequence[str] = ("", "Daily Notes", "Notes/Daily Notes")

# =============================================================================
# Credentials
# =============================================================================
SECRET_KEY_API = "incident-io-api-key"
API_KEY_ENV_VAR = "INCIDENT_IO_API_KEY"

# =============================================================================
# Rendering Labels
# =============================================================================
ON_CALL_HEADING = "### On-Call"
INCIDENTS_HEADING = "### Active Incidents"
NOT_ON_CALL_PLACEHOLDER = "_Not on-call today_"
NO_INCIDENTS_PLACEHOLDER = "_No incidents you're leading_"
