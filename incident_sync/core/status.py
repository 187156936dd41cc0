"""Status category helpers.

incident.io reports each incident status with a coarse category. These
helpers centralize the category checks used by the API client, the runner's
outcome summary, and the close-time back-fill.
"""

from __future__ import annotations

from .config import ACTIVE_STATUS_CATEGORIES, CLOSED_STATUS_CATEGORY, STATUS_CATEGORIES


def normalize_category(value: str | None) -> str:
    """Lowercase and validate a status category.

    Parameters
    ----------
    value : str | None
        Raw category from the API.

    Returns
    -------
    str
        One of the known categories, or "closed" for missing/unknown values.

    Examples
    --------
    >>> normalize_category("Live")
    'live'
    >>> normalize_category(None)
    'closed'
    """
    if not value:
        return CLOSED_STATUS_CATEGORY
    text = str(value).strip().lower()
    if text in STATUS_CATEGORIES:
        return text
    return CLOSED_STATUS_CATEGORY


def is_active_category(value: str | None) -> bool:
    """Check whether a category counts as active (live or triage)."""
    if not value:
        return False
    return str(value).strip().lower() in ACTIVE_STATUS_CATEGORIES


def is_closed_category(value: str | None) -> bool:
    """Check whether a category is exactly "closed".

    Merged and declined incidents are terminal too, but only a transition
    to "closed" marks the moment an incident was resolved.
    """
    if not value:
        return False
    return str(value).strip().lower() == CLOSED_STATUS_CATEGORY
