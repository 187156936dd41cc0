"""API key storage: a secret-store interface with a plaintext settings fallback."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from .config import API_KEY_ENV_VAR, SECRET_KEY_API
from .settings import SyncSettings, save_settings

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    # False when values do not outlive the process
    persistent: bool

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class EnvSecretStore:
    """Secrets held in process environment variables."""

    persistent = False

    def __init__(self, mapping: dict[str, str] | None = None):
        self._names = mapping or {SECRET_KEY_API: API_KEY_ENV_VAR}

    def _var(self, key: str) -> str:
        return self._names.get(key) or key.upper().replace("-", "_")

    def get(self, key: str) -> str | None:
        return os.environ.get(self._var(key)) or None

    def set(self, key: str, value: str) -> None:
        os.environ[self._var(key)] = value

    def delete(self, key: str) -> None:
        os.environ.pop(self._var(key), None)


class SettingsSecretStore:
    """Fallback that keeps the API key in the settings file, in plaintext."""

    persistent = True
    _warned = False

    def __init__(self, settings: SyncSettings, path: str | Path | None = None):
        self.settings = settings
        self.path = path
        if not SettingsSecretStore._warned:
            logger.warning("No secret store available; the API key is stored in plaintext settings")
            SettingsSecretStore._warned = True

    def get(self, key: str) -> str | None:
        if key == SECRET_KEY_API:
            return self.settings.api_key or None
        return None

    def set(self, key: str, value: str) -> None:
        if key != SECRET_KEY_API:
            return
        self.settings.api_key = value
        self.settings.api_key_configured = True
        save_settings(self.settings, self.path)

    def delete(self, key: str) -> None:
        if key != SECRET_KEY_API:
            return
        self.settings.api_key = None
        self.settings.api_key_configured = False
        save_settings(self.settings, self.path)


def migrate_api_key(settings: SyncSettings, store: SecretStore | None, path: str | Path | None = None) -> bool:
    """Move a legacy plaintext key into ``store``; returns True when settings changed."""
    if not settings.api_key or settings.api_key_configured:
        return False
    # The key only leaves the settings file for a store that persists it
    if store is None or isinstance(store, SettingsSecretStore) or not store.persistent:
        settings.api_key_configured = True
        save_settings(settings, path)
        logger.info("API key configured (plaintext fallback)")
        return True
    logger.info("Migrating API key to secret store")
    store.set(SECRET_KEY_API, settings.api_key)
    settings.api_key = None
    settings.api_key_configured = True
    save_settings(settings, path)
    return True


def resolve_api_key(settings: SyncSettings, store: SecretStore) -> str | None:
    """Read the API key for an already-configured installation."""
    key = store.get(SECRET_KEY_API) or settings.api_key
    if key:
        return key
    if settings.api_key_configured:
        logger.warning("API key marked as configured but not found")
    return None
