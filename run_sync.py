"""Command line launcher for incident-sync.

Usage:
  python run_sync.py --config incident_sync.yaml            # one sync cycle
  python run_sync.py --config incident_sync.yaml --watch    # repeat on auto_sync_frequency
  python run_sync.py --test-connection
  python run_sync.py --clear

The API key is read from ``INCIDENT_IO_API_KEY`` when set, otherwise from
the settings file.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from incident_sync.core.config import API_KEY_ENV_VAR, SECRET_KEY_API
from incident_sync.core.credentials import (
    EnvSecretStore,
    SettingsSecretStore,
    migrate_api_key,
    resolve_api_key,
)
from incident_sync.core.incident_client import IncidentIOAPI
from incident_sync.core.settings import DEFAULT_SETTINGS_FILE, load_settings
from incident_sync.notes.daily import VaultDailyNotesConfig
from incident_sync.notes.store import FileSystemStore
from incident_sync.runner import SyncRunner

logger = logging.getLogger("incident_sync")


def _progress(message: str, current: int | None, total: int | None) -> None:
    if total:
        logger.info("%s (%s/%s)", message, current or 0, total)
    else:
        logger.info(message)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sync incident.io incidents into markdown notes")
    parser.add_argument("--config", default=DEFAULT_SETTINGS_FILE, help="YAML settings file")
    parser.add_argument("--vault", help="Notes root directory (overrides vault_path)")
    parser.add_argument("--watch", action="store_true", help="Keep syncing on auto_sync_frequency")
    parser.add_argument("--test-connection", action="store_true", help="Check the API key and exit")
    parser.add_argument("--clear", action="store_true", help="Remove the section from today's note")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings = load_settings(args.config)
    if args.vault:
        settings.vault_path = args.vault

    env_store = EnvSecretStore()
    secret_store = env_store if env_store.get(SECRET_KEY_API) else SettingsSecretStore(settings, args.config)
    migrate_api_key(settings, secret_store, args.config)
    api_key = resolve_api_key(settings, secret_store)
    api = IncidentIOAPI(api_key, timezone=settings.timezone) if api_key else None

    store = FileSystemStore(settings.vault_path)
    runner = SyncRunner(settings, api, store, config_provider=VaultDailyNotesConfig(settings.vault_path))

    if args.test_connection:
        if api is None:
            logger.error("API key not configured (set %s or api_key in %s)", API_KEY_ENV_VAR, args.config)
            return 1
        check = api.test_connection()
        if check.success and check.user:
            logger.info("Connected as %s <%s>", check.user.name, check.user.email)
            return 0
        logger.error("Connection failed: %s", check.error)
        return 1

    if args.clear:
        if runner.clear_incidents_section():
            logger.info("Cleared incidents section")
            return 0
        logger.error("No daily note found")
        return 1

    while True:
        outcome = runner.sync_to_daily(progress=_progress)
        if outcome.ok:
            logger.info("incident.io: %s", outcome.message)
        else:
            logger.error("incident.io: %s", outcome.message)
        if not (args.watch and settings.auto_sync_enabled and settings.auto_sync_frequency > 0):
            return 0 if outcome.ok else 1
        time.sleep(settings.auto_sync_frequency / 1000.0)


if __name__ == "__main__":
    sys.exit(main())
