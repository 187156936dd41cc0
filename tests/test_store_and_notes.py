import json
from dataclasses import replace
from datetime import date, datetime

import pytest

from incident_sync.core.models import FullIncident, OnCallResult, SyncResult
from incident_sync.notes.daily import (
    DailyNoteManager,
    StaticDailyNotesConfig,
    VaultDailyNotesConfig,
    format_date_with_pattern,
)
from incident_sync.notes.incidents import IncidentNoteManager
from incident_sync.notes.store import FileSystemStore, NoteFile, normalize_path, scan_headings

TODAY = date(2024, 1, 15)


def _inc(ref="INC-1", id_="01ABC", created="2024-01-15T10:00:00Z"):
    return FullIncident(
        id=id_,
        reference=ref,
        name="API down",
        created_at=created,
        status="Investigating",
        status_category="live",
        severity="Major",
        url=f"https://app.incident.io/incidents/{ref}",
    )


# ------------------ store ------------------
def test_normalize_path():
    assert normalize_path("a\\b//c/") == "a/b/c"
    assert normalize_path("Incidents/INC-1.md") == "Incidents/INC-1.md"


def test_scan_headings_skips_front_matter():
    text = "---\ntitle: x\n---\n# Title\n\n## Incidents #\ntext"
    headings = scan_headings(text)
    assert [(h.heading, h.level, h.line) for h in headings] == [("Title", 1, 3), ("Incidents", 2, 5)]


def test_process_replaces_atomically(tmp_path):
    store = FileSystemStore(tmp_path)
    (tmp_path / "note.md").write_text("old", encoding="utf-8")
    doc = store.get_file("note.md")
    assert store.process(doc, lambda text: text + " new") == "old new"
    assert (tmp_path / "note.md").read_text(encoding="utf-8") == "old new"
    assert [p.name for p in tmp_path.iterdir()] == ["note.md"]


def test_create_requires_parent_and_new_file(tmp_path):
    store = FileSystemStore(tmp_path)
    with pytest.raises(FileNotFoundError):
        store.create("Missing/INC-1.md", "x")
    store.create_folder("Incidents")
    assert store.create("Incidents/INC-1.md", "x") == NoteFile("Incidents/INC-1.md")
    with pytest.raises(FileExistsError):
        store.create("Incidents/INC-1.md", "y")
    assert store.get_file("Incidents/nope.md") is None
    assert store.list_files("Incidents") == [NoteFile("Incidents/INC-1.md")]


# ------------------ incident notes ------------------
def test_incident_note_created_then_updated(tmp_path, settings):
    store = FileSystemStore(tmp_path)
    manager = IncidentNoteManager(store, settings)
    doc = manager.create_or_update_incident_note(_inc(), now=datetime(2024, 1, 15, 12, 0))
    assert doc.path == "Incidents/INC-1.md"
    first = (tmp_path / doc.path).read_text(encoding="utf-8")
    assert first.startswith("---\nincident_id: 01ABC\n")

    updated = replace(_inc(), status="Fixing")
    manager.create_or_update_incident_note(updated, now=datetime(2024, 1, 15, 13, 0))
    text = (tmp_path / doc.path).read_text(encoding="utf-8")
    assert "status: Fixing" in text
    assert len(store.list_files("Incidents")) == 1


def test_renamed_incident_note_is_found_by_id(tmp_path, settings):
    store = FileSystemStore(tmp_path)
    manager = IncidentNoteManager(store, settings)
    manager.create_or_update_incident_note(_inc())
    (tmp_path / "Incidents" / "INC-1.md").rename(tmp_path / "Incidents" / "API outage.md")

    doc = manager.create_or_update_incident_note(replace(_inc(), status="Closed"))
    assert doc.path == "Incidents/API outage.md"
    assert len(store.list_files("Incidents")) == 1
    assert "status: Closed" in (tmp_path / doc.path).read_text(encoding="utf-8")


def test_sync_incidents_returns_paths(tmp_path, settings):
    manager = IncidentNoteManager(FileSystemStore(tmp_path), settings)
    paths = manager.sync_incidents([_inc("INC-1", "a"), _inc("INC-2", "b")])
    assert paths == {"a": "Incidents/INC-1.md", "b": "Incidents/INC-2.md"}


# ------------------ daily notes ------------------
def test_format_date_with_pattern():
    assert format_date_with_pattern(TODAY, "YYYY-MM-DD") == "2024-01-15"
    assert format_date_with_pattern(TODAY, "DD-MM-YYYY") == "15-01-2024"


def test_daily_note_fallback_locations(tmp_path, settings):
    (tmp_path / "Daily Notes").mkdir()
    (tmp_path / "Daily Notes" / "15-01-2024.md").write_text("# Mon\n", encoding="utf-8")
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, clock=lambda: TODAY)
    assert manager.get_daily_note() == NoteFile("Daily Notes/15-01-2024.md")


def test_explicit_folder_disables_fallbacks(tmp_path, settings):
    (tmp_path / "2024-01-15.md").write_text("# Mon\n", encoding="utf-8")
    settings = replace(settings, daily_notes_folder="Journal")
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, clock=lambda: TODAY)
    assert manager.get_daily_note() is None


def test_config_provider_location(tmp_path, settings):
    (tmp_path / "Journal").mkdir()
    (tmp_path / "Journal" / "15-01-2024.md").write_text("", encoding="utf-8")
    provider = StaticDailyNotesConfig("Journal", "DD-MM-YYYY")
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, provider, clock=lambda: TODAY)
    assert manager.get_daily_note() == NoteFile("Journal/15-01-2024.md")


def test_vault_config_prefers_periodic_notes(tmp_path):
    obsidian = tmp_path / ".obsidian"
    (obsidian / "plugins" / "periodic-notes").mkdir(parents=True)
    (obsidian / "daily-notes.json").write_text(json.dumps({"folder": "Core"}), encoding="utf-8")
    assert VaultDailyNotesConfig(tmp_path).get_config().folder == "Core"

    periodic = {"daily": {"enabled": True, "folder": "Periodic", "format": "DD-MM-YYYY"}}
    (obsidian / "plugins" / "periodic-notes" / "data.json").write_text(json.dumps(periodic), encoding="utf-8")
    config = VaultDailyNotesConfig(tmp_path).get_config()
    assert (config.folder, config.format) == ("Periodic", "DD-MM-YYYY")


def test_vault_config_missing(tmp_path):
    assert VaultDailyNotesConfig(tmp_path).get_config() is None


def test_update_daily_note_inserts_replaces_and_removes(tmp_path, settings):
    note = tmp_path / "2024-01-15.md"
    note.write_text("# Monday\n\nPlans\n\n## Journal\nwrote code", encoding="utf-8")
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, clock=lambda: TODAY)

    result = SyncResult(on_call=OnCallResult(["Primary"]), full_incidents=[_inc()])
    assert manager.update_daily_note(result)
    text = note.read_text(encoding="utf-8")
    assert text.endswith(
        "## Journal\nwrote code\n\n## Incidents\n\n### On-Call\n- On-call for: Primary\n\n"
        "### Active Incidents\n- [[Incidents/INC-1|INC-1: API down]]"
    )

    assert manager.update_daily_note(SyncResult(on_call=None, full_incidents=[_inc()]))
    text = note.read_text(encoding="utf-8")
    assert "On-Call" not in text
    assert text.count("## Incidents") == 1

    assert manager.update_daily_note(SyncResult(on_call=None))
    assert note.read_text(encoding="utf-8") == "# Monday\n\nPlans\n\n## Journal\nwrote code"


def test_update_daily_note_missing_note(tmp_path, settings):
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, clock=lambda: TODAY)
    assert not manager.update_daily_note(SyncResult(on_call=None))
    assert not manager.clear_incidents_section()


def test_clear_incidents_section(tmp_path, settings):
    note = tmp_path / "2024-01-15.md"
    note.write_text("# Monday\n\n## Incidents\n- x\n\n## Journal\ny", encoding="utf-8")
    manager = DailyNoteManager(FileSystemStore(tmp_path), settings, clock=lambda: TODAY)
    assert manager.clear_incidents_section()
    assert note.read_text(encoding="utf-8") == "# Monday\n\n## Journal\ny"


def test_paths_outside_root_are_rejected(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    (tmp_path / "outside.md").write_text("secret", encoding="utf-8")
    store = FileSystemStore(root)
    with pytest.raises(ValueError):
        store.get_file("../outside.md")
    with pytest.raises(ValueError):
        store.create(str(tmp_path / "escape.md"), "x")
    assert not (tmp_path / "escape.md").exists()
    assert store.get_file("Incidents/../missing.md") is None
