from dataclasses import replace
from datetime import date

from incident_sync.core.incident_client import IncidentIOAPI, MaxRetriesExceeded
from incident_sync.core.mappers import build_basic_full_incident
from incident_sync.core.models import FullIncident, OnCallResult, SyncResult, UserModel
from incident_sync.notes.store import FileSystemStore
from incident_sync.runner import SyncRunner, summarize

TODAY = date(2024, 1, 15)


class DummyAPI(IncidentIOAPI):
    def __init__(self, incidents=(), on_call=(), error=None):
        self.incidents = list(incidents)
        self.on_call = list(on_call)
        self.error = error
        self.history_days = "unset"

    def find_user(self, identifier):
        return UserModel(id="U1", name="James", email="james@example.com")

    def get_on_call_schedules(self, email, now=None):
        return OnCallResult(schedules=self.on_call)

    def get_user_incidents_with_history(self, user_id, days=None):
        self.history_days = days
        if self.error:
            raise self.error
        return self.incidents

    def get_full_incident_details(self, incident, user_id=None):
        return build_basic_full_incident(incident, user_id)


def _raw(ref, created, category="live", closed=None):
    raw = {
        "id": ref.lower(),
        "reference": ref,
        "name": f"{ref} name",
        "created_at": created,
        "incident_status": {"name": category.title(), "category": category},
    }
    if closed:
        raw["closed_at"] = closed
    return raw


def _incident(category):
    return FullIncident(
        id="x", reference="INC-1", name="n", created_at="2024-01-15T10:00:00Z",
        status="s", status_category=category, severity="Minor", url="u",
    )


def _runner(tmp_path, settings, api):
    return SyncRunner(settings, api, FileSystemStore(tmp_path), clock=lambda: TODAY)


def test_summarize():
    assert summarize(SyncResult(on_call=None)) == "Synced"
    result = SyncResult(
        on_call=OnCallResult(["Primary"]),
        full_incidents=[_incident("live"), _incident("triage"), _incident("closed")],
    )
    assert summarize(result) == "2 active, 1 historical, 1 on-call"


def test_sync_writes_incident_and_daily_notes(tmp_path, settings):
    (tmp_path / "2024-01-15.md").write_text("# Monday\n", encoding="utf-8")
    api = DummyAPI(incidents=[_raw("INC-7", "2024-01-15T09:00:00Z")], on_call=["Primary"])
    outcome = _runner(tmp_path, settings, api).sync_to_daily()

    assert outcome.ok
    assert outcome.message == "1 active, 1 on-call"
    assert api.history_days is None
    assert (tmp_path / "Incidents" / "INC-7.md").is_file()
    assert outcome.result.full_incidents[0].note_path == "Incidents/INC-7.md"
    daily = (tmp_path / "2024-01-15.md").read_text(encoding="utf-8")
    assert "- [[Incidents/INC-7|INC-7: INC-7 name]]" in daily


def test_history_window_is_passed(tmp_path, settings):
    (tmp_path / "2024-01-15.md").write_text("", encoding="utf-8")
    api = DummyAPI()
    _runner(tmp_path, replace(settings, historical_sync_days=14), api).sync_to_daily()
    assert api.history_days == 14


def test_missing_daily_note(tmp_path, settings):
    outcome = _runner(tmp_path, settings, DummyAPI()).sync_to_daily()
    assert not outcome.ok
    assert outcome.message == "No daily note found for today"


def test_no_api_key(tmp_path, settings):
    outcome = _runner(tmp_path, settings, None).sync_to_daily()
    assert (outcome.ok, outcome.message) == (False, "API key not configured")


def test_api_failure_is_reported(tmp_path, settings):
    api = DummyAPI(error=MaxRetriesExceeded("https://api.incident.io/v2/incidents"))
    runner = _runner(tmp_path, settings, api)
    outcome = runner.sync_to_daily()
    assert not outcome.ok
    assert outcome.message.startswith("Sync failed: Max retries")
    assert not runner.is_syncing


def test_concurrent_trigger_is_rejected(tmp_path, settings):
    (tmp_path / "2024-01-15.md").write_text("", encoding="utf-8")
    nested = []

    class ReentrantAPI(DummyAPI):
        def get_user_incidents_with_history(self, user_id, days=None):
            nested.append(runner.sync_to_daily())
            return []

    runner = _runner(tmp_path, settings, ReentrantAPI())
    outcome = runner.sync_to_daily()
    assert outcome.ok
    assert [(o.ok, o.message) for o in nested] == [(False, "Sync already in progress")]


def test_backfill_previous_days(tmp_path, settings):
    for day in ("2024-01-12", "2024-01-13", "2024-01-14", "2024-01-15"):
        (tmp_path / f"{day}.md").write_text(f"# {day}\n", encoding="utf-8")
    api = DummyAPI(
        incidents=[
            _raw("INC-1", "2024-01-13T08:00:00Z", "closed", closed="2024-01-13T12:00:00Z"),
            _raw("INC-2", "2024-01-14T08:00:00Z"),
        ]
    )
    settings = replace(settings, historical_sync_days=3, update_previous_daily_notes=True)
    runner = _runner(tmp_path, settings, api)
    outcome = runner.sync_to_daily()
    assert outcome.message == "1 active, 1 historical"

    def read(day):
        return (tmp_path / f"{day}.md").read_text(encoding="utf-8")

    assert read("2024-01-12") == "# 2024-01-12\n"
    assert "INC-1" in read("2024-01-13") and "INC-2" not in read("2024-01-13")
    assert "INC-2" in read("2024-01-14") and "INC-1" not in read("2024-01-14")
    assert "INC-2" in read("2024-01-15")


def test_update_settings_reaches_managers(tmp_path, settings):
    runner = _runner(tmp_path, settings, DummyAPI())
    new = replace(settings, section_header="## On duty")
    runner.update_settings(new)
    assert runner.daily_notes.settings is new
    assert runner.incident_notes.settings is new


def test_clear_incidents_section(tmp_path, settings):
    note = tmp_path / "2024-01-15.md"
    note.write_text("# Monday\n\n## Incidents\n- x", encoding="utf-8")
    assert _runner(tmp_path, settings, DummyAPI()).clear_incidents_section()
    assert note.read_text(encoding="utf-8") == "# Monday"


def test_unexpected_error_becomes_failed_outcome(tmp_path, settings):
    class BrokenAPI(DummyAPI):
        def get_user_incidents_with_history(self, user_id, days=None):
            raise ValueError("malformed payload")

    runner = _runner(tmp_path, settings, BrokenAPI())
    outcome = runner.sync_to_daily()
    assert (outcome.ok, outcome.message) == (False, "Sync failed: malformed payload")
    assert not runner.is_syncing
    assert runner.sync_to_daily().message == "Sync failed: malformed payload"


def test_daily_link_follows_renamed_incident_note(tmp_path, settings):
    (tmp_path / "2024-01-15.md").write_text("# Monday\n", encoding="utf-8")
    api = DummyAPI(incidents=[_raw("INC-7", "2024-01-15T09:00:00Z")])
    runner = _runner(tmp_path, settings, api)
    runner.sync_to_daily()
    (tmp_path / "Incidents" / "INC-7.md").rename(tmp_path / "Incidents" / "Checkout outage.md")

    outcome = runner.sync_to_daily()
    assert outcome.ok
    daily = (tmp_path / "2024-01-15.md").read_text(encoding="utf-8")
    assert "- [[Incidents/Checkout outage|INC-7: INC-7 name]]" in daily
    assert "[[Incidents/INC-7|" not in daily
