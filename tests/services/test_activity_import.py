import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from app.config.settings import settings
from app.core.errors import ActivityImportError, ImportCancelledError, StravaAPIError, StravaConnectionError
from app.db.models import Activity, ImportLog, ImportStatus
from app.integrations.strava.schemas import StravaActivity
from app.services import activity_service, mock_data, strava_service

START = datetime(2024, 3, 1, tzinfo=timezone.utc)
END = datetime(2024, 3, 31, tzinfo=timezone.utc)


def _payload(strava_id, **overrides):
    data = {
        "id": strava_id,
        "name": f"Activity {strava_id}",
        "type": "Run",
        "start_date": "2024-03-10T07:30:00Z",
        "elapsed_time": 2400,
        "moving_time": 2300,
        "distance": 8000.0,
        "total_elevation_gain": 55.0,
        "average_speed": 3.3,
        "max_speed": 4.8,
        "start_latlng": [],
        "map": {"summary_polyline": None},
    }
    data.update(overrides)
    return StravaActivity.from_api(data)


class FakeStravaClient:
    def __init__(self, summaries=None, details=None, error=None, on_fetch=None):
        self.summaries = summaries or []
        self.details = details or {}
        self.error = error
        self.on_fetch = on_fetch
        self.detail_calls = []

    def fetch_activities_by_date_range(self, start, end):
        if self.on_fetch is not None:
            self.on_fetch()
        if self.error is not None:
            raise self.error
        return list(self.summaries)

    def fetch_activity(self, activity_id):
        self.detail_calls.append(activity_id)
        if activity_id not in self.details:
            raise StravaAPIError("Strava API error: 404", status_code=404)
        return self.details[activity_id]


def _use_client(monkeypatch, fake):
    monkeypatch.setattr(strava_service, "get_client", lambda session, user_id: fake)


def _import_log(db_session, import_id):
    db_session.expire_all()
    return db_session.get(ImportLog, import_id)


def test_import_stores_detailed_activities(db_session, make_user, monkeypatch):
    user = make_user()
    detail = _payload(
        5_000_001,
        description="Tempo",
        start_latlng=[40.01, -105.27],
        map={"summary_polyline": "_p~iF~ps|U", "polyline": "full"},
    )
    fake = FakeStravaClient(summaries=[_payload(5_000_001), _payload(5_000_002)], details={5_000_001: detail})
    _use_client(monkeypatch, fake)
    progress = []

    result = activity_service.import_activities(
        db_session, user.id, START, END, on_progress=lambda message, percent: progress.append(percent)
    )

    assert result.success is True
    assert result.count == 2
    assert result.used_mock_data is False
    assert fake.detail_calls == [5_000_001, 5_000_002]

    stored = db_session.execute(select(Activity).where(Activity.strava_id == 5_000_001)).scalar_one()
    assert stored.description == "Tempo"
    assert stored.polyline == "_p~iF~ps|U"
    assert stored.start_latlng == [40.01, -105.27]
    assert stored.raw_data["description"] == "Tempo"

    # Detail fetch failed for the second one; its summary is stored
    fallback = db_session.execute(select(Activity).where(Activity.strava_id == 5_000_002)).scalar_one()
    assert fallback.start_latlng is None
    assert fallback.polyline is None

    log = _import_log(db_session, result.import_id)
    assert log.status == ImportStatus.completed
    assert log.activities_count == 2
    assert progress[0] == 20
    assert progress[-1] == 100
    assert activity_service._active_imports == {}


def test_reimport_updates_instead_of_duplicating(db_session, make_user, monkeypatch):
    user = make_user()
    _use_client(monkeypatch, FakeStravaClient(summaries=[_payload(5_000_001)]))
    activity_service.import_activities(db_session, user.id, START, END)

    _use_client(monkeypatch, FakeStravaClient(summaries=[_payload(5_000_001, name="Renamed")]))
    activity_service.import_activities(db_session, user.id, START, END)

    rows = db_session.execute(select(Activity)).scalars().all()
    assert len(rows) == 1
    assert rows[0].name == "Renamed"


def test_api_failure_falls_back_to_mock_data(db_session, make_user, monkeypatch):
    user = make_user()
    fake = FakeStravaClient(error=StravaAPIError("Strava API error: 500", status_code=500))
    _use_client(monkeypatch, fake)

    result = activity_service.import_activities(db_session, user.id, START, END)

    assert result.used_mock_data is True
    assert 5 <= result.count <= 14
    # Mock activities never trigger detail requests
    assert fake.detail_calls == []
    ids = db_session.execute(select(Activity.strava_id)).scalars().all()
    assert all(strava_id > mock_data.MOCK_ID_BASE for strava_id in ids)


def test_empty_result_uses_mock_data_outside_production(db_session, make_user, monkeypatch):
    user = make_user()
    _use_client(monkeypatch, FakeStravaClient(summaries=[]))

    result = activity_service.import_activities(db_session, user.id, START, END)

    assert result.used_mock_data is True
    assert result.count >= 5


def test_empty_result_in_production_imports_nothing(db_session, make_user, monkeypatch, production):
    monkeypatch.setattr(settings, "use_mock_data", False)
    user = make_user()
    _use_client(monkeypatch, FakeStravaClient(summaries=[]))

    result = activity_service.import_activities(db_session, user.id, START, END)

    assert result.count == 0
    assert result.used_mock_data is False
    assert _import_log(db_session, result.import_id).status == ImportStatus.completed


def test_auth_problem_fails_the_import(db_session, make_user, monkeypatch):
    user = make_user()

    def no_connection(session, user_id):
        raise StravaConnectionError("No Strava connection found")

    monkeypatch.setattr(strava_service, "get_client", no_connection)

    with pytest.raises(ActivityImportError) as exc_info:
        activity_service.import_activities(db_session, user.id, START, END)

    assert "Strava authentication issue" in str(exc_info.value)
    log = db_session.execute(select(ImportLog)).scalar_one()
    assert log.status == ImportStatus.failed
    assert "reconnect" in log.error_message
    assert db_session.scalar(select(func.count(Activity.id))) == 0


def test_preset_cancel_event_cancels_import(db_session, make_user, monkeypatch):
    user = make_user()
    _use_client(monkeypatch, FakeStravaClient(summaries=[_payload(5_000_001)]))
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(ImportCancelledError):
        activity_service.import_activities(db_session, user.id, START, END, cancel_event=cancel_event)

    log = db_session.execute(select(ImportLog)).scalar_one()
    assert log.status == ImportStatus.cancelled
    assert db_session.scalar(select(func.count(Activity.id))) == 0


def test_cancel_import_stops_running_import(db_session, make_user, monkeypatch):
    user = make_user()
    cancelled = []

    def cancel_while_fetching():
        (import_id,) = activity_service._active_imports.keys()
        cancelled.append(activity_service.cancel_import(db_session, user.id, import_id))

    _use_client(monkeypatch, FakeStravaClient(summaries=[_payload(5_000_001)], on_fetch=cancel_while_fetching))

    with pytest.raises(ImportCancelledError):
        activity_service.import_activities(db_session, user.id, START, END)

    assert cancelled == [True]
    assert db_session.execute(select(ImportLog)).scalar_one().status == ImportStatus.cancelled
    assert activity_service._active_imports == {}


def test_cancel_import_when_not_running(db_session, make_user):
    user = make_user()
    other = make_user("other")
    log = ImportLog(user_id=user.id, start_date=START, end_date=END, status=ImportStatus.completed)
    db_session.add(log)
    db_session.commit()

    assert activity_service.cancel_import(db_session, user.id, log.id) is False
    assert activity_service.cancel_import(db_session, other.id, log.id) is False
    assert activity_service.cancel_import(db_session, user.id, 9999) is False


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        ("2024-03-31T00:00:00Z", "2024-03-01T00:00:00Z", "Start date must be before end date"),
        ("2023-01-01T00:00:00Z", "2024-03-01T00:00:00Z", "Date range cannot exceed 1 year"),
        ("not-a-date", "2024-03-01T00:00:00Z", None),
    ],
)
def test_validate_import_range_rejects_bad_ranges(start, end, message):
    with pytest.raises(ValueError) as exc_info:
        activity_service.validate_import_range(start, end)
    if message:
        assert str(exc_info.value) == message


def test_validate_import_range_parses_strings():
    start, end = activity_service.validate_import_range("2024-03-01T00:00:00Z", "2024-03-31T00:00:00Z")

    assert start == START
    assert end == END
