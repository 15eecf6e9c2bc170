from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ActivityNotFoundError, StravaAPIError, StravaAuthError
from app.db.models import Activity, ImportLog, ImportStatus
from app.integrations.strava.schemas import StravaActivity
from app.services import activity_service, mock_data, strava_service


def _add_activity(db_session, user_id, strava_id, days_ago=0, **overrides):
    data = {
        "id": strava_id,
        "name": f"Run {strava_id}",
        "type": "Run",
        "start_date": (datetime(2024, 6, 30, tzinfo=timezone.utc) - timedelta(days=days_ago)).isoformat(),
        "elapsed_time": 1800,
        "distance": 5000.0,
        "total_elevation_gain": 20.0,
        "average_speed": 2.8,
    }
    data.update(overrides)
    activity = activity_service.upsert_activity(db_session, user_id, StravaActivity.from_api(data))
    db_session.commit()
    return activity


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr("app.core.fallback.time.sleep", lambda seconds: None)


def test_list_activities_newest_first_and_scoped_to_user(db_session, make_user):
    user = make_user()
    other = make_user("other")
    _add_activity(db_session, user.id, 1, days_ago=3)
    _add_activity(db_session, user.id, 2, days_ago=1)
    _add_activity(db_session, other.id, 3)

    activities = activity_service.list_activities(user.id)

    assert [a["strava_id"] for a in activities] == [2, 1]
    assert activities[0]["start_date"].endswith("+00:00")


def test_activity_stats(db_session, make_user):
    user = make_user()
    _add_activity(db_session, user.id, 1, distance=1000.0, elapsed_time=600, total_elevation_gain=10.0)
    _add_activity(db_session, user.id, 2, distance=2500.0, elapsed_time=900, total_elevation_gain=5.5)

    assert activity_service.get_activity_stats(user.id) == {
        "total_activities": 2,
        "total_distance": 3500.0,
        "total_duration": 1500,
        "total_elevation": 15.5,
    }


def test_activity_stats_for_user_without_activities(db_session, make_user):
    user = make_user()

    assert activity_service.get_activity_stats(user.id)["total_activities"] == 0


def test_recent_activities_limit(db_session, make_user):
    user = make_user()
    for i in range(7):
        _add_activity(db_session, user.id, 100 + i, days_ago=i)

    recent = activity_service.get_recent_activities(user.id, limit=5)

    assert [a["strava_id"] for a in recent] == [100, 101, 102, 103, 104]


def test_listing_falls_back_to_mock_data_when_database_fails(make_user, monkeypatch, no_retry_delay):
    def broken(*args):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(activity_service, "_fetch_activities", broken)
    monkeypatch.setattr(activity_service, "_fetch_stats", broken)
    monkeypatch.setattr(activity_service, "_fetch_recent", broken)
    monkeypatch.setattr(activity_service, "_fetch_import_logs", broken)

    assert len(activity_service.list_activities("user")) == 20
    assert activity_service.get_activity_stats("user") == mock_data.get_mock_activity_stats()
    assert [a["id"] for a in activity_service.get_recent_activities("user")] == [1001, 1002, 1003]
    assert activity_service.get_import_logs("user") == []


def test_get_activity_is_scoped_to_owner(db_session, make_user):
    user = make_user()
    other = make_user("other")
    activity = _add_activity(db_session, user.id, 1)

    assert activity_service.get_activity(db_session, user.id, activity.id).strava_id == 1
    with pytest.raises(ActivityNotFoundError):
        activity_service.get_activity(db_session, other.id, activity.id)


def test_get_activities_by_ids(db_session, make_user):
    user = make_user()
    first = _add_activity(db_session, user.id, 1, days_ago=2)
    second = _add_activity(db_session, user.id, 2, days_ago=1)
    _add_activity(db_session, user.id, 3)

    found = activity_service.get_activities_by_ids(db_session, user.id, [first.id, second.id, 999])

    assert [a.strava_id for a in found] == [2, 1]
    assert activity_service.get_activities_by_ids(db_session, user.id, []) == []


def test_delete_activity(db_session, make_user):
    user = make_user()
    other = make_user("other")
    activity = _add_activity(db_session, user.id, 1)

    with pytest.raises(ActivityNotFoundError):
        activity_service.delete_activity(db_session, other.id, activity.id)

    activity_service.delete_activity(db_session, user.id, activity.id)
    db_session.commit()

    assert activity_service.get_all_user_activities(db_session, user.id) == []


def test_import_logs_latest_five(db_session, make_user):
    user = make_user()
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(7):
        db_session.add(
            ImportLog(
                user_id=user.id,
                start_date=start,
                end_date=start + timedelta(days=1),
                status=ImportStatus.completed,
                activities_count=i,
                created_at=start + timedelta(hours=i),
            )
        )
    db_session.commit()

    logs = activity_service.get_import_logs(user.id)

    assert [log["activities_count"] for log in logs] == [6, 5, 4, 3, 2]


def test_refresh_activity_from_strava_updates_map(db_session, make_user, monkeypatch):
    user = make_user()
    _add_activity(db_session, user.id, 5_000_001)
    detail = StravaActivity.from_api(
        {
            "id": 5_000_001,
            "start_date": "2024-06-30T00:00:00Z",
            "start_latlng": [47.6, -122.3],
            "end_latlng": [47.7, -122.4],
            "map": {"polyline": "_p~iF~ps|U"},
        }
    )

    class _Client:
        def fetch_activity(self, activity_id):
            assert activity_id == 5_000_001
            return detail

    monkeypatch.setattr(strava_service, "get_client", lambda session, user_id: _Client())

    raw = activity_service.refresh_activity_from_strava(db_session, user.id, 5_000_001)

    assert raw["map"]["polyline"] == "_p~iF~ps|U"
    stored = db_session.query(Activity).filter_by(strava_id=5_000_001).one()
    assert stored.polyline == "_p~iF~ps|U"
    assert stored.start_latlng == [47.6, -122.3]


def test_count_activities_in_range(db_session, make_user, monkeypatch):
    user = make_user()

    class _Client:
        def count_activities_by_date_range(self, start, end):
            return 17

    monkeypatch.setattr(strava_service, "get_client", lambda session, user_id: _Client())

    assert activity_service.count_activities_in_range(db_session, user.id, "2024-01-01T00:00:00Z", "2024-02-01T00:00:00Z") == 17
    with pytest.raises(ValueError):
        activity_service.count_activities_in_range(db_session, user.id, "2024-02-01T00:00:00Z", "2024-01-01T00:00:00Z")


def test_count_activities_adds_reconnect_hint(db_session, make_user, monkeypatch):
    user = make_user()

    class _Client:
        def count_activities_by_date_range(self, start, end):
            raise StravaAuthError("Authentication failed")

    monkeypatch.setattr(strava_service, "get_client", lambda session, user_id: _Client())

    with pytest.raises(StravaAuthError) as exc_info:
        activity_service.count_activities_in_range(db_session, user.id, "2024-01-01", "2024-02-01")

    assert "reconnect" in str(exc_info.value)


def test_count_activities_wraps_unexpected_errors(db_session, make_user, monkeypatch):
    user = make_user()

    class _Client:
        def count_activities_by_date_range(self, start, end):
            raise KeyError("page")

    monkeypatch.setattr(strava_service, "get_client", lambda session, user_id: _Client())

    with pytest.raises(StravaAPIError):
        activity_service.count_activities_in_range(db_session, user.id, "2024-01-01", "2024-02-01")
