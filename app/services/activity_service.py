"""Activity listing, statistics, deletion and Strava import."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.errors import (
    ActivityImportError,
    ActivityNotFoundError,
    ImportCancelledError,
    StravaAPIError,
    is_strava_auth_problem,
)
from app.core.fallback import execute_with_fallback
from app.db.models import Activity, ImportLog, ImportStatus
from app.db.session import get_session
from app.integrations.strava.schemas import StravaActivity
from app.services import mock_data, strava_service
from app.utils.timezone import normalize_datetime, parse_datetime, utcnow

ProgressCallback = Callable[[str, int], None]

MAX_IMPORT_RANGE = timedelta(days=365)
IMPORT_LOG_LIMIT = 5

# import log id -> cancellation flag of the running import
_active_imports: dict[int, threading.Event] = {}
_active_imports_lock = threading.Lock()


@dataclass
class ImportResult:
    success: bool
    count: int
    import_id: int | None = None
    used_mock_data: bool = False


def _to_public_dict(activity: Activity) -> dict:
    data = activity.to_dict()
    data["start_date"] = normalize_datetime(activity.start_date).isoformat()
    return data


def _fetch_activities(user_id: str) -> list[dict]:
    with get_session() as session:
        rows = session.execute(
            select(Activity).where(Activity.user_id == user_id).order_by(Activity.start_date.desc())
        ).scalars().all()
        return [_to_public_dict(row) for row in rows]


def list_activities(user_id: str) -> list[dict]:
    """All activities of the user, newest first. Falls back to demo data."""
    return execute_with_fallback(
        lambda: _fetch_activities(user_id),
        mock_data.get_mock_activities,
        timeout_seconds=15,
        label="list activities",
    )


def _fetch_stats(user_id: str) -> dict:
    with get_session() as session:
        row = session.execute(
            select(
                func.count(Activity.id),
                func.coalesce(func.sum(Activity.distance), 0),
                func.coalesce(func.sum(Activity.elapsed_time), 0),
                func.coalesce(func.sum(Activity.total_elevation_gain), 0),
            ).where(Activity.user_id == user_id)
        ).one()
    return {
        "total_activities": int(row[0] or 0),
        "total_distance": float(row[1] or 0),
        "total_duration": int(row[2] or 0),
        "total_elevation": float(row[3] or 0),
    }


def get_activity_stats(user_id: str) -> dict:
    """Count and totals of distance (m), elapsed time (s) and elevation gain (m)."""
    return execute_with_fallback(
        lambda: _fetch_stats(user_id),
        mock_data.get_mock_activity_stats,
        timeout_seconds=15,
        label="activity stats",
    )


def _fetch_recent(user_id: str, limit: int) -> list[dict]:
    with get_session() as session:
        rows = session.execute(
            select(Activity)
            .where(Activity.user_id == user_id)
            .order_by(Activity.start_date.desc())
            .limit(limit)
        ).scalars().all()
        return [_to_public_dict(row) for row in rows]


def get_recent_activities(user_id: str, limit: int = 5) -> list[dict]:
    return execute_with_fallback(
        lambda: _fetch_recent(user_id, limit),
        mock_data.get_mock_recent_activities,
        timeout_seconds=15,
        label="recent activities",
    )


def get_activity(session: Session, user_id: str, activity_id: int) -> Activity:
    """Raises ActivityNotFoundError when missing or owned by someone else."""
    activity = session.execute(
        select(Activity).where(Activity.id == activity_id, Activity.user_id == user_id)
    ).scalar_one_or_none()
    if activity is None:
        raise ActivityNotFoundError("Activity not found")
    return activity


def get_activities_by_ids(session: Session, user_id: str, activity_ids: list[int]) -> list[Activity]:
    if not activity_ids:
        return []
    return list(
        session.execute(
            select(Activity)
            .where(Activity.user_id == user_id, Activity.id.in_(activity_ids))
            .order_by(Activity.start_date.desc())
        ).scalars().all()
    )


def get_all_user_activities(session: Session, user_id: str) -> list[Activity]:
    return list(
        session.execute(
            select(Activity).where(Activity.user_id == user_id).order_by(Activity.start_date.desc())
        ).scalars().all()
    )


def delete_activity(session: Session, user_id: str, activity_id: int) -> None:
    """Delete one of the user's activities.

    Raises:
        ActivityNotFoundError: If the activity does not exist or belongs to another user
    """
    result = session.execute(delete(Activity).where(Activity.id == activity_id, Activity.user_id == user_id))
    if not result.rowcount:
        logger.warning(f"[ACTIVITIES] Delete rejected activity_id={activity_id}, user_id={user_id}")
        raise ActivityNotFoundError("Activity not found or you don't have permission to delete it")
    logger.info(f"[ACTIVITIES] Deleted activity_id={activity_id}, user_id={user_id}")


def _apply_strava_payload(activity: Activity, payload: StravaActivity) -> None:
    activity.name = payload.name
    activity.type = payload.type
    activity.start_date = normalize_datetime(payload.start_date)
    activity.elapsed_time = payload.elapsed_time
    activity.moving_time = payload.moving_time
    activity.distance = payload.distance
    activity.total_elevation_gain = payload.total_elevation_gain or 0
    activity.average_speed = payload.average_speed or 0
    activity.max_speed = payload.max_speed or 0
    activity.average_heartrate = payload.average_heartrate
    activity.max_heartrate = payload.max_heartrate
    activity.start_latlng = payload.latlng_or_none("start_latlng")
    activity.end_latlng = payload.latlng_or_none("end_latlng")
    activity.map_data = payload.map
    activity.description = payload.description or None
    activity.raw_data = payload.raw
    activity.polyline = payload.map_polyline()
    activity.imported_at = utcnow()


def upsert_activity(session: Session, user_id: str, payload: StravaActivity) -> Activity:
    """Insert or update an activity keyed on strava_id."""
    activity = session.execute(select(Activity).where(Activity.strava_id == payload.id)).scalar_one_or_none()
    if activity is None:
        activity = Activity(user_id=user_id, strava_id=payload.id)
        session.add(activity)
    else:
        activity.user_id = user_id
    _apply_strava_payload(activity, payload)
    session.flush()
    return activity


def refresh_activity_from_strava(session: Session, user_id: str, strava_id: int) -> dict:
    """Re-fetch an activity's detail from Strava and update its map and coordinates.

    A failed database update is logged; the fetched payload is still returned.
    """
    detail = strava_service.get_client(session, user_id).fetch_activity(strava_id)

    try:
        activity = session.execute(
            select(Activity).where(Activity.strava_id == strava_id, Activity.user_id == user_id)
        ).scalar_one_or_none()
        if activity is not None:
            with session.begin_nested():
                activity.map_data = detail.map
                activity.raw_data = detail.raw
                activity.start_latlng = detail.latlng_or_none("start_latlng")
                activity.end_latlng = detail.latlng_or_none("end_latlng")
                activity.polyline = detail.map_polyline()
            logger.info(f"[ACTIVITIES] Refreshed strava_id={strava_id} from Strava")
    except Exception as e:
        logger.error(f"[ACTIVITIES] Failed to store refreshed strava_id={strava_id}: {type(e).__name__}: {e}")

    return detail.raw or {}


def validate_import_range(start: datetime | str, end: datetime | str) -> tuple[datetime, datetime]:
    """Parse and check an import date range.

    Raises:
        ValueError: If a date is invalid, start is after end, or the range exceeds one year
    """
    start_dt = parse_datetime(start)
    end_dt = parse_datetime(end)
    if start_dt > end_dt:
        raise ValueError("Start date must be before end date")
    if end_dt - start_dt > MAX_IMPORT_RANGE:
        raise ValueError("Date range cannot exceed 1 year")
    return start_dt, end_dt


def count_activities_in_range(session: Session, user_id: str, start: datetime | str, end: datetime | str) -> int:
    """Number of Strava activities in the range, for the import preview.

    Raises:
        ValueError: If the range is invalid
        StravaConnectionError, StravaAuthError, StravaTokenRefreshError: With a reconnect hint
        StravaAPIError: For other API failures
    """
    start_dt = parse_datetime(start)
    end_dt = parse_datetime(end)
    if start_dt > end_dt:
        raise ValueError("Start date must be before end date")

    try:
        count = strava_service.get_client(session, user_id).count_activities_by_date_range(start_dt, end_dt)
    except Exception as e:
        if is_strava_auth_problem(e):
            raise type(e)(f"{e}. Please reconnect your Strava account in Settings.") from e
        if isinstance(e, StravaAPIError):
            raise
        raise StravaAPIError(f"Failed to count activities: {e}") from e

    logger.info(f"[IMPORT] {count} activities in range for user_id={user_id}")
    return count


def _report(on_progress: ProgressCallback | None, message: str, percent: int) -> None:
    if on_progress is not None:
        on_progress(message, percent)


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ImportCancelledError("Import cancelled by user")


def _mock_allowed() -> bool:
    return not settings.is_production or settings.use_mock_data


def _finish_log(session: Session, log: ImportLog, status: str, count: int | None = None, error: str | None = None) -> None:
    log.status = status
    if count is not None:
        log.activities_count = count
    if error is not None:
        log.error_message = error
    # Persist now; the caller's session rolls back when the import raises
    session.commit()


def import_activities(
    session: Session,
    user_id: str,
    start: datetime | str,
    end: datetime | str,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> ImportResult:
    """Import Strava activities in [start, end] for the user.

    Creates an import log, fetches summaries (falling back to demo data when
    allowed), then upserts each activity, fetching its detail when it is a
    real Strava activity. Per-activity failures are logged and skipped.

    Returns:
        ImportResult with the number of stored activities

    Raises:
        ActivityImportError: If the import fails; the log is marked failed
        ImportCancelledError: If cancel_event is set; the log is marked cancelled
    """
    start_dt, end_dt = validate_import_range(start, end)
    cancel_event = cancel_event or threading.Event()

    log = ImportLog(user_id=user_id, start_date=start_dt, end_date=end_dt, status=ImportStatus.in_progress, created_at=utcnow())
    session.add(log)
    session.commit()
    with _active_imports_lock:
        _active_imports[log.id] = cancel_event
    logger.info(f"[IMPORT] Started import_id={log.id} user_id={user_id} range={start_dt.date()}..{end_dt.date()}")

    try:
        _report(on_progress, "Fetching activities from Strava...", 20)
        _check_cancelled(cancel_event)

        used_mock = False
        client = None
        try:
            client = strava_service.get_client(session, user_id)
            summaries = client.fetch_activities_by_date_range(start_dt, end_dt)
        except Exception as e:
            if is_strava_auth_problem(e):
                raise ActivityImportError(f"Strava authentication issue: {e}. Please reconnect your Strava account in Settings.") from e
            logger.error(f"[IMPORT] Error fetching from Strava API: {e}")
            _report(on_progress, "Error fetching from Strava API, using mock data instead...", 30)
            summaries = [StravaActivity.from_api(raw) for raw in mock_data.generate_mock_activities(start_dt, end_dt)]
            used_mock = True

        if not summaries and not used_mock:
            if not _mock_allowed():
                _finish_log(session, log, ImportStatus.completed, count=0)
                _report(on_progress, f"No activities found between {start_dt.date()} and {end_dt.date()}", 100)
                logger.info(f"[IMPORT] No activities found import_id={log.id}")
                return ImportResult(success=True, count=0, import_id=log.id)
            _report(on_progress, "No activities found in Strava, using mock data for testing...", 30)
            summaries = [StravaActivity.from_api(raw) for raw in mock_data.generate_mock_activities(start_dt, end_dt)]
            used_mock = True

        _report(on_progress, f"Processing {len(summaries)} activities...", 50)
        _check_cancelled(cancel_event)

        if used_mock:
            client = None
        processed = 0
        total = len(summaries)
        for i, summary in enumerate(summaries):
            _check_cancelled(cancel_event)
            _report(on_progress, f"Processing activity {i + 1} of {total}: {summary.name}", 50 + int(i / total * 40))

            payload = summary
            if client is not None and summary.id > mock_data.MOCK_ID_BASE:
                try:
                    payload = client.fetch_activity(summary.id)
                except Exception as e:
                    logger.warning(f"[IMPORT] Detail fetch failed for strava_id={summary.id}, using summary: {e}")

            try:
                with session.begin_nested():
                    upsert_activity(session, user_id, payload)
                processed += 1
            except Exception as e:
                logger.error(f"[IMPORT] Failed to store strava_id={summary.id}: {type(e).__name__}: {e}")

        _check_cancelled(cancel_event)
        _finish_log(session, log, ImportStatus.completed, count=processed)
        _report(on_progress, f"Successfully imported {processed} activities!", 100)
        logger.info(f"[IMPORT] Completed import_id={log.id}: {processed}/{total} activities")
        return ImportResult(success=True, count=processed, import_id=log.id, used_mock_data=used_mock)

    except ImportCancelledError:
        # Activities stored before the cancellation are kept
        _finish_log(session, log, ImportStatus.cancelled, error="Import cancelled by user")
        logger.info(f"[IMPORT] Cancelled import_id={log.id}")
        raise
    except Exception as e:
        session.rollback()
        message = str(e) or type(e).__name__
        _finish_log(session, log, ImportStatus.failed, error=message)
        logger.error(f"[IMPORT] Failed import_id={log.id}: {message}")
        if isinstance(e, ActivityImportError):
            raise ActivityImportError(f"Import failed: {message}") from e.__cause__
        raise ActivityImportError(f"Import failed: {message}") from e
    finally:
        with _active_imports_lock:
            _active_imports.pop(log.id, None)


def cancel_import(session: Session, user_id: str, import_id: int) -> bool:
    """Signal a running import to stop. Returns False when it is not running."""
    log = session.get(ImportLog, import_id)
    if log is None or log.user_id != user_id:
        return False
    with _active_imports_lock:
        event = _active_imports.get(import_id)
    if event is None:
        return False
    event.set()
    logger.info(f"[IMPORT] Cancellation requested import_id={import_id}")
    return True


def _fetch_import_logs(user_id: str) -> list[dict]:
    with get_session() as session:
        rows = session.execute(
            select(ImportLog)
            .where(ImportLog.user_id == user_id)
            .order_by(ImportLog.created_at.desc(), ImportLog.id.desc())
            .limit(IMPORT_LOG_LIMIT)
        ).scalars().all()
        return [row.to_dict() for row in rows]


def get_import_logs(user_id: str) -> list[dict]:
    """Latest import batches of the user."""
    return execute_with_fallback(
        lambda: _fetch_import_logs(user_id),
        list,
        timeout_seconds=15,
        label="import logs",
    )
