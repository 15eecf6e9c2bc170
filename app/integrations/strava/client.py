from __future__ import annotations

import datetime as dt

import httpx
from loguru import logger

from app.core.errors import StravaAPIError, StravaAuthError
from app.integrations.strava.schemas import StravaActivity

STRAVA_BASE_URL = "https://www.strava.com/api/v3"

IMPORT_PAGE_SIZE = 30
COUNT_PAGE_SIZE = 100
COUNT_MAX_PAGES = 10

AUTH_FAILED_MESSAGE = "Authentication failed. Please reconnect your Strava account in Settings."


class StravaClient:
    """Thin Strava API client.

    - One call per method, except the date range helpers which page
    - 401 raises StravaAuthError, other failures StravaAPIError
    """

    def __init__(self, access_token: str, timeout: float = 15):
        self._access_token = access_token
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _get(self, path: str, params: dict | None = None):
        try:
            resp = httpx.get(
                f"{STRAVA_BASE_URL}{path}",
                headers=self._headers(),
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"[STRAVA_API] Request to {path} failed: {type(e).__name__}: {e}")
            raise StravaAPIError(f"Strava API request failed: {e}") from e

        if resp.status_code == 401:
            logger.warning(f"[STRAVA_API] 401 Unauthorized for {path}")
            raise StravaAuthError(AUTH_FAILED_MESSAGE)
        if resp.status_code >= 400:
            logger.error(f"[STRAVA_API] {path} returned {resp.status_code}: {resp.text[:200]}")
            raise StravaAPIError(f"Strava API error: {resp.status_code}", status_code=resp.status_code)

        return resp.json()

    def fetch_athlete(self) -> dict:
        """Fetch the authenticated athlete profile."""
        return self._get("/athlete")

    def fetch_activity(self, activity_id: int) -> StravaActivity:
        """Fetch detailed activity data (includes the full map polyline)."""
        payload = self._get(f"/activities/{activity_id}")
        return StravaActivity.from_api(payload)

    def fetch_activities_page(
        self,
        *,
        after: dt.datetime,
        before: dt.datetime,
        page: int = 1,
        per_page: int = IMPORT_PAGE_SIZE,
    ) -> list[StravaActivity]:
        """Fetch ONE PAGE of activity summaries between two timestamps."""
        payload = self._get(
            "/athlete/activities",
            params={
                "after": int(after.timestamp()),
                "before": int(before.timestamp()),
                "page": page,
                "per_page": per_page,
            },
        )
        if not payload:
            return []
        return [StravaActivity.from_api(raw) for raw in payload]

    def fetch_activities_by_date_range(self, start: dt.datetime, end: dt.datetime) -> list[StravaActivity]:
        """Fetch every activity summary in the range, page by page until an empty page."""
        activities: list[StravaActivity] = []
        page = 1
        while True:
            batch = self.fetch_activities_page(after=start, before=end, page=page, per_page=IMPORT_PAGE_SIZE)
            if not batch:
                break
            activities.extend(batch)
            logger.debug(f"[STRAVA_API] Page {page}: {len(batch)} activities (total {len(activities)})")
            page += 1
        logger.info(f"[STRAVA_API] Fetched {len(activities)} activities between {start.date()} and {end.date()}")
        return activities

    def count_activities_by_date_range(self, start: dt.datetime, end: dt.datetime) -> int:
        """Count activities in the range.

        Pages of 100, stopping at the first short page. At most 10 pages are
        read, so very large ranges are capped at 1000.
        """
        total = 0
        for page in range(1, COUNT_MAX_PAGES + 1):
            batch = self._get(
                "/athlete/activities",
                params={
                    "after": int(start.timestamp()),
                    "before": int(end.timestamp()),
                    "page": page,
                    "per_page": COUNT_PAGE_SIZE,
                },
            )
            total += len(batch or [])
            if len(batch or []) < COUNT_PAGE_SIZE:
                break
        return total
