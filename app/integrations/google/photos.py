from __future__ import annotations

import datetime as dt

import httpx
from loguru import logger

from app.core.errors import GooglePhotosError

GOOGLE_PHOTOS_API_URL = "https://photoslibrary.googleapis.com/v1"
SEARCH_PAGE_SIZE = 25
THUMBNAIL_SUFFIX = "=w200-h200"


def _date_part(value: dt.datetime) -> dict[str, int]:
    return {"year": value.year, "month": value.month, "day": value.day}


class GooglePhotosClient:
    """Minimal Photos Library API client (media search only)."""

    def __init__(self, access_token: str, timeout: float = 15):
        self._access_token = access_token
        self._timeout = timeout

    def search_media_items(self, start: dt.datetime, end: dt.datetime) -> list[dict]:
        """Return up to 25 photos taken between the two dates (day granularity).

        Raises:
            GooglePhotosError: If the API call fails
        """
        body = {
            "pageSize": SEARCH_PAGE_SIZE,
            "filters": {"dateFilter": {"ranges": [{"startDate": _date_part(start), "endDate": _date_part(end)}]}},
        }
        try:
            resp = httpx.post(
                f"{GOOGLE_PHOTOS_API_URL}/mediaItems:search",
                headers={"Authorization": f"Bearer {self._access_token}"},
                json=body,
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[GOOGLE_PHOTOS] Media search failed: {type(e).__name__}: {e}")
            raise GooglePhotosError("Failed to fetch photos from Google Photos") from e

        items = resp.json().get("mediaItems") or []
        return [
            {
                "id": item.get("id"),
                "url": f"{item.get('baseUrl')}{THUMBNAIL_SUFFIX}",
                "creationTime": (item.get("mediaMetadata") or {}).get("creationTime"),
                "width": (item.get("mediaMetadata") or {}).get("width"),
                "height": (item.get("mediaMetadata") or {}).get("height"),
            }
            for item in items
        ]
