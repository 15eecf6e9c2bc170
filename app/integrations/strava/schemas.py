from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StravaActivity(BaseModel):
    """Strava activity summary or detail payload.

    Only the fields stored in columns are declared; everything else is kept
    through ``extra="allow"`` and preserved in ``raw``.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    type: str = ""
    start_date: datetime
    elapsed_time: int = 0
    moving_time: int | None = None
    distance: float = 0.0
    total_elevation_gain: float = 0.0
    average_speed: float = 0.0
    max_speed: float = 0.0
    average_heartrate: float | None = None
    max_heartrate: float | None = None
    start_latlng: list[float] | None = None
    end_latlng: list[float] | None = None
    map: dict | None = None
    description: str | None = None

    raw: dict | None = None  # Raw API response (may contain nested dicts and lists)

    @classmethod
    def from_api(cls, payload: dict) -> StravaActivity:
        return cls(**payload, raw=payload)

    def map_polyline(self) -> str | None:
        """Route polyline from the map object: summary first, then full."""
        if not self.map:
            return None
        return self.map.get("summary_polyline") or self.map.get("polyline") or None

    def latlng_or_none(self, field: str) -> list[float] | None:
        """Strava sends [] for activities without GPS."""
        value = getattr(self, field)
        return value if value else None
