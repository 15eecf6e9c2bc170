"""Demo activity data used when the database or Strava is unavailable."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from app.utils.timezone import normalize_datetime, utcnow

MOCK_ACTIVITY_TYPES = ["Run", "Ride", "Swim", "Hike", "Walk", "StandUp Paddling", "Kayaking"]

# Typical speed in m/s, used to derive elapsed_time from distance
TYPICAL_SPEEDS = {
    "Run": 3.5,
    "Ride": 8.0,
    "Swim": 1.2,
    "Hike": 1.2,
    "Walk": 1.5,
    "StandUp Paddling": 2.0,
    "Kayaking": 2.5,
}

# (minimum, spread) in meters for listing data
_LIST_DISTANCES = {
    "Run": (5000, 5000),
    "Ride": (20000, 30000),
    "Swim": (1000, 1000),
    "Hike": (8000, 7000),
    "Walk": (3000, 2000),
    "StandUp Paddling": (5000, 3000),
    "Kayaking": (7000, 5000),
}

# (minimum, spread) in meters for generated imports
_IMPORT_DISTANCES = {
    "Run": (3000, 10000),
    "Ride": (10000, 50000),
    "Swim": (500, 2000),
    "Hike": (5000, 15000),
    "Walk": (1000, 5000),
    "StandUp Paddling": (2000, 8000),
    "Kayaking": (3000, 12000),
}

# Ids above this threshold are treated as Strava ids
MOCK_ID_BASE = 1_000_000


def _movement(activity_type: str, distance: float, max_speed_spread: float) -> dict:
    elapsed_time = int(distance / TYPICAL_SPEEDS[activity_type])
    average_speed = distance / elapsed_time
    return {
        "elapsed_time": elapsed_time,
        "distance": distance,
        "total_elevation_gain": random.random() * 500,
        "average_speed": average_speed,
        "max_speed": average_speed * (1 + random.random() * max_speed_spread),
    }


def get_mock_activities(count: int = 20) -> list[dict]:
    """Activities shaped like database rows, one every two days going back from today."""
    now = utcnow()
    activities = []
    for i in range(count):
        activity_type = MOCK_ACTIVITY_TYPES[i % len(MOCK_ACTIVITY_TYPES)]
        minimum, spread = _LIST_DISTANCES[activity_type]
        activities.append(
            {
                "id": 10000 + i,
                "strava_id": 10000 + i,
                "name": f"{activity_type} {i + 1}",
                "type": activity_type,
                "start_date": (now - timedelta(days=i * 2)).isoformat(),
                **_movement(activity_type, minimum + random.random() * spread, 0.5),
                "polyline": None,
                "map_data": None,
                "start_latlng": None,
                "end_latlng": None,
            }
        )
    return activities


def generate_mock_activities(start: datetime, end: datetime) -> list[dict]:
    """Between 5 and 14 Strava-shaped activity payloads dated inside [start, end]."""
    start = normalize_datetime(start)
    end = normalize_datetime(end)
    span = (end - start).total_seconds()
    count = random.randint(5, 14)

    activities = []
    for i in range(count):
        activity_type = random.choice(MOCK_ACTIVITY_TYPES)
        minimum, spread = _IMPORT_DISTANCES[activity_type]
        date = start + timedelta(seconds=random.random() * span)
        activities.append(
            {
                "id": MOCK_ID_BASE + i + random.randint(0, MOCK_ID_BASE),
                "name": f"{activity_type} - {date.month}/{date.day}/{date.year}",
                "type": activity_type,
                "start_date": date.isoformat(),
                **_movement(activity_type, minimum + random.random() * spread, 1.0),
            }
        )
    return activities


def get_mock_recent_activities() -> list[dict]:
    now = utcnow()
    return [
        {
            "id": 1001,
            "strava_id": 1001,
            "name": "Morning Run",
            "type": "Run",
            "start_date": (now - timedelta(days=1)).isoformat(),
            "elapsed_time": 3600,
            "distance": 8000,
        },
        {
            "id": 1002,
            "strava_id": 1002,
            "name": "Evening Ride",
            "type": "Ride",
            "start_date": (now - timedelta(days=2)).isoformat(),
            "elapsed_time": 5400,
            "distance": 20000,
        },
        {
            "id": 1003,
            "strava_id": 1003,
            "name": "Weekend Hike",
            "type": "Hike",
            "start_date": (now - timedelta(days=5)).isoformat(),
            "elapsed_time": 10800,
            "distance": 12000,
        },
    ]


def get_mock_activity_stats() -> dict:
    return {
        "total_activities": 12,
        "total_distance": 120000,
        "total_duration": 43200,
        "total_elevation": 1500,
    }
