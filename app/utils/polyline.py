"""Google encoded polyline helpers and coordinate extraction for activities.

Strava returns routes in Google's polyline format: each coordinate is the
delta from the previous point, scaled by 10**precision, zigzag-encoded and
split into 5-bit chunks offset by 63.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger

Point = tuple[float, float]


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline")
        b = ord(encoded[index]) - 63
        if not 0 <= b < 64:
            raise ValueError(f"Invalid polyline character {encoded[index]!r}")
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: str | None, precision: int = 5) -> list[Point]:
    """Decode an encoded polyline into (lat, lng) points.

    Empty or non-string input yields an empty list. A malformed tail stops
    decoding and the points decoded so far are returned.
    """
    if not encoded or not isinstance(encoded, str):
        return []

    factor = 10**precision
    points: list[Point] = []
    index = 0
    lat = 0
    lng = 0

    try:
        while index < len(encoded):
            dlat, index = _decode_value(encoded, index)
            dlng, index = _decode_value(encoded, index)
            lat += dlat
            lng += dlng
            points.append((lat / factor, lng / factor))
    except ValueError as e:
        logger.warning(f"Error decoding polyline at index {index}: {e}")

    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[Point], precision: int = 5) -> str:
    """Encode (lat, lng) points into a polyline string."""
    factor = 10**precision
    output = []
    prev_lat = 0
    prev_lng = 0
    for lat, lng in points:
        ilat = round(lat * factor)
        ilng = round(lng * factor)
        output.append(_encode_value(ilat - prev_lat))
        output.append(_encode_value(ilng - prev_lng))
        prev_lat, prev_lng = ilat, ilng
    return "".join(output)


def find_polyline(obj: Any) -> str | None:
    """Find an encoded polyline anywhere in a Strava payload.

    Checks direct ``polyline``/``summary_polyline`` keys first, then the
    ``map`` object, then searches nested dicts and lists depth first.
    """
    if not obj:
        return None

    if isinstance(obj, list):
        for item in obj:
            found = find_polyline(item)
            if found:
                return found
        return None

    if not isinstance(obj, dict):
        return None

    for key in ("polyline", "summary_polyline"):
        value = obj.get(key)
        if value and isinstance(value, str):
            return value

    map_obj = obj.get("map")
    if isinstance(map_obj, dict):
        for key in ("polyline", "summary_polyline"):
            value = map_obj.get(key)
            if value and isinstance(value, str):
                return value

    for value in obj.values():
        if isinstance(value, (dict, list)):
            found = find_polyline(value)
            if found:
                return found

    return None


def _as_point(value: Any) -> Point | None:
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        try:
            return (float(value[0]), float(value[1]))
        except (TypeError, ValueError):
            return None
    return None


def extract_coordinates(data: Any) -> dict[str, Point]:
    """Extract start/end coordinates from ``start_latlng``/``end_latlng``.

    Looks at the top level, then one level of nested objects.
    """
    result: dict[str, Point] = {}
    if not isinstance(data, dict):
        return result

    start = _as_point(data.get("start_latlng"))
    end = _as_point(data.get("end_latlng"))
    if start:
        result["start"] = start
    if end:
        result["end"] = end

    if "start" not in result or "end" not in result:
        for value in data.values():
            if not isinstance(value, dict):
                continue
            if "start" not in result:
                nested = _as_point(value.get("start_latlng"))
                if nested:
                    result["start"] = nested
            if "end" not in result:
                nested = _as_point(value.get("end_latlng"))
                if nested:
                    result["end"] = nested

    return result


def _is_real_point(point: Point | None) -> bool:
    return point is not None and point[0] != 0 and point[1] != 0


def activity_start_point(activity: dict[str, Any]) -> tuple[Point | None, str]:
    """Best-effort start location for an activity row.

    Sources in order: the start_latlng column, coordinates inside raw_data,
    a polyline inside raw_data, a polyline inside map_data. Zero
    coordinates count as missing.

    Returns:
        (point, source) where source is one of db_column, raw_coords,
        raw_polyline, map_polyline or none
    """
    point = _as_point(activity.get("start_latlng"))
    if _is_real_point(point):
        return point, "db_column"

    raw_data = activity.get("raw_data")
    coords = extract_coordinates(raw_data)
    if _is_real_point(coords.get("start")):
        return coords["start"], "raw_coords"

    for source, blob in (("raw_polyline", raw_data), ("map_polyline", activity.get("map_data"))):
        decoded = decode_polyline(find_polyline(blob))
        if decoded:
            return decoded[0], source

    return None, "none"


def route_points(activity: dict[str, Any]) -> list[Point]:
    """Decoded route for the map view: polyline column first, then the stored payloads."""
    encoded = activity.get("polyline") or find_polyline(activity.get("map_data")) or find_polyline(activity.get("raw_data"))
    return decode_polyline(encoded)
