"""Prompt builders for activity analysis, insights, comparison and chat."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any

from app.utils.polyline import activity_start_point
from app.utils.timezone import parse_datetime

METERS_TO_MILES = 0.000621371
MPS_TO_MPH = 2.23694
METERS_TO_FEET = 3.28084
MPS_TO_KMH = 3.6

MAX_CHAT_ACTIVITIES = 50

ANALYSIS_SYSTEM_PROMPT = (
    "You are a professional sports coach and data analyst. Provide helpful, encouraging, "
    "and actionable insights about athletic performance based on activity data."
)
INSIGHTS_SYSTEM_PROMPT = (
    "You are an expert fitness coach analyzing an athlete's training data. Provide encouraging, "
    "data-driven insights that help them improve their performance and stay motivated."
)
COMPARISON_SYSTEM_PROMPT = (
    "You are a sports performance analyst. Compare activities to identify trends, improvements, "
    "and provide actionable training advice."
)


def _date_label(value: Any) -> str:
    if not value:
        return "unknown date"
    if not isinstance(value, datetime):
        value = parse_datetime(value)
    return value.strftime("%m/%d/%Y")


def _get(activity: Any, field: str, default: Any = 0) -> Any:
    if isinstance(activity, dict):
        value = activity.get(field, default)
    else:
        value = getattr(activity, field, default)
    return default if value is None else value


def build_activity_analysis_prompt(activity: Any) -> str:
    """Single-activity analysis in metric units."""
    activity_type = _get(activity, "type", "activity")
    return f"""Analyze this {activity_type.lower()} activity and provide insights:

Activity: {_get(activity, "name", "")}
Type: {activity_type}
Distance: {_get(activity, "distance") / 1000:.2f} km
Duration: {round(_get(activity, "elapsed_time") / 60)} minutes
Elevation Gain: {_get(activity, "total_elevation_gain")} meters
Average Speed: {_get(activity, "average_speed") * MPS_TO_KMH:.1f} km/h
Max Speed: {_get(activity, "max_speed") * MPS_TO_KMH:.1f} km/h
Date: {_date_label(_get(activity, "start_date", None))}

Please provide:
1. Performance analysis (pace, speed, effort level)
2. Training insights and recommendations
3. Comparison to typical {activity_type.lower()} activities
4. Areas for improvement
5. Positive highlights

Keep the analysis concise but insightful, focusing on actionable feedback for the athlete."""


def build_dashboard_insights_prompt(recent_activities: list[Any], stats: dict) -> str:
    if recent_activities:
        avg_distance = sum(_get(a, "distance") for a in recent_activities) / len(recent_activities) / 1000
    else:
        avg_distance = 0.0
    activity_types = list(dict.fromkeys(_get(a, "type", "") for a in recent_activities))
    recent_summary = ", ".join(
        f"{_get(a, 'type', '')}: {_get(a, 'distance') / 1000:.1f}km in {round(_get(a, 'elapsed_time') / 60)}min"
        for a in recent_activities[:5]
    )

    return f"""Analyze this athlete's training data and provide personalized insights:

OVERALL STATS:
- Total Activities: {stats.get("total_activities", 0)}
- Total Distance: {stats.get("total_distance", 0) / 1000:.0f} km
- Total Training Time: {round(stats.get("total_duration", 0) / 3600)} hours
- Total Elevation: {stats.get("total_elevation", 0)} m

RECENT ACTIVITY PATTERNS:
- Activity Types: {", ".join(activity_types)}
- Average Distance: {avg_distance:.1f} km
- Recent Activities: {recent_summary}

Please provide:
- Training goals and recommendations
- Progress trends and patterns you notice
- Quick tips for improvement
- Achievements and positive highlights

Keep insights practical, motivating, and actionable. Focus on patterns, consistency, and areas for growth."""


def build_comparison_prompt(activities: list[Any]) -> str:
    sections = []
    for index, a in enumerate(activities, start=1):
        sections.append(
            f"""Activity {index}: {_get(a, "name", "")}
- Type: {_get(a, "type", "")}
- Distance: {_get(a, "distance") / 1000:.2f} km
- Duration: {round(_get(a, "elapsed_time") / 60)} minutes
- Average Speed: {_get(a, "average_speed") * MPS_TO_KMH:.1f} km/h
- Elevation: {_get(a, "total_elevation_gain")} m
- Date: {_date_label(_get(a, "start_date", None))}"""
        )
    summary = "\n\n".join(sections)

    return f"""Compare these {len(activities)} activities and provide insights:

{summary}

Please analyze:
1. **Performance Comparison**: Speed, endurance, and efficiency differences
2. **Progress Trends**: Improvements or declines over time
3. **Training Patterns**: What these activities reveal about training approach
4. **Recommendations**: Specific advice based on the comparison

Focus on actionable insights that help the athlete understand their performance patterns and areas for improvement."""


def _chat_activity_line(activity: dict) -> str:
    distance_mi = (activity.get("distance") or 0) * METERS_TO_MILES
    duration_min = round((activity.get("elapsed_time") or 0) / 60)
    speed_mph = (activity.get("average_speed") or 0) * MPS_TO_MPH
    elevation_ft = round((activity.get("total_elevation_gain") or 0) * METERS_TO_FEET)
    line = (
        f"{activity.get('type', '')}: {activity.get('name', '')} - {distance_mi:.1f}mi in {duration_min}min "
        f"({speed_mph:.1f}mph, {elevation_ft}ft gain) on {_date_label(activity.get('start_date'))}"
    )
    point, _source = activity_start_point(activity)
    if point is not None:
        line += f" [Start: {point[0]:.6f}, {point[1]:.6f}]"
    return line


def build_chat_activity_context(activities: list[dict]) -> str:
    """Plain-text summary of every activity for the chat system prompt.

    Imperial units. Only the newest 50 activities are listed one by one;
    statistics and the type breakdown cover all of them.
    """
    if not activities:
        return "No activities have been imported yet."

    lines = [_chat_activity_line(a) for a in activities[:MAX_CHAT_ACTIVITIES]]
    if len(activities) > MAX_CHAT_ACTIVITIES:
        lines.append(
            f"... and {len(activities) - MAX_CHAT_ACTIVITIES} more activities (not shown due to space constraints)"
        )

    total_distance = sum(a.get("distance") or 0 for a in activities)
    total_time = sum(a.get("elapsed_time") or 0 for a in activities)
    total_elevation = sum(a.get("total_elevation_gain") or 0 for a in activities)
    avg_speed = sum(a.get("average_speed") or 0 for a in activities) / len(activities)

    by_type: dict[str, list[dict]] = defaultdict(list)
    for a in activities:
        by_type[a.get("type") or "Unknown"].append(a)
    type_lines = []
    for activity_type, items in sorted(by_type.items(), key=lambda item: len(item[1]), reverse=True):
        type_distance = sum(a.get("distance") or 0 for a in items) * METERS_TO_MILES
        type_speed = sum(a.get("average_speed") or 0 for a in items) / len(items) * MPS_TO_MPH
        type_lines.append(f"{activity_type}: {len(items)} activities, {type_distance:.0f}mi total, avg {type_speed:.1f}mph")

    activity_lines = "\n".join(lines)
    type_summary = "\n".join(type_lines)
    return f"""
ALL ACTIVITIES ({len(activities)} total):
{activity_lines}

OVERALL STATISTICS:
- Total Activities: {len(activities)}
- Total Distance: {total_distance * METERS_TO_MILES:.0f}mi
- Total Time: {round(total_time / 3600)} hours
- Average Speed: {avg_speed * MPS_TO_MPH:.1f}mph
- Total Elevation: {round(total_elevation * METERS_TO_FEET)}ft

ACTIVITY TYPE BREAKDOWN:
{type_summary}

LOCATION DATA FORMAT:
Coordinates are provided as [latitude, longitude] for activity start locations. You can use these coordinates to determine geographic locations, states, cities, and regions to answer location-based questions.
"""


def build_chat_system_prompt(activity_context: str) -> str:
    return f"""You are an AI training assistant helping an athlete analyze their Strava activities. You have access to their activity data and should provide helpful, encouraging, and data-driven insights.

AVAILABLE ACTIVITY DATA:
{activity_context}

Guidelines:
- Be conversational and encouraging
- Provide specific data when available
- Offer actionable training advice
- If asked about data you don't have, explain what data is available
- Keep responses concise but informative
- Use English units (miles, feet, mph) in your responses"""
