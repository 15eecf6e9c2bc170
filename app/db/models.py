from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole:
    user = "user"
    admin = "admin"
    super_admin = "super_admin"


class User(Base):
    """Application user with password credentials and a role.

    A user may be created without a password (invited account). Such a user
    can log in once without a password and must then set one.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    password_set: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default=UserRole.user)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "password_set": self.password_set,
        }


class UserSession(Base):
    """Opaque login session token with an expiry."""

    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SystemSetting(Base):
    """Key/value configuration row. Holds integration credentials set at runtime."""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class StravaConnection(Base):
    """Strava OAuth connection per user.

    Fields:
    - user_id: Foreign key to users.id (one connection per user)
    - athlete_id: Strava athlete ID
    - access_token: Encrypted access token
    - refresh_token: Encrypted refresh token
    - expires_at: Access token expiration (Unix epoch seconds)
    - scope: Scopes granted on the authorize screen
    """

    __tablename__ = "strava_connections"

    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    athlete_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    access_token: Mapped[str] = mapped_column(String, nullable=False)  # Encrypted
    refresh_token: Mapped[str] = mapped_column(String, nullable=False)  # Encrypted
    expires_at: Mapped[int] = mapped_column(Integer, nullable=False)
    scope: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class Activity(Base):
    """Strava activity mirrored into the local database.

    Summary fields are denormalized for listing and statistics. The detailed
    Strava payload is kept in raw_data and the map object in map_data.
    Distances are meters, durations seconds, speeds meters per second.
    """

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    strava_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    type: Mapped[str] = mapped_column(String, nullable=False, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    elapsed_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    moving_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    distance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_elevation_gain: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_speed: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_speed: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_heartrate: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_heartrate: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_latlng: Mapped[list | None] = mapped_column(JSON, nullable=True)
    end_latlng: Mapped[list | None] = mapped_column(JSON, nullable=True)
    map_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    polyline: Mapped[str | None] = mapped_column(Text, nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_activities_user_start", "user_id", "start_date"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "strava_id": self.strava_id,
            "user_id": self.user_id,
            "name": self.name,
            "type": self.type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "elapsed_time": self.elapsed_time,
            "moving_time": self.moving_time,
            "distance": self.distance,
            "total_elevation_gain": self.total_elevation_gain,
            "average_speed": self.average_speed,
            "max_speed": self.max_speed,
            "average_heartrate": self.average_heartrate,
            "max_heartrate": self.max_heartrate,
            "start_latlng": self.start_latlng,
            "end_latlng": self.end_latlng,
            "map_data": self.map_data,
            "description": self.description,
            "polyline": self.polyline,
            "imported_at": self.imported_at.isoformat() if self.imported_at else None,
        }


class ImportStatus:
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class ImportLog(Base):
    """One activity import batch and its outcome."""

    __tablename__ = "import_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default=ImportStatus.in_progress)
    activities_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "activities_count": self.activities_count,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class UsageStat(Base):
    """Token usage and cost of one LLM request."""

    __tablename__ = "usage_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stat_date: Mapped[date] = mapped_column("date", Date, nullable=False, default=lambda: _utcnow().date(), index=True)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    model: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
