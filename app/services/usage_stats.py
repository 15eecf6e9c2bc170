"""LLM token usage and cost bookkeeping."""

from __future__ import annotations

from loguru import logger
from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from app.db.models import UsageStat
from app.utils.timezone import utcnow


def record_usage(session: Session, *, tokens_used: int, cost: float, model: str | None) -> UsageStat:
    stat = UsageStat(stat_date=utcnow().date(), tokens_used=tokens_used, cost=cost, model=model, created_at=utcnow())
    session.add(stat)
    session.flush()
    logger.debug(f"[CHATGPT] Usage recorded tokens={tokens_used}, cost={cost:.6f}, model={model}")
    return stat


def get_usage_summary(session: Session) -> dict:
    """Token and cost totals for today and for all time."""
    today = utcnow().date()
    today_row = session.execute(
        select(
            func.coalesce(func.sum(UsageStat.tokens_used), 0),
            func.coalesce(func.sum(UsageStat.cost), 0),
            func.count(UsageStat.id),
        ).where(UsageStat.stat_date == today)
    ).one()
    all_time_row = session.execute(
        select(
            func.coalesce(func.sum(UsageStat.tokens_used), 0),
            func.coalesce(func.sum(UsageStat.cost), 0),
            func.count(distinct(UsageStat.stat_date)),
        )
    ).one()
    return {
        "today": {
            "total_tokens": int(today_row[0]),
            "total_cost": float(today_row[1]),
            "sessions_today": int(today_row[2]),
        },
        "allTime": {
            "total_tokens": int(all_time_row[0]),
            "total_cost": float(all_time_row[1]),
            "days_used": int(all_time_row[2]),
        },
    }
