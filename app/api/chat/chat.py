"""AI chat, single-activity analysis and comparison endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.dependencies.auth import CurrentUser, get_current_user
from app.api.errors import to_http_exception
from app.core.errors import AppError
from app.db.session import get_session
from app.services import activity_service
from app.services.llm import analysis

router = APIRouter(prefix="/chat", tags=["chat"])

MAX_MESSAGE_LENGTH = 1000
MAX_HISTORY_ITEMS = 20


class ChatHistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    history: list[ChatHistoryItem] = Field(default_factory=list, max_length=MAX_HISTORY_ITEMS)


class CompareRequest(BaseModel):
    activity_ids: list[int] = Field(min_length=2, max_length=10)


@router.post("/activities")
def chat_about_activities(request: ChatRequest, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            reply = analysis.chat_about_activities(
                session,
                user.id,
                request.message,
                [item.model_dump() for item in request.history],
            )
        except AppError as e:
            raise to_http_exception(e) from e
    return reply.to_dict()


@router.post("/analyze/{activity_id}")
def analyze_activity(activity_id: int, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            activity = activity_service.get_activity(session, user.id, activity_id)
            return analysis.analyze_activity(session, activity)
        except AppError as e:
            raise to_http_exception(e) from e


@router.post("/compare")
def compare_activities(request: CompareRequest, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        activities = activity_service.get_activities_by_ids(session, user.id, request.activity_ids)
        try:
            return analysis.compare_activities(session, activities)
        except (AppError, ValueError) as e:
            raise to_http_exception(e) from e
