"""AI analysis of activities: single activity, dashboard insights, comparison and chat."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from app.core.errors import ChatGPTNotConfiguredError
from app.db.models import Activity
from app.services import activity_service, usage_stats
from app.services.llm import prompts
from app.services.llm.client import ChatCompletionResult, ChatGPTClient
from app.services.system_settings import get_chatgpt_settings

ANALYSIS_MAX_TOKENS = 800
INSIGHTS_MAX_TOKENS = 600
COMPARISON_MAX_TOKENS = 700
CHAT_MAX_TOKENS = 500

DEBUG_LOCATION_COMMAND = "debug location"
NOT_CONFIGURED_MESSAGE = "ChatGPT API is not configured. Please set up your API key in settings."


@dataclass
class ChatReply:
    response: str
    tokens_used: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    model: str | None = None

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "tokensUsed": self.tokens_used,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cost": f"{self.cost:.6f}",
            "model": self.model,
        }


def get_client(session: Session) -> ChatGPTClient:
    """Client built from the stored ChatGPT settings.

    Raises:
        ChatGPTNotConfiguredError: If no API key is configured
    """
    chatgpt = get_chatgpt_settings(session)
    if not chatgpt.is_configured:
        raise ChatGPTNotConfiguredError(NOT_CONFIGURED_MESSAGE)
    return ChatGPTClient(api_key=chatgpt.api_key, organization_id=chatgpt.organization_id, model=chatgpt.model)


def _complete(session: Session, system_prompt: str, user_prompt: str, max_tokens: int) -> ChatCompletionResult:
    result = get_client(session).chat(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        max_tokens=max_tokens,
    )
    usage_stats.record_usage(session, tokens_used=result.total_tokens, cost=result.cost, model=result.model)
    return result


def test_chatgpt_connection(session: Session) -> dict:
    """List the models the key can access.

    Raises:
        ChatGPTNotConfiguredError: If no API key is configured
        ChatGPTError: If OpenAI rejects the request
    """
    models = get_client(session).list_models()
    has_gpt4 = any("gpt-4" in model for model in models)
    logger.info(f"[CHATGPT] Connection test succeeded: {len(models)} models, gpt-4={has_gpt4}")
    return {"success": True, "modelsAvailable": len(models), "hasGPT4": has_gpt4}


def analyze_activity(session: Session, activity: Activity) -> dict:
    result = _complete(
        session,
        prompts.ANALYSIS_SYSTEM_PROMPT,
        prompts.build_activity_analysis_prompt(activity),
        ANALYSIS_MAX_TOKENS,
    )
    logger.info(f"[CHATGPT] Analyzed activity_id={activity.id}, tokens={result.total_tokens}")
    return {"analysis": result.content, "tokensUsed": result.total_tokens}


def generate_dashboard_insights(session: Session, recent_activities: list[dict], stats: dict) -> dict:
    result = _complete(
        session,
        prompts.INSIGHTS_SYSTEM_PROMPT,
        prompts.build_dashboard_insights_prompt(recent_activities, stats),
        INSIGHTS_MAX_TOKENS,
    )
    logger.info(f"[CHATGPT] Dashboard insights generated, tokens={result.total_tokens}")
    return {"insights": result.content, "tokensUsed": result.total_tokens}


def compare_activities(session: Session, activities: list[Activity]) -> dict:
    """Raises ValueError when fewer than two activities are given."""
    if len(activities) < 2:
        raise ValueError("At least two activities are required for a comparison")
    result = _complete(
        session,
        prompts.COMPARISON_SYSTEM_PROMPT,
        prompts.build_comparison_prompt(activities),
        COMPARISON_MAX_TOKENS,
    )
    logger.info(f"[CHATGPT] Compared {len(activities)} activities, tokens={result.total_tokens}")
    return {"comparison": result.content, "tokensUsed": result.total_tokens}


def _context_row(activity: Activity) -> dict:
    row = activity.to_dict()
    row["raw_data"] = activity.raw_data
    return row


def build_activity_context(session: Session, user_id: str) -> str:
    try:
        activities = activity_service.get_all_user_activities(session, user_id)
    except Exception as e:
        logger.error(f"[CHATGPT] Error fetching activity data: {type(e).__name__}: {e}")
        return "Activity data is currently unavailable."
    return prompts.build_chat_activity_context([_context_row(a) for a in activities])


def chat_about_activities(session: Session, user_id: str, message: str, history: list[dict]) -> ChatReply:
    """Answer a question about the user's activities.

    The message ``debug location`` returns the activity context without
    calling the model.

    Raises:
        ChatGPTNotConfiguredError: If no API key is configured
        ChatGPTError: If the OpenAI call fails
    """
    client = get_client(session)
    activity_context = build_activity_context(session, user_id)

    if message.strip().lower() == DEBUG_LOCATION_COMMAND:
        logger.info(f"[CHATGPT] Debug location requested user_id={user_id}")
        return ChatReply(
            response=(
                "DEBUG MODE - Location Data Analysis:\n\n"
                f"RAW ACTIVITY DATA BEING SENT TO AI:\n{activity_context}\n\n"
                "Look for [Start: XX.XXXXXX, -XX.XXXXXX] coordinates in the activity data above."
            ),
        )

    messages = [{"role": "system", "content": prompts.build_chat_system_prompt(activity_context)}]
    messages.extend({"role": item["role"], "content": item["content"]} for item in history)
    messages.append({"role": "user", "content": message})

    result = client.chat(messages, max_tokens=CHAT_MAX_TOKENS)
    usage_stats.record_usage(session, tokens_used=result.total_tokens, cost=result.cost, model=result.model)
    logger.info(f"[CHATGPT] Chat reply user_id={user_id}, tokens={result.total_tokens}, cost={result.cost:.6f}")
    return ChatReply(
        response=result.content,
        tokens_used=result.total_tokens,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
        cost=result.cost,
        model=result.model,
    )
