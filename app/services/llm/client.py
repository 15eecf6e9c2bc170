"""OpenAI chat completions client with token and cost accounting."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from openai import OpenAI

from app.core.errors import ChatGPTError

DEFAULT_MAX_TOKENS = 800
DEFAULT_TEMPERATURE = 0.7

# USD per 1k tokens: (input, output)
MODEL_RATES: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o": (0.0025, 0.01),
    "gpt-4-turbo": (0.01, 0.03),
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Cost in USD of one request. Unknown models cost 0."""
    rates = MODEL_RATES.get(model)
    if rates is None:
        return 0.0
    input_rate, output_rate = rates
    return input_tokens * input_rate / 1000 + output_tokens * output_rate / 1000


@dataclass
class ChatCompletionResult:
    content: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model: str

    @property
    def cost(self) -> float:
        return calculate_cost(self.model, self.input_tokens, self.output_tokens)


class ChatGPTClient:
    """Thin wrapper around openai.OpenAI for chat completions."""

    def __init__(self, api_key: str, organization_id: str | None = None, model: str = "gpt-4o-mini"):
        self.model = model
        self._client = OpenAI(api_key=api_key, organization=organization_id or None)

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> ChatCompletionResult:
        """Send a chat completion request.

        Args:
            messages: OpenAI-style messages with role and content
            max_tokens: Completion token cap
            temperature: Sampling temperature

        Returns:
            Response text and token usage

        Raises:
            ChatGPTError: If the OpenAI call fails
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            logger.error(f"[CHATGPT] Chat completion failed: {type(e).__name__}: {e}")
            raise ChatGPTError(f"Failed to get AI response: {e}") from e

        usage = response.usage
        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
            model=self.model,
        )
        logger.debug(f"[CHATGPT] Completion model={self.model}, tokens={result.total_tokens}")
        return result

    def list_models(self) -> list[str]:
        """Ids of the models the key can access.

        Raises:
            ChatGPTError: If the OpenAI call fails
        """
        try:
            return [model.id for model in self._client.models.list()]
        except Exception as e:
            logger.error(f"[CHATGPT] Listing models failed: {type(e).__name__}: {e}")
            raise ChatGPTError(f"Failed to connect to OpenAI API: {e}") from e
