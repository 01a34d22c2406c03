"""LiteLLM-backed provider for OpenAI-compatible chat models."""

import logging
from typing import Any

import litellm

from not7.errors import BackendError
from not7.graph.spec import LLMConfig
from not7.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

# USD per 1K tokens: (prompt, completion)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4": (0.03, 0.06),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-4-turbo-preview": (0.01, 0.03),
    "gpt-3.5-turbo": (0.0005, 0.0015),
}
DEFAULT_PRICING = MODEL_PRICING["gpt-3.5-turbo"]


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimate the USD cost of a call; unknown models get the cheapest tier."""
    prompt_rate, completion_rate = MODEL_PRICING.get(model, DEFAULT_PRICING)
    return prompt_tokens / 1000.0 * prompt_rate + completion_tokens / 1000.0 * completion_rate


def _usage_value(usage: Any, key: str) -> int:
    if usage is None:
        return 0
    if isinstance(usage, dict):
        return int(usage.get(key) or 0)
    return int(getattr(usage, key, 0) or 0)


class LiteLLMProvider(LLMProvider):
    """
    Chat-completion provider routed through LiteLLM.

    Sends the node prompt as the system message and the accumulated input
    as the user message (omitted when empty). Cost comes from the static
    pricing table above rather than LiteLLM's own cost map, so recorded
    costs stay stable across LiteLLM upgrades.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        config: LLMConfig,
    ) -> LLMResponse:
        messages = [{"role": "system", "content": system_prompt}]
        if user_prompt:
            messages.append({"role": "user", "content": user_prompt})

        kwargs: dict[str, Any] = {
            "model": config.model,
            "messages": messages,
            "timeout": self.timeout,
        }
        if config.temperature:
            kwargs["temperature"] = config.temperature
        if config.max_tokens > 0:
            kwargs["max_tokens"] = config.max_tokens
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise BackendError(f"LLM request failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise BackendError("no completion choices returned")

        message = choices[0].message
        content = getattr(message, "content", None) or ""
        usage = getattr(response, "usage", None)
        input_tokens = _usage_value(usage, "prompt_tokens")
        output_tokens = _usage_value(usage, "completion_tokens")
        cost = calculate_cost(config.model, input_tokens, output_tokens)

        logger.debug(
            f"LLM call model={config.model} tokens={input_tokens}+{output_tokens} cost=${cost:.4f}"
        )

        return LLMResponse(
            content=content,
            model=getattr(response, "model", None) or config.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            stop_reason=getattr(choices[0], "finish_reason", None) or "",
            raw_response=response,
        )
