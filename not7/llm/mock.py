"""Scripted LLM provider for tests and dry runs."""

from dataclasses import dataclass

from not7.graph.spec import LLMConfig
from not7.llm.provider import LLMProvider, LLMResponse


@dataclass
class MockCall:
    system_prompt: str
    user_prompt: str
    config: LLMConfig


class MockLLMProvider(LLMProvider):
    """
    Replays a fixed script of responses and records every call.

    Each script entry is a string, a ``(content, cost)`` tuple, or an
    exception instance to raise. Once the script runs out,
    ``default_response`` is returned.
    """

    def __init__(
        self,
        responses: list | None = None,
        cost: float = 0.0,
        default_response: str = "FINAL: mock response",
    ):
        self._script = list(responses or [])
        self.cost = cost
        self.default_response = default_response
        self.calls: list[MockCall] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        config: LLMConfig,
    ) -> LLMResponse:
        self.calls.append(MockCall(system_prompt, user_prompt, config))

        item = self._script.pop(0) if self._script else self.default_response
        if isinstance(item, BaseException):
            raise item

        cost = self.cost
        if isinstance(item, tuple):
            item, cost = item

        return LLMResponse(content=item, model=config.model or "mock", cost=cost)
