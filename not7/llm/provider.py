"""LLM Provider abstraction for pluggable reasoning backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from not7.graph.spec import LLMConfig


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    stop_reason: str = ""
    raw_response: Any = None


class LLMProvider(ABC):
    """
    Abstract LLM provider - plug in any reasoning backend.

    The engine only needs one operation: turn a system prompt and a user
    prompt into text plus the USD cost of producing it.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Cost accounting
    - Wrapping backend failures in BackendError
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        config: LLMConfig,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            system_prompt: Instructions for the model
            user_prompt: User content; implementations omit the user
                message when this is empty
            config: Model, temperature and max_tokens (already defaulted
                by the caller)

        Returns:
            LLMResponse with content and cost

        Raises:
            BackendError: if the backend call fails
        """
        pass
