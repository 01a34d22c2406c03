"""LLM provider abstraction."""

from not7.llm.litellm import LiteLLMProvider, calculate_cost
from not7.llm.mock import MockLLMProvider
from not7.llm.provider import LLMProvider, LLMResponse

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LiteLLMProvider",
    "MockLLMProvider",
    "calculate_cost",
]
