"""LLM integrations."""

from cinerank.llm.llm_adapter import (
    LLMCompletionClient,
    LLMDisabledError,
    LLMError,
    LLMRateLimitError,
    generate_text,
)

__all__ = [
    "LLMCompletionClient",
    "LLMDisabledError",
    "LLMError",
    "LLMRateLimitError",
    "generate_text",
]
