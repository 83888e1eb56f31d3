"""Completion service client."""

from mockexam.llm.client import (
    CompletionClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMResponseError,
    Message,
)

__all__ = [
    "CompletionClient",
    "LLMConfig",
    "LLMConnectionError",
    "LLMError",
    "LLMResponseError",
    "Message",
]
