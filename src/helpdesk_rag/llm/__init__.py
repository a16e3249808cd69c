"""Completion provider module."""

from helpdesk_rag.llm.ollama import OllamaCompletionClient
from helpdesk_rag.llm.provider import ChatTurn, CompletionProvider, StreamChunk

try:
    from helpdesk_rag.llm.anthropic import AnthropicCompletionClient
except ImportError:
    AnthropicCompletionClient = None  # type: ignore[assignment,misc]

__all__ = [
    "AnthropicCompletionClient",
    "ChatTurn",
    "CompletionProvider",
    "OllamaCompletionClient",
    "StreamChunk",
]
