"""
Groq provider implementation.

This provider uses Groq's OpenAI-compatible API endpoint to perform
chat completions. It reuses the OpenAI SDK with a custom base URL.
Groq does not know the `developer` role, so instruction messages are
sent inline as `system` messages.
"""

from typing import Any, Dict, List

from keyrouter.models.base import ProviderKind
from keyrouter.models.openai_provider import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    """
    GroqProvider uses Groq's OpenAI-compatible Chat Completions API.
    """

    kind = ProviderKind.GROQ
    default_base_url = "https://api.groq.com/openai/v1"
    default_model = "groq/compound-mini"
    default_max_tokens = 4096

    def _convert_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role")
            if role in ("developer", "system"):
                role = "system"
            elif role != "assistant":
                role = "user"
            converted.append({"role": role, "content": msg.get("content", "")})
        return converted
