"""
Provider client implementations.

This package collects the shared types and the provider registry in
`base.py`, the shared error classifier in `classifier.py`, and one
client module per supported backend: Groq and OpenAI (both through the
OpenAI SDK), Gemini (REST via requests), and Claude (Anthropic SDK).
Adding a backend means adding a `ProviderKind` member and a module
that subclasses `BaseProvider`.
"""

__all__ = [
    "base",
    "classifier",
    "groq_provider",
    "openai_provider",
    "gemini_provider",
    "anthropic_provider",
]
