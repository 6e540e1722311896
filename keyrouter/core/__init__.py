"""
Core logic for keyrouter.

This subpackage provides the router, which walks the provider
candidates and decides between success, fallback and failure, along
with the default provider selection policy, message normalization,
prompt management and an in-memory chat session.
"""

__all__ = [
    "credentials",
    "normalizer",
    "prompts",
    "router",
    "selection",
    "session",
]
