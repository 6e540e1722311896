"""
keyrouter package root.

This package routes a single chat completion request across several
AI providers using the caller's own API keys. It provides the
configuration loader, the core routing logic, the provider clients,
and a small usage recorder.
"""

__all__ = [
    "config",
    "core",
    "errors",
    "models",
    "usage",
]
