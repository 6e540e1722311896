"""Shared fixtures: fake provider clients that record their calls."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from keyrouter.core.router import ProviderRouter
from keyrouter.models.base import (
    BaseProvider,
    KeyStatus,
    ProviderKind,
    ProviderOutcome,
    ProviderRegistry,
)


class FakeProvider(BaseProvider):
    """Returns queued outcomes and records every call."""

    def __init__(self, kind: ProviderKind, outcomes: List[ProviderOutcome]) -> None:
        super().__init__(model=f"{kind.value}-test", max_tokens=16)
        self.kind = kind
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def send(self, secret, messages, stream=False):
        self.calls.append({"secret": secret, "messages": messages, "stream": stream})
        if not self.outcomes:
            raise AssertionError(f"{self.kind.value} called more often than expected")
        return self.outcomes.pop(0)

    def check_key(self, secret):
        return KeyStatus.WORKING


@pytest.fixture
def all_keys():
    return {"groq": "gsk-test", "openai": "sk-test", "gemini": "gm-test", "claude": "sk-ant-test"}


@pytest.fixture
def make_router():
    """Build a router whose providers return the given outcomes.

    Providers not mentioned fail the test if they are called.
    """

    def _make(outcomes: Dict[str, List[ProviderOutcome]], **kwargs):
        registry = ProviderRegistry()
        fakes = {}
        for kind in ProviderKind:
            fake = FakeProvider(kind, outcomes.get(kind.value, []))
            registry.register_provider(fake)
            fakes[kind.value] = fake
        return ProviderRouter(registry, **kwargs), fakes

    return _make
