"""
Default provider selection.

When the caller does not ask for a particular provider, the first
provider in the deployment's priority order that has a key is used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from keyrouter.core.credentials import CredentialSet
from keyrouter.errors import NoCredentialAvailableError
from keyrouter.models.base import DEFAULT_PRIORITY, ProviderKind


@dataclass(frozen=True)
class ModelSelection:
    provider: ProviderKind
    secret: str

    def __repr__(self) -> str:
        return f"ModelSelection(provider={self.provider.value!r})"


def choose_model(
    credentials: CredentialSet,
    priority: Sequence[ProviderKind] = DEFAULT_PRIORITY,
) -> ModelSelection:
    """
    Pick the first provider in `priority` with a non-empty key.

    Raises:
        NoCredentialAvailableError: If no provider in `priority` has a key.
    """
    for kind in priority:
        secret = credentials.get(kind)
        if secret:
            return ModelSelection(provider=kind, secret=secret)
    raise NoCredentialAvailableError("No API key available")
