"""
Terminal routing errors.

The router raises exactly one of these when it cannot return a reply.
Each carries the list of failed attempts so callers can show which
provider failed and why:

    try:
        response = router.route(request)
    except InsufficientCreditError:
        # Every remaining key is out of credit; show a billing message
        ...
    except RoutingError as exc:
        print(exc)
"""

from __future__ import annotations

from typing import List, Optional

from keyrouter.models.base import Attempt, ErrorKind, ProviderError, ProviderKind


class RoutingError(ProviderError):
    """Base for all terminal routing outcomes."""

    def __init__(self, message: str, attempts: Optional[List[Attempt]] = None) -> None:
        super().__init__(message)
        self.attempts: List[Attempt] = list(attempts or [])


class NoCredentialAvailableError(RoutingError):
    """No usable key for any candidate provider; no call was made."""


class UnknownProviderError(RoutingError):
    """The preferred provider is not one of the known backends."""


class ProviderFailedError(RoutingError):
    """The pinned provider failed in strict mode and no substitution is allowed."""

    def __init__(
        self,
        provider: ProviderKind,
        kind: ErrorKind,
        detail: str,
        attempts: Optional[List[Attempt]] = None,
    ) -> None:
        super().__init__(f"{provider.value} error: {detail}", attempts)
        self.provider = provider
        self.kind = kind
        self.detail = detail


class InsufficientCreditError(RoutingError):
    """The last provider tried had no credit left."""

    def __init__(
        self,
        provider: ProviderKind,
        detail: str,
        attempts: Optional[List[Attempt]] = None,
    ) -> None:
        super().__init__(f"INSUFFICIENT_CREDIT: {detail}", attempts)
        self.provider = provider
        self.detail = detail


class AllProvidersFailedError(RoutingError):
    """Every candidate provider failed."""
