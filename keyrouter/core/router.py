"""
Provider routing logic.

The router decides which provider handles a chat request. It builds a
priority-ordered candidate list from the caller's preference and the
keys the caller holds, calls candidates one at a time, and interprets
each classified outcome to decide between returning, falling back to
the next candidate, or failing. It never parses provider error text
itself; that happens in the provider clients.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from keyrouter.core.credentials import CredentialSet
from keyrouter.core.normalizer import normalize_messages
from keyrouter.core.selection import choose_model
from keyrouter.errors import (
    AllProvidersFailedError,
    InsufficientCreditError,
    NoCredentialAvailableError,
    ProviderFailedError,
    UnknownProviderError,
)
from keyrouter.models.base import (
    DEFAULT_PRIORITY,
    Attempt,
    ChatResponse,
    ErrorKind,
    ProviderKind,
    ProviderRegistry,
    Success,
)

logger = logging.getLogger(__name__)

UsageRecorder = Callable[[str, Optional[str]], None]

# Failures of a pinned provider that end a strict request at once.
_STRICT_STOP_KINDS = {ErrorKind.INVALID_KEY, ErrorKind.NO_MODEL_ACCESS, ErrorKind.FATAL}


@dataclass
class RoutingRequest:
    """
    One logical completion request.

    `strict` only has an effect together with `preferred_provider`: the
    preferred provider may then not be silently replaced, except when it
    is out of credit or temporarily unavailable.
    """

    credentials: CredentialSet
    messages: List[Dict[str, Any]]
    preferred_provider: Optional[Union[str, ProviderKind]] = None
    strict: bool = False
    stream: bool = False
    caller_id: Optional[str] = None


class ProviderRouter:
    """
    ProviderRouter dispatches chat requests across the registered
    provider clients, falling back from one provider to the next
    according to the classified failure of each attempt.

    Router instances hold no per-request state and can be shared
    between threads.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        priority: Sequence[ProviderKind] = DEFAULT_PRIORITY,
        usage_recorder: Optional[UsageRecorder] = None,
    ) -> None:
        self.registry = registry
        # Repeated entries would call the same provider twice per request.
        self.priority = tuple(dict.fromkeys(priority))
        self.usage_recorder = usage_recorder

    def candidate_order(self, preferred: Optional[ProviderKind]) -> List[ProviderKind]:
        """
        Order in which providers are considered, before key filtering.

        The preferred provider comes first, followed by the remaining
        providers in deployment priority. In strict mode the remaining
        providers are only reached through credit, rate-limit or
        transient failures of the preferred one.
        """
        if preferred is None:
            return list(self.priority)
        return [preferred] + [p for p in self.priority if p is not preferred]

    def chat(
        self,
        credentials: CredentialSet,
        messages: List[Dict[str, Any]],
        preferred_provider: Optional[Union[str, ProviderKind]] = None,
        strict: bool = False,
        stream: bool = False,
        caller_id: Optional[str] = None,
    ) -> ChatResponse:
        """Keyword-argument shortcut for `route`."""
        return self.route(
            RoutingRequest(
                credentials=credentials,
                messages=messages,
                preferred_provider=preferred_provider,
                strict=strict,
                stream=stream,
                caller_id=caller_id,
            )
        )

    def route(self, request: RoutingRequest) -> ChatResponse:
        """
        Route a chat request to the first provider that succeeds.

        Args:
            request: The credentials, conversation and routing preferences.

        Returns:
            A ChatResponse naming the provider that answered. When the
            first candidate was asked to stream, `stream` may be set
            instead of `text`.

        Raises:
            UnknownProviderError: The preferred provider is not known.
            NoCredentialAvailableError: No candidate has a key; no call was made.
            ProviderFailedError: The pinned provider failed hard in strict mode.
            InsufficientCreditError: The last candidate tried was out of credit.
            AllProvidersFailedError: Every candidate failed for other reasons.
        """
        preferred = self._parse_preferred(request.preferred_provider)
        strict = request.strict and preferred is not None
        candidates = self._candidates(request.credentials, preferred, strict)

        logger.info(
            "Routing request: preferred=%s strict=%s candidates=%s",
            preferred.value if preferred else None,
            strict,
            [c.value for c in candidates],
        )

        messages = normalize_messages(request.messages)
        attempts: List[Attempt] = []

        for index, kind in enumerate(candidates):
            provider = self.registry.resolve(kind)
            secret = request.credentials.get(kind)
            # Only the first candidate may stream, so that a failure can be
            # inspected before any output reaches the caller.
            stream = request.stream and index == 0

            logger.info("Trying provider %s (stream=%s)", kind.value, stream)
            outcome = provider.send(secret, messages, stream=stream)

            if isinstance(outcome, Success):
                logger.info("Provider %s succeeded after %d failed attempt(s)", kind.value, len(attempts))
                self._record_usage(kind, request.caller_id)
                return ChatResponse(
                    text=outcome.text,
                    raw=outcome.raw,
                    provider=kind,
                    stream=outcome.stream,
                    attempts=attempts,
                )

            attempts.append(Attempt(provider=kind, kind=outcome.kind, message=outcome.message))
            logger.info(
                "Provider %s failed: kind=%s message=%s",
                kind.value,
                outcome.kind.value,
                outcome.message,
            )

            if outcome.kind is ErrorKind.INSUFFICIENT_CREDIT:
                logger.info("%s has insufficient credit, trying next provider", kind.value)
                continue

            if strict and kind is preferred and outcome.kind in _STRICT_STOP_KINDS:
                logger.info("%s failed in strict mode, not substituting", kind.value)
                raise ProviderFailedError(kind, outcome.kind, outcome.message, attempts)

            if index + 1 < len(candidates):
                logger.info("Falling back from %s to %s", kind.value, candidates[index + 1].value)

        logger.info("All providers tried, failing")
        last = attempts[-1]
        if last.kind is ErrorKind.INSUFFICIENT_CREDIT:
            raise InsufficientCreditError(last.provider, last.message, attempts)

        if strict:
            message = (
                f"Selected model ({preferred.value}) failed. "
                "Please check your API key and try again."
            )
        else:
            message = (
                "All available AI providers failed. "
                "Please check your API keys or try again later."
            )
        raise AllProvidersFailedError(message, attempts)

    def _parse_preferred(
        self, preferred: Optional[Union[str, ProviderKind]]
    ) -> Optional[ProviderKind]:
        if preferred is None or preferred == "" or preferred == "auto":
            return None
        try:
            return ProviderKind.parse(preferred)
        except ValueError:
            raise UnknownProviderError(f"Unknown provider: {preferred!r}") from None

    def _candidates(
        self,
        credentials: CredentialSet,
        preferred: Optional[ProviderKind],
        strict: bool,
    ) -> List[ProviderKind]:
        if preferred is None:
            # Fails fast when the caller has no key at all.
            selection = choose_model(credentials, self.priority)
            logger.debug("Default provider: %s", selection.provider.value)
        elif strict and preferred not in self.registry:
            raise UnknownProviderError(f"No client registered for {preferred.value}")
        elif strict and not credentials.has(preferred):
            raise NoCredentialAvailableError(f"No API key available for {preferred.value}")

        candidates = [
            kind
            for kind in self.candidate_order(preferred)
            if credentials.has(kind) and kind in self.registry
        ]
        if not candidates:
            if preferred is not None:
                raise NoCredentialAvailableError(
                    f"No API key available for {preferred.value} or any fallback provider"
                )
            raise NoCredentialAvailableError("No API key available")
        return candidates

    def _record_usage(self, kind: ProviderKind, caller_id: Optional[str]) -> None:
        if self.usage_recorder is None:
            return
        try:
            self.usage_recorder(kind.value, caller_id)
        except Exception:  # noqa: BLE001
            logger.warning("Failed to record API usage for %s", kind.value, exc_info=True)
