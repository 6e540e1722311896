"""
Base types and registry for provider clients.

Defines the closed set of supported providers, the outcome vocabulary
that every provider client translates its backend-specific errors
into, the common provider base class, and a registry that maps each
provider kind to its client.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union


class ProviderKind(str, enum.Enum):
    """The known inference backends."""

    GROQ = "groq"
    OPENAI = "openai"
    GEMINI = "gemini"
    CLAUDE = "claude"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: Union[str, "ProviderKind"]) -> "ProviderKind":
        """
        Resolve a provider name such as "openai" or "openai_key".

        Raises:
            ValueError: If the name does not match a known provider.
        """
        if isinstance(value, ProviderKind):
            return value
        name = str(value).strip().lower()
        if name.endswith("_key"):
            name = name[: -len("_key")]
        return cls(name)


_LABELS = {
    ProviderKind.GROQ: "Groq",
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.GEMINI: "Gemini",
    ProviderKind.CLAUDE: "Claude",
}

# Fastest/cheapest first.
DEFAULT_PRIORITY = (
    ProviderKind.GROQ,
    ProviderKind.OPENAI,
    ProviderKind.GEMINI,
    ProviderKind.CLAUDE,
)


class ErrorKind(str, enum.Enum):
    """Classified failure of a single provider call."""

    INSUFFICIENT_CREDIT = "insufficient_credit"
    INVALID_KEY = "invalid_key"
    NO_MODEL_ACCESS = "no_model_access"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


class KeyStatus(str, enum.Enum):
    """Result of probing a key against its provider."""

    WORKING = "working"
    INVALID = "invalid"
    ERROR = "error"


@dataclass
class Success:
    """
    A provider call that produced content.

    Exactly one of `text` or `stream` is set. A stream yields text
    chunks as the backend produces them.
    """

    text: Optional[str] = None
    stream: Optional[Iterator[str]] = None
    raw: Any = None

    @property
    def is_stream(self) -> bool:
        return self.stream is not None


@dataclass
class Failure:
    """A provider call that failed, already classified."""

    kind: ErrorKind
    message: str


ProviderOutcome = Union[Success, Failure]


@dataclass
class Attempt:
    """A failed candidate recorded by the router."""

    provider: ProviderKind
    kind: ErrorKind
    message: str


@dataclass
class ChatResponse:
    """
    Normalized chat response returned by the router.

    The text attribute contains the plain response text, or None when
    the response is streamed; in that case `stream` yields the text
    chunks. The raw attribute contains provider-specific response data
    for debugging. `attempts` lists the candidates that failed before
    `provider` succeeded.
    """

    text: Optional[str]
    raw: Any
    provider: Optional[ProviderKind] = None
    stream: Optional[Iterator[str]] = None
    attempts: List[Attempt] = field(default_factory=list)

    @property
    def bypassed_insufficient_credit(self) -> bool:
        return any(a.kind is ErrorKind.INSUFFICIENT_CREDIT for a in self.attempts)


class ProviderError(Exception):
    """Raised when a provider request cannot be completed."""


class BaseProvider:
    """
    Abstract base class for all provider clients.

    Providers must implement `send`, which performs exactly one
    network call and returns a `Success` or a classified `Failure`
    instead of raising, and `check_key`, which probes whether a key is
    usable. A classmethod `from_config` is used to construct provider
    instances from configuration dictionaries.
    """

    kind: ProviderKind

    def __init__(
        self,
        model: str,
        max_tokens: int,
        temperature: float = 0.7,
        timeout: float = 25.0,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.kind.value

    def send(
        self,
        secret: str,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ProviderOutcome:
        raise NotImplementedError

    def check_key(self, secret: str) -> KeyStatus:
        raise NotImplementedError

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "BaseProvider":
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.model!r}>"


class ProviderRegistry:
    """
    ProviderRegistry keeps track of the client for each provider kind.
    """

    def __init__(self) -> None:
        self.providers: Dict[ProviderKind, BaseProvider] = {}

    def register_provider(self, provider: BaseProvider) -> None:
        self.providers[provider.kind] = provider

    def resolve(self, kind: ProviderKind) -> BaseProvider:
        """
        Resolve the client registered for a provider kind.
        """
        provider = self.providers.get(kind)
        if provider is None:
            raise ProviderError(f"Provider '{kind.value}' not registered.")
        return provider

    def __contains__(self, kind: object) -> bool:
        return kind in self.providers
