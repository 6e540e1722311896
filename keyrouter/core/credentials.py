"""
Per-request credential sets.

A CredentialSet says which providers the caller currently holds a
usable key for. It is built by the caller (the CLI builds one from
environment variables) and handed to the router; the router itself
never looks anywhere else for keys.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Mapping, Optional, Union

from keyrouter.models.base import DEFAULT_PRIORITY, ProviderKind

logger = logging.getLogger(__name__)

DEFAULT_ENV_NAMES: Dict[ProviderKind, str] = {
    ProviderKind.GROQ: "GROQ_API_KEY",
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
    ProviderKind.CLAUDE: "ANTHROPIC_API_KEY",
}


class CredentialSet:
    """
    Mapping of provider kind to an optional secret.

    Keys may be given as ProviderKind members, provider names
    ("openai") or storage field names ("openai_key"). Unknown names
    are ignored. A secret that is None, empty or whitespace-only
    counts as absent.
    """

    def __init__(
        self,
        secrets: Optional[Mapping[Union[str, ProviderKind], Optional[str]]] = None,
    ) -> None:
        self._secrets: Dict[ProviderKind, str] = {}
        for name, secret in (secrets or {}).items():
            try:
                kind = ProviderKind.parse(name)
            except ValueError:
                logger.debug("Ignoring credential for unknown provider %r", name)
                continue
            if secret is not None and str(secret).strip():
                self._secrets[kind] = str(secret).strip()

    @classmethod
    def from_env(
        cls,
        env_names: Optional[Mapping[ProviderKind, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "CredentialSet":
        """Build a credential set from environment variables."""
        names = dict(DEFAULT_ENV_NAMES)
        names.update(env_names or {})
        source = os.environ if environ is None else environ
        return cls({kind: source.get(var) for kind, var in names.items()})

    def get(self, provider: Union[str, ProviderKind]) -> Optional[str]:
        return self._secrets.get(ProviderKind.parse(provider))

    def has(self, provider: Union[str, ProviderKind]) -> bool:
        return self.get(provider) is not None

    def available(self, order: Iterable[ProviderKind] = DEFAULT_PRIORITY) -> List[ProviderKind]:
        """Providers from `order` that have a secret, in that order."""
        return [kind for kind in order if kind in self._secrets]

    def __len__(self) -> int:
        return len(self._secrets)

    def __bool__(self) -> bool:
        return bool(self._secrets)

    def __repr__(self) -> str:
        flags = ", ".join(f"{k.value}={k in self._secrets}" for k in ProviderKind)
        return f"CredentialSet({flags})"
