"""
In-memory chat session.

Defines ChatSession, which keeps the history of one conversation and
sends each new user turn through the router. Persisting the history
anywhere else is left to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence

from keyrouter.core.credentials import CredentialSet
from keyrouter.core.router import ProviderRouter
from keyrouter.models.base import ChatResponse

# Roughly ten exchanges.
DEFAULT_MAX_HISTORY = 20


class ChatSession:
    """
    Multi-turn conversation routed through a ProviderRouter.

    The system prompt, if any, is kept as the leading `developer`
    message. Attachments are added as structured file parts; the router
    flattens them to text before they reach a provider.

    After each reply the history is cut back to `max_history` messages:
    every `developer` message is kept, followed by the most recent
    turns. `max_history=None` keeps everything.
    """

    def __init__(
        self,
        router: ProviderRouter,
        credentials: CredentialSet,
        preferred_provider: Optional[str] = None,
        strict: bool = False,
        system_prompt: Optional[str] = None,
        caller_id: Optional[str] = None,
        max_history: Optional[int] = DEFAULT_MAX_HISTORY,
    ) -> None:
        self.router = router
        self.credentials = credentials
        self.preferred_provider = preferred_provider
        self.strict = strict
        self.caller_id = caller_id
        self.max_history = max_history
        self.messages: List[Dict[str, Any]] = []
        if system_prompt:
            self.messages.append({"role": "developer", "content": system_prompt})

    def send(
        self,
        text: str,
        attachments: Sequence[str] = (),
        stream: bool = False,
    ) -> ChatResponse:
        """
        Send one user turn and record the assistant's reply.

        If routing fails the user turn is removed again and the routing
        error propagates, so the history stays consistent. A streamed
        reply is added to the history once the stream has been consumed.
        """
        if attachments:
            content: Any = [{"type": "text", "text": text}] + [
                {"type": "file", "url": url} for url in attachments
            ]
        else:
            content = text
        self.messages.append({"role": "user", "content": content})

        try:
            response = self.router.chat(
                credentials=self.credentials,
                messages=self.messages,
                preferred_provider=self.preferred_provider,
                strict=self.strict,
                stream=stream,
                caller_id=self.caller_id,
            )
        except Exception:
            self.messages.pop()
            raise

        if response.stream is not None:
            response.stream = self._record_stream(response.stream)
        else:
            self._add_reply(response.text or "")
        return response

    def _add_reply(self, text: str) -> None:
        self.messages.append({"role": "assistant", "content": text})
        self._truncate()

    def _truncate(self) -> None:
        if self.max_history is None or len(self.messages) <= self.max_history:
            return
        developer = [m for m in self.messages if m["role"] == "developer"]
        turns = [m for m in self.messages if m["role"] != "developer"]
        keep = max(self.max_history - len(developer), 0)
        kept = turns[-keep:] if keep else []
        # The first remaining turn must be the user's.
        while kept and kept[0]["role"] == "assistant":
            kept.pop(0)
        self.messages = developer + kept

    def _record_stream(self, chunks: Iterator[str]) -> Iterator[str]:
        collected: List[str] = []
        try:
            for chunk in chunks:
                collected.append(chunk)
                yield chunk
        finally:
            self._add_reply("".join(collected))
