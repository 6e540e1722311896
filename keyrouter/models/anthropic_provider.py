"""
Anthropic provider implementation.

This provider wraps the Claude API via the official `anthropic` SDK.
Claude takes instructions in a dedicated top-level `system` field, so
every developer/system message is lifted out of the history and joined
into that field; the remaining turns are sent as-is.
"""

import logging
from typing import Any, Dict, List, Tuple

import anthropic

from keyrouter.models.base import (
    BaseProvider,
    ErrorKind,
    Failure,
    KeyStatus,
    ProviderKind,
    ProviderOutcome,
    Success,
)
from keyrouter.models.classifier import (
    classify_response,
    empty_response,
    timed_out,
    unreachable,
)

logger = logging.getLogger(__name__)


def split_system(messages: List[Dict[str, Any]]) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Separate instruction messages from the turn-by-turn history.

    Returns:
        The joined instruction text ("" if there is none) and the
        remaining messages in their original order.
    """
    system_parts: List[str] = []
    turns: List[Dict[str, Any]] = []
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content", "")
        if role in ("developer", "system"):
            if content:
                system_parts.append(content)
        elif role == "assistant":
            turns.append({"role": "assistant", "content": content})
        else:
            turns.append({"role": "user", "content": content})
    return "\n\n".join(system_parts), turns


class AnthropicProvider(BaseProvider):
    """
    AnthropicProvider wraps the Claude messages API via the official anthropic SDK.
    """

    kind = ProviderKind.CLAUDE

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "AnthropicProvider":
        return cls(
            model=cfg.get("model", "claude-3-haiku-20240307"),
            max_tokens=int(cfg.get("max_tokens", 4096)),
            temperature=float(cfg.get("temperature", 0.7)),
            timeout=float(cfg.get("timeout", 25.0)),
        )

    def _client(self, secret: str) -> anthropic.Anthropic:
        return anthropic.Anthropic(api_key=secret, timeout=self.timeout, max_retries=0)

    def send(
        self,
        secret: str,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ProviderOutcome:
        system_prompt, turns = split_system(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": turns,
            "temperature": self.temperature,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        # Streaming is not offered for Claude; the full reply is returned.
        with self._client(secret) as client:
            try:
                resp = client.messages.create(**kwargs)
            except anthropic.APITimeoutError:
                return timed_out(self.kind)
            except anthropic.APIConnectionError as exc:
                return unreachable(self.kind, exc)
            except anthropic.APIStatusError as exc:
                reason = getattr(exc.response, "reason_phrase", "") or exc.message
                return classify_response(self.kind, exc.status_code, exc.body, reason)
            except anthropic.APIError as exc:
                return Failure(ErrorKind.FATAL, f"{self.kind.label} error: {exc}")

        parts = []
        for block in getattr(resp, "content", None) or []:
            if getattr(block, "type", "") == "text" and block.text:
                parts.append(block.text)
        text = "\n".join(parts)
        if not text:
            return empty_response(self.kind)
        return Success(text=text, raw=resp)

    def check_key(self, secret: str) -> KeyStatus:
        with self._client(secret) as client:
            try:
                client.messages.create(
                    model=self.model,
                    max_tokens=1,
                    messages=[{"role": "user", "content": "test"}],
                )
            except anthropic.APIStatusError as exc:
                logger.info("%s key check returned %s", self.kind.label, exc.status_code)
                return KeyStatus.INVALID
            except anthropic.APIConnectionError as exc:
                logger.warning("%s key check failed: %s", self.kind.label, exc)
                return KeyStatus.ERROR
        return KeyStatus.WORKING
