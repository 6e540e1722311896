"""
OpenAI provider implementation.

Wraps the OpenAI Chat Completions API using the official SDK. Supports
non-streaming and streaming responses. HTTP failures are classified
with the shared classifier and returned as `Failure` outcomes; the
SDK's own retries are disabled so fallback stays the router's decision.

`OpenAICompatibleProvider` holds the request logic and is reused by
backends that expose the same API under a different base URL.
"""

import logging
from typing import Any, Dict, Iterator, List

import openai
from openai import OpenAI

from keyrouter.models.base import (
    BaseProvider,
    ErrorKind,
    Failure,
    KeyStatus,
    ProviderError,
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


class OpenAICompatibleProvider(BaseProvider):
    """
    Chat Completions client for any OpenAI-compatible endpoint.
    """

    kind = ProviderKind.OPENAI
    default_base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"
    default_max_tokens = 4096

    def __init__(
        self,
        model: str,
        max_tokens: int,
        base_url: str,
        temperature: float = 0.7,
        timeout: float = 25.0,
    ) -> None:
        super().__init__(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )
        self.base_url = base_url

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "OpenAICompatibleProvider":
        return cls(
            model=cfg.get("model", cls.default_model),
            max_tokens=int(cfg.get("max_tokens", cls.default_max_tokens)),
            base_url=cfg.get("base_url", cls.default_base_url),
            temperature=float(cfg.get("temperature", 0.7)),
            timeout=float(cfg.get("timeout", 25.0)),
        )

    def _client(self, secret: str) -> OpenAI:
        return OpenAI(
            api_key=secret,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        )

    def _convert_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # OpenAI accepts the developer role natively.
        return [{"role": m["role"], "content": m["content"]} for m in messages]

    def send(
        self,
        secret: str,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ProviderOutcome:
        client = self._client(secret)
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=self._convert_messages(messages),
                stream=stream,
                max_completion_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.APITimeoutError:
            client.close()
            return timed_out(self.kind)
        except openai.APIConnectionError as exc:
            client.close()
            return unreachable(self.kind, exc)
        except openai.APIStatusError as exc:
            client.close()
            reason = getattr(exc.response, "reason_phrase", "") or exc.message
            return classify_response(self.kind, exc.status_code, exc.body, reason)
        except openai.APIError as exc:
            client.close()
            return Failure(ErrorKind.FATAL, f"{self.kind.label} error: {exc}")
        except BaseException:
            client.close()
            raise

        if stream:
            # The client stays open until the stream is drained or dropped.
            return Success(stream=self._iter_stream(client, resp))

        try:
            choices = getattr(resp, "choices", None) or []
            text = choices[0].message.content if choices else None
        finally:
            client.close()
        if not text:
            return empty_response(self.kind)
        return Success(text=text, raw=resp)

    def _iter_stream(self, client: OpenAI, stream_resp: Any) -> Iterator[str]:
        try:
            for chunk in stream_resp:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        except openai.APIError as exc:
            raise ProviderError(f"{self.kind.label} stream error: {exc}") from exc
        finally:
            stream_resp.close()
            client.close()

    def check_key(self, secret: str) -> KeyStatus:
        client = self._client(secret)
        try:
            client.models.list()
        except openai.APIStatusError:
            return KeyStatus.INVALID
        except openai.APIConnectionError as exc:
            logger.warning("%s key check failed: %s", self.kind.label, exc)
            return KeyStatus.ERROR
        finally:
            client.close()
        return KeyStatus.WORKING


class OpenAIProvider(OpenAICompatibleProvider):
    """
    OpenAIProvider wraps the OpenAI Chat Completions API via the official SDK.
    """

    kind = ProviderKind.OPENAI
