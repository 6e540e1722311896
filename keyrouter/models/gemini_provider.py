"""
Gemini provider implementation.

Calls the Generative Language REST API (`generateContent`) directly
with `requests`. Gemini names the assistant role `model` and takes
instructions in a dedicated `system_instruction` field, so messages
are reshaped before sending. One `requests.Session` is kept per
provider instance so connections to the endpoint are pooled. The
response body is read in chunks so the configured timeout bounds the
whole call, not just each socket read.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

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


def build_session(pool_maxsize: int) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=4, pool_maxsize=pool_maxsize)
    session.mount("https://", adapter)
    return session


class GeminiProvider(BaseProvider):
    """
    GeminiProvider wraps the Gemini generateContent REST endpoint.
    """

    kind = ProviderKind.GEMINI

    def __init__(
        self,
        model: str,
        max_tokens: int,
        base_url: str,
        temperature: float = 0.7,
        timeout: float = 25.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )
        self.base_url = base_url.rstrip("/")
        self.session = session or build_session(pool_maxsize=32)

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        pool_maxsize: int = 32,
    ) -> "GeminiProvider":
        return cls(
            model=cfg.get("model", "gemini-2.5-flash"),
            max_tokens=int(cfg.get("max_tokens", 2048)),
            base_url=cfg.get(
                "base_url", "https://generativelanguage.googleapis.com/v1beta"
            ),
            temperature=float(cfg.get("temperature", 0.7)),
            timeout=float(cfg.get("timeout", 25.0)),
            session=build_session(pool_maxsize),
        )

    def build_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        system_parts: List[Dict[str, str]] = []
        contents: List[Dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role")
            text = msg.get("content", "")
            if role in ("developer", "system"):
                if text:
                    system_parts.append({"text": text})
                continue
            contents.append(
                {
                    "role": "model" if role == "assistant" else "user",
                    "parts": [{"text": text}],
                }
            )

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if system_parts:
            payload["system_instruction"] = {"parts": system_parts}
        return payload

    def send(
        self,
        secret: str,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ProviderOutcome:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        headers = {"x-goog-api-key": secret, "Content-Type": "application/json"}
        # requests only bounds each connect/read; the deadline bounds the whole call.
        deadline = time.monotonic() + self.timeout
        try:
            resp = self.session.post(
                url,
                json=self.build_payload(messages),
                headers=headers,
                timeout=self.timeout,
                stream=True,
            )
        except requests.Timeout:
            return timed_out(self.kind)
        except requests.RequestException as exc:
            return unreachable(self.kind, exc)

        try:
            body = self._read_body(resp, deadline)
        except requests.Timeout:
            return timed_out(self.kind)
        except requests.RequestException as exc:
            return unreachable(self.kind, exc)
        finally:
            resp.close()
        if body is None:
            logger.info("%s response exceeded %ss deadline", self.kind.label, self.timeout)
            return timed_out(self.kind)

        text_body = body.decode("utf-8", errors="replace")
        if not resp.ok:
            return classify_response(self.kind, resp.status_code, text_body, resp.reason)
        try:
            data = json.loads(text_body)
        except ValueError:
            return Failure(ErrorKind.FATAL, f"{self.kind.label} returned an unparseable response")

        text = _candidate_text(data)
        if not text:
            return empty_response(self.kind)
        return Success(text=text, raw=data)

    def _read_body(self, resp: requests.Response, deadline: float) -> Optional[bytes]:
        """Read the response body, or return None once `deadline` has passed."""
        chunks: List[bytes] = []
        for chunk in resp.iter_content(chunk_size=8192):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                return None
        return b"".join(chunks)

    def check_key(self, secret: str) -> KeyStatus:
        try:
            resp = self.session.get(
                f"{self.base_url}/models",
                headers={"x-goog-api-key": secret},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s key check failed: %s", self.kind.label, exc)
            return KeyStatus.ERROR
        try:
            return KeyStatus.WORKING if resp.ok else KeyStatus.INVALID
        finally:
            resp.close()


def _candidate_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))
