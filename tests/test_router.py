"""Tests for keyrouter.core.router: candidate order, fallback and termination."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from keyrouter.core.credentials import CredentialSet
from keyrouter.core.router import RoutingRequest
from keyrouter.errors import (
    AllProvidersFailedError,
    InsufficientCreditError,
    NoCredentialAvailableError,
    ProviderFailedError,
    UnknownProviderError,
)
from keyrouter.models.base import ErrorKind, Failure, ProviderKind, Success

MESSAGES = [{"role": "user", "content": "Hello"}]


def ok(text: str = "ok") -> Success:
    return Success(text=text)


def fail(kind: ErrorKind, message: str = "boom") -> Failure:
    return Failure(kind=kind, message=message)


def request(keys, **kwargs) -> RoutingRequest:
    return RoutingRequest(credentials=CredentialSet(keys), messages=MESSAGES, **kwargs)


def called(fakes):
    return [name for name, fake in fakes.items() if fake.calls]


# ---------------------------------------------------------------------------
# Candidate order
# ---------------------------------------------------------------------------


class TestPriorityOrder:
    def test_default_priority_tried_in_order_until_success(self, make_router, all_keys):
        router, fakes = make_router(
            {
                "groq": [fail(ErrorKind.TRANSIENT)],
                "openai": [fail(ErrorKind.INVALID_KEY)],
                "gemini": [ok("from gemini")],
            }
        )

        response = router.route(request(all_keys))

        assert response.text == "from gemini"
        assert response.provider is ProviderKind.GEMINI
        assert [a.provider for a in response.attempts] == [ProviderKind.GROQ, ProviderKind.OPENAI]
        assert fakes["claude"].calls == []

    def test_first_provider_success_stops_iteration(self, make_router, all_keys):
        router, fakes = make_router({"groq": [ok()]})

        response = router.route(request(all_keys))

        assert response.provider is ProviderKind.GROQ
        assert called(fakes) == ["groq"]

    def test_providers_without_keys_are_skipped(self, make_router):
        router, fakes = make_router({"claude": [ok("claude")]})

        response = router.route(request({"claude": "sk-ant", "groq": "  "}))

        assert response.provider is ProviderKind.CLAUDE
        assert called(fakes) == ["claude"]
        assert fakes["claude"].calls[0]["secret"] == "sk-ant"

    def test_configured_priority_is_respected(self, make_router, all_keys):
        router, fakes = make_router(
            {"claude": [fail(ErrorKind.RATE_LIMITED)], "gemini": [ok()]},
            priority=[ProviderKind.CLAUDE, ProviderKind.GEMINI],
        )

        response = router.route(request(all_keys))

        assert response.provider is ProviderKind.GEMINI
        assert [a.provider for a in response.attempts] == [ProviderKind.CLAUDE]
        assert fakes["groq"].calls == []
        assert fakes["openai"].calls == []

    def test_repeated_priority_entries_are_tried_once(self, make_router, all_keys):
        router, fakes = make_router(
            {"openai": [fail(ErrorKind.TRANSIENT)], "claude": [ok()]},
            priority=[ProviderKind.OPENAI, ProviderKind.OPENAI, ProviderKind.CLAUDE],
        )

        response = router.route(request(all_keys))

        assert router.priority == (ProviderKind.OPENAI, ProviderKind.CLAUDE)
        assert response.provider is ProviderKind.CLAUDE
        assert len(fakes["openai"].calls) == 1

    def test_candidate_order_puts_preferred_first(self, make_router):
        router, _ = make_router({})

        assert router.candidate_order(ProviderKind.GEMINI) == [
            ProviderKind.GEMINI,
            ProviderKind.GROQ,
            ProviderKind.OPENAI,
            ProviderKind.CLAUDE,
        ]
        assert router.candidate_order(None) == list(router.priority)


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class TestSoftPreference:
    def test_preferred_tried_first_then_fallback(self, make_router):
        router, fakes = make_router(
            {"openai": [fail(ErrorKind.TRANSIENT, "timed out")], "claude": [ok("z")]}
        )

        response = router.route(
            request({"openai": "sk", "claude": "sk-ant"}, preferred_provider="openai")
        )

        assert response.text == "z"
        assert response.provider is ProviderKind.CLAUDE
        assert len(fakes["openai"].calls) == 1
        assert len(fakes["claude"].calls) == 1

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.INVALID_KEY, ErrorKind.NO_MODEL_ACCESS, ErrorKind.FATAL, ErrorKind.RATE_LIMITED],
    )
    def test_any_failure_falls_back_when_not_strict(self, make_router, all_keys, kind):
        router, _ = make_router({"gemini": [fail(kind)], "groq": [ok()]})

        response = router.route(request(all_keys, preferred_provider="gemini"))

        assert response.provider is ProviderKind.GROQ

    def test_storage_field_names_are_accepted(self, make_router):
        router, _ = make_router({"openai": [ok()]})

        response = router.route(request({"openai_key": "sk"}, preferred_provider="openai_key"))

        assert response.provider is ProviderKind.OPENAI

    def test_auto_means_no_preference(self, make_router, all_keys):
        router, _ = make_router({"groq": [ok()]})

        response = router.route(request(all_keys, preferred_provider="auto", strict=True))

        assert response.provider is ProviderKind.GROQ

    def test_unknown_provider_is_rejected_before_any_call(self, make_router, all_keys):
        router, fakes = make_router({})

        with pytest.raises(UnknownProviderError):
            router.route(request(all_keys, preferred_provider="mistral"))
        assert called(fakes) == []


class TestStrictMode:
    @pytest.mark.parametrize(
        "kind", [ErrorKind.INVALID_KEY, ErrorKind.NO_MODEL_ACCESS, ErrorKind.FATAL]
    )
    def test_hard_failure_stops_without_substitution(self, make_router, all_keys, kind):
        router, fakes = make_router({"openai": [fail(kind, "Invalid API key: nope")]})

        with pytest.raises(ProviderFailedError) as exc_info:
            router.route(request(all_keys, preferred_provider="openai", strict=True))

        assert exc_info.value.provider is ProviderKind.OPENAI
        assert exc_info.value.kind is kind
        assert "openai" in str(exc_info.value)
        assert "Invalid API key: nope" in str(exc_info.value)
        assert called(fakes) == ["openai"]
        assert len(fakes["openai"].calls) == 1

    def test_insufficient_credit_falls_back_despite_strict(self, make_router, all_keys):
        router, fakes = make_router(
            {"claude": [fail(ErrorKind.INSUFFICIENT_CREDIT, "credit balance is too low")],
             "groq": [ok("ok")]}
        )

        response = router.route(request(all_keys, preferred_provider="claude", strict=True))

        assert response.text == "ok"
        assert response.provider is ProviderKind.GROQ
        assert response.bypassed_insufficient_credit is True
        assert response.attempts[0].provider is ProviderKind.CLAUDE

    @pytest.mark.parametrize("kind", [ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT])
    def test_outage_like_failure_advances_when_another_key_exists(
        self, make_router, all_keys, kind
    ):
        router, _ = make_router({"gemini": [fail(kind)], "groq": [ok()]})

        response = router.route(request(all_keys, preferred_provider="gemini", strict=True))

        assert response.provider is ProviderKind.GROQ
        assert response.bypassed_insufficient_credit is False

    @pytest.mark.parametrize("kind", [ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT])
    def test_outage_like_failure_is_terminal_with_single_key(self, make_router, kind):
        router, _ = make_router({"gemini": [fail(kind)]})

        with pytest.raises(AllProvidersFailedError) as exc_info:
            router.route(request({"gemini": "gm"}, preferred_provider="gemini", strict=True))

        assert "Selected model (gemini) failed" in str(exc_info.value)
        assert [a.kind for a in exc_info.value.attempts] == [kind]

    def test_hard_failure_of_fallback_candidate_does_not_stop(self, make_router, all_keys):
        router, fakes = make_router(
            {
                "claude": [fail(ErrorKind.INSUFFICIENT_CREDIT)],
                "groq": [fail(ErrorKind.INVALID_KEY)],
                "openai": [ok()],
            }
        )

        response = router.route(request(all_keys, preferred_provider="claude", strict=True))

        assert response.provider is ProviderKind.OPENAI
        assert fakes["gemini"].calls == []

    def test_missing_key_for_pinned_provider_is_not_substituted(self, make_router):
        router, fakes = make_router({})

        with pytest.raises(NoCredentialAvailableError) as exc_info:
            router.route(request({"groq": "gsk"}, preferred_provider="claude", strict=True))

        assert "claude" in str(exc_info.value)
        assert called(fakes) == []

    def test_pinned_provider_without_client_is_not_substituted(self, make_router):
        router, fakes = make_router({})
        del router.registry.providers[ProviderKind.CLAUDE]

        with pytest.raises(UnknownProviderError):
            router.route(
                request({"groq": "gsk", "claude": "sk-ant"}, preferred_provider="claude", strict=True)
            )

        assert called(fakes) == []


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


class TestTermination:
    def test_all_insufficient_credit_surfaces_credit_error(self, make_router, all_keys):
        router, _ = make_router(
            {name: [fail(ErrorKind.INSUFFICIENT_CREDIT, f"{name} broke")] for name in all_keys}
        )

        with pytest.raises(InsufficientCreditError) as exc_info:
            router.route(request(all_keys))

        assert exc_info.value.provider is ProviderKind.CLAUDE
        assert str(exc_info.value).startswith("INSUFFICIENT_CREDIT")
        assert len(exc_info.value.attempts) == 4

    def test_generic_error_when_last_failure_is_not_credit(self, make_router):
        router, _ = make_router(
            {
                "groq": [fail(ErrorKind.INSUFFICIENT_CREDIT)],
                "openai": [fail(ErrorKind.TRANSIENT)],
            }
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            router.route(request({"groq": "g", "openai": "o"}))

        assert "All available AI providers failed" in str(exc_info.value)
        assert not isinstance(exc_info.value, InsufficientCreditError)

    def test_empty_credentials_fail_before_any_call(self, make_router):
        router, fakes = make_router({})

        with pytest.raises(NoCredentialAvailableError):
            router.route(request({}))
        assert called(fakes) == []

    def test_soft_preference_without_any_key_fails_fast(self, make_router):
        router, fakes = make_router({})

        with pytest.raises(NoCredentialAvailableError):
            router.route(request({"openai": ""}, preferred_provider="openai"))
        assert called(fakes) == []


# ---------------------------------------------------------------------------
# Streaming, normalization and usage recording
# ---------------------------------------------------------------------------


class TestStreaming:
    def test_only_first_candidate_is_asked_to_stream(self, make_router, all_keys):
        router, fakes = make_router({"groq": [fail(ErrorKind.TRANSIENT)], "openai": [ok()]})

        router.route(request(all_keys, stream=True))

        assert fakes["groq"].calls[0]["stream"] is True
        assert fakes["openai"].calls[0]["stream"] is False

    def test_stream_is_passed_through(self, make_router, all_keys):
        router, _ = make_router({"groq": [Success(stream=iter(["a", "b"]))]})

        response = router.route(request(all_keys, stream=True))

        assert response.text is None
        assert list(response.stream) == ["a", "b"]


def test_messages_are_normalized_before_sending(make_router):
    router, fakes = make_router({"groq": [ok()]})
    messages = [
        {"role": "developer", "content": "Be brief."},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "Summarize"},
                {"type": "file", "url": "https://files.example/a.pdf"},
            ],
        },
    ]

    router.chat(CredentialSet({"groq": "g"}), messages)

    sent = fakes["groq"].calls[0]["messages"]
    assert sent == [
        {"role": "developer", "content": "Be brief."},
        {"role": "user", "content": "Summarize\nFile: https://files.example/a.pdf"},
    ]
    assert isinstance(messages[1]["content"], list)


class TestUsageRecording:
    def test_recorder_called_once_on_success(self, make_router, all_keys):
        recorder = MagicMock()
        router, _ = make_router(
            {"groq": [fail(ErrorKind.TRANSIENT)], "openai": [ok()]}, usage_recorder=recorder
        )

        router.route(request(all_keys, caller_id="user-1"))

        recorder.assert_called_once_with("openai", "user-1")

    def test_recorder_failure_does_not_change_outcome(self, make_router, all_keys):
        recorder = MagicMock(side_effect=RuntimeError("database down"))
        router, fakes = make_router({"groq": [ok("fine")]}, usage_recorder=recorder)

        response = router.route(request(all_keys, caller_id="user-1"))

        assert response.text == "fine"
        assert recorder.call_count == 1
        assert called(fakes) == ["groq"]

    def test_recorder_not_called_on_failure(self, make_router):
        recorder = MagicMock()
        router, _ = make_router(
            {"groq": [fail(ErrorKind.FATAL)]}, usage_recorder=recorder
        )

        with pytest.raises(AllProvidersFailedError):
            router.route(request({"groq": "g"}))
        recorder.assert_not_called()
