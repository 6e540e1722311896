from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from keyrouter.config import load_app_config, provider_config, routing_priority
from keyrouter.core.credentials import DEFAULT_ENV_NAMES, CredentialSet
from keyrouter.core.prompts import PromptManager
from keyrouter.core.router import ProviderRouter
from keyrouter.core.selection import choose_model
from keyrouter.core.session import DEFAULT_MAX_HISTORY, ChatSession
from keyrouter.errors import InsufficientCreditError, RoutingError
from keyrouter.models.anthropic_provider import AnthropicProvider
from keyrouter.models.base import (
    DEFAULT_PRIORITY,
    ChatResponse,
    ProviderError,
    ProviderKind,
    ProviderRegistry,
)
from keyrouter.models.gemini_provider import GeminiProvider
from keyrouter.models.groq_provider import GroqProvider
from keyrouter.models.openai_provider import OpenAIProvider
from keyrouter.usage import JsonlUsageRecorder

PROVIDER_CHOICES = ["auto"] + [kind.value for kind in ProviderKind]

CREDIT_HINT = (
    "Your API key has no credits left. Add billing to that account "
    "or configure a key for another provider."
)


# --------------------------------------------------------------------------------------
# Builders
# --------------------------------------------------------------------------------------


def build_provider_registry(cfg: Dict[str, Any]) -> ProviderRegistry:
    """
    Build and register the client for every supported provider.

    Each client reads its model, token limit, temperature, timeout and
    (where it applies) base URL from `providers.<name>`.
    """
    registry = ProviderRegistry()
    pool_maxsize = int((cfg.get("http") or {}).get("pool_maxsize", 32))

    registry.register_provider(GroqProvider.from_config(provider_config(cfg, "groq")))
    registry.register_provider(OpenAIProvider.from_config(provider_config(cfg, "openai")))
    registry.register_provider(
        GeminiProvider.from_config(provider_config(cfg, "gemini"), pool_maxsize=pool_maxsize)
    )
    registry.register_provider(AnthropicProvider.from_config(provider_config(cfg, "claude")))
    return registry


def build_router(cfg: Dict[str, Any]) -> ProviderRouter:
    priority = routing_priority(cfg)
    kinds = [ProviderKind.parse(p) for p in priority] if priority else list(DEFAULT_PRIORITY)
    usage_log = cfg.get("usage_log")
    return ProviderRouter(
        registry=build_provider_registry(cfg),
        priority=kinds,
        usage_recorder=JsonlUsageRecorder(usage_log) if usage_log else None,
    )


def load_credentials(cfg: Dict[str, Any]) -> CredentialSet:
    """
    Assemble the caller's credentials from environment variables.

    The variable for each provider defaults to DEFAULT_ENV_NAMES and can
    be overridden with `providers.<name>.api_key_env`.
    """
    env_names = {}
    for kind in ProviderKind:
        env_names[kind] = provider_config(cfg, kind.value).get(
            "api_key_env", DEFAULT_ENV_NAMES[kind]
        )
    return CredentialSet.from_env(env_names)


# --------------------------------------------------------------------------------------
# Output helpers
# --------------------------------------------------------------------------------------


def print_response(response: ChatResponse, prefix: str = "") -> None:
    if prefix:
        print(prefix, end="", flush=True)
    if response.stream is not None:
        for chunk in response.stream:
            print(chunk, end="", flush=True)
        print()
    else:
        print(response.text)


def report_error(exc: ProviderError) -> None:
    print(f"Error: {exc}", file=sys.stderr)
    if isinstance(exc, InsufficientCreditError):
        print(CREDIT_HINT, file=sys.stderr)


def _preferred(value: Optional[str]) -> Optional[str]:
    return None if value in (None, "auto") else value


# --------------------------------------------------------------------------------------
# Interactive chat loop
# --------------------------------------------------------------------------------------


def interactive_chat(session: ChatSession, stream: bool = False) -> None:
    """
    Simple terminal chat loop.

    The session keeps running until:
      - user types /exit or /quit
      - or presses Ctrl+C.
    """
    print("\n[Interactive chat started]")
    print("Provider:", session.preferred_provider or "auto")
    print("Strict  :", session.strict)
    print("Type /exit or press Ctrl+C to end the session.\n")

    while True:
        try:
            user_input = input("You> ").strip()
            if not user_input:
                continue

            if user_input.lower() in {"/exit", "/quit"}:
                print("Bye")
                break

            try:
                response = session.send(user_input, stream=stream)
                print_response(response, prefix=f"Assistant ({response.provider.value})> ")
            except ProviderError as exc:
                report_error(exc)
        except (KeyboardInterrupt, EOFError):
            print("\n[Session interrupted by user, exiting chat]")
            break


# --------------------------------------------------------------------------------------
# CLI
# --------------------------------------------------------------------------------------


def _add_routing_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--provider",
        choices=PROVIDER_CHOICES,
        default="auto",
        help="Preferred provider, or 'auto' to use the configured priority.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only use the preferred provider (it may still be replaced when out of credit).",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream the reply when the first provider supports it.",
    )
    parser.add_argument(
        "--user",
        default=None,
        help="Caller id recorded in the usage log.",
    )
    parser.add_argument(
        "--instructions",
        default=None,
        help="Extra instructions appended to the system prompt.",
    )


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Route chat requests across your own AI provider keys."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (optional; built-in defaults otherwise).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ask: single-turn Q&A
    ask_parser = subparsers.add_parser("ask", help="Single question.")
    _add_routing_args(ask_parser)
    ask_parser.add_argument(
        "--attach",
        action="append",
        default=[],
        metavar="URL",
        help="File reference to include with the question (repeatable).",
    )
    ask_parser.add_argument("question", help="User question to send to the model.")

    # chat: interactive loop
    chat_parser = subparsers.add_parser("chat", help="Interactive chat session.")
    _add_routing_args(chat_parser)

    subparsers.add_parser("keys", help="Check which configured API keys work.")
    subparsers.add_parser("which", help="Show the provider used when none is preferred.")

    return parser.parse_args(argv)


# --------------------------------------------------------------------------------------
# main()
# --------------------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from .env (if present)
    load_dotenv()

    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_app_config(args.config)
    router = build_router(config)
    credentials = load_credentials(config)

    if args.command == "keys":
        for kind in router.priority:
            secret = credentials.get(kind)
            if secret is None:
                print(f"{kind.value}: not configured")
                continue
            status = router.registry.resolve(kind).check_key(secret)
            print(f"{kind.value}: {status.value}")
        return 0

    if args.command == "which":
        try:
            selection = choose_model(credentials, router.priority)
        except RoutingError as exc:
            report_error(exc)
            return 1
        print(selection.provider.value)
        return 0

    prompts = PromptManager(config.get("prompts", {}))
    session = ChatSession(
        router=router,
        credentials=credentials,
        preferred_provider=_preferred(args.provider),
        strict=args.strict,
        system_prompt=prompts.get_system_prompt(user_instructions=args.instructions),
        caller_id=args.user,
        max_history=(config.get("session") or {}).get("max_history", DEFAULT_MAX_HISTORY),
    )

    if args.command == "chat":
        interactive_chat(session, stream=args.stream)
        return 0

    if args.command == "ask":
        try:
            response = session.send(args.question, attachments=args.attach, stream=args.stream)
            print_response(response)
        except ProviderError as exc:
            report_error(exc)
            return 1
        return 0

    # Should never reach here
    raise SystemExit(f"Unknown command: {args.command!r}")


if __name__ == "__main__":
    sys.exit(main())
