"""Command-line entry point for the ventureagent client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.ai_types import CurrentUser
from .ai.client import AgentTransport, ClientSettings, static_user
from .ai.tools import ToolContext, ToolError, ToolExecutor, ToolRegistry
from .chat.conversation import ConversationStore
from .chat.message_model import ChatMessage
from .services.session import SessionIdentityProvider
from .services.settings import Settings, SettingsStore, redacted_payload
from .services.storage import JsonFileStorage
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure logging for a CLI run; console output only in debug mode."""

    level = logging_utils.level_for(debug)
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except Exception as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


@dataclass(slots=True)
class Runtime:
    """Objects wired together for one CLI invocation."""

    settings: Settings
    storage: JsonFileStorage
    session: SessionIdentityProvider
    transport: AgentTransport
    conversation: ConversationStore

    async def aclose(self) -> None:
        self.conversation.dispose()
        await self.transport.aclose()


def current_user(settings: Settings) -> CurrentUser | None:
    if not settings.user_id:
        return None
    return CurrentUser(id=settings.user_id, user_type=settings.user_type, email=settings.user_email)


def build_runtime(settings: Settings, *, client: Any = None) -> Runtime:
    storage = JsonFileStorage(Path(settings.storage_path).expanduser())
    session = SessionIdentityProvider(storage, key=settings.session_key)
    transport = AgentTransport(
        ClientSettings.from_settings(settings),
        auth=static_user(current_user(settings)),
        session=session,
        client=client,
    )
    conversation = ConversationStore(transport, storage, history_key=settings.history_key)
    return Runtime(settings, storage, session, transport, conversation)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        overrides = _coerce_cli_overrides(args.overrides)
    except ValueError as exc:
        parser.error(str(exc))

    settings_path = Path(args.settings_path).expanduser() if args.settings_path else None
    store = SettingsStore(settings_path)
    settings = load_settings(store=store, overrides=overrides)
    configure_logging(args.debug or settings.debug_logging)

    if args.dump_settings:
        _dump_settings(settings, store, overrides=overrides)
        return 0
    if args.command is None:
        parser.print_help()
        return 2

    return asyncio.run(_dispatch(args, settings))


async def _dispatch(args: argparse.Namespace, settings: Settings, *, stdout: TextIO | None = None) -> int:
    out = stdout or sys.stdout
    if args.command == "tools":
        return _list_tools(args.user_type or settings.user_type, out, as_json=args.json)
    if args.command == "run-tool":
        return await _run_tool(args, settings, out)

    runtime = build_runtime(settings)
    try:
        if args.command == "chat":
            return await _chat(runtime.conversation, " ".join(args.message), out, context=args.context)
        if args.command == "history":
            return _print_history(runtime.conversation.messages, out, as_json=args.json)
        if args.command == "clear":
            runtime.conversation.clear_history()
            if args.reset_session:
                runtime.session.reset()
            out.write("Conversation history cleared.\n")
            return 0
    finally:
        await runtime.aclose()
    return 2


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


class StreamPrinter:
    """Subscriber that writes each newly streamed fragment of the latest answer."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._written = ""

    def __call__(self, messages: tuple[ChatMessage, ...]) -> None:
        if not messages or messages[-1].role != "assistant":
            return
        latest = messages[-1]
        if latest.content.startswith(self._written):
            delta = latest.content[len(self._written):]
        else:
            # The settled answer differs from the streamed text; print it whole.
            self._stream.write("\n")
            delta = latest.content
        if delta:
            self._stream.write(delta)
            self._stream.flush()
        self._written = latest.content

    @property
    def wrote_anything(self) -> bool:
        return bool(self._written)


async def _chat(
    conversation: ConversationStore,
    message: str,
    out: TextIO,
    *,
    context: Mapping[str, Any] | None = None,
) -> int:
    conversation.load()
    printer = StreamPrinter(out)
    unsubscribe = conversation.subscribe(printer)
    try:
        ok = await conversation.send_message(message, context=context)
    finally:
        unsubscribe()
    if printer.wrote_anything:
        out.write("\n")
    if not ok:
        sys.stderr.write(f"Error: {conversation.error or 'request failed'}\n")
        return 1
    latest = conversation.messages[-1]
    if latest.suggestions:
        out.write("\nSuggestions:\n")
        for suggestion in latest.suggestions:
            out.write(f"  - {suggestion}\n")
    return 0


def _print_history(messages: Sequence[ChatMessage], out: TextIO, *, as_json: bool = False) -> int:
    if as_json:
        json.dump([message.to_dict() for message in messages], out, indent=2)
        out.write("\n")
        return 0
    if not messages:
        out.write("No conversation history.\n")
        return 0
    for message in messages:
        stamp = message.timestamp.strftime("%Y-%m-%d %H:%M")
        out.write(f"[{stamp}] {message.role}: {message.content}\n")
    return 0


def _list_tools(user_type: str, out: TextIO, *, as_json: bool = False) -> int:
    tools = ToolRegistry().get_tools_for_user_type(user_type)
    if as_json:
        json.dump([tool.to_openai_tool() for tool in tools], out, indent=2)
        out.write("\n")
        return 0
    if not tools:
        out.write(f"No tools available for user type '{user_type}'.\n")
        return 0
    for tool in tools:
        out.write(f"{tool.name}: {tool.description}\n")
    return 0


async def _run_tool(args: argparse.Namespace, settings: Settings, out: TextIO) -> int:
    executor = ToolExecutor(ToolRegistry())
    context = ToolContext(
        user_id=settings.user_id or "local",
        user_type=args.user_type or settings.user_type,
        request_id=uuid.uuid4().hex,
    )
    try:
        result = await executor.execute(args.name, args.params, context)
    except ToolError as exc:
        json.dump(exc.to_dict(), sys.stderr, indent=2)
        sys.stderr.write("\n")
        return 1
    json.dump(result, out, indent=2, default=str)
    out.write("\n")
    return 0


# ----------------------------------------------------------------------
# Argument parsing
# ----------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ventureagent",
        description="Talk to the business agent and run its tools from the terminal.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.ventureagent/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Log debug output to stderr.")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    chat = commands.add_parser("chat", help="Send a message and stream the answer.")
    chat.add_argument("message", nargs="+", help="Message text.")
    chat.add_argument(
        "--context",
        type=_json_object,
        default=None,
        metavar="JSON",
        help="Extra context object forwarded with the message.",
    )

    history = commands.add_parser("history", help="Print the stored conversation.")
    history.add_argument("--json", action="store_true", help="Print messages as JSON.")

    clear = commands.add_parser("clear", help="Delete the stored conversation.")
    clear.add_argument("--reset-session", action="store_true", help="Also start a new session id.")

    tools = commands.add_parser("tools", help="List the tools available to a user type.")
    tools.add_argument("--user-type", metavar="ROLE", help="Role to list tools for (default: from settings).")
    tools.add_argument("--json", action="store_true", help="Print function-calling definitions as JSON.")

    run_tool = commands.add_parser("run-tool", help="Run one tool locally with JSON parameters.")
    run_tool.add_argument("name", help="Tool name, e.g. financial_calculator.")
    run_tool.add_argument("params", type=_json_object, metavar="JSON", help="Tool parameters object.")
    run_tool.add_argument("--user-type", metavar="ROLE", help="Role to run the tool as (default: from settings).")
    return parser


def _json_object(raw: str) -> Dict[str, Any]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return value


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            value = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(value, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return value
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
        "log_path": str(logging_utils.get_log_path() or ""),
    }
    output = {"settings": redacted_payload(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("VENTUREAGENT_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
