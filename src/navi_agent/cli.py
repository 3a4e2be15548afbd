"""
Command-line interface for navi-agent.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import ValidationError

from . import __version__
from .agent import Agent, AgentCallbacks, ConversationState, SessionStore, generate_session_id
from .config import Settings, get_settings
from .errors import NaviError
from .tools import create_default_registry
from .tools.exec_approval import format_confirmation_prompt

logger = structlog.get_logger()

PROMPT = "\x1b[36mnavi>\x1b[0m "
RESULT_PREVIEW_CHARS = 500


def configure_logging(level: str = "WARNING") -> None:
    """Configure structlog to render to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@dataclass
class Command:
    """A parsed line of REPL input."""

    type: Literal["quit", "clear", "usage", "message"]
    text: str = ""


def parse_input(line: str) -> Command:
    """Parse a REPL line into a command."""
    trimmed = line.strip()
    if trimmed in ("/quit", "/exit"):
        return Command("quit")
    if trimmed == "/clear":
        return Command("clear")
    if trimmed == "/usage":
        return Command("usage")
    return Command("message", trimmed)


def load_system_prompt(value: str | None) -> str | None:
    """Treat the value as a file path if it exists, otherwise as literal text."""
    if not value:
        return None
    path = Path(value).expanduser()
    if path.is_file():
        return path.read_text(encoding="utf-8").strip()
    return value


def format_usage(state: ConversationState) -> str:
    return (
        f"Turns: {state.turns} | Tokens: {state.total_input_tokens} in / "
        f"{state.total_output_tokens} out | Total: {state.total_tokens}"
    )


async def confirm_on_terminal(name: str, tool_input: dict[str, Any]) -> bool:
    """Ask on the terminal before running a dangerous tool."""
    try:
        answer = await asyncio.to_thread(input, format_confirmation_prompt(name, tool_input))
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_callbacks(interactive: bool) -> AgentCallbacks:
    """Callbacks that render agent activity to the terminal."""

    def on_text(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def on_tool_call(name: str, tool_input: dict[str, Any]) -> None:
        print(f"\n\x1b[2m[{name}] {json.dumps(tool_input)[:200]}\x1b[0m")

    def on_tool_result(name: str, result: str, is_error: bool) -> None:
        preview = result[:RESULT_PREVIEW_CHARS]
        if len(result) > RESULT_PREVIEW_CHARS:
            preview += "..."
        label = "error" if is_error else "result"
        print(f"\x1b[2m[{name} {label}] {preview}\x1b[0m")

    def on_context_truncation(dropped: int) -> None:
        print(f"\x1b[33m({dropped} earlier messages omitted to fit the context window)\x1b[0m")

    return AgentCallbacks(
        on_text=on_text,
        on_tool_call=on_tool_call,
        on_tool_result=on_tool_result,
        on_context_truncation=on_context_truncation,
        confirm_tool=confirm_on_terminal if interactive else None,
    )


async def run_single_shot(agent: Agent, prompt: str, system_prompt: str | None) -> int:
    """Answer one prompt and exit."""
    state = ConversationState(system_prompt=system_prompt)
    try:
        await agent.send_message(state, prompt, build_callbacks(interactive=False))
    except NaviError as e:
        print(f"\nerror: {e}", file=sys.stderr)
        return 1

    print(
        f"\n\n---\ntokens: {state.total_input_tokens} in / {state.total_output_tokens} out"
    )
    return 0


async def run_repl(
    agent: Agent,
    state: ConversationState,
    store: SessionStore | None = None,
    session_id: str | None = None,
) -> int:
    """Interactive read-eval-print loop."""
    print(f"navi v{__version__}")
    print("Type /quit to exit, /clear to reset, /usage for stats.\n")

    callbacks = build_callbacks(interactive=True)

    while True:
        try:
            line = await asyncio.to_thread(input, PROMPT)
        except (EOFError, KeyboardInterrupt):
            line = "/quit"

        command = parse_input(line)

        if command.type == "quit":
            print(f"\nSession: {state.turns} turns, {state.total_tokens} tokens total")
            return 0

        if command.type == "clear":
            state.clear()
            print("Conversation cleared.\n")
        elif command.type == "usage":
            print(format_usage(state) + "\n")
        elif command.text:
            try:
                result = await agent.send_message(state, command.text, callbacks)
                if result.reached_iteration_limit:
                    print("\n(stopped after the maximum number of tool iterations)")
                print("\n")
            except NaviError as e:
                print(f"\nerror: {e}\n", file=sys.stderr)

        if store is not None and session_id is not None:
            store.save(
                session_id,
                state,
                agent.provider_config.model,
                agent.provider_config.provider,
            )


def list_sessions(store: SessionStore) -> int:
    sessions = store.list()
    if not sessions:
        print("No saved sessions.")
        return 0
    for meta in sessions:
        print(
            f"{meta.id}  {meta.provider}/{meta.model}  "
            f"{meta.turns} turns  {meta.total_tokens} tokens  "
            f"updated {meta.updated_at:%Y-%m-%d %H:%M}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="navi",
        description="navi - a streaming coding agent for your terminal",
    )
    parser.add_argument("prompt", nargs="*", help="Prompt for one-shot mode")
    parser.add_argument("--system", help="System prompt text, or a file containing it")
    parser.add_argument("--provider", help="Provider name (anthropic, openai)")
    parser.add_argument(
        "--session",
        nargs="?",
        const="",
        help="Resume a saved session by id (no id starts a new saved session)",
    )
    parser.add_argument("--list-sessions", action="store_true", help="List saved sessions")
    parser.add_argument("--delete-session", metavar="ID", help="Delete a saved session")
    parser.add_argument("--version", action="version", version=f"navi {__version__}")
    return parser


async def _main_async(args: argparse.Namespace, settings: Settings) -> int:
    store = SessionStore(settings.sessions_dir)

    if args.list_sessions:
        return list_sessions(store)

    if args.delete_session:
        if store.delete(args.delete_session):
            print(f"Deleted session {args.delete_session}.")
            return 0
        print(f"No session {args.delete_session}.", file=sys.stderr)
        return 1

    system_prompt = load_system_prompt(args.system)
    agent = Agent.from_settings(
        settings,
        provider_name=args.provider,
        tool_registry=create_default_registry(),
    )
    logger.debug(
        "Agent ready",
        provider=agent.provider_config.provider,
        model=agent.provider_config.model,
    )

    prompt = " ".join(args.prompt).strip()
    if not prompt and not sys.stdin.isatty():
        prompt = sys.stdin.read().strip()
    if prompt:
        return await run_single_shot(agent, prompt, system_prompt)

    session_id = None
    state = ConversationState(system_prompt=system_prompt)
    if args.session is not None:
        session_id = args.session or generate_session_id()
        existing = store.load(session_id)
        if existing is not None:
            state = existing.to_state()
            if system_prompt:
                state.system_prompt = system_prompt
            print(f"Resumed session {session_id} ({state.turns} turns).")
        else:
            print(f"Session {session_id}")

    return await run_repl(agent, state, store, session_id)


def main() -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args()

    try:
        settings = get_settings()
        configure_logging(settings.log_level)
        sys.exit(asyncio.run(_main_async(args, settings)))
    except NaviError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"error: invalid configuration\n{e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
