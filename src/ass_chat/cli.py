"""Terminal front end for Ass Chat with streaming and cancellation."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import time
from pathlib import Path

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape

from ass_chat import __version__
from ass_chat.auth import AuthenticationProvider
from ass_chat.cancellation import CancellationTokenSource
from ass_chat.chat.participant import ChatParticipant, build_messages, provide_followups, rewrite_prompt
from ass_chat.chat.response import (
    ChatContext,
    ChatPrompt,
    ConsoleResponseStream,
    RequestTurn,
)
from ass_chat.config import AssConfig, load_config
from ass_chat.errors import ChatError
from ass_chat.events.bus import EventBus, namespace
from ass_chat.llm.client import AsyncChatClient
from ass_chat.types import ChatEvent, ChatResult, EventType

console = Console()

_logger = logging.getLogger(__name__)

_COMMANDS = ("explain", "fix", "generate", "help")


def parse_input(text: str) -> ChatPrompt:
    """Split ``/command rest`` into a ChatPrompt.  Unknown commands stay text."""
    if text.startswith("/"):
        name, _, rest = text[1:].partition(" ")
        if name in _COMMANDS:
            return ChatPrompt(prompt=rest.strip(), command=name)
    return ChatPrompt(prompt=text)


def _print_followups(result: ChatResult) -> None:
    followups = provide_followups(result)
    if followups:
        console.print(
            "[dim]Try: " + " | ".join(f.prompt for f in followups) + "[/dim]"
        )


# ---------------------------------------------------------------------------
# Event reporting
# ---------------------------------------------------------------------------

def describe_event(event: ChatEvent) -> str:
    """One-line summary of a bus event for the status line and debug log."""
    data = event.data
    name = event.type.value
    if event.type == EventType.CHAT_STARTED:
        return f"{name} ({data.get('messages', 0)} messages)"
    if event.type == EventType.CHAT_ERROR:
        return f"{name}: {data.get('error', '')}"
    if event.type == EventType.AUTH_SESSIONS_CHANGED:
        change = data["change"]
        labels = [f"+{s.account.label}" for s in change.added]
        labels += [f"-{s.account.label}" for s in change.removed]
        return f"{name} [{data.get('provider')}] {' '.join(labels)}".rstrip()
    return name


def make_event_bus(verbose: bool = False) -> EventBus:
    """Shared bus for one CLI run, with the front end's handlers attached.

    Every event is logged at debug level.  With *verbose* the chat lifecycle
    is also echoed as a dim status line.  Session changes always print.
    """
    bus = EventBus()

    def report(event: ChatEvent) -> None:
        line = describe_event(event)
        _logger.debug("Event %s", line)
        if verbose and namespace(event.type) == "chat":
            console.print(f"[dim]· {escape(line)}[/dim]")

    def sessions_changed(event: ChatEvent) -> None:
        change = event.data["change"]
        for s in change.added:
            console.print(f"[dim]Signed in as {escape(s.account.label)}[/dim]")
        for s in change.removed:
            console.print(f"[dim]Signed out {escape(s.account.label)}[/dim]")

    bus.subscribe("*", report)
    bus.subscribe("auth.*", sessions_changed)
    return bus


async def run_turn(
    participant: ChatParticipant,
    request: ChatPrompt,
    context: ChatContext,
) -> ChatResult:
    """Run one request; Ctrl-C cancels the reply instead of the program."""
    source = CancellationTokenSource()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, source.cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False

    stream = ConsoleResponseStream(console)
    try:
        result = await participant.handle(request, context, stream, source.token)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
    console.print()

    if source.token.is_cancellation_requested:
        console.print("[yellow]Cancelled.[/yellow]")

    context.history.append(RequestTurn(prompt=request.prompt, command=request.command))
    context.history.append(stream.to_turn(command=request.command))
    return result


async def _one_shot(
    config: AssConfig, request: ChatPrompt, streaming: bool, verbose: bool = False,
) -> int:
    bus = make_event_bus(verbose)
    async with AsyncChatClient(config) as client:
        if not streaming:
            if request.command == "help":
                participant = ChatParticipant(client, bus)
                await run_turn(participant, request, ChatContext())
                return 0
            messages = build_messages(
                ChatContext(), rewrite_prompt(request.prompt, request.command),
            )
            try:
                reply = await client.chat(messages)
            except ChatError as e:
                console.print(f"[red]Error: {e}[/red]")
                return 1
            console.print(Markdown(reply))
            return 0

        result = await run_turn(ChatParticipant(client, bus), request, ChatContext())
        return 1 if result.failed else 0


async def _repl(config: AssConfig, verbose: bool) -> None:
    history_path = Path(os.path.expanduser("~/.ass_chat/history"))
    history_path.parent.mkdir(parents=True, exist_ok=True)
    session: PromptSession[str] = PromptSession(history=FileHistory(str(history_path)))
    context = ChatContext()
    bus = make_event_bus(verbose)
    auth = AuthenticationProvider(bus)
    signed_in = await auth.create_session(["chat"])

    async with AsyncChatClient(config) as client:
        participant = ChatParticipant(client, bus)
        while True:
            try:
                user_input = (await session.prompt_async(
                    HTML("<ansigreen><b>@ass ❯ </b></ansigreen>"),
                )).strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if not user_input:
                continue
            if user_input in ("/quit", "/exit"):
                console.print("[dim]Goodbye![/dim]")
                break

            request = parse_input(user_input)
            start = time.monotonic()
            try:
                result = await run_turn(participant, request, context)
            except Exception as e:
                console.print(f"[red]Error: {e}[/red]")
                if verbose:
                    console.print_exception()
                continue
            console.print(f"[dim]({time.monotonic() - start:.1f}s)[/dim]")
            _print_followups(result)

    await auth.remove_session(signed_in.id)


@click.command()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to ass_chat.yaml (auto-detected from CWD or ~/.config/ass-chat/)")
@click.option("--endpoint", "-e", default=None, help="Chat completions URL")
@click.option("--model", "-m", default=None, help="Model name")
@click.option("--api-key", "-k", default=None, help="API key (sent as a bearer token)")
@click.option("--prompt", "-p", "prompt_text", default=None,
              help="Send one prompt non-interactively and exit")
@click.option("--command", "command_name", type=click.Choice(_COMMANDS), default=None,
              help="Slash command to apply to --prompt")
@click.option("--no-stream", is_flag=True, help="Wait for the whole reply (with --prompt)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(__version__, prog_name="ass-chat")
def main(config_path: str | None, endpoint: str | None, model: str | None,
         api_key: str | None, prompt_text: str | None, command_name: str | None,
         no_stream: bool, verbose: bool):
    """Ass Chat - chat with an OpenAI-compatible backend from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config = load_config(config_path).with_overrides(
        endpoint=endpoint, model=model, api_key=api_key,
    )
    _logger.debug("Using endpoint %s with model %s", config.endpoint, config.model)

    if prompt_text is not None or command_name == "help":
        request = ChatPrompt(prompt=prompt_text or "", command=command_name)
        sys.exit(asyncio.run(_one_shot(config, request, streaming=not no_stream, verbose=verbose)))

    console.print(f"[bold cyan]Ass Chat[/bold cyan] [dim]v{__version__}[/dim]")
    console.print(f"[dim]Backend: {config.model} @ {config.endpoint}[/dim]")
    console.print("[dim]Type /help for commands, Ctrl-C cancels a reply, /quit exits[/dim]\n")
    asyncio.run(_repl(config, verbose))


if __name__ == "__main__":
    main()
