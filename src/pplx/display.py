"""Terminal output for sessions and answers."""

from __future__ import annotations

import itertools
import threading
from datetime import datetime

import click

from .models import Conversation, SessionSummary

SEPARATOR_WIDTH = 60

USER_COLOR = "cyan"
ASSISTANT_COLOR = "magenta"
HEADER_COLOR = "blue"

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


def truncate_query(query: str, max_len: int) -> str:
    if len(query) <= max_len:
        return query
    if max_len <= 3:
        return query[:max_len]
    return query[: max_len - 3] + "..."


def format_session_time(moment: datetime) -> str:
    return moment.strftime("%b %d, %Y %H:%M:%S")


def print_separator(color: str = USER_COLOR):
    click.echo(click.style("─" * SEPARATOR_WIDTH, fg=color))


def print_answer(text: str):
    click.echo()
    print_separator(ASSISTANT_COLOR)
    click.echo(click.style("PPLX: ", fg=ASSISTANT_COLOR, bold=True) + text)
    click.echo()


def print_summaries(summaries: list[SessionSummary], query_width: int = 60):
    """Numbered list of sessions, one block per session."""
    for i, info in enumerate(summaries, start=1):
        click.echo(f"{i}. [{click.style(info.short_id, bold=True)}] {format_session_time(info.created_at)}")
        click.echo(f"   {truncate_query(info.initial_query, query_width)}")
        click.echo(f"   ({info.message_count} messages)")
        if i < len(summaries):
            click.echo()


def display_session(conversation: Conversation):
    """Print the whole conversation with a metadata header.

    Search results are not stored, so ``[N]`` markers in past answers are
    shown as they are, without a reference block.
    """
    click.echo()
    print_separator(HEADER_COLOR)
    click.echo(
        f"Session: [{conversation.short_id}] {format_session_time(conversation.metadata.created_at)}"
    )
    click.echo(f"Model: {conversation.metadata.model}")
    click.echo(f"Messages: {len(conversation.messages)}")
    print_separator(HEADER_COLOR)
    click.echo()

    for i, msg in enumerate(conversation.messages):
        if msg.role == "user":
            if i > 0:
                print_separator(USER_COLOR)
            click.echo(click.style("You: ", fg=USER_COLOR, bold=True) + msg.content)
        else:
            print_answer(msg.content)


class Spinner:
    """Animated progress indicator on stderr while a request is in flight.

    Runs on a daemon thread and only ever writes to the terminal. Disabled
    when stderr is not a terminal unless ``enabled`` says otherwise. Use it
    as a context manager so the thread is stopped and joined on every exit
    path.
    """

    def __init__(self, message: str = "Thinking...", interval: float = 0.1, enabled: bool | None = None):
        self.message = message
        self.interval = interval
        if enabled is None:
            enabled = click.get_text_stream("stderr").isatty()
        self.enabled = enabled
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if not self.enabled or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._spin, name="pplx-spinner", daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        click.echo("\r" + " " * (len(self.message) + 2) + "\r", err=True, nl=False)

    def _spin(self):
        for frame in itertools.cycle(SPINNER_FRAMES):
            click.echo(f"\r{click.style(frame, fg=USER_COLOR)} {self.message}", err=True, nl=False)
            if self._stop.wait(self.interval):
                return

    def __enter__(self) -> Spinner:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
