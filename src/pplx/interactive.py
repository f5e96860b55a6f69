"""Interactive conversation loop."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable

import click

from .chat import send_turn
from .client import CompletionClient
from .config import Settings
from .display import Spinner, print_answer, print_separator
from .errors import APIError, StorageIOError
from .models import Conversation
from .storage import SessionStore

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/q", "/quit")


class InteractiveSession:
    """Reads questions until the user quits, saving after every answer.

    Signals never touch the conversation. They set ``stop_requested``; the
    loop notices it between turns (or the interrupted prompt returns) and
    performs the one final save itself.
    """

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        client: CompletionClient,
        conversation: Conversation | None = None,
        read_line: Callable[[], str] = input,
    ):
        self.settings = settings
        self.store = store
        self.client = client
        self.conversation = conversation
        self.read_line = read_line
        self.stop_requested = threading.Event()
        self._waiting_for_input = False
        self._previous_handler = signal.SIG_DFL

    def request_stop(self, signum=None, frame=None):
        self.stop_requested.set()
        if self._waiting_for_input:
            # Unblock the pending prompt; mid-turn the loop checks the flag afterwards
            raise KeyboardInterrupt

    def run(self):
        installed = self._install_signal_handler()
        model = self.conversation.metadata.model if self.conversation else self.settings.model
        click.echo("Welcome to PPLX Interactive Mode!")
        click.echo(f"Model: {model} | Type '{EXIT_COMMANDS[0]}' or press Ctrl+C to exit\n")

        try:
            self._loop()
        finally:
            if installed:
                signal.signal(signal.SIGTERM, self._previous_handler)

        self.save()
        click.echo("Goodbye!")

    def _loop(self):
        first = self.conversation is None or not self.conversation.messages
        while not self.stop_requested.is_set():
            if not first:
                print_separator()
            try:
                line = self._prompt()
            except (EOFError, KeyboardInterrupt):
                click.echo()
                self.stop_requested.set()
                break

            if line in EXIT_COMMANDS:
                break
            if not line:
                continue

            try:
                answered = self.handle_input(line)
            except KeyboardInterrupt:
                click.echo("\nInterrupted.")
                self.stop_requested.set()
                break
            if answered:
                first = False

    def _prompt(self) -> str:
        click.echo(click.style("You: ", fg="cyan", bold=True), nl=False)
        self._waiting_for_input = True
        try:
            return self.read_line().strip()
        finally:
            self._waiting_for_input = False

    def handle_input(self, line: str) -> bool:
        """Run one turn. Returns False if the request failed."""
        if self.conversation is None:
            self.conversation = self.store.create(self.settings.model, line)

        try:
            with Spinner():
                parsed = send_turn(self.conversation, line, self.client, self.settings)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            return False

        print_answer(parsed.formatted())
        self.save()
        return True

    def save(self) -> bool:
        """Save the conversation; failures are reported and not raised."""
        if self.conversation is None or not self.conversation.messages:
            return False
        try:
            self.store.save(self.conversation)
        except StorageIOError as e:
            click.echo(f"Warning: failed to save session: {e}", err=True)
            return False
        logger.debug("Session auto-saved: %s", self.conversation.id)
        return True

    def _install_signal_handler(self) -> bool:
        if threading.current_thread() is not threading.main_thread():
            return False
        previous = signal.signal(signal.SIGTERM, self.request_stop)
        self._previous_handler = previous if previous is not None else signal.SIG_DFL
        return True
