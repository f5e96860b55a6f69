"""CLI interface for pplx."""

from __future__ import annotations

import functools
import json
import logging
import sys
from pathlib import Path

import click

from . import __version__
from .chat import ask_once
from .client import CompletionClient
from .config import CONFIG_PATH, KNOWN_MODELS, Settings, init_config, load_settings
from .display import Spinner, display_session, format_session_time, print_summaries
from .errors import PplxError
from .interactive import InteractiveSession
from .storage import SessionStore

DEFAULT_LIST_LIMIT = 10


def _setup_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _reports_errors(f):
    """Turn pplx errors into click errors (message on stderr, exit code 1)."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except PplxError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


class AppContext:
    """Settings and store, built on first use so `--help` never touches disk."""

    def __init__(self, config_file: Path | None, model: str | None):
        self.config_file = config_file
        self.model = model
        self._settings: Settings | None = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings(self.config_file, model=self.model)
        return self._settings

    @property
    def store(self) -> SessionStore:
        return SessionStore(self.settings.sessions_dir)

    def client(self) -> CompletionClient:
        return CompletionClient.from_settings(self.settings)


pass_app = click.make_pass_decorator(AppContext)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pplx")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help=f"Config file (default: {CONFIG_PATH})",
)
@click.option("--model", "-m", help=f"Perplexity model to use (e.g. {', '.join(KNOWN_MODELS)})")
@click.option("--debug", is_flag=True, envvar="PPLX_DEBUG", help="Log debug output to stderr")
@click.option("-c", "--continue", "continue_id", metavar="ID", help="Continue a session (same as: session continue ID)")
@click.option("-l", "--list", "list_limit", type=int, metavar="N", help="List recent sessions (same as: session list -l N)")
@click.option("-s", "--search", "search_query", metavar="QUERY", help="Search sessions (same as: session search QUERY)")
@click.pass_context
def cli(ctx, config_file, model, debug, continue_id, list_limit, search_query):
    """pplx — ask Perplexity from your terminal.

    Run without a command to start an interactive conversation. Every
    conversation is saved and can be listed, searched and continued later.

    Examples:
        pplx run "What is the capital of France?"
        pplx -l 10
        pplx -s France
        pplx -c a8x9k2
    """
    _setup_logging(debug)
    ctx.obj = AppContext(config_file, model)

    has_shortcut = continue_id is not None or list_limit is not None or search_query is not None
    if ctx.invoked_subcommand is not None:
        if has_shortcut and ctx.invoked_subcommand == "session":
            raise click.UsageError(
                "Cannot combine the -c, -l and -s shortcuts with the session command."
            )
        return

    if continue_id is not None:
        ctx.invoke(session_continue, session_id=continue_id)
    elif list_limit is not None:
        ctx.invoke(session_list, limit=list_limit if list_limit > 0 else DEFAULT_LIST_LIMIT)
    elif search_query is not None:
        ctx.invoke(session_search, query=search_query)
    else:
        ctx.invoke(interactive)


@cli.command()
@click.argument("query", required=False)
@click.option("--model", "-m", help="Model for this query (overrides the configured one)")
@pass_app
@_reports_errors
def run(app: AppContext, query: str | None, model: str | None):
    """Send a one-shot query and print the answer with its references.

    The query can also be piped in on stdin. One-shot queries are not saved.

    Example:
        pplx run "What is the capital of France?" --model sonar-pro
        echo "What is 2+2?" | pplx run
    """
    if not query:
        stdin = click.get_text_stream("stdin")
        if not stdin.isatty():
            query = stdin.read().strip()
    if not query:
        raise click.UsageError('Query is required: pplx run "<query>" or echo "<query>" | pplx run')

    client = app.client()
    try:
        with Spinner():
            parsed = ask_once(query, client, app.settings, model=model)
    finally:
        client.close()
    click.echo(parsed.formatted())


@cli.command()
@pass_app
@_reports_errors
def interactive(app: AppContext):
    """Start an interactive conversation (the default)."""
    client = app.client()
    try:
        InteractiveSession(app.settings, app.store, client).run()
    finally:
        client.close()


@cli.command()
@pass_app
@_reports_errors
def stats(app: AppContext):
    """Show statistics about your saved sessions."""
    total, oldest, newest = app.store.stats()
    if not total:
        click.echo("No sessions found.")
        return

    click.echo()
    click.echo(click.style("Session Statistics", bold=True))
    click.echo(f"  Sessions:       {total:,}")
    click.echo(f"  Oldest:         {format_session_time(oldest)}")
    click.echo(f"  Newest:         {format_session_time(newest)}")
    click.echo(f"  Location:       {app.settings.sessions_dir}")
    click.echo()


# ─── session ─────────────────────────────────────────────────────────────────


@cli.group()
def session():
    """Manage saved conversation sessions.

    IDs can be the short ID shown in brackets (e.g. a8x9k2) or the full
    timestamp ID (e.g. 20240115-103045.123).
    """


@session.command("list")
@click.option("-l", "--limit", default=DEFAULT_LIST_LIMIT, show_default=True, help="Number of sessions to show")
@pass_app
@_reports_errors
def session_list(app: AppContext, limit: int):
    """List recent sessions, newest first."""
    sessions = app.store.list_recent(limit)
    if not sessions:
        click.echo("No sessions found.")
        click.echo("Start a conversation with 'pplx' or run a query with 'pplx run \"<query>\"'")
        return

    click.echo(f"Recent sessions (showing {len(sessions)}):\n")
    print_summaries(sessions)


@session.command("search")
@click.argument("query")
@pass_app
@_reports_errors
def session_search(app: AppContext, query: str):
    """Search sessions by short ID, initial query or message text (case-insensitive)."""
    results = app.store.search(query)
    if not results:
        click.echo("No sessions found matching your query.")
        return

    click.echo(f"Found {len(results)} session(s) matching '{query}':\n")
    print_summaries(results)


@session.command("show")
@click.argument("session_id", metavar="ID")
@pass_app
@_reports_errors
def session_show(app: AppContext, session_id: str):
    """Show a full conversation."""
    display_session(app.store.resolve(session_id))


@session.command("continue")
@click.argument("session_id", metavar="ID")
@pass_app
@_reports_errors
def session_continue(app: AppContext, session_id: str):
    """Show a conversation and keep talking in it.

    The session keeps the model it was started with.
    """
    store = app.store
    conversation = store.resolve(session_id)
    display_session(conversation)

    client = app.client()
    try:
        InteractiveSession(app.settings, store, client, conversation=conversation).run()
    finally:
        client.close()


@session.command("delete")
@click.argument("session_id", metavar="ID")
@click.confirmation_option("--yes", prompt="This will delete the session. Are you sure?")
@pass_app
@_reports_errors
def session_delete(app: AppContext, session_id: str):
    """Delete a saved session."""
    store = app.store
    conversation = store.resolve(session_id)
    store.delete(conversation.id)
    click.echo(f"Deleted session [{conversation.short_id}] {conversation.id}")


# ─── config ──────────────────────────────────────────────────────────────────


@cli.group("config")
def config_group():
    """Show or create the configuration file."""


@config_group.command("show")
@pass_app
@_reports_errors
def config_show(app: AppContext):
    """Print the effective settings (API key masked)."""
    data = app.settings.model_dump(mode="json")
    if data["api_key"]:
        data["api_key"] = data["api_key"][:4] + "…"
    click.echo(json.dumps(data, indent=2))


@config_group.command("init")
@pass_app
@_reports_errors
def config_init(app: AppContext):
    """Write a default config file if none exists."""
    path = app.config_file or CONFIG_PATH
    if init_config(path):
        click.echo(f"Created {path}")
    else:
        click.echo(f"Config file already exists: {path}")
