from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

import typer
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .agents import (
    AgentError,
    AgentOrchestrator,
    MessageStore,
    ProviderConfigError,
    StoreUnavailable,
    ToolRegistry,
    build_llm,
    default_tools,
)
from .agents.store import list_sessions, sessions_dir
from .config import DEFAULT_CONFIG_LOCATIONS, ConfigError, HearthConfig, existing_config_paths
from .ui import banner, console, openai_help_panel, print_answer, print_error, print_transcript, status_panel, tip

# Disable Typer rich help formatting to avoid Click 8.1+ API mismatch
app = typer.Typer(
    add_completion=False,
    help="Home-climate chat agent with tool use and persistent sessions",
    rich_markup_mode=None,
)
config_app = typer.Typer(help="Inspect configuration", rich_markup_mode=None)
app.add_typer(config_app, name="config")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


@app.callback(invoke_without_command=True)
def _default(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Start an interactive chat when running plain `hearthmind`."""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return
    cfg = _load_config()
    _chat_loop(cfg, _open_store(cfg, None, new=False))


def _load_config(provider: Optional[str] = None, model: Optional[str] = None) -> HearthConfig:
    try:
        return HearthConfig.load({"provider": provider, "openai_model": model})
    except ConfigError as e:
        banner("[b]Invalid configuration[/b]")
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)


def _open_store(cfg: HearthConfig, session_id: Optional[str], new: bool) -> MessageStore:
    base = sessions_dir(cfg)
    if session_id:
        return MessageStore.open(base, session_id)
    if new:
        return MessageStore.create(base)
    return MessageStore.latest(base)


def _build_agent(cfg: HearthConfig, store: MessageStore) -> AgentOrchestrator:
    try:
        llm = build_llm(cfg)
    except ProviderConfigError as e:
        banner("[b]Provider not configured[/b]")
        console.print(f"[red]{e}[/red]")
        openai_help_panel(missing_key="api key" in str(e).lower())
        raise typer.Exit(code=2)
    registry = ToolRegistry(default_tools(), cfg=cfg)
    return AgentOrchestrator(llm, registry, store, max_tool_cycles=cfg.max_tool_cycles)


def _run_turn(agent: AgentOrchestrator, text: str) -> bool:
    try:
        with console.status("Thinking…", spinner="dots"):
            answer = agent.run(text)
    except AgentError as e:
        print_error(e)
        return False
    except KeyboardInterrupt:
        console.print("[yellow]Turn cancelled.[/yellow]")
        return False
    print_answer(answer)
    stats = agent.last_stats
    if stats and stats.tools_used:
        tip(f"tools used: {', '.join(stats.tools_used)}")
    return True


def _read_line() -> Optional[str]:
    try:
        return console.input("[bold cyan]You>[/bold cyan] ")
    except (EOFError, KeyboardInterrupt):
        return None


def _chat_loop(cfg: HearthConfig, store: MessageStore) -> None:
    agent = _build_agent(cfg, store)
    banner("[b]HearthMind Chat[/b]")
    console.print(f"Session: {store.session_id}")
    try:
        recent = store.records()[-6:]
    except StoreUnavailable as e:
        print_error(e, title="Session unreadable")
        recent = []
    if recent:
        print_transcript(recent)
    tip("Type 'exit' to quit.")

    while True:
        line = _read_line()
        if line is None:
            console.print()
            raise typer.Exit(code=0)
        text = line.strip()
        if not text:
            continue
        if text.lower() == "exit":
            raise typer.Exit(code=0)
        _run_turn(agent, text)


@app.command()
def version():
    """Show HearthMind version."""
    console.print(f"HearthMind v{__version__}")


@app.command()
def chat(
    provider: Optional[str] = typer.Option(None, help="Provider: openai|simple"),
    model: Optional[str] = typer.Option(None, help="Model name for the openai provider"),
    session_id: Optional[str] = typer.Option(None, help="Resume session by id (YYYYMMDD-HHMMSS) or pass a .json path"),
    new: bool = typer.Option(False, "--new", help="Start a fresh session instead of resuming the latest"),
):
    """Open the chat REPL with tool use and session persistence."""
    cfg = _load_config(provider, model)
    _chat_loop(cfg, _open_store(cfg, session_id, new))


@app.command()
def ask(
    text: str = typer.Argument(..., help="Message to send"),
    provider: Optional[str] = typer.Option(None, help="Provider: openai|simple"),
    session_id: Optional[str] = typer.Option(None, help="Session id or .json path"),
    new: bool = typer.Option(False, "--new", help="Start a fresh session"),
):
    """Run a single turn and print the answer."""
    if not text.strip():
        raise typer.BadParameter("message must not be empty")
    cfg = _load_config(provider)
    agent = _build_agent(cfg, _open_store(cfg, session_id, new))
    if not _run_turn(agent, text.strip()):
        raise typer.Exit(code=1)


@app.command()
def history(
    session_id: Optional[str] = typer.Option(None, help="Session id or .json path (default: latest)"),
    limit: int = typer.Option(0, "-n", "--limit", help="Show only the last N messages"),
):
    """Print the stored transcript of a session."""
    cfg = _load_config()
    base = sessions_dir(cfg)
    if session_id:
        store = MessageStore.open(base, session_id)
    else:
        found = list_sessions(base)
        if not found:
            tip("No sessions yet. Start one with: hearthmind chat")
            return
        store = MessageStore(found[0])
    try:
        records = store.records()
    except StoreUnavailable as e:
        print_error(e, title="Session unreadable")
        raise typer.Exit(code=1)
    banner(f"[b]Session {store.session_id}[/b]")
    print_transcript(records[-limit:] if limit > 0 else records)


@app.command()
def sessions():
    """List stored sessions for this project."""
    cfg = _load_config()
    base = sessions_dir(cfg)
    found = list_sessions(base)
    if not found:
        tip("No sessions yet. Start one with: hearthmind chat")
        return
    table = Table(title=str(base), show_header=True, header_style="bold")
    table.add_column("Session")
    table.add_column("Updated", style="dim")
    for p in found:
        updated = datetime.fromtimestamp(p.stat().st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(p.stem, updated)
    console.print(table)


@app.command()
def doctor():
    """Run basic checks and show status."""
    banner("[b]HearthMind Doctor[/b]")
    cfg = _load_config()
    paths = existing_config_paths()
    if paths:
        for p in paths:
            console.print(f"✔ Config file: {p}", style="green")
    else:
        console.print("• No config file found (using defaults)", style="yellow")
    console.print(f"Sessions: {sessions_dir(cfg)}")
    if (cfg.provider or "").lower() == "openai":
        if cfg.openai_api_key or os.getenv("OPENAI_API_KEY"):
            console.print("✔ OpenAI API key present", style="green")
        else:
            openai_help_panel(missing_key=True)
    status_panel(cfg)


@config_app.command("show")
def config_show():
    """Print the effective configuration."""
    cfg = _load_config()
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    for key, val in cfg.redacted().items():
        table.add_row(key, "(unset)" if val is None else str(val))
    console.print(table)


@config_app.command("path")
def config_path(scope: str = typer.Option("user", help="user|repo")):
    """Show where a config file is looked up."""
    if scope not in {"user", "repo"}:
        raise typer.BadParameter("scope must be 'user' or 'repo'")
    path = DEFAULT_CONFIG_LOCATIONS[0] if scope == "user" else DEFAULT_CONFIG_LOCATIONS[1].resolve()
    console.print(str(path))


if __name__ == "__main__":  # pragma: no cover
    app()
