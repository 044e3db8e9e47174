from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .agents.base import StoredMessage
from .config import HearthConfig


console = Console()


def banner(title: str) -> None:
    t = Text.from_markup(title)
    t.stylize("magenta")
    console.print(t)


def tip(text: str) -> None:
    console.print(Text(f"💡 {text}", style="italic dim"))


def print_answer(text: str) -> None:
    console.print(Panel(Text(text or "(empty answer)"), title="Agent", border_style="green", box=box.ROUNDED))


def print_error(err: BaseException, title: str = "Turn failed") -> None:
    body = Text(f"{type(err).__name__}: {err}")
    cause = getattr(err, "cause", None) or err.__cause__
    if cause is not None and str(cause) not in str(err):
        body.append(f"\ncaused by {type(cause).__name__}: {cause}", style="dim")
    console.print(Panel(body, title=title, border_style="red", box=box.ROUNDED))


def openai_help_panel(missing_key: bool = True) -> None:
    lines = []
    if missing_key:
        lines.append("• Set API key: export OPENAI_API_KEY=sk-... (temporary for current session)")
        lines.append("• Or save it as openai_api_key in ~/.config/hearthmind/config.toml")
    lines.append("• Offline mode without AI: hearthmind chat --provider simple")
    console.print(Panel(Text("\n".join(lines)), title="OpenAI Setup", border_style="yellow", box=box.ROUNDED))


def status_panel(cfg: HearthConfig, session_id: Optional[str] = None) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="left", style="bold cyan")
    table.add_column(justify="left")
    mode = (cfg.provider or "openai").lower()
    table.add_row("Mode", mode)
    if mode == "openai":
        table.add_row("Model", cfg.openai_model or "(default)")
    table.add_row("Tool cycles", str(cfg.max_tool_cycles))
    if session_id:
        table.add_row("Session", session_id)
    console.print(Panel.fit(table, title="Status", border_style="blue", box=box.ROUNDED))


def _describe(rec: StoredMessage) -> str:
    m = rec.message
    if m.tool_calls:
        return "\n".join(f"→ {c.name}({c.arguments or '{}'})" for c in m.tool_calls)
    return m.content or ""


def print_transcript(records: Sequence[StoredMessage]) -> None:
    if not records:
        tip("No messages in this session yet.")
        return
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Role", no_wrap=True)
    table.add_column("Message")
    styles = {"user": "cyan", "assistant": "green", "tool": "yellow"}
    for rec in records:
        role = rec.message.role
        table.add_row(rec.created_at[:19].replace("T", " "), Text(role, style=styles.get(role, "")), _describe(rec))
    console.print(table)
