"""Rich rendering for CLI output.

Accepts an optional :class:`~rich.console.Console` for dependency
injection in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from vertext.assistant.backend import AssistantReply
    from vertext.embedding.index import IndexingReport
    from vertext.tools.base import ToolDefinition

_BODY_PREVIEW = 80


def _preview(text: str, limit: int = _BODY_PREVIEW) -> str:
    text = text.replace("\n", " ")
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class VertextDisplay:
    """Styled output for the vertext commands."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    def show_tools(self, definitions: Sequence[ToolDefinition]) -> None:
        for definition in definitions:
            table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
            table.add_column("Parameter")
            table.add_column("Type")
            table.add_column("Required")
            table.add_column("Description")
            for p in definition.parameters:
                table.add_row(
                    p.name,
                    p.type.value,
                    "yes" if p.required else "",
                    p.description,
                )
            self._console.print(
                Panel(
                    table,
                    title=f"[bold cyan]{definition.name}[/bold cyan]",
                    subtitle=definition.description,
                    border_style="cyan",
                )
            )

    def show_hits(self, query: str, results: Sequence[Mapping[str, Any]]) -> None:
        if not results:
            self._console.print(f"No messages matching '{query}'.")
            return
        table = Table(title=f"Results for '{query}'", header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Date")
        table.add_column("Sender")
        table.add_column("Message")
        for hit in results:
            table.add_row(
                f"{float(hit.get('similarity', 0.0)):.0%}",
                str(hit.get("formatted_date", "")),
                str(hit.get("sender", "")),
                _preview(str(hit.get("body", ""))),
            )
        self._console.print(table)

    def show_report(self, report: IndexingReport) -> None:
        if not report.batches:
            self._console.print("Index is up to date.")
            return
        self._console.print(
            f"Embedded [bold]{report.processed}[/bold] messages "
            f"in {len(report.batches)} batches "
            f"({report.failed} failed)."
        )

    def show_stats(self, stats: Mapping[str, Any]) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold")
        table.add_column(justify="right")
        for key, value in stats.items():
            table.add_row(key.replace("_", " "), str(value))
        self._console.print(table)

    def show_reply(self, reply: AssistantReply) -> None:
        style = "red" if reply.is_error else "green"
        title = f"[dim]{reply.tool_used}[/dim]" if reply.tool_used else None
        self._console.print(Panel(reply.content, title=title, border_style=style))
