from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.padding import Padding
from rich.panel import Panel
from rich.table import Table

from notmuch_mail.index.models import Message, SearchItem
from notmuch_mail.index.thread import Thread

console = Console()


def print_json(data: Any) -> None:
    """Print data as JSON. Accepts Pydantic models, lists of them or dicts."""
    if hasattr(data, "model_dump_json"):
        console.print_json(data.model_dump_json())
    elif isinstance(data, list) and data and hasattr(data[0], "model_dump"):
        console.print_json(json.dumps([item.model_dump(mode="json") for item in data], default=str))
    else:
        console.print_json(json.dumps(data, default=str))


def print_search_table(items: list[SearchItem], title: str = "Threads") -> None:
    """Print a table of thread summaries."""
    table = Table(title=title, show_lines=False)
    table.add_column("Thread", style="cyan", no_wrap=True)
    table.add_column("Date", style="green", no_wrap=True)
    table.add_column("Msgs", style="magenta", no_wrap=True)
    table.add_column("Authors", style="yellow")
    table.add_column("Subject", style="white")
    table.add_column("Tags", style="blue")

    for item in items:
        table.add_row(
            item.thread_id,
            item.date_relative,
            f"{item.matched}/{item.total}",
            escape(item.authors),
            escape(item.subject),
            " ".join(item.tags),
        )

    console.print(table)


def print_message(message: Message, body: str, depth: int = 0) -> None:
    """Print one message of a thread in a panel."""
    headers = message.headers
    header = (
        f"[cyan]From:[/cyan] {escape(headers.from_ or '')}\n"
        f"[cyan]To:[/cyan] {escape(headers.to or '')}\n"
        f"[cyan]Date:[/cyan] {escape(headers.date or message.date_relative)}\n"
        f"[cyan]Tags:[/cyan] {' '.join(message.tags)}\n"
    )
    attachments = message.attachments()
    if attachments:
        header += f"[cyan]Attachments:[/cyan] {', '.join(f'{a.part_id}:{escape(a.filename)}' for a in attachments)}\n"

    panel = Panel(
        header + "\n" + escape(body),
        title=f"[bold]{escape(headers.subject or '(No subject)')}[/bold]",
        subtitle=f"id:{escape(message.id)}",
    )
    console.print(Padding(panel, (0, 0, 0, 2 * depth)))


def print_thread(thread: Thread, bodies: list[str]) -> None:
    for index, message in enumerate(thread):
        print_message(message, bodies[index], thread.depth(index))


def print_success(message: str) -> None:
    console.print(f"[green]{escape(message)}[/green]")


def print_error(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")
