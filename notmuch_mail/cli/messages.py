from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from notmuch_mail.cli.formatting import console, print_error, print_json, print_search_table, print_success, print_thread
from notmuch_mail.config import get_settings
from notmuch_mail.index.notmuch import create_client
from notmuch_mail.index.thread import Thread
from notmuch_mail.render import create_converter

messages_app = typer.Typer(help="Search and read mail")


async def _render_bodies(thread: Thread) -> list[str]:
    converter = await create_converter(get_settings().renderer)
    bodies = []
    for message in thread:
        text = message.plain_text()
        if text is None:
            html = message.html_text()
            text = await converter.convert(html) if html else ""
        bodies.append(text)
    return bodies


@messages_app.command("search")
def search(
    query: Annotated[str, typer.Argument(help="notmuch search terms")],
    limit: Annotated[Optional[int], typer.Option(help="Maximum number of threads")] = None,
    offset: Annotated[int, typer.Option(help="Threads to skip")] = 0,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Search threads."""
    try:
        client = create_client()
        if limit is None and offset == 0:
            items, total = asyncio.run(client.search(query)), None
        else:
            items, total = asyncio.run(client.search_paginated(query, offset, limit if limit is not None else 50))
        if json_output:
            print_json(items)
        else:
            title = f"{query} ({len(items)} shown" + (f", {total} total)" if total is not None else ")")
            print_search_table(items, title=title)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@messages_app.command("show")
def show(
    query: Annotated[str, typer.Argument(help="Query resolving to one thread, e.g. thread:0000000000000001")],
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show a thread."""
    try:
        client = create_client()
        thread = asyncio.run(client.show(query))
        if json_output:
            print_json([message.model_dump(mode="json") for message in thread])
            return
        if not len(thread):
            print_error(f"No messages match {query}")
            raise typer.Exit(1)
        print_thread(thread, asyncio.run(_render_bodies(thread)))
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@messages_app.command("part")
def part(
    message_id: Annotated[str, typer.Argument(help="Message id")],
    part_id: Annotated[int, typer.Argument(help="Part number as shown by `show`")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to file instead of stdout")] = None,
) -> None:
    """Dump the raw octets of one MIME part."""
    try:
        client = create_client()
        data = asyncio.run(client.part(message_id, part_id))
        if output is None:
            sys.stdout.buffer.write(data)
            sys.stdout.flush()
        else:
            output.write_bytes(data)
            print_success(f"Wrote {len(data)} bytes to {output}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@messages_app.command("insert")
def insert(
    file: Annotated[Path, typer.Argument(help="RFC 5322 message file")],
    folder: Annotated[Optional[str], typer.Option(help="Maildir folder")] = None,
    tag: Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Tag to add (can be repeated)")] = None,
) -> None:
    """Add a message to the maildir and index it."""
    try:
        client = create_client()
        message_id = asyncio.run(client.insert(file.read_bytes(), folder=folder, tags=tag or []))
        print_success(f"Inserted {message_id}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@messages_app.command("refresh")
def refresh() -> None:
    """Scan the maildir for new mail."""
    try:
        client = create_client()
        with console.status("Indexing new mail..."):
            asyncio.run(client.refresh())
        print_success("Index refreshed")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None
