from __future__ import annotations

import asyncio
from typing import Annotated, Optional

import typer

from notmuch_mail.cli.formatting import console, print_error, print_json, print_success
from notmuch_mail.index import TagOperation
from notmuch_mail.index.notmuch import create_client

tags_app = typer.Typer(help="Tag operations")


@tags_app.command("list")
def list_tags(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List all tags in the index."""
    try:
        tags = asyncio.run(create_client().list_tags())
        if json_output:
            print_json(tags)
        else:
            for tag in tags:
                console.print(tag)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@tags_app.command("apply")
def apply_tags(
    query: Annotated[str, typer.Argument(help="Messages to tag")],
    add: Annotated[Optional[list[str]], typer.Option("--add", "-a", help="Tag to add (can be repeated)")] = None,
    remove: Annotated[Optional[list[str]], typer.Option("--remove", "-r", help="Tag to remove (can be repeated)")] = None,
) -> None:
    """Add and remove tags on every message matching a query."""
    try:
        ops = [TagOperation.add(t) for t in add or []] + [TagOperation.remove(t) for t in remove or []]
        if not ops:
            print_error("Nothing to do, pass --add or --remove")
            raise typer.Exit(1)
        asyncio.run(create_client().tag(query, ops))
        print_success(f"Tagged {query}: {' '.join(str(op) for op in ops)}")
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None
