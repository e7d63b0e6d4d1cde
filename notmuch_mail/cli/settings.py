from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from notmuch_mail.cli.formatting import console, print_error, print_success
from notmuch_mail.index.notmuch import create_client

config_app = typer.Typer(help="Read and write notmuch configuration")


@config_app.command("get")
def config_get(key: Annotated[str, typer.Argument(help="Key such as user.primary_email")]) -> None:
    """Print a configuration value."""
    try:
        console.print(asyncio.run(create_client().config_get(key)), markup=False, highlight=False)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@config_app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="Configuration key")],
    value: Annotated[str, typer.Argument(help="New value")],
) -> None:
    """Set a configuration value."""
    try:
        asyncio.run(create_client().config_set(key, value))
        print_success(f"{key} = {value}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None
