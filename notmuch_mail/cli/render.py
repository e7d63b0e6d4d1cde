from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from notmuch_mail.cli.formatting import console, print_error, print_json
from notmuch_mail.config import ConverterType, get_settings
from notmuch_mail.render import create_converter, detect_available_tools, popular_external_tools

render_app = typer.Typer(help="HTML to text conversion")


@render_app.command("file")
def render_file(
    file: Annotated[Path, typer.Argument(help="HTML file, - for stdin")],
    width: Annotated[Optional[int], typer.Option(help="Wrap width")] = None,
    converter: Annotated[Optional[ConverterType], typer.Option(help="Override the configured backend")] = None,
    command: Annotated[Optional[str], typer.Option(help="External converter command")] = None,
    links: Annotated[Optional[bool], typer.Option(help="Append link targets after link text")] = None,
) -> None:
    """Render an HTML file as plain text."""
    try:
        updates = {
            key: value
            for key, value in {
                "text_width": width,
                "converter_type": converter,
                "external_command": command,
                "preserve_links": links,
            }.items()
            if value is not None
        }
        config = get_settings().renderer.model_copy(update=updates)
        html = sys.stdin.buffer.read() if str(file) == "-" else file.read_bytes()

        async def _render() -> str:
            backend = await create_converter(config)
            return await backend.convert(html)

        console.print(asyncio.run(_render()), markup=False, highlight=False)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@render_app.command("tools")
def tools(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List known external converters and whether they are installed."""
    available = asyncio.run(detect_available_tools())
    if json_output:
        print_json({"available": available, "known": popular_external_tools()})
        return
    for name, command in popular_external_tools().items():
        status = "[green]available[/green]" if name in available else "[dim]not found[/dim]"
        console.print(f"{name:<10} {status}  {command}")
