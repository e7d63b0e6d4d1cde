from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from notmuch_mail.cli.formatting import print_error, print_success
from notmuch_mail.compose import Attachment, MessageBuilder
from notmuch_mail.exceptions import InvalidInput
from notmuch_mail.index.notmuch import create_client
from notmuch_mail.sender import send_and_record
from notmuch_mail.sender.msmtp import create_mail_sender

compose_app = typer.Typer(help="Compose and send mail")

SENT_FOLDER = "Sent"
SENT_TAGS = ("sent",)


def _read_body(body: str | None, body_file: Path | None) -> str | None:
    if body_file is not None:
        if str(body_file) == "-":
            return sys.stdin.read()
        return body_file.read_text(encoding="utf-8")
    return body


async def _find_original(client, message_id: str):
    msg_id = message_id.removeprefix("id:")
    thread = await client.show(f"id:{msg_id}")
    original = thread.find(msg_id)
    if original is None:
        raise InvalidInput("message_id", f"no message with id {msg_id}")
    return original


@compose_app.command("send")
def send(
    to: Annotated[list[str], typer.Option("--to", help="Recipient (can be repeated)")],
    subject: Annotated[str, typer.Option("--subject", "-s", help="Subject line")] = "",
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="Plain text body")] = None,
    body_file: Annotated[Optional[Path], typer.Option("--body-file", help="Read the body from a file, - for stdin")] = None,
    html_file: Annotated[Optional[Path], typer.Option("--html-file", help="HTML alternative body")] = None,
    cc: Annotated[Optional[list[str]], typer.Option("--cc", help="CC recipient (can be repeated)")] = None,
    bcc: Annotated[Optional[list[str]], typer.Option("--bcc", help="BCC recipient (can be repeated)")] = None,
    attach: Annotated[Optional[list[Path]], typer.Option("--attach", help="File to attach (can be repeated)")] = None,
    from_address: Annotated[Optional[str], typer.Option("--from", help="Sender, defaults to msmtp's")] = None,
    markdown: Annotated[bool, typer.Option("--markdown", "-m", help="Also send the body rendered as HTML")] = False,
    save: Annotated[bool, typer.Option(help="File a copy in the index")] = True,
) -> None:
    """Build a message and submit it through msmtp."""
    try:
        sender = create_mail_sender()
        builder = MessageBuilder()
        builder.from_address(from_address or asyncio.run(sender.get_from_address()))
        builder.to(*to)
        if cc:
            builder.cc(*cc)
        if bcc:
            builder.bcc(*bcc)
        if subject:
            builder.subject(subject)
        text = _read_body(body, body_file)
        if text is not None:
            builder.plain(text)
        if html_file is not None:
            builder.html(html_file.read_text(encoding="utf-8"))
        if markdown:
            builder.markdown()
        for path in attach or []:
            builder.attach(Attachment.from_path(path))
        message = builder.build()

        if save:
            asyncio.run(send_and_record(sender, create_client(), message, SENT_FOLDER, SENT_TAGS))
        else:
            asyncio.run(sender.send(message))
        print_success(f"Sent {message.message_id}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@compose_app.command("reply")
def reply(
    message_id: Annotated[str, typer.Argument(help="Message to reply to")],
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="Reply text")] = None,
    body_file: Annotated[Optional[Path], typer.Option("--body-file", help="Read the reply from a file, - for stdin")] = None,
    reply_all: Annotated[bool, typer.Option("--all", "-a", help="Reply to all recipients")] = False,
    save: Annotated[bool, typer.Option(help="File a copy in the index")] = True,
) -> None:
    """Reply to a message, quoting it."""
    try:
        client = create_client()
        sender = create_mail_sender()
        original = asyncio.run(_find_original(client, message_id))
        message = asyncio.run(sender.reply(original, _read_body(body, body_file) or "", reply_all))
        if save:
            asyncio.run(client.insert(message.raw, folder=SENT_FOLDER, tags=list(SENT_TAGS)))
        print_success(f"Sent {message.message_id}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@compose_app.command("forward")
def forward(
    message_id: Annotated[str, typer.Argument(help="Message to forward")],
    to: Annotated[list[str], typer.Option("--to", help="Recipient (can be repeated)")],
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="Text above the forwarded message")] = None,
    save: Annotated[bool, typer.Option(help="File a copy in the index")] = True,
) -> None:
    """Forward a message inline."""
    try:
        client = create_client()
        sender = create_mail_sender()
        original = asyncio.run(_find_original(client, message_id))
        message = asyncio.run(sender.forward(original, to, body))
        if save:
            asyncio.run(client.insert(message.raw, folder=SENT_FOLDER, tags=list(SENT_TAGS)))
        print_success(f"Sent {message.message_id}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None


@compose_app.command("check")
def check() -> None:
    """Check that msmtp can reach its server."""
    try:
        sender = create_mail_sender()
        if not asyncio.run(sender.test_connection()):
            print_error("msmtp could not reach the server")
            raise typer.Exit(1)
        print_success("msmtp connection OK")
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1) from None
