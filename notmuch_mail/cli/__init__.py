import os

# Default CLI log level to WARNING unless the user asked for something else
if "NOTMUCH_MAIL_LOG_LEVEL" not in os.environ:
    os.environ["NOTMUCH_MAIL_LOG_LEVEL"] = "WARNING"

import typer

from notmuch_mail.cli.compose import compose_app
from notmuch_mail.cli.messages import messages_app
from notmuch_mail.cli.render import render_app
from notmuch_mail.cli.settings import config_app
from notmuch_mail.cli.tags import tags_app

app = typer.Typer(help="notmuch mail client")
app.add_typer(messages_app, name="messages")
app.add_typer(tags_app, name="tags")
app.add_typer(config_app, name="config")
app.add_typer(compose_app, name="compose")
app.add_typer(render_app, name="render")


if __name__ == "__main__":
    app()
