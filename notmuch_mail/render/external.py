import shlex
from pathlib import Path

from notmuch_mail.exceptions import CommandFailed, ConfigurationError, TransportError
from notmuch_mail.log import logger
from notmuch_mail.process import CommandRunner, LocalTransport
from notmuch_mail.render.base import HtmlToTextConverter
from notmuch_mail.render.builtin import EXCESS_NEWLINES, reflow

# width most tools wrap at when not told otherwise
TOOL_DEFAULT_WIDTH = 80

PROBE_FLAGS = ("--version", "--help")


class ExternalConverter(HtmlToTextConverter):
    """Pipes HTML through a command such as ``w3m -dump -T text/html``"""

    def __init__(self, command: str, width: int = TOOL_DEFAULT_WIDTH):
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise ConfigurationError(f"Cannot parse converter command {command!r}: {e}") from e
        if not argv:
            raise ConfigurationError("Converter command is empty")
        self.command = command
        self.argv = argv
        self.width = width
        self.name = Path(argv[0]).name
        self.runner = CommandRunner(LocalTransport(argv[0]))

    async def convert(self, html: str | bytes) -> str:
        data = html.encode("utf-8") if isinstance(html, str) else html
        output = await self.runner.run(self.argv[1:], stdin=data)
        return self.postprocess(output.decode("utf-8", errors="replace"))

    def postprocess(self, text: str) -> str:
        if self.width != TOOL_DEFAULT_WIDTH:
            return reflow(text, self.width)
        return EXCESS_NEWLINES.sub("\n\n", text).strip()

    async def is_available(self) -> bool:
        for flag in PROBE_FLAGS:
            try:
                await self.runner.run([flag])
                return True
            except (CommandFailed, TransportError) as e:
                logger.debug(f"Probe {self.name} {flag} failed: {e!s}")
        return False
