import re
from collections.abc import Iterable

from notmuch_mail.compose.derive import derive_forward, derive_reply
from notmuch_mail.compose.models import MailAddress, OutgoingMessage
from notmuch_mail.config import SenderSettings
from notmuch_mail.exceptions import CommandFailed, ConfigurationError, InvalidInput, SendFailed
from notmuch_mail.index.models import Message
from notmuch_mail.log import logger
from notmuch_mail.process import CommandRunner, build_transport
from notmuch_mail.sender import MailSender

FROM_LINE = re.compile(r"^\s*from\s*(?:=|:|\s)\s*(\S.*?)\s*$", re.IGNORECASE | re.MULTILINE)


class MsmtpSender(MailSender):
    """Submits mail through ``msmtp`` (or anything that speaks its CLI).

    The message goes to msmtp's stdin and the envelope recipients are
    given on the command line, so Bcc recipients are delivered without
    appearing in the headers.
    """

    def __init__(self, runner: CommandRunner, config_file: str | None = None, from_address: str | None = None):
        self.runner = runner
        self.config_file = config_file
        self.from_address = from_address

    @classmethod
    def from_settings(cls, settings: SenderSettings) -> "MsmtpSender":
        transport = build_transport(
            settings.path,
            host=settings.host,
            user=settings.user,
            port=settings.port,
            identity_file=settings.identity_file,
            ssh_options=settings.ssh_options,
        )
        logger.info(f"Using msmtp via {transport!r}")
        config_file = str(settings.config_file) if settings.config_file is not None else None
        return cls(CommandRunner(transport), config_file=config_file, from_address=settings.from_address)

    def _base_args(self) -> list[str]:
        return [f"--file={self.config_file}"] if self.config_file else []

    async def _run(self, args: list[str], stdin: bytes | None = None) -> bytes:
        try:
            return await self.runner.run([*self._base_args(), *args], stdin=stdin)
        except CommandFailed as e:
            raise SendFailed(e.stderr, e.argv, e.returncode) from e

    async def send(self, message: OutgoingMessage) -> str:
        if not message.envelope_recipients:
            raise InvalidInput("to", "at least one recipient is required")
        await self._run(["--", *message.envelope_recipients], stdin=message.raw)
        logger.info(f"Sent message {message.message_id} to {len(message.envelope_recipients)} recipient(s)")
        return message.message_id

    async def reply(self, original: Message, body: str, reply_all: bool = False) -> OutgoingMessage:
        draft = derive_reply(original, await self.get_from_address(), reply_all)
        message = draft.to_builder(f"{body}\n{draft.body}").build()
        await self.send(message)
        return message

    async def forward(
        self, original: Message, to: Iterable[str | MailAddress], body: str | None = None
    ) -> OutgoingMessage:
        draft = derive_forward(original, await self.get_from_address(), to)
        text = draft.body if body is None else f"{body}\n\n{draft.body}"
        message = draft.to_builder(text).build()
        await self.send(message)
        return message

    async def test_connection(self) -> bool:
        try:
            await self._run(["--serverinfo"])
        except SendFailed as e:
            logger.warning(f"msmtp server check failed: {e!s}")
            return False
        return True

    async def get_from_address(self) -> str:
        if self.from_address:
            return self.from_address
        output = (await self._run(["--print-config"])).decode("utf-8", errors="replace")
        match = FROM_LINE.search(output)
        if not match:
            raise ConfigurationError("No from address configured for msmtp")
        return match.group(1)


def create_mail_sender(settings: SenderSettings | None = None) -> MsmtpSender:
    if settings is None:
        from notmuch_mail.config import get_settings

        settings = get_settings().sender
    return MsmtpSender.from_settings(settings)
