import abc
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notmuch_mail.compose.models import MailAddress, OutgoingMessage
    from notmuch_mail.index import IndexClient
    from notmuch_mail.index.models import Message


class MailSender(abc.ABC):
    @abc.abstractmethod
    async def send(self, message: "OutgoingMessage") -> str:
        """
        Submit a built message and return its Message-ID
        """

    @abc.abstractmethod
    async def reply(self, original: "Message", body: str, reply_all: bool = False) -> "OutgoingMessage":
        """
        Build and send a reply to ``original`` with ``body`` above the quote
        """

    @abc.abstractmethod
    async def forward(
        self, original: "Message", to: Iterable["str | MailAddress"], body: str | None = None
    ) -> "OutgoingMessage":
        """
        Build and send a forward of ``original``
        """

    @abc.abstractmethod
    async def test_connection(self) -> bool:
        """
        Probe the submission helper without sending anything
        """

    @abc.abstractmethod
    async def get_from_address(self) -> str:
        """
        Sender identity, from settings or the helper's configuration
        """


async def send_and_record(
    sender: MailSender,
    index: "IndexClient",
    message: "OutgoingMessage",
    folder: str | None = "Sent",
    tags: Iterable[str] = ("sent",),
) -> str:
    """Submit ``message`` and file a copy in the index so it shows up in threads"""
    message_id = await sender.send(message)
    await index.insert(message.raw, folder=folder, tags=list(tags))
    return message_id
