from notmuch_mail.compose.builder import MessageBuilder
from notmuch_mail.compose.derive import forward_builder, reply_builder
from notmuch_mail.compose.models import Attachment, MailAddress, OutgoingMessage

__all__ = [
    "Attachment",
    "MailAddress",
    "MessageBuilder",
    "OutgoingMessage",
    "forward_builder",
    "reply_builder",
]
