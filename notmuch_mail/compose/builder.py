"""
Staged construction of RFC 5322 messages.

The outer MIME structure follows from which bodies are present:

    plain only            text/plain
    html only             text/html
    plain + html          multipart/alternative (plain, html)
    any + attachments     multipart/mixed (body, attachment...)

where the body of a mixed message is itself an alternative when both
text forms exist.
"""

import base64
import secrets
import uuid
from collections.abc import Iterable
from datetime import datetime
from email import encoders
from email.header import Header
from email.message import Message
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.policy import compat32
from email.utils import format_datetime

from notmuch_mail.compose.rendering import markdown_to_html
from notmuch_mail.compose.models import UTF8_B64, Attachment, MailAddress, OutgoingMessage, unique_addresses
from notmuch_mail.exceptions import InvalidInput
from notmuch_mail.log import logger

# CRLF on the wire, headers folded at 76 columns
SMTP_POLICY = compat32.clone(linesep="\r\n", max_line_length=76)

MAX_LINE_OCTETS = 998

MANAGED_HEADERS = frozenset(
    h.lower()
    for h in (
        "From",
        "To",
        "Cc",
        "Bcc",
        "Subject",
        "Date",
        "Message-ID",
        "In-Reply-To",
        "References",
        "MIME-Version",
        "Content-Type",
        "Content-Transfer-Encoding",
    )
)


def new_boundary() -> str:
    return "=_" + secrets.token_hex(16)


def needs_base64(data: bytes) -> bool:
    if b"\x00" in data:
        return True
    return any(len(line.rstrip(b"\r")) > MAX_LINE_OCTETS for line in data.split(b"\n"))


def is_printable_ascii(value: str) -> bool:
    return all(32 <= ord(c) < 127 for c in value)


def single_line(value: str, field: str) -> str:
    if "\r" in value or "\n" in value:
        raise InvalidInput(field, "must not contain line breaks")
    return value


def encode_header_value(value: str, name: str) -> str | Header:
    if is_printable_ascii(value):
        return value
    return Header(value, UTF8_B64, header_name=name)


def _text_part(text: str, subtype: str) -> Message:
    data = text.encode("utf-8")
    part = Message()
    part["Content-Type"] = f"text/{subtype}; charset=utf-8"
    if needs_base64(data):
        part["Content-Transfer-Encoding"] = "base64"
        part.set_payload(base64.encodebytes(data).decode("ascii"))
    else:
        part["Content-Transfer-Encoding"] = "8bit"
        # surrogateescape lets BytesGenerator write the UTF-8 octets untouched
        part.set_payload(data.decode("ascii", "surrogateescape"))
    return part


def _attachment_part(attachment: Attachment) -> MIMEBase:
    part = MIMEBase(attachment.maintype, attachment.subtype)
    part.set_payload(attachment.data)
    encoders.encode_base64(part)
    if is_printable_ascii(attachment.filename):
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
    else:
        part.add_header("Content-Disposition", "attachment", filename=("utf-8", "", attachment.filename))
    del part["MIME-Version"]
    logger.debug(f"Attached {attachment.filename} ({attachment.content_type}, {len(attachment.data)} bytes)")
    return part


def _multipart(subtype: str, parts: Iterable[Message]) -> MIMEMultipart:
    container = MIMEMultipart(subtype, boundary=new_boundary())
    del container["MIME-Version"]
    for part in parts:
        container.attach(part)
    return container


def _format_references(references: Iterable[str]) -> str:
    return " ".join(_angle(ref) for ref in references)


def _angle(message_id: str) -> str:
    message_id = message_id.strip()
    return message_id if message_id.startswith("<") else f"<{message_id}>"


class MessageBuilder:
    """Collects message fields and emits an RFC 5322 octet stream.

    Every field can be assigned once; assigning it again raises
    ``InvalidInput``. ``validate()`` checks the field set without building,
    and ``build()`` validates, consumes the builder and returns an
    ``OutgoingMessage``.

    >>> message = (
    ...     MessageBuilder()
    ...     .from_address("a@x")
    ...     .to("b@y")
    ...     .subject("Hi")
    ...     .plain("Hello")
    ...     .build()
    ... )
    """

    def __init__(self):
        self._fields: dict[str, object] = {}
        self._attachments: list[Attachment] = []
        self._extra_headers: list[tuple[str, str]] = []
        self._consumed = False

    def _assign(self, field: str, value: object) -> "MessageBuilder":
        if self._consumed:
            raise InvalidInput("builder", "message was already built")
        if field in self._fields:
            raise InvalidInput(field, "field was already set")
        self._fields[field] = value
        return self

    def from_address(self, address: str | MailAddress) -> "MessageBuilder":
        sender = MailAddress.coerce(address, "from")
        single_line(sender.name + sender.address, "from")
        return self._assign("from", sender)

    def to(self, *addresses: str | MailAddress) -> "MessageBuilder":
        return self._assign("to", self._addresses(addresses, "to"))

    def cc(self, *addresses: str | MailAddress) -> "MessageBuilder":
        return self._assign("cc", self._addresses(addresses, "cc"))

    def bcc(self, *addresses: str | MailAddress) -> "MessageBuilder":
        return self._assign("bcc", self._addresses(addresses, "bcc"))

    def subject(self, subject: str) -> "MessageBuilder":
        return self._assign("subject", single_line(subject, "subject"))

    def plain(self, body: str) -> "MessageBuilder":
        return self._assign("plain", body)

    def html(self, body: str) -> "MessageBuilder":
        return self._assign("html", body)

    def markdown(self, enabled: bool = True) -> "MessageBuilder":
        """Render the plain body as HTML and send both as alternatives"""
        return self._assign("markdown", enabled)

    def in_reply_to(self, message_id: str) -> "MessageBuilder":
        return self._assign("in_reply_to", _angle(single_line(message_id, "in_reply_to")))

    def references(self, *message_ids: str) -> "MessageBuilder":
        return self._assign(
            "references", [_angle(single_line(m, "references")) for m in message_ids if m.strip()]
        )

    def date(self, when: datetime) -> "MessageBuilder":
        return self._assign("date", when)

    def message_id(self, message_id: str) -> "MessageBuilder":
        return self._assign("message_id", _angle(single_line(message_id, "message_id")))

    def attach(self, attachment: Attachment) -> "MessageBuilder":
        if self._consumed:
            raise InvalidInput("builder", "message was already built")
        single_line(attachment.filename, "attachment")
        self._attachments.append(attachment)
        return self

    def header(self, name: str, value: str) -> "MessageBuilder":
        """Add a free-form header, emitted after References"""
        if name.lower() in MANAGED_HEADERS:
            raise InvalidInput("header", f"{name} is set through its own builder method")
        if not name or not all(33 <= ord(c) <= 126 and c != ":" for c in name):
            raise InvalidInput("header", f"invalid header name: {name!r}")
        single_line(value, "header")
        self._extra_headers.append((name, value))
        return self

    @staticmethod
    def _addresses(values: Iterable[str | MailAddress], field: str) -> list[MailAddress]:
        result = []
        for value in values:
            if isinstance(value, MailAddress):
                result.append(value)
            else:
                result.extend(MailAddress.parse_list(value, field))
        for address in result:
            single_line(address.name + address.address, field)
        return result

    def get(self, field: str, default=None):
        return self._fields.get(field, default)

    @property
    def attachments(self) -> list[Attachment]:
        return list(self._attachments)

    def validate(self) -> None:
        """Raise ``InvalidInput`` naming the first offending field"""
        if self._consumed:
            raise InvalidInput("builder", "message was already built")
        if "from" not in self._fields:
            raise InvalidInput("from", "sender is required")
        if not any(self._fields.get(f) for f in ("to", "cc", "bcc")):
            raise InvalidInput("to", "at least one recipient is required")
        if self._fields.get("markdown"):
            if "plain" not in self._fields:
                raise InvalidInput("plain", "markdown mode needs a plain body")
            if "html" in self._fields:
                raise InvalidInput("html", "an HTML body cannot be combined with markdown mode")
        if "plain" not in self._fields and "html" not in self._fields and not self._attachments:
            raise InvalidInput("body", "a plain body, an HTML body or an attachment is required")

    def _body_entity(self, plain: str | None, html: str | None) -> Message | None:
        if plain is not None and html is not None:
            return _multipart("alternative", [_text_part(plain, "plain"), _text_part(html, "html")])
        if plain is not None:
            return _text_part(plain, "plain")
        if html is not None:
            return _text_part(html, "html")
        return None

    def build(self) -> OutgoingMessage:
        self.validate()
        self._consumed = True

        sender: MailAddress = self._fields["from"]
        to: list[MailAddress] = self._fields.get("to", [])
        cc: list[MailAddress] = self._fields.get("cc", [])
        bcc: list[MailAddress] = self._fields.get("bcc", [])

        plain = self._fields.get("plain")
        html = self._fields.get("html")
        if self._fields.get("markdown"):
            html = markdown_to_html(plain)

        body = self._body_entity(plain, html)
        if self._attachments:
            parts = [body] if body is not None else []
            parts.extend(_attachment_part(a) for a in self._attachments)
            root = _multipart("mixed", parts)
        else:
            root = body

        # Pull the content headers off so the addressing headers come first
        content_headers = [(k, v) for k, v in root.items() if k.lower().startswith("content-")]
        for name in {k for k, _ in content_headers}:
            del root[name]

        message_id = self._fields.get("message_id") or f"<{uuid.uuid4()}@{sender.domain or 'localhost'}>"
        when = self._fields.get("date") or datetime.now().astimezone()

        root["From"] = str(sender)
        if to:
            root["To"] = ", ".join(str(a) for a in to)
        if cc:
            root["Cc"] = ", ".join(str(a) for a in cc)
        if "subject" in self._fields:
            root["Subject"] = encode_header_value(self._fields["subject"], "Subject")
        root["Date"] = format_datetime(when)
        root["Message-ID"] = message_id
        if "in_reply_to" in self._fields:
            root["In-Reply-To"] = self._fields["in_reply_to"]
        if self._fields.get("references"):
            root["References"] = _format_references(self._fields["references"])
        for name, value in self._extra_headers:
            root[name] = encode_header_value(value, name)
        root["MIME-Version"] = "1.0"
        for name, value in content_headers:
            root[name] = value

        raw = root.as_bytes(policy=SMTP_POLICY)
        recipients = tuple(a.address for a in unique_addresses([*to, *cc, *bcc]))
        logger.info(f"Built message {message_id} for {len(recipients)} recipient(s)")
        return OutgoingMessage(
            raw=raw,
            message_id=message_id.strip("<>"),
            sender=sender,
            envelope_recipients=recipients,
        )
