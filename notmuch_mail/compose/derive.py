"""
Reply and forward drafts derived from a message shown by the index.

A ``Draft`` carries the derived headers and the pre-seeded body so a front
end can let the user edit the text before turning it into a
``MessageBuilder``.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from notmuch_mail.compose.builder import MessageBuilder
from notmuch_mail.compose.models import MailAddress, unique_addresses
from notmuch_mail.index.models import Message
from notmuch_mail.render.builtin import BuiltinConverter

REPLY_PREFIX = re.compile(r"^\s*re\s*:", re.IGNORECASE)
FORWARD_PREFIX = re.compile(r"^\s*fwd?\s*:", re.IGNORECASE)
FORWARD_BANNER = "---------- Forwarded message ---------"
NO_SUBJECT = "(No subject)"


@dataclass
class Draft:
    from_address: MailAddress
    subject: str
    body: str
    to: list[MailAddress] = field(default_factory=list)
    cc: list[MailAddress] = field(default_factory=list)
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)

    def to_builder(self, body: str | None = None) -> MessageBuilder:
        """Builder seeded with the draft; ``body`` replaces the pre-seeded text"""
        builder = MessageBuilder().from_address(self.from_address).subject(self.subject)
        builder.plain(self.body if body is None else body)
        if self.to:
            builder.to(*self.to)
        if self.cc:
            builder.cc(*self.cc)
        if self.in_reply_to:
            builder.in_reply_to(self.in_reply_to)
        if self.references:
            builder.references(*self.references)
        return builder


def reply_subject(subject: str | None) -> str:
    subject = (subject or "").strip() or NO_SUBJECT
    return subject if REPLY_PREFIX.match(subject) else f"Re: {subject}"


def forward_subject(subject: str | None) -> str:
    subject = (subject or "").strip() or NO_SUBJECT
    return subject if FORWARD_PREFIX.match(subject) else f"Fwd: {subject}"


def original_message_id(original: Message) -> str:
    header = original.headers.get("Message-ID")
    if header and header.strip():
        return header.strip()
    return f"<{original.id}>"


def original_text(original: Message, width: int = 80) -> str:
    """Plain body of the original, rendering the HTML body when there is no plain part"""
    text = original.plain_text()
    if text is not None:
        return text
    html = original.html_text()
    if html is not None:
        return BuiltinConverter(width=width).render(html)
    return ""


def quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.rstrip("\n").split("\n"))


def derive_reply(
    original: Message,
    own_address: str | MailAddress,
    reply_all: bool = False,
    other_addresses: Iterable[str | MailAddress] = (),
) -> Draft:
    """Reply draft for ``original``.

    The recipient is Reply-To, or From when Reply-To is absent. For a
    reply-all the original To and Cc become Cc, minus the user's own
    addresses (``own_address`` plus ``other_addresses``) and anyone
    already in To.
    """
    own = MailAddress.coerce(own_address, "from")
    own_set = [own, *(MailAddress.coerce(a) for a in other_addresses)]
    headers = original.headers

    sender = MailAddress.parse_list(headers.from_, "from")
    target = MailAddress.parse_list(headers.reply_to, "reply_to") or sender
    original_to = MailAddress.parse_list(headers.to, "to")
    original_cc = MailAddress.parse_list(headers.cc, "cc")

    to = unique_addresses(target, exclude=own_set)
    if not to:
        # replying to our own message goes back to its recipients
        to = unique_addresses(original_to, exclude=own_set) or list(target)

    cc: list[MailAddress] = []
    if reply_all:
        cc = unique_addresses([*original_to, *original_cc], exclude=[*own_set, *to])

    message_id = original_message_id(original)
    references = (headers.get("References") or "").split()
    references.append(message_id)

    author = sender[0].display if sender else "unknown"
    attribution = f"On {headers.date or original.date_relative}, {author} wrote:"
    body = f"\n{attribution}\n{quote(original_text(original))}\n"

    return Draft(
        from_address=own,
        subject=reply_subject(headers.subject),
        body=body,
        to=to,
        cc=cc,
        in_reply_to=message_id,
        references=references,
    )


def derive_forward(
    original: Message,
    own_address: str | MailAddress,
    to: Iterable[str | MailAddress] = (),
) -> Draft:
    headers = original.headers
    lines = [
        FORWARD_BANNER,
        f"From: {headers.from_ or ''}",
        f"Date: {headers.date or ''}",
        f"Subject: {headers.subject or ''}",
        f"To: {headers.to or ''}",
        "",
        original_text(original),
    ]
    return Draft(
        from_address=MailAddress.coerce(own_address, "from"),
        subject=forward_subject(headers.subject),
        body="\n".join(lines),
        to=[MailAddress.coerce(a, "to") for a in to],
    )


def reply_builder(
    original: Message,
    own_address: str | MailAddress,
    reply_all: bool = False,
    body: str | None = None,
) -> MessageBuilder:
    return derive_reply(original, own_address, reply_all).to_builder(body)


def forward_builder(
    original: Message,
    own_address: str | MailAddress,
    to: Iterable[str | MailAddress] = (),
    body: str | None = None,
) -> MessageBuilder:
    return derive_forward(original, own_address, to).to_builder(body)
