from collections.abc import Iterator
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from notmuch_mail.index import IndexClient


class WireModel(BaseModel):
    """Lenient base for notmuch JSON: unknown keys are dropped, aliases accepted"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _unquote_id(term: str) -> str:
    term = term.strip()
    if term.startswith("id:"):
        term = term[3:]
    if len(term) >= 2 and term[0] == term[-1] == '"':
        term = term[1:-1].replace('""', '"')
    return term


class SearchItem(WireModel):
    """Thread summary from ``notmuch search --output=summary``"""

    thread: str
    timestamp: int = 0
    date_relative: str = ""
    matched: int = 0
    total: int = 0
    authors: str = ""
    subject: str = ""
    query: list[str | None] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @field_validator("authors", "subject", "date_relative", mode="before")
    @classmethod
    def _null_to_empty(cls, value):
        return "" if value is None else value

    @property
    def thread_id(self) -> str:
        return self.thread

    @property
    def message_id(self) -> str | None:
        """First matched message of the thread"""
        if not self.query or not self.query[0]:
            return None
        return _unquote_id(self.query[0].split(" or ")[0])

    @property
    def is_match(self) -> bool:
        return self.matched > 0

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


# header name (lowercased) -> field
_KNOWN_HEADERS = {"date": "date", "from": "from_", "to": "to", "subject": "subject", "reply-to": "reply_to"}


class Headers(WireModel):
    """The headers notmuch reports for a message.

    ``additional`` keeps every other header with its original case; use
    ``get`` for case-insensitive lookup across both.
    """

    date: str | None = None
    from_: str | None = None
    to: str | None = None
    subject: str | None = None
    reply_to: str | None = None
    additional: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _split_known(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "additional" in data:
            return data
        known: dict[str, Any] = {}
        additional: dict[str, str] = {}
        for key, value in data.items():
            field = _KNOWN_HEADERS.get(key.lower()) or (key if key in cls.model_fields else None)
            if field is not None:
                known[field] = value
            elif value is not None:
                additional[key] = str(value)
        known["additional"] = additional
        return known

    def get(self, name: str, default: str | None = None) -> str | None:
        field = _KNOWN_HEADERS.get(name.lower())
        if field is not None:
            value = getattr(self, field)
            return default if value is None else value
        for key, value in self.additional.items():
            if key.lower() == name.lower():
                return value
        return default

    @property
    def cc(self) -> str | None:
        return self.get("Cc")


class BodyPart(WireModel):
    """A MIME part as reported by ``notmuch show --format=json``"""

    id: int
    content_type: str = Field(default="application/octet-stream", alias="content-type")
    content_disposition: str | None = Field(default=None, alias="content-disposition")
    content_id: str | None = Field(default=None, alias="content-id")
    filename: str | None = None
    content_transfer_encoding: str | None = Field(default=None, alias="content-transfer-encoding")
    content_length: int | None = Field(default=None, alias="content-length")
    content_charset: str | None = Field(default=None, alias="content-charset")
    content: "str | list[BodyPart] | None" = None

    @field_validator("content_type", mode="before")
    @classmethod
    def _lowercase_type(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("content", mode="before")
    @classmethod
    def _flatten_embedded(cls, value):
        # message/rfc822 parts carry [{"headers": ..., "body": [...]}]
        if isinstance(value, list):
            flat = []
            for item in value:
                if isinstance(item, dict) and "content-type" not in item and "body" in item:
                    flat.extend(item.get("body") or [])
                else:
                    flat.append(item)
            return flat
        return value

    @property
    def mime_type(self) -> str:
        return self.content_type.split(";", 1)[0].strip()

    @property
    def is_multipart(self) -> bool:
        return isinstance(self.content, list)

    @property
    def is_attachment(self) -> bool:
        disposition = (self.content_disposition or "").split(";", 1)[0].strip().lower()
        return disposition == "attachment" or bool(self.filename)

    def walk(self) -> Iterator["BodyPart"]:
        yield self
        if isinstance(self.content, list):
            for child in self.content:
                yield from child.walk()


class AttachmentRef(BaseModel):
    """Attachment view over a body part; the octets are fetched on demand"""

    message_id: str
    part_id: int
    filename: str
    content_type: str
    size: int | None = None

    async def fetch(self, client: "IndexClient") -> bytes:
        return await client.part(self.message_id, self.part_id)


class Message(WireModel):
    """A message from ``notmuch show --format=json``"""

    id: str
    match: bool = False
    excluded: bool = False
    filename: list[str] = Field(default_factory=list)
    timestamp: int = 0
    date_relative: str = ""
    tags: list[str] = Field(default_factory=list)
    duplicate: int | None = None
    body: list[BodyPart] = Field(default_factory=list)
    crypto: dict[str, Any] = Field(default_factory=dict)
    headers: Headers = Field(default_factory=Headers)

    @field_validator("filename", mode="before")
    @classmethod
    def _filename_list(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("body", "tags", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    def parts(self) -> Iterator[BodyPart]:
        for part in self.body:
            yield from part.walk()

    def leaves(self) -> Iterator[BodyPart]:
        return (part for part in self.parts() if not part.is_multipart)

    def _first_text(self, mime_type: str) -> str | None:
        for part in self.leaves():
            if part.mime_type == mime_type and not part.is_attachment and isinstance(part.content, str):
                return part.content
        return None

    def plain_text(self) -> str | None:
        return self._first_text("text/plain")

    def html_text(self) -> str | None:
        return self._first_text("text/html")

    def attachments(self) -> list[AttachmentRef]:
        return [
            AttachmentRef(
                message_id=self.id,
                part_id=part.id,
                filename=part.filename or f"part-{part.id}",
                content_type=part.mime_type,
                size=part.content_length,
            )
            for part in self.leaves()
            if part.is_attachment
        ]

    def has_attachments(self) -> bool:
        return any(part.is_attachment for part in self.leaves())

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
