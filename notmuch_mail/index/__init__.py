import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notmuch_mail.exceptions import InvalidInput

if TYPE_CHECKING:
    from notmuch_mail.index.models import SearchItem
    from notmuch_mail.index.thread import Thread


@dataclass(frozen=True)
class TagOperation:
    """A single ``+tag`` or ``-tag`` token"""

    tag: str
    adding: bool = True

    def __post_init__(self):
        validate_tag(self.tag)

    @classmethod
    def add(cls, tag: str) -> "TagOperation":
        return cls(tag)

    @classmethod
    def remove(cls, tag: str) -> "TagOperation":
        return cls(tag, adding=False)

    @classmethod
    def parse(cls, token: str) -> "TagOperation":
        """Parse a ``+tag`` / ``-tag`` token as typed by a user"""
        if len(token) < 2 or token[0] not in "+-":
            raise InvalidInput("tag", f"expected +tag or -tag, got {token!r}")
        return cls(token[1:], adding=token[0] == "+")

    def __str__(self) -> str:
        return f"{'+' if self.adding else '-'}{self.tag}"


def validate_tag(tag: str) -> str:
    if not tag:
        raise InvalidInput("tag", "tag must not be empty")
    if any(c.isspace() for c in tag):
        raise InvalidInput("tag", f"tag must not contain whitespace: {tag!r}")
    if tag[0] in "+-":
        raise InvalidInput("tag", f"tag must not start with '+' or '-': {tag!r}")
    return tag


class IndexClient(abc.ABC):
    @abc.abstractmethod
    async def search(self, query: str) -> list["SearchItem"]:
        """
        Full result set for the query, in the index's natural order (newest first)
        """

    @abc.abstractmethod
    async def search_paginated(self, query: str, offset: int, limit: int) -> tuple[list["SearchItem"], int | None]:
        """
        A slice of the result set plus a best-effort total, None when unknown
        """

    @abc.abstractmethod
    async def show(self, query: str) -> "Thread":
        """
        The first thread matching the query, as a tree of messages
        """

    @abc.abstractmethod
    async def tag(self, query: str, ops: list[TagOperation]) -> None:
        """
        Apply tag additions and removals to every message matching the query
        """

    @abc.abstractmethod
    async def refresh(self) -> None:
        """
        Ask the index to scan its maildir for new mail
        """

    @abc.abstractmethod
    async def insert(self, message: bytes, folder: str | None = None, tags: list[str] | None = None) -> str:
        """
        Import an RFC 5322 message into the maildir and return its message id
        """

    @abc.abstractmethod
    async def config_get(self, key: str) -> str:
        """
        Read an index configuration value
        """

    @abc.abstractmethod
    async def config_set(self, key: str, value: str) -> None:
        """
        Write an index configuration value
        """

    @abc.abstractmethod
    async def list_tags(self) -> list[str]:
        """
        All tags known to the index
        """

    @abc.abstractmethod
    async def part(self, msg_id: str, part_id: int) -> bytes:
        """
        Raw octets of a single MIME part
        """
