"""
Threads as returned by ``notmuch show --format=json``.

The wire format is a forest of ``[message, [replies...]]`` pairs. It is
decoded once, in pre-order, into a flat list of messages with a parent
index per message; flat and tree views are both served from that arena.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from notmuch_mail.exceptions import ParseError
from notmuch_mail.index.models import Message


@dataclass
class ThreadNode:
    message: Message
    index: int
    children: list["ThreadNode"] = field(default_factory=list)


class Thread:
    def __init__(self, messages: list[Message], parents: list[int | None], thread_id: str | None = None):
        if len(messages) != len(parents):
            raise ValueError("messages and parents must have the same length")
        self.thread_id = thread_id
        self.messages = messages
        self.parents = parents
        self._children: list[list[int]] = [[] for _ in messages]
        self._roots: list[int] = []
        for index, parent in enumerate(parents):
            if parent is None:
                self._roots.append(index)
            else:
                self._children[parent].append(index)

    @classmethod
    def from_json(cls, data: Any, thread_id: str | None = None) -> "Thread":
        """Build from the top-level ``show`` output, keeping only the first thread"""
        if not isinstance(data, list):
            raise ParseError("expected a list of threads", context=type(data).__name__)
        if not data:
            return cls([], [], thread_id)
        return cls.from_nodes(data[0], thread_id)

    @classmethod
    def from_nodes(cls, nodes: Any, thread_id: str | None = None) -> "Thread":
        if not isinstance(nodes, list):
            raise ParseError("expected a list of thread nodes", context=type(nodes).__name__)
        messages: list[Message] = []
        parents: list[int | None] = []
        stack: list[tuple[Any, int | None]] = [(node, None) for node in reversed(nodes)]
        while stack:
            node, parent = stack.pop()
            if not isinstance(node, list) or len(node) != 2:
                raise ParseError("malformed thread node", context=str(node)[:80])
            raw_message, replies = node
            # Non-matching messages are null unless --entire-thread is given;
            # their replies hang off the nearest present ancestor.
            index = parent
            if raw_message is not None:
                try:
                    messages.append(Message.model_validate(raw_message))
                except ValidationError as e:
                    raise ParseError("unexpected message schema", context=str(e)[:200]) from e
                parents.append(parent)
                index = len(messages) - 1
            for reply in reversed(replies or []):
                stack.append((reply, index))
        return cls(messages, parents, thread_id)

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __getitem__(self, index: int) -> Message:
        return self.messages[index]

    def roots(self) -> list[int]:
        return list(self._roots)

    def children(self, index: int) -> list[int]:
        return list(self._children[index])

    def parent(self, index: int) -> int | None:
        return self.parents[index]

    def depth(self, index: int) -> int:
        depth = 0
        parent = self.parents[index]
        while parent is not None:
            depth += 1
            parent = self.parents[parent]
        return depth

    def tree(self) -> list[ThreadNode]:
        """Nested view; parents always precede their children in the arena"""
        nodes = [ThreadNode(message, index) for index, message in enumerate(self.messages)]
        for index, parent in enumerate(self.parents):
            if parent is not None:
                nodes[parent].children.append(nodes[index])
        return [nodes[index] for index in self._roots]

    def find(self, message_id: str) -> Message | None:
        return next((message for message in self.messages if message.id == message_id), None)

    @property
    def subject(self) -> str | None:
        return self.messages[0].headers.subject if self.messages else None

    def __repr__(self) -> str:
        return f"Thread({self.thread_id!r}, {len(self.messages)} messages)"
