from unittest.mock import AsyncMock, MagicMock

import pytest

from notmuch_mail.process import CommandRunner, LocalTransport


def _message_json(
    msg_id: str,
    subject: str = "Hello",
    sender: str = "Alice <a@x>",
    to: str = "b@y",
    text: str | None = "Hello there",
    html: str | None = None,
    tags: list[str] | None = None,
    extra_headers: dict[str, str] | None = None,
    attachments: list[dict] | None = None,
) -> dict:
    body_parts = []
    next_id = 2
    if text is not None:
        body_parts.append({"id": next_id, "content-type": "text/plain", "content": text})
        next_id += 1
    if html is not None:
        body_parts.append({"id": next_id, "content-type": "text/html", "content": html})
        next_id += 1
    for attachment in attachments or []:
        body_parts.append({"id": next_id, **attachment})
        next_id += 1
    return {
        "id": msg_id,
        "match": True,
        "excluded": False,
        "filename": [f"/home/user/mail/INBOX/cur/{msg_id}:2,S"],
        "timestamp": 1700000000,
        "date_relative": "2023-11-14",
        "tags": tags if tags is not None else ["inbox"],
        "duplicate": 1,
        "body": [{"id": 1, "content-type": "multipart/mixed", "content": body_parts}],
        "crypto": {},
        "headers": {
            "Subject": subject,
            "From": sender,
            "To": to,
            "Date": "Tue, 14 Nov 2023 22:13:20 +0000",
            **(extra_headers or {}),
        },
    }


@pytest.fixture
def message_json():
    """Factory for ``notmuch show --format=json`` message objects"""
    return _message_json


@pytest.fixture
def mock_runner():
    runner = MagicMock(spec=CommandRunner)
    runner.run = AsyncMock(return_value=b"")
    return runner


@pytest.fixture
def python_runner():
    """Runner whose helper binary is the current interpreter"""
    import sys

    return CommandRunner(LocalTransport(sys.executable))
