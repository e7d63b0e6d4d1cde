import json
from email.parser import BytesParser
from email.policy import compat32
from typing import Any

from pydantic import TypeAdapter, ValidationError

from notmuch_mail.config import IndexSettings
from notmuch_mail.exceptions import CommandFailed, InvalidInput, ParseError
from notmuch_mail.index import IndexClient, TagOperation, validate_tag
from notmuch_mail.index.models import SearchItem
from notmuch_mail.index.thread import Thread
from notmuch_mail.log import logger
from notmuch_mail.process import CommandRunner, build_transport

_search_items = TypeAdapter(list[SearchItem])
_tag_list = TypeAdapter(list[str])


def _decode_json(output: bytes) -> Any:
    text = output.decode("utf-8", errors="replace")
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Malformed JSON from notmuch at position {e.pos}: {e.msg}")
        raise ParseError(e.msg, position=e.pos, context=text[max(e.pos - 40, 0) : e.pos + 40]) from e


def _message_term(msg_id: str) -> str:
    if msg_id.startswith("id:"):
        return msg_id
    return f'id:"{msg_id}"' if any(c.isspace() or c in '"()' for c in msg_id) else f"id:{msg_id}"


class NotmuchClient(IndexClient):
    """Index client driving the ``notmuch`` command line tool.

    Whether notmuch runs locally or on another host is decided entirely by
    the runner's transport; every method builds the same argument vector.
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @classmethod
    def from_settings(cls, settings: IndexSettings) -> "NotmuchClient":
        env = {}
        if settings.database_path is not None:
            env["NOTMUCH_DATABASE"] = str(settings.database_path)
        if settings.config_path is not None:
            env["NOTMUCH_CONFIG"] = str(settings.config_path)
        elif settings.database_path is not None and not settings.is_remote:
            # notmuch looks for <database>/.notmuch/config, fall back to <database>/config
            candidate = settings.database_path / "config"
            if candidate.is_file():
                env["NOTMUCH_CONFIG"] = str(candidate)
        transport = build_transport(
            settings.program,
            host=settings.host,
            user=settings.user,
            port=settings.port,
            identity_file=settings.identity_file,
            ssh_options=settings.ssh_options,
            env=env,
        )
        logger.info(f"Using notmuch via {transport!r}")
        return cls(CommandRunner(transport, max_output=settings.max_output_bytes))

    async def _json(self, args: list[str]) -> Any:
        return _decode_json(await self.runner.run(args))

    @staticmethod
    def _validate(adapter: TypeAdapter, data: Any):
        try:
            return adapter.validate_python(data if data is not None else [])
        except ValidationError as e:
            logger.error(f"Unexpected notmuch output schema: {e!s}")
            raise ParseError("unexpected schema", context=str(e)[:200]) from e

    async def search(self, query: str) -> list[SearchItem]:
        data = await self._json(["search", "--format=json", "--output=summary", query])
        return self._validate(_search_items, data)

    async def search_paginated(self, query: str, offset: int, limit: int) -> tuple[list[SearchItem], int | None]:
        if offset < 0 or limit < 0:
            raise InvalidInput("offset" if offset < 0 else "limit", "must not be negative")
        data = await self._json(
            ["search", "--format=json", "--output=summary", f"--offset={offset}", f"--limit={limit}", query]
        )
        items = self._validate(_search_items, data)
        return items, await self.count(query)

    async def count(self, query: str) -> int | None:
        """Number of threads matching ``query``; None if notmuch can't tell"""
        try:
            output = await self.runner.run(["count", "--output=threads", query])
        except CommandFailed as e:
            logger.warning(f"Count failed for {query!r}: {e!s}")
            return None
        try:
            return int(output.decode().strip())
        except ValueError:
            logger.warning(f"Unexpected count output: {output[:80]!r}")
            return None

    async def show(self, query: str) -> Thread:
        data = await self._json(["show", "--format=json", "--entire-thread=true", "--include-html", query])
        thread_id = query[len("thread:") :] if query.startswith("thread:") else None
        return Thread.from_json(data if data is not None else [], thread_id)

    async def tag(self, query: str, ops: list[TagOperation]) -> None:
        if not ops:
            return
        await self.runner.run(["tag", *(str(op) for op in ops), "--", query])

    async def refresh(self) -> None:
        await self.runner.run(["new"])

    async def insert(self, message: bytes, folder: str | None = None, tags: list[str] | None = None) -> str:
        args = ["insert"]
        if folder:
            args.append(f"--folder={folder}")
        args.extend(f"+{validate_tag(tag)}" for tag in tags or [])
        headers = BytesParser(policy=compat32).parsebytes(message, headersonly=True)
        message_id = (headers.get("Message-ID") or "").strip()
        if not message_id:
            raise InvalidInput("message", "missing Message-ID header")
        await self.runner.run(args, stdin=message)
        return message_id.strip("<>")

    async def config_get(self, key: str) -> str:
        output = await self.runner.run(["config", "get", key])
        return output.decode("utf-8", errors="replace").rstrip("\n")

    async def config_set(self, key: str, value: str) -> None:
        await self.runner.run(["config", "set", key, value])

    async def list_tags(self) -> list[str]:
        data = await self._json(["search", "--output=tags", "--format=json", "*"])
        return self._validate(_tag_list, data)

    async def part(self, msg_id: str, part_id: int) -> bytes:
        return await self.runner.run(["show", "--format=raw", f"--part={part_id}", _message_term(msg_id)])


def create_client(settings: IndexSettings | None = None) -> NotmuchClient:
    if settings is None:
        from notmuch_mail.config import get_settings

        settings = get_settings().index
    return NotmuchClient.from_settings(settings)
