"""
Error taxonomy shared by the index client, the message builder, the
submission helper and the text converters.
"""

import asyncio
from collections.abc import Sequence

# Cancellation is never translated; callers observe the scheduler's own error.
Cancelled = asyncio.CancelledError


class NotmuchMailError(Exception):
    """Base class for every error raised by this package"""


class CommandFailed(NotmuchMailError):
    """The helper ran and exited with a non-zero status"""

    def __init__(self, stderr: str, argv: Sequence[str] = (), returncode: int | None = None):
        self.stderr = stderr
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(stderr.strip() or f"command exited with status {returncode}")


class TransportError(NotmuchMailError):
    """Spawning the helper failed, SSH refused the connection or a pipe broke"""

    def __init__(self, cause: str | BaseException):
        self.cause = cause
        super().__init__(str(cause))


class ParseError(NotmuchMailError):
    """The helper produced malformed JSON or an unexpected schema"""

    def __init__(self, message: str, position: int | None = None, context: str = ""):
        self.position = position
        self.context = context
        if position is not None:
            message = f"{message} at position {position}"
        if context:
            message = f"{message}: {context!r}"
        super().__init__(message)


class OversizedResponse(NotmuchMailError):
    """The helper's stdout exceeded the per-call buffer cap"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"response exceeded {limit} bytes")


class InvalidInput(NotmuchMailError):
    """A caller-supplied field was rejected"""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class SendFailed(CommandFailed):
    """The submission helper refused the message"""


class ConfigurationError(NotmuchMailError):
    """Settings are missing or inconsistent"""


class ConverterUnavailable(ConfigurationError):
    """An external HTML converter could not be started"""
