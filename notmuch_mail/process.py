"""
Command invocation core shared by the index client, the submission helper
and the external HTML converter.

A ``Transport`` turns helper arguments into a concrete argv (locally or
wrapped in ssh). A ``CommandRunner`` owns the child process for the duration
of one call: it streams stdin, collects stdout up to a cap, and kills the
child if the awaiting task is cancelled or the cap is exceeded.
"""

import abc
import asyncio
import os
import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path

from notmuch_mail.config import DEFAULT_MAX_OUTPUT_BYTES
from notmuch_mail.exceptions import CommandFailed, NotmuchMailError, OversizedResponse, TransportError
from notmuch_mail.log import logger

READ_CHUNK_SIZE = 64 * 1024
MAX_STDERR_BYTES = 1024 * 1024

# ssh exits with 255 when the connection itself fails
SSH_FAILURE_STATUS = 255

DEFAULT_SSH_OPTIONS = (
    "BatchMode=yes",
    "ConnectTimeout=30",
    "ServerAliveInterval=60",
    "ServerAliveCountMax=3",
)


class Transport(abc.ABC):
    @abc.abstractmethod
    def build_argv(self, args: Sequence[str]) -> list[str]:
        """Full argv to spawn for the helper invoked with ``args``"""

    def environment(self) -> dict[str, str] | None:
        """Environment for the spawned process, None to inherit"""
        return None

    def failure(self, argv: Sequence[str], returncode: int, stderr: str) -> NotmuchMailError:
        return CommandFailed(stderr, argv, returncode)


class LocalTransport(Transport):
    def __init__(self, program: str, env: Mapping[str, str] | None = None):
        self.program = program
        self.env = dict(env or {})

    def build_argv(self, args: Sequence[str]) -> list[str]:
        return [self.program, *args]

    def environment(self) -> dict[str, str] | None:
        if not self.env:
            return None
        return {**os.environ, **self.env}

    def __repr__(self) -> str:
        return f"LocalTransport({self.program!r})"


class SshTransport(Transport):
    """Runs the helper on a remote host through the OpenSSH client.

    The remote command line is shell-quoted because ssh hands it to the
    remote user's shell. No pseudo-TTY is requested and BatchMode keeps ssh
    from prompting for passwords or unknown host keys.
    """

    def __init__(
        self,
        host: str,
        program: str,
        user: str | None = None,
        port: int | None = None,
        identity_file: str | Path | None = None,
        options: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        ssh_program: str = "ssh",
    ):
        if not host:
            raise ValueError("SSH transport requires a host")
        self.host = host
        self.program = program
        self.user = user
        self.port = port
        self.identity_file = identity_file
        self.options = list(options)
        self.env = dict(env or {})
        self.ssh_program = ssh_program

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def remote_command(self, args: Sequence[str]) -> str:
        command = [self.program, *args]
        if self.env:
            command = ["env", *(f"{key}={value}" for key, value in self.env.items()), *command]
        return shlex.join(command)

    def build_argv(self, args: Sequence[str]) -> list[str]:
        argv = [self.ssh_program, "-T"]
        for option in (*DEFAULT_SSH_OPTIONS, *self.options):
            argv.extend(["-o", option])
        if self.port is not None:
            argv.extend(["-p", str(self.port)])
        if self.identity_file is not None:
            argv.extend(["-i", str(self.identity_file)])
        argv.append(self.destination)
        argv.append(self.remote_command(args))
        return argv

    def failure(self, argv: Sequence[str], returncode: int, stderr: str) -> NotmuchMailError:
        if returncode == SSH_FAILURE_STATUS:
            return TransportError(f"ssh to {self.destination} failed: {stderr.strip()}")
        return CommandFailed(stderr, argv, returncode)

    def __repr__(self) -> str:
        return f"SshTransport({self.destination!r}, {self.program!r})"


def build_transport(
    program: str,
    host: str | None = None,
    user: str | None = None,
    port: int | None = None,
    identity_file: str | Path | None = None,
    ssh_options: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
) -> Transport:
    if host:
        return SshTransport(
            host,
            program,
            user=user,
            port=port,
            identity_file=identity_file,
            options=ssh_options,
            env=env,
        )
    return LocalTransport(program, env=env)


class CommandRunner:
    def __init__(self, transport: Transport, max_output: int = DEFAULT_MAX_OUTPUT_BYTES):
        self.transport = transport
        self.max_output = max_output

    async def run(self, args: Sequence[str], stdin: bytes | None = None) -> bytes:
        """Run the helper and return its stdout.

        Raises CommandFailed on a non-zero exit, TransportError when the
        process cannot be spawned or its stdin pipe breaks, and
        OversizedResponse when stdout grows past ``max_output``. On any
        error or cancellation the child is killed and reaped before the
        exception propagates.
        """
        argv = self.transport.build_argv(args)
        logger.debug(f"Running {shlex.join(argv)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.transport.environment(),
            )
        except OSError as e:
            logger.error(f"Failed to spawn {argv[0]}: {e!s}")
            raise TransportError(e) from e

        tasks = [
            asyncio.ensure_future(self._read_stdout(proc.stdout)),
            asyncio.ensure_future(self._read_stderr(proc.stderr)),
            asyncio.ensure_future(self._feed(proc, stdin)),
        ]
        try:
            stdout, stderr_bytes, pipe_error = await asyncio.gather(*tasks)
            returncode = await proc.wait()
        except BaseException:
            for task in tasks:
                task.cancel()
            await _terminate(proc)
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if returncode != 0:
            error = self.transport.failure(argv, returncode, stderr)
            logger.error(f"{argv[0]} exited with status {returncode}: {stderr.strip()}")
            raise error
        if pipe_error is not None:
            raise TransportError(pipe_error)
        return stdout

    async def _read_stdout(self, stream: asyncio.StreamReader) -> bytes:
        buffer = bytearray()
        while chunk := await stream.read(READ_CHUNK_SIZE):
            buffer.extend(chunk)
            if len(buffer) > self.max_output:
                logger.error(f"Response exceeded {self.max_output} bytes, aborting")
                raise OversizedResponse(self.max_output)
        return bytes(buffer)

    @staticmethod
    async def _read_stderr(stream: asyncio.StreamReader) -> bytes:
        buffer = bytearray()
        while chunk := await stream.read(READ_CHUNK_SIZE):
            if len(buffer) < MAX_STDERR_BYTES:
                buffer.extend(chunk[: MAX_STDERR_BYTES - len(buffer)])
        return bytes(buffer)

    @staticmethod
    async def _feed(proc: asyncio.subprocess.Process, data: bytes | None) -> OSError | None:
        if data is None:
            return None
        try:
            proc.stdin.write(data)
            await proc.stdin.drain()
            proc.stdin.close()
            await proc.stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"stdin pipe closed early: {e!s}")
            proc.stdin.close()
            return e
        return None

    def __repr__(self) -> str:
        return f"CommandRunner({self.transport!r})"


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
