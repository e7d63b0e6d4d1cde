import asyncio
import os
import sys
from unittest.mock import patch

import pytest

from notmuch_mail.exceptions import CommandFailed, OversizedResponse, TransportError
from notmuch_mail.process import CommandRunner, LocalTransport, SshTransport, build_transport


class TestLocalTransport:
    def test_build_argv(self):
        transport = LocalTransport("notmuch")
        assert transport.build_argv(["search", "tag:inbox"]) == ["notmuch", "search", "tag:inbox"]

    def test_environment_inherits_when_empty(self):
        assert LocalTransport("notmuch").environment() is None

    def test_environment_overlays_process_env(self):
        transport = LocalTransport("notmuch", env={"NOTMUCH_DATABASE": "/srv/mail"})
        env = transport.environment()
        assert env["NOTMUCH_DATABASE"] == "/srv/mail"
        assert env["PATH"] == os.environ["PATH"]


class TestSshTransport:
    def test_build_argv_minimal(self):
        transport = SshTransport("mail.example.com", "notmuch")
        argv = transport.build_argv(["new"])
        assert argv[0] == "ssh"
        assert "-T" in argv
        assert "BatchMode=yes" in argv
        assert argv[-2] == "mail.example.com"
        assert argv[-1] == "notmuch new"

    def test_build_argv_with_user_port_identity(self):
        transport = SshTransport("mail.example.com", "/usr/bin/notmuch", user="alice", port=2222, identity_file="/k")
        argv = transport.build_argv(["count", "tag:inbox"])
        assert argv[argv.index("-p") + 1] == "2222"
        assert argv[argv.index("-i") + 1] == "/k"
        assert argv[-2] == "alice@mail.example.com"
        assert argv[-1] == "/usr/bin/notmuch count tag:inbox"

    def test_remote_command_is_shell_quoted(self):
        transport = SshTransport("h", "notmuch")
        argv = transport.build_argv(["search", "--format=json", "subject:hello world", "*"])
        assert argv[-1] == "notmuch search --format=json 'subject:hello world' '*'"

    def test_extra_options_and_env(self):
        transport = SshTransport("h", "notmuch", options=["ControlMaster=auto"], env={"NOTMUCH_DATABASE": "/m"})
        argv = transport.build_argv(["new"])
        assert "ControlMaster=auto" in argv
        assert argv[-1] == "env NOTMUCH_DATABASE=/m notmuch new"

    def test_ssh_failure_status_is_transport_error(self):
        transport = SshTransport("h", "notmuch")
        error = transport.failure(["ssh"], 255, "Connection refused")
        assert isinstance(error, TransportError)
        assert "Connection refused" in str(error)

    def test_remote_failure_is_command_failed(self):
        transport = SshTransport("h", "notmuch")
        error = transport.failure(["ssh"], 1, "Error: no such tag")
        assert isinstance(error, CommandFailed)
        assert error.stderr == "Error: no such tag"

    def test_requires_host(self):
        with pytest.raises(ValueError):
            SshTransport("", "notmuch")


class TestBuildTransport:
    def test_local_without_host(self):
        assert isinstance(build_transport("notmuch"), LocalTransport)

    def test_remote_with_host(self):
        transport = build_transport("notmuch", host="example.com", user="bob")
        assert isinstance(transport, SshTransport)
        assert transport.destination == "bob@example.com"


class TestCommandRunner:
    @pytest.mark.asyncio
    async def test_returns_stdout(self, python_runner):
        output = await python_runner.run(["-c", "import sys; sys.stdout.write('hello')"])
        assert output == b"hello"

    @pytest.mark.asyncio
    async def test_streams_stdin(self, python_runner):
        code = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read()[::-1])"
        output = await python_runner.run(["-c", code], stdin=b"abc")
        assert output == b"cba"

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_command_failed(self, python_runner):
        code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        with pytest.raises(CommandFailed) as exc_info:
            await python_runner.run(["-c", code])
        assert exc_info.value.stderr == "boom"
        assert exc_info.value.returncode == 3

    @pytest.mark.asyncio
    async def test_oversized_response(self):
        runner = CommandRunner(LocalTransport(sys.executable), max_output=1024)
        with pytest.raises(OversizedResponse) as exc_info:
            await runner.run(["-c", "import sys; sys.stdout.write('x' * 100000)"])
        assert exc_info.value.limit == 1024

    @pytest.mark.asyncio
    async def test_output_at_limit_is_accepted(self):
        runner = CommandRunner(LocalTransport(sys.executable), max_output=1024)
        output = await runner.run(["-c", "import sys; sys.stdout.write('x' * 1024)"])
        assert len(output) == 1024

    @pytest.mark.asyncio
    async def test_spawn_failure_is_transport_error(self):
        runner = CommandRunner(LocalTransport("/nonexistent/notmuch-helper"))
        with pytest.raises(TransportError):
            await runner.run(["new"])

    @pytest.mark.asyncio
    async def test_broken_stdin_pipe_is_transport_error(self, python_runner):
        with pytest.raises(TransportError):
            await python_runner.run(["-c", "pass"], stdin=b"x" * (16 * 1024 * 1024))

    @pytest.mark.asyncio
    async def test_cancellation_kills_child(self, python_runner):
        spawned = []
        original = asyncio.create_subprocess_exec

        async def spawn(*args, **kwargs):
            proc = await original(*args, **kwargs)
            spawned.append(proc)
            return proc

        with patch("asyncio.create_subprocess_exec", side_effect=spawn):
            task = asyncio.ensure_future(python_runner.run(["-c", "import time; time.sleep(30)"]))
            for _ in range(100):
                if spawned:
                    break
                await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert len(spawned) == 1
        assert spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self, python_runner):
        results = await asyncio.gather(
            *(python_runner.run(["-c", f"import sys; sys.stdout.write('{i}')"]) for i in range(5))
        )
        assert results == [str(i).encode() for i in range(5)]
