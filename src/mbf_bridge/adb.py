"""Device transport backed by the ``adb`` command-line tool."""

import asyncio
import contextlib
import logging
import shlex

from mbf_bridge.agent.errors import TransportError
from mbf_bridge.device import AgentProcess, CommandResult

logger = logging.getLogger(__name__)


class AdbDevice:
    """A device reached through ``adb``, optionally pinned to one serial."""

    def __init__(self, adb_path: str = "adb", serial: str | None = None) -> None:
        """Initialize the transport.

        Args:
            adb_path: adb executable name or path.
            serial: Device serial passed as ``-s``; None lets adb pick the only attached device.

        """
        self._adb_path = adb_path
        self._serial = serial

    def _base_args(self) -> list[str]:
        args = [self._adb_path]
        if self._serial is not None:
            args.extend(["-s", self._serial])
        return args

    async def _exec(self, *args: str, stdin: int | None = asyncio.subprocess.DEVNULL) -> asyncio.subprocess.Process:
        """Launch adb with the given arguments and piped stdout/stderr.

        Raises:
            TransportError: adb could not be launched (code: ``device_unreachable``).

        """
        logger.debug("adb %s", " ".join(args))
        try:
            return await asyncio.create_subprocess_exec(
                *self._base_args(),
                *args,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError("device_unreachable", f"Could not run {self._adb_path}: {e}") from e

    async def _communicate(self, *args: str, data: bytes | None = None) -> CommandResult:
        """Run adb to completion, killing it if the caller is cancelled."""
        proc = await self._exec(*args, stdin=asyncio.subprocess.PIPE if data is not None else asyncio.subprocess.DEVNULL)
        try:
            stdout, stderr = await proc.communicate(data)
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise
        return CommandResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
        )

    async def _checked(self, action: str, *args: str, data: bytes | None = None) -> None:
        result = await self._communicate(*args, data=data)
        if not result.ok:
            raise TransportError("remote_io", f"Failed to {action} (exit {result.exit_code}): {result.stderr.strip()}")

    async def spawn(self, path: str) -> AgentProcess:
        """Start a remote executable with stdin, stdout and stderr piped back to us."""
        # -T: no PTY, so stdout stays binary-clean and the exit code is forwarded
        return await self._exec("shell", "-T", shlex.quote(path), stdin=asyncio.subprocess.PIPE)

    async def run(self, cmd: str) -> CommandResult:
        """Run a remote shell command and capture its output."""
        return await self._communicate("shell", "-T", cmd)

    async def write_file(self, path: str, data: bytes) -> None:
        """Stream bytes into a remote file, replacing it."""
        await self._checked(f"write {path}", "exec-in", f"cat > {shlex.quote(path)}", data=data)

    async def remove_file(self, path: str) -> None:
        await self._checked(f"remove {path}", "shell", f"rm -f {shlex.quote(path)}")

    async def chmod_executable(self, path: str) -> None:
        await self._checked(f"mark {path} executable", "shell", f"chmod +x {shlex.quote(path)}")

    async def make_dirs(self, path: str) -> None:
        await self._checked(f"create {path}", "shell", f"mkdir -p {shlex.quote(path)}")

    async def wait_disconnected(self) -> None:
        """Block until adb reports the device gone."""
        proc = await self._exec("wait-for-disconnect")
        try:
            code = await proc.wait()
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
        if code != 0:
            # adb could not watch the device, so no disconnect signal will ever arrive
            logger.warning("adb wait-for-disconnect exited with %d, disconnects will not be detected", code)
            await asyncio.Event().wait()
        logger.info("Device disconnected")
