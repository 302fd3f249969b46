"""Transport collaborator: what the agent layer needs from a connected device."""

import asyncio
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a remote shell command."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0


class AgentProcess(Protocol):
    """A spawned remote process with piped stdio (shaped like ``asyncio.subprocess.Process``)."""

    stdin: asyncio.StreamWriter
    stdout: asyncio.StreamReader
    stderr: asyncio.StreamReader

    async def wait(self) -> int: ...

    def kill(self) -> None: ...


class Device(Protocol):
    """Operations the agent layer performs against a device.

    Filesystem helpers raise ``TransportError`` on failure; ``remove_file`` treats a
    missing file as success.
    """

    async def spawn(self, path: str) -> AgentProcess: ...

    async def run(self, cmd: str) -> CommandResult: ...

    async def write_file(self, path: str, data: bytes) -> None: ...

    async def remove_file(self, path: str) -> None: ...

    async def chmod_executable(self, path: str) -> None: ...

    async def make_dirs(self, path: str) -> None: ...

    async def wait_disconnected(self) -> None:
        """Return once the device session has gone away."""
        ...
