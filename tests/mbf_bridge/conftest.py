"""Shared fixtures: an in-memory device standing in for adb."""

import asyncio
import hashlib
import shlex
from collections.abc import Callable
from pathlib import Path

import pytest

from mbf_bridge.agent.messages import LogMsg
from mbf_bridge.config import Config
from mbf_bridge.device import CommandResult

AGENT_BYTES = b"\x7fELF fake agent build"
AGENT_HASH = hashlib.sha1(AGENT_BYTES).hexdigest().upper()  # noqa: S324
AGENT_PATH = "/data/local/tmp/mbf-agent"


class FakeStdin:
    """Records what the session writes to the agent."""

    def __init__(self) -> None:
        self.data = b""
        self.writes = 0
        self.closed = False

    def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError
        self.data += data
        self.writes += 1

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class TrickleReader:
    """Stdout that hands out one byte per read, then reports EOF and ends the process."""

    def __init__(self, data: bytes, on_eof: Callable[[], None]) -> None:
        self._data = data
        self._on_eof = on_eof
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        await asyncio.sleep(0)
        self.reads += 1
        if not self._data:
            self._on_eof()
            return b""
        chunk, self._data = self._data[:1], self._data[1:]
        return chunk


class FakeProcess:
    """Agent process with scripted stdout, stderr and exit code."""

    def __init__(self, exit_code: int, stderr: bytes) -> None:
        self.stdin = FakeStdin()
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stderr.feed_data(stderr)
        self.stderr.feed_eof()
        self.killed = False
        self._exit_code = exit_code
        self._exited = asyncio.Event()

    def emit(self, data: bytes) -> None:
        if data:
            self.stdout.feed_data(data)

    def close_stdout(self) -> None:
        self.stdout.feed_eof()

    def exit(self) -> None:
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self._exit_code

    def kill(self) -> None:
        self.killed = True


class FakeDevice:
    """In-memory device: a dict filesystem plus one scripted agent run per spawn."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.executable: set[str] = set()
        self.calls: list[str] = []
        self.processes: list[FakeProcess] = []
        self.disconnected = asyncio.Event()
        # Script for the next spawned agent
        self.stdout = b""
        # Per-spawn stdout, consumed in order before falling back to stdout
        self.outputs: list[bytes] = []
        self.trickle = False
        self.stderr = b""
        self.exit_code = 0
        self.hang = False
        self.exit_before_output = False
        self.write_delay = 0.0

    def install_agent(self, data: bytes = AGENT_BYTES) -> None:
        self.files[AGENT_PATH] = data
        self.executable.add(AGENT_PATH)

    async def spawn(self, path: str) -> FakeProcess:
        self.calls.append(f"spawn {path}")
        proc = FakeProcess(self.exit_code, self.stderr)
        self.processes.append(proc)
        stdout = self.outputs.pop(0) if self.outputs else self.stdout
        if self.trickle:
            proc.stdout = TrickleReader(stdout, proc.exit)
        elif self.hang:
            proc.emit(stdout)
        elif self.exit_before_output:
            proc.exit()
            asyncio.get_running_loop().call_later(0.01, self._late_output, proc, stdout)
        else:
            self._late_output(proc, stdout)
            proc.exit()
        return proc

    @staticmethod
    def _late_output(proc: FakeProcess, stdout: bytes) -> None:
        proc.emit(stdout)
        proc.close_stdout()

    async def run(self, cmd: str) -> CommandResult:
        self.calls.append(f"run {cmd}")
        args = shlex.split(cmd)
        if args[0] == "sha1sum":
            data = self.files.get(args[1])
            if data is None:
                # cut masks sha1sum's failure, as on the device
                return CommandResult(stdout="", stderr="sha1sum: No such file or directory\n", exit_code=0)
            return CommandResult(stdout=hashlib.sha1(data).hexdigest() + "\n", stderr="", exit_code=0)  # noqa: S324
        return CommandResult(stdout="", stderr="", exit_code=0)

    async def write_file(self, path: str, data: bytes) -> None:
        self.calls.append(f"write {path}")
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        self.files[path] = data

    async def remove_file(self, path: str) -> None:
        self.calls.append(f"remove {path}")
        self.files.pop(path, None)
        self.executable.discard(path)

    async def chmod_executable(self, path: str) -> None:
        self.calls.append(f"chmod {path}")
        self.executable.add(path)

    async def make_dirs(self, path: str) -> None:
        self.calls.append(f"mkdir {path}")

    async def wait_disconnected(self) -> None:
        await self.disconnected.wait()


class RecordingSink:
    """Observer that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[LogMsg] = []

    def __call__(self, event: LogMsg) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.events]


@pytest.fixture
def device() -> FakeDevice:
    """Fake device with no agent installed."""
    return FakeDevice()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cfg(tmp_path: Path) -> Config:
    """Config expecting the fake agent build, with a short upload timeout."""
    return Config(data_dir=tmp_path, agent_hash=AGENT_HASH, agent_path=AGENT_PATH, upload_timeout=0.2)


@pytest.fixture
def agent_bytes() -> bytes:
    """Content of the agent build the config expects."""
    return AGENT_BYTES


@pytest.fixture
def downloads(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace the network download with one returning the expected agent; records requested URLs."""
    urls: list[str] = []

    async def fake_download(url: str, sink: object, **kwargs: object) -> bytes:
        urls.append(url)
        return AGENT_BYTES

    monkeypatch.setattr("mbf_bridge.agent.provision.download_agent", fake_download)
    return urls
