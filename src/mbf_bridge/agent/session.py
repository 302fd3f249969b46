"""Session driver: one request, a stream of log events, one result.

A session spawns a fresh agent process, writes a single request line to its
stdin, then reads stdout until the process exits or the device disconnects.
The exit code and the last terminal message decide the outcome:

    exit 0, result received          -> the result
    exit 0, error log was last       -> AgentError carrying the log message
    exit 0, nothing terminal         -> AgentError ("no response")
    exit != 0                        -> ProtocolError including stderr
    device gone before exit code     -> TransportError
"""

import asyncio
import codecs
import contextlib
import logging

from mbf_bridge.agent.errors import AgentError, ProtocolError, TransportError
from mbf_bridge.agent.messages import LogMsg, Request, Result
from mbf_bridge.agent.protocol import FrameDecoder, LogSink, Terminal, demultiplex, encode_request
from mbf_bridge.agent.provision import prepare_agent
from mbf_bridge.config import Config
from mbf_bridge.device import AgentProcess, Device

logger = logging.getLogger(__name__)

# Read buffer size
_BUFSIZE = 65536
# How long to keep draining stdout once the process has exited
_DRAIN_GRACE = 2.0


class _Stream:
    """Stdout of one agent process: bytes in, folded terminal value out."""

    def __init__(self, stdout: asyncio.StreamReader, sink: LogSink) -> None:
        self._stdout = stdout
        self._sink = sink
        # Incremental, so a multi-byte character split across reads decodes intact
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._frames = FrameDecoder()
        self.terminal: Terminal = None
        self.eof = False

    def consume(self, data: bytes) -> None:
        """Run one read result through the frame decoder and demultiplexer; empty bytes mean EOF."""
        if data:
            text = self._text.decode(data)
        else:
            self.eof = True
            text = self._text.decode(b"", final=True)
        for message in self._frames.feed(text):
            self.terminal = demultiplex(self.terminal, message, self._sink)

    def read(self) -> "asyncio.Task[bytes]":
        return asyncio.ensure_future(self._stdout.read(_BUFSIZE))

    async def drain(self, pending: "asyncio.Task[bytes] | None") -> None:
        """Consume whatever stdout still holds after the process exited, including a read in flight."""
        with contextlib.suppress(TimeoutError):
            async with asyncio.timeout(_DRAIN_GRACE):
                if pending is not None:
                    self.consume(await pending)
                while not self.eof:
                    self.consume(await self._stdout.read(_BUFSIZE))
        if not self.eof:
            logger.warning("Agent stdout still open %.1fs after exit, ignoring the rest", _DRAIN_GRACE)
        if self._frames.pending:
            logger.warning("Agent output ended with an unterminated frame: %r", self._frames.pending)


async def run_session(device: Device, cfg: Config, request: Request, sink: LogSink = None) -> Result:
    """Provision the agent, then send one request and return its result.

    Raises:
        TransportError: Device unreachable or disconnected.
        ProvisioningError: Agent could not be downloaded or uploaded.
        ProtocolError: Malformed agent output or agent exited non-zero.
        AgentError: Agent reported an error or gave no response.

    """
    await prepare_agent(device, cfg, sink)
    return await send_request(device, cfg, request, sink)


async def send_request(device: Device, cfg: Config, request: Request, sink: LogSink = None) -> Result:
    """Spawn the agent, send one request and drive the session until it resolves."""
    process = await _spawn(device, cfg.agent_path)

    stderr_task = asyncio.ensure_future(process.stderr.read())
    exit_task = asyncio.ensure_future(process.wait())
    disconnect_task = asyncio.ensure_future(device.wait_disconnected())
    read_task: asyncio.Task[bytes] | None = None
    try:
        logger.info("Sending %s request", request.type)
        await _write_request(process, request)

        stream = _Stream(process.stdout, sink)
        while not (exit_task.done() or disconnect_task.done()):
            if stream.eof:
                # stdout closed: only the termination signals are left to wait for
                await asyncio.wait({exit_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)
                break
            read_task = stream.read()
            await asyncio.wait({read_task, exit_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)
            if read_task.done():
                stream.consume(read_task.result())
                read_task = None

        if not exit_task.done():
            error = disconnect_task.exception()
            if error is not None:
                raise error
            logger.error("Device disconnected while the agent was running")
            raise TransportError("disconnected", "Device disconnected while the agent was running")

        await stream.drain(read_task)
        read_task = None
        exit_code = exit_task.result()
        logger.info("Agent exited with code %d", exit_code)
        if exit_code != 0:
            stderr = await _collect_stderr(stderr_task)
            raise ProtocolError("agent_failed", "Failed to invoke agent: is the executable corrupt?\n" + stderr)
        return _resolve(stream.terminal)
    finally:
        if not exit_task.done():
            with contextlib.suppress(ProcessLookupError):
                process.kill()
        for task in (read_task, exit_task, disconnect_task, stderr_task):
            if task is not None and not task.done():
                task.cancel()


def _resolve(terminal: Terminal) -> Result:
    """Turn the terminal value of a cleanly exited session into a result or an AgentError."""
    if terminal is None:
        raise AgentError("no_response", "Received no response from agent")
    if isinstance(terminal, LogMsg):
        raise AgentError("agent_error", f"`{terminal.message}`")
    return terminal


async def _spawn(device: Device, path: str) -> AgentProcess:
    try:
        return await device.spawn(path)
    except OSError as e:
        raise TransportError("spawn_failed", f"Could not start agent {path}: {e}") from e


async def _write_request(process: AgentProcess, request: Request) -> None:
    """Write the request line and close stdin; it is never written again."""
    try:
        process.stdin.write(encode_request(request))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The exit code will tell what happened to the agent
        logger.warning("Agent closed stdin before the request was written")
    finally:
        process.stdin.close()


async def _collect_stderr(stderr_task: "asyncio.Task[bytes]") -> str:
    try:
        return (await asyncio.wait_for(stderr_task, _DRAIN_GRACE)).decode(errors="replace")
    except TimeoutError:
        return "<agent stderr was not closed>"
