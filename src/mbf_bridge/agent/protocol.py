"""Newline-delimited JSON framing and log/result demultiplexing for agent sessions.

Each message is one JSON value followed by ``\\n``. The agent writes any number
of ``LogMsg`` frames and then, normally, one result frame before exiting.
"""

import json
import logging
from collections.abc import Callable, Iterator

from pydantic import ValidationError

from mbf_bridge.agent.errors import ProtocolError
from mbf_bridge.agent.messages import LogMsg, Request, Result, info, response_adapter

logger = logging.getLogger(__name__)

# Diagnostic sink for log events produced by the agent process
agent_logger = logging.getLogger("mbf_bridge.agent.remote")

LogSink = Callable[[LogMsg], None] | None

Terminal = LogMsg | Result | None

_LEVELS = {
    "Trace": logging.DEBUG,
    "Debug": logging.DEBUG,
    "Info": logging.INFO,
    "Warn": logging.WARNING,
    "Error": logging.ERROR,
}


def encode_request(req: Request) -> bytes:
    """Serialize a request to a newline-terminated JSON bytes line."""
    return req.model_dump_json().encode() + b"\n"


def decode_frame(frame: str) -> LogMsg | Result:
    """Parse one complete frame into a response message.

    Raises:
        ProtocolError: Frame is not JSON (code: ``invalid_json``), carries an unknown
            ``type`` (code: ``unknown_message``), or has malformed fields (code: ``invalid_message``).

    """
    try:
        obj = json.loads(frame)
    except json.JSONDecodeError:
        raise ProtocolError("invalid_json", f"Agent message {frame} was not valid JSON") from None
    try:
        return response_adapter.validate_python(obj)
    except ValidationError as e:
        if any(err["type"] in ("union_tag_invalid", "union_tag_not_found") for err in e.errors()):
            raise ProtocolError("unknown_message", f"Agent message {frame} has an unknown type") from None
        raise ProtocolError("invalid_message", f"Agent message {frame} is malformed: {e}") from None


class FrameDecoder:
    """Splits decoded stdout text into frames, buffering a partial trailing frame across reads."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline, not yet a complete frame."""
        return self._buffer

    def feed(self, chunk: str) -> Iterator[LogMsg | Result]:
        """Append a chunk and return the messages it completes, in arrival order.

        The buffer is updated eagerly; frames are decoded lazily, so messages ahead
        of a malformed frame are still delivered before it raises.
        """
        *frames, self._buffer = (self._buffer + chunk).split("\n")
        return (decode_frame(frame) for frame in frames)


def notify(sink: LogSink, event: LogMsg) -> None:
    """Deliver an event to the observer, if one is configured."""
    if sink is not None:
        sink(event)


def log_info(sink: LogSink, message: str) -> None:
    """Record a control-side progress message locally and pass it to the observer."""
    logger.info(message)
    notify(sink, info(message))


def next_terminal(current: Terminal, message: LogMsg | Result) -> Terminal:
    """Reducer for the session's terminal value.

    A result always replaces the current value. An Error-level log replaces it too,
    acting as the fallback outcome if nothing follows. Other logs leave it untouched.
    """
    if isinstance(message, LogMsg):
        return message if message.level == "Error" else current
    return message


def demultiplex(current: Terminal, message: LogMsg | Result, sink: LogSink) -> Terminal:
    """Route one message: echo and forward logs, then fold it into the terminal value."""
    if isinstance(message, LogMsg):
        agent_logger.log(_LEVELS[message.level], message.message)
        notify(sink, message)
    return next_terminal(current, message)
