"""Agent binary download with bounded retries and throttled progress."""

import asyncio
import logging
import time
from collections.abc import Callable

import aiohttp

from mbf_bridge.agent.errors import ProvisioningError
from mbf_bridge.agent.protocol import LogSink, log_info

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
# A single stalled attempt fails here and is retried, rather than hanging forever
_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=60)


class ProgressThrottle:
    """Rate-limits progress updates to at most one per interval."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the throttle; the interval starts counting now.

        Args:
            interval: Minimum seconds between two reported updates.
            clock: Monotonic time source.

        """
        self._interval = interval
        self._clock = clock
        self._last = clock()

    def tick(self, received: int, total: int | None) -> float | None:
        """Return the completed percentage if an update is due, otherwise None."""
        if not total:
            return None
        now = self._clock()
        if now - self._last <= self._interval:
            return None
        self._last = now
        return received / total * 100.0


async def _download_once(session: aiohttp.ClientSession, url: str, sink: LogSink, progress_interval: float) -> bytes:
    """Run one download attempt, reporting progress as bytes arrive."""
    async with session.get(url) as resp:
        resp.raise_for_status()
        total = resp.content_length
        throttle = ProgressThrottle(progress_interval)
        payload = bytearray()
        async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
            payload += chunk
            percent = throttle.tick(len(payload), total)
            if percent is not None:
                log_info(sink, f"Download {round(percent, 1)}% complete")
    return bytes(payload)


async def download_agent(url: str, sink: LogSink, *, max_attempts: int = 3, progress_interval: float = 1.0) -> bytes:
    """Download the agent binary, retrying transfer failures.

    Raises:
        ProvisioningError: Every attempt failed (code: ``download_failed``).

    """
    async with aiohttp.ClientSession(timeout=_TIMEOUT) as session:
        for attempt in range(1, max_attempts + 1):
            try:
                payload = await _download_once(session, url, sink, progress_interval)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Agent download attempt %d/%d failed: %r", attempt, max_attempts, e)
                log_info(sink, f"Failed to fetch agent (attempt {attempt}/{max_attempts}): {e}")
                if attempt < max_attempts:
                    log_info(sink, f"Trying again... (attempt {attempt + 1}/{max_attempts})")
                continue
            log_info(sink, "Download complete")
            return payload

    msg = (
        f"Failed to fetch agent after {max_attempts} attempts.\n"
        "Did you lose internet connection just after starting?\n\n"
        "If not, then please report this issue, including the log file."
    )
    raise ProvisioningError("download_failed", msg)
