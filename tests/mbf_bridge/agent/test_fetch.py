"""Tests for the agent download retry loop and progress throttling."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import aiohttp
import pytest
from aiohttp import test_utils, web

from mbf_bridge.agent import fetch
from mbf_bridge.agent.errors import ProvisioningError
from mbf_bridge.agent.fetch import ProgressThrottle, download_agent

URL = "https://example.invalid/mbf-agent"


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class ScriptedDownload:
    """Stands in for a single download attempt: fails a set number of times, then succeeds."""

    def __init__(self, failures: int, payload: bytes = b"agent-bytes") -> None:
        self.failures = failures
        self.payload = payload
        self.attempts = 0

    async def __call__(self, session: aiohttp.ClientSession, url: str, sink: object, progress_interval: float) -> bytes:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise aiohttp.ClientConnectionError(f"connection reset #{self.attempts}")
        return self.payload


@asynccontextmanager
async def serve(handler: Callable[[web.Request], Awaitable[web.StreamResponse]]) -> AsyncIterator[str]:
    """Serve handler on a local port, yielding the agent URL."""
    app = web.Application()
    app.router.add_get("/mbf-agent", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/mbf-agent"))
    finally:
        await server.close()


class TestProgressThrottle:
    """At most one progress update per interval."""

    def test_no_update_within_interval(self) -> None:
        """Ticks inside the interval are swallowed."""
        clock = FakeClock()
        throttle = ProgressThrottle(1.0, clock=clock)
        clock.now += 0.5
        assert throttle.tick(10, 100) is None
        clock.now += 0.5
        assert throttle.tick(20, 100) is None

    def test_update_after_interval(self) -> None:
        """A tick past the interval reports the completed percentage."""
        clock = FakeClock()
        throttle = ProgressThrottle(1.0, clock=clock)
        clock.now += 1.5
        assert throttle.tick(25, 100) == 25.0

    def test_interval_restarts_after_update(self) -> None:
        """Many ticks in one interval give a single update."""
        clock = FakeClock()
        throttle = ProgressThrottle(1.0, clock=clock)
        clock.now += 1.1
        reported = []
        for received in range(1, 50):
            clock.now += 0.01
            reported.append(throttle.tick(received, 100))
        assert len([p for p in reported if p is not None]) == 1

    @pytest.mark.parametrize("total", [None, 0])
    def test_unknown_total_skipped(self, total: int | None) -> None:
        """Without a known total size no percentage is computed."""
        clock = FakeClock()
        throttle = ProgressThrottle(1.0, clock=clock)
        clock.now += 10
        assert throttle.tick(50, total) is None


class TestDownloadAgent:
    """Bounded retries around single download attempts."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self, monkeypatch: pytest.MonkeyPatch, sink) -> None:
        """A working transfer returns its payload after one attempt."""
        attempt = ScriptedDownload(failures=0)
        monkeypatch.setattr(fetch, "_download_once", attempt)
        assert await download_agent(URL, sink) == b"agent-bytes"
        assert attempt.attempts == 1

    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self, monkeypatch: pytest.MonkeyPatch, sink) -> None:
        """Two failures then a success returns the payload after exactly three attempts."""
        attempt = ScriptedDownload(failures=2)
        monkeypatch.setattr(fetch, "_download_once", attempt)
        assert await download_agent(URL, sink, max_attempts=3) == b"agent-bytes"
        assert attempt.attempts == 3
        assert "Trying again... (attempt 2/3)" in sink.messages
        assert "Trying again... (attempt 3/3)" in sink.messages

    @pytest.mark.asyncio
    async def test_always_failing(self, monkeypatch: pytest.MonkeyPatch, sink) -> None:
        """A transport that never works fails after exactly three attempts, pointing at connectivity."""
        attempt = ScriptedDownload(failures=10)
        monkeypatch.setattr(fetch, "_download_once", attempt)
        with pytest.raises(ProvisioningError) as exc_info:
            await download_agent(URL, sink, max_attempts=3)
        assert attempt.attempts == 3
        assert exc_info.value.code == "download_failed"
        assert "internet connection" in str(exc_info.value)
        assert not any("attempt 4/3" in m for m in sink.messages)

    @pytest.mark.asyncio
    async def test_stalled_attempt_is_retried(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A read timeout counts as a failed attempt."""
        calls = 0

        async def flaky(session: aiohttp.ClientSession, url: str, sink: object, progress_interval: float) -> bytes:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise TimeoutError
            return b"ok"

        monkeypatch.setattr(fetch, "_download_once", flaky)
        assert await download_agent(URL, None) == b"ok"
        assert calls == 2


class TestDownloadOverHttp:
    """Real transfers against a local HTTP server."""

    @pytest.mark.asyncio
    async def test_server_errors_retried(self, sink) -> None:
        """Two 500 responses then a 200: three requests, the payload returned, each failure reported."""
        hits = 0

        async def handler(request: web.Request) -> web.Response:
            nonlocal hits
            hits += 1
            if hits <= 2:
                return web.Response(status=500)
            return web.Response(body=b"agent over http")

        async with serve(handler) as url:
            assert await download_agent(url, sink, max_attempts=3) == b"agent over http"
        assert hits == 3
        assert sink.messages[0].startswith("Failed to fetch agent (attempt 1/3)")
        assert "Trying again... (attempt 2/3)" in sink.messages
        assert sink.messages[-1] == "Download complete"

    @pytest.mark.asyncio
    async def test_not_found_exhausts_attempts(self, sink) -> None:
        """A permanent HTTP error still fails only after the attempt limit."""
        hits = 0

        async def handler(request: web.Request) -> web.Response:
            nonlocal hits
            hits += 1
            return web.Response(status=404)

        async with serve(handler) as url:
            with pytest.raises(ProvisioningError) as exc_info:
                await download_agent(url, sink, max_attempts=2)
        assert hits == 2
        assert exc_info.value.code == "download_failed"

    @pytest.mark.asyncio
    async def test_progress_reported(self, sink) -> None:
        """A sized body streamed in chunks produces percentage updates."""
        chunks = [b"x" * 1024] * 4

        async def handler(request: web.Request) -> web.StreamResponse:
            resp = web.StreamResponse()
            resp.content_length = sum(len(c) for c in chunks)
            await resp.prepare(request)
            for chunk in chunks:
                await resp.write(chunk)
                await asyncio.sleep(0.02)
            await resp.write_eof()
            return resp

        async with serve(handler) as url:
            payload = await download_agent(url, sink, progress_interval=0.0)
        assert payload == b"".join(chunks)
        progress = [m for m in sink.messages if m.startswith("Download ") and m.endswith("% complete")]
        assert progress
        assert sink.messages[-1] == "Download complete"
