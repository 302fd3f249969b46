"""Agent provisioning: hash check, download and install of the agent binary."""

import asyncio
import hashlib
import logging
import shlex

from mbf_bridge.agent.errors import ProvisioningError
from mbf_bridge.agent.fetch import download_agent
from mbf_bridge.agent.protocol import LogSink, log_info
from mbf_bridge.config import Config
from mbf_bridge.device import Device

logger = logging.getLogger(__name__)


async def remote_hash(device: Device, path: str) -> str:
    """Return the upper-case SHA-1 of a remote file, or an empty string if it cannot be hashed."""
    result = await device.run(f"sha1sum {shlex.quote(path)} | cut -f 1 -d ' '")
    if not result.ok:
        return ""
    return result.stdout.strip().upper()


async def prepare_agent(device: Device, cfg: Config, sink: LogSink = None) -> None:
    """Make sure the agent on the device matches the expected hash, reinstalling it if not."""
    log_info(sink, "Preparing agent: used to communicate with your Quest.")
    expected = cfg.agent_hash.upper()
    existing = await remote_hash(device, cfg.agent_path)
    logger.debug("Agent SHA1 expected %s, found %s", expected, existing or "<none>")

    if existing == expected:
        log_info(sink, "Agent is up to date")
        return
    await overwrite_agent(device, cfg, sink)


async def overwrite_agent(device: Device, cfg: Config, sink: LogSink = None) -> None:
    """Replace the agent on the device: remove, download, upload, mark executable."""
    log_info(sink, "Removing existing agent")
    await device.remove_file(cfg.agent_path)
    log_info(sink, "Downloading agent, this might take a minute if it's not cached")
    agent = await load_agent_binary(cfg, sink)
    log_info(sink, "Writing agent to quest!")
    await upload_agent(device, cfg, agent)
    log_info(sink, "Making agent executable")
    await device.chmod_executable(cfg.agent_path)
    log_info(sink, "Agent is ready")


async def upload_agent(device: Device, cfg: Config, agent: bytes) -> None:
    """Push the agent bytes to the device, giving up after the configured timeout.

    The timeout cancels our side of the write; the device may still be receiving
    data when the error is raised.

    Raises:
        ProvisioningError: Upload did not finish in time (code: ``upload_timeout``).

    """
    try:
        await asyncio.wait_for(device.write_file(cfg.agent_path, agent), timeout=cfg.upload_timeout)
    except TimeoutError:
        msg = (
            f"Did not finish pushing agent after {cfg.upload_timeout:g} seconds.\n"
            "In practice, pushing the agent takes less than a second, so this is a bug. "
            "Please report this issue including the log file."
        )
        raise ProvisioningError("upload_timeout", msg) from None


async def load_agent_binary(cfg: Config, sink: LogSink = None) -> bytes:
    """Return the agent binary from the local cache, downloading it on a miss."""
    expected = cfg.agent_hash.upper()
    cached = cfg.cache_dir / f"mbf-agent-{expected.lower()}"
    if cached.is_file():
        data = cached.read_bytes()
        if _sha1(data) == expected:
            logger.info("Using cached agent %s", cached)
            return data
        logger.warning("Cached agent %s is corrupt, downloading again", cached)

    data = await download_agent(
        cfg.agent_url, sink, max_attempts=cfg.max_download_attempts, progress_interval=cfg.progress_interval
    )
    actual = _sha1(data)
    if actual != expected:
        # Still installed; the next session will notice the mismatch and reinstall
        logger.warning("Downloaded agent SHA1 %s does not match expected %s, not caching", actual, expected)
        return data
    try:
        cached.parent.mkdir(parents=True, exist_ok=True)
        cached.write_bytes(data)
    except OSError:
        logger.exception("Failed to cache agent at %s", cached)
    return data


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest().upper()  # noqa: S324  # nosec B324
