"""High-level operations against the agent, one session per call."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

from mbf_bridge.agent.errors import ProtocolError
from mbf_bridge.agent.messages import (
    DowngradedManifest,
    FixedPlayerData,
    FixPlayerData,
    GetDowngradedManifest,
    GetModStatus,
    Import,
    ImportResult,
    ImportUrl,
    Mods,
    ModStatus,
    Patch,
    Patched,
    QuickFix,
    RemoveMod,
    Request,
    Result,
    SetModsEnabled,
)
from mbf_bridge.agent.protocol import LogSink
from mbf_bridge.agent.session import run_session
from mbf_bridge.config import Config
from mbf_bridge.device import Device

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Result)


class AgentClient:
    """Sends requests to the agent on one device, never more than one at a time."""

    def __init__(self, device: Device, cfg: Config, sink: LogSink = None) -> None:
        """Initialize the client.

        Args:
            device: Transport to the device.
            cfg: Application configuration (agent location, hash, override URL).
            sink: Optional observer receiving every log event.

        """
        self._device = device
        self._cfg = cfg
        self._sink = sink
        # A new session must not start before the previous one released its process
        self._lock = asyncio.Lock()

    async def send(self, request: Request, expected: type[T], *, before: Callable[[], Awaitable[None]] | None = None) -> T:
        """Run one session and check the result has the type this request answers with.

        ``before`` runs under the same lock, ahead of the session, for device work the request depends on.

        Raises:
            ProtocolError: Result is of another type (code: ``unexpected_response``).

        """
        async with self._lock:
            if before is not None:
                await before()
            result = await run_session(self._device, self._cfg, request, self._sink)
        if not isinstance(result, expected):
            msg = f"Agent answered {request.type} with {result.type}, expected {expected.__name__}"
            raise ProtocolError("unexpected_response", msg)
        return result

    # --- Operations ---

    async def load_mod_status(self) -> ModStatus:
        """Query whether the app is patched and which mods are installed."""
        return await self.send(GetModStatus(override_core_mod_url=self._cfg.core_mod_override_url), ModStatus)

    async def set_mod_statuses(self, changes: dict[str, bool]) -> list[dict[str, Any]]:
        """Install or uninstall mods by ID; return the resulting mod list."""
        return (await self.send(SetModsEnabled(statuses=changes), Mods)).installed_mods

    async def remove_mod(self, mod_id: str) -> list[dict[str, Any]]:
        """Delete a mod; return the resulting mod list."""
        return (await self.send(RemoveMod(id=mod_id), Mods)).installed_mods

    async def get_downgraded_manifest(self, version: str) -> str:
        """Get the AndroidManifest.xml, as XML, for the given game version."""
        return (await self.send(GetDowngradedManifest(version=version), DowngradedManifest)).manifest_xml

    async def import_file(self, local_path: Path) -> ImportResult:
        """Upload a local file to the device, then ask the agent to import it."""
        remote_path = f"{self._cfg.uploads_dir}/{local_path.name}"

        async def upload() -> None:
            logger.info("Uploading %s to %s", local_path, remote_path)
            data = await asyncio.to_thread(local_path.read_bytes)
            await self._device.make_dirs(self._cfg.uploads_dir)
            await self._device.write_file(remote_path, data)

        return await self.send(Import(from_path=remote_path), ImportResult, before=upload)

    async def import_url(self, url: str) -> ImportResult:
        return await self.send(ImportUrl(from_url=url), ImportResult)

    async def patch_app(
        self, manifest_mod: str, *, downgrade_to: str | None = None, remodding: bool = False, allow_no_core_mods: bool = False
    ) -> Patched:
        """Patch the app with the modloader and core mods (only reinstalls them if already modded)."""
        request = Patch(
            downgrade_to=downgrade_to,
            manifest_mod=manifest_mod,
            allow_no_core_mods=allow_no_core_mods,
            override_core_mod_url=self._cfg.core_mod_override_url,
            remodding=remodding,
        )
        return await self.send(request, Patched)

    async def quick_fix(self, *, wipe_existing_mods: bool = False) -> list[dict[str, Any]]:
        """Reinstall missing or outdated core mods and the modloader; return the resulting mod list."""
        request = QuickFix(override_core_mod_url=self._cfg.core_mod_override_url, wipe_existing_mods=wipe_existing_mods)
        return (await self.send(request, Mods)).installed_mods

    async def fix_player_data(self) -> bool:
        """Attempt to fix the black screen issue; return whether player data existed."""
        return (await self.send(FixPlayerData(), FixedPlayerData)).existed
