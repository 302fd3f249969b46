"""Request and response messages exchanged with the agent.

Every message is a JSON object whose ``type`` field selects the variant.
Both sets are closed: a ``type`` outside them fails validation.

Request:  {"type": "RemoveMod", "id": "some-mod"}
Log:      {"type": "LogMsg", "level": "Info", "message": "checking"}
Result:   {"type": "Mods", "installed_mods": [...]}
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

LogLevel = Literal["Trace", "Debug", "Info", "Warn", "Error"]


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True)


class _Payload(BaseModel):
    """Result payloads keep any fields the agent adds beyond the ones modelled here."""

    model_config = ConfigDict(frozen=True, extra="allow")


# --- Requests ---


class GetModStatus(_Message):
    """Query app, modloader and mod installation state."""

    type: Literal["GetModStatus"] = "GetModStatus"
    override_core_mod_url: str | None = None


class SetModsEnabled(_Message):
    """Enable or disable mods by ID."""

    type: Literal["SetModsEnabled"] = "SetModsEnabled"
    statuses: dict[str, bool]


class RemoveMod(_Message):
    type: Literal["RemoveMod"] = "RemoveMod"
    id: str


class Import(_Message):
    """Import a file previously uploaded to the device."""

    type: Literal["Import"] = "Import"
    from_path: str


class ImportUrl(_Message):
    type: Literal["ImportUrl"] = "ImportUrl"
    from_url: str


class Patch(_Message):
    """Patch the app, adding the modloader and core mods."""

    type: Literal["Patch"] = "Patch"
    downgrade_to: str | None = None
    manifest_mod: str
    allow_no_core_mods: bool = False
    override_core_mod_url: str | None = None
    remodding: bool = False


class QuickFix(_Message):
    """Reinstall missing core mods and the modloader."""

    type: Literal["QuickFix"] = "QuickFix"
    override_core_mod_url: str | None = None
    wipe_existing_mods: bool = False


class FixPlayerData(_Message):
    type: Literal["FixPlayerData"] = "FixPlayerData"


class GetDowngradedManifest(_Message):
    type: Literal["GetDowngradedManifest"] = "GetDowngradedManifest"
    version: str


Request = Annotated[
    GetModStatus | SetModsEnabled | RemoveMod | Import | ImportUrl | Patch | QuickFix | FixPlayerData | GetDowngradedManifest,
    Field(discriminator="type"),
]


# --- Responses ---


class LogMsg(_Message):
    """Log event emitted by the agent (or by the bridge itself) while a request runs."""

    type: Literal["LogMsg"] = "LogMsg"
    level: LogLevel
    message: str


class ModStatus(_Payload):
    type: Literal["ModStatus"] = "ModStatus"
    app_info: dict[str, Any] | None = None
    core_mods: dict[str, Any] | None = None
    modloader_present: bool = False
    installed_mods: list[dict[str, Any]] = Field(default_factory=list)


class Mods(_Payload):
    type: Literal["Mods"] = "Mods"
    installed_mods: list[dict[str, Any]] = Field(default_factory=list)


class Patched(_Payload):
    type: Literal["Patched"] = "Patched"
    installed_mods: list[dict[str, Any]] = Field(default_factory=list)
    did_remove_dlc: bool = False


class ImportResult(_Payload):
    type: Literal["ImportResult"] = "ImportResult"
    used_filename: str | None = None
    result: dict[str, Any] | None = None


class DowngradedManifest(_Payload):
    type: Literal["DowngradedManifest"] = "DowngradedManifest"
    manifest_xml: str


class FixedPlayerData(_Payload):
    type: Literal["FixedPlayerData"] = "FixedPlayerData"
    existed: bool


Result = ModStatus | Mods | Patched | ImportResult | DowngradedManifest | FixedPlayerData

Response = Annotated[LogMsg | Result, Field(discriminator="type")]

response_adapter: TypeAdapter[LogMsg | Result] = TypeAdapter(Response)


def info(message: str) -> LogMsg:
    """Build an Info-level log event."""
    return LogMsg(level="Info", message=message)
