"""CLI entry point for mbf-bridge."""

from pathlib import Path
from typing import Annotated

import typer
from mm_clikit import TyperPlus

from mbf_bridge.adb import AdbDevice
from mbf_bridge.app_context import AppContext
from mbf_bridge.commands.fix import fix_player_data, quick_fix
from mbf_bridge.commands.import_ import import_
from mbf_bridge.commands.prepare import prepare
from mbf_bridge.commands.remove_mod import remove_mod
from mbf_bridge.commands.set_mods import set_mods
from mbf_bridge.commands.status import status
from mbf_bridge.config import Config
from mbf_bridge.log import setup_logging
from mbf_bridge.output import Output

app = TyperPlus(package_name="mbf-bridge")


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON.")] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path.")] = None,
    serial: Annotated[str | None, typer.Option("--serial", "-s", help="Serial of the device to use.")] = None,
    core_mod_url: Annotated[str | None, typer.Option("--core-mod-url", help="Override the core mod index URL.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Also write debug logs to stderr.")] = False,
) -> None:
    """Manage mods on a Quest through the on-device agent."""
    cfg = Config.build(data_dir, serial=serial, core_mod_override_url=core_mod_url)
    cfg.data_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(cfg.log_path, verbose=verbose)
    ctx.obj = AppContext(out=Output(json_mode=json_output), cfg=cfg, device=AdbDevice(cfg.adb_path, cfg.serial))


# Agent
app.command()(prepare)

# Mods
app.command(aliases=["s"])(status)
app.command("set-mods")(set_mods)
app.command("remove-mod", aliases=["rm"])(remove_mod)
app.command("import", aliases=["i"])(import_)

# Repair
app.command("quick-fix")(quick_fix)
app.command("fix-player-data")(fix_player_data)
