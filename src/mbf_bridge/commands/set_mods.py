"""Enable or disable mods."""

import typer

from mbf_bridge.app_context import use_context


def _parse_change(item: str) -> tuple[str, bool]:
    mod_id, sep, state = item.rpartition("=")
    if not sep or not mod_id or state not in ("on", "off"):
        raise typer.BadParameter(f"Expected ID=on or ID=off, got '{item}'")
    return mod_id, state == "on"


def set_mods(ctx: typer.Context, changes: list[str] = typer.Argument(help="Changes as ID=on or ID=off")) -> None:
    """Enable or disable mods by ID."""
    app = use_context(ctx)
    statuses = dict(_parse_change(item) for item in changes)
    mods = app.run(app.client().set_mod_statuses(statuses))
    app.out.print_mods(mods)
