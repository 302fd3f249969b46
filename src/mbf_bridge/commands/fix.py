"""Repair commands: quick fix and player data fix."""

import typer

from mbf_bridge.app_context import use_context


def quick_fix(
    ctx: typer.Context,
    *,
    wipe: bool = typer.Option(default=False, help="Delete all existing mods before reinstalling core mods"),
) -> None:
    """Reinstall missing or outdated core mods and the modloader."""
    app = use_context(ctx)
    mods = app.run(app.client().quick_fix(wipe_existing_mods=wipe))
    app.out.print_mods(mods)


def fix_player_data(ctx: typer.Context) -> None:
    """Attempt to fix the black screen issue caused by corrupt player data."""
    app = use_context(ctx)
    existed = app.run(app.client().fix_player_data())
    app.out.print_player_data_fixed(existed=existed)
