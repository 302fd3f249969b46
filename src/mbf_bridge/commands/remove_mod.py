"""Remove a mod."""

import typer

from mbf_bridge.app_context import use_context


def remove_mod(ctx: typer.Context, mod_id: str) -> None:
    """Remove a mod by ID."""
    app = use_context(ctx)
    mods = app.run(app.client().remove_mod(mod_id))
    app.out.print_mods(mods)
