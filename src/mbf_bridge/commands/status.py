"""Show app and mod installation state."""

import typer

from mbf_bridge.app_context import use_context


def status(ctx: typer.Context) -> None:
    """Show whether the app is patched and which mods are installed."""
    app = use_context(ctx)
    mod_status = app.run(app.client().load_mod_status())
    app.out.print_mod_status(mod_status)
