"""Install or update the agent on the device."""

import typer

from mbf_bridge.agent.provision import overwrite_agent, prepare_agent
from mbf_bridge.app_context import use_context


def prepare(
    ctx: typer.Context,
    *,
    force: bool = typer.Option(default=False, help="Reinstall the agent even if it is up to date"),
) -> None:
    """Make sure the agent on the device is present and up to date."""
    app = use_context(ctx)
    provision = overwrite_agent if force else prepare_agent
    app.run(provision(app.device, app.cfg, app.out.print_log))
    app.out.print_agent_ready()
