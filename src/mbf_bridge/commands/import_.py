"""Import a mod, song or cosmetic from a file or URL."""

from pathlib import Path

import typer

from mbf_bridge.app_context import use_context


def import_(ctx: typer.Context, source: str = typer.Argument(help="Local file path or http(s) URL")) -> None:
    """Import a file into the app: local paths are uploaded first, URLs are fetched by the device."""
    app = use_context(ctx)
    client = app.client()
    if source.startswith(("http://", "https://")):
        result = app.run(client.import_url(source))
    else:
        path = Path(source)
        if not path.is_file():
            app.out.print_error_and_exit("not_found", f"File '{source}' not found.")
        result = app.run(client.import_file(path))
    app.out.print_import_result(result)
