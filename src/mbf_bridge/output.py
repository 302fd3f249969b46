"""Structured output for CLI and JSON modes."""

# ruff: noqa: T201
# This module is the output layer; print() is its only way of producing CLI output.

import json
import sys
from typing import Any, NoReturn

import typer

from mbf_bridge.agent.messages import ImportResult, LogMsg, ModStatus


class Output:
    """Handles all CLI output in JSON or human-readable format."""

    def __init__(self, *, json_mode: bool) -> None:
        """Initialize output handler.

        Args:
            json_mode: If True, output JSON envelopes; otherwise human-readable text.

        """
        self._json_mode = json_mode

    def _success(self, data: dict[str, object], message: str) -> None:
        """Print a success result in JSON or human-readable format."""
        if self._json_mode:
            print(json.dumps({"ok": True, "data": data}))
        else:
            print(message)

    def print_error_and_exit(self, code: str, message: str) -> NoReturn:
        """Print an error in JSON or human-readable format and exit with code 1.

        Raises:
            typer.Exit: Always, with code 1.

        """
        if self._json_mode:
            print(json.dumps({"ok": False, "error": code, "message": message}))
        else:
            print(f"Error: {message}", file=sys.stderr)
        raise typer.Exit(code=1)

    def print_log(self, event: LogMsg) -> None:
        """Show an agent log event as it arrives (human mode only, so JSON output stays one envelope)."""
        if not self._json_mode:
            print(f"[{event.level}] {event.message}", file=sys.stderr)

    # --- Agent ---

    def print_agent_ready(self) -> None:
        """Print agent provisioning confirmation."""
        self._success({}, "Agent is ready.")

    # --- Mods ---

    def print_mod_status(self, status: ModStatus) -> None:
        """Print app and mod installation state."""
        if self._json_mode:
            print(json.dumps({"ok": True, "data": status.model_dump()}))
            return
        if status.app_info is None:
            print("App is not installed.")
        else:
            print(f"App version: {status.app_info.get('version', 'unknown')}")
        print(f"Modloader present: {'yes' if status.modloader_present else 'no'}")
        self._print_mod_lines(status.installed_mods)

    def print_mods(self, mods: list[dict[str, Any]]) -> None:
        """Print installed mods."""
        if self._json_mode:
            print(json.dumps({"ok": True, "data": {"installed_mods": mods}}))
        else:
            self._print_mod_lines(mods)

    def print_import_result(self, result: ImportResult) -> None:
        """Print import confirmation."""
        self._success(result.model_dump(), f"Imported {result.used_filename or 'file'}.")

    def print_player_data_fixed(self, *, existed: bool) -> None:
        """Print player data fix outcome."""
        self._success(
            {"existed": existed}, "Player data fixed." if existed else "No player data found, nothing to fix."
        )

    @staticmethod
    def _print_mod_lines(mods: list[dict[str, Any]]) -> None:
        if not mods:
            print("No mods installed.")
        for mod in mods:
            state = "enabled" if mod.get("is_enabled") else "disabled"
            print(f"{mod.get('id', '?')} {mod.get('version', '')} ({state})")
