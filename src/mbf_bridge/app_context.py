"""Application context shared across CLI commands."""

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

import typer

from mbf_bridge.agent.errors import BridgeError
from mbf_bridge.client import AgentClient
from mbf_bridge.config import Config
from mbf_bridge.device import Device
from mbf_bridge.output import Output

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared application state passed through Typer context."""

    out: Output
    cfg: Config
    device: Device

    def client(self) -> AgentClient:
        """Agent client that streams log events to the terminal."""
        return AgentClient(self.device, self.cfg, sink=self.out.print_log)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run an async operation, turning bridge errors into a CLI error exit."""
        try:
            return asyncio.run(coro)
        except BridgeError as e:
            self.out.print_error_and_exit(e.code, str(e))


def use_context(ctx: typer.Context) -> AppContext:
    """Extract application context from Typer context."""
    result: AppContext = ctx.obj
    return result
