"""Explicit wiring of the control plane.

One ``ShellContext`` per shell process: it is what handlers receive instead of
reaching for module-level singletons.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .config import ShellConfig
from .debug_bridge import DebugBridge
from .engine import Engine
from .remote_connection import Connector, RemoteConnection
from .server.registry import CommandRegistry, create_default_registry
from .server.types import Command, Response
from .status import AutomationStatusStore, StatusObserver
from .tabs import TabRegistry


@dataclass
class ShellContext:
    config: ShellConfig
    engine: Engine
    tabs: TabRegistry
    status: AutomationStatusStore
    debug: DebugBridge
    dispatcher: CommandRegistry
    connection: RemoteConnection | None = None

    async def dispatch(self, command: Command) -> Response:
        return await self.dispatcher.dispatch(command, self)

    async def shutdown(self) -> None:
        """Disconnect (if connected) and close every tab."""
        if self.connection is not None:
            await self.connection.disconnect()
        await self.tabs.destroy_all()


def create_context(
    config: ShellConfig,
    engine: Engine,
    *,
    observers: Iterable[StatusObserver] = (),
    connector: Connector | None = None,
    dispatcher: CommandRegistry | None = None,
) -> ShellContext:
    tabs = TabRegistry(engine)
    status = AutomationStatusStore(observers, tab_exists=tabs.has_tab)
    debug = DebugBridge(tabs)

    # Closing a tab purges its status entry and debug session before the view goes away.
    tabs.on_tab_closed(status.clear)
    tabs.on_tab_closed(debug.detach)

    ctx = ShellContext(
        config=config,
        engine=engine,
        tabs=tabs,
        status=status,
        debug=debug,
        dispatcher=dispatcher or create_default_registry(),
    )
    ctx.connection = RemoteConnection(
        config,
        dispatch=ctx.dispatch,
        status=status,
        debug=debug,
        connector=connector,
    )
    return ctx


__all__ = ["ShellContext", "create_context"]
