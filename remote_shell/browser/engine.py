"""Page engine boundary.

The control plane never touches a rendering engine directly. It sees an
``Engine`` that creates ``PageView`` handles; each view exposes navigation,
script execution, visibility, a push-style listener for title/url/load-failure
changes, and a per-view debugging channel.

Engines must raise:
- ``ScriptExecutionError`` from ``execute_script`` when page code throws;
- ``DebugChannelError`` from ``DebuggerChannel`` calls that fail.
"""

from __future__ import annotations

from typing import Any, Protocol


class ViewListener(Protocol):
    """Receives change notifications for one view."""

    def on_title_changed(self, title: str) -> None: ...

    def on_url_changed(self, url: str) -> None: ...

    def on_load_failed(self, url: str, error: str) -> None: ...


class DebuggerChannel(Protocol):
    """Low-level debugging-protocol channel bound to one view."""

    async def attach(self) -> None: ...

    async def detach(self) -> None: ...

    async def send_command(self, method: str, params: dict[str, Any]) -> Any: ...


class PageView(Protocol):
    debugger: DebuggerChannel

    def subscribe(self, listener: ViewListener) -> None: ...

    async def load_url(self, url: str) -> None: ...

    async def execute_script(self, code: str) -> Any: ...

    def show(self) -> None: ...

    def hide(self) -> None: ...

    async def destroy(self) -> None: ...


class Engine(Protocol):
    def create_view(self) -> PageView: ...


__all__ = ["DebuggerChannel", "Engine", "PageView", "ViewListener"]
