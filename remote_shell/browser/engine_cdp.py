"""Engine backed by a Chromium instance's remote-debugging endpoint.

Each view is a CDP page target. Visibility maps to ``Target.activateTarget``;
title/url changes come from a single browser-level event bus listening to
``Target.targetInfoChanged``; load failures come from ``Page.navigate``'s
``errorText``. The debugger channel of a view is a dedicated CDP connection to
the target, opened on attach and closed on detach.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from .cdp_connection import CdpClientError, CdpConnection, CdpEventBus, http_get_json
from .config import ShellConfig
from .engine import ViewListener
from .errors import CommandError, DebugChannelError, ScriptExecutionError

logger = logging.getLogger("shell.browser.engine")


def _exception_text(details: dict[str, Any]) -> str:
    exc = details.get("exception")
    if isinstance(exc, dict):
        desc = exc.get("description") or exc.get("value")
        if desc:
            return str(desc).splitlines()[0]
    return str(details.get("text") or "Script execution failed")


class CdpDebugger:
    def __init__(self, view: CdpPageView) -> None:
        self._view = view
        self._conn: CdpConnection | None = None

    async def attach(self) -> None:
        if self._conn is not None:
            return
        ws_url = self._view.ws_url
        if not ws_url:
            raise DebugChannelError("Tab has no debugging target yet")
        try:
            self._conn = await asyncio.to_thread(CdpConnection, ws_url, self._view.engine.config.cdp_timeout)
        except CdpClientError as exc:
            raise DebugChannelError(str(exc)) from exc

    async def detach(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await asyncio.to_thread(conn.close)

    async def send_command(self, method: str, params: dict[str, Any]) -> Any:
        conn = self._conn
        if conn is None:
            raise DebugChannelError("Debugger is not attached")
        try:
            return await asyncio.to_thread(conn.send, method, params)
        except CdpClientError as exc:
            raise DebugChannelError(str(exc)) from exc


class CdpPageView:
    def __init__(self, engine: CdpEngine) -> None:
        self.engine = engine
        self.target_id: str | None = None
        self.ws_url: str | None = None
        self.visible = False
        self.debugger = CdpDebugger(self)
        self._conn: CdpConnection | None = None
        self._listeners: list[ViewListener] = []
        self._last_info: dict[str, str] = {}

    def subscribe(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    async def load_url(self, url: str) -> None:
        if self._conn is None:
            try:
                await asyncio.to_thread(self._open_target)
            except CdpClientError as exc:
                raise CommandError(f"Failed to open page target: {exc}") from exc
        try:
            result = await asyncio.to_thread(self._conn.send, "Page.navigate", {"url": url})  # type: ignore[union-attr]
        except CdpClientError as exc:
            self._emit_load_failed(url, str(exc))
            return
        error_text = result.get("errorText") if isinstance(result, dict) else None
        if error_text:
            self._emit_load_failed(url, str(error_text))

    async def execute_script(self, code: str) -> Any:
        if self._conn is None:
            raise ScriptExecutionError("Tab has no page target")
        try:
            result = await asyncio.to_thread(
                self._conn.send,
                "Runtime.evaluate",
                {"expression": code, "returnByValue": True, "awaitPromise": True},
            )
        except CdpClientError as exc:
            raise ScriptExecutionError(str(exc)) from exc

        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            raise ScriptExecutionError(_exception_text(details))

        value = result.get("result")
        if not isinstance(value, dict):
            return None
        # undefined and null both come back without a usable "value".
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def show(self) -> None:
        self.visible = True
        if self.target_id:
            self.engine.submit(self.engine.activate_target, self.target_id)

    def hide(self) -> None:
        # Chromium keeps exactly one active target per window; activating another hides this one.
        self.visible = False

    async def destroy(self) -> None:
        self.visible = False
        await self.debugger.detach()
        conn, self._conn = self._conn, None
        if conn is not None:
            await asyncio.to_thread(conn.close)
        if self.target_id:
            self.engine.forget(self.target_id)
            await asyncio.to_thread(self.engine.close_target, self.target_id)

    def _open_target(self) -> None:
        target_id = self.engine.create_target()
        ws_url = self.engine.target_ws_url(target_id)
        if not ws_url:
            raise CdpClientError(f"No websocket URL for target {target_id}")
        conn = CdpConnection(ws_url, timeout=self.engine.config.cdp_timeout)
        self.target_id = target_id
        self.ws_url = ws_url
        self._conn = conn
        self.engine.remember(target_id, self)

    def handle_target_info(self, info: dict[str, Any]) -> None:
        """Runs on the event loop; translates targetInfoChanged into listener calls."""
        url = str(info.get("url") or "")
        title = str(info.get("title") or "")
        if url and url != self._last_info.get("url"):
            self._last_info["url"] = url
            for listener in list(self._listeners):
                listener.on_url_changed(url)
        if title and title != self._last_info.get("title"):
            self._last_info["title"] = title
            for listener in list(self._listeners):
                listener.on_title_changed(title)

    def _emit_load_failed(self, url: str, error: str) -> None:
        for listener in list(self._listeners):
            listener.on_load_failed(url, error)


class CdpEngine:
    """Creates page views as targets in an already-running Chromium."""

    def __init__(self, config: ShellConfig) -> None:
        self.config = config
        self._views: dict[str, CdpPageView] = {}
        self._lock = threading.Lock()
        self._browser: CdpConnection | None = None
        self._bus: CdpEventBus | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def http_base(self) -> str:
        return f"http://{self.config.cdp_host}:{int(self.config.cdp_port)}"

    def create_view(self) -> CdpPageView:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return CdpPageView(self)

    def close(self) -> None:
        if self._bus is not None:
            self._bus.stop()
            self._bus = None
        with self._lock:
            if self._browser is not None:
                self._browser.close()
                self._browser = None

    # Blocking helpers (called through asyncio.to_thread)

    def browser_ws_url(self) -> str:
        version = http_get_json(f"{self.http_base}/json/version", timeout=self.config.cdp_timeout)
        ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not ws_url:
            raise CdpClientError("CDP browser WebSocket URL not found")
        return str(ws_url)

    def _browser_send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        with self._lock:
            if self._browser is None:
                ws_url = self.browser_ws_url()
                self._browser = CdpConnection(ws_url, timeout=self.config.cdp_timeout)
                self._start_bus(ws_url)
            browser = self._browser
        try:
            return browser.send(method, params)
        except CdpClientError:
            with self._lock:
                if self._browser is browser:
                    browser.close()
                    self._browser = None
            raise

    def _start_bus(self, ws_url: str) -> None:
        if self._bus is not None:
            return
        bus = CdpEventBus(
            ws_url=ws_url,
            on_event=self._on_browser_event,
            enable=[{"method": "Target.setDiscoverTargets", "params": {"discover": True}}],
            name="shell-cdp-targets",
        )
        self._bus = bus
        bus.start()

    def create_target(self) -> str:
        result = self._browser_send("Target.createTarget", {"url": "about:blank"})
        target_id = result.get("targetId")
        if not target_id:
            raise CdpClientError("Failed to create browser tab")
        return str(target_id)

    def target_ws_url(self, target_id: str) -> str | None:
        targets = http_get_json(f"{self.http_base}/json/list", timeout=self.config.cdp_timeout) or []
        for target in targets:
            if isinstance(target, dict) and target.get("id") == target_id:
                return target.get("webSocketDebuggerUrl")
        return None

    def activate_target(self, target_id: str) -> None:
        self._browser_send("Target.activateTarget", {"targetId": target_id})

    def close_target(self, target_id: str) -> None:
        try:
            self._browser_send("Target.closeTarget", {"targetId": target_id})
        except CdpClientError as exc:
            logger.warning("closeTarget failed for %s: %s", target_id, exc)

    # View bookkeeping

    def remember(self, target_id: str, view: CdpPageView) -> None:
        with self._lock:
            self._views[target_id] = view

    def forget(self, target_id: str) -> None:
        with self._lock:
            self._views.pop(target_id, None)

    def submit(self, fn: Any, *args: Any) -> None:
        """Run a blocking engine call in the background; failures are logged."""
        loop = self._loop
        if loop is None:
            return
        fut = loop.run_in_executor(None, fn, *args)

        def _done(f: asyncio.Future) -> None:
            if not f.cancelled() and f.exception() is not None:
                logger.warning("CDP background call failed: %s", f.exception())

        fut.add_done_callback(_done)

    def _on_browser_event(self, event: dict[str, Any]) -> None:
        # Bus thread: hand off to the event loop.
        if event.get("method") != "Target.targetInfoChanged":
            return
        params = event.get("params")
        info = params.get("targetInfo") if isinstance(params, dict) else None
        if not isinstance(info, dict):
            return
        with self._lock:
            view = self._views.get(str(info.get("targetId") or ""))
        loop = self._loop
        if view is None or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(view.handle_target_info, info)


__all__ = ["CdpDebugger", "CdpEngine", "CdpPageView"]
