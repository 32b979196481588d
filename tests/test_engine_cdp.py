from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from conftest import wait_until

from remote_shell.browser import cdp_connection, engine_cdp
from remote_shell.browser.cdp_connection import CdpClientError, CdpConnection
from remote_shell.browser.config import ShellConfig
from remote_shell.browser.debug_bridge import DebugBridge
from remote_shell.browser.engine_cdp import CdpEngine
from remote_shell.browser.errors import DebugChannelError, ScriptExecutionError
from remote_shell.browser.tabs import TabRegistry


class DummyConn:
    def __init__(self, ws_url: str, timeout: float = 5.0) -> None:
        self.ws_url = ws_url
        self.timeout = timeout
        self.sent: list[tuple[str, Any]] = []
        self.closed = False

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.sent.append((method, params))
        params = params or {}
        if method == "Page.navigate":
            if "invalid" in params.get("url", ""):
                return {"frameId": "F1", "errorText": "net::ERR_NAME_NOT_RESOLVED"}
            return {"frameId": "F1"}
        if method == "Runtime.evaluate":
            expr = params.get("expression")
            if expr == "2+2":
                return {"result": {"type": "number", "value": 4, "description": "4"}}
            if expr == "null":
                return {"result": {"type": "object", "subtype": "null", "value": None}}
            if isinstance(expr, str) and expr.startswith("throw"):
                return {
                    "result": {"type": "object", "subtype": "error"},
                    "exceptionDetails": {
                        "text": "Uncaught",
                        "exception": {"description": "Error: boom\n    at <anonymous>:1:7"},
                    },
                }
            return {"result": {"type": "undefined"}}
        if method == "Bad.method":
            raise CdpClientError("'Bad.method' wasn't found", error={"code": -32601})
        return {"echo": method}

    def close(self) -> None:
        self.closed = True


def _engine(monkeypatch: pytest.MonkeyPatch) -> tuple[CdpEngine, dict[str, list[str]]]:
    monkeypatch.setattr(engine_cdp, "CdpConnection", DummyConn)
    engine = CdpEngine(ShellConfig())
    calls: dict[str, list[str]] = {"activated": [], "closed": []}
    engine.create_target = lambda: "T1"  # type: ignore[method-assign]
    engine.target_ws_url = lambda target_id: f"ws://127.0.0.1:9222/devtools/page/{target_id}"  # type: ignore[method-assign]
    engine.activate_target = calls["activated"].append  # type: ignore[method-assign]
    engine.close_target = calls["closed"].append  # type: ignore[method-assign]
    return engine, calls


def test_cdp_view_scripts_navigation_and_lifecycle(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _main() -> None:
        engine, calls = _engine(monkeypatch)
        tabs = TabRegistry(engine)

        tab_id = await tabs.create_tab("https://example.com")
        view = tabs.get_tab(tab_id).view
        assert view.target_id == "T1"

        assert await tabs.execute_script(tab_id, "2+2") == 4
        assert await tabs.execute_script(tab_id, "null") is None
        assert await tabs.execute_script(tab_id, "void 0") is None
        with pytest.raises(ScriptExecutionError, match="^Error: boom$"):
            await tabs.execute_script(tab_id, "throw new Error('boom')")

        await tabs.navigate(tab_id, "https://nowhere.invalid")
        assert tabs.get_tab(tab_id).load_error == "net::ERR_NAME_NOT_RESOLVED"

        tabs.switch_to(tab_id)
        await wait_until(lambda: calls["activated"] == ["T1"])

        await tabs.close_tab(tab_id)
        assert calls["closed"] == ["T1"]
        assert view._conn is None  # noqa: SLF001

    asyncio.run(_main())


def test_target_info_events_reach_tab_from_bus_thread(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _main() -> None:
        engine, _ = _engine(monkeypatch)
        tabs = TabRegistry(engine)
        tab_id = await tabs.create_tab("https://example.com")

        event = {
            "method": "Target.targetInfoChanged",
            "params": {"targetInfo": {"targetId": "T1", "url": "https://example.com/next", "title": "Next"}},
        }
        await asyncio.to_thread(engine._on_browser_event, event)  # noqa: SLF001
        await wait_until(lambda: tabs.get_tab(tab_id).title == "Next")
        assert tabs.get_tab_url(tab_id) == "https://example.com/next"

    asyncio.run(_main())


def test_cdp_debugger_relay_through_bridge(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _main() -> None:
        engine, _ = _engine(monkeypatch)
        tabs = TabRegistry(engine)
        bridge = DebugBridge(tabs)
        tab_id = await tabs.create_tab("https://example.com")

        assert await bridge.send(tab_id, "DOM.getDocument", {"depth": 1}) == {"echo": "DOM.getDocument"}
        with pytest.raises(DebugChannelError, match="wasn't found"):
            await bridge.send(tab_id, "Bad.method")

        debugger_conn = tabs.get_tab(tab_id).view.debugger._conn  # noqa: SLF001
        assert debugger_conn.ws_url.endswith("/devtools/page/T1")
        await bridge.detach_all()
        assert debugger_conn.closed is True

    asyncio.run(_main())


def test_debugger_send_without_attach_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _main() -> None:
        engine, _ = _engine(monkeypatch)
        view = engine.create_view()
        with pytest.raises(DebugChannelError):
            await view.debugger.attach()
        with pytest.raises(DebugChannelError, match="not attached"):
            await view.debugger.send_command("Page.enable", {})

    asyncio.run(_main())


class _FakeWs:
    def __init__(self, frames: list[dict[str, Any]]) -> None:
        self.frames = [json.dumps(f) for f in frames]
        self.sent: list[dict[str, Any]] = []

    def settimeout(self, value: float) -> None:
        pass

    def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def recv(self) -> str:
        return self.frames.pop(0)


def test_cdp_connection_skips_events_and_maps_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeWs(
        [
            {"method": "Page.loadEventFired", "params": {}},
            {"id": 99, "result": {}},
            {"id": 1, "result": {"frameTree": {}}},
            {"id": 2, "error": {"code": -32000, "message": "No node with given id"}},
        ]
    )
    monkeypatch.setattr(cdp_connection.websocket, "create_connection", lambda url, timeout: fake)

    conn = CdpConnection("ws://127.0.0.1:9222/devtools/page/T1", timeout=2.0)
    assert conn.send("Page.getFrameTree") == {"frameTree": {}}
    with pytest.raises(CdpClientError, match="No node") as exc_info:
        conn.send("DOM.describeNode", {"nodeId": 0})
    assert exc_info.value.error == {"code": -32000, "message": "No node with given id"}
    assert [m["method"] for m in fake.sent] == ["Page.getFrameTree", "DOM.describeNode"]
    assert "params" not in fake.sent[0]
