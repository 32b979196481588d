from __future__ import annotations

import asyncio
import contextlib
import json
import time
from collections.abc import Callable
from typing import Any

import pytest

from remote_shell.browser.errors import CommandError, DebugChannelError, ScriptExecutionError


class FakeDebugger:
    def __init__(self, view: FakeView) -> None:
        self.view = view
        self.attached = False
        self.attach_count = 0
        self.detach_count = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, Any] = {}
        self.fail_attach: str | None = None
        self.fail_send: str | None = None
        self.fail_detach = False
        self.delay = 0.0

    async def attach(self) -> None:
        if self.fail_attach:
            raise DebugChannelError(self.fail_attach)
        self.attached = True
        self.attach_count += 1

    async def detach(self) -> None:
        self.detach_count += 1
        if self.fail_detach:
            raise RuntimeError("detach exploded")
        self.attached = False

    async def send_command(self, method: str, params: dict[str, Any]) -> Any:
        if not self.attached:
            raise DebugChannelError("Debugger is not attached")
        self.calls.append((method, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_send:
            raise RuntimeError(self.fail_send)
        if method in self.responses:
            return self.responses[method]
        return {"method": method, "params": params}


class FakeView:
    def __init__(self, engine: FakeEngine) -> None:
        self.engine = engine
        self.listeners: list[Any] = []
        self.loaded: list[str] = []
        self.visible = False
        self.destroyed = False
        self.destroy_count = 0
        self.debugger = FakeDebugger(self)

    def subscribe(self, listener: Any) -> None:
        self.listeners.append(listener)

    async def load_url(self, url: str) -> None:
        if self.engine.load_delay:
            await asyncio.sleep(self.engine.load_delay)
        if self.engine.fail_load:
            raise CommandError(f"Failed to open page target: {self.engine.fail_load}")
        self.loaded.append(url)
        if url in self.engine.broken_urls:
            for listener in self.listeners:
                listener.on_load_failed(url, "net::ERR_NAME_NOT_RESOLVED")
            return
        for listener in self.listeners:
            listener.on_url_changed(url)

    async def execute_script(self, code: str) -> Any:
        if "throw" in code:
            raise ScriptExecutionError("Error: boom")
        if code in self.engine.crash_scripts:
            raise RuntimeError("renderer crashed")
        return self.engine.script_results.get(code)

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    async def destroy(self) -> None:
        self.visible = False
        self.destroyed = True
        self.destroy_count += 1

    def emit_title(self, title: str) -> None:
        for listener in self.listeners:
            listener.on_title_changed(title)


class FakeEngine:
    def __init__(self) -> None:
        self.views: list[FakeView] = []
        self.fail_load: str | None = None
        self.load_delay = 0.0
        self.broken_urls: set[str] = set()
        self.crash_scripts: set[str] = set()
        self.script_results: dict[str, Any] = {
            "2+2": 4,
            "document.body.innerText": "Hello from the page",
        }

    def create_view(self) -> FakeView:
        view = FakeView(self)
        self.views.append(view)
        return view

    def visible_views(self) -> list[FakeView]:
        return [v for v in self.views if v.visible and not v.destroyed]


class _Close:
    def __init__(self, code: int, reason: str = "") -> None:
        self.code = code
        self.reason = reason


class FakeSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.close_code: int | None = None
        self.close_reason = ""
        self.closed_with: tuple[int, str] | None = None

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def __aiter__(self) -> FakeSocket:
        return self

    async def __anext__(self) -> str:
        item = await self.incoming.get()
        if isinstance(item, _Close):
            self.close_code = item.code
            self.close_reason = item.reason
            raise StopAsyncIteration
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self.incoming.put_nowait(_Close(code, reason))

    def feed(self, frame: Any) -> None:
        self.incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def server_close(self, code: int, reason: str = "") -> None:
        self.incoming.put_nowait(_Close(code, reason))


class FakeServer:
    """Connector handing out FakeSockets; ``fail`` simulates a refused connection."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []

    def __call__(self, url: str) -> Any:
        self.urls.append(url)
        return self._open()

    @contextlib.asynccontextmanager
    async def _open(self):  # type: ignore[no-untyped-def]
        if self.fail:
            raise OSError("[Errno 111] Connection refused")
        ws = FakeSocket()
        self.sockets.append(ws)
        yield ws


async def wait_until(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition not met before timeout")


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()
