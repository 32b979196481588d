"""Connection to the automation server.

State machine::

    disconnected -> connecting -> connected
          ^             |             |
          |             v             v
          +---------- error <---------+

One connection task at a time. A connect request while connecting/connected is
ignored. On open the shell registers with its credential; inbound frames are
routed to the command dispatcher or the status store. Any connection loss
withdraws in-flight automation (debug sessions detached, statuses cleared).
Abnormal closures schedule a single reconnect timer; the auth-rejection close
code stops reconnecting until ``connect()`` is called with a new credential.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .config import ShellConfig
from .debug_bridge import DebugBridge
from .errors import AuthenticationRejected, RemoteConnectionError
from .redaction import redact_frame_for_log
from .server.types import Command, Response
from .status import AutomationStatusStore

logger = logging.getLogger("shell.browser.connection")

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
AUTH_REJECTED = 4001


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


Connector = Callable[[str], Any]
CommandSink = Callable[[Command], Awaitable[Response]]


def websocket_connector(config: ShellConfig) -> Connector:
    """Default connector: a websockets client usable as an async context manager."""

    def _connect(url: str) -> Any:
        return websockets.connect(url, open_timeout=config.open_timeout, ping_interval=None)

    return _connect


def _close_info(exc: ConnectionClosed) -> tuple[int, str]:
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is not None:
        return int(rcvd.code), str(rcvd.reason or "")
    return ABNORMAL_CLOSURE, ""


class RemoteConnection:
    def __init__(
        self,
        config: ShellConfig,
        *,
        dispatch: CommandSink,
        status: AutomationStatusStore,
        debug: DebugBridge,
        connector: Connector | None = None,
    ) -> None:
        self._config = config
        self._dispatch = dispatch
        self._status = status
        self._debug = debug
        self._connector = connector or websocket_connector(config)

        self._state = ConnectionState.DISCONNECTED
        self._token: str | None = None
        self._ws: Any | None = None
        self._task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_attempts = 0
        self._command_tasks: set[asyncio.Task] = set()

        self._user_id: str | None = None
        self._last_close_code: int | None = None
        self._last_error: str | None = None
        self._last_pong_at: float | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def last_close_code(self) -> int | None:
        return self._last_close_code

    @property
    def has_credential(self) -> bool:
        return self._token is not None

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "serverUrl": self._config.server_url,
            "reconnectPolicy": self._config.reconnect_policy,
            "reconnectAttempts": self._reconnect_attempts,
            "reconnectPending": self.reconnect_pending,
            **({"userId": self._user_id} if self._user_id else {}),
            **({"lastCloseCode": self._last_close_code} if self._last_close_code is not None else {}),
            **({"lastError": self._last_error} if self._last_error else {}),
            **({"lastPongAt": self._last_pong_at} if self._last_pong_at else {}),
        }

    def _set_state(self, new_state: ConnectionState) -> None:
        if self._state is not new_state:
            logger.info("State: %s -> %s", self._state.value, new_state.value)
            self._state = new_state

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self, token: str) -> bool:
        """Start connecting with ``token``. Returns False when already connecting/connected."""
        if not token:
            raise ValueError("connect() requires a credential; use disconnect() to log out")
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.info("Already connected or connecting, ignoring connect request")
            return False
        self._token = token
        self._reconnect_attempts = 0
        self._cancel_reconnect()
        self._start()
        return True

    async def disconnect(self) -> None:
        """Intentional disconnect: no reconnect, all automation withdrawn."""
        self._token = None
        self._cancel_reconnect()

        ws, task = self._ws, self._task
        if ws is None and task is None:
            logger.info("No active connection")
        else:
            logger.info("Disconnecting from automation server")

        if ws is not None:
            try:
                await ws.close(code=NORMAL_CLOSURE, reason="User logged out")
            except Exception as exc:  # noqa: BLE001
                logger.warning("Close handshake failed: %s", exc)

        if task is not None and not task.done():
            if ws is None:
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._withdraw_automation()
        self._task = None
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Disconnected")

    async def wait_closed(self) -> None:
        task = self._task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _start(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="shell-remote-connection")

    async def _run(self) -> None:
        token = self._token
        url = self._config.server_url
        code: int | None = None
        reason = ""
        error: RemoteConnectionError | None = None

        logger.info("Connecting to automation server: %s", url)
        try:
            async with self._connector(url) as ws:
                self._ws = ws
                self._reconnect_attempts = 0
                self._last_error = None
                self._set_state(ConnectionState.CONNECTED)
                logger.info("Connection established")

                await self._send_json({"type": "register", "token": token})
                logger.info("Sent registration message")
                self._start_heartbeat()

                try:
                    async for raw in ws:
                        self._on_raw(raw)
                except ConnectionClosed as exc:
                    code, reason = _close_info(exc)
                else:
                    code = getattr(ws, "close_code", None)
                    reason = str(getattr(ws, "close_reason", "") or "")
        except ConnectionClosed as exc:
            code, reason = _close_info(exc)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = RemoteConnectionError(str(exc) or type(exc).__name__)
        finally:
            self._ws = None
            self._stop_heartbeat()

        await self._on_closed(code, reason, error)

    async def _on_closed(self, code: int | None, reason: str, error: RemoteConnectionError | None) -> None:
        self._last_close_code = code
        intentional = self._token is None

        if error is not None:
            self._last_error = str(error)
            logger.error("Connection failed: %s", error)
        else:
            logger.info("Connection closed: code=%s reason=%s", code, reason)

        if not intentional:
            self._set_state(ConnectionState.ERROR)
        await self._withdraw_automation()
        if self._task is not asyncio.current_task():
            # A newer connection started during cleanup; it owns the state now.
            return

        if intentional:
            self._set_state(ConnectionState.DISCONNECTED)
            return

        if code == AUTH_REJECTED:
            rejected = AuthenticationRejected(code, reason)
            self._last_error = str(rejected)
            self._token = None
            logger.error("%s - not reconnecting", rejected)
            return

        self._set_state(ConnectionState.DISCONNECTED)
        if code == NORMAL_CLOSURE:
            return
        self._schedule_reconnect()

    async def _withdraw_automation(self) -> None:
        try:
            await self._debug.detach_all()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to detach debug sessions")
        self._status.clear_all()

    # ─────────────────────────────────────────────────────────────────────────
    # Reconnect
    # ─────────────────────────────────────────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        if self._token is None:
            return
        if self._reconnect_handle is not None:
            return
        attempt = self._reconnect_attempts + 1
        if not self._config.reconnect_allowed(attempt):
            logger.error("Max reconnection attempts reached (%d). Giving up.", self._reconnect_attempts)
            return
        self._reconnect_attempts = attempt
        delay = self._config.reconnect_delay_for(attempt)
        logger.info("Reconnecting in %.1fs (attempt %d)", delay, attempt)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._reconnect_now)

    def _reconnect_now(self) -> None:
        self._reconnect_handle = None
        if self._token is None:
            return
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        self._start()

    def _cancel_reconnect(self) -> None:
        handle, self._reconnect_handle = self._reconnect_handle, None
        if handle is not None:
            handle.cancel()

    # ─────────────────────────────────────────────────────────────────────────
    # Heartbeat
    # ─────────────────────────────────────────────────────────────────────────

    def _start_heartbeat(self) -> None:
        interval = self._config.heartbeat_interval
        if interval <= 0 or self._heartbeat_task is not None:
            return

        async def _beat() -> None:
            while True:
                await asyncio.sleep(interval)
                if not await self._send_json({"type": "ping"}):
                    return

        self._heartbeat_task = asyncio.get_running_loop().create_task(_beat(), name="shell-heartbeat")

    def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None:
            task.cancel()

    # ─────────────────────────────────────────────────────────────────────────
    # Frames
    # ─────────────────────────────────────────────────────────────────────────

    def _on_raw(self, raw: Any) -> None:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to parse message: %s", exc)
            return
        if not isinstance(frame, dict):
            logger.warning("Ignoring non-object frame")
            return
        self.handle_frame(frame)

    def handle_frame(self, frame: dict[str, Any]) -> asyncio.Task | None:
        """Route one decoded inbound frame. Returns the command task, if one was started."""
        logger.debug("Received: %s", redact_frame_for_log(frame))
        mtype = frame.get("type")

        if mtype == "registered":
            self._user_id = str(frame.get("user_id")) if frame.get("user_id") is not None else None
            logger.info("Registration confirmed (user_id=%s)", self._user_id)
            return None
        if mtype == "pong":
            self._last_pong_at = time.time()
            return None
        if mtype == "error":
            logger.error("Server error: %s", frame.get("error"))
            return None
        if mtype == "animation":
            self._status.apply_animation(frame)
            return None

        action = frame.get("action")
        if not isinstance(action, str) or not action:
            logger.warning("Message missing action field: %s", redact_frame_for_log(frame))
            return None

        command = Command.from_frame(frame)
        logger.info("Executing %s (id=%s)", command.action, command.id)
        task = asyncio.get_running_loop().create_task(self._run_command(command))
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)
        return task

    async def _run_command(self, command: Command) -> None:
        response = await self._dispatch(command)
        if command.id is None:
            return
        if await self._send_json(response.to_frame()):
            if response.is_error:
                logger.warning("Sent error for %s: %s", command.id, response.error)
            else:
                logger.debug("Sent result for %s", command.id)

    async def send_stop_automation(self, tab_id: int) -> bool:
        """Ask the server to stop the agent driving ``tab_id`` (overlay stop button)."""
        logger.info("Requesting stop for tab %s", tab_id)
        return await self._send_json({"type": "stop_automation", "tab_id": int(tab_id)})

    async def _send_json(self, payload: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None or self._state is not ConnectionState.CONNECTED:
            logger.error("Cannot send %s - not connected", payload.get("type") or payload.get("id"))
            return False
        try:
            await ws.send(json.dumps(payload, ensure_ascii=False))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Send failed: %s", exc)
            return False
        return True


__all__ = [
    "ABNORMAL_CLOSURE",
    "AUTH_REJECTED",
    "NORMAL_CLOSURE",
    "ConnectionState",
    "RemoteConnection",
    "websocket_connector",
]
