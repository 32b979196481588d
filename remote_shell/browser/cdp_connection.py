"""Blocking Chrome DevTools Protocol transport.

- CdpConnection: one websocket-client connection, request/response by id.
- CdpEventBus: background reader thread that forwards CDP events to a callback.

Both are synchronous; async callers go through ``asyncio.to_thread``.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any
from urllib.error import URLError
from urllib.request import urlopen

import websocket

logger = logging.getLogger("shell.browser.cdp")


class CdpClientError(Exception):
    """CDP transport or protocol error (``error`` holds the raw CDP error object, if any)."""

    def __init__(self, message: str, *, error: Any = None) -> None:
        super().__init__(message)
        self.error = error


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from a DevTools HTTP endpoint."""
    try:
        with urlopen(url, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (URLError, OSError, ValueError) as e:
        raise CdpClientError(str(e)) from e


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout)
        except Exception as exc:  # noqa: BLE001
            raise CdpClientError(f"CDP connect failed: {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        self._lock = threading.Lock()

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        with self._lock:
            msg_id = self._next_id
            self._next_id += 1

            msg: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                msg["params"] = params

            try:
                self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
                self.ws.send(json.dumps(msg))
            except Exception as exc:  # noqa: BLE001
                raise CdpClientError(str(exc)) from exc

            return self._recv_until(msg_id)

    def _recv_until(self, expected_id: int) -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise CdpClientError("CDP response timed out")

            # websocket-client `recv()` blocks indefinitely unless a socket timeout is set.
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                msg = str(exc).lower()
                if isinstance(exc, TimeoutError) or "timed out" in msg:
                    continue
                raise CdpClientError(str(exc)) from exc

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            if isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data:
                # Events on a command connection are not consumed; the event bus has its own socket.
                continue

            if isinstance(data, dict) and data.get("id") == expected_id:
                if "error" in data:
                    err = data["error"]
                    message = err.get("message") if isinstance(err, dict) else None
                    raise CdpClientError(str(message or err), error=err)
                return data.get("result", {})

    def abort(self) -> None:
        """Hard break of the underlying socket (websocket-client close() can block)."""
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()

    def close(self) -> None:
        self.abort()


class CdpEventBus:
    """Background CDP event reader.

    Opens its own connection to ``ws_url``, issues ``enable`` commands once per
    (re)connect and calls ``on_event`` for every CDP event. Reconnects with a
    short backoff until stopped.
    """

    def __init__(
        self,
        *,
        ws_url: str,
        on_event: Callable[[dict[str, Any]], None],
        enable: list[dict[str, Any]] | None = None,
        name: str = "cdp-event-bus",
    ) -> None:
        self.ws_url = ws_url
        self._on_event = on_event
        self._enable = list(enable or [])
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._conn: CdpConnection | None = None

    def start(self) -> None:
        if self._thread.is_alive():
            return
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        conn = self._conn
        if conn is not None:
            conn.close()

    def _run(self) -> None:
        backoff = 0.2
        while not self._stop.is_set():
            conn: CdpConnection | None = None
            try:
                conn = CdpConnection(self.ws_url, timeout=5.0)
                self._conn = conn
                for cmd in self._enable:
                    conn.send(cmd["method"], cmd.get("params"))
                backoff = 0.2

                while not self._stop.is_set():
                    try:
                        conn.ws.settimeout(0.5)
                        raw = conn.ws.recv()
                    except Exception as exc:  # noqa: BLE001
                        msg = str(exc).lower()
                        if isinstance(exc, TimeoutError) or "timed out" in msg:
                            continue
                        raise

                    try:
                        data = json.loads(raw)
                    except ValueError:
                        continue

                    if isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data:
                        try:
                            self._on_event(data)
                        except Exception:  # noqa: BLE001
                            logger.exception("CDP event handler failed")
            except Exception as exc:  # noqa: BLE001
                logger.debug("CDP event bus reconnecting: %s", exc)
            finally:
                if conn is not None:
                    conn.close()
                self._conn = None

            if self._stop.is_set():
                break

            time.sleep(backoff)
            backoff = min(backoff * 1.5, 2.0)


__all__ = ["CdpClientError", "CdpConnection", "CdpEventBus", "http_get_json"]
