"""Relay for opaque debugging-protocol calls.

The bridge does not know any CDP method: it attaches a per-tab session on demand
and forwards ``(method, params)`` pairs verbatim. Commands for the same tab are
queued behind a per-tab lock because a debugging session handles one request at
a time; commands for different tabs run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import DebugChannelError
from .tabs import TabRegistry

logger = logging.getLogger("shell.browser.debug")


class DebugBridge:
    def __init__(self, registry: TabRegistry) -> None:
        self._registry = registry
        self._attached: set[int] = set()
        self._locks: dict[int, asyncio.Lock] = {}

    def is_attached(self, tab_id: int) -> bool:
        return tab_id in self._attached

    def attached_tab_ids(self) -> list[int]:
        return sorted(self._attached)

    def _lock_for(self, tab_id: int) -> asyncio.Lock:
        lock = self._locks.get(tab_id)
        if lock is None:
            self._prune_locks()
            lock = asyncio.Lock()
            self._locks[tab_id] = lock
        return lock

    def _prune_locks(self) -> None:
        # Tab ids are never reused, so a closed tab's lock can go even if a waiter still holds it.
        for tab_id in [t for t in self._locks if not self._registry.has_tab(t)]:
            del self._locks[tab_id]

    async def ensure_attached(self, tab_id: int) -> None:
        if tab_id in self._attached:
            return
        tab = self._registry.get_tab(tab_id)
        try:
            await tab.view.debugger.attach()
        except DebugChannelError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise DebugChannelError(f"Debugger attach failed: {exc}") from exc
        self._attached.add(tab_id)
        logger.info("Attached debugger to tab %s", tab_id)

    async def send(self, tab_id: int, method: str, params: dict[str, Any] | None = None) -> Any:
        # Resolve first so an unknown tab is reported as such, not as a channel error.
        self._registry.get_tab(tab_id)
        async with self._lock_for(tab_id):
            await self.ensure_attached(tab_id)
            tab = self._registry.get_tab(tab_id)
            logger.debug("CDP %s -> tab %s", method, tab_id)
            try:
                return await tab.view.debugger.send_command(method, params or {})
            except DebugChannelError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise DebugChannelError(str(exc)) from exc

    async def detach(self, tab_id: int) -> None:
        # The per-tab lock stays: a queued send must keep serializing with later ones.
        if tab_id not in self._attached:
            return
        try:
            if self._registry.has_tab(tab_id):
                await self._registry.get_tab(tab_id).view.debugger.detach()
                logger.info("Detached debugger from tab %s", tab_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Debugger detach failed for tab %s: %s", tab_id, exc)
        finally:
            self._attached.discard(tab_id)

    async def detach_all(self) -> None:
        for tab_id in sorted(self._attached):
            await self.detach(tab_id)


__all__ = ["DebugBridge"]
