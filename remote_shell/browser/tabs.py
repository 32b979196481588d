"""Tab registry.

Owns the live tabs and their engine views, hands out process-unique integer ids
and keeps at most one view visible. Every operation addressed to an unknown id
raises ``UnknownTab``.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .engine import Engine, PageView
from .errors import ScriptExecutionError, UnknownTab

logger = logging.getLogger("shell.browser.tabs")

NO_TAB = -1

TabClosedListener = Callable[[int], "Awaitable[None] | None"]


@dataclass
class Tab:
    id: int
    view: PageView
    url: str
    title: str | None = None
    visible: bool = False
    load_error: str | None = None
    closing: bool = False

    def info(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url, "title": self.title}


class _TabEventListener:
    """Translates engine notifications into Tab mutations."""

    def __init__(self, tab: Tab) -> None:
        self._tab = tab

    def on_title_changed(self, title: str) -> None:
        self._tab.title = title
        logger.debug("Tab %s title: %s", self._tab.id, title)

    def on_url_changed(self, url: str) -> None:
        self._tab.url = url
        self._tab.load_error = None
        logger.debug("Tab %s navigated to: %s", self._tab.id, url)

    def on_load_failed(self, url: str, error: str) -> None:
        self._tab.load_error = error
        logger.error("Tab %s failed to load %s: %s", self._tab.id, url, error)


class TabRegistry:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._tabs: dict[int, Tab] = {}
        self._current_tab_id = NO_TAB
        self._next_id = 0
        self._close_listeners: list[TabClosedListener] = []

    def on_tab_closed(self, listener: TabClosedListener) -> None:
        """Register a callback run (and awaited, if async) before a tab's view is destroyed."""
        self._close_listeners.append(listener)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def create_tab(self, url: str) -> int:
        """Create a tab and start loading ``url``. The new view is not shown."""
        tab_id = self._next_id
        self._next_id += 1

        view = self._engine.create_view()
        tab = Tab(id=tab_id, view=view, url=url)
        view.subscribe(_TabEventListener(tab))
        self._tabs[tab_id] = tab
        logger.info("Creating tab %s: %s", tab_id, url)

        try:
            await view.load_url(url)
        except Exception:
            # A concurrent close_tab already owns the teardown.
            if self._tabs.get(tab_id) is tab and not tab.closing:
                self._tabs.pop(tab_id, None)
                await view.destroy()
            raise
        return tab_id

    def switch_to(self, tab_id: int) -> None:
        tab = self._live_tab(tab_id)
        for other in self._tabs.values():
            if other.id != tab.id and other.visible:
                other.view.hide()
                other.visible = False
        tab.view.show()
        tab.visible = True
        self._current_tab_id = tab.id
        logger.info("Switched to tab %s: %s", tab.id, tab.url)

    async def close_tab(self, tab_id: int) -> None:
        tab = self._live_tab(tab_id)
        tab.closing = True

        for listener in list(self._close_listeners):
            try:
                result = listener(tab.id)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("Tab close listener failed for tab %s", tab.id)

        self._tabs.pop(tab.id, None)
        if tab.visible:
            tab.view.hide()
            tab.visible = False
        try:
            await tab.view.destroy()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to destroy view for tab %s", tab.id)
        logger.info("Closed tab %s", tab.id)

        if self._current_tab_id == tab.id:
            self._current_tab_id = NO_TAB
            remaining = [t for t in self._tabs.values() if not t.closing]
            if remaining:
                self.switch_to(min(t.id for t in remaining))

    async def destroy_all(self) -> None:
        logger.info("Destroying all tabs")
        for tab_id in sorted(self._tabs):
            tab = self._tabs.get(tab_id)
            if tab is not None and not tab.closing:
                await self.close_tab(tab_id)
        self._current_tab_id = NO_TAB

    # ─────────────────────────────────────────────────────────────────────────
    # Page operations
    # ─────────────────────────────────────────────────────────────────────────

    async def execute_script(self, tab_id: int, code: str) -> Any:
        tab = self.get_tab(tab_id)
        logger.debug("Executing code in tab %s", tab.id)
        try:
            return await tab.view.execute_script(code)
        except ScriptExecutionError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ScriptExecutionError(str(exc)) from exc

    async def navigate(self, tab_id: int, url: str) -> None:
        tab = self.get_tab(tab_id)
        tab.url = url
        await tab.view.load_url(url)

    # ─────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────

    def get_tab(self, tab_id: int) -> Tab:
        tab = self._tabs.get(tab_id) if isinstance(tab_id, int) and not isinstance(tab_id, bool) else None
        if tab is None:
            raise UnknownTab(tab_id)
        return tab

    def _live_tab(self, tab_id: int) -> Tab:
        tab = self.get_tab(tab_id)
        if tab.closing:
            raise UnknownTab(tab_id)
        return tab

    def has_tab(self, tab_id: int) -> bool:
        return tab_id in self._tabs

    def tab_ids(self) -> list[int]:
        return sorted(self._tabs)

    def visible_tab_ids(self) -> list[int]:
        return [tab_id for tab_id in sorted(self._tabs) if self._tabs[tab_id].visible]

    def get_current_tab_id(self) -> int:
        return self._current_tab_id

    def get_tab_url(self, tab_id: int) -> str:
        return self.get_tab(tab_id).url

    def get_tab_info(self) -> list[dict[str, Any]]:
        return [self._tabs[tab_id].info() for tab_id in sorted(self._tabs)]

    def __len__(self) -> int:
        return len(self._tabs)


__all__ = ["NO_TAB", "Tab", "TabClosedListener", "TabRegistry"]
