"""Per-tab automation status.

Single source of truth for the overlay: which tabs an external agent is
currently driving, and how the last run ended. Observers are called
synchronously after every mutation with the tab's new state (``None`` once the
entry is removed).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger("shell.browser.status")


class Status(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class AutomationStatus:
    tab_id: int
    status: Status
    message: str | None = None

    @property
    def visible(self) -> bool:
        """Whether the overlay should be shown for this tab."""
        return self.status is Status.IN_PROGRESS

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"tab_id": self.tab_id, "status": self.status.value, "visible": self.visible}
        if self.message is not None:
            out["message"] = self.message
        return out


StatusObserver = Callable[[int, AutomationStatus | None], None]

_ANIMATION_STATUS = {
    "in_progress": Status.IN_PROGRESS,
    "success": Status.SUCCESS,
    "failed": Status.FAILED,
}


class AutomationStatusStore:
    def __init__(
        self,
        observers: Iterable[StatusObserver] = (),
        *,
        tab_exists: Callable[[int], bool] | None = None,
    ) -> None:
        self._entries: dict[int, AutomationStatus] = {}
        self._observers: list[StatusObserver] = list(observers)
        self._tab_exists = tab_exists

    def add_observer(self, observer: StatusObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: StatusObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def set_tab_exists(self, predicate: Callable[[int], bool] | None) -> None:
        self._tab_exists = predicate

    def set_status(self, tab_id: int, status: Status | str, message: str | None = None) -> AutomationStatus:
        entry = AutomationStatus(tab_id=int(tab_id), status=Status(status), message=message)
        self._entries[entry.tab_id] = entry
        self._notify(entry.tab_id, entry)
        return entry

    def update_message(self, tab_id: int, message: str | None) -> AutomationStatus:
        current = self._entries.get(int(tab_id))
        status = current.status if current is not None else Status.IN_PROGRESS
        return self.set_status(tab_id, status, message)

    def get_status(self, tab_id: int) -> AutomationStatus | None:
        return self._entries.get(int(tab_id))

    def clear(self, tab_id: int) -> bool:
        entry = self._entries.pop(int(tab_id), None)
        if entry is None:
            return False
        logger.debug("Cleared status for tab %s", tab_id)
        self._notify(int(tab_id), None)
        return True

    def clear_all(self) -> int:
        cleared = list(self._entries)
        self._entries.clear()
        for tab_id in cleared:
            self._notify(tab_id, None)
        if cleared:
            logger.info("Cleared automation status for %d tab(s)", len(cleared))
        return len(cleared)

    def snapshot(self) -> dict[int, AutomationStatus]:
        return dict(self._entries)

    def apply_animation(self, frame: dict[str, Any]) -> AutomationStatus | None:
        """Apply an inbound ``{"type": "animation", ...}`` frame."""
        action = frame.get("action")
        tab_id = frame.get("tab_id")
        if not isinstance(action, str) or not isinstance(tab_id, int) or isinstance(tab_id, bool):
            logger.warning("Invalid animation message: %s", frame)
            return None
        if self._tab_exists is not None and not self._tab_exists(tab_id):
            logger.warning("Animation for unknown tab %s ignored", tab_id)
            return None

        message = frame.get("message")
        message = message if isinstance(message, str) else None

        if action == "update":
            return self.update_message(tab_id, message)
        status = _ANIMATION_STATUS.get(action)
        if status is None:
            logger.warning("Unknown animation action: %s", action)
            return None
        logger.info("Tab %s automation %s", tab_id, status.value)
        return self.set_status(tab_id, status, message)

    def _notify(self, tab_id: int, entry: AutomationStatus | None) -> None:
        for observer in list(self._observers):
            try:
                observer(tab_id, entry)
            except Exception:  # noqa: BLE001
                logger.exception("Status observer failed for tab %s", tab_id)


__all__ = ["AutomationStatus", "AutomationStatusStore", "Status", "StatusObserver"]
