"""
Action handlers organized by capability family.

Each handler is an async function ``(ctx, params) -> result``. Families are
independent: tab actions only touch the TabRegistry, debug actions only the
DebugBridge.
"""

from ..types import ActionSpec
from .debug import DEBUG_ACTIONS
from .page import PAGE_ACTIONS
from .tabs import TAB_ACTIONS

ALL_ACTIONS: dict[str, ActionSpec] = {
    **TAB_ACTIONS,
    **PAGE_ACTIONS,
    **DEBUG_ACTIONS,
}

__all__ = [
    "ALL_ACTIONS",
    "DEBUG_ACTIONS",
    "PAGE_ACTIONS",
    "TAB_ACTIONS",
]
