"""
Tab lifecycle action handlers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..types import ActionSpec, ParamSpec

if TYPE_CHECKING:
    from ...context import ShellContext

logger = logging.getLogger("shell.browser.handlers.tabs")


async def handle_new_tab(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    tab_id = await ctx.tabs.create_tab(params["url"])
    # Auto-focus unless explicitly disabled.
    if params.get("focus") is not False:
        ctx.tabs.switch_to(tab_id)
    logger.info("Created tab %s", tab_id)
    return {"tabId": tab_id}


async def handle_switch_tab(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    ctx.tabs.switch_to(params["tab_id"])
    return {}


async def handle_close_tab(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    await ctx.tabs.close_tab(params["tab_id"])
    return {}


async def handle_get_all_tabs(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    tabs = ctx.tabs.get_tab_info()
    logger.debug("Retrieved %d tabs", len(tabs))
    return {"tabs": tabs, "current_tab_id": ctx.tabs.get_current_tab_id()}


TAB_ID = ParamSpec("tab_id", (int,))

TAB_ACTIONS: dict[str, ActionSpec] = {
    "newTab": ActionSpec(
        "newTab",
        handle_new_tab,
        (ParamSpec("url", (str,)), ParamSpec("focus", (bool,), required=False)),
    ),
    "switchTab": ActionSpec("switchTab", handle_switch_tab, (TAB_ID,)),
    "closeTab": ActionSpec("closeTab", handle_close_tab, (TAB_ID,)),
    "getAllTabs": ActionSpec("getAllTabs", handle_get_all_tabs),
}
