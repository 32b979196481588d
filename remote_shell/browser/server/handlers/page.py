"""
Page-context action handlers (navigate, run scripts, read url/text).

``tab_id`` is optional for the read/script actions and defaults to the current tab.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...errors import UnknownTab
from ..types import ActionSpec, ParamSpec

if TYPE_CHECKING:
    from ...context import ShellContext


def _target_tab(ctx: ShellContext, params: dict[str, Any]) -> int:
    tab_id = params.get("tab_id")
    if tab_id is None:
        tab_id = ctx.tabs.get_current_tab_id()
    if not ctx.tabs.has_tab(tab_id):
        raise UnknownTab(tab_id)
    return tab_id


async def handle_navigate(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    await ctx.tabs.navigate(params["tab_id"], params["url"])
    return {}


async def handle_execute_script(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    value = await ctx.tabs.execute_script(_target_tab(ctx, params), params["code"])
    return {"value": value}


async def handle_get_current_url(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    return {"url": ctx.tabs.get_tab_url(_target_tab(ctx, params))}


async def handle_get_page_text(ctx: ShellContext, params: dict[str, Any]) -> dict[str, Any]:
    text = await ctx.tabs.execute_script(_target_tab(ctx, params), "document.body.innerText")
    return {"text": text or ""}


OPTIONAL_TAB_ID = ParamSpec("tab_id", (int,), required=False)

PAGE_ACTIONS: dict[str, ActionSpec] = {
    "navigate": ActionSpec(
        "navigate",
        handle_navigate,
        (ParamSpec("tab_id", (int,)), ParamSpec("url", (str,))),
        family="page",
    ),
    "executeScript": ActionSpec(
        "executeScript",
        handle_execute_script,
        (ParamSpec("code", (str,)), OPTIONAL_TAB_ID),
        family="page",
    ),
    "getCurrentUrl": ActionSpec("getCurrentUrl", handle_get_current_url, (OPTIONAL_TAB_ID,), family="page"),
    "getPageText": ActionSpec("getPageText", handle_get_page_text, (OPTIONAL_TAB_ID,), family="page"),
}
