"""
Debugging-protocol pass-through handler.

One generic ``cdp`` action relays any method; the set of useful CDP methods can
grow without touching the command surface.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..types import ActionSpec, ParamSpec

if TYPE_CHECKING:
    from ...context import ShellContext


async def handle_cdp(ctx: ShellContext, params: dict[str, Any]) -> Any:
    return await ctx.debug.send(params["tab_id"], params["method"], params.get("args") or {})


DEBUG_ACTIONS: dict[str, ActionSpec] = {
    "cdp": ActionSpec(
        "cdp",
        handle_cdp,
        (
            ParamSpec("tab_id", (int,)),
            ParamSpec("method", (str,)),
            ParamSpec("args", (dict,), required=False),
        ),
        family="debug",
    ),
}
