"""
Browser shell entry point.

Drives an already-running Chromium over its remote-debugging port and exposes it
to the automation server over one persistent websocket.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from .config import ShellConfig
from .context import ShellContext, create_context
from .engine_cdp import CdpEngine
from .status import AutomationStatus

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("shell.browser")

__all__ = ["main", "run_shell"]


def _log_status_change(tab_id: int, status: AutomationStatus | None) -> None:
    """Default overlay observer: the shell has no UI of its own."""
    if status is None:
        logger.info("overlay tab=%s cleared", tab_id)
    else:
        logger.info("overlay tab=%s status=%s message=%s", tab_id, status.status.value, status.message)


async def open_startup_tabs(ctx: ShellContext) -> list[int]:
    opened: list[int] = []
    for url in ctx.config.startup_tabs:
        try:
            opened.append(await ctx.tabs.create_tab(url))
        except Exception as exc:  # noqa: BLE001
            logger.error("startup_tab_failed url=%s error=%s", url, exc)
    if opened:
        ctx.tabs.switch_to(opened[0])
    return opened


async def run_shell(config: ShellConfig, stop: asyncio.Event | None = None) -> None:
    engine = CdpEngine(config)
    ctx = create_context(config, engine, observers=(_log_status_change,))
    stop = stop or asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await open_startup_tabs(ctx)
        if config.token:
            ctx.connection.connect(config.token)
        else:
            logger.info("No credential configured (SHELL_TOKEN), waiting offline")
        await stop.wait()
    finally:
        logger.info("Shutting down")
        await ctx.shutdown()
        await asyncio.to_thread(engine.close)


def main() -> None:
    """Main entry point for the browser shell."""
    config = ShellConfig.from_env()
    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    logger.info(
        "shell server=%s cdp=%s:%s reconnect=%s",
        config.server_url,
        config.cdp_host,
        config.cdp_port,
        config.reconnect_policy,
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_shell(config))


if __name__ == "__main__":
    main()
