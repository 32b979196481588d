"""Credential entry point.

Whatever obtains the credential (login UI, env, IPC) hands it over here. A
``None`` credential means the user logged out.
"""

from __future__ import annotations

import logging

from .remote_connection import RemoteConnection

logger = logging.getLogger("shell.browser.auth")


async def handle_auth_token(connection: RemoteConnection, token: str | None) -> bool:
    """Connect with ``token``, or disconnect when it is ``None``/empty.

    Returns True when a connection attempt was started.
    """
    if not token:
        logger.info("Credential cleared, disconnecting")
        await connection.disconnect()
        return False
    logger.info("Credential received, connecting")
    return connection.connect(token)


__all__ = ["handle_auth_token"]
