"""Error kinds raised by the control plane.

Command-level errors (``CommandError`` subclasses) are caught at the dispatcher
boundary and turned into ``{"id": ..., "error": ...}`` responses. Connection-level
errors drive the RemoteConnection state machine.
"""

from __future__ import annotations

from typing import Any


class ShellError(Exception):
    """Base class for every control-plane error."""

    kind = "ShellError"

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "kind": self.kind, "message": str(self)}


class CommandError(ShellError):
    kind = "CommandError"


class UnknownTab(CommandError):
    kind = "UnknownTab"

    def __init__(self, tab_id: Any) -> None:
        super().__init__(f"Tab {tab_id} not found")
        self.tab_id = tab_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "tab_id": self.tab_id}


class MissingParameter(CommandError):
    kind = "MissingParameter"

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing required parameter: {name}")
        self.name = name


class InvalidParameter(CommandError):
    kind = "InvalidParameter"

    def __init__(self, name: str, expected: str, value: Any) -> None:
        super().__init__(f"Invalid parameter {name}: expected {expected}, got {type(value).__name__}")
        self.name = name


class UnknownAction(CommandError):
    kind = "UnknownAction"

    def __init__(self, action: str) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class ScriptExecutionError(CommandError):
    """Page-context code threw, or the engine reported a fault while running it."""

    kind = "ScriptExecutionError"


class DebugChannelError(CommandError):
    """The engine debugging channel rejected or failed a call."""

    kind = "DebugChannelError"


class RemoteConnectionError(ShellError):
    """Socket-level failure on the automation server connection."""

    kind = "ConnectionError"


class AuthenticationRejected(RemoteConnectionError):
    kind = "AuthenticationRejected"

    def __init__(self, code: int, reason: str = "") -> None:
        super().__init__(f"Authentication rejected by server (code={code}{', ' + reason if reason else ''})")
        self.code = code
        self.reason = reason


__all__ = [
    "AuthenticationRejected",
    "CommandError",
    "DebugChannelError",
    "InvalidParameter",
    "MissingParameter",
    "RemoteConnectionError",
    "ScriptExecutionError",
    "ShellError",
    "UnknownAction",
    "UnknownTab",
]
