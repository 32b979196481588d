"""
Wire-level command/response types and action specifications.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..context import ShellContext


@dataclass(slots=True)
class Command:
    """Decoded inbound command. ``id`` is ``None`` for fire-and-forget commands."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)
    id: str | None = None

    @classmethod
    def from_frame(cls, frame: dict[str, Any]) -> Command:
        raw_id = frame.get("id")
        params = frame.get("params")
        return cls(
            action=str(frame.get("action") or ""),
            params=params if isinstance(params, dict) else {},
            id=raw_id if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) else None,
        )


@dataclass(slots=True)
class Response:
    """Correlated outcome of a command."""

    id: str | None
    result: Any = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, command_id: str | None, result: Any) -> Response:
        return cls(id=command_id, result=result)

    @classmethod
    def fail(cls, command_id: str | None, message: str) -> Response:
        return cls(id=command_id, error=message or "Unknown error")

    def to_frame(self) -> dict[str, Any]:
        if self.error is not None:
            return {"id": self.id, "error": self.error}
        return {"id": self.id, "result": self.result}


@dataclass(slots=True, frozen=True)
class ParamSpec:
    """One declared command parameter."""

    name: str
    types: tuple[type, ...]
    required: bool = True

    @property
    def expected(self) -> str:
        return " or ".join(t.__name__ for t in self.types)

    def accepts(self, value: Any) -> bool:
        # bool is an int subclass; never accept it where a number is declared.
        if isinstance(value, bool) and bool not in self.types:
            return False
        return isinstance(value, self.types)


ActionHandler = Callable[["ShellContext", dict[str, Any]], Awaitable[Any]]


@dataclass(slots=True, frozen=True)
class ActionSpec:
    """Specification for a registered action."""

    name: str
    handler: ActionHandler
    params: tuple[ParamSpec, ...] = ()
    family: str = "tabs"
