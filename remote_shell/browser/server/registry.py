"""
Action registry with dispatch table for inbound commands.

Each action family (tabs, page, debug) registers its own specs; the registry
validates parameters, awaits the handler and wraps the outcome in a Response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import CommandError, InvalidParameter, MissingParameter, UnknownAction
from .types import ActionHandler, ActionSpec, Command, ParamSpec, Response

if TYPE_CHECKING:
    from ..context import ShellContext

logger = logging.getLogger("shell.browser.registry")


class CommandRegistry:
    """Registry for action handlers."""

    def __init__(self) -> None:
        self._actions: dict[str, ActionSpec] = {}

    def register(
        self,
        name: str,
        handler: ActionHandler,
        params: tuple[ParamSpec, ...] = (),
        *,
        family: str = "tabs",
    ) -> None:
        """Register an action handler."""
        self._actions[name] = ActionSpec(name=name, handler=handler, params=params, family=family)

    def register_many(self, specs: dict[str, ActionSpec]) -> None:
        """Register multiple specs at once."""
        self._actions.update(specs)

    def get(self, name: str) -> ActionSpec | None:
        return self._actions.get(name)

    def has(self, name: str) -> bool:
        return name in self._actions

    @property
    def action_names(self) -> list[str]:
        return list(self._actions.keys())

    def validate(self, spec: ActionSpec, params: dict[str, Any]) -> None:
        for param in spec.params:
            value = params.get(param.name)
            if value is None:
                if param.required:
                    raise MissingParameter(param.name)
                continue
            if not param.accepts(value):
                raise InvalidParameter(param.name, param.expected, value)

    async def dispatch(self, command: Command, ctx: ShellContext) -> Response:
        """Run one command; every failure becomes an error response."""
        try:
            spec = self._actions.get(command.action)
            if spec is None:
                raise UnknownAction(command.action)
            self.validate(spec, command.params)
            result = await spec.handler(ctx, command.params)
        except CommandError as exc:
            logger.warning("Command %s (%s) failed: %s", command.id, command.action, exc)
            return Response.fail(command.id, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Command %s (%s) raised", command.id, command.action)
            return Response.fail(command.id, str(exc) or type(exc).__name__)
        logger.debug("Command %s (%s) completed", command.id, command.action)
        return Response.ok(command.id, result)


def create_default_registry() -> CommandRegistry:
    """Create registry with every action family registered."""
    from .handlers import ALL_ACTIONS

    registry = CommandRegistry()
    registry.register_many(ALL_ACTIONS)
    return registry


__all__ = ["CommandRegistry", "create_default_registry"]
