"""Command dispatch package.

Keep this package import light: importing `remote_shell.browser.server.*` should not
eagerly pull every handler module. Handlers reference the context only under
`TYPE_CHECKING`; the handler table is loaded on first `create_default_registry()`.
"""

from __future__ import annotations

from typing import Any

__all__ = ["CommandRegistry", "create_default_registry"]


def __getattr__(name: str) -> Any:
    if name in {"CommandRegistry", "create_default_registry"}:
        from .registry import CommandRegistry, create_default_registry

        return {"CommandRegistry": CommandRegistry, "create_default_registry": create_default_registry}[name]
    raise AttributeError(name)
