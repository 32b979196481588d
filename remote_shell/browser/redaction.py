"""Redaction utilities for logging wire frames.

Frames carry the credential (``register``) and arbitrary page data (script
source, CDP payloads). Logs get a shape summary instead of the raw values.
"""

from __future__ import annotations

from typing import Any

_SENSITIVE_SUBSTRINGS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "jwt",
    "bearer",
    "api_key",
    "apikey",
)

_SENSITIVE_EXACT = {"auth"}

_BULKY_KEYS = {"code", "args", "result", "text", "value"}


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    if not k:
        return False
    if k in _SENSITIVE_EXACT:
        return True
    return any(s in k for s in _SENSITIVE_SUBSTRINGS)


def _redacted_summary(value: Any) -> str:
    if value is None:
        return "<redacted>"
    if isinstance(value, (bytes, bytearray)):
        return f"<redacted bytes len={len(value)}>"
    if isinstance(value, str):
        return f"<redacted str len={len(value)}>"
    if isinstance(value, (list, tuple, set)):
        return f"<redacted list len={len(value)}>"
    if isinstance(value, dict):
        return f"<redacted dict keys={len(value)}>"
    return "<redacted>"


def _redact_any(value: Any, *, key: str | None) -> Any:
    lk = (key or "").lower()
    if lk and (is_sensitive_key(lk) or lk in _BULKY_KEYS):
        return _redacted_summary(value)
    if isinstance(value, dict):
        return {k: _redact_any(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact_any(v, key=key) for v in value]
    return value


def redact_frame_for_log(frame: Any) -> Any:
    """Return a copy of a wire frame safe to write to logs."""
    return _redact_any(frame, key=None)


__all__ = ["is_sensitive_key", "redact_frame_for_log"]
