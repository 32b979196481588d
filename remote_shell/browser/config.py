from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_SERVER_URL = "ws://127.0.0.1:8000/browser/ws"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ShellConfig:
    server_url: str = DEFAULT_SERVER_URL
    token: str | None = None
    debug: bool = False
    startup_tabs: list[str] = field(default_factory=lambda: ["about:blank"])
    reconnect_policy: str = "backoff"
    reconnect_delay: float = 5.0
    reconnect_max_delay: float = 60.0
    reconnect_max_attempts: int = 10
    heartbeat_interval: float = 0.0
    open_timeout: float = 10.0
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9222
    cdp_timeout: float = 10.0

    @staticmethod
    def normalize_policy(raw: str | None) -> str:
        policy = (raw or "").strip().lower()
        if policy in {"fixed", "interval", "constant"}:
            return "fixed"
        if policy in {"backoff", "exponential", "exp", ""}:
            return "backoff"
        return "backoff"

    @classmethod
    def from_env(cls) -> ShellConfig:
        tabs_raw = os.environ.get("SHELL_STARTUP_TABS", "about:blank")
        startup_tabs = [url.strip() for url in tabs_raw.split(",") if url.strip()]
        token = (os.environ.get("SHELL_TOKEN") or "").strip() or None
        return cls(
            server_url=os.environ.get("SHELL_SERVER_URL", DEFAULT_SERVER_URL),
            token=token,
            debug=_env_flag("SHELL_DEBUG"),
            startup_tabs=startup_tabs,
            reconnect_policy=cls.normalize_policy(os.environ.get("SHELL_RECONNECT_POLICY")),
            reconnect_delay=max(0.0, _env_float("SHELL_RECONNECT_DELAY", 5.0)),
            reconnect_max_delay=max(0.0, _env_float("SHELL_RECONNECT_MAX_DELAY", 60.0)),
            reconnect_max_attempts=max(0, _env_int("SHELL_RECONNECT_MAX_ATTEMPTS", 10)),
            heartbeat_interval=max(0.0, _env_float("SHELL_HEARTBEAT_INTERVAL", 0.0)),
            open_timeout=max(0.5, _env_float("SHELL_OPEN_TIMEOUT", 10.0)),
            cdp_host=os.environ.get("SHELL_CDP_HOST", "127.0.0.1"),
            cdp_port=_env_int("SHELL_CDP_PORT", 9222),
            cdp_timeout=max(0.5, _env_float("SHELL_CDP_TIMEOUT", 10.0)),
        )

    def reconnect_delay_for(self, attempt: int) -> float:
        """Delay before reconnect attempt number ``attempt`` (1-based)."""
        if self.reconnect_policy == "fixed":
            return self.reconnect_delay
        exponent = max(0, int(attempt) - 1)
        return min(self.reconnect_delay * (2**exponent), self.reconnect_max_delay)

    def reconnect_allowed(self, attempt: int) -> bool:
        if self.reconnect_policy == "fixed":
            return True
        return int(attempt) <= self.reconnect_max_attempts
