from __future__ import annotations

from remote_shell.browser.redaction import is_sensitive_key, redact_frame_for_log


def test_register_frame_never_logs_token() -> None:
    frame = {"type": "register", "token": "sk-live-123456"}
    safe = redact_frame_for_log(frame)
    assert safe["type"] == "register"
    assert "sk-live-123456" not in str(safe)
    assert safe["token"] == "<redacted str len=14>"
    assert frame["token"] == "sk-live-123456"


def test_command_payloads_are_summarized() -> None:
    frame = {
        "id": "c1",
        "action": "cdp",
        "params": {
            "tab_id": 2,
            "method": "Network.setCookie",
            "args": {"name": "sid", "value": "secret-cookie"},
        },
    }
    safe = redact_frame_for_log(frame)
    assert safe["id"] == "c1"
    assert safe["params"]["method"] == "Network.setCookie"
    assert safe["params"]["tab_id"] == 2
    assert safe["params"]["args"] == "<redacted dict keys=2>"

    script = redact_frame_for_log({"id": "e", "action": "executeScript", "params": {"code": "localStorage.jwt"}})
    assert script["params"]["code"] == "<redacted str len=16>"


def test_sensitive_key_detection() -> None:
    assert is_sensitive_key("Authorization")
    assert is_sensitive_key("refresh_token")
    assert is_sensitive_key("auth")
    assert not is_sensitive_key("author")
    assert not is_sensitive_key("action")
    assert not is_sensitive_key("")
