#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[shell] server={os.environ.get('SHELL_SERVER_URL', 'ws://127.0.0.1:8000/browser/ws')} | "
    f"cdp={os.environ.get('SHELL_CDP_HOST', '127.0.0.1')}:{os.environ.get('SHELL_CDP_PORT', '9222')} | "
    f"token={'set' if os.environ.get('SHELL_TOKEN') else 'unset'}",
    file=sys.stderr,
)

from remote_shell.browser.main import main  # noqa: E402

if __name__ == "__main__":
    main()
