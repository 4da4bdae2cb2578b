from __future__ import annotations

import subprocess
import sys
from typing import Optional


# sys.platform -> launcher argv prefix; the URL is appended
_OPENERS: dict[str, tuple[str, ...]] = {
    "darwin": ("open",),
    # `start` is a cmd builtin; the empty string is the window title
    "win32": ("cmd", "/c", "start", ""),
}
_DEFAULT_OPENER: tuple[str, ...] = ("xdg-open",)


def browser_command(platform: str, url: str) -> list[str]:
    return [*_OPENERS.get(platform, _DEFAULT_OPENER), url]


def open_browser(url: str, platform: Optional[str] = None) -> bool:
    """
    Launch the default browser on `url` without waiting for it.

    xdg-open may stay in the foreground running $BROWSER, and the callback
    listener has to be serving by then. Returns False only when the launcher
    can't be started; callers print the URL anyway.
    """
    cmd = browser_command(platform or sys.platform, url)
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError:
        return False
    return True
