"""On-demand installation of the Playwright Chromium build."""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from typing import Iterable

# Known fragments that indicate the Playwright browser executable is missing.
_MISSING_BROWSER_MARKERS: tuple[str, ...] = (
    "executable doesn't exist at",
    "playwright install",
    "download new browsers",
)

_install_lock = threading.Lock()
_install_attempted: dict[str, bool] = {}


def is_missing_browser_error(exc: BaseException | None) -> bool:
    """Return ``True`` when *exc* suggests the Playwright browser is missing."""
    if exc is None:
        return False
    lowered = (str(exc) or "").lower()
    return any(marker in lowered for marker in _MISSING_BROWSER_MARKERS)


def _run_install_command(command: Iterable[str], logger: logging.Logger) -> bool:
    command = list(command)
    try:
        completed = subprocess.run(command, check=True, capture_output=True, text=True)
    except FileNotFoundError:
        logger.debug("Playwright CLI not found when running %s", " ".join(command))
        return False
    except subprocess.CalledProcessError as err:
        stderr = (err.stderr or err.stdout or str(err)).strip()
        logger.error("Playwright install command failed (%s): %s", " ".join(command), stderr)
        return False

    logger.info("Successfully executed '%s'", " ".join(command))
    if completed.stdout:
        logger.debug(completed.stdout.strip())
    return True


def ensure_playwright_browser_installed(logger: logging.Logger, browser: str = "chromium") -> bool:
    """Install the Playwright *browser* once per process.

    Returns ``True`` only for the call that performed a successful install;
    later calls return ``False`` without re-running the installer.
    """
    with _install_lock:
        if _install_attempted.get(browser):
            logger.info("Playwright %s install already attempted in this process", browser)
            return False
        _install_attempted[browser] = True

        commands = [
            (sys.executable, "-m", "playwright", "install", browser),
            ("playwright", "install", browser),
        ]
        for command in commands:
            if _run_install_command(command, logger):
                return True

    logger.error("Unable to install Playwright %s browser automatically", browser)
    return False


__all__ = ["ensure_playwright_browser_installed", "is_missing_browser_error"]
