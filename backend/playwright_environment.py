"""Utilities for managing Playwright's runtime environment.

The hosted runtime (AWS Lambda) ships no system browser, has a tiny
``/dev/shm`` and forbids the Chromium sandbox, so it needs its own binary
and launch flags.  Local development uses Playwright's managed Chromium with
the usual container-friendly flags.
"""
from __future__ import annotations

import glob
import os
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Tuple

from playwright.sync_api import sync_playwright

if TYPE_CHECKING:  # pragma: no cover
    from pdf_settings import RendererConfig


HOSTED_RUNTIME_ENV = "PDF_HOSTED_RUNTIME"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

LOCAL_CHROME_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
)

HOSTED_CHROME_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
    "--disable-features=VizDisplayCompositor",
    "--disable-extensions",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--memory-pressure-off",
    "--font-render-hinting=none",
)


class LoggerLike(Protocol):
    def info(self, msg: str, *args, **kwargs) -> None: ...
    def warning(self, msg: str, *args, **kwargs) -> None: ...
    def error(self, msg: str, *args, **kwargs) -> None: ...


@dataclass(frozen=True)
class LaunchPlan:
    """Browser binary and flags for one launch attempt."""

    name: str
    args: Tuple[str, ...]
    executable_path: Optional[str] = None
    chromium_sandbox: bool = False


def is_hosted_runtime(environ=None) -> bool:
    """Return ``True`` when running in the constrained hosted environment.

    ``PDF_HOSTED_RUNTIME`` wins when set; otherwise the Lambda runtime
    variables decide.
    """
    env = os.environ if environ is None else environ
    explicit = (env.get(HOSTED_RUNTIME_ENV) or "").strip().lower()
    if explicit in _TRUTHY:
        return True
    if explicit in _FALSY:
        return False
    return bool(env.get("AWS_LAMBDA_FUNCTION_NAME") or env.get("AWS_EXECUTION_ENV"))


class LocalChromiumResolver:
    """Playwright-managed Chromium with container-friendly flags."""

    def resolve(self, config: "RendererConfig") -> LaunchPlan:
        return LaunchPlan(name="local", args=LOCAL_CHROME_ARGS)


class HostedChromiumResolver:
    """Chromium for the hosted runtime.

    Uses ``config.executable_path`` (a Lambda layer binary) when it exists,
    otherwise the Chromium found under ``PLAYWRIGHT_BROWSERS_PATH``.
    """

    def __init__(self, logger: LoggerLike) -> None:
        self.logger = logger

    def resolve(self, config: "RendererConfig") -> LaunchPlan:
        executable_path = config.executable_path
        if executable_path and not os.path.exists(executable_path):
            self.logger.warning(
                "Configured Chromium executable %s does not exist; using Playwright default",
                executable_path,
            )
            executable_path = None
        self.logger.info(
            "Hosted Chromium resolved: executable=%s, PLAYWRIGHT_BROWSERS_PATH=%s",
            executable_path or "playwright-default",
            os.environ.get("PLAYWRIGHT_BROWSERS_PATH", "Not set"),
        )
        return LaunchPlan(name="hosted", args=HOSTED_CHROME_ARGS, executable_path=executable_path)


def resolve_launch_plans(config: "RendererConfig", logger: LoggerLike) -> List[LaunchPlan]:
    """Ordered launch attempts: hosted first (when hosted), then local."""
    plans: List[LaunchPlan] = []
    if config.hosted:
        plans.append(HostedChromiumResolver(logger).resolve(config))
    plans.append(LocalChromiumResolver().resolve(config))
    return plans


def cleanup_browser_processes(logger: LoggerLike) -> None:
    """Clean up lingering Chromium processes and temporary artifacts."""
    try:
        import psutil

        try:
            for proc in psutil.process_iter(["pid", "name", "cmdline"]):
                try:
                    name = proc.info.get("name") or ""
                    cmdline = " ".join(proc.info.get("cmdline") or [])
                    if any(b in name.lower() for b in ("chrome", "chromium")) or any(
                        b in cmdline.lower() for b in ("chrome-linux", "chromium", "headless_shell")
                    ):
                        logger.info(
                            "Terminating browser process: %s (PID: %s)",
                            name,
                            proc.info.get("pid"),
                        )
                        proc.terminate()
                        proc.wait(timeout=3)
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.TimeoutExpired):
                    pass
        except Exception as e:
            logger.warning(f"Failed to kill browser processes: {e}")

        for pattern in ("/tmp/.playwright", "/tmp/playwright-*"):
            try:
                for path in glob.glob(pattern):
                    if os.path.isdir(path):
                        shutil.rmtree(path, ignore_errors=True)
                    elif os.path.isfile(path):
                        os.unlink(path)
            except Exception as e:
                logger.warning(f"Failed to clean temp files {pattern}: {e}")
    except Exception as e:
        logger.warning(f"Browser cleanup failed: {e}")


def verify_playwright_installation(logger: LoggerLike) -> bool:
    """Verify that the Playwright Chromium executable is present."""
    try:
        with sync_playwright() as p:
            browser_path = p.chromium.executable_path
            if os.path.exists(browser_path):
                logger.info(f"Playwright browser executable found at: {browser_path}")
                return True
            logger.error(f"Playwright browser executable not found at: {browser_path}")
            return False
    except Exception as e:
        logger.error(f"Playwright browser verification failed: {e}")
        return False


__all__ = [
    "HOSTED_CHROME_ARGS",
    "LOCAL_CHROME_ARGS",
    "HostedChromiumResolver",
    "LaunchPlan",
    "LocalChromiumResolver",
    "cleanup_browser_processes",
    "is_hosted_runtime",
    "resolve_launch_plans",
    "verify_playwright_installation",
]
