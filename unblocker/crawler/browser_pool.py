"""
Shared browser process management for Unblocker.

Owns at most one live Chromium process. The browser is launched lazily on
first use and relaunched when it disconnects. Acquisition is serialized so
concurrent cold-start callers share a single launch.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from playwright.async_api import async_playwright

from unblocker.crawler.stealth import get_stealth_args
from unblocker.utils.config import BrowserConfig, get_settings
from unblocker.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = get_logger(__name__)


class PoolState(str, Enum):
    """Validity of the stored browser handle."""

    LIVE = "live"
    INVALID = "invalid"


class BrowserPool:
    """
    Lazily-launched, shared Chromium process.

    acquire() and shutdown() are the only public operations. The hosting
    process owns the pool and must call shutdown() on teardown.
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or get_settings().browser
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._state = PoolState.INVALID
        self._lock = asyncio.Lock()
        self._launch_count = 0

    @property
    def is_live(self) -> bool:
        """Whether a connected browser is currently held."""
        return self._is_usable(self._browser)

    @property
    def launch_count(self) -> int:
        """Number of browser processes launched by this pool."""
        return self._launch_count

    def _is_usable(self, browser: "Browser | None") -> bool:
        return (
            browser is not None
            and self._state is PoolState.LIVE
            and browser.is_connected()
        )

    def _launch_args(self) -> list[str]:
        args = list(self._config.launch_args)
        if self._config.use_stealth_args:
            args.extend(arg for arg in get_stealth_args() if arg not in args)
        return args

    def _on_disconnected(self, browser: "Browser") -> None:
        if browser is self._browser:
            self._state = PoolState.INVALID
            logger.warning("Browser has been disconnected")

    async def _ensure_playwright(self) -> "Playwright":
        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.info("Playwright initialized")
        return self._playwright

    async def _discard_browser(self) -> None:
        browser = self._browser
        self._browser = None
        self._state = PoolState.INVALID
        if browser is None:
            return
        try:
            await browser.close()
        except Exception as e:
            logger.debug("Closing stale browser failed", error=str(e))

    async def _stop_playwright(self) -> None:
        playwright = self._playwright
        self._playwright = None
        if playwright is None:
            return
        try:
            await playwright.stop()
        except Exception as e:
            logger.warning("Stopping Playwright failed", error=str(e))

    async def acquire(self) -> "Browser":
        """Return the shared browser, launching it if none is live.

        Returns:
            Connected Playwright Browser.

        Raises:
            Exception: Launch failures propagate unchanged.
        """
        browser = self._browser
        if self._is_usable(browser):
            assert browser is not None
            return browser

        async with self._lock:
            browser = self._browser
            if self._is_usable(browser):
                assert browser is not None
                return browser

            if browser is not None:
                logger.info("Discarding disconnected browser")
                await self._discard_browser()

            logger.info("No active browser found. Launching a new instance")
            playwright = await self._ensure_playwright()
            try:
                browser = await playwright.chromium.launch(
                    headless=self._config.headless,
                    args=self._launch_args(),
                    executable_path=self._config.executable_path,
                )
            except Exception:
                # Driver may be broken; start fresh on the next acquisition
                await self._stop_playwright()
                raise

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            self._state = PoolState.LIVE
            self._launch_count += 1
            logger.info("Browser launched", launch_count=self._launch_count)
            return browser

    async def shutdown(self) -> None:
        """Close the browser process and the Playwright driver.

        Safe to call when nothing is running. A later acquire() launches again.
        """
        async with self._lock:
            if self._browser is not None:
                logger.info("Closing browser")
                await self._discard_browser()
            await self._stop_playwright()


# ============================================================================
# Factory and Global Instance
# ============================================================================

_browser_pool: BrowserPool | None = None


def get_browser_pool() -> BrowserPool:
    """Get or create the global BrowserPool instance."""
    global _browser_pool

    if _browser_pool is None:
        _browser_pool = BrowserPool()

    return _browser_pool


async def close_browser_pool() -> None:
    """Shut down and drop the global BrowserPool instance."""
    global _browser_pool

    if _browser_pool is not None:
        await _browser_pool.shutdown()
        _browser_pool = None


def reset_browser_pool() -> None:
    """Reset the global pool without closing. For testing only."""
    global _browser_pool
    _browser_pool = None
