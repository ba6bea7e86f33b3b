"""
Pytest fixtures and configuration for Unblocker tests.

=============================================================================
Test Classification
=============================================================================

- @pytest.mark.unit: Single class/function, no external dependencies
  - DEFAULT: Tests without marker are auto-classified as unit
- @pytest.mark.integration: Multiple components, browser replaced by fakes
- @pytest.mark.e2e: Real Chromium and network access
  - DEFAULT SKIPPED: set UNBLOCKER_E2E=1 and run `pytest -m e2e`

=============================================================================
Mock Strategy
=============================================================================

- Playwright objects (Browser, BrowserContext, Page, Route): fake doubles
  below that record create/close pairing and routed requests
- playwright-stealth: replaced with an AsyncMock where a fake context is used
- Settings: loaded from the repository config/ directory, cache cleared per test
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Set test environment before importing anything else
os.environ["UNBLOCKER_CONFIG_DIR"] = str(Path(__file__).parent.parent / "config")
os.environ["UNBLOCKER_GENERAL__LOG_LEVEL"] = "DEBUG"


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line(
        "markers", "unit: Unit tests with no external dependencies (fast, <1s/test)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests with faked browser (<5s/test)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring real Chromium (skipped by default)"
    )


def pytest_collection_modifyitems(config, items):
    """Default unmarked tests to unit; skip e2e unless UNBLOCKER_E2E=1."""
    skip_e2e = pytest.mark.skip(reason="E2E tests need UNBLOCKER_E2E=1 and real Chromium")
    run_e2e = os.environ.get("UNBLOCKER_E2E") == "1"

    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration", "e2e") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)

        if not run_e2e and any(marker.name == "e2e" for marker in item.iter_markers()):
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Reload settings for every test so env overrides apply."""
    from unblocker.utils.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Fake Playwright doubles
# =============================================================================


class ResourceTracker:
    """Records browsing context creation and closure."""

    def __init__(self) -> None:
        self.created: list["FakeContext"] = []
        self.closed: list["FakeContext"] = []

    def assert_paired(self) -> None:
        assert len(self.created) == len(self.closed)
        for context in self.created:
            assert context.close_count == 1


class FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status


class FakeRequest:
    def __init__(self, url: str) -> None:
        self.url = url


class FakeRoute:
    """Route double recording the handler's decision."""

    def __init__(self, url: str) -> None:
        self.request = FakeRequest(url)
        self.aborted_with: str | None = None
        self.continued = False

    async def abort(self, error_code: str | None = None) -> None:
        self.aborted_with = error_code or "failed"

    async def continue_(self) -> None:
        self.continued = True


class FakeCDPSession:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict:
        self.sent.append((method, params or {}))
        return {}


class FakePage:
    """Page double.

    ``navigation`` decides what goto() does:
    - FakeResponse: load succeeds with that response
    - None: navigation returns no response
    - BaseException instance: raised from goto()
    """

    def __init__(
        self,
        context: "FakeContext",
        navigation: Any = None,
        html: str = "<html><body>ok</body></html>",
        final_url: str | None = None,
        subresources: list[str] | None = None,
    ) -> None:
        self.context = context
        self.navigation = navigation
        self.html = html
        self.final_url = final_url
        self.subresources = subresources or []
        self._url = "about:blank"
        self.goto_calls: list[dict[str, Any]] = []
        self.routes: list[FakeRoute] = []

    @property
    def url(self) -> str:
        return self._url

    async def goto(self, url: str, **kwargs: Any) -> FakeResponse | None:
        self.goto_calls.append({"url": url, **kwargs})
        for request_url in [url, *self.subresources]:
            route = FakeRoute(request_url)
            self.routes.append(route)
            for handler in self.context.route_handlers:
                await handler(route)
        if isinstance(self.navigation, BaseException):
            # Nothing committed: the page stays on about:blank
            raise self.navigation
        self._url = url
        if self.final_url:
            self._url = self.final_url
        return self.navigation

    async def content(self) -> str:
        return self.html


class FakeContext:
    def __init__(self, tracker: ResourceTracker, page_factory: Callable, options: dict) -> None:
        self.tracker = tracker
        self.page_factory = page_factory
        self.options = options
        self.init_scripts: list[str] = []
        self.route_handlers: list[Callable] = []
        self.route_patterns: list[str] = []
        self.cdp_sessions: list[FakeCDPSession] = []
        self.pages: list[FakePage] = []
        self.close_count = 0
        self.close_error: Exception | None = None
        self.cdp_error: Exception | None = None

    async def new_page(self) -> FakePage:
        page = self.page_factory(self)
        self.pages.append(page)
        return page

    async def add_init_script(self, script: str | None = None, **kwargs: Any) -> None:
        self.init_scripts.append(script or "")

    async def route(self, pattern: str, handler: Callable) -> None:
        self.route_patterns.append(pattern)
        self.route_handlers.append(handler)

    async def new_cdp_session(self, page: FakePage) -> FakeCDPSession:
        if self.cdp_error is not None:
            raise self.cdp_error
        session = FakeCDPSession()
        self.cdp_sessions.append(session)
        return session

    async def close(self) -> None:
        self.close_count += 1
        self.tracker.closed.append(self)
        if self.close_error is not None:
            raise self.close_error


class FakeBrowser:
    def __init__(self, tracker: ResourceTracker | None = None) -> None:
        self.tracker = tracker or ResourceTracker()
        self.connected = True
        self.closed = False
        self.handlers: dict[str, list[Callable]] = {}
        self.page_factory: Callable = lambda context: FakePage(context, FakeResponse(200))
        self.new_context_error: Exception | None = None

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def disconnect(self) -> None:
        self.connected = False
        for handler in self.handlers.get("disconnected", []):
            handler(self)

    async def new_context(self, **options: Any) -> FakeContext:
        if self.new_context_error is not None:
            raise self.new_context_error
        context = FakeContext(self.tracker, self.page_factory, options)
        self.tracker.created.append(context)
        return context

    async def close(self) -> None:
        self.closed = True
        self.connected = False


class FakePool:
    """BrowserPool stand-in handing out one FakeBrowser."""

    def __init__(self, browser: FakeBrowser | None = None, error: Exception | None = None):
        self.browser = browser or FakeBrowser()
        self.error = error
        self.acquire_count = 0
        self.shutdown_count = 0

    @property
    def is_live(self) -> bool:
        return self.browser.connected and self.error is None

    async def acquire(self) -> FakeBrowser:
        self.acquire_count += 1
        if self.error is not None:
            raise self.error
        return self.browser

    async def shutdown(self) -> None:
        self.shutdown_count += 1


@pytest.fixture
def tracker() -> ResourceTracker:
    return ResourceTracker()


@pytest.fixture
def fake_browser(tracker: ResourceTracker) -> FakeBrowser:
    return FakeBrowser(tracker)


@pytest.fixture
def fake_pool(fake_browser: FakeBrowser) -> FakePool:
    return FakePool(fake_browser)


@pytest.fixture
def mock_stealth() -> Generator[MagicMock, None, None]:
    """Replace the playwright-stealth instance used on contexts."""
    stealth = MagicMock()
    stealth.apply_stealth_async = AsyncMock()
    with patch("unblocker.crawler.stealth._stealth", stealth):
        yield stealth


@pytest.fixture
def mock_playwright() -> Generator[MagicMock, None, None]:
    """Patch async_playwright() in the browser pool.

    Each chromium.launch() call returns a fresh FakeBrowser; the launched
    browsers are exposed as ``mock.launched``.
    """
    launched: list[FakeBrowser] = []

    async def launch(**kwargs: Any) -> FakeBrowser:
        browser = FakeBrowser()
        browser.launch_kwargs = kwargs
        launched.append(browser)
        return browser

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(side_effect=launch)
    playwright.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)

    factory = MagicMock(return_value=starter)
    factory.launched = launched
    factory.playwright = playwright

    with patch("unblocker.crawler.browser_pool.async_playwright", factory):
        yield factory
