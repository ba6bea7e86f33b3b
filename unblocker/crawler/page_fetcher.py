"""
Rendered page fetcher for Unblocker.

Each fetch runs in its own isolated browsing context on the shared browser:
identity spoofing and request filtering are installed before navigation,
the page is loaded with a network-idle wait policy, and the outcome is
classified into a FetchResult. The context is always closed before the
result is returned.
"""

from typing import TYPE_CHECKING

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from unblocker.crawler.browser_pool import BrowserPool, get_browser_pool
from unblocker.crawler.challenge_detector import classify_outcome, is_challenge_page
from unblocker.crawler.fetch_result import FetchResult, NavigationOutcome, OutcomeKind
from unblocker.crawler.request_filter import RequestFilterRules, install_request_filter
from unblocker.crawler.stealth import (
    IdentityProfile,
    apply_identity_to_context,
    apply_user_agent_override,
)
from unblocker.utils.config import NavigationConfig, get_settings
from unblocker.utils.logging import LogContext, get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

logger = get_logger(__name__)


def _current_url(page: "Page | None") -> str | None:
    """Page location, or None before any navigation has committed."""
    if page is None:
        return None
    try:
        url = page.url
    except Exception:
        return None
    if not url or url == "about:blank":
        return None
    return url


class PageFetcher:
    """
    Fetches fully-rendered pages through the shared browser.

    fetch() is total: every failure is mapped to a FetchResult.
    """

    def __init__(
        self,
        pool: BrowserPool | None = None,
        profile: IdentityProfile | None = None,
        rules: RequestFilterRules | None = None,
        navigation: NavigationConfig | None = None,
        challenge_marker: str | None = None,
    ) -> None:
        settings = get_settings()
        self._pool = pool or get_browser_pool()
        self._profile = profile or IdentityProfile.from_config(settings.identity)
        self._rules = rules or RequestFilterRules.from_config(settings.request_filter)
        self._navigation = navigation or settings.navigation
        self._challenge_marker = challenge_marker or settings.request_filter.challenge_marker

    @property
    def pool(self) -> BrowserPool:
        return self._pool

    @property
    def timeout_seconds(self) -> float:
        return self._navigation.timeout_seconds

    async def fetch(self, url: str, render: bool = True) -> FetchResult:
        """Fetch the rendered HTML of a page.

        Args:
            url: Absolute URL, already validated by the caller.
            render: Accepted for API compatibility. Pages are always rendered.

        Returns:
            FetchResult (never raises for fetch failures).
        """
        with LogContext(url=url):
            try:
                browser = await self._pool.acquire()
            except Exception as e:
                logger.error("Browser acquisition failed", error=str(e), exc_info=True)
                return classify_outcome(
                    NavigationOutcome.failure(url, None, e),
                    self.timeout_seconds,
                    self._challenge_marker,
                )

            context: BrowserContext | None = None
            page: Page | None = None
            try:
                context = await browser.new_context(**self._profile.context_options())
                page = await context.new_page()
                await self._configure(context, page)
                outcome = await self._navigate(page, url)
            except PlaywrightTimeoutError as e:
                outcome = NavigationOutcome.timeout(url, _current_url(page), e)
            except Exception as e:
                outcome = NavigationOutcome.failure(url, _current_url(page), e)
            finally:
                if context is not None:
                    await self._close_context(context)

            self._log_outcome(outcome)
            return classify_outcome(outcome, self.timeout_seconds, self._challenge_marker)

    async def _configure(self, context: "BrowserContext", page: "Page") -> None:
        """Apply identity spoofing and request filtering before navigation."""
        await apply_identity_to_context(context, self._profile)
        await apply_user_agent_override(context, page, self._profile)
        await install_request_filter(context, self._rules)

    async def _navigate(self, page: "Page", url: str) -> NavigationOutcome:
        logger.info("Accessing page with refined blocking enabled")
        response = await page.goto(
            url,
            wait_until=self._navigation.wait_until,
            timeout=self._navigation.timeout_seconds * 1000,
        )

        if response is None:
            return NavigationOutcome.no_response(url, _current_url(page))

        status = response.status
        html = await page.content()
        return NavigationOutcome.success(url, page.url, status, html)

    async def _close_context(self, context: "BrowserContext") -> None:
        try:
            await context.close()
        except Exception as e:
            logger.warning("Closing browsing context failed", error=str(e))

    def _log_outcome(self, outcome: NavigationOutcome) -> None:
        if outcome.kind is OutcomeKind.TIMEOUT:
            logger.error(
                "Navigation timed out",
                timeout_seconds=self.timeout_seconds,
                error=str(outcome.error),
            )
        elif outcome.kind is OutcomeKind.FAILURE:
            logger.error(
                "Error while processing page",
                error=str(outcome.error),
                error_type=type(outcome.error).__name__,
            )
        elif outcome.kind is OutcomeKind.NO_RESPONSE:
            logger.error("Navigation returned no response", final_url=outcome.current_url)
        elif is_challenge_page(outcome.html or "", outcome.status, self._challenge_marker):
            logger.error(
                "Captcha or block page detected despite init.js blocking",
                final_url=outcome.current_url,
                status=outcome.status,
            )
        else:
            logger.info(
                "Page successfully loaded",
                final_url=outcome.current_url,
                status=outcome.status,
            )


async def fetch_rendered_page(url: str, render: bool = True) -> FetchResult:
    """Fetch a page using the global browser pool."""
    return await PageFetcher().fetch(url, render=render)
