"""
Outgoing request filtering.

Aborts the anti-bot vendor's init script and third-party trackers before
they load. Blocking the init script keeps the challenge from initializing
in the page at all.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from unblocker.utils.config import RequestFilterConfig, get_settings
from unblocker.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Route

logger = get_logger(__name__)


class RequestDecision(str, Enum):
    """Decision for a single outgoing request."""

    ALLOW = "allow"
    ABORT_ANTIBOT = "abort_antibot"
    ABORT_TRACKER = "abort_tracker"

    @property
    def aborts(self) -> bool:
        return self is not RequestDecision.ALLOW


@dataclass(frozen=True)
class RequestFilterRules:
    """Static rule set consulted for every outgoing request.

    Attributes:
        antibot_script_pattern: Compiled pattern for the anti-bot init script path.
        blocked_domains: Tracking-domain substrings.
    """

    antibot_script_pattern: re.Pattern[str]
    blocked_domains: tuple[str, ...]

    @classmethod
    def from_config(cls, config: RequestFilterConfig | None = None) -> "RequestFilterRules":
        """Build rules from settings (defaults to the loaded settings)."""
        if config is None:
            config = get_settings().request_filter
        return cls(
            antibot_script_pattern=re.compile(config.antibot_script_pattern, re.IGNORECASE),
            blocked_domains=tuple(config.blocked_tracking_domains),
        )


def classify_request(
    request_url: str,
    antibot_script_pattern: re.Pattern[str],
    blocked_domains: tuple[str, ...] | list[str],
) -> RequestDecision:
    """Decide whether an outgoing request may proceed.

    Checked in order: anti-bot init script, then tracking domains.

    Args:
        request_url: Full URL of the outgoing request.
        antibot_script_pattern: Pattern matching the anti-bot init script path.
        blocked_domains: Tracking-domain substrings.

    Returns:
        RequestDecision for the request.
    """
    if antibot_script_pattern.search(request_url):
        return RequestDecision.ABORT_ANTIBOT
    if any(domain in request_url for domain in blocked_domains):
        return RequestDecision.ABORT_TRACKER
    return RequestDecision.ALLOW


async def install_request_filter(context: "BrowserContext", rules: RequestFilterRules) -> None:
    """Route every request issued in the context through classify_request.

    Args:
        context: Playwright browser context.
        rules: Filter rules to apply.
    """

    async def handle_route(route: "Route") -> None:
        request_url = route.request.url
        decision = classify_request(
            request_url, rules.antibot_script_pattern, rules.blocked_domains
        )
        if decision is RequestDecision.ABORT_ANTIBOT:
            logger.warning("Aborting anti-bot init script", request_url=request_url)
            await route.abort("aborted")
        elif decision is RequestDecision.ABORT_TRACKER:
            logger.debug("Aborting tracker", request_url=request_url)
            await route.abort("aborted")
        else:
            await route.continue_()

    await context.route("**/*", handle_route)
