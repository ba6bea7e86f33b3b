"""
Unblocker Crawler Module.

Provides rendered page fetching through a shared, stealth-configured browser.
"""

from unblocker.crawler.browser_pool import (
    BrowserPool,
    PoolState,
    close_browser_pool,
    get_browser_pool,
    reset_browser_pool,
)
from unblocker.crawler.challenge_detector import classify_outcome, is_challenge_page
from unblocker.crawler.fetch_result import FetchResult, NavigationOutcome, OutcomeKind
from unblocker.crawler.page_fetcher import PageFetcher, fetch_rendered_page
from unblocker.crawler.request_filter import (
    RequestDecision,
    RequestFilterRules,
    classify_request,
    install_request_filter,
)
from unblocker.crawler.stealth import (
    IdentityProfile,
    apply_identity_to_context,
    apply_user_agent_override,
    build_identity_script,
    get_stealth_args,
)

__all__ = [
    # Browser pool
    "BrowserPool",
    "PoolState",
    "get_browser_pool",
    "close_browser_pool",
    "reset_browser_pool",
    # Fetching
    "PageFetcher",
    "fetch_rendered_page",
    "FetchResult",
    "NavigationOutcome",
    "OutcomeKind",
    # Classification
    "classify_outcome",
    "is_challenge_page",
    # Request filtering
    "RequestDecision",
    "RequestFilterRules",
    "classify_request",
    "install_request_filter",
    # Stealth
    "IdentityProfile",
    "apply_identity_to_context",
    "apply_user_agent_override",
    "build_identity_script",
    "get_stealth_args",
]
