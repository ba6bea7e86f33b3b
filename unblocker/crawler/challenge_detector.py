"""Challenge page detection and navigation outcome classification."""

from http import HTTPStatus

from unblocker.crawler.fetch_result import FetchResult, NavigationOutcome, OutcomeKind

DEFAULT_CHALLENGE_MARKER = "px-captcha"

NO_RESPONSE_ERROR = "Navigation failed, no response received from the server."
CHALLENGE_ERROR = "Bot detection or captcha was triggered."
INTERNAL_ERROR = (
    "An unexpected internal error occurred during page processing. "
    "See service logs for details."
)


def timeout_error_message(timeout_seconds: float) -> str:
    """Error text for a navigation that hit the timeout."""
    return (
        f"Navigation timed out after {timeout_seconds:g}s. "
        "The target page is likely too slow or unresponsive."
    )


def is_challenge_page(
    html: str,
    status: int | None,
    marker: str = DEFAULT_CHALLENGE_MARKER,
) -> bool:
    """Check if a loaded page is an anti-bot challenge or block page.

    Args:
        html: Serialized DOM.
        status: Response status.
        marker: Challenge marker string (the PerimeterX captcha container id).

    Returns:
        True if the marker is present or the response is a 403.
    """
    return marker in html or status == HTTPStatus.FORBIDDEN


def classify_outcome(
    outcome: NavigationOutcome,
    timeout_seconds: float,
    marker: str = DEFAULT_CHALLENGE_MARKER,
) -> FetchResult:
    """Map a navigation outcome to the result returned to the caller.

    Checked in order: no response, timeout, other failure, challenge, success.

    Args:
        outcome: Outcome of the navigation step.
        timeout_seconds: Navigation timeout in effect (reported on timeout).
        marker: Challenge marker string.

    Returns:
        FetchResult for the request.
    """
    if outcome.kind is OutcomeKind.NO_RESPONSE:
        return FetchResult(
            html=None,
            status=int(HTTPStatus.BAD_GATEWAY),
            error=NO_RESPONSE_ERROR,
            final_url=outcome.current_url,
        )

    if outcome.kind is OutcomeKind.TIMEOUT:
        return FetchResult(
            html=None,
            status=int(HTTPStatus.GATEWAY_TIMEOUT),
            error=timeout_error_message(timeout_seconds),
            final_url=outcome.best_url,
        )

    if outcome.kind is OutcomeKind.FAILURE:
        return FetchResult(
            html=None,
            status=int(HTTPStatus.INTERNAL_SERVER_ERROR),
            error=INTERNAL_ERROR,
            final_url=outcome.best_url,
        )

    html = outcome.html or ""
    if is_challenge_page(html, outcome.status, marker):
        return FetchResult(
            html=html,
            status=int(HTTPStatus.FORBIDDEN),
            error=CHALLENGE_ERROR,
            final_url=outcome.current_url,
        )

    return FetchResult(
        html=html,
        status=outcome.status if outcome.status is not None else int(HTTPStatus.OK),
        final_url=outcome.current_url,
    )
