"""Fetch result and navigation outcome data classes for the page fetcher."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class FetchResult:
    """Result of a rendered page fetch.

    Produced exactly once per request. ``error`` is set exactly when
    ``status`` reports a non-success outcome.

    Attributes:
        html: Serialized DOM, or None when no document could be captured.
        status: HTTP-like status code.
        error: Human-readable failure description.
        final_url: URL of the page after redirects.
    """

    html: str | None
    status: int
    error: str | None = None
    final_url: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the fetch produced a usable page."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "html": self.html,
            "status": self.status,
            "error": self.error,
            "final_url": self.final_url,
        }


class OutcomeKind(str, Enum):
    """Kind of result produced by the navigation step."""

    SUCCESS = "success"
    NO_RESPONSE = "no_response"
    TIMEOUT = "timeout"
    FAILURE = "failure"


@dataclass(frozen=True)
class NavigationOutcome:
    """Raw outcome of one navigation, before classification.

    Attributes:
        kind: Outcome kind.
        url: Requested URL.
        current_url: Page location when the outcome was captured (None if unknown).
        status: Response status (SUCCESS only).
        html: Serialized DOM (SUCCESS only).
        error: Exception raised during setup or navigation (TIMEOUT/FAILURE).
    """

    kind: OutcomeKind
    url: str
    current_url: str | None = None
    status: int | None = None
    html: str | None = None
    error: BaseException | None = None

    @property
    def best_url(self) -> str:
        """Best-known page URL, falling back to the requested URL."""
        return self.current_url or self.url

    @classmethod
    def success(cls, url: str, current_url: str, status: int, html: str) -> "NavigationOutcome":
        """Create a SUCCESS outcome."""
        return cls(
            kind=OutcomeKind.SUCCESS,
            url=url,
            current_url=current_url,
            status=status,
            html=html,
        )

    @classmethod
    def no_response(cls, url: str, current_url: str | None) -> "NavigationOutcome":
        """Create a NO_RESPONSE outcome."""
        return cls(kind=OutcomeKind.NO_RESPONSE, url=url, current_url=current_url)

    @classmethod
    def timeout(
        cls, url: str, current_url: str | None, error: BaseException
    ) -> "NavigationOutcome":
        """Create a TIMEOUT outcome."""
        return cls(kind=OutcomeKind.TIMEOUT, url=url, current_url=current_url, error=error)

    @classmethod
    def failure(
        cls, url: str, current_url: str | None, error: BaseException
    ) -> "NavigationOutcome":
        """Create a FAILURE outcome."""
        return cls(kind=OutcomeKind.FAILURE, url=url, current_url=current_url, error=error)
