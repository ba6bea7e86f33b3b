"""
Unblocker HTTP Server.

Routes:
  POST /unblock -> rendered HTML of the requested page
  GET /health   -> health check

Request body for /unblock:
  {"url": "https://example.com/page", "render": true}

The response body is the page HTML with Content-Type text/html and the
status code of the fetch result. ``render`` is required but inert: pages
are always rendered.
"""

import asyncio
import functools
import signal
from typing import Any
from urllib.parse import urlsplit

from aiohttp import web
from pydantic import BaseModel, StrictBool, ValidationError, field_validator

from unblocker.crawler.browser_pool import BrowserPool
from unblocker.crawler.page_fetcher import PageFetcher
from unblocker.utils.config import get_settings
from unblocker.utils.logging import get_logger

logger = get_logger(__name__)

FETCHER_KEY = web.AppKey("fetcher", PageFetcher)


class UnblockRequest(BaseModel):
    """Validated /unblock request body."""

    url: str
    render: StrictBool

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("A valid URL must be provided.")
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("A valid URL must be provided.")
        return value


def _validation_details(error: ValidationError) -> list[dict[str, Any]]:
    return [
        {"field": ".".join(str(loc) for loc in item["loc"]), "message": item["msg"]}
        for item in error.errors()
    ]


async def handle_unblock(request: web.Request) -> web.Response:
    """Fetch the requested page and return its HTML."""
    try:
        payload = await request.json()
    except ValueError:
        return web.json_response(
            {"error": "Invalid request", "details": [{"field": "", "message": "Body must be JSON"}]},
            status=400,
        )

    try:
        body = UnblockRequest.model_validate(payload)
    except ValidationError as e:
        return web.json_response(
            {"error": "Invalid request", "details": _validation_details(e)},
            status=400,
        )

    fetcher = request.app[FETCHER_KEY]
    result = await fetcher.fetch(body.url, render=body.render)

    headers = {}
    if result.final_url:
        headers["X-Final-Url"] = result.final_url
    if result.error:
        headers["X-Unblock-Error"] = result.error

    return web.Response(
        status=result.status,
        text=result.html or "",
        content_type="text/html",
        headers=headers,
    )


async def handle_health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    fetcher = request.app[FETCHER_KEY]
    browser = "live" if fetcher.pool.is_live else "idle"
    logger.debug("health_check", browser=browser)
    return web.json_response({"status": "ok", "browser": browser})


async def _shutdown_browser(app: web.Application) -> None:
    logger.info("Destroying application, closing browser")
    await app[FETCHER_KEY].pool.shutdown()


def create_app(fetcher: PageFetcher | None = None) -> web.Application:
    """Create aiohttp application.

    Args:
        fetcher: Page fetcher to serve requests with. A fetcher with its own
            browser pool is created if omitted.
    """
    app = web.Application()
    app[FETCHER_KEY] = fetcher or PageFetcher(pool=BrowserPool())

    app.router.add_post("/unblock", handle_unblock)
    app.router.add_get("/health", handle_health)

    app.on_cleanup.append(_shutdown_browser)

    return app


async def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the server until SIGINT/SIGTERM."""
    settings = get_settings()
    host = host or settings.server.host
    port = port or settings.server.port

    logger.info("Starting Unblocker server", host=host, port=port)

    app = create_app()
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Unblocker server running on http://{host}:{port}")

    stop_event = asyncio.Event()

    def handle_signal(sig: int) -> None:
        logger.info("Received shutdown signal", signal=sig)
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, functools.partial(handle_signal, sig))

    await stop_event.wait()

    logger.info("Shutting down Unblocker server")
    await runner.cleanup()
