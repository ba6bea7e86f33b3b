"""
Main entry point for Unblocker.
"""

import asyncio
import json

from unblocker.utils.config import get_settings
from unblocker.utils.logging import configure_logging, get_logger


def initialize() -> None:
    """Initialize the application."""
    settings = get_settings()
    configure_logging(log_level=settings.general.log_level)

    logger = get_logger(__name__)
    logger.info(
        "Unblocker initializing",
        version=settings.general.version,
        log_level=settings.general.log_level,
    )


async def run_fetch(url: str, render: bool = True) -> dict:
    """Fetch a single page and return the result as a dict.

    Args:
        url: Page URL.
        render: Accepted for API compatibility. Pages are always rendered.
    """
    from unblocker.crawler.browser_pool import close_browser_pool
    from unblocker.crawler.page_fetcher import fetch_rendered_page

    try:
        result = await fetch_rendered_page(url, render=render)
    finally:
        await close_browser_pool()
    return result.to_dict()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Unblocker - rendered page fetcher with anti-bot evasion"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", type=str, help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one page and print JSON")
    fetch_parser.add_argument("url", type=str, help="Absolute page URL")
    fetch_parser.add_argument(
        "--no-html",
        action="store_true",
        help="Omit the HTML body from the printed result",
    )

    args = parser.parse_args(argv)

    initialize()

    if args.command == "serve":
        from unblocker.server.app import serve

        try:
            asyncio.run(serve(host=args.host, port=args.port))
        except KeyboardInterrupt:
            pass

    elif args.command == "fetch":
        result = asyncio.run(run_fetch(args.url))
        if args.no_html:
            result.pop("html", None)
        print(json.dumps(result, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
