"""
Unblocker HTTP Server.

Thin aiohttp front end for the rendered page fetcher.
"""

from unblocker.server.app import UnblockRequest, create_app, serve

__all__ = ["UnblockRequest", "create_app", "serve"]
