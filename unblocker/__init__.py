"""
Unblocker - fetches fully-rendered pages past script-injected anti-bot layers.
"""

__version__ = "0.1.0"
