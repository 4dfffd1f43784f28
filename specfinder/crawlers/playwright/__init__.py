"""Playwright module for the rendered fetch strategy."""

from .browser import SharedBrowser, shutdown_shared_browser, new_page
from .pages import configure_page, should_block_request

__all__ = [
    "SharedBrowser",
    "shutdown_shared_browser",
    "new_page",
    "configure_page",
    "should_block_request",
]
