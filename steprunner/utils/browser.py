"""Browser launch helpers for the in-process Playwright provider."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, Playwright

from steprunner.models.config import BrowserConfig

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


async def launch_browser(playwright: Playwright, config: BrowserConfig) -> Browser:
    """Launch the configured browser engine."""
    name = config.browser if config.browser in SUPPORTED_BROWSERS else "chromium"
    browser_type = getattr(playwright, name)
    args = ["--disable-blink-features=AutomationControlled"] if name == "chromium" else []
    return await browser_type.launch(headless=config.headless, args=args)


async def create_context(browser: Browser, config: BrowserConfig) -> BrowserContext:
    """Create a browser context with the configured viewport."""
    return await browser.new_context(
        viewport={"width": config.viewport.width, "height": config.viewport.height},
        ignore_https_errors=config.ignore_https_errors,
        locale="en-US",
    )
