"""In-process tool provider backed directly by Playwright.

Exposes a compact subset of the Playwright MCP tool surface so test runs can
work without spawning a Node.js MCP server. Output mimics the MCP server's
markdown sections (``### Result``, ``### Page state``, ``### Error``).
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Dialog, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from steprunner.errors import ProviderConnectionError, ToolInvocationError
from steprunner.models.config import RunnerConfig
from steprunner.models.provider import ToolDescriptor, ToolResponse
from steprunner.utils.browser import create_context, launch_browser

from .base import ToolProvider

logger = logging.getLogger(__name__)

SNAPSHOT_TEXT_CHARS = 4000


def _schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


_SELECTOR = {"type": "string", "description": "CSS or Playwright selector of the target element"}

TOOL_CATALOG: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="browser_navigate",
        description="Navigate to a URL",
        input_schema=_schema({"url": {"type": "string", "description": "The URL to navigate to"}}, ["url"]),
    ),
    ToolDescriptor(
        name="browser_navigate_back",
        description="Go back to the previous page",
        input_schema=_schema({}),
    ),
    ToolDescriptor(
        name="browser_click",
        description="Click an element on the page",
        input_schema=_schema({
            "selector": _SELECTOR,
            "doubleClick": {"type": "boolean", "description": "Whether to perform a double click"},
        }, ["selector"]),
    ),
    ToolDescriptor(
        name="browser_type",
        description="Type text into an editable element",
        input_schema=_schema({
            "selector": _SELECTOR,
            "text": {"type": "string", "description": "Text to type into the element"},
            "submit": {"type": "boolean", "description": "Press Enter after typing"},
        }, ["selector", "text"]),
    ),
    ToolDescriptor(
        name="browser_press_key",
        description="Press a key on the keyboard",
        input_schema=_schema({"key": {"type": "string", "description": "Name of the key, e.g. ArrowLeft or a"}}, ["key"]),
    ),
    ToolDescriptor(
        name="browser_select_option",
        description="Select options in a dropdown",
        input_schema=_schema({
            "selector": _SELECTOR,
            "values": {"type": "array", "items": {"type": "string"}, "description": "Values to select"},
        }, ["selector", "values"]),
    ),
    ToolDescriptor(
        name="browser_hover",
        description="Hover over an element on the page",
        input_schema=_schema({"selector": _SELECTOR}, ["selector"]),
    ),
    ToolDescriptor(
        name="browser_wait_for",
        description="Wait for text to appear or disappear, an element to appear, or a number of seconds to pass",
        input_schema=_schema({
            "time": {"type": "number", "description": "Seconds to wait"},
            "text": {"type": "string", "description": "Text to wait for"},
            "textGone": {"type": "string", "description": "Text to wait for to disappear"},
            "selector": _SELECTOR,
        }),
    ),
    ToolDescriptor(
        name="browser_evaluate",
        description="Evaluate a JavaScript function on the page or on an element and report its result",
        input_schema=_schema({
            "function": {"type": "string", "description": "() => { /* code */ } or (element) => { /* code */ }"},
            "selector": _SELECTOR,
        }, ["function"]),
    ),
    ToolDescriptor(
        name="browser_take_screenshot",
        description="Take a screenshot of the current page",
        input_schema=_schema({
            "filename": {"type": "string", "description": "File name to save the screenshot to"},
            "fullPage": {"type": "boolean", "description": "Capture the full scrollable page"},
        }),
    ),
    ToolDescriptor(
        name="browser_snapshot",
        description="Capture the current page URL, title and visible text",
        input_schema=_schema({}),
    ),
    ToolDescriptor(
        name="browser_handle_dialog",
        description="Accept or dismiss the next alert, confirm or prompt dialog",
        input_schema=_schema({
            "accept": {"type": "boolean", "description": "Whether to accept the dialog"},
            "promptText": {"type": "string", "description": "Text to enter into a prompt dialog"},
        }, ["accept"]),
    ),
)


class PlaywrightToolProvider(ToolProvider):
    """Drives one browser page in-process and answers tool calls against it."""

    name = "playwright"

    def __init__(self, config: RunnerConfig, playwright_factory: Callable = async_playwright):
        self.config = config
        self._playwright_factory = playwright_factory
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._dialog_policy: Optional[tuple[bool, Optional[str]]] = None
        self._last_dialog: Optional[str] = None
        self.screenshots_dir = Path(config.reporting.screenshots_dir)

    async def connect(self) -> None:
        logger.info("Launching %s (headless=%s)", self.config.browser.browser,
                    self.config.browser.headless)
        try:
            self._playwright = await self._playwright_factory().start()
            self._browser = await launch_browser(self._playwright, self.config.browser)
            self._context = await create_context(self._browser, self.config.browser)
            timeout = self.config.provider.step_timeout_seconds
            if timeout:
                self._context.set_default_timeout(timeout * 1000)
            self._page = await self._context.new_page()
            self._page.on("dialog", self._on_dialog)
        except Exception as e:
            try:
                await self.close()
            except Exception as close_err:
                logger.debug("Cleanup after failed launch raised: %s", close_err)
            raise ProviderConnectionError(f"Failed to launch browser: {e}") from e
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Playwright provider ready")

    async def close(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None
        try:
            if context is not None:
                await context.close()
        finally:
            try:
                if browser is not None:
                    await browser.close()
                    logger.info("Browser closed")
            finally:
                if playwright is not None:
                    await playwright.stop()

    async def discover_tools(self) -> list[ToolDescriptor]:
        if self._page is None:
            raise ProviderConnectionError("Playwright provider is not connected")
        return list(TOOL_CATALOG)

    async def _on_dialog(self, dialog: Dialog) -> None:
        self._last_dialog = f"{dialog.type}: {dialog.message}"
        policy, self._dialog_policy = self._dialog_policy, None
        if policy and policy[0]:
            logger.debug("Accepting dialog %s", self._last_dialog)
            await dialog.accept(policy[1] or "")
        else:
            logger.debug("Dismissing dialog %s", self._last_dialog)
            await dialog.dismiss()

    async def invoke(self, name: str, params: dict[str, Any]) -> ToolResponse:
        page = self._page
        if page is None:
            raise ToolInvocationError(name, "Playwright provider is not connected")

        try:
            text = await self._dispatch(page, name, params)
        except PlaywrightError as e:
            return ToolResponse.from_text(f"### Error\n{e.message}", is_error=True)
        except (KeyError, TypeError, ValueError) as e:
            return ToolResponse.from_text(
                f"### Error\nInvalid parameters for {name}: {e}", is_error=True,
            )
        return ToolResponse.from_text(text)

    async def _dispatch(self, page: Page, name: str, params: dict[str, Any]) -> str:
        match name:
            case "browser_navigate":
                url = params["url"]
                await page.goto(url, wait_until="domcontentloaded")
                return f"### Ran Playwright code\nawait page.goto({url!r});\n\n{await self._page_state(page)}"

            case "browser_navigate_back":
                await page.go_back()
                return await self._page_state(page)

            case "browser_click":
                selector = params["selector"]
                if params.get("doubleClick"):
                    await page.dblclick(selector)
                else:
                    await page.click(selector)
                return f"### Ran Playwright code\nawait page.click({selector!r});\n\n{await self._page_state(page)}"

            case "browser_type":
                selector = params["selector"]
                await page.fill(selector, str(params["text"]))
                if params.get("submit"):
                    await page.press(selector, "Enter")
                return f"### Ran Playwright code\nawait page.fill({selector!r}, ...);"

            case "browser_press_key":
                await page.keyboard.press(params["key"])
                return f"### Ran Playwright code\nawait page.keyboard.press({params['key']!r});"

            case "browser_select_option":
                values = params["values"]
                if isinstance(values, str):
                    values = [values]
                selected = await page.select_option(params["selector"], values)
                return f"### Result\n{json.dumps(selected)}"

            case "browser_hover":
                await page.hover(params["selector"])
                return f"### Ran Playwright code\nawait page.hover({params['selector']!r});"

            case "browser_wait_for":
                return await self._wait_for(page, params)

            case "browser_evaluate":
                function = params["function"]
                if params.get("selector"):
                    value = await page.locator(params["selector"]).first.evaluate(function)
                else:
                    value = await page.evaluate(function)
                return f"### Result\n{json.dumps(value, default=str)}"

            case "browser_take_screenshot":
                filename = params.get("filename") or f"page-{time.strftime('%Y%m%dT%H%M%S')}.png"
                path = self.screenshots_dir / Path(filename).name
                await page.screenshot(path=str(path), full_page=bool(params.get("fullPage")))
                kind = "full page" if params.get("fullPage") else "viewport"
                return f"### Result\nTook the {kind} screenshot and saved it as {path}"

            case "browser_snapshot":
                body = await page.locator("body").inner_text()
                return f"{await self._page_state(page)}\n\n### Page text\n{body[:SNAPSHOT_TEXT_CHARS]}"

            case "browser_handle_dialog":
                self._dialog_policy = (bool(params["accept"]), params.get("promptText"))
                last = f" (last dialog: {self._last_dialog})" if self._last_dialog else ""
                action = "accept" if params["accept"] else "dismiss"
                return f"### Result\nWill {action} the next dialog{last}"

            case _:
                raise ValueError(f"unknown tool '{name}'")

    @staticmethod
    async def _wait_for(page: Page, params: dict[str, Any]) -> str:
        if params.get("selector"):
            await page.wait_for_selector(params["selector"])
            return f"### Result\nElement {params['selector']} is visible"
        if params.get("text"):
            await page.get_by_text(params["text"]).first.wait_for(state="visible")
            return f"### Result\nText \"{params['text']}\" appeared"
        if params.get("textGone"):
            await page.get_by_text(params["textGone"]).first.wait_for(state="hidden")
            return f"### Result\nText \"{params['textGone']}\" disappeared"
        seconds = float(params.get("time", 1))
        await page.wait_for_timeout(seconds * 1000)
        return f"### Result\nWaited for {seconds:g}s"

    @staticmethod
    async def _page_state(page: Page) -> str:
        return f"### Page state\n- Page URL: {page.url}\n- Page Title: {await page.title()}"
