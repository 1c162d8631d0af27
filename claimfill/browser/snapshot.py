"""Capture a live Playwright page as a parseable snapshot."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, async_playwright

from ..config import Settings, get_settings
from ..forms.descriptors import CONTROL_SELECTOR, INDEX_ATTRIBUTE, index_selector, parse_html

logger = logging.getLogger(__name__)

_SNAPSHOT_SCRIPT = """
({ selector, attribute }) => {
    const boxes = {};
    const values = {};
    Array.from(document.querySelectorAll(selector)).forEach((el, position) => {
        if (!el.hasAttribute(attribute)) {
            el.setAttribute(attribute, String(position));
        }
        const index = el.getAttribute(attribute);
        const rect = el.getBoundingClientRect();
        if (rect.width > 0 || rect.height > 0) {
            boxes[index] = rect.top;
        }
        values[index] = {
            value: el.tagName === "SELECT" || el.type === "file" ? null : (el.value ?? null),
            checked: el.type === "checkbox" || el.type === "radio" ? Boolean(el.checked) : null,
            selected: el.tagName === "SELECT" ? el.value : null,
        };
    });
    return {
        html: document.documentElement.outerHTML,
        boxes,
        values,
        viewportHeight: window.innerHeight,
        url: window.location.href,
    };
}
"""


@dataclass
class PageSnapshot:
    """Serialised page plus the layout facts the scorer uses."""

    html: str
    boxes: Dict[str, float] = field(default_factory=dict)
    viewport_height: Optional[float] = None
    values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    url: str = ""

    def document(self) -> BeautifulSoup:
        """Parse the snapshot, folding live control state back into attributes."""

        soup = parse_html(self.html)
        for index, state in self.values.items():
            element = soup.select_one(index_selector(index))
            if not isinstance(element, Tag) or not isinstance(state, dict):
                continue
            value = state.get("value")
            if value is not None:
                if element.name == "textarea":
                    element.string = str(value)
                else:
                    element["value"] = str(value)
            checked = state.get("checked")
            if checked is True:
                element["checked"] = ""
            elif checked is False and element.has_attr("checked"):
                del element["checked"]
            selected = state.get("selected")
            if selected is not None and element.name == "select":
                for option in element.find_all("option"):
                    if option.has_attr("selected"):
                        del option["selected"]
                    if option.get("value", option.get_text(" ", strip=True)) == selected:
                        option["selected"] = ""
        return soup


async def snapshot_page(page: Page) -> PageSnapshot:
    """Stamp controls with ``data-claimfill-index`` and capture the page."""

    data = await page.evaluate(_SNAPSHOT_SCRIPT, {"selector": CONTROL_SELECTOR, "attribute": INDEX_ATTRIBUTE})
    boxes = {str(key): float(value) for key, value in (data.get("boxes") or {}).items()}
    snapshot = PageSnapshot(
        html=data.get("html") or "",
        boxes=boxes,
        viewport_height=data.get("viewportHeight"),
        values=data.get("values") or {},
        url=data.get("url") or "",
    )
    logger.debug("Captured page snapshot", extra={"url": snapshot.url, "controls": len(snapshot.values)})
    return snapshot


@asynccontextmanager
async def open_page(url: str, *, settings: Optional[Settings] = None, headless: Optional[bool] = None) -> AsyncIterator[Page]:
    """Launch a browser, open ``url`` and yield the page; everything is closed on exit."""

    settings = settings or get_settings()
    async with async_playwright() as playwright:
        launcher = getattr(playwright, settings.playwright_browser, None)
        if launcher is None:
            raise ValueError(f"Unsupported browser type: {settings.playwright_browser}")
        browser = await launcher.launch(headless=settings.playwright_headless if headless is None else headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded")
            yield page
        finally:
            await browser.close()


__all__ = ["PageSnapshot", "open_page", "snapshot_page"]
