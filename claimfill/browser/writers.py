"""Page writers apply planned :class:`WriteOp` batches to a document.

``SoupPageWriter`` edits a parsed BeautifulSoup tree (saved pages, tests, the
``fill`` command). ``PlaywrightPageWriter`` applies the whole batch to a live
page in a single ``page.evaluate`` round trip, going through the native value
setters so framework-controlled inputs observe the change.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from ..forms.committer import SELECT_OPTION, SET_CHECKED, SET_VALUE
from ..forms.records import WriteOp

logger = logging.getLogger(__name__)


class PageWriter(Protocol):
    """Protocol describing the behaviour expected from any page writer."""

    async def apply(self, ops: Sequence[WriteOp]) -> List[bool]:
        """Apply ``ops`` in order; the result holds one success flag per op."""
        ...


class SoupPageWriter:
    """Apply write operations to an in-memory BeautifulSoup document."""

    def __init__(self, document: BeautifulSoup) -> None:
        self.document = document
        self.dispatched: List[Tuple[str, str]] = []

    async def apply(self, ops: Sequence[WriteOp]) -> List[bool]:
        return [self._apply_one(op) for op in ops]

    def html(self) -> str:
        return str(self.document)

    def _apply_one(self, op: WriteOp) -> bool:
        element = self.document.select_one(op.selector)
        if not isinstance(element, Tag):
            logger.warning("Write target not found", extra={"field": op.field_id, "selector": op.selector})
            return False

        if op.action == SET_VALUE:
            applied = self._set_value(element, op.value or "")
        elif op.action == SELECT_OPTION:
            applied = self._select_option(element, op.value or "")
        elif op.action == SET_CHECKED:
            applied = self._set_checked(element, bool(op.checked))
        else:
            logger.warning("Unsupported write action", extra={"field": op.field_id, "action": op.action})
            return False

        if applied:
            for event in op.events:
                self.dispatched.append((op.selector, event))
                logger.debug("Dispatched event", extra={"field": op.field_id, "event": event})
        return applied

    @staticmethod
    def _set_value(element: Tag, value: str) -> bool:
        if element.name == "textarea":
            element.string = value
            return True
        if element.name == "select":
            return SoupPageWriter._select_option(element, value)
        element["value"] = value
        return True

    @staticmethod
    def _select_option(element: Tag, value: str) -> bool:
        if element.name != "select":
            return False
        options = [option for option in element.find_all("option") if isinstance(option, Tag)]
        target = None
        for option in options:
            option_value = option.get("value")
            if option_value is None:
                option_value = option.get_text(" ", strip=True)
            if option_value == value:
                target = option
                break
        if target is None:
            return False
        for option in options:
            if option.has_attr("selected"):
                del option["selected"]
        target["selected"] = ""
        return True

    def _set_checked(self, element: Tag, checked: bool) -> bool:
        input_type = str(element.get("type") or "").lower()
        if input_type not in {"checkbox", "radio"}:
            return False
        if checked and input_type == "radio":
            name = element.get("name")
            if name:
                for sibling in self.document.find_all("input", attrs={"type": "radio", "name": name}):
                    if sibling is not element and sibling.has_attr("checked"):
                        del sibling["checked"]
        if checked:
            element["checked"] = ""
        elif element.has_attr("checked"):
            del element["checked"]
        return True


_APPLY_SCRIPT = """
(ops) => {
    const setterFor = (el, prop) => {
        const proto = {
            TEXTAREA: HTMLTextAreaElement.prototype,
            SELECT: HTMLSelectElement.prototype,
        }[el.tagName] || HTMLInputElement.prototype;
        const descriptor = Object.getOwnPropertyDescriptor(proto, prop);
        return descriptor && descriptor.set;
    };
    return ops.map((op) => {
        try {
            const el = document.querySelector(op.selector);
            if (!el) {
                return false;
            }
            if (op.action === "set_value" || op.action === "select_option") {
                const value = op.value == null ? "" : String(op.value);
                if (el.tagName === "SELECT" && !Array.from(el.options).some((o) => o.value === value)) {
                    return false;
                }
                const setter = setterFor(el, "value");
                if (setter) {
                    setter.call(el, value);
                } else {
                    el.value = value;
                }
            } else if (op.action === "set_checked") {
                const setter = setterFor(el, "checked");
                if (setter) {
                    setter.call(el, Boolean(op.checked));
                } else {
                    el.checked = Boolean(op.checked);
                }
            } else {
                return false;
            }
            for (const name of op.events) {
                el.dispatchEvent(new Event(name, { bubbles: true }));
            }
            return true;
        } catch (err) {
            return false;
        }
    });
}
"""


class PlaywrightPageWriter:
    """Apply a batch of write operations to a live Playwright page."""

    def __init__(self, page: Any) -> None:
        self.page = page

    async def apply(self, ops: Sequence[WriteOp]) -> List[bool]:
        if not ops:
            return []
        payload: List[Dict[str, Any]] = [op.to_dict() for op in ops]
        results = await self.page.evaluate(_APPLY_SCRIPT, payload)
        if not isinstance(results, list) or len(results) != len(ops):
            logger.warning("Unexpected write batch result", extra={"ops": len(ops), "result": repr(results)[:200]})
            return [False] * len(ops)
        applied = [bool(result) for result in results]
        logger.debug("Applied write batch", extra={"ops": len(ops), "applied": sum(applied)})
        return applied


__all__ = ["PageWriter", "PlaywrightPageWriter", "SoupPageWriter"]
