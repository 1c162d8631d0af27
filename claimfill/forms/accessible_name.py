"""Accessible-name and description resolution over a parsed DOM snapshot.

The precedence mirrors how assistive technology names a control, with
placeholder and title demoted below real labels because they are frequently
generic ("Type here") or misleading.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from .records import AccessibleName

CONTROL_TAGS = frozenset({"input", "select", "textarea", "button"})
SIBLING_LABEL_TAGS = frozenset({"label", "span", "div", "p", "strong", "b"})
HINT_SELECTOR = ".hint, .help-text, .description, .note, small, .form-text, .helper-text"
DEFAULT_SIBLING_LIMIT = 100

_WHITESPACE = re.compile(r"\s+")


def _clean(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def _text_of(node: Tag) -> str:
    return _clean(node.get_text(" ", strip=True))


def _root(document: BeautifulSoup | Tag | None, element: Tag) -> BeautifulSoup | Tag:
    if document is not None:
        return document
    node = element
    while node.parent is not None:
        node = node.parent
    return node


def _ids(value: object) -> List[str]:
    if isinstance(value, (list, tuple)):
        value = " ".join(str(item) for item in value)
    if not isinstance(value, str):
        return []
    return [token for token in value.split() if token]


def _referenced_text(document: BeautifulSoup | Tag, ids: Iterable[str]) -> List[str]:
    texts: List[str] = []
    for ref in ids:
        target = document.find(id=ref)
        if isinstance(target, Tag):
            text = _text_of(target)
            if text:
                texts.append(text)
    return texts


def _label_text_without_controls(label: Tag) -> str:
    parts: List[str] = []
    for node in label.find_all(string=True):
        if not isinstance(node, NavigableString):
            continue
        inside_control = False
        for parent in node.parents:
            if parent is label:
                break
            if parent.name in CONTROL_TAGS or parent.name == "option":
                inside_control = True
                break
        if not inside_control:
            parts.append(str(node))
    return _clean(" ".join(parts))


def _attr(element: Tag, name: str) -> str:
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return _clean(value) if isinstance(value, str) else ""


def resolve_accessible_name(
    element: Tag,
    document: BeautifulSoup | Tag | None = None,
    *,
    sibling_limit: int = DEFAULT_SIBLING_LIMIT,
) -> AccessibleName:
    """Return the label text of ``element`` and the signal it came from.

    Precedence: ``aria-labelledby``, ``aria-label``, ``<label for>``, wrapping
    ``<label>``, fieldset legend or table caption, ``placeholder``, ``title``,
    then a short preceding sibling. ``AccessibleName("", "none")`` otherwise.
    """

    root = _root(document, element)

    labelled_by = _referenced_text(root, _ids(element.get("aria-labelledby")))
    if labelled_by:
        return AccessibleName(" ".join(labelled_by), "aria-labelledby")

    aria_label = _attr(element, "aria-label")
    if aria_label:
        return AccessibleName(aria_label, "aria-label")

    element_id = _attr(element, "id")
    if element_id:
        label = root.find("label", attrs={"for": element_id})
        if isinstance(label, Tag):
            text = _label_text_without_controls(label)
            if text:
                return AccessibleName(text, "label-for")

    wrapping = element.find_parent("label")
    if isinstance(wrapping, Tag):
        text = _label_text_without_controls(wrapping)
        if text:
            return AccessibleName(text, "label-wrap")

    group = resolve_group_caption(element)
    if group:
        return group

    placeholder = _attr(element, "placeholder")
    if placeholder:
        return AccessibleName(placeholder, "placeholder")

    title = _attr(element, "title")
    if title:
        return AccessibleName(title, "title")

    sibling = element.find_previous_sibling()
    if isinstance(sibling, Tag) and sibling.name in SIBLING_LABEL_TAGS:
        text = _text_of(sibling)
        if text and len(text) < sibling_limit:
            return AccessibleName(text, "sibling")

    return AccessibleName("", "none")


def resolve_group_caption(element: Tag) -> Optional[AccessibleName]:
    """Legend of the enclosing fieldset, else caption of the enclosing table."""

    fieldset = element.find_parent("fieldset")
    if isinstance(fieldset, Tag):
        legend = fieldset.find("legend")
        if isinstance(legend, Tag):
            text = _text_of(legend)
            if text:
                return AccessibleName(text, "legend")

    table = element.find_parent("table")
    if isinstance(table, Tag):
        caption = table.find("caption")
        if isinstance(caption, Tag):
            text = _text_of(caption)
            if text:
                return AccessibleName(text, "caption")
    return None


def resolve_group_name(
    element: Tag,
    document: BeautifulSoup | Tag | None = None,
    *,
    sibling_limit: int = DEFAULT_SIBLING_LIMIT,
) -> AccessibleName:
    """Name a radio group: the group container wins over the first button's label."""

    root = _root(document, element)
    container = element.find_parent(attrs={"role": "radiogroup"})
    if isinstance(container, Tag):
        labelled_by = _referenced_text(root, _ids(container.get("aria-labelledby")))
        if labelled_by:
            return AccessibleName(" ".join(labelled_by), "aria-labelledby")
        aria_label = _attr(container, "aria-label")
        if aria_label:
            return AccessibleName(aria_label, "aria-label")

    group = resolve_group_caption(element)
    if group:
        return group
    return resolve_accessible_name(element, root, sibling_limit=sibling_limit)


def resolve_description(element: Tag, document: BeautifulSoup | Tag | None = None) -> str:
    """Join ``aria-describedby`` targets and nearby hint text, space separated."""

    root = _root(document, element)
    descriptions = _referenced_text(root, _ids(element.get("aria-describedby")))

    parent = element.parent
    if isinstance(parent, Tag):
        for hint in parent.select(HINT_SELECTOR):
            if hint is element or any(node is element for node in hint.descendants):
                continue
            text = _text_of(hint)
            if text and text not in descriptions:
                descriptions.append(text)

    return " ".join(descriptions)


__all__ = [
    "DEFAULT_SIBLING_LIMIT",
    "resolve_accessible_name",
    "resolve_description",
    "resolve_group_caption",
    "resolve_group_name",
]
