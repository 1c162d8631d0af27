"""Extract :class:`FieldDescriptor` values from a parsed page.

This is the only place besides the accessible-name resolver that reads the
DOM. Every control is stamped with ``data-claimfill-index`` so page writers
can address it with a stable selector, whether the document is a static
BeautifulSoup tree or the serialised snapshot of a live Playwright page.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Optional, Set, Tuple

from bs4 import BeautifulSoup, Tag

from .accessible_name import DEFAULT_SIBLING_LIMIT, resolve_accessible_name, resolve_description, resolve_group_name
from .records import AccessibleName, FieldDescriptor, FieldOption, FieldPosition

logger = logging.getLogger(__name__)

INDEX_ATTRIBUTE = "data-claimfill-index"
CONTROL_SELECTOR = "input, select, textarea"
"""Controls considered for classification; buttons are never fields."""

SKIPPED_INPUT_TYPES = frozenset({"hidden", "submit", "reset", "image", "button"})
_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)
_OPTION_LABEL_SOURCES = frozenset({"aria-labelledby", "aria-label", "label-for", "label-wrap"})


def index_selector(index: str) -> str:
    return f'[{INDEX_ATTRIBUTE}="{index}"]'


def _attr(element: Tag, name: str) -> str:
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) else ""


def _optional_attr(element: Tag, name: str) -> Optional[str]:
    value = _attr(element, name)
    return value or None


def _input_type(element: Tag) -> str:
    if element.name == "select":
        return "select"
    if element.name == "textarea":
        return "textarea"
    return (_attr(element, "type") or "text").lower()


def _is_hidden(element: Tag) -> bool:
    node: Optional[Tag] = element
    while isinstance(node, Tag) and node.name != "[document]":
        if node.has_attr("hidden"):
            return True
        if _attr(node, "aria-hidden").lower() == "true":
            return True
        if _HIDDEN_STYLE.search(_attr(node, "style")):
            return True
        node = node.parent
    return False


def _should_skip(element: Tag) -> bool:
    if element.has_attr("disabled"):
        return True
    if element.name == "input" and _input_type(element) in SKIPPED_INPUT_TYPES:
        return True
    return _is_hidden(element)


def stamp_controls(document: BeautifulSoup | Tag) -> List[Tag]:
    """Ensure every control carries an index attribute; return them in document order."""

    controls = [node for node in document.select(CONTROL_SELECTOR) if isinstance(node, Tag)]
    for position, control in enumerate(controls):
        if not _attr(control, INDEX_ATTRIBUTE):
            control[INDEX_ATTRIBUTE] = str(position)
    return controls


def _current_value(element: Tag) -> str:
    if element.name == "textarea":
        return element.get_text()
    if element.name == "select":
        options = element.find_all("option")
        for option in options:
            if option.has_attr("selected"):
                return _option_value(option)
        return _option_value(options[0]) if options else ""
    return _attr(element, "value")


def _option_value(option: Tag) -> str:
    if option.has_attr("value"):
        value = option.get("value")
        return value if isinstance(value, str) else ""
    return option.get_text(" ", strip=True)


def _select_options(element: Tag) -> Tuple[FieldOption, ...]:
    return tuple(
        FieldOption(
            value=_option_value(option),
            label=option.get_text(" ", strip=True),
            selected=option.has_attr("selected"),
        )
        for option in element.find_all("option")
        if isinstance(option, Tag) and not option.has_attr("disabled")
    )


def _radio_option(radio: Tag, document: BeautifulSoup | Tag, sibling_limit: int) -> FieldOption:
    value = _attr(radio, "value") or "on"
    name = resolve_accessible_name(radio, document, sibling_limit=sibling_limit)
    label = name.text if name.source in _OPTION_LABEL_SOURCES else value
    return FieldOption(
        value=value,
        label=label,
        selector=index_selector(_attr(radio, INDEX_ATTRIBUTE)),
        selected=radio.has_attr("checked"),
    )


def _position(index: str, boxes: Optional[Mapping[str, float]], viewport_height: Optional[float]) -> Optional[FieldPosition]:
    if not boxes or not viewport_height:
        return None
    top = boxes.get(index)
    if top is None:
        return None
    return FieldPosition(top=float(top), viewport_height=float(viewport_height))


def extract_field_descriptors(
    document: BeautifulSoup | Tag,
    *,
    boxes: Optional[Mapping[str, float]] = None,
    viewport_height: Optional[float] = None,
    sibling_limit: int = DEFAULT_SIBLING_LIMIT,
) -> List[FieldDescriptor]:
    """Return one descriptor per fillable control, in document order.

    ``boxes`` maps ``data-claimfill-index`` values to the element's top
    offset in pixels; without it, document order stands in for layout.
    """

    controls = stamp_controls(document)
    radio_groups: Dict[str, List[Tag]] = {}
    ordered: List[Tuple[str, Tag]] = []

    for control in controls:
        if _should_skip(control):
            continue
        if _input_type(control) == "radio":
            group_name = _attr(control, "name") or f"radio-{_attr(control, INDEX_ATTRIBUTE)}"
            if group_name not in radio_groups:
                radio_groups[group_name] = []
                ordered.append(("radio", control))
            radio_groups[group_name].append(control)
        else:
            ordered.append(("control", control))

    total = len(ordered)
    seen_ids: Dict[str, int] = {}
    used_ids: Set[str] = set()
    descriptors: List[FieldDescriptor] = []

    for ordinal, (kind, element) in enumerate(ordered):
        index = _attr(element, INDEX_ATTRIBUTE)
        name = _attr(element, "name")
        element_id = _attr(element, "id")
        input_type = _input_type(element)

        base_id = element_id or name or f"field-{ordinal}"
        field_id = base_id
        # A suffixed id can collide with a real id elsewhere on the page.
        while field_id in used_ids:
            seen_ids[base_id] = seen_ids.get(base_id, 0) + 1
            field_id = f"{base_id}-{seen_ids[base_id]}"
        used_ids.add(field_id)

        if kind == "radio":
            group = radio_groups[name or f"radio-{index}"]
            accessible_name: AccessibleName = resolve_group_name(element, document, sibling_limit=sibling_limit)
            options = tuple(_radio_option(radio, document, sibling_limit) for radio in group)
            checked_values = [option.value for option in options if option.selected]
            current_value = checked_values[0] if checked_values else ""
            checked = bool(checked_values)
            required = any(radio.has_attr("required") for radio in group)
        else:
            accessible_name = resolve_accessible_name(element, document, sibling_limit=sibling_limit)
            options = _select_options(element) if element.name == "select" else ()
            current_value = _current_value(element)
            checked = element.has_attr("checked")
            required = element.has_attr("required") or _attr(element, "aria-required").lower() == "true"

        descriptors.append(
            FieldDescriptor(
                field_id=field_id,
                selector=index_selector(index),
                tag=element.name,
                input_type=input_type,
                name=name,
                element_id=element_id,
                autocomplete=_attr(element, "autocomplete"),
                input_mode=_attr(element, "inputmode"),
                min=_optional_attr(element, "min"),
                max=_optional_attr(element, "max"),
                step=_optional_attr(element, "step"),
                required=required,
                placeholder=_attr(element, "placeholder"),
                accessible_name=accessible_name,
                description=resolve_description(element, document),
                options=options,
                current_value=current_value,
                checked=checked,
                position=_position(index, boxes, viewport_height),
                ordinal=ordinal,
                total=total,
            )
        )

    logger.debug("Extracted field descriptors", extra={"count": len(descriptors), "controls": len(controls)})
    return descriptors


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


__all__ = [
    "CONTROL_SELECTOR",
    "INDEX_ATTRIBUTE",
    "extract_field_descriptors",
    "index_selector",
    "parse_html",
    "stamp_controls",
]
