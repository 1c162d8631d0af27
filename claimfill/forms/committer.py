"""Validate candidate values and plan the DOM writes that commit them.

Nothing here touches a page. ``plan_write`` returns a :class:`WriteOp` that a
page writer (``claimfill.browser.writers``) applies later, so the whole
decision can be exercised without a browser.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import CommitRejectedError, ValidationFailedError
from .records import FieldDescriptor, FieldOption, WriteOp
from .schema import SchemaRegistry, default_registry, parse_date

logger = logging.getLogger(__name__)

SET_VALUE = "set_value"
SELECT_OPTION = "select_option"
SET_CHECKED = "set_checked"

TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "checked", "y"})


def coerce_checked(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _find_option(descriptor: FieldDescriptor, text: str) -> Optional[FieldOption]:
    wanted = text.strip().casefold()
    for option in descriptor.options:
        if option.value.strip().casefold() == wanted or option.label.strip().casefold() == wanted:
            return option
    return None


def _find_radio(descriptor: FieldDescriptor, text: str) -> Optional[FieldOption]:
    for option in descriptor.options:
        if option.value == text:
            return option
    wanted = text.strip().casefold()
    for option in descriptor.options:
        if option.value.strip().casefold() == wanted:
            return option
    return None


def _plan(descriptor: FieldDescriptor, value: Any, key: str) -> WriteOp:
    data = {"field": descriptor.field_id, "key": key}

    if descriptor.is_file:
        raise CommitRejectedError("File inputs are never written", reason="file_input", data=data)

    if descriptor.is_select:
        option = _find_option(descriptor, _as_text(value))
        if option is None:
            raise CommitRejectedError("No option matches the value", reason="no_matching_option", data=data)
        return WriteOp(
            field_id=descriptor.field_id,
            selector=descriptor.selector,
            action=SELECT_OPTION,
            value=option.value,
            previous_value=descriptor.current_value,
        )

    if descriptor.is_checkbox:
        return WriteOp(
            field_id=descriptor.field_id,
            selector=descriptor.selector,
            action=SET_CHECKED,
            checked=coerce_checked(value),
            previous_checked=descriptor.checked,
        )

    if descriptor.is_radio_group:
        option = _find_radio(descriptor, _as_text(value))
        if option is None or option.selector is None:
            raise CommitRejectedError("No radio button carries the value", reason="no_matching_radio", data=data)
        return WriteOp(
            field_id=descriptor.field_id,
            selector=option.selector,
            action=SET_CHECKED,
            value=option.value,
            checked=True,
            previous_value=descriptor.current_value,
            previous_checked=option.selected,
        )

    if descriptor.input_type == "date":
        parsed = parse_date(value)
        if parsed is None:
            raise CommitRejectedError("Value is not a date", reason="unparseable_date", data=data)
        text = parsed.isoformat()
    else:
        text = _as_text(value)

    return WriteOp(
        field_id=descriptor.field_id,
        selector=descriptor.selector,
        action=SET_VALUE,
        value=text,
        previous_value=descriptor.current_value,
    )


def plan_write(
    descriptor: FieldDescriptor,
    value: Any,
    key: str,
    registry: Optional[SchemaRegistry] = None,
) -> WriteOp:
    """Validate ``value`` for ``key`` and describe how to write it into ``descriptor``.

    Raises :class:`ValidationFailedError` when the validator rejects the value
    and :class:`CommitRejectedError` when the control cannot represent it.
    """

    registry = registry or default_registry()
    if not registry.validate(key, value):
        logger.debug("Validation failed", extra={"field": descriptor.field_id, "key": key})
        raise ValidationFailedError(f"Value rejected by the {key} validator", data={"field": descriptor.field_id, "key": key})
    return _plan(descriptor, value, key)


def plan_answer_write(descriptor: FieldDescriptor, value: Any, key: str) -> WriteOp:
    """Like :func:`plan_write` for claim answers, which have no schema validator."""

    if value is None or (isinstance(value, str) and not value.strip()) or isinstance(value, (dict, list)):
        raise ValidationFailedError("Empty or structured answer value", data={"field": descriptor.field_id, "key": key})
    return _plan(descriptor, value, key)


def revert_op(op: WriteOp, descriptor: Optional[FieldDescriptor] = None) -> WriteOp:
    """Return the operation restoring the state captured in ``op``.

    Radio groups need ``descriptor`` to find the button that was checked
    before; without it the written button is simply unchecked.
    """

    if op.action == SET_CHECKED and op.value is not None and descriptor is not None and descriptor.is_radio_group:
        previous = next(
            (option for option in descriptor.options if option.value == op.previous_value and option.selector),
            None,
        )
        if previous is not None:
            return WriteOp(
                field_id=op.field_id,
                selector=previous.selector or op.selector,
                action=SET_CHECKED,
                value=previous.value,
                checked=True,
            )

    if op.action == SET_CHECKED:
        return WriteOp(
            field_id=op.field_id,
            selector=op.selector,
            action=SET_CHECKED,
            value=op.value,
            checked=bool(op.previous_checked),
        )

    return WriteOp(
        field_id=op.field_id,
        selector=op.selector,
        action=op.action,
        value=op.previous_value or "",
    )


__all__ = [
    "SELECT_OPTION",
    "SET_CHECKED",
    "SET_VALUE",
    "TRUTHY_VALUES",
    "coerce_checked",
    "plan_answer_write",
    "plan_write",
    "revert_op",
]
