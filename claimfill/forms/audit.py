"""Post-fill audit for one value landing in semantically different fields."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List

from .normalization import normalize_for_display
from .records import DuplicateGroup, FillRecord

logger = logging.getLogger(__name__)

BOOLEAN_LIKE_VALUES = frozenset(
    {"yes", "no", "true", "false", "on", "off", "1", "0", "y", "n", "checked", "unchecked"}
)

_WHITESPACE = re.compile(r"\s+")


def normalize_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return _WHITESPACE.sub(" ", str(value)).strip().casefold()


def find_duplicate_values(records: Iterable[FillRecord]) -> List[DuplicateGroup]:
    """Group committed records by value and flag groups with distinct labels.

    A group is reported in full once it holds two or more records whose
    normalized labels contain at least two different texts. Boolean-like
    values are excluded since checkboxes legitimately share them.
    """

    groups: Dict[str, List[FillRecord]] = {}
    for record in records:
        value = normalize_value(record.value)
        if not value or value in BOOLEAN_LIKE_VALUES:
            continue
        groups.setdefault(value, []).append(record)

    flagged: List[DuplicateGroup] = []
    for value, members in groups.items():
        if len(members) < 2:
            continue
        labels = {normalize_for_display(member.field.label) for member in members}
        if len(labels) < 2:
            continue
        logger.info(
            "Duplicate value across distinct fields",
            extra={"fields": [member.field.field_id for member in members], "labels": sorted(labels)},
        )
        flagged.append(DuplicateGroup(value=value, records=tuple(members)))
    return flagged


__all__ = ["BOOLEAN_LIKE_VALUES", "find_duplicate_values", "normalize_value"]
