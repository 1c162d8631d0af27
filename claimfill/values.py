"""Read-only access to the values a sweep may write.

Two stores feed a sweep: the claimant's profile (nested, addressed by dot
paths such as ``address.street``) and the claim-specific answers keyed by
question id. Lookups tolerate case and camelCase/snake_case differences
because profiles arrive from several producers.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from rapidfuzz import fuzz

from .forms.normalization import normalize

logger = logging.getLogger(__name__)

ANSWER_FUZZY_CUTOFF = 90

_LOOSE = re.compile(r"[\s_\-]+")


def _loose_key(key: str) -> str:
    return _LOOSE.sub("", str(key)).lower()


def _child(container: Any, part: str) -> Tuple[bool, Any]:
    if not isinstance(container, Mapping):
        return False, None
    if part in container:
        return True, container[part]
    wanted = _loose_key(part)
    for key, value in container.items():
        if _loose_key(key) == wanted:
            return True, value
    return False, None


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _flatten(mapping: Mapping[str, Any], prefix: str = "") -> List[str]:
    keys: List[str] = []
    for key, value in mapping.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            keys.extend(_flatten(value, path))
        else:
            keys.append(path)
    return keys


@dataclass
class KnownValues:
    profile: Mapping[str, Any] = field(default_factory=dict)
    case_answers: Mapping[str, Any] = field(default_factory=dict)
    case_answer_meta: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_packet(cls, packet: Mapping[str, Any] | None) -> "KnownValues":
        """Build from a claim packet ``{userData, caseAnswers, caseAnswerMeta}``."""

        packet = packet or {}

        def _section(*names: str) -> Mapping[str, Any]:
            for name in names:
                value = packet.get(name)
                if isinstance(value, Mapping):
                    return value
            return {}

        return cls(
            profile=_section("userData", "user_data", "profile"),
            case_answers=_section("caseAnswers", "case_answers", "answers"),
            case_answer_meta=_section("caseAnswerMeta", "case_answer_meta"),
        )

    def lookup_profile(self, path: str) -> Any:
        """Resolve ``path`` against the profile; ``None`` when absent or blank."""

        if not path:
            return None
        found, value = _child(self.profile, path)
        if found and not isinstance(value, Mapping):
            return None if _is_missing(value) else value

        node: Any = self.profile
        for part in path.split("."):
            found, node = _child(node, part)
            if not found:
                return None
        if isinstance(node, Mapping) or _is_missing(node):
            return None
        return node

    def lookup_answer(self, key: str) -> Any:
        found, value = _child(self.case_answers, key)
        if not found or _is_missing(value):
            return None
        return value

    def _answer_texts(self, key: str) -> List[str]:
        texts = [key]
        meta = self.case_answer_meta.get(key)
        if isinstance(meta, Mapping):
            for name in ("question", "label", "text", "prompt"):
                text = meta.get(name)
                if isinstance(text, str) and text.strip():
                    texts.append(text)
        elif isinstance(meta, str) and meta.strip():
            texts.append(meta)
        return texts

    def match_answer(self, label: str | None) -> Optional[Tuple[str, Any]]:
        """Find the claim answer whose key or question text matches ``label``.

        Normalized equality wins; otherwise the best RapidFuzz
        ``token_sort_ratio`` at or above :data:`ANSWER_FUZZY_CUTOFF` is used.
        Every word counts, so "Location" never reaches "purchase_location".
        """

        wanted = normalize(label)
        if not wanted:
            return None

        best: Optional[Tuple[str, float]] = None
        for key in self.case_answers:
            if self.lookup_answer(key) is None:
                continue
            for text in self._answer_texts(key):
                candidate = normalize(text)
                if not candidate:
                    continue
                if candidate == wanted:
                    return key, self.case_answers[key]
                score = float(fuzz.token_sort_ratio(wanted, candidate, score_cutoff=ANSWER_FUZZY_CUTOFF))
                if score and (best is None or score > best[1]):
                    best = (key, score)

        if best is None:
            return None
        logger.debug("Answer matched by similarity", extra={"label": label, "key": best[0], "score": best[1]})
        return best[0], self.case_answers[best[0]]

    def profile_keys(self) -> List[str]:
        return _flatten(self.profile)

    def answer_keys(self) -> List[str]:
        return [str(key) for key in self.case_answers]

    def answer_meta(self) -> Dict[str, Any]:
        return dict(self.case_answer_meta)


__all__ = ["ANSWER_FUZZY_CUTOFF", "KnownValues"]
