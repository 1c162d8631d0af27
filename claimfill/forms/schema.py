"""Semantic schema registry: which profile keys exist and how to recognise them.

Each entry carries positive signals (autocomplete tokens, keyword phrases,
id/name regexes, accepted input types), negative signals that suppress false
positives sharing the same vocabulary, and a validator that must accept a
value before it is ever written into a page.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .normalization import normalize_for_display
from .records import FieldDescriptor

logger = logging.getLogger(__name__)

Validator = Callable[[Any], bool]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
US_ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")

# Autocomplete tokens that qualify the detail token rather than name a field.
_AUTOCOMPLETE_QUALIFIERS = frozenset({"shipping", "billing", "home", "work", "mobile", "fax", "pager", "webauthn"})

_DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


@dataclass(frozen=True)
class SignalSet:
    """One polarity of evidence for a schema entry."""

    autocomplete: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    patterns: Tuple[re.Pattern[str], ...] = ()
    types: Tuple[str, ...] = ()
    input_modes: Tuple[str, ...] = ()
    # A small ``max`` constraint marks a counter rather than this concept.
    numeric_range_hint: bool = False

    def matches_pattern(self, *values: str) -> Optional[re.Pattern[str]]:
        for pattern in self.patterns:
            for value in values:
                if value and pattern.search(value):
                    return pattern
        return None


@dataclass(frozen=True)
class SemanticSchemaEntry:
    key: str
    data_type: str
    positive: SignalSet
    negative: SignalSet = field(default_factory=SignalSet)
    validator: Validator = lambda value: value is not None

    def validate(self, value: Any) -> bool:
        try:
            return bool(self.validator(value))
        except Exception:  # validators must stay total
            logger.debug("Validator raised; treating value as invalid", extra={"key": self.key})
            return False


def _signals(
    *,
    autocomplete: Sequence[str] = (),
    keywords: Sequence[str] = (),
    patterns: Sequence[str] = (),
    types: Sequence[str] = (),
    input_modes: Sequence[str] = (),
    numeric_range_hint: bool = False,
) -> SignalSet:
    return SignalSet(
        autocomplete=tuple(autocomplete),
        keywords=tuple(keywords),
        patterns=tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns),
        types=tuple(types),
        input_modes=tuple(input_modes),
        numeric_range_hint=numeric_range_hint,
    )


def autocomplete_token(value: Optional[str]) -> str:
    """Return the detail token of an ``autocomplete`` attribute.

    ``"section-ship shipping street-address"`` yields ``"street-address"``;
    ``"off"`` and ``"on"`` carry no semantics and yield ``""``.
    """

    if not value:
        return ""
    tokens = [token for token in value.strip().lower().split() if token]
    tokens = [token for token in tokens if not token.startswith("section-") and token not in _AUTOCOMPLETE_QUALIFIERS]
    if not tokens:
        return ""
    token = tokens[-1]
    return "" if token in {"on", "off"} else token


@lru_cache(maxsize=None)
def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Whole-word pattern for a keyword phrase: "count" must not fire on "country"."""

    return re.compile(rf"\b{re.escape(normalize_for_display(keyword))}\b")


def parse_date(value: Any) -> Optional[date]:
    """Parse the date formats commonly found in profile data; ``None`` if unparseable."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_amount(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = re.sub(r"[\s,$€£]", "", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _bounded_text(minimum: int, maximum: Optional[int] = None) -> Validator:
    def _validator(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        length = len(value.strip())
        if length < minimum:
            return False
        return maximum is None or length <= maximum

    return _validator


def _is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def _is_phone(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return False
    digits = re.sub(r"\D", "", str(value))
    return 7 <= len(digits) <= 15


def _is_zip(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return False
    text = str(value).strip()
    return bool(US_ZIP_PATTERN.match(text)) or len(text) >= 3


def _is_past_date(value: Any) -> bool:
    parsed = parse_date(value)
    return parsed is not None and parsed < date.today()


def _is_date(value: Any) -> bool:
    return parse_date(value) is not None


def _is_amount(value: Any) -> bool:
    number = parse_amount(value)
    return number is not None and number >= 0


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _build_entries() -> List[SemanticSchemaEntry]:
    return [
        SemanticSchemaEntry(
            key="first_name",
            data_type="text",
            positive=_signals(
                autocomplete=["given-name"],
                keywords=["first name", "given name", "forename", "legal first name"],
                patterns=[r"^first[-_]?name$", r"^fname$", r"^given[-_]?name$"],
            ),
            negative=_signals(
                autocomplete=["organization", "company-name"],
                keywords=[
                    "company", "business", "organization", "department", "school",
                    "product", "store", "contact person", "emergency", "spouse",
                    "parent", "guardian", "reference", "middle", "username", "user name",
                ],
            ),
            validator=_bounded_text(1, 50),
        ),
        SemanticSchemaEntry(
            key="last_name",
            data_type="text",
            positive=_signals(
                autocomplete=["family-name"],
                keywords=["last name", "surname", "family name", "legal last name"],
                patterns=[r"^last[-_]?name$", r"^lname$", r"^surname$", r"^family[-_]?name$"],
            ),
            negative=_signals(
                autocomplete=["organization"],
                keywords=["company", "business", "organization", "department", "maiden", "middle", "user", "username"],
            ),
            validator=_bounded_text(1, 50),
        ),
        SemanticSchemaEntry(
            key="full_name",
            data_type="text",
            positive=_signals(
                autocomplete=["name"],
                keywords=["full name", "your name", "claimant name", "legal name", "print name"],
                patterns=[r"^full[-_]?name$", r"^name$", r"^your[-_]?name$"],
            ),
            negative=_signals(
                autocomplete=["organization", "company-name"],
                keywords=[
                    "company", "business", "organization", "department", "school",
                    "university", "product", "store", "brand", "model", "file",
                    "project", "event", "account", "user", "username", "employer", "institution", "middle",
                ],
                types=["email", "tel", "number"],
            ),
            validator=_bounded_text(2, 100),
        ),
        SemanticSchemaEntry(
            key="email",
            data_type="email",
            positive=_signals(
                autocomplete=["email"],
                keywords=[
                    "email address", "e-mail", "your email", "email",
                    "confirm email address", "confirm your email", "confirm email",
                    "verify email address", "verify your email", "verify email",
                ],
                patterns=[r"^e?-?mail$", r"^email[-_]?addr", r"^confirm[-_]?email$", r"^verify[-_]?email$"],
                types=["email"],
            ),
            # confirm/verify are allowed for email; generic re-entry is not
            negative=_signals(keywords=["repeat", "re-enter", "retype", "type again", "ip", "ip address", "web", "website", "url"]),
            validator=_is_email,
        ),
        SemanticSchemaEntry(
            key="phone",
            data_type="phone",
            positive=_signals(
                autocomplete=["tel", "tel-national", "tel-local"],
                keywords=[
                    "phone number", "telephone number", "mobile number", "cell phone",
                    "phone", "telephone", "mobile phone", "contact phone", "daytime phone",
                    "primary phone", "home phone number", "cell number",
                ],
                patterns=[
                    r"^phone$", r"^tel$", r"^telephone$", r"^mobile$",
                    r"^phone[-_]?number$", r"^phone[-_]?num$", r"^cell$",
                    r"^contact[-_]?phone$", r"^primary[-_]?phone$",
                ],
                types=["tel"],
            ),
            negative=_signals(
                keywords=[
                    "how many", "number of", "count", "quantity", "students",
                    "attendees", "participants", "items", "extension", "fax",
                    "order number", "confirmation number", "reference number",
                ],
                types=["number"],
                input_modes=["numeric"],
                numeric_range_hint=True,
            ),
            validator=_is_phone,
        ),
        SemanticSchemaEntry(
            key="address.street",
            data_type="text",
            positive=_signals(
                autocomplete=["street-address", "address-line1"],
                keywords=["street address", "mailing address", "home address", "address line 1"],
                patterns=[r"^street$", r"^address[-_]?1$", r"^addr1$", r"^address[-_]?line[-_]?1$"],
            ),
            negative=_signals(
                autocomplete=["email", "address-line2"],
                keywords=[
                    "email", "e-mail", "web", "website", "url", "ip address", "billing", "work",
                    "line 2", "address 2", "apartment", "suite",
                ],
                types=["email"],
            ),
            validator=_bounded_text(3),
        ),
        SemanticSchemaEntry(
            key="address.unit",
            data_type="text",
            positive=_signals(
                autocomplete=["address-line2"],
                keywords=["apartment", "apt number", "unit number", "suite", "floor", "address line 2"],
                patterns=[r"^apt$", r"^unit$", r"^suite$", r"^address[-_]?2$", r"^address[-_]?line[-_]?2$"],
            ),
            validator=_is_string,
        ),
        SemanticSchemaEntry(
            key="address.city",
            data_type="text",
            positive=_signals(
                autocomplete=["address-level2"],
                keywords=["city", "city name", "town"],
                patterns=[r"^city$", r"^town$"],
            ),
            negative=_signals(keywords=["birth", "work", "employer"]),
            validator=_bounded_text(2),
        ),
        SemanticSchemaEntry(
            key="address.state",
            data_type="text",
            positive=_signals(
                autocomplete=["address-level1"],
                keywords=["state", "province", "region"],
                patterns=[r"^state$", r"^province$", r"^region$"],
            ),
            negative=_signals(keywords=["country", "birth"]),
            validator=_bounded_text(2),
        ),
        SemanticSchemaEntry(
            key="address.zip",
            data_type="text",
            positive=_signals(
                autocomplete=["postal-code"],
                keywords=["zip code", "postal code", "zipcode", "postcode"],
                patterns=[r"^zip$", r"^zip[-_]?code$", r"^postal[-_]?code$"],
            ),
            validator=_is_zip,
        ),
        SemanticSchemaEntry(
            key="address.country",
            data_type="text",
            positive=_signals(
                autocomplete=["country", "country-name"],
                keywords=["country", "nation"],
                patterns=[r"^country$"],
            ),
            negative=_signals(keywords=["birth", "citizenship"]),
            validator=_bounded_text(2),
        ),
        SemanticSchemaEntry(
            key="date_of_birth",
            data_type="date",
            positive=_signals(
                autocomplete=["bday"],
                keywords=["date of birth", "birth date", "birthday", "dob"],
                patterns=[r"^dob$", r"^birth[-_]?date$", r"^date[-_]?of[-_]?birth$"],
                types=["date"],
            ),
            negative=_signals(keywords=["purchase", "order", "event", "incident", "transaction"]),
            validator=_is_past_date,
        ),
        SemanticSchemaEntry(
            key="purchase_date",
            data_type="date",
            positive=_signals(
                keywords=["purchase date", "date of purchase", "order date", "transaction date"],
                patterns=[r"^purchase[-_]?date$"],
                types=["date"],
            ),
            negative=_signals(autocomplete=["bday"], keywords=["birth", "number", "id"]),
            validator=_is_date,
        ),
        SemanticSchemaEntry(
            key="product_name",
            data_type="text",
            positive=_signals(
                keywords=["product name", "item name", "product purchased"],
                patterns=[r"^product[-_]?name$", r"^item[-_]?name$"],
            ),
            negative=_signals(
                autocomplete=["name", "given-name", "family-name"],
                keywords=["your name", "first name", "last name", "full name"],
            ),
            validator=_bounded_text(1),
        ),
        SemanticSchemaEntry(
            key="product_model",
            data_type="text",
            positive=_signals(
                keywords=["model number", "product model", "model name"],
                patterns=[r"^model$", r"^model[-_]?num"],
            ),
            validator=_is_string,
        ),
        SemanticSchemaEntry(
            key="serial_number",
            data_type="text",
            positive=_signals(
                keywords=["serial number", "serial no"],
                patterns=[r"^serial$", r"^serial[-_]?num"],
            ),
            negative=_signals(keywords=["social security"]),
            validator=_is_string,
        ),
        SemanticSchemaEntry(
            key="purchase_amount",
            data_type="number",
            positive=_signals(
                keywords=["purchase amount", "amount paid", "total paid", "price paid"],
                patterns=[r"^amount$", r"^price$", r"^total$"],
                types=["number"],
                input_modes=["decimal", "numeric"],
            ),
            negative=_signals(keywords=["how many", "number of", "count", "quantity", "students"]),
            validator=_is_amount,
        ),
        SemanticSchemaEntry(
            key="store_name",
            data_type="text",
            positive=_signals(
                keywords=["store name", "retailer", "merchant", "where purchased"],
                patterns=[r"^store$", r"^retailer$", r"^merchant$"],
            ),
            negative=_signals(
                autocomplete=["name", "given-name", "family-name"],
                keywords=["your name", "first name", "last name"],
            ),
            validator=_bounded_text(1),
        ),
    ]


def _parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class SchemaRegistry:
    """Read-only mapping from semantic key to :class:`SemanticSchemaEntry`."""

    def __init__(self, entries: Iterable[SemanticSchemaEntry]) -> None:
        self._entries: Dict[str, SemanticSchemaEntry] = {}
        for entry in entries:
            if entry.key in self._entries:
                raise ValueError(f"Duplicate schema key: {entry.key!r}")
            self._entries[entry.key] = entry

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[SemanticSchemaEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[SemanticSchemaEntry]:
        return self._entries.get(key)

    def keys(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[SemanticSchemaEntry]:
        return list(self._entries.values())

    def keyword_corpus(self) -> List[Tuple[str, str]]:
        """``(key, phrase)`` pairs for every positive keyword phrase."""

        return [(entry.key, keyword) for entry in self._entries.values() for keyword in entry.positive.keywords]

    def validate(self, key: str, value: Any) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        return entry.validate(value)

    def has_negative_evidence(self, key: str, descriptor: FieldDescriptor) -> bool:
        """True when a negative signal of ``key`` is present on ``descriptor``."""

        entry = self._entries.get(key)
        if entry is None:
            return False
        negative = entry.negative

        text = normalize_for_display(descriptor.context_text)
        for keyword in negative.keywords:
            if keyword_pattern(keyword).search(text):
                logger.debug("Negative keyword", extra={"key": key, "keyword": keyword, "field": descriptor.field_id})
                return True

        token = autocomplete_token(descriptor.autocomplete)
        if token and token in negative.autocomplete:
            logger.debug("Negative autocomplete", extra={"key": key, "autocomplete": token, "field": descriptor.field_id})
            return True

        if descriptor.input_type in negative.types:
            logger.debug("Negative type", extra={"key": key, "type": descriptor.input_type, "field": descriptor.field_id})
            return True

        if descriptor.input_mode and descriptor.input_mode.lower() in negative.input_modes:
            logger.debug("Negative inputmode", extra={"key": key, "inputmode": descriptor.input_mode, "field": descriptor.field_id})
            return True

        if negative.numeric_range_hint:
            maximum = _parse_number(descriptor.max)
            if maximum is not None and maximum < 100:
                logger.debug("Numeric range suggests a counter", extra={"key": key, "max": descriptor.max, "field": descriptor.field_id})
                return True

        return False


def build_registry(entries: Optional[Iterable[SemanticSchemaEntry]] = None) -> SchemaRegistry:
    return SchemaRegistry(entries if entries is not None else _build_entries())


@lru_cache(maxsize=1)
def default_registry() -> SchemaRegistry:
    """Return the process-wide registry, built on first use."""

    return build_registry()


def registry_summary(registry: SchemaRegistry) -> Mapping[str, Dict[str, Any]]:
    return {
        entry.key: {
            "dataType": entry.data_type,
            "keywords": list(entry.positive.keywords),
            "autocomplete": list(entry.positive.autocomplete),
        }
        for entry in registry
    }


__all__ = [
    "EMAIL_PATTERN",
    "SchemaRegistry",
    "SemanticSchemaEntry",
    "SignalSet",
    "autocomplete_token",
    "build_registry",
    "default_registry",
    "keyword_pattern",
    "parse_amount",
    "parse_date",
    "registry_summary",
]
