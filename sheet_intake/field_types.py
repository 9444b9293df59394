"""
Per-column semantic type inference.

Purely descriptive: the detected type is shown in previews and mapping
screens but never changes a parsed value. The cascade is strict, meaning
every value must match a type for that type to be assigned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Sequence


class FieldType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    POSTNUMMER = "postnummer"
    DATE = "date"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(?:\+\d{1,3}|00\d{1,3})?\d{8,}$")
PHONE_PUNCTUATION_RE = re.compile(r"[\s\-.()/]")
POSTNUMMER_RE = re.compile(r"^\d{4}$")
DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),    # YYYY-MM-DD
    re.compile(r"^\d{2}\.\d{2}\.\d{4}$"),  # DD.MM.YYYY
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),    # DD/MM/YYYY
    re.compile(r"^\d{2}\.\d{2}\.\d{2}$"),  # DD.MM.YY
]
INTEGER_RE = re.compile(r"^-?\d+$")
NUMBER_RE = re.compile(r"^-?\d+(?:[.,]\d+)?$")
BOOLEAN_TOKENS = {"ja", "nei", "yes", "no", "true", "false", "1", "0", "x", ""}


def _as_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _is_phone(text: str) -> bool:
    # 2023-01-01 would otherwise strip down to eight digits
    if any(pattern.match(text) for pattern in DATE_PATTERNS):
        return False
    return bool(PHONE_RE.match(PHONE_PUNCTUATION_RE.sub("", text)))


def detect_field_type(values: Sequence[Any]) -> FieldType:
    if not values:
        return FieldType.STRING

    texts = [_as_text(value) for value in values]

    if all(EMAIL_RE.match(text) for text in texts):
        return FieldType.EMAIL
    if all(_is_phone(text) for text in texts):
        return FieldType.PHONE
    if all(POSTNUMMER_RE.match(text) for text in texts):
        return FieldType.POSTNUMMER
    if all(any(pattern.match(text) for pattern in DATE_PATTERNS) for text in texts):
        return FieldType.DATE
    if all(INTEGER_RE.match(text) for text in texts):
        return FieldType.INTEGER
    if all(NUMBER_RE.match(text) for text in texts):
        return FieldType.NUMBER
    if all(text.lower() in BOOLEAN_TOKENS for text in texts):
        return FieldType.BOOLEAN
    return FieldType.STRING


@dataclass
class ColumnProfile:
    index: int
    header: str
    sample_values: list[str] = field(default_factory=list)
    detected_type: FieldType = FieldType.STRING
    unique_value_count: int = 0
    empty_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "header": self.header,
            "sampleValues": list(self.sample_values),
            "detectedType": self.detected_type.value,
            "uniqueValueCount": self.unique_value_count,
            "emptyCount": self.empty_count,
        }


def build_column_profiles(
    headers: Sequence[str],
    rows: Sequence[dict[str, Any]],
    max_samples: int,
) -> list[ColumnProfile]:
    profiles: list[ColumnProfile] = []
    for index, header in enumerate(headers):
        values = [row.get(header) for row in rows]
        non_null = [value for value in values if value is not None and value != ""]
        texts = [_as_text(value) for value in non_null]
        profiles.append(
            ColumnProfile(
                index=index,
                header=header,
                sample_values=texts[:max_samples],
                detected_type=detect_field_type(non_null),
                unique_value_count=len(set(texts)),
                empty_count=len(values) - len(non_null),
            )
        )
    return profiles
