"""Known header-name patterns.

The library is an ordered list so that earlier, more specific patterns win
when a header matches several fields. Norwegian and English synonyms ship by
default; other locales pass their own list (or load one from JSON).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from sheet_intake.errors import ConfigError


@dataclass(frozen=True)
class HeaderPattern:
    pattern: re.Pattern[str]
    field: str

    @classmethod
    def compile(cls, pattern: str, field: str) -> "HeaderPattern":
        return cls(re.compile(pattern, re.IGNORECASE), field)

    def matches(self, header: str) -> bool:
        return bool(self.pattern.search(header.strip()))

    def to_dict(self) -> dict[str, str]:
        return {"pattern": self.pattern.pattern, "field": self.field}


_DEFAULT_PATTERN_SOURCE: list[tuple[str, str]] = [
    # name
    (r"^(kunde)?navn$", "navn"),
    (r"^(firma|bedrift|selskap)", "navn"),
    (r"^(customer|company)?\s*name$", "navn"),
    (r"^(customer|company|client)$", "navn"),
    # address
    (r"^adresse$", "adresse"),
    (r"^(gate|vei)", "adresse"),
    (r"^(street\s*)?address(\s*line)?\s*1?$", "adresse"),
    (r"^street$", "adresse"),
    # postal code / locality
    (r"^post\s*(nummer|nr\.?)?$", "postnummer"),
    (r"^(zip|postal|post)\s*(code)?$", "postnummer"),
    (r"^(post)?sted$", "poststed"),
    (r"^(city|town|locality)$", "poststed"),
    # phone
    (r"^(tele)?fon$", "telefon"),
    (r"^mobil", "telefon"),
    (r"^tlf\.?$", "telefon"),
    (r"^(tele)?phone(\s*(number|no\.?))?$", "telefon"),
    (r"^mobile", "telefon"),
    # email
    (r"^e?-?post(adresse)?$", "epost"),
    (r"^e-?mail(\s*address)?$", "epost"),
    # contact / notes
    (r"^kontakt", "kontaktperson"),
    (r"^contact(\s*person)?$", "kontaktperson"),
    (r"^(notat|merknad|kommentar)", "notater"),
    (r"^(notes?|comments?|remarks?)$", "notater"),
    # category
    (r"^kategori$", "kategori"),
    (r"^type$", "kategori"),
    (r"^category$", "kategori"),
    # dates
    (r"^siste.*(kontroll|utført)", "siste_kontroll"),
    (r"^(utført|dato).*(kontroll)?", "siste_kontroll"),
    (r"^last\s*(inspection|service|control)", "siste_kontroll"),
    (r"^neste.*(kontroll|dato)", "neste_kontroll"),
    (r"^forfaller?$", "neste_kontroll"),
    (r"^next\s*(inspection|service|control|due)", "neste_kontroll"),
    (r"^(date|due\s*date)$", "siste_kontroll"),
]

DEFAULT_HEADER_PATTERNS: tuple[HeaderPattern, ...] = tuple(
    HeaderPattern.compile(pattern, field) for pattern, field in _DEFAULT_PATTERN_SOURCE
)


def matching_pattern(header: str, patterns: Sequence[HeaderPattern]) -> HeaderPattern | None:
    for candidate in patterns:
        if candidate.matches(header):
            return candidate
    return None


def build_header_patterns(entries: Iterable[dict]) -> list[HeaderPattern]:
    patterns: list[HeaderPattern] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict) or "pattern" not in entry or "field" not in entry:
            raise ConfigError(f"header pattern #{position} must be an object with 'pattern' and 'field'")
        try:
            patterns.append(HeaderPattern.compile(str(entry["pattern"]), str(entry["field"])))
        except re.error as exc:
            raise ConfigError(f"header pattern #{position} is not a valid regex: {exc}") from exc
    return patterns


def load_header_patterns(path: Path) -> list[HeaderPattern]:
    if not path.exists():
        raise ConfigError(f"header pattern file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid header pattern file: {exc}") from exc
    if not isinstance(payload, list):
        raise ConfigError("header pattern file must contain a JSON list")
    return build_header_patterns(payload)
