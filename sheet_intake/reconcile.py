"""
Duplicate reconciliation for imported customer rows.

Every row ends in exactly one state:

    in-file duplicate   same name+address as an earlier row in the upload
    database duplicate  matches an existing customer (candidate for update)
    unique new          everything else

Rows flagged as in-file duplicates are never checked against the database,
so a repeated row is counted once, by its first occurrence.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence, Union

from sheet_intake.similarity import similarity

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.9
PARTIAL_ADDRESS_THRESHOLD = 0.8
MIN_PHONE_DIGITS = 8
EMAIL_SCORE = 0.95
PHONE_SCORE = 0.9

_PUNCTUATION_RE = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"\D")


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    PARTIAL = "partial"
    EMAIL = "email"
    PHONE = "phone"
    EXACT_IN_FILE = "exact_in_file"
    FUZZY_SAME_LOCATION = "fuzzy_same_location"
    NONE = "none"


# ══════════════════════════════════════════════════════════════════════════════
# RECORDS
# ══════════════════════════════════════════════════════════════════════════════

def _clean_field(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


@dataclass
class CustomerRecord:
    """The fields comparison cares about; any of them may be missing.

    Values are stored as trimmed text (12345678.0 becomes "12345678") and
    blanks as None, however the record was built.
    """

    navn: str | None = None
    adresse: str | None = None
    postnummer: str | None = None
    poststed: str | None = None
    telefon: str | None = None
    epost: str | None = None
    id: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    FIELDS = ("navn", "adresse", "postnummer", "poststed", "telefon", "epost")

    def __post_init__(self) -> None:
        for name in self.FIELDS:
            setattr(self, name, _clean_field(getattr(self, name)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CustomerRecord":
        known = {name: data.get(name) for name in cls.FIELDS}
        extra = {key: value for key, value in data.items() if key not in cls.FIELDS and key != "id"}
        return cls(id=data.get("id"), extra=extra, **known)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id} if self.id is not None else {}
        payload.update({name: getattr(self, name) for name in self.FIELDS})
        payload.update(self.extra)
        return payload


RecordLike = Union[CustomerRecord, Mapping[str, Any]]


def as_record(value: RecordLike) -> CustomerRecord:
    if isinstance(value, CustomerRecord):
        return value
    return CustomerRecord.from_mapping(value)


class ExistingRecordsSource(Protocol):
    """Tenant-scoped, read-only listing of existing customers.

    Precondition: records come back in the order first-match should honour
    (most recently updated first is the usual choice). The engine stops at the
    first existing record that matches and never re-sorts.
    """

    def fetch_existing_records(self, tenant_id: Any) -> Sequence[RecordLike]:
        ...


class JsonRecordSource:
    """Existing customers read from a JSON file.

    The file holds either a plain list of customer objects (shared by every
    tenant) or an object keyed by tenant id.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        try:
            self._payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Could not read existing records: {exc}") from exc
        if not isinstance(self._payload, (list, dict)):
            raise ValueError("Existing records file must contain a JSON list or an object keyed by tenant")

    def fetch_existing_records(self, tenant_id: Any) -> list[CustomerRecord]:
        if isinstance(self._payload, list):
            entries = self._payload
        else:
            entries = self._payload.get(str(tenant_id), []) if tenant_id is not None else []
        return [CustomerRecord.from_mapping(entry) for entry in entries if isinstance(entry, dict)]


# ══════════════════════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class MatchResult:
    is_duplicate: bool
    score: float
    matched_fields: list[str]
    match_type: MatchType
    matched_row: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "isDuplicate": self.is_duplicate,
            "score": round(self.score, 4),
            "matchedFields": list(self.matched_fields),
            "matchType": self.match_type.value,
        }
        if self.matched_row is not None:
            payload["matchedRow"] = self.matched_row
        return payload


@dataclass
class DatabaseMatch:
    existing_id: Any
    existing_navn: str | None
    existing_adresse: str | None
    score: float
    matched_fields: list[str]
    match_type: MatchType

    def to_dict(self) -> dict[str, Any]:
        return {
            "existingId": self.existing_id,
            "existingNavn": self.existing_navn,
            "existingAdresse": self.existing_adresse,
            "score": round(self.score, 4),
            "matchedFields": list(self.matched_fields),
            "matchType": self.match_type.value,
        }


@dataclass
class ReconciliationSummary:
    total_rows: int
    duplicates_in_file: int
    duplicates_in_database: int
    unique_new: int
    to_update: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalRows": self.total_rows,
            "duplicatesInFile": self.duplicates_in_file,
            "duplicatesInDatabase": self.duplicates_in_database,
            "uniqueNew": self.unique_new,
            "toUpdate": self.to_update,
        }


@dataclass
class ReconciliationReport:
    in_file: dict[int, MatchResult]
    in_database: dict[int, DatabaseMatch]
    summary: ReconciliationSummary

    def classify(self, row_index: int) -> str:
        if row_index in self.in_file:
            return "in_file_duplicate"
        if row_index in self.in_database:
            return "database_duplicate"
        return "unique_new"

    def to_dict(self) -> dict[str, Any]:
        return {
            "inFile": {str(index): match.to_dict() for index, match in sorted(self.in_file.items())},
            "inDatabase": {str(index): match.to_dict() for index, match in sorted(self.in_database.items())},
            "summary": self.summary.to_dict(),
        }


# ══════════════════════════════════════════════════════════════════════════════
# NORMALIZATION
# ══════════════════════════════════════════════════════════════════════════════

def normalize_for_comparison(text: Any) -> str:
    """Lower-case, drop punctuation (letters like æøå survive), collapse whitespace."""
    if text is None:
        return ""
    lowered = str(text).lower()
    stripped = _PUNCTUATION_RE.sub("", lowered)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def _email_key(value: str | None) -> str:
    return value.strip().lower() if value else ""


def _phone_digits(value: str | None) -> str:
    return _NON_DIGIT_RE.sub("", value) if value else ""


def _same_email(a: CustomerRecord, b: CustomerRecord) -> bool:
    email = _email_key(a.epost)
    return bool(email) and email == _email_key(b.epost)


def _same_phone(a: CustomerRecord, b: CustomerRecord) -> bool:
    digits = _phone_digits(a.telefon)
    return len(digits) >= MIN_PHONE_DIGITS and digits == _phone_digits(b.telefon)


# ══════════════════════════════════════════════════════════════════════════════
# MATCHING
# ══════════════════════════════════════════════════════════════════════════════

def compare_records(a: RecordLike, b: RecordLike) -> MatchResult:
    """Pairwise cascade: exact, fuzzy, exact name + close address, email, phone."""
    first, second = as_record(a), as_record(b)
    name_a, name_b = normalize_for_comparison(first.navn), normalize_for_comparison(second.navn)
    addr_a, addr_b = normalize_for_comparison(first.adresse), normalize_for_comparison(second.adresse)

    if name_a and name_a == name_b and addr_a == addr_b:
        return MatchResult(True, 1.0, ["navn", "adresse"], MatchType.EXACT)

    name_similarity = similarity(name_a, name_b)
    addr_similarity = similarity(addr_a, addr_b)

    if name_similarity >= FUZZY_THRESHOLD and addr_similarity >= FUZZY_THRESHOLD:
        return MatchResult(
            True,
            (name_similarity + addr_similarity) / 2,
            ["navn (fuzzy)", "adresse (fuzzy)"],
            MatchType.FUZZY,
        )

    if name_a and name_a == name_b and addr_similarity >= PARTIAL_ADDRESS_THRESHOLD:
        return MatchResult(True, addr_similarity, ["navn", "adresse (fuzzy)"], MatchType.PARTIAL)

    if _same_email(first, second):
        return MatchResult(True, EMAIL_SCORE, ["epost"], MatchType.EMAIL)

    if _same_phone(first, second):
        return MatchResult(True, PHONE_SCORE, ["telefon"], MatchType.PHONE)

    return MatchResult(False, 0.0, [], MatchType.NONE)


def find_duplicates_in_file(rows: Sequence[RecordLike]) -> dict[int, MatchResult]:
    """
    Single forward pass keyed on normalized ``navn|adresse``.

    The first row holding a key is the original; later rows with the same key
    point back at it. Rows with neither name nor address carry no key.
    """
    duplicates: dict[int, MatchResult] = {}
    first_seen: dict[str, int] = {}

    for index, row in enumerate(rows):
        record = as_record(row)
        name = normalize_for_comparison(record.navn)
        address = normalize_for_comparison(record.adresse)
        if not name and not address:
            continue
        key = f"{name}|{address}"
        if key in first_seen:
            duplicates[index] = MatchResult(
                is_duplicate=True,
                score=1.0,
                matched_fields=["navn", "adresse"],
                match_type=MatchType.EXACT_IN_FILE,
                matched_row=first_seen[key],
            )
        else:
            first_seen[key] = index

    return duplicates


def _database_match(existing: CustomerRecord, score: float, fields: list[str], match_type: MatchType) -> DatabaseMatch:
    return DatabaseMatch(
        existing_id=existing.id,
        existing_navn=existing.navn,
        existing_adresse=existing.adresse,
        score=score,
        matched_fields=fields,
        match_type=match_type,
    )


def find_duplicate_in_database(row: RecordLike, existing_records: Iterable[RecordLike]) -> DatabaseMatch | None:
    """First existing record matching on exact name+address, close name in the same
    locality, email, or phone. Order of ``existing_records`` decides ties."""
    record = as_record(row)
    name = normalize_for_comparison(record.navn)
    address = normalize_for_comparison(record.adresse)
    locality = normalize_for_comparison(record.poststed)

    for candidate in existing_records:
        existing = as_record(candidate)
        existing_name = normalize_for_comparison(existing.navn)

        if name and name == existing_name and address == normalize_for_comparison(existing.adresse):
            return _database_match(existing, 1.0, ["navn", "adresse"], MatchType.EXACT)

        name_similarity = similarity(name, existing_name)
        if name_similarity >= FUZZY_THRESHOLD and locality:
            if locality == normalize_for_comparison(existing.poststed):
                return _database_match(
                    existing, name_similarity, ["navn (fuzzy)", "poststed"], MatchType.FUZZY_SAME_LOCATION
                )

        if _same_email(record, existing):
            return _database_match(existing, EMAIL_SCORE, ["epost"], MatchType.EMAIL)

        if _same_phone(record, existing):
            return _database_match(existing, PHONE_SCORE, ["telefon"], MatchType.PHONE)

    return None


def analyze(rows: Sequence[RecordLike], existing_records: Sequence[RecordLike]) -> ReconciliationReport:
    """Classify every row; O(rows x existing) for the database pass."""
    records = [as_record(row) for row in rows]
    existing = [as_record(candidate) for candidate in existing_records]

    in_file = find_duplicates_in_file(records)
    in_database: dict[int, DatabaseMatch] = {}
    for index, record in enumerate(records):
        if index in in_file:
            continue
        match = find_duplicate_in_database(record, existing)
        if match is not None:
            in_database[index] = match

    total = len(records)
    summary = ReconciliationSummary(
        total_rows=total,
        duplicates_in_file=len(in_file),
        duplicates_in_database=len(in_database),
        unique_new=total - len(in_file) - len(in_database),
        to_update=len(in_database),
    )
    logger.info(
        "reconciled %d row(s): %d in-file duplicate(s), %d database match(es), %d new",
        summary.total_rows,
        summary.duplicates_in_file,
        summary.duplicates_in_database,
        summary.unique_new,
    )
    return ReconciliationReport(in_file=in_file, in_database=in_database, summary=summary)


def analyze_for_tenant(
    rows: Sequence[RecordLike],
    source: ExistingRecordsSource,
    tenant_id: Any,
) -> ReconciliationReport:
    existing = list(source.fetch_existing_records(tenant_id))
    logger.debug("fetched %d existing record(s) for tenant %s", len(existing), tenant_id)
    return analyze(rows, existing)
