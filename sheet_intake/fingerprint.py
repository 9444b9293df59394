"""Content and column-shape digests, plus column-set change analysis.

The fingerprint is what the mapping cache keys on: re-exports that only
reorder or re-case columns must produce the same value.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from sheet_intake.similarity import similarity

FINGERPRINT_LENGTH = 16
RENAME_SIMILARITY_THRESHOLD = 0.6
_WHITESPACE_RE = re.compile(r"\s+")


def file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def normalize_header(header: str) -> str:
    return _WHITESPACE_RE.sub("_", str(header).strip().lower())


def fingerprint(headers: Sequence[str]) -> str:
    normalized = "|".join(sorted(normalize_header(header) for header in headers))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def column_similarity(old_columns: Sequence[str], new_columns: Sequence[str]) -> float:
    old_set = {normalize_header(column) for column in old_columns}
    new_set = {normalize_header(column) for column in new_columns}
    total = max(len(old_set), len(new_set))
    if total == 0:
        return 1.0
    return len(old_set & new_set) / total


@dataclass
class ColumnChanges:
    similarity: float
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    renamed: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "similarity": round(self.similarity, 4),
            "addedColumns": list(self.added),
            "removedColumns": list(self.removed),
            "renamedColumns": [dict(item) for item in self.renamed],
        }


def analyze_column_changes(old_columns: Sequence[str], new_columns: Sequence[str]) -> ColumnChanges:
    """Diff two column sets; a removed column pairs with its closest added one as a rename."""
    normalized_old = [normalize_header(column) for column in old_columns]
    normalized_new = [normalize_header(column) for column in new_columns]
    old_set = set(normalized_old)
    new_set = set(normalized_new)

    removed = [column for column in normalized_old if column not in new_set]
    added = [column for column in normalized_new if column not in old_set]

    renamed: list[dict[str, Any]] = []
    for removed_column in removed:
        best: tuple[str, float] | None = None
        for added_column in added:
            score = similarity(removed_column, added_column)
            if score > RENAME_SIMILARITY_THRESHOLD and (best is None or score > best[1]):
                best = (added_column, score)
        if best is not None:
            renamed.append({"old": removed_column, "new": best[0], "similarity": round(best[1], 4)})

    return ColumnChanges(
        similarity=column_similarity(old_columns, new_columns),
        added=added,
        removed=removed,
        renamed=renamed,
    )
