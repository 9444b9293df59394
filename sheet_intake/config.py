"""
JSON configuration for the command-line tools.

    {
      "parse": {"max_preview_rows": 10, "preferred_sheet_name": "Kunder"},
      "header_patterns": [{"pattern": "^kundenr$", "field": "kundenummer"}]
    }

When ``header_patterns`` is present it replaces the built-in library rather
than extending it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from sheet_intake.errors import ConfigError
from sheet_intake.parser import ParseOptions
from sheet_intake.patterns import DEFAULT_HEADER_PATTERNS, HeaderPattern, build_header_patterns

_PARSE_FIELDS = {item.name for item in fields(ParseOptions)}


@dataclass
class IntakeConfig:
    parse_options: ParseOptions = field(default_factory=ParseOptions)
    header_patterns: list[HeaderPattern] = field(default_factory=lambda: list(DEFAULT_HEADER_PATTERNS))


def _check_parse_section(section: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(section) - _PARSE_FIELDS)
    if unknown:
        raise ConfigError(f"unknown parse option(s): {', '.join(unknown)}")

    for key in ("max_preview_rows", "max_header_scan"):
        if key in section:
            value = section[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"parse.{key} must be a positive integer")
    if "skip_empty_rows" in section and not isinstance(section["skip_empty_rows"], bool):
        raise ConfigError("parse.skip_empty_rows must be true or false")
    if section.get("preferred_sheet_name") is not None and not isinstance(section["preferred_sheet_name"], str):
        raise ConfigError("parse.preferred_sheet_name must be a string")
    return section


def load_config(path: Path | str) -> IntakeConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid config file: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("config file must contain a JSON object")

    unknown = sorted(set(payload) - {"parse", "header_patterns"})
    if unknown:
        raise ConfigError(f"unknown config section(s): {', '.join(unknown)}")

    section = payload.get("parse") or {}
    if not isinstance(section, dict):
        raise ConfigError("'parse' must be an object")
    options = ParseOptions(**_check_parse_section(section))

    if "header_patterns" in payload:
        entries = payload["header_patterns"]
        if not isinstance(entries, list):
            raise ConfigError("'header_patterns' must be a list")
        patterns = build_header_patterns(entries)
    else:
        patterns = list(DEFAULT_HEADER_PATTERNS)

    return IntakeConfig(parse_options=options, header_patterns=patterns)


def default_config_payload() -> dict[str, Any]:
    return {
        "parse": asdict(ParseOptions()),
        "header_patterns": [item.to_dict() for item in DEFAULT_HEADER_PATTERNS],
    }
