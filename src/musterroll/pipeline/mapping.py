"""Column mapping: deterministic header matching and oracle suggestion filtering."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from musterroll.core.exceptions import InputError
from musterroll.core.protocols import ISuggestionOracle
from musterroll.models.mapping import (
    HEADER_SYNONYMS,
    CanonicalField,
    ColumnMapping,
    MappingSuggestion,
)

logger = logging.getLogger(__name__)

EXACT_CONFIDENCE = 1.0
SYNONYM_CONFIDENCE = 0.8

_PUNCT_RE = re.compile(r"[^a-z0-9]+")


def normalize_header(header: str) -> str:
    """'Emp. Code ' -> 'emp_code'."""
    return _PUNCT_RE.sub("_", str(header).strip().lower()).strip("_")


def heuristic_mapping(headers: list[str]) -> MappingSuggestion:
    """Match headers against the canonical names and known synonyms.

    Each header is used at most once; canonical names win over synonyms.
    """
    normalized = {h: normalize_header(h) for h in headers}
    taken: set[str] = set()
    mapping: dict[str, str] = {}
    confidence: dict[str, float] = {}

    for field in CanonicalField:
        for h in headers:
            if h not in taken and normalized[h] == field.value:
                mapping[field.value] = h
                confidence[field.value] = EXACT_CONFIDENCE
                taken.add(h)
                break

    for field, synonyms in HEADER_SYNONYMS.items():
        if field.value in mapping:
            continue
        for h in headers:
            if h not in taken and normalized[h] in synonyms:
                mapping[field.value] = h
                confidence[field.value] = SYNONYM_CONFIDENCE
                taken.add(h)
                break

    return MappingSuggestion(
        column_mapping=mapping,
        confidence=confidence,
        source="heuristic",
        unmapped_headers=[h for h in headers if h not in taken],
    )


def filter_suggestion(suggestion: MappingSuggestion, headers: list[str]) -> MappingSuggestion:
    """Keep only canonical keys pointing at headers that actually exist."""
    known = {f.value for f in CanonicalField}
    present = set(headers)
    mapping = {
        k: v for k, v in suggestion.column_mapping.items()
        if k in known and v in present
    }
    dropped = set(suggestion.column_mapping) - set(mapping)
    if dropped:
        logger.info("Dropped %d oracle mapping entries: %s", len(dropped), sorted(dropped))
    used = set(mapping.values())
    return MappingSuggestion(
        column_mapping=mapping,
        confidence={k: v for k, v in suggestion.confidence.items() if k in mapping},
        source=suggestion.source,
        unmapped_headers=[h for h in headers if h not in used],
    )


def suggest_mapping(
    headers: list[str],
    sample: list[list[str]],
    oracle: Optional[ISuggestionOracle] = None,
) -> MappingSuggestion:
    """Ask the oracle, fall back to header heuristics when it is absent or fails.

    Heuristic matches fill any canonical field the oracle left unmapped.
    """
    fallback = heuristic_mapping(headers)
    if oracle is None or not headers:
        return fallback

    try:
        proposed = filter_suggestion(oracle.suggest_mapping(headers, sample), headers)
    except Exception as exc:
        # any oracle failure degrades to heuristics
        logger.warning("Mapping oracle failed, using header heuristics: %s", exc)
        return fallback

    if not proposed.column_mapping:
        return fallback

    mapping = dict(proposed.column_mapping)
    confidence = dict(proposed.confidence)
    used = set(mapping.values())
    for field, header in fallback.column_mapping.items():
        if field not in mapping and header not in used:
            mapping[field] = header
            confidence[field] = fallback.confidence[field]
            used.add(header)

    return MappingSuggestion(
        column_mapping=mapping,
        confidence=confidence,
        source="oracle",
        unmapped_headers=[h for h in headers if h not in used],
    )


def parse_column_mapping(raw: Any) -> ColumnMapping:
    """Validate a caller-supplied mapping; unknown canonical fields are rejected."""
    if not isinstance(raw, dict):
        raise InputError("column_mapping must be an object of canonical field -> header")

    fields: dict[CanonicalField, str] = {}
    unknown: list[str] = []
    for key, header in raw.items():
        try:
            field = CanonicalField(str(key).strip())
        except ValueError:
            unknown.append(str(key))
            continue
        if header is None or not str(header).strip():
            continue
        fields[field] = str(header).strip()

    if unknown:
        raise InputError(f"Unknown canonical field(s): {', '.join(sorted(unknown))}")
    if not fields:
        raise InputError("column_mapping must map at least one field")
    return ColumnMapping(fields=fields)
