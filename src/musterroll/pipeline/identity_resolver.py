"""IdentityResolver — maps source employee references to directory ids."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from musterroll.core.protocols import IEmployeeDirectory
from musterroll.models.employee import UNRESOLVED, EmployeeRecord, Resolution

logger = logging.getLogger(__name__)

CONFIDENCE_ID = 100
CONFIDENCE_PRIMARY_CODE = 100
CONFIDENCE_EXTERNAL_CODE = 90
CONFIDENCE_FALLBACK = 80

PHONE_DIGITS = 10

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_NON_DIGIT = re.compile(r"\D")
_FOLD_RE = re.compile(r"[\s_\-./]+")


def is_internal_id(reference: str) -> bool:
    """True when the reference is shaped like a UUID employee id."""
    return bool(_UUID_RE.match(reference.strip()))


def fold_code(code: str) -> str:
    """Case/whitespace/punctuation-insensitive form of an employee code."""
    return _FOLD_RE.sub("", code).lower()


def phone_key(value: str) -> str:
    """Last 10 digits, or "" when the value has fewer digits than that."""
    digits = _NON_DIGIT.sub("", value)
    return digits[-PHONE_DIGITS:] if len(digits) >= PHONE_DIGITS else ""


class DirectoryIndex:
    """Lookup tables over one organization's employee records."""

    def __init__(self, employees: Iterable[EmployeeRecord]) -> None:
        self.by_id: dict[str, str] = {}
        self.by_code: dict[str, str] = {}
        self.by_external: dict[str, str] = {}
        self.by_folded: dict[str, str] = {}
        self.by_phone: dict[str, str] = {}
        for e in employees:
            self.by_id.setdefault(e.id, e.id)
            if e.employee_code:
                self.by_code.setdefault(e.employee_code, e.id)
                self.by_folded.setdefault(fold_code(e.employee_code), e.id)
            if e.external_code:
                self.by_external.setdefault(e.external_code, e.id)
                self.by_folded.setdefault(fold_code(e.external_code), e.id)
            key = phone_key(e.phone)
            if key:
                self.by_phone.setdefault(key, e.id)

    def match(self, reference: str) -> Resolution:
        ref = reference.strip()
        if not ref:
            return UNRESOLVED

        if ref in self.by_id:
            return Resolution(employee_id=self.by_id[ref], confidence=CONFIDENCE_ID, matched_on="id")
        if is_internal_id(ref):
            # Internal ids come from our own exports and are trusted as-is.
            return Resolution(employee_id=ref.lower(), confidence=CONFIDENCE_ID, matched_on="id")
        if ref in self.by_code:
            return Resolution(
                employee_id=self.by_code[ref],
                confidence=CONFIDENCE_PRIMARY_CODE,
                matched_on="employee_code",
            )
        if ref in self.by_external:
            return Resolution(
                employee_id=self.by_external[ref],
                confidence=CONFIDENCE_EXTERNAL_CODE,
                matched_on="external_code",
            )

        folded = fold_code(ref)
        if folded and folded in self.by_folded:
            return Resolution(
                employee_id=self.by_folded[folded],
                confidence=CONFIDENCE_FALLBACK,
                matched_on="fallback",
            )
        key = phone_key(ref)
        if key and key in self.by_phone:
            return Resolution(
                employee_id=self.by_phone[key],
                confidence=CONFIDENCE_FALLBACK,
                matched_on="fallback",
            )
        return UNRESOLVED


class IdentityResolver:
    """Resolves references in bulk: one directory query per call."""

    def __init__(self, directory: IEmployeeDirectory) -> None:
        self._directory = directory

    def resolve_many(
        self, organization_id: str, references: Iterable[str]
    ) -> dict[str, Resolution]:
        distinct = sorted({r.strip() for r in references if r and r.strip()})
        if not distinct:
            return {}
        index = DirectoryIndex(self._directory.find_employees(organization_id, distinct))
        resolved = {ref: index.match(ref) for ref in distinct}
        logger.info(
            "Resolved %d/%d distinct references for organization %s",
            sum(1 for r in resolved.values() if r.resolved), len(distinct), organization_id,
        )
        return resolved

    def resolve(self, organization_id: str, reference: str) -> Resolution:
        return self.resolve_many(organization_id, [reference]).get(reference.strip(), UNRESOLVED)
