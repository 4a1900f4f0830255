"""Employee directory records and identity resolution results."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

MatchedOn = Literal["id", "employee_code", "external_code", "fallback", "none"]


class EmployeeRecord(BaseModel):
    """Subset of the organization's employee directory used for matching."""

    id: str
    organization_id: str
    name: str = ""
    employee_code: str = ""
    external_code: str = ""
    phone: str = ""

    model_config = {"str_strip_whitespace": True}


class Resolution(BaseModel):
    """Outcome of resolving one employee reference."""

    employee_id: Optional[str] = None
    confidence: int = 0
    matched_on: MatchedOn = "none"

    @property
    def resolved(self) -> bool:
        return self.employee_id is not None


UNRESOLVED = Resolution()
