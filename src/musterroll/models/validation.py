"""Validation result models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RowIssue(BaseModel):
    row_index: int
    message: str


class ValidationResult(BaseModel):
    """Hard errors block apply; warnings are advisory only."""

    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors


class OracleReview(BaseModel):
    """Shape the suggestion oracle returns for a soft review."""

    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)
