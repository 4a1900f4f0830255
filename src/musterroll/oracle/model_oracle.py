"""ModelSuggestionOracle — mapping proposals and soft review via an LLM provider.

Output is advisory. Any provider failure surfaces as OracleError, which the
mapping helper and Validator catch.
"""

from __future__ import annotations

import json
import logging

from musterroll.core.exceptions import OracleError
from musterroll.core.protocols import IModelProvider
from musterroll.models.batch import ImportBatch
from musterroll.models.mapping import CanonicalField, MappingSuggestion
from musterroll.models.staged_row import StagedRow
from musterroll.models.validation import OracleReview

logger = logging.getLogger(__name__)

MAPPING_PROMPT = "Propose a column mapping"
REVIEW_PROMPT = "Review these staged attendance rows"

SYSTEM_PROMPT = (
    "You help payroll operators import attendance exports. "
    "Only use the canonical field names and headers you are given."
)


class ModelSuggestionOracle:
    """ISuggestionOracle on top of any IModelProvider."""

    def __init__(self, provider: IModelProvider) -> None:
        self._provider = provider

    def suggest_mapping(self, headers: list[str], sample: list[list[str]]) -> MappingSuggestion:
        fields = [f.value for f in CanonicalField]
        content = (
            f"{MAPPING_PROMPT} from canonical fields to source headers.\n"
            f"Canonical fields: {json.dumps(fields)}\n"
            f"Headers: {json.dumps(headers)}\n"
            f"Sample rows: {json.dumps(sample)}"
        )
        suggestion = self._ask(content, MappingSuggestion)
        return suggestion.model_copy(update={"source": "oracle"})

    def review(self, batch: ImportBatch, rows: list[StagedRow]) -> OracleReview:
        payload = [
            {"row_index": r.row_index, **r.normalized.model_dump(mode="json", exclude_none=True)}
            for r in rows
        ]
        content = (
            f"{REVIEW_PROMPT} for {batch.period_key} and report suspicious values "
            f"as warnings with their row_index.\nRows: {json.dumps(payload)}"
        )
        return self._ask(content, OracleReview)

    def _ask(self, content: str, response_model: type):
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]
        try:
            return self._provider.structured_output(messages, response_model)
        except OracleError:
            raise
        except Exception as exc:
            raise OracleError(f"Suggestion oracle failed: {exc}") from exc
