"""Tests for heuristic column mapping and oracle suggestion handling."""

from __future__ import annotations

import json

import pytest

from musterroll.core.exceptions import InputError, OracleError
from musterroll.models.mapping import CanonicalField, MappingSuggestion
from musterroll.oracle.mock_provider import MockModelProvider
from musterroll.oracle.model_oracle import MAPPING_PROMPT, ModelSuggestionOracle
from musterroll.pipeline.mapping import (
    heuristic_mapping,
    normalize_header,
    parse_column_mapping,
    suggest_mapping,
)

HEADERS = ["Emp Code", "Date", "In Time", "Out Time", "Worked Hours", "OT", "Notes", "Dept"]


class TestHeuristicMapping:
    def test_matches_synonyms(self):
        s = heuristic_mapping(HEADERS)
        assert s.source == "heuristic"
        assert s.column_mapping == {
            "employee_code": "Emp Code",
            "date": "Date",
            "check_in": "In Time",
            "check_out": "Out Time",
            "hours": "Worked Hours",
            "overtime_hours": "OT",
            "remarks": "Notes",
        }
        assert s.confidence["date"] == 1.0
        assert s.confidence["employee_code"] == 0.8
        assert s.unmapped_headers == ["Dept"]

    def test_header_used_once(self):
        s = heuristic_mapping(["Code"])
        assert list(s.column_mapping.values()) == ["Code"]

    def test_normalize_header(self):
        assert normalize_header(" Emp. Code ") == "emp_code"


class _BrokenOracle:
    def __init__(self, error: Exception = OracleError("model unavailable")) -> None:
        self.error = error

    def suggest_mapping(self, headers, sample):
        raise self.error

    def review(self, batch, rows):
        raise self.error


class TestSuggestMapping:
    def test_without_oracle_uses_heuristics(self):
        assert suggest_mapping(HEADERS, []).source == "heuristic"

    @pytest.mark.parametrize("error", [OracleError("down"), ConnectionError("reset")])
    def test_oracle_failure_falls_back(self, error):
        s = suggest_mapping(HEADERS, [], _BrokenOracle(error))
        assert s.source == "heuristic"
        assert s.column_mapping["date"] == "Date"

    def test_oracle_output_is_filtered_and_completed(self):
        provider = MockModelProvider()
        provider.set_response(MAPPING_PROMPT, json.dumps({
            "column_mapping": {
                "employee_code": "Dept",
                "salary": "Worked Hours",
                "date": "No Such Header",
            },
            "confidence": {"employee_code": 0.6, "salary": 0.9},
        }))
        s = suggest_mapping(HEADERS, [["E1"]], ModelSuggestionOracle(provider))
        assert s.source == "oracle"
        assert s.column_mapping["employee_code"] == "Dept"
        assert "salary" not in s.column_mapping
        # heuristics fill the rest without reusing headers
        assert s.column_mapping["date"] == "Date"
        assert s.column_mapping["hours"] == "Worked Hours"
        assert "Emp Code" in s.unmapped_headers

    def test_empty_oracle_answer_falls_back(self):
        s = suggest_mapping(HEADERS, [], ModelSuggestionOracle(MockModelProvider()))
        assert s == heuristic_mapping(HEADERS)


class TestParseColumnMapping:
    def test_valid(self):
        m = parse_column_mapping({"employee_code": " Emp Code ", "date": "Date", "remarks": ""})
        assert m.fields == {CanonicalField.EMPLOYEE_CODE: "Emp Code", CanonicalField.DATE: "Date"}

    def test_unknown_field_rejected(self):
        with pytest.raises(InputError, match="salary"):
            parse_column_mapping({"salary": "Pay"})

    @pytest.mark.parametrize("raw", [None, [], {}, {"date": ""}])
    def test_empty_or_malformed(self, raw):
        with pytest.raises(InputError):
            parse_column_mapping(raw)


def test_suggestion_model_defaults():
    assert MappingSuggestion().column_mapping == {}
