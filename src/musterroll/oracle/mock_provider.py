"""Mock model provider for local development and testing.

Returns canned responses. No real LLM calls.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from musterroll.core.exceptions import OracleError

T = TypeVar("T")


class MockModelProvider:
    """IModelProvider implementation that returns deterministic mock responses."""

    def __init__(self, default_response: str = "{}") -> None:
        self._default_response = default_response
        self._canned_responses: dict[str, str] = {}
        self.calls: list[list[dict[str, str]]] = []

    def set_response(self, prompt_contains: str, response: str) -> None:
        """Register a canned response for prompts containing a keyword."""
        self._canned_responses[prompt_contains] = response

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        self.calls.append(messages)
        last_content = messages[-1].get("content", "") if messages else ""
        for keyword, response in self._canned_responses.items():
            if keyword in last_content:
                return response
        return self._default_response

    def structured_output(
        self, messages: list[dict[str, str]], response_model: type[T], **kwargs: Any
    ) -> T:
        """Parse the canned reply into the response model; default instance otherwise."""
        text = self.chat(messages, **kwargs)
        if not issubclass(response_model, BaseModel):
            return response_model()  # type: ignore[call-arg]
        try:
            return response_model.model_validate_json(text)  # type: ignore[return-value]
        except ValidationError as exc:
            raise OracleError(f"Mock response is not a valid {response_model.__name__}") from exc
