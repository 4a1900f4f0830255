"""Build the configured suggestion oracle."""

from __future__ import annotations

from typing import Optional

from musterroll.core.config import AppSettings
from musterroll.core.protocols import ISuggestionOracle
from musterroll.oracle.bedrock_provider import BedrockModelProvider
from musterroll.oracle.mock_provider import MockModelProvider
from musterroll.oracle.model_oracle import ModelSuggestionOracle


def create_oracle(settings: AppSettings | None = None) -> Optional[ISuggestionOracle]:
    """None when the oracle is disabled; heuristics then cover mapping."""
    if settings is None:
        settings = AppSettings()
    llm = settings.llm
    if llm.provider == "none":
        return None
    if llm.provider == "bedrock":
        provider = BedrockModelProvider(
            model_id=llm.bedrock_model,
            region=llm.region,
            endpoint_url=llm.endpoint_url,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
    else:
        provider = MockModelProvider()
    return ModelSuggestionOracle(provider)
