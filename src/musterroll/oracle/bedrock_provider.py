"""Bedrock model provider using the bedrock-runtime Converse API."""

from __future__ import annotations

import logging
import re
from typing import Any, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ValidationError

from musterroll.core.exceptions import OracleError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


class BedrockModelProvider:
    """IModelProvider backed by Amazon Bedrock."""

    def __init__(
        self,
        model_id: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
    ) -> None:
        self._model_id = model_id
        self._temperature = temperature
        self._max_tokens = max_tokens
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("bedrock-runtime", **kwargs)

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        system = [{"text": m["content"]} for m in messages if m.get("role") == "system"]
        conversation = [
            {"role": m.get("role", "user"), "content": [{"text": m.get("content", "")}]}
            for m in messages if m.get("role") != "system"
        ]
        request: dict[str, Any] = {
            "modelId": self._model_id,
            "messages": conversation,
            "inferenceConfig": {
                "temperature": kwargs.get("temperature", self._temperature),
                "maxTokens": kwargs.get("max_tokens", self._max_tokens),
            },
        }
        if system:
            request["system"] = system
        try:
            resp = self._client.converse(**request)
        except (ClientError, BotoCoreError) as exc:
            raise OracleError(f"Bedrock converse failed for {self._model_id}: {exc}") from exc

        blocks = resp.get("output", {}).get("message", {}).get("content", [])
        text = "".join(b.get("text", "") for b in blocks)
        usage = resp.get("usage", {})
        logger.debug(
            "Bedrock %s: %s input / %s output tokens",
            self._model_id, usage.get("inputTokens"), usage.get("outputTokens"),
        )
        return text

    def structured_output(
        self, messages: list[dict[str, str]], response_model: type[T], **kwargs: Any
    ) -> T:
        """Ask for JSON matching the model's schema and parse the first JSON object."""
        if not issubclass(response_model, BaseModel):
            raise OracleError(f"{response_model!r} is not a pydantic model")
        schema = response_model.model_json_schema()
        instruction = {
            "role": "system",
            "content": f"Reply with a single JSON object matching this JSON schema: {schema}",
        }
        text = self.chat([instruction, *messages], **kwargs)
        match = _JSON_BLOCK.search(text)
        if match is None:
            raise OracleError("Model reply contained no JSON object")
        try:
            return response_model.model_validate_json(match.group(0))  # type: ignore[return-value]
        except ValidationError as exc:
            raise OracleError(f"Model reply did not match {response_model.__name__}") from exc
