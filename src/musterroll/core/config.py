"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class PipelineConfig(BaseSettings):
    """Import pipeline tuning."""

    model_config = {"env_prefix": "MUSTERROLL_PIPELINE_"}

    sample_rows: int = 8
    stage_chunk_size: int = 1000
    lock_ttl_seconds: int = 120
    oracle_sample_rows: int = 50


class LLMConfig(BaseSettings):
    """Suggestion oracle (LLM) configuration."""

    model_config = {"env_prefix": "MUSTERROLL_LLM_"}

    provider: Literal["none", "mock", "bedrock"] = "mock"
    bedrock_model: str = "anthropic.claude-3-5-haiku-20241022-v1:0"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2048


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "MUSTERROLL_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache and lock configuration."""

    model_config = {"env_prefix": "MUSTERROLL_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0


class S3Config(BaseSettings):
    """S3 object storage for uploaded source files."""

    model_config = {"env_prefix": "MUSTERROLL_S3_"}

    bucket: str = "attendance-imports"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class APIConfig(BaseSettings):
    """HTTP surface configuration."""

    model_config = {"env_prefix": "MUSTERROLL_API_"}

    cors_origins: list[str] = ["*"]


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "MUSTERROLL_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    pipeline: PipelineConfig = PipelineConfig()
    llm: LLMConfig = LLMConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    api: APIConfig = APIConfig()
