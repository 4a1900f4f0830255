"""Tests for configuration defaults and env overrides."""

from __future__ import annotations

from musterroll.core.config import AppSettings, LLMConfig, PipelineConfig


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.llm.provider == "mock"
    assert settings.s3.bucket == "attendance-imports"


def test_llm_config_defaults():
    config = LLMConfig()
    assert config.provider == "mock"
    assert config.temperature == 0.0


def test_pipeline_defaults():
    config = PipelineConfig()
    assert config.sample_rows == 8
    assert config.stage_chunk_size == 1000
    assert config.oracle_sample_rows == 50


def test_pipeline_env_override(monkeypatch):
    monkeypatch.setenv("MUSTERROLL_PIPELINE_STAGE_CHUNK_SIZE", "250")
    monkeypatch.setenv("MUSTERROLL_PIPELINE_LOCK_TTL_SECONDS", "30")
    config = PipelineConfig()
    assert config.stage_chunk_size == 250
    assert config.lock_ttl_seconds == 30


def test_llm_provider_env_override(monkeypatch):
    monkeypatch.setenv("MUSTERROLL_LLM_PROVIDER", "none")
    assert LLMConfig().provider == "none"
