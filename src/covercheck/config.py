"""Centralized configuration for the CoverCheck query pipeline."""

import json
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKENDS = [
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.2-3b-instruct:free",
    "mistralai/mistral-7b-instruct:free",
    "google/gemini-flash-1.5:free",
]


def _parse_str_list(v: object) -> object:
    """Accept a JSON array string or comma-separated string from env vars."""
    if isinstance(v, str):
        try:
            parsed = json.loads(v)
        except (json.JSONDecodeError, ValueError):
            parsed = [item.strip() for item in v.split(",") if item.strip()]
        if not isinstance(parsed, list):
            return [str(parsed)]
        return [str(item) for item in parsed]
    return v


class EmbeddingConfig(BaseSettings):
    """Embedding provider settings."""

    model_config = SettingsConfigDict(env_prefix="EMBED_", frozen=True)

    provider: Literal["ollama", "openai", "huggingface"] = "ollama"
    model: str | None = None
    host: str | None = None
    api_key: str | None = None
    timeout_s: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, gt=0)
    backoff_base_s: float = Field(default=2.0, ge=0.0)


class VectorStoreConfig(BaseSettings):
    """ChromaDB vector store settings."""

    model_config = SettingsConfigDict(env_prefix="VS_", frozen=True)

    db_path: str = "./chroma_db"
    collection_name: str = "document_chunks"
    query_results: int = Field(default=5, gt=0)
    overfetch_factor: int = Field(default=3, ge=1)
    batch_size: int = Field(default=100, gt=0)


class GenerationConfig(BaseSettings):
    """Generation backend settings (OpenRouter-compatible API)."""

    model_config = SettingsConfigDict(env_prefix="LLM_", frozen=True)

    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str | None = None
    backends: list[str] = Field(default_factory=lambda: list(DEFAULT_BACKENDS))
    ollama_fallback: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, gt=0)
    referer: str = "https://covercheck.co.za"
    app_title: str = "CoverCheck"
    channel_size: int = Field(default=32, gt=0)

    @field_validator("backends", mode="before")
    @classmethod
    def _parse_backends(cls, v: object) -> object:
        return _parse_str_list(v)

    @field_validator("backends")
    @classmethod
    def _backends_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one generation backend is required")
        return v


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", frozen=True)

    host: str = "127.0.0.1"
    port: int = Field(default=8000, gt=0, le=65535)


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    model_config = SettingsConfigDict(frozen=True)

    default_partition: str | None = None
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
