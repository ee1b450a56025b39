# vectorpipe/config.py
"""
Configuration for the adaptive vector pipeline.

Module-level constants are the defaults. A `Settings` value is built once
at process start (usually via `load_settings()`) and handed to every
component; nothing mutates it afterwards.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vectorpipe.models import ProcessingMode


# ========== TEXT PREPROCESSING ==========

MAX_CHUNK_SIZE = 512  # characters per chunk
MIN_CHUNK_SIZE = 50  # shorter chunks are dropped
CHUNK_OVERLAP = 50  # characters carried into the next chunk
REMOVE_STOP_WORDS = False


# ========== EMBEDDING CONFIGURATION ==========

EMBEDDING_MODEL = "text-embedding-ada-002"
EMBEDDING_DIMENSION = 1536  # ada-002 output size, also the fallback size
EMBEDDING_API_BASE = "https://api.openai.com/v1"
EMBEDDING_ENABLED = False

# Provider timeouts (seconds)
CONNECT_TIMEOUT_SECONDS = 30.0
READ_TIMEOUT_SECONDS = 60.0
WRITE_TIMEOUT_SECONDS = 30.0

# Provider pricing, cents per 1K tokens.
# Unknown models are billed at the small-model rate.
EMBEDDING_PRICE_CENTS_PER_1K_TOKENS = {
    "text-embedding-3-small": 0.002,
    "text-embedding-3-large": 0.013,
    "text-embedding-ada-002": 0.01,
}
DEFAULT_PRICE_CENTS_PER_1K_TOKENS = 0.002


# ========== VECTOR CACHE ==========

CACHE_ENABLED = True
CACHE_MAX_ENTRIES = 10000
CACHE_TTL_SECONDS = 24 * 60 * 60


# ========== MODE SWITCHING ==========

AUTO_SWITCH_ENABLED = True
DEFAULT_MODE = ProcessingMode.AUTO

# Switching thresholds. None disables the corresponding factor.
COST_THRESHOLD_CENTS = None
LATENCY_THRESHOLD_MS = None
LOAD_THRESHOLD = None
QUEUE_SIZE_THRESHOLD = None

# Batch queue: lower value drains first
DEFAULT_TASK_PRIORITY = 5


# ========== LOGGING ==========

LOG_LEVEL = "INFO"
LOG_FILE = None


ENV_PREFIX = "VECTOR_"

_TRUE_VALUES = {"1", "true", "yes", "on"}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    """Immutable runtime configuration shared by all components."""

    model_config = ConfigDict(frozen=True)

    max_chunk_size: int = Field(MAX_CHUNK_SIZE, gt=0)
    min_chunk_size: int = Field(MIN_CHUNK_SIZE, ge=0)
    chunk_overlap: int = Field(CHUNK_OVERLAP, ge=0)
    remove_stop_words: bool = REMOVE_STOP_WORDS

    embedding_model: str = EMBEDDING_MODEL
    embedding_dimension: int = Field(EMBEDDING_DIMENSION, gt=0)
    embedding_api_base: str = EMBEDDING_API_BASE
    embedding_api_key: Optional[str] = None
    embedding_enabled: bool = EMBEDDING_ENABLED
    connect_timeout_seconds: float = Field(CONNECT_TIMEOUT_SECONDS, gt=0)
    read_timeout_seconds: float = Field(READ_TIMEOUT_SECONDS, gt=0)
    write_timeout_seconds: float = Field(WRITE_TIMEOUT_SECONDS, gt=0)

    cache_enabled: bool = CACHE_ENABLED
    cache_max_entries: int = Field(CACHE_MAX_ENTRIES, gt=0)
    cache_ttl_seconds: float = Field(CACHE_TTL_SECONDS, gt=0)

    auto_switch_enabled: bool = AUTO_SWITCH_ENABLED
    default_mode: ProcessingMode = DEFAULT_MODE
    cost_threshold_cents: Optional[int] = COST_THRESHOLD_CENTS
    latency_threshold_ms: Optional[int] = LATENCY_THRESHOLD_MS
    load_threshold: Optional[float] = LOAD_THRESHOLD
    queue_size_threshold: Optional[int] = QUEUE_SIZE_THRESHOLD

    log_level: str = LOG_LEVEL
    log_file: Optional[str] = LOG_FILE

    @field_validator("embedding_model")
    @classmethod
    def validate_embedding_model(cls, v):
        """Model name identifies the vector space, it cannot be blank."""
        if not v or not v.strip():
            raise ValueError("Embedding model cannot be empty")
        return v.strip()

    @field_validator("embedding_api_key")
    @classmethod
    def validate_api_key(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def validate_chunk_bounds(self):
        if self.chunk_overlap >= self.max_chunk_size:
            raise ValueError(
                f"Overlap must be smaller than max chunk size "
                f"(overlap={self.chunk_overlap}, max={self.max_chunk_size})"
            )
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError(
                f"Min chunk size exceeds max chunk size "
                f"(min={self.min_chunk_size}, max={self.max_chunk_size})"
            )
        return self

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def has_credential(self) -> bool:
        return bool(self.embedding_api_key)

    def price_per_1k_tokens(self) -> float:
        """Provider price in cents for the configured model."""
        return EMBEDDING_PRICE_CENTS_PER_1K_TOKENS.get(
            self.embedding_model, DEFAULT_PRICE_CENTS_PER_1K_TOKENS
        )


def _read(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _read_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = _read(env, name)
    if value is None:
        return default
    return value.lower() in _TRUE_VALUES


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables (VECTOR_* prefix).

    Unset variables fall back to the module defaults. OPENAI_API_KEY is
    accepted as the credential when VECTOR_EMBEDDING_API_KEY is absent.
    """

    env = os.environ if env is None else env

    values = {
        "remove_stop_words": _read_bool(env, "REMOVE_STOP_WORDS", REMOVE_STOP_WORDS),
        "embedding_enabled": _read_bool(env, "EMBEDDING_ENABLED", EMBEDDING_ENABLED),
        "auto_switch_enabled": _read_bool(env, "AUTO_SWITCH_ENABLED", AUTO_SWITCH_ENABLED),
        "cache_enabled": _read_bool(env, "CACHE_ENABLED", CACHE_ENABLED),
        "embedding_api_key": _read(env, "EMBEDDING_API_KEY") or env.get("OPENAI_API_KEY"),
    }

    # pydantic coerces the raw strings to the declared field types
    for field, name in (
        ("max_chunk_size", "MAX_CHUNK_SIZE"),
        ("min_chunk_size", "MIN_CHUNK_SIZE"),
        ("chunk_overlap", "CHUNK_OVERLAP"),
        ("embedding_model", "EMBEDDING_MODEL"),
        ("embedding_dimension", "EMBEDDING_DIMENSION"),
        ("embedding_api_base", "EMBEDDING_API_BASE"),
        ("connect_timeout_seconds", "CONNECT_TIMEOUT_SECONDS"),
        ("read_timeout_seconds", "READ_TIMEOUT_SECONDS"),
        ("write_timeout_seconds", "WRITE_TIMEOUT_SECONDS"),
        ("default_mode", "DEFAULT_MODE"),
        ("cost_threshold_cents", "COST_THRESHOLD_CENTS"),
        ("latency_threshold_ms", "LATENCY_THRESHOLD_MS"),
        ("load_threshold", "LOAD_THRESHOLD"),
        ("queue_size_threshold", "QUEUE_SIZE_THRESHOLD"),
        ("cache_max_entries", "CACHE_MAX_ENTRIES"),
        ("cache_ttl_seconds", "CACHE_TTL_SECONDS"),
        ("log_level", "LOG_LEVEL"),
        ("log_file", "LOG_FILE"),
    ):
        value = _read(env, name)
        if value is not None:
            values[field] = value

    if "default_mode" in values:
        values["default_mode"] = values["default_mode"].upper()

    return Settings(**values)
