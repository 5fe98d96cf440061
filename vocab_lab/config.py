"""
Engine configuration.

One pydantic model per component; values are validated once when the engine
is constructed. EngineConfig.from_env() builds a config from VOCAB_*
environment variables (load .env.local/.env with python-dotenv first).

Option → effect:
    stemmer.max_cache_size          stem cache cap (oldest entries evicted)
    analyzer.min/max_word_length    token validity window
    analyzer.max_content_length     characters of article text kept for
                                    snippets and re-scoring
    analyzer.max_contexts           snippets per article in exact search
    analyzer.context_length         characters per snippet before "..."
    analyzer.default_search_limit   fuzzy search truncation
    analyzer.offload_threshold      texts longer than this are tokenized in a
                                    worker thread
    analyzer.offload_timeout        seconds before falling back in-process
    cache.cache_key                 key of the corpus snapshot
    cache.ttl_seconds               snapshot lifetime (24h)
    cache.tiers                     tiers passed to the cache store
    processing.mode                 "sequential" or "batched" ingestion
    processing.batch_size           articles per batch (re-scored once per batch)
    session.analysis_interval       seconds between live session analyses
    session.history_limit           archived sessions kept
    profile.history_limit           learning history size that triggers a trim
    profile.history_trim_to         entries kept after a trim
"""

import os
from typing import List, Literal

from pydantic import BaseModel, Field, model_validator

CACHE_SCHEMA_VERSION = "2.0"


class StemmerConfig(BaseModel):
    max_cache_size: int = Field(default=1000, ge=0, le=1_000_000)


class AnalyzerConfig(BaseModel):
    min_word_length: int = Field(default=3, ge=1, le=50)
    max_word_length: int = Field(default=20, ge=1, le=100)
    max_content_length: int = Field(default=50_000, ge=100)
    max_contexts: int = Field(default=2, ge=0, le=10)
    context_length: int = Field(default=100, ge=10, le=1000)
    default_search_limit: int = Field(default=20, ge=1, le=1000)
    offload_threshold: int = Field(default=1000, ge=0, description="Characters; 0 disables offloading")
    offload_timeout: float = Field(default=15.0, gt=0)

    @model_validator(mode="after")
    def check_length_window(self):
        if self.min_word_length > self.max_word_length:
            raise ValueError("min_word_length must not exceed max_word_length")
        return self


class CacheConfig(BaseModel):
    cache_key: str = Field(default="word_frequency_analysis", min_length=1)
    ttl_seconds: int = Field(default=24 * 60 * 60, ge=1)
    tiers: List[str] = Field(default_factory=lambda: ["memory", "persistent"])
    schema_version: str = CACHE_SCHEMA_VERSION


class ProcessingConfig(BaseModel):
    mode: Literal["sequential", "batched"] = "batched"
    batch_size: int = Field(default=5, ge=1, le=100)


class SessionConfig(BaseModel):
    analysis_interval: float = Field(default=5.0, gt=0)
    history_limit: int = Field(default=50, ge=1)


class ProfileConfig(BaseModel):
    state_path: str = "wordFreq.userProfile"
    history_limit: int = Field(default=1000, ge=1)
    history_trim_to: int = Field(default=500, ge=1)

    @model_validator(mode="after")
    def check_trim(self):
        if self.history_trim_to > self.history_limit:
            raise ValueError("history_trim_to must not exceed history_limit")
        return self


class EngineConfig(BaseModel):
    """Top-level engine configuration."""
    enable_personalization: bool = True
    enable_realtime_analysis: bool = True
    enable_predictive_analysis: bool = True

    stemmer: StemmerConfig = Field(default_factory=StemmerConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    profile: ProfileConfig = Field(default_factory=ProfileConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build config from environment variables.

        Recognized:
            VOCAB_PROCESSING_MODE, VOCAB_BATCH_SIZE, VOCAB_CACHE_TTL_SECONDS,
            VOCAB_STEM_CACHE_SIZE, VOCAB_ANALYSIS_INTERVAL,
            VOCAB_ENABLE_PERSONALIZATION, VOCAB_ENABLE_REALTIME,
            VOCAB_ENABLE_PREDICTIVE
        """
        def flag(name: str, default: bool = True) -> bool:
            value = os.getenv(name)
            if value is None:
                return default
            return value.lower() in ("1", "true", "yes")

        return cls(
            enable_personalization=flag("VOCAB_ENABLE_PERSONALIZATION"),
            enable_realtime_analysis=flag("VOCAB_ENABLE_REALTIME"),
            enable_predictive_analysis=flag("VOCAB_ENABLE_PREDICTIVE"),
            stemmer=StemmerConfig(
                max_cache_size=int(os.getenv("VOCAB_STEM_CACHE_SIZE", "1000")),
            ),
            cache=CacheConfig(
                ttl_seconds=int(os.getenv("VOCAB_CACHE_TTL_SECONDS", str(24 * 60 * 60))),
            ),
            processing=ProcessingConfig(
                mode=os.getenv("VOCAB_PROCESSING_MODE", "batched"),
                batch_size=int(os.getenv("VOCAB_BATCH_SIZE", "5")),
            ),
            session=SessionConfig(
                analysis_interval=float(os.getenv("VOCAB_ANALYSIS_INTERVAL", "5.0")),
            ),
        )
