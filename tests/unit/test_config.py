"""
Unit tests for engine configuration.
"""

import pytest
from pydantic import ValidationError

from vocab_lab.config import CACHE_SCHEMA_VERSION, AnalyzerConfig, EngineConfig, ProfileConfig


class TestDefaults:

    def test_defaults(self):
        config = EngineConfig()
        assert config.processing.mode == "batched"
        assert config.processing.batch_size == 5
        assert config.cache.ttl_seconds == 24 * 60 * 60
        assert config.cache.schema_version == CACHE_SCHEMA_VERSION == "2.0"
        assert config.session.history_limit == 50
        assert config.profile.history_limit == 1000
        assert config.profile.history_trim_to == 500
        assert config.analyzer.max_contexts == 2
        assert config.analyzer.context_length == 100


class TestValidation:

    def test_word_length_window(self):
        with pytest.raises(ValidationError):
            AnalyzerConfig(min_word_length=10, max_word_length=5)

    def test_trim_not_above_limit(self):
        with pytest.raises(ValidationError):
            ProfileConfig(history_limit=10, history_trim_to=20)

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            EngineConfig(processing={"mode": "parallel"})

    def test_batch_size_positive(self):
        with pytest.raises(ValidationError):
            EngineConfig(processing={"batch_size": 0})


class TestFromEnv:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("VOCAB_PROCESSING_MODE", "sequential")
        monkeypatch.setenv("VOCAB_BATCH_SIZE", "3")
        monkeypatch.setenv("VOCAB_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("VOCAB_ENABLE_REALTIME", "false")
        monkeypatch.setenv("VOCAB_STEM_CACHE_SIZE", "10")

        config = EngineConfig.from_env()
        assert config.processing.mode == "sequential"
        assert config.processing.batch_size == 3
        assert config.cache.ttl_seconds == 60
        assert config.enable_realtime_analysis is False
        assert config.enable_personalization is True
        assert config.stemmer.max_cache_size == 10

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("VOCAB_PROCESSING_MODE", "parallel")
        with pytest.raises(ValidationError):
            EngineConfig.from_env()
