"""Unit test configuration - deterministic clock and small corpora"""

import pytest

from vocab_lab.config import EngineConfig
from vocab_lab.engine import VocabularyEngine
from vocab_lab.events import EventHub
from vocab_lab.frequency.analyzer import FrequencyAnalyzer
from vocab_lab.stores import InMemoryCacheStore, InMemoryStateStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock"""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def seconds(self) -> float:
        return self.now / 1000


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fuzzy_corpus():
    """Two articles where "run" is a stem and also a substring of other stems"""
    return [
        {"id": "a1", "title": "Running", "content": "running runner runs"},
        {"id": "a2", "title": "Sunday", "content": "rerun brunch"},
    ]


@pytest.fixture
def exact_corpus():
    return [
        {"id": "a1", "title": "Tea", "content": "I enjoy tea. We enjoyed it! Enjoy life."},
        {"id": "a2", "title": "Music", "content": "They enjoy music."},
    ]


@pytest.fixture
def spread_corpus():
    """
    Ten articles: "enjoy" in two of them (5 + 1 times), "sparkle" six times
    in one, seven filler articles with unrelated words.
    """
    articles = [
        {"id": "e1", "title": "E1", "content": "enjoy " * 5},
        {"id": "e2", "title": "E2", "content": "enjoy"},
        {"id": "s1", "title": "S1", "content": "sparkle " * 6},
    ]
    fillers = ["apple", "bridge", "candle", "dragon", "engine", "forest", "guitar"]
    for i, word in enumerate(fillers):
        articles.append({"id": f"f{i}", "title": f"F{i}", "content": word})
    return articles


@pytest.fixture
def analyzer_for():
    """Build a FrequencyAnalyzer over a list of article dicts"""
    def build(articles):
        analyzer = FrequencyAnalyzer()
        for article in articles:
            analyzer.analyze_text(article["content"], article["id"], article["title"])
        return analyzer
    return build


@pytest.fixture
def engine_factory(clock):
    """
    Build engines on the fake clock with in-memory stores.

    Realtime polling is off unless asked for, so tests never leave tasks behind.
    """
    def factory(**overrides):
        config = overrides.pop("config", None) or EngineConfig(enable_realtime_analysis=False)
        return VocabularyEngine(
            config,
            content_source=overrides.pop("content_source", None),
            state_store=overrides.pop("state_store", InMemoryStateStore()),
            cache_store=overrides.pop("cache_store", InMemoryCacheStore(clock=clock.seconds)),
            event_hub=overrides.pop("event_hub", EventHub()),
            clock=clock,
        )
    return factory
