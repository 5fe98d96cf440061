"""
Vocab Lab - vocabulary frequency and personalized difficulty engine.

Usage:
    from vocab_lab import VocabularyEngine, EngineConfig

    engine = VocabularyEngine(EngineConfig())
    await engine.start()
    await engine.analyze_articles(articles)
    results = engine.search_words("enjoy")
"""

from .config import EngineConfig
from .engine import VocabularyEngine
from .events import EventHub, Topic
from .personalization import UserProfile
from .stores import (
    DirectoryContentSource,
    FileCacheStore,
    FileStateStore,
    InMemoryCacheStore,
    InMemoryStateStore,
    StaticContentSource,
)
from .tasks import AnalysisTask

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "VocabularyEngine",
    "EventHub",
    "Topic",
    "UserProfile",
    "DirectoryContentSource",
    "FileCacheStore",
    "FileStateStore",
    "InMemoryCacheStore",
    "InMemoryStateStore",
    "StaticContentSource",
    "AnalysisTask",
]
