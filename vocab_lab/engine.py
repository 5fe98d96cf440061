"""
Vocabulary engine: composition root and public API.

Wires the frequency analyzer, personalization, session analysis and progress
reporting together, owns the learner profile and session history, and talks
to the outside world only through injected collaborators:

    content_source   fetches articles given by id
    state_store      persists the learner profile
    cache_store      persists the corpus snapshot between runs
    event_hub        receives progress/completion/error notifications

Every collaborator is optional; without one the engine keeps the
corresponding state in memory only.

Public operations never raise. Failures are logged, published on
Topic.ERROR, and turned into a neutral result ([], None or False).

Typical use:
    engine = VocabularyEngine(EngineConfig(), cache_store=FileCacheStore("cache"))
    await engine.start()
    task = engine.analyze_articles([{"id": "a1", "title": "...", "content": "..."}])
    await task
    engine.search_words("run")
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

from .config import EngineConfig
from .events import EventHub, Topic
from .frequency.analyzer import ArticleCounts, FrequencyAnalyzer
from .frequency.scorer import NEUTRAL_TIER, difficulty_label, score_to_difficulty
from .frequency.stemmer import WordStemmer
from .personalization import PersonalizationEngine, UserProfile
from .progress import LearningProgressCalculator
from .session import Session, SessionAnalyzer
from .stores import CacheStore, ContentSource, StateStore
from .tasks import AnalysisTask, run_offloaded

logger = logging.getLogger(__name__)

ArticleInput = Union[str, Dict[str, Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class VocabularyEngine:
    """Frequency-based vocabulary difficulty engine with a learner model."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        content_source: Optional[ContentSource] = None,
        state_store: Optional[StateStore] = None,
        cache_store: Optional[CacheStore] = None,
        event_hub: Optional[EventHub] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            config: Engine configuration (defaults for every component)
            content_source: Resolves article ids passed to analyze_articles
            state_store: Persists the learner profile
            cache_store: Persists the corpus snapshot
            event_hub: Event registry (a private one is created if omitted)
            clock: Returns the current time in epoch milliseconds
        """
        self.config = config or EngineConfig()
        self.content_source = content_source
        self.state_store = state_store
        self.cache_store = cache_store
        self.events = event_hub or EventHub()
        self._clock = clock or _now_ms

        self.stemmer = WordStemmer(max_cache_size=self.config.stemmer.max_cache_size)
        self.analyzer = FrequencyAnalyzer(self.config.analyzer, self.stemmer)
        self.personalization = PersonalizationEngine() if self.config.enable_personalization else None
        self.session_analyzer = SessionAnalyzer()

        self.profile = UserProfile()
        self.current_session: Optional[Session] = None
        self.session_history: Deque[Dict[str, Any]] = deque(maxlen=self.config.session.history_limit)

        self.is_initialized = False
        self.last_analysis_time: Optional[int] = None
        self._analysis_task: Optional[AnalysisTask] = None
        self._session_poller: Optional[asyncio.Task] = None
        self._unsubscribers: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Restore cached corpus state and the stored profile, then subscribe to
        inbound reader events.

        Returns:
            True if the corpus was restored from cache
        """
        restored = self._restore_from_cache()
        self._restore_profile()

        if not self._unsubscribers:
            self._unsubscribers = [
                self.events.subscribe(Topic.GLOSSARY_SHOWN, self._on_glossary_shown),
                self.events.subscribe(Topic.READING_PROGRESS, self._on_reading_progress),
            ]

        self.is_initialized = True
        logger.info(
            f"Vocabulary engine started (restored={restored}, stems={len(self.analyzer.word_stats)}, "
            f"articles={self.analyzer.total_articles})"
        )
        return restored

    def close(self) -> None:
        """Stop session polling, detach from the event hub and stop any running analysis."""
        self._stop_session_poller()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._analysis_task is not None and not self._analysis_task.done():
            self._analysis_task.cancel()
        self.is_initialized = False
        logger.info("Vocabulary engine closed")

    def _on_glossary_shown(self, payload: Dict[str, Any]) -> None:
        word = payload.get("word")
        if word:
            self.record_word_lookup(word, {"source": "glossary"})

    def _on_reading_progress(self, payload: Dict[str, Any]) -> None:
        text = payload.get("text")
        if text:
            self.record_reading(text)

    # ------------------------------------------------------------------
    # Corpus ingestion
    # ------------------------------------------------------------------

    def analyze_articles(self, articles: List[ArticleInput]) -> Union[AnalysisTask, bool]:
        """
        Start analyzing a list of articles in the background.

        Each article is either a mapping {id, title, content} or an id to
        fetch from the content source. Must be called with a running event
        loop.

        Returns:
            An AnalysisTask (awaitable, cancellable), or False if the input is
            not a non-empty list or an analysis is already running
        """
        try:
            if not isinstance(articles, (list, tuple)) or not articles:
                raise ValueError("articles must be a non-empty list")
            if self._analysis_task is not None and not self._analysis_task.done():
                raise RuntimeError("an analysis is already running")

            asyncio.get_running_loop()  # RuntimeError outside a loop, before any coroutine exists
            task = AnalysisTask(total=len(articles))
            self._analysis_task = task
            task.start(self._run_analysis(list(articles), task))
            logger.info(f"Analyzing {len(articles)} articles ({self.config.processing.mode} mode)")
            return task
        except Exception as e:
            self._handle_error("analyze_articles", e)
            return False

    async def _run_analysis(self, articles: List[ArticleInput], task: AnalysisTask) -> Dict[str, Any]:
        processing = self.config.processing
        try:
            if processing.mode == "sequential":
                for i, article in enumerate(articles, start=1):
                    if task.cancel_requested:
                        break
                    await self._analyze_one(article, task)
                    if i % processing.batch_size == 0:
                        self.analyzer.refresh_scores()
                    await asyncio.sleep(0)  # Yield to the event loop between articles
            else:
                for i in range(0, len(articles), processing.batch_size):
                    if task.cancel_requested:
                        break
                    batch = articles[i:i + processing.batch_size]
                    await asyncio.gather(*(self._analyze_one(article, task) for article in batch))
                    self.analyzer.refresh_scores()
        finally:
            self.analyzer.refresh_scores()

        self.last_analysis_time = self._clock()
        self._save_to_cache()

        summary = task.summary()
        summary["total_words"] = len(self.analyzer.word_stats)
        if summary["failed"]:
            logger.warning(f"Analysis finished with {summary['failed']}/{summary['total']} failed articles")
        else:
            logger.info(f"Analysis finished: {summary['processed']}/{summary['total']} articles")
        self.events.emit(Topic.COMPLETE, summary)
        return summary

    async def _analyze_one(self, article: ArticleInput, task: AnalysisTask) -> None:
        article_id = article.get("id") if isinstance(article, dict) else article
        try:
            article_id, title, content = await self._resolve_article(article)
            counts = await self._count_words(content)
            self.analyzer.apply_counts(article_id, title, content, counts, refresh=False)
            task.processed += 1
            task.current_title = title
        except Exception as e:
            task.failed += 1
            logger.warning(f"Failed to analyze article {article_id!r}: {e}")

        self.events.emit(Topic.PROGRESS, {
            "progress": task.progress,
            "current_article": task.current_title,
            "processed": task.processed,
            "failed": task.failed,
            "total": task.total,
        })

    async def _resolve_article(self, article: ArticleInput) -> Tuple[str, str, str]:
        if isinstance(article, dict):
            article_id = article.get("id")
            if article_id is None or article_id == "":
                raise ValueError("article mapping has no id")
            title = article.get("title")
            content = article.get("content")
            if content is None and self.content_source is not None:
                fetched = await self.content_source.fetch_article(str(article_id))
                title = title or fetched.get("title")
                content = fetched.get("content")
        elif isinstance(article, (str, int)):
            if self.content_source is None:
                raise ValueError(f"cannot fetch article {article!r} without a content source")
            article_id = article
            fetched = await self.content_source.fetch_article(str(article_id))
            title = fetched.get("title")
            content = fetched.get("content")
        else:
            raise ValueError(f"unsupported article type {type(article).__name__}")

        if not isinstance(content, str):
            raise ValueError(f"content is {type(content).__name__}, not text")
        return str(article_id), title or str(article_id), content

    async def _count_words(self, content: str) -> ArticleCounts:
        analyzer_config = self.config.analyzer
        if 0 < analyzer_config.offload_threshold < len(content):
            return await run_offloaded(
                self.analyzer.count_words, content, timeout=analyzer_config.offload_timeout
            )
        return self.analyzer.count_words(content)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _save_to_cache(self) -> bool:
        if self.cache_store is None:
            return False
        cache_config = self.config.cache
        try:
            payload = self.analyzer.to_payload()
            payload.update({
                "version": cache_config.schema_version,
                "timestamp": self._clock(),
                "data_size": len(payload["word_stats"]),
            })
            self.cache_store.set(
                cache_config.cache_key, payload, tiers=cache_config.tiers, ttl=cache_config.ttl_seconds
            )
            logger.debug(f"Saved corpus snapshot ({payload['data_size']} stems)")
            return True
        except Exception as e:
            logger.warning(f"Failed to save corpus snapshot: {e}")
            return False

    def _is_cache_valid(self, cached: Any) -> bool:
        if not isinstance(cached, dict):
            return False
        if cached.get("version") != self.config.cache.schema_version:
            logger.info(f"Ignoring corpus snapshot with version {cached.get('version')!r}")
            return False
        timestamp = cached.get("timestamp")
        if not isinstance(timestamp, (int, float)):
            return False
        return self._clock() - timestamp < self.config.cache.ttl_seconds * 1000

    def _restore_from_cache(self) -> bool:
        if self.cache_store is None:
            return False
        cache_config = self.config.cache
        try:
            cached = self.cache_store.get(cache_config.cache_key, tiers=cache_config.tiers)
            if not self._is_cache_valid(cached):
                return False
            self.analyzer.load_payload(cached)
            self.last_analysis_time = cached["timestamp"]
            return True
        except Exception as e:
            logger.warning(f"Corpus snapshot unusable, starting empty: {e}")
            return False

    # ------------------------------------------------------------------
    # Profile persistence
    # ------------------------------------------------------------------

    def _restore_profile(self) -> None:
        if self.state_store is None:
            return
        try:
            stored = self.state_store.get(self.config.profile.state_path)
            if isinstance(stored, dict):
                self.profile = UserProfile.from_dict(stored)
                logger.debug("Restored learner profile")
        except Exception as e:
            logger.warning(f"Failed to restore learner profile: {e}")

    def _save_profile(self) -> None:
        if self.state_store is None:
            return
        try:
            self.state_store.set(self.config.profile.state_path, self.profile.to_dict())
        except Exception as e:
            logger.warning(f"Failed to save learner profile: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search_words(self, query: Any, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fuzzy search, re-ranked for the learner when personalization is on."""
        try:
            if not isinstance(query, str) or not query.strip():
                return []
            results = self.analyzer.search(query, limit)
            if self.personalization is not None:
                results = self.personalization.personalize_results(results, self.profile)

            self.events.emit(Topic.SEARCHED, {
                "query": query,
                "results": len(results),
                "personalized": self.personalization is not None,
                "exact": False,
            })
            return results
        except Exception as e:
            self._handle_error("search_words", e)
            return []

    def search_words_exact(self, query: Any) -> List[Dict[str, Any]]:
        try:
            results = self.analyzer.search_exact(query)
            if results:
                self.events.emit(Topic.SEARCHED, {
                    "query": query,
                    "results": len(results),
                    "personalized": False,
                    "exact": True,
                })
            return results
        except Exception as e:
            self._handle_error("search_words_exact", e)
            return []

    def calculate_personalized_difficulty(self, article_id: str) -> Dict[str, Any]:
        """
        Article difficulty adjusted for the learner.

        Unknown articles get the neutral tier before adjustment.
        """
        neutral = {"stars": NEUTRAL_TIER, "label": difficulty_label(NEUTRAL_TIER)}
        try:
            base = self.analyzer.calculate_article_difficulty(article_id) or neutral
            if self.personalization is not None:
                return self.personalization.adjust_difficulty(base, self.profile)
            return base
        except Exception as e:
            self._handle_error("calculate_personalized_difficulty", e)
            return neutral

    def get_basic_word_info(self, word: Any) -> Optional[Dict[str, Any]]:
        try:
            if not isinstance(word, str) or not word.strip():
                return None
            stem, stat = self.analyzer.lookup(word.strip())
            if stat is None:
                return None
            tier = score_to_difficulty(stat.distribution_score)
            return {
                "word": stem,
                "frequency": stat.total_count,
                "article_count": stat.article_count,
                "distribution_score": stat.distribution_score,
                "difficulty": tier,
                "label": difficulty_label(tier),
                "variants": [surface for surface, _ in stat.sorted_variants()[:5]],
                "is_personalized": False,
            }
        except Exception as e:
            self._handle_error("get_basic_word_info", e)
            return None

    def get_personalized_recommendations(self, word: Any) -> Optional[Dict[str, Any]]:
        try:
            info = self.get_basic_word_info(word)
            if info is None or self.personalization is None:
                return info
            stat = self.analyzer.word_stats.get(info["word"])
            insights = self.personalization.generate_insights(info["word"], self.profile, stat)
            return {**info, **insights, "is_personalized": True}
        except Exception as e:
            self._handle_error("get_personalized_recommendations", e)
            return None

    def get_word_details(self, word: Any) -> Optional[Dict[str, Any]]:
        try:
            return self.analyzer.get_word_details(word)
        except Exception as e:
            self._handle_error("get_word_details", e)
            return None

    def get_top_words(self, limit: int = 100, smart: bool = False) -> List[Dict[str, Any]]:
        try:
            return self.analyzer.get_top_words(limit, smart=smart)
        except Exception as e:
            self._handle_error("get_top_words", e)
            return []

    def get_stats_summary(self) -> Dict[str, Any]:
        summary = self.analyzer.get_stats_summary()
        summary["stem_cache"] = self.stemmer.cache_stats()
        return summary

    def get_analysis_state(self) -> Dict[str, Any]:
        task = self._analysis_task
        return {
            "is_initialized": self.is_initialized,
            "is_analyzing": task is not None and not task.done(),
            "progress": task.progress if task is not None else 0,
            "processed_articles": task.processed if task is not None else 0,
            "total_articles": task.total if task is not None else 0,
            "articles_analyzed": self.analyzer.total_articles,
            "total_words": len(self.analyzer.word_stats),
            "last_analysis_time": self.last_analysis_time,
            "session_active": self.current_session is not None,
        }

    # ------------------------------------------------------------------
    # Learning sessions
    # ------------------------------------------------------------------

    def start_learning_session(self) -> bool:
        """Open a new session, closing any session still in progress."""
        try:
            if self.current_session is not None:
                logger.info("Starting a new session while one is active, closing the previous one")
                self.end_learning_session()

            self.current_session = Session(start_time=self._clock())
            if self.config.enable_realtime_analysis:
                self._start_session_poller()

            self.events.emit(Topic.SESSION_STARTED, {"timestamp": self.current_session.start_time})
            return True
        except Exception as e:
            self._handle_error("start_learning_session", e)
            return False

    def end_learning_session(self) -> Optional[Dict[str, Any]]:
        """
        Close the active session, fold it into the profile and archive it.

        Returns:
            Final session analysis, or None when no session is active
        """
        try:
            self._stop_session_poller()
            session = self.current_session
            if session is None:
                return None

            session.end_time = self._clock()
            analysis = self.session_analyzer.analyze_session(session)
            session.analysis = analysis

            self.profile.apply_session(analysis["words_per_minute"], analysis["comprehension_estimate"])
            self._save_profile()

            self.session_history.append(session.to_dict())
            self.current_session = None

            self.events.emit(Topic.SESSION_ENDED, {"session": session.to_dict(), "analysis": analysis})
            logger.info(
                f"Session ended: {session.words_read} words, {session.lookups_count} lookups, "
                f"comprehension estimate {analysis['comprehension_estimate']}"
            )
            return analysis
        except Exception as e:
            self._handle_error("end_learning_session", e)
            return None

    def record_word_lookup(self, word: Any, context: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Register a dictionary lookup and analyze the looked-up word."""
        try:
            if not isinstance(word, str) or not word.strip():
                return None
            word = word.strip()
            if self.current_session is not None:
                self.current_session.lookups_count += 1

            stem, stat = self.analyzer.lookup(word)
            analysis = self.session_analyzer.analyze_lookup(word, context, stem, stat)

            profile_config = self.config.profile
            self.profile.record(
                "lookup", stem, self._clock(), analysis["difficulty"],
                limit=profile_config.history_limit, trim_to=profile_config.history_trim_to,
            )
            self._save_profile()

            self.events.emit(Topic.WORD_LOOKUP, {
                "word": word,
                "analysis": analysis,
                "suggestions": analysis["suggestions"],
            })
            return analysis
        except Exception as e:
            self._handle_error("record_word_lookup", e)
            return None

    def record_reading(self, text: Any) -> int:
        """
        Count text the learner has read in the active session.

        Returns:
            Number of words counted (0 when no session is active)
        """
        try:
            session = self.current_session
            if session is None:
                return 0
            words = self.analyzer.extract_words(text)
            session.words_read += len(words)
            for word in words:
                if not self.analyzer.is_valid_word(word):
                    continue
                tier = self.analyzer.word_difficulty(self.analyzer.stem(word))
                if tier is not None:
                    session.difficulty_encountered.append(tier)
            return len(words)
        except Exception as e:
            self._handle_error("record_reading", e)
            return 0

    def _start_session_poller(self) -> None:
        self._stop_session_poller()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, live session analysis disabled")
            return
        self._session_poller = loop.create_task(self._poll_session())

    def _stop_session_poller(self) -> None:
        if self._session_poller is not None:
            self._session_poller.cancel()
            self._session_poller = None

    async def _poll_session(self) -> None:
        interval = self.config.session.analysis_interval
        while True:
            await asyncio.sleep(interval)
            self.analyze_current_session()

    def analyze_current_session(self) -> Optional[Dict[str, Any]]:
        """Analyze the open session and publish live results."""
        try:
            session = self.current_session
            if session is None:
                return None
            analysis = self.session_analyzer.analyze_session(session, now=self._clock())
            self.events.emit(Topic.REALTIME_ANALYSIS, analysis)
            if analysis["recommendations"]:
                self.events.emit(Topic.SUGGESTIONS, {
                    "recommendations": analysis["recommendations"],
                    "urgent": analysis["urgent"],
                })
            return analysis
        except Exception as e:
            self._handle_error("analyze_current_session", e)
            return None

    # ------------------------------------------------------------------
    # Profile and progress
    # ------------------------------------------------------------------

    def get_learning_progress(self) -> Optional[Dict[str, Any]]:
        try:
            calculator = LearningProgressCalculator(
                list(self.session_history), self.profile, self.analyzer.difficulty_distribution()
            )
            return calculator.report(include_predictions=self.config.enable_predictive_analysis)
        except Exception as e:
            self._handle_error("get_learning_progress", e)
            return None

    def get_user_profile(self) -> Dict[str, Any]:
        return self.profile.to_dict()

    def update_user_preference(self, key: str, value: Any) -> bool:
        try:
            if not self.profile.update_preference(key, value):
                logger.warning(f"Rejected profile preference {key}={value!r}")
                return False
            self._save_profile()
            self.events.emit(Topic.PREFERENCE_UPDATED, {
                "key": key,
                "value": value,
                "profile": self.profile.to_dict(),
            })
            return True
        except Exception as e:
            self._handle_error("update_user_preference", e)
            return False

    def mark_word(self, word: Any, status: str) -> bool:
        """Mark a word as a strength or a weak spot ("strength" / "weak")."""
        try:
            if not isinstance(word, str) or not word.strip():
                return False
            if not self.profile.mark(self.analyzer.stem(word.strip()), status):
                return False
            self._save_profile()
            return True
        except Exception as e:
            self._handle_error("mark_word", e)
            return False

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _handle_error(self, context: str, error: Exception) -> None:
        logger.error(f"{context} failed: {error}")
        self.events.emit(Topic.ERROR, {
            "context": f"VocabularyEngine:{context}",
            "message": str(error),
            "timestamp": self._clock(),
        })
