"""
Unit tests for the vocabulary engine facade.

Engines run on a fake millisecond clock with in-memory stores (see conftest).
"""

import asyncio

import pytest

from vocab_lab.config import EngineConfig
from vocab_lab.events import EventHub, Topic
from vocab_lab.stores import InMemoryCacheStore, InMemoryStateStore, StaticContentSource

DAY_MS = 24 * 60 * 60 * 1000


def _collect(hub: EventHub, topic: Topic) -> list:
    received = []
    hub.subscribe(topic, received.append)
    return received


class TestAnalyzeArticles:

    @pytest.mark.asyncio
    async def test_analyzes_inline_articles(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        progress = _collect(engine.events, Topic.PROGRESS)
        complete = _collect(engine.events, Topic.COMPLETE)

        task = engine.analyze_articles(fuzzy_corpus)
        summary = await task

        assert summary == {"processed": 2, "failed": 0, "total": 2, "cancelled": False, "total_words": 3}
        assert [p["progress"] for p in progress] == [50, 100]
        assert complete == [summary]
        assert engine.last_analysis_time is not None

    @pytest.mark.asyncio
    async def test_articles_by_id(self, engine_factory, exact_corpus):
        source = StaticContentSource({a["id"]: a for a in exact_corpus})
        engine = engine_factory(
            content_source=source,
            config=EngineConfig(enable_realtime_analysis=False, processing={"mode": "sequential"}),
        )
        summary = await engine.analyze_articles(["a1", "a2"])

        assert summary["processed"] == 2
        assert engine.analyzer.articles["a1"].title == "Tea"

    @pytest.mark.asyncio
    async def test_mapping_without_content_is_fetched(self, engine_factory):
        source = StaticContentSource({"a1": {"title": "Fetched", "content": "apple"}})
        engine = engine_factory(content_source=source)
        await engine.analyze_articles([{"id": "a1"}])
        assert engine.analyzer.articles["a1"].title == "Fetched"

    @pytest.mark.asyncio
    async def test_failed_articles_are_counted(self, engine_factory):
        engine = engine_factory()
        summary = await engine.analyze_articles([
            {"id": "ok", "content": "apple"},
            {"id": "bad", "content": None},
            "no-source",
            {"title": "no id", "content": "pear"},
        ])
        assert summary["processed"] == 1
        assert summary["failed"] == 3
        assert engine.analyzer.total_articles == 1

    @pytest.mark.asyncio
    async def test_batched_mode(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, processing={"mode": "batched", "batch_size": 2}),
        )
        articles = [{"id": f"a{i}", "content": f"apple word{i}"} for i in range(5)]
        summary = await engine.analyze_articles(articles)
        assert summary["processed"] == 5
        assert engine.analyzer.word_stats["apple"].article_count == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode,batch_size", [("sequential", 3), ("sequential", 1), ("batched", 4)])
    async def test_scores_match_one_by_one_analysis(
        self, engine_factory, spread_corpus, analyzer_for, mode, batch_size
    ):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, processing={"mode": mode, "batch_size": batch_size}),
        )
        await engine.analyze_articles(spread_corpus)

        reference = analyzer_for(spread_corpus)
        scores = {stem: stat.distribution_score for stem, stat in engine.analyzer.word_stats.items()}
        expected = {stem: stat.distribution_score for stem, stat in reference.word_stats.items()}
        assert scores == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_count_invariant_after_batched_runs(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, processing={"mode": "batched", "batch_size": 2}),
        )
        first = [
            {"id": "a1", "content": "Runners were running home"},
            {"id": "a2", "content": "Cats watched runners"},
            {"id": "a3", "content": "cats cats teachers"},
        ]
        await engine.analyze_articles(first)
        await engine.analyze_articles([
            {"id": "a2", "content": "dogs only"},
            {"id": "a4", "content": "running cats"},
        ])

        for stem, stat in engine.analyzer.word_stats.items():
            per_article = sum(occurrence.count for occurrence in stat.articles.values())
            assert stat.total_count == sum(stat.variants.values()) == per_article, stem
        assert engine.analyzer.word_stats["cat"].total_count == 3
        assert engine.analyzer.word_stats["run"].total_count == 3
        assert set(engine.analyzer.word_stats["run"].articles) == {"a1", "a4"}

    @pytest.mark.asyncio
    async def test_offloaded_tokenization(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, analyzer={"offload_threshold": 10}),
        )
        await engine.analyze_articles([{"id": "long", "content": "apple " * 100}])
        assert engine.analyzer.word_stats["apple"].total_count == 100

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, processing={"mode": "sequential"}),
        )
        task = engine.analyze_articles([{"id": "a1", "content": "apple"}, {"id": "a2", "content": "pear"}])
        task.cancel()
        summary = await task
        assert summary["processed"] == 0
        assert summary["cancelled"] is True

    @pytest.mark.asyncio
    async def test_one_analysis_at_a_time(self, engine_factory):
        engine = engine_factory()
        errors = _collect(engine.events, Topic.ERROR)

        first = engine.analyze_articles([{"id": "a1", "content": "apple"}])
        assert engine.get_analysis_state()["is_analyzing"] is True
        assert engine.analyze_articles([{"id": "a2", "content": "pear"}]) is False
        assert errors[0]["context"] == "VocabularyEngine:analyze_articles"

        await first
        assert engine.get_analysis_state()["is_analyzing"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("articles", [[], None, "a1", {"id": "a1"}])
    async def test_invalid_input(self, engine_factory, articles):
        engine = engine_factory()
        errors = _collect(engine.events, Topic.ERROR)
        assert engine.analyze_articles(articles) is False
        assert len(errors) == 1
        assert errors[0]["timestamp"] == engine._clock()

    def test_requires_running_loop(self, engine_factory):
        assert engine_factory().analyze_articles([{"id": "a1", "content": "apple"}]) is False


class TestCorpusCache:

    @pytest.mark.asyncio
    async def test_restore_on_start(self, engine_factory, exact_corpus, clock):
        cache = InMemoryCacheStore(clock=clock.seconds)
        first = engine_factory(cache_store=cache)
        await first.analyze_articles(exact_corpus)

        second = engine_factory(cache_store=cache)
        assert await second.start() is True
        assert second.search_words_exact("enjoy")[0]["total_count"] == 3
        assert second.last_analysis_time == first.last_analysis_time
        second.close()

    @pytest.mark.asyncio
    async def test_expired_snapshot_is_ignored(self, engine_factory, exact_corpus, clock):
        cache = InMemoryCacheStore()
        first = engine_factory(cache_store=cache)
        await first.analyze_articles(exact_corpus)

        clock.advance(DAY_MS)
        second = engine_factory(cache_store=cache)
        assert await second.start() is False
        assert second.analyzer.total_articles == 0
        second.close()

    @pytest.mark.asyncio
    async def test_other_version_is_ignored(self, engine_factory, clock):
        cache = InMemoryCacheStore()
        cache.set("word_frequency_analysis", {
            "version": "1.0",
            "timestamp": clock(),
            "word_stats": {},
            "articles": {},
            "variant_index": {},
            "article_variants": {},
        })
        engine = engine_factory(cache_store=cache)
        assert await engine.start() is False
        engine.close()

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_is_ignored(self, engine_factory, clock):
        cache = InMemoryCacheStore()
        cache.set("word_frequency_analysis", {"version": "2.0", "timestamp": clock(), "word_stats": 5})
        engine = engine_factory(cache_store=cache)
        assert await engine.start() is False
        engine.close()

    @pytest.mark.asyncio
    async def test_without_cache_store(self, engine_factory, exact_corpus):
        engine = engine_factory(cache_store=None)
        await engine.analyze_articles(exact_corpus)
        assert await engine.start() is False
        engine.close()


class TestQueries:

    @pytest.mark.asyncio
    async def test_search_is_personalized(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        searched = _collect(engine.events, Topic.SEARCHED)
        await engine.analyze_articles(fuzzy_corpus)
        assert engine.mark_word("rerun", "weak")

        results = engine.search_words("run")
        assert [r["word"] for r in results] == ["run", "rerun", "brunch"]
        assert results[1]["personalized_relevance"] == 8
        assert searched == [{"query": "run", "results": 3, "personalized": True, "exact": False}]

    @pytest.mark.asyncio
    async def test_search_without_personalization(self, engine_factory, fuzzy_corpus):
        engine = engine_factory(config=EngineConfig(enable_realtime_analysis=False, enable_personalization=False))
        await engine.analyze_articles(fuzzy_corpus)
        results = engine.search_words("run")
        assert "personalized_relevance" not in results[0]

    def test_search_invalid_query(self, engine_factory):
        engine = engine_factory()
        assert engine.search_words("") == []
        assert engine.search_words(None) == []
        assert engine.search_words_exact(None) == []

    @pytest.mark.asyncio
    async def test_exact_search_event(self, engine_factory, exact_corpus):
        engine = engine_factory()
        searched = _collect(engine.events, Topic.SEARCHED)
        await engine.analyze_articles(exact_corpus)

        assert engine.search_words_exact("missing") == []
        assert searched == []
        engine.search_words_exact("enjoy")
        assert searched[0]["exact"] is True

    @pytest.mark.asyncio
    async def test_personalized_article_difficulty(self, engine_factory):
        engine = engine_factory()
        await engine.analyze_articles([{"id": "a1", "content": "alpha " * 6}])

        assert engine.calculate_personalized_difficulty("a1")["stars"] == 3
        assert engine.update_user_preference("preferred_difficulty", 5)
        result = engine.calculate_personalized_difficulty("a1")
        assert result["stars"] == 4
        assert result["original_stars"] == 3

    def test_unknown_article_is_neutral(self, engine_factory):
        result = engine_factory().calculate_personalized_difficulty("missing")
        assert result["stars"] == 3
        assert result["original_stars"] == 3

    @pytest.mark.asyncio
    async def test_word_info(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        await engine.analyze_articles(fuzzy_corpus)

        info = engine.get_basic_word_info("Running")
        assert info["word"] == "run"
        assert info["frequency"] == 3
        assert info["is_personalized"] is False
        assert engine.get_basic_word_info("zebra") is None

    @pytest.mark.asyncio
    async def test_recommendations(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        await engine.analyze_articles(fuzzy_corpus)
        engine.mark_word("running", "weak")

        recommendations = engine.get_personalized_recommendations("runs")
        assert recommendations["word"] == "run"
        assert recommendations["recommended_action"] == "focus_study"
        assert recommendations["mastery"] == 0.2
        assert recommendations["is_personalized"] is True
        assert engine.get_personalized_recommendations("zebra") is None

    @pytest.mark.asyncio
    async def test_reporting(self, engine_factory, exact_corpus):
        engine = engine_factory()
        await engine.analyze_articles(exact_corpus)

        assert engine.get_top_words(1)[0]["word"] == "enjoy"
        assert engine.get_word_details("enjoyed")["total_count"] == 4
        summary = engine.get_stats_summary()
        assert summary["total_articles_analyzed"] == 2
        assert "hit_rate" in summary["stem_cache"]

        state = engine.get_analysis_state()
        assert state["progress"] == 100
        assert state["articles_analyzed"] == 2
        assert state["total_words"] == 4
        assert state["session_active"] is False


class TestSessions:

    def test_session_updates_profile(self, engine_factory, clock):
        state = InMemoryStateStore()
        engine = engine_factory(state_store=state)
        started = _collect(engine.events, Topic.SESSION_STARTED)
        ended = _collect(engine.events, Topic.SESSION_ENDED)

        assert engine.start_learning_session()
        assert engine.record_reading("word " * 500) == 500
        for _ in range(10):
            engine.record_word_lookup("word")
        clock.advance(60000)

        analysis = engine.end_learning_session()
        assert analysis["lookup_rate"] == pytest.approx(0.02)
        assert analysis["comprehension_estimate"] == 0.7
        assert analysis["words_per_minute"] == pytest.approx(500)

        profile = engine.get_user_profile()
        assert profile["reading_speed"] == pytest.approx(260)
        assert profile["comprehension_level"] == pytest.approx(0.7)
        assert state.get("wordFreq.userProfile")["reading_speed"] == pytest.approx(260)

        assert len(started) == 1
        assert ended[0]["analysis"] == analysis
        assert engine.current_session is None
        assert len(engine.session_history) == 1

    @pytest.mark.asyncio
    async def test_difficulty_encountered(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        await engine.analyze_articles(fuzzy_corpus)
        engine.start_learning_session()

        engine.record_reading("The runner likes running")
        # "likes" is not in the corpus
        assert engine.current_session.difficulty_encountered == [5, 5]
        engine.end_learning_session()

    def test_without_session(self, engine_factory):
        engine = engine_factory()
        assert engine.end_learning_session() is None
        assert engine.record_reading("some words") == 0

    def test_lookup_outside_session(self, engine_factory):
        engine = engine_factory()
        lookups = _collect(engine.events, Topic.WORD_LOOKUP)

        analysis = engine.record_word_lookup("Running", {"source": "manual"})
        assert analysis["stem"] == "run"
        assert analysis["difficulty"] is None
        assert engine.profile.learning_history[-1]["word"] == "run"
        assert lookups[0]["word"] == "Running"
        assert engine.record_word_lookup("   ") is None

    @pytest.mark.asyncio
    async def test_lookup_of_known_word(self, engine_factory, fuzzy_corpus):
        engine = engine_factory()
        await engine.analyze_articles(fuzzy_corpus)
        engine.start_learning_session()

        analysis = engine.record_word_lookup("runs")
        assert analysis["difficulty"] == 5
        assert analysis["should_focus"] is True
        assert engine.current_session.lookups_count == 1
        assert engine.profile.learning_history[-1]["difficulty"] == 5
        engine.end_learning_session()

    def test_starting_a_session_closes_the_active_one(self, engine_factory, clock):
        engine = engine_factory()
        engine.start_learning_session()
        first_start = engine.current_session.start_time
        clock.advance(1000)

        engine.start_learning_session()
        assert len(engine.session_history) == 1
        assert engine.session_history[0]["start_time"] == first_start
        assert engine.current_session.start_time == first_start + 1000

    def test_history_is_bounded(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, session={"history_limit": 2}),
        )
        for _ in range(3):
            engine.start_learning_session()
            engine.end_learning_session()
        assert len(engine.session_history) == 2

    def test_live_analysis_suggestions(self, engine_factory):
        engine = engine_factory()
        suggestions = _collect(engine.events, Topic.SUGGESTIONS)
        engine.start_learning_session()
        engine.current_session.difficulty_encountered = [5, 5, 4]

        analysis = engine.analyze_current_session()
        assert analysis["difficulty_trend"] == "increasing"
        assert suggestions[0]["recommendations"] == analysis["recommendations"]

    @pytest.mark.asyncio
    async def test_realtime_poller(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(session={"analysis_interval": 0.01}),
        )
        live = _collect(engine.events, Topic.REALTIME_ANALYSIS)

        engine.start_learning_session()
        engine.record_reading("apple pear plum")
        await asyncio.sleep(0.05)
        assert live
        assert live[-1]["words_read"] == 3

        engine.end_learning_session()
        count = len(live)
        await asyncio.sleep(0.03)
        assert len(live) == count

    def test_analyze_without_session(self, engine_factory):
        assert engine_factory().analyze_current_session() is None


class TestInboundEvents:

    @pytest.mark.asyncio
    async def test_reader_events(self, engine_factory):
        hub = EventHub()
        engine = engine_factory(event_hub=hub)
        await engine.start()
        engine.start_learning_session()

        hub.emit(Topic.GLOSSARY_SHOWN, {"word": "apples"})
        hub.emit(Topic.READING_PROGRESS, {"text": "one two three"})

        assert engine.current_session.lookups_count == 1
        assert engine.current_session.words_read == 3
        assert engine.profile.learning_history[-1]["word"] == "apple"

        engine.close()
        assert hub.handler_count(Topic.GLOSSARY_SHOWN) == 0
        assert engine.is_initialized is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine_factory):
        hub = EventHub()
        engine = engine_factory(event_hub=hub)
        await engine.start()
        await engine.start()
        assert hub.handler_count(Topic.READING_PROGRESS) == 1
        engine.close()


class TestProfile:

    @pytest.mark.asyncio
    async def test_profile_restored_on_start(self, engine_factory):
        state = InMemoryStateStore({"wordFreq": {"userProfile": {"preferredDifficulty": 4, "strengths": ["run"]}}})
        engine = engine_factory(state_store=state)
        await engine.start()
        assert engine.profile.preferred_difficulty == 4
        assert engine.profile.strengths == {"run"}
        engine.close()

    def test_update_preference(self, engine_factory):
        engine = engine_factory()
        updates = _collect(engine.events, Topic.PREFERENCE_UPDATED)

        assert engine.update_user_preference("readingSpeed", 300)
        assert engine.get_user_profile()["reading_speed"] == 300
        assert updates[0]["key"] == "readingSpeed"

        assert not engine.update_user_preference("preferred_difficulty", 9)
        assert len(updates) == 1

    def test_mark_word_uses_stem(self, engine_factory):
        engine = engine_factory()
        assert engine.mark_word("Running", "strength")
        assert engine.get_user_profile()["strengths"] == ["run"]
        assert not engine.mark_word("run", "sometimes")
        assert not engine.mark_word("", "weak")

    def test_learning_progress(self, engine_factory):
        engine = engine_factory()
        for _ in range(2):
            engine.start_learning_session()
            engine.record_reading("word " * 100)
            engine.end_learning_session()

        progress = engine.get_learning_progress()
        # No lookups: comprehension 0.9 in both sessions
        assert progress["overall"] == 90
        assert progress["trends"]["trend"] == "improving"
        assert progress["predictions"]["difficulty_progression"]["suggestion"] == "increase"

    def test_progress_without_predictions(self, engine_factory):
        engine = engine_factory(
            config=EngineConfig(enable_realtime_analysis=False, enable_predictive_analysis=False),
        )
        assert engine.get_learning_progress()["predictions"] is None
