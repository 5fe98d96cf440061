"""
Corpus-wide word frequency analyzer.

Aggregates per-stem statistics across every analyzed article and answers
difficulty and search queries from them.

State (owned exclusively by one FrequencyAnalyzer):
- word_stats:    stem -> WordStat (total count, variants, per-article counts)
- articles:      article id -> ArticleRecord (bounded content for snippets)
- variant_index: surface form -> article ids, plus per-article surface counts

Ingestion is split in two steps so the expensive part can run off the event
loop:
1. count_words(text)  - pure; tokenizes and stems, touches no shared state
2. apply_counts(...)  - mutates the tables; always called from one thread

Scores depend on corpus size, so every stem is re-scored after a merge; bulk
ingestion merges a run of articles first and re-scores once (refresh_scores).

Re-analyzing an article id first removes that article's previous
contribution, so analysis is idempotent per article.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..config import AnalyzerConfig
from .context import extract_contexts
from .scorer import (
    NEUTRAL_TIER,
    clamp_tier,
    difficulty_breakdown,
    difficulty_label,
    distribution_score,
    score_to_difficulty,
)
from .stemmer import WordStemmer
from .tokenizer import STOPWORDS, extract_words, is_valid_word

logger = logging.getLogger(__name__)

EXACT_MATCH_RELEVANCE = 10
STEM_RELEVANCE = (10, 8, 6)      # equal, starts-with, contains
VARIANT_RELEVANCE = (9, 7, 5)
TOP_VARIANTS = 5


def _match_relevance(candidate: str, query: str, weights: Tuple[int, int, int]) -> int:
    if candidate == query:
        return weights[0]
    if candidate.startswith(query):
        return weights[1]
    if query in candidate:
        return weights[2]
    return 0


@dataclass
class ArticleOccurrence:
    """Occurrences of one stem inside one article."""
    count: int
    title: str
    density: float

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "title": self.title, "density": self.density}


@dataclass
class WordStat:
    """Aggregated statistics for one stem."""
    stem: str
    total_count: int = 0
    variants: Dict[str, int] = field(default_factory=dict)
    articles: Dict[str, ArticleOccurrence] = field(default_factory=dict)
    distribution_score: float = 0.0

    @property
    def article_count(self) -> int:
        return len(self.articles)

    @property
    def most_common_variant(self) -> str:
        if not self.variants:
            return self.stem
        # First-seen variant wins ties
        return max(self.variants.items(), key=lambda item: item[1])[0]

    def sorted_variants(self) -> List[Tuple[str, int]]:
        return sorted(self.variants.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stem": self.stem,
            "total_count": self.total_count,
            "variants": dict(self.variants),
            "articles": {aid: occ.to_dict() for aid, occ in self.articles.items()},
            "distribution_score": self.distribution_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordStat":
        return cls(
            stem=str(data["stem"]),
            total_count=int(data["total_count"]),
            variants={str(k): int(v) for k, v in data["variants"].items()},
            articles={
                str(aid): ArticleOccurrence(
                    count=int(occ["count"]),
                    title=str(occ.get("title", "")),
                    density=float(occ.get("density", 0.0)),
                )
                for aid, occ in data["articles"].items()
            },
            distribution_score=float(data.get("distribution_score", 0.0)),
        )


@dataclass
class ArticleRecord:
    id: str
    title: str
    total_word_count: int
    unique_word_count: int
    content: str
    analyzed_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "total_word_count": self.total_word_count,
            "unique_word_count": self.unique_word_count,
            "content": self.content,
            "analyzed_at": self.analyzed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleRecord":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            total_word_count=int(data["total_word_count"]),
            unique_word_count=int(data["unique_word_count"]),
            content=str(data.get("content", "")),
            analyzed_at=int(data.get("analyzed_at", 0)),
        )


class VariantIndex:
    """
    Exact surface-form index.

    Maps every surface form to the set of articles containing it, and keeps
    per-article surface counts so exact search never scans the stem table.
    """

    def __init__(self):
        self._articles_by_surface: Dict[str, Set[str]] = {}
        self._counts_by_article: Dict[str, Dict[str, int]] = {}

    def add(self, article_id: str, surface_counts: Dict[str, int]) -> None:
        self._counts_by_article[article_id] = dict(surface_counts)
        for surface in surface_counts:
            self._articles_by_surface.setdefault(surface, set()).add(article_id)

    def remove_article(self, article_id: str) -> Dict[str, int]:
        """Drop an article from the index and return its surface counts."""
        counts = self._counts_by_article.pop(article_id, {})
        for surface in counts:
            ids = self._articles_by_surface.get(surface)
            if ids is None:
                continue
            ids.discard(article_id)
            if not ids:
                del self._articles_by_surface[surface]
        return counts

    def articles_for(self, surface: str) -> Set[str]:
        return set(self._articles_by_surface.get(surface, ()))

    def count(self, article_id: str, surface: str) -> int:
        return self._counts_by_article.get(article_id, {}).get(surface, 0)

    def __contains__(self, surface: str) -> bool:
        return surface in self._articles_by_surface

    def __len__(self) -> int:
        return len(self._articles_by_surface)

    @property
    def article_total(self) -> int:
        return len(self._counts_by_article)

    def clear(self) -> None:
        self._articles_by_surface.clear()
        self._counts_by_article.clear()

    def to_payload(self) -> Tuple[Dict[str, List[str]], Dict[str, Dict[str, int]]]:
        index = {surface: sorted(ids) for surface, ids in self._articles_by_surface.items()}
        per_article = {aid: dict(counts) for aid, counts in self._counts_by_article.items()}
        return index, per_article

    @classmethod
    def from_payload(cls, index: Dict[str, Iterable[str]], per_article: Dict[str, Dict[str, int]]) -> "VariantIndex":
        restored = cls()
        restored._articles_by_surface = {str(s): {str(a) for a in ids} for s, ids in index.items()}
        restored._counts_by_article = {
            str(aid): {str(s): int(c) for s, c in counts.items()}
            for aid, counts in per_article.items()
        }
        return restored


@dataclass
class ArticleCounts:
    """Result of tokenizing one article, before it touches shared state."""
    total_words: int
    stems: Dict[str, Dict[str, int]]

    @property
    def unique_words(self) -> int:
        return len(self.stems)

    def surface_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for variants in self.stems.values():
            for surface, count in variants.items():
                counts[surface] = counts.get(surface, 0) + count
        return counts


class FrequencyAnalyzer:
    """Cross-article frequency index with difficulty scoring and search."""

    def __init__(self, config: Optional[AnalyzerConfig] = None, stemmer: Optional[WordStemmer] = None):
        self.config = config or AnalyzerConfig()
        self.stemmer = stemmer or WordStemmer()
        self.stopwords = STOPWORDS

        self.word_stats: Dict[str, WordStat] = {}
        self.articles: Dict[str, ArticleRecord] = {}
        self.variant_index = VariantIndex()

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    def extract_words(self, text: Any) -> List[str]:
        return extract_words(text)

    def is_valid_word(self, word: str) -> bool:
        return is_valid_word(
            word,
            min_length=self.config.min_word_length,
            max_length=self.config.max_word_length,
            stopwords=self.stopwords,
        )

    def stem(self, word: str) -> str:
        return self.stemmer.stem(word)

    def count_words(self, text: str) -> ArticleCounts:
        """
        Tokenize and stem one text without touching analyzer state.

        Safe to run in a worker thread.

        Returns:
            ArticleCounts with the raw token total (valid or not) and
            stem -> surface -> count for valid tokens
        """
        words = self.extract_words(text)
        stems: Dict[str, Dict[str, int]] = defaultdict(dict)
        for word in words:
            if not self.is_valid_word(word):
                continue
            variants = stems[self.stem(word)]
            variants[word] = variants.get(word, 0) + 1
        return ArticleCounts(total_words=len(words), stems=dict(stems))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def analyze_text(self, text: Any, article_id: str, title: str = "") -> Dict[str, int]:
        """
        Analyze one article and merge it into the corpus statistics.

        Args:
            text: Article text
            article_id: Stable article identifier
            title: Display title

        Returns:
            {"total_words": n, "unique_words": m}; zeros when the input is
            malformed (nothing is recorded in that case)
        """
        if not isinstance(text, str):
            logger.warning(f"Skipping article {article_id!r}: content is {type(text).__name__}, not text")
            return {"total_words": 0, "unique_words": 0}

        try:
            counts = self.count_words(text)
            return self.apply_counts(article_id, title, text, counts)
        except Exception as e:
            logger.error(f"Failed to analyze article {article_id!r}: {e}")
            return {"total_words": 0, "unique_words": 0}

    def apply_counts(
        self,
        article_id: str,
        title: str,
        text: str,
        counts: ArticleCounts,
        refresh: bool = True,
    ) -> Dict[str, int]:
        """
        Merge precomputed counts for one article into the shared tables.

        With refresh=False the caller must call refresh_scores() once
        its run of articles is merged; until then scores reflect the corpus
        as of the last refresh.
        """
        article_id = str(article_id)
        if article_id in self.articles:
            logger.debug(f"Re-analyzing article {article_id!r}, removing previous contribution")
            self._remove_article(article_id)

        self.articles[article_id] = ArticleRecord(
            id=article_id,
            title=title or article_id,
            total_word_count=counts.total_words,
            unique_word_count=counts.unique_words,
            content=text[:self.config.max_content_length],
            analyzed_at=int(time.time() * 1000),
        )

        for stem, variants in counts.stems.items():
            stat = self.word_stats.get(stem)
            if stat is None:
                stat = self.word_stats[stem] = WordStat(stem=stem)

            article_total = sum(variants.values())
            stat.total_count += article_total
            stat.articles[article_id] = ArticleOccurrence(
                count=article_total,
                title=title or article_id,
                density=article_total / counts.total_words if counts.total_words else 0.0,
            )
            for surface, count in variants.items():
                stat.variants[surface] = stat.variants.get(surface, 0) + count

        self.variant_index.add(article_id, counts.surface_counts())

        # The distribution ratio depends on corpus size, so every score moves
        if refresh:
            self.refresh_scores()

        logger.debug(
            f"Analyzed article {article_id!r}: {counts.total_words} tokens, "
            f"{counts.unique_words} stems (corpus: {len(self.word_stats)} stems, {len(self.articles)} articles)"
        )
        return {"total_words": counts.total_words, "unique_words": counts.unique_words}

    def _remove_article(self, article_id: str) -> None:
        surface_counts = self.variant_index.remove_article(article_id)
        for surface, count in surface_counts.items():
            stat = self.word_stats.get(self.stem(surface))
            if stat is None:
                continue
            remaining = stat.variants.get(surface, 0) - count
            if remaining > 0:
                stat.variants[surface] = remaining
            else:
                stat.variants.pop(surface, None)

        for stem in list(self.word_stats):
            stat = self.word_stats[stem]
            occurrence = stat.articles.pop(article_id, None)
            if occurrence is None:
                continue
            stat.total_count -= occurrence.count
            if stat.total_count <= 0 or not stat.articles:
                del self.word_stats[stem]

        self.articles.pop(article_id, None)

    def refresh_scores(self) -> None:
        total_articles = len(self.articles)
        for stat in self.word_stats.values():
            stat.distribution_score = distribution_score(stat.total_count, stat.article_count, total_articles)

    def reset(self) -> None:
        self.word_stats.clear()
        self.articles.clear()
        self.variant_index.clear()

    @property
    def total_articles(self) -> int:
        return len(self.articles)

    # ------------------------------------------------------------------
    # Difficulty
    # ------------------------------------------------------------------

    def lookup(self, word: str) -> Tuple[str, Optional[WordStat]]:
        """Resolve a surface word to (stem, stat or None)."""
        stem = self.stem(word)
        return stem, self.word_stats.get(stem)

    def word_difficulty(self, stem: str) -> Optional[int]:
        stat = self.word_stats.get(stem)
        if stat is None:
            return None
        return score_to_difficulty(stat.distribution_score)

    def calculate_article_difficulty(self, article_id: str) -> Optional[Dict[str, Any]]:
        """
        Mean difficulty tier of an article's scored tokens.

        Tokens whose stem has no corpus statistics are skipped. An article
        with no scored tokens is medium (tier 3).

        Returns:
            {stars, label, avg_difficulty, valid_word_count, easy_word_ratio,
            breakdown} or None for an unknown article
        """
        record = self.articles.get(str(article_id))
        if record is None:
            return None

        tiers = []
        for word in self.extract_words(record.content):
            if not self.is_valid_word(word):
                continue
            tier = self.word_difficulty(self.stem(word))
            if tier is not None:
                tiers.append(tier)

        breakdown = difficulty_breakdown(tiers)
        if not tiers:
            return {
                "stars": NEUTRAL_TIER,
                "label": difficulty_label(NEUTRAL_TIER),
                "avg_difficulty": float(NEUTRAL_TIER),
                "valid_word_count": 0,
                "easy_word_ratio": 0.0,
                "breakdown": breakdown,
            }

        avg = sum(tiers) / len(tiers)
        stars = clamp_tier(avg)
        return {
            "stars": stars,
            "label": difficulty_label(stars),
            "avg_difficulty": round(avg, 2),
            "valid_word_count": len(tiers),
            "easy_word_ratio": round(breakdown["easy"] / len(tiers) * 100, 1),
            "breakdown": breakdown,
        }

    def difficulty_distribution(self) -> Dict[int, int]:
        """Number of stems per difficulty tier."""
        distribution = {tier: 0 for tier in range(1, 6)}
        for stat in self.word_stats.values():
            distribution[score_to_difficulty(stat.distribution_score)] += 1
        return distribution

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: Any, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fuzzy search over stems and their surface variants.

        Relevance per stem is the larger of the stem match (10 equal,
        8 prefix, 6 substring) and the best variant match (9/7/5).
        Non-matching stems are dropped. Ordered by relevance, then
        distribution score.

        Example:
            >>> analyzer.search("run")[0]["word"]
            'run'
        """
        if not isinstance(query, str) or not query.strip():
            return []
        query = query.strip().lower()
        if limit is None:
            limit = self.config.default_search_limit

        results = []
        for stem, stat in self.word_stats.items():
            stem_relevance = _match_relevance(stem, query, STEM_RELEVANCE)

            variant_relevance = 0
            matched_variants = []
            for surface in stat.variants:
                score = _match_relevance(surface, query, VARIANT_RELEVANCE)
                if score:
                    matched_variants.append(surface)
                    variant_relevance = max(variant_relevance, score)

            relevance = max(stem_relevance, variant_relevance)
            if relevance <= 0:
                continue

            results.append({
                "word": stem,
                "relevance": relevance,
                "frequency": stat.total_count,
                "article_count": stat.article_count,
                "distribution_score": stat.distribution_score,
                "difficulty": score_to_difficulty(stat.distribution_score),
                "variants": [surface for surface, _ in stat.sorted_variants()[:TOP_VARIANTS]],
                "matched_variants": matched_variants,
                "most_common_variant": stat.most_common_variant,
            })

        results.sort(key=lambda r: (-r["relevance"], -r["distribution_score"]))
        logger.debug(f"Fuzzy search {query!r}: {len(results)} matches")
        return results[:max(limit, 0)]

    def search_exact(self, query: Any) -> List[Dict[str, Any]]:
        """
        Exact surface-form search with highlighted context snippets.

        Returns:
            A single aggregate result (or [] when the form never occurs):
            {word, total_count, article_count, relevance, articles}; articles
            are ordered by occurrence count
        """
        if not isinstance(query, str) or not query.strip():
            return []
        query = query.strip().lower()
        if query not in self.variant_index:
            return []

        details = []
        for article_id in self.variant_index.articles_for(query):
            record = self.articles.get(article_id)
            count = self.variant_index.count(article_id, query)
            if record is None or count <= 0:
                continue
            details.append({
                "id": article_id,
                "title": record.title,
                "count": count,
                "contexts": extract_contexts(
                    record.content,
                    [query],
                    max_contexts=self.config.max_contexts,
                    max_length=self.config.context_length,
                ),
            })

        if not details:
            return []

        details.sort(key=lambda d: (-d["count"], d["id"]))
        return [{
            "word": query,
            "total_count": sum(d["count"] for d in details),
            "article_count": len(details),
            "relevance": EXACT_MATCH_RELEVANCE,
            "articles": details,
        }]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _word_entry(self, stat: WordStat) -> Dict[str, Any]:
        total_articles = len(self.articles)
        return {
            "word": stat.stem,
            "total_count": stat.total_count,
            "article_count": stat.article_count,
            "distribution_score": stat.distribution_score,
            "distribution_ratio": stat.article_count / total_articles if total_articles else 0.0,
            "avg_per_article": round(stat.total_count / stat.article_count, 1) if stat.article_count else 0.0,
            "difficulty": score_to_difficulty(stat.distribution_score),
            "variants": stat.sorted_variants(),
            "most_common_variant": stat.most_common_variant,
            "articles": [
                {"id": aid, "title": occ.title, "count": occ.count}
                for aid, occ in sorted(stat.articles.items(), key=lambda item: -item[1].count)
            ],
        }

    def get_word_frequency_data(self, smart: bool = False) -> List[Dict[str, Any]]:
        """All stems, by raw count or (smart) by distribution score."""
        data = [self._word_entry(stat) for stat in self.word_stats.values()]
        sort_field = "distribution_score" if smart else "total_count"
        data.sort(key=lambda d: (-d[sort_field], d["word"]))
        return data

    def get_top_words(self, limit: int = 100, smart: bool = False) -> List[Dict[str, Any]]:
        return self.get_word_frequency_data(smart=smart)[:max(limit, 0)]

    def filter_by_frequency(self, min_count: int = 1, max_count: Optional[int] = None) -> List[Dict[str, Any]]:
        results = [
            {
                "word": stat.stem,
                "total_count": stat.total_count,
                "article_count": stat.article_count,
                "variants": stat.sorted_variants(),
                "most_common_variant": stat.most_common_variant,
            }
            for stat in self.word_stats.values()
            if stat.total_count >= min_count and (max_count is None or stat.total_count <= max_count)
        ]
        results.sort(key=lambda d: (-d["total_count"], d["word"]))
        return results

    def get_word_details(self, word: str) -> Optional[Dict[str, Any]]:
        """Full statistics for a word given as a stem or any surface form."""
        if not isinstance(word, str) or not word.strip():
            return None
        key = word.strip().lower()
        stat = self.word_stats.get(key)
        if stat is None:
            _, stat = self.lookup(key)
        if stat is None:
            return None

        entry = self._word_entry(stat)
        entry["label"] = difficulty_label(entry["difficulty"])
        entry["articles"] = [
            {"id": aid, "title": occ.title, "count": occ.count, "density": occ.density}
            for aid, occ in sorted(stat.articles.items(), key=lambda item: -item[1].count)
        ]
        return entry

    def get_stats_summary(self) -> Dict[str, Any]:
        total_variants = sum(len(stat.variants) for stat in self.word_stats.values())
        total_occurrences = sum(stat.total_count for stat in self.word_stats.values())
        total_articles = len(self.articles)
        return {
            "total_unique_words": len(self.word_stats),
            "total_variants": total_variants,
            "total_word_occurrences": total_occurrences,
            "total_articles_analyzed": total_articles,
            "average_words_per_article": round(total_occurrences / total_articles) if total_articles else 0,
            "exact_index": {
                "total_variants": len(self.variant_index),
                "articles_with_variants": self.variant_index.article_total,
            },
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready snapshot of the analyzer tables."""
        variant_index, article_variants = self.variant_index.to_payload()
        return {
            "word_stats": {stem: stat.to_dict() for stem, stat in self.word_stats.items()},
            "articles": {aid: record.to_dict() for aid, record in self.articles.items()},
            "variant_index": variant_index,
            "article_variants": article_variants,
        }

    def load_payload(self, payload: Dict[str, Any]) -> None:
        """
        Replace analyzer state with a snapshot produced by to_payload().

        Raises:
            ValueError: If the snapshot is malformed (state is left untouched)
        """
        try:
            word_stats = {str(stem): WordStat.from_dict(data) for stem, data in payload["word_stats"].items()}
            articles = {str(aid): ArticleRecord.from_dict(data) for aid, data in payload["articles"].items()}
            variant_index = VariantIndex.from_payload(payload["variant_index"], payload["article_variants"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed analyzer snapshot: {e}") from e

        self.word_stats = word_stats
        self.articles = articles
        self.variant_index = variant_index
        logger.info(f"Restored analyzer snapshot: {len(word_stats)} stems, {len(articles)} articles")
