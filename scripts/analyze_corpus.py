#!/usr/bin/env python3
"""
Analyze a directory of articles and print vocabulary tables.

Articles are <id>.html, <id>.htm, <id>.txt or <id>.md files. With
--cache-dir the corpus snapshot is stored there and reused on the next run
(within its 24h lifetime).

Usage:
    python scripts/analyze_corpus.py --articles data/articles
    python scripts/analyze_corpus.py --articles data/articles --top 30 --search enjoy
    python scripts/analyze_corpus.py --articles data/articles --exact enjoyed --cache-dir .cache
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Allow running from a checkout without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
load_dotenv(project_root / ".env.local")

from vocab_lab import DirectoryContentSource, EngineConfig, FileCacheStore, VocabularyEngine  # noqa: E402
from vocab_lab.logging_config import setup_logging  # noqa: E402


def print_table(title: str, headers, rows) -> None:
    print(f"\n{title}")
    print("=" * 80)
    if not rows:
        print("No data.")
        print("=" * 80)
        return
    widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) for i, h in enumerate(headers)]
    header_line = " | ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_line)
    print("-" * len(header_line))
    for row in rows:
        print(" | ".join(str(v).ljust(w) for v, w in zip(row, widths)))
    print("=" * 80)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vocabulary frequency analysis of an article directory")
    parser.add_argument("--articles", required=True, help="Directory with article files")
    parser.add_argument("--top", type=int, default=20, help="Number of top words to show (default: 20)")
    parser.add_argument("--smart", action="store_true", help="Rank top words by distribution score")
    parser.add_argument("--search", help="Fuzzy search query")
    parser.add_argument("--exact", help="Exact word search query")
    parser.add_argument("--cache-dir", help="Directory for the corpus snapshot")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    source = DirectoryContentSource(args.articles)
    article_ids = source.list_articles()
    if not article_ids:
        print(f"ERROR: No article files found in {args.articles}", file=sys.stderr)
        return 1

    engine = VocabularyEngine(
        EngineConfig.from_env(),
        content_source=source,
        cache_store=FileCacheStore(args.cache_dir) if args.cache_dir else None,
    )
    restored = await engine.start()

    if restored and set(article_ids) <= set(engine.analyzer.articles):
        print(f"Using cached analysis ({len(engine.analyzer.articles)} articles)")
    else:
        task = engine.analyze_articles(article_ids)
        if task is False:
            print("ERROR: Analysis could not be started", file=sys.stderr)
            return 1
        summary = await task
        print(f"Analyzed {summary['processed']}/{summary['total']} articles ({summary['failed']} failed)")

    stats = engine.get_stats_summary()
    print(
        f"{stats['total_unique_words']} stems, {stats['total_variants']} variants, "
        f"{stats['total_word_occurrences']} occurrences"
    )

    print_table(
        f"Top {args.top} words" + (" (by distribution)" if args.smart else ""),
        ["word", "count", "articles", "score", "difficulty"],
        [
            [w["word"], w["total_count"], w["article_count"], f"{w['distribution_score']:.2f}", w["difficulty"]]
            for w in engine.get_top_words(args.top, smart=args.smart)
        ],
    )

    print_table(
        "Article difficulty",
        ["article", "stars", "label", "avg", "scored words"],
        [
            [aid, d["stars"], d["label"], d.get("avg_difficulty", ""), d.get("valid_word_count", "")]
            for aid, d in ((aid, engine.calculate_personalized_difficulty(aid)) for aid in sorted(engine.analyzer.articles))
        ],
    )

    if args.search:
        print_table(
            f"Search: {args.search}",
            ["word", "relevance", "count", "articles", "matched"],
            [
                [r["word"], r["relevance"], r["frequency"], r["article_count"], ", ".join(r["matched_variants"])]
                for r in engine.search_words(args.search)
            ],
        )

    if args.exact:
        results = engine.search_words_exact(args.exact)
        rows = []
        for result in results:
            for article in result["articles"]:
                rows.append([article["id"], article["count"], " / ".join(article["contexts"])])
        print_table(f"Exact: {args.exact}", ["article", "count", "contexts"], rows)

    engine.close()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(
        log_file=str(project_root / "logs" / "analyze-corpus.log"),
        console_level=logging.DEBUG if args.verbose else logging.WARNING,
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
