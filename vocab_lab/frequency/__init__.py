"""
Word frequency analysis for vocabulary learning.

Components:
- stemmer: Rule-based stemmer (irregular table + ordered suffix rules)
- tokenizer: Word extraction and vocabulary validity filter
- scorer: Distribution score and 1-5 difficulty tiers
- context: Highlighted sentence snippets for exact search
- analyzer: Corpus-wide frequency index, difficulty and search

Difficulty is derived from how widely a word is spread across the corpus,
not from raw counts alone.
"""

from .stemmer import WordStemmer, stem
from .tokenizer import tokenize, extract_words, is_valid_word
from .scorer import distribution_score, score_to_difficulty, difficulty_label
from .context import extract_contexts
from .analyzer import FrequencyAnalyzer, WordStat, ArticleRecord, VariantIndex

__all__ = [
    "WordStemmer",
    "stem",
    "tokenize",
    "extract_words",
    "is_valid_word",
    "distribution_score",
    "score_to_difficulty",
    "difficulty_label",
    "extract_contexts",
    "FrequencyAnalyzer",
    "WordStat",
    "ArticleRecord",
    "VariantIndex",
]
