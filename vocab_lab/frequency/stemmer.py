"""
Rule-based English stemmer for vocabulary grouping.

Reduces a surface word to the base form that all its regular inflections
share, so "runs", "running" and "run" are counted as one vocabulary item.

Algorithm:
1. Lowercase, then look the word up in the stem cache
2. Irregular forms ("took" → "take", "were" → "be") come from a fixed table;
   the base forms in that table are returned as they are
3. Otherwise the FIRST suffix rule whose minimum length is met, whose pattern
   matches and whose exclusion does not match is applied (no further rules)
4. The candidate stem is validated; an implausible stem, or one that the
   rules would strip again, falls back to the lowercased word
5. Result is cached (bounded, oldest entry evicted first)

Examples:
- "running" → "run"
- "flies" → "fly"
- "watches" → "watch"
- "took" → "take"

Irregular vocabulary outside the table is returned with suffix rules applied
as-is; no dictionary lookup is attempted.
"""

import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

# Irregular forms that suffix stripping cannot recover
IRREGULAR_FORMS: Dict[str, str] = {
    'am': 'be', 'is': 'be', 'are': 'be', 'was': 'be', 'were': 'be',
    'been': 'be', 'being': 'be',
    'took': 'take', 'taken': 'take', 'taking': 'take', 'takes': 'take',
    'went': 'go', 'gone': 'go', 'going': 'go', 'goes': 'go',
    'came': 'come', 'coming': 'come', 'comes': 'come',
    'saw': 'see', 'seen': 'see', 'seeing': 'see', 'sees': 'see',
    'did': 'do', 'done': 'do', 'doing': 'do', 'does': 'do',
    'had': 'have', 'having': 'have', 'has': 'have',
    'said': 'say', 'saying': 'say', 'says': 'say',
    'got': 'get', 'gotten': 'get', 'getting': 'get', 'gets': 'get',
    'made': 'make', 'making': 'make', 'makes': 'make',
    'knew': 'know', 'known': 'know', 'knowing': 'know', 'knows': 'know',
    'wrote': 'write', 'written': 'write', 'writing': 'write',
    'gave': 'give', 'given': 'give', 'giving': 'give',
    'thought': 'think', 'brought': 'bring', 'bought': 'buy',
    'children': 'child', 'people': 'person', 'men': 'man', 'women': 'woman',
}

_VOWELS = re.compile(r'[aeiouy]')


@dataclass(frozen=True)
class SuffixRule:
    """
    One ordered suffix rewrite.

    pattern is a regex anchored at the end of the word; replacement may use
    group references (doubled-consonant rules keep one consonant via \\1).
    """
    pattern: Pattern[str]
    replacement: str
    min_length: int
    exclude: Optional[str] = None

    def matches(self, word: str) -> bool:
        if len(word) < self.min_length:
            return False
        if not self.pattern.search(word):
            return False
        return not (self.exclude and word.endswith(self.exclude))

    def apply(self, word: str) -> str:
        return self.pattern.sub(self.replacement, word, count=1)


def _rule(suffix_regex: str, replacement: str, min_length: int, exclude: Optional[str] = None) -> SuffixRule:
    return SuffixRule(re.compile(suffix_regex + '$'), replacement, min_length, exclude)


# Order matters: longer and more specific endings first
SUFFIX_RULES: Tuple[SuffixRule, ...] = (
    _rule('ies', 'y', 5),
    _rule('ves', 'f', 5),
    _rule('sses', 'ss', 6),
    _rule('xes', 'x', 5),
    _rule('ches', 'ch', 6),
    _rule('shes', 'sh', 6),
    _rule(r'([bdgmnprt])\1ers', r'\1', 7),
    _rule('ers', '', 5),
    _rule('s', '', 4, exclude='ss'),
    _rule('ied', 'y', 5),
    _rule(r'([bdgmnprt])\1ed', r'\1', 6),
    _rule('ed', '', 4),
    _rule(r'([bdgmnprt])\1ing', r'\1', 6),
    _rule('ing', '', 5),
    _rule('ly', '', 5),
    _rule('iest', 'y', 6),
    _rule(r'([bdgmnprt])\1est', r'\1', 7),
    _rule(r'([bdgmnprt])\1er', r'\1', 6),
    _rule('er', '', 4),
)


def is_valid_stem(candidate: str, original: str) -> bool:
    """
    Plausibility check for a suffix-stripped stem.

    Must keep at least 2 characters and 40% of the original length, and any
    stem longer than 2 characters must still contain a vowel.
    """
    length = len(candidate)
    return (
        length >= 2
        and length >= len(original) * 0.4
        and (length <= 2 or bool(_VOWELS.search(candidate)))
    )


class WordStemmer:
    """Stemmer with irregular table, ordered suffix rules and a bounded cache."""

    def __init__(
        self,
        max_cache_size: int = 1000,
        irregular_forms: Optional[Dict[str, str]] = None,
        rules: Tuple[SuffixRule, ...] = SUFFIX_RULES,
    ):
        self.max_cache_size = max_cache_size
        self.irregular_forms = irregular_forms if irregular_forms is not None else IRREGULAR_FORMS
        self._irregular_stems = frozenset(self.irregular_forms.values())
        self.rules = rules
        self._cache: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def stem(self, word: str) -> str:
        """
        Reduce a word to its stem.

        Args:
            word: Surface word (any case)

        Returns:
            Lowercase stem

        Examples:
            >>> WordStemmer().stem("Running")
            'run'
            >>> WordStemmer().stem("were")
            'be'
        """
        lower = word.lower()

        cached = self._cache.get(lower)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1

        if lower in self.irregular_forms:
            result = self.irregular_forms[lower]
        elif lower in self._irregular_stems:
            result = lower
        else:
            result = self._apply_suffix_rules(lower)

        self._remember(lower, result)
        return result

    def _apply_suffix_rules(self, word: str) -> str:
        candidate = self._strip_suffix(word)
        if candidate in self.irregular_forms:
            return self.irregular_forms[candidate]
        if candidate in self._irregular_stems:
            return candidate
        # A stem must be its own stem; otherwise keep the word whole
        if candidate != word and self._strip_suffix(candidate) != candidate:
            return word
        return candidate

    def _strip_suffix(self, word: str) -> str:
        for rule in self.rules:
            if rule.matches(word):
                candidate = rule.apply(word)
                return candidate if is_valid_stem(candidate, word) else word
        return word

    def _remember(self, word: str, result: str) -> None:
        if self.max_cache_size <= 0:
            return
        # stem() may be called from offloaded tokenization threads
        with self._lock:
            while len(self._cache) >= self.max_cache_size:
                self._cache.popitem(last=False)
            self._cache[word] = result

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cache_stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._cache),
            "hit_rate": round(self.hits / total * 100, 1) if total else 0.0,
        }

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
        self.hits = 0
        self.misses = 0


# Shared default instance (stateless apart from its cache)
_stemmer = WordStemmer()


def stem(word: str) -> str:
    """
    Stem a single word with the shared default stemmer.

    Examples:
        >>> stem("cats")
        'cat'
        >>> stem("took")
        'take'
    """
    return _stemmer.stem(word)
