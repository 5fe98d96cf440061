"""
Context snippet extraction for search results.

Finds sentences containing a word (or any of its variants), truncates them
and wraps every whole-word match in <mark>…</mark>.
"""

import re
from typing import Iterable, List

from nltk.tokenize import RegexpTokenizer


# Sentence boundaries: split on runs of terminal punctuation
_sentence_splitter = RegexpTokenizer(r'[.!?]+', gaps=True)

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"


def split_sentences(content: str) -> List[str]:
    """Split content into trimmed, non-empty sentences."""
    return [s.strip() for s in _sentence_splitter.tokenize(content) if s.strip()]


def _word_pattern(words: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


def extract_contexts(
    content: str,
    words: Iterable[str],
    max_contexts: int = 2,
    max_length: int = 100,
) -> List[str]:
    """
    Extract highlighted snippets for the given words.

    Args:
        content: Article text
        words: Surface forms to look for (matched as whole words, any case)
        max_contexts: Maximum snippets to return
        max_length: Characters kept per sentence before "..." is appended

    Returns:
        Up to max_contexts snippets in document order

    Example:
        >>> extract_contexts("I enjoy tea. We enjoyed it!", ["enjoy"])
        ['I <mark>enjoy</mark> tea']
    """
    words = [w for w in words if w]
    if not content or not words:
        return []

    contexts: List[str] = []
    pattern = _word_pattern(words)
    for sentence in split_sentences(content):
        if len(contexts) >= max_contexts:
            break
        if not pattern.search(sentence):
            continue

        snippet = sentence[:max_length]
        snippet = pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", snippet)
        if len(sentence) > max_length:
            snippet += "..."
        contexts.append(snippet)

    return contexts
