"""
Tokenizer for vocabulary frequency analysis.

Tokenization pipeline:
1. Lowercase conversion
2. Replace everything except letters, digits, apostrophes, hyphens and
   whitespace with a space
3. Split on whitespace (nltk WhitespaceTokenizer)
4. Strip leading/trailing hyphens and apostrophes, drop empty tokens

Validity (what counts as vocabulary):
- 3 to 20 characters
- letters only (no digits, hyphens or apostrophes left inside)
- not a stopword
"""

import re
from typing import Callable, List, Optional

from nltk.tokenize import WhitespaceTokenizer

from .stemmer import stem as default_stem

# Function words that carry no vocabulary value for a learner
STOPWORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by', 'from', 'this', 'that', 'i', 'you', 'he', 'she', 'it', 'we',
    'they', 'is', 'are', 'was', 'were', 'be', 'have', 'has', 'had', 'do',
    'does', 'did', 'will', 'would', 'can', 'could', 'should', 'not', 'no',
    'all', 'any', 'some'
])

MIN_WORD_LENGTH = 3
MAX_WORD_LENGTH = 20

# \w covers letters and digits but also "_", which is punctuation here
_NON_WORD_CHARS = re.compile(r"[^\w\s'-]|_")
_EDGE_MARKS = re.compile(r"^[-']+|[-']+$")
_ALPHA_ONLY = re.compile(r'^[a-zA-Z]+$')

_whitespace_tokenizer = WhitespaceTokenizer()


def extract_words(text: str) -> List[str]:
    """
    Split raw text into lowercase surface tokens.

    Args:
        text: Raw article text

    Returns:
        Tokens in document order (not yet filtered for validity)

    Examples:
        >>> extract_words("It's a well-known fact -- really!")
        ["it's", 'a', 'well-known', 'fact', 'really']

        >>> extract_words(None)
        []
    """
    if not text or not isinstance(text, str):
        return []

    cleaned = _NON_WORD_CHARS.sub(' ', text.lower())

    tokens = []
    for raw in _whitespace_tokenizer.tokenize(cleaned):
        token = _EDGE_MARKS.sub('', raw)
        if token:
            tokens.append(token)
    return tokens


def is_valid_word(
    word: str,
    min_length: int = MIN_WORD_LENGTH,
    max_length: int = MAX_WORD_LENGTH,
    stopwords: frozenset = STOPWORDS,
) -> bool:
    """
    Check whether a token counts as vocabulary.

    Examples:
        >>> is_valid_word("learning")
        True
        >>> is_valid_word("the")
        False
        >>> is_valid_word("mp3")
        False
    """
    if not word or not isinstance(word, str):
        return False
    return (
        min_length <= len(word) <= max_length
        and word not in stopwords
        and bool(_ALPHA_ONLY.match(word))
    )


def tokenize(text: str, stemmer: Optional[Callable[[str], str]] = None) -> List[str]:
    """
    Tokenize text into stems of valid vocabulary words.

    Args:
        text: Input text
        stemmer: Stem function (defaults to the shared rule-based stemmer)

    Returns:
        List of stems in document order

    Examples:
        >>> tokenize("The cats were running home")
        ['cat', 'run', 'home']

        >>> tokenize("   ")
        []
    """
    stem_fn = stemmer or default_stem
    return [stem_fn(word) for word in extract_words(text) if is_valid_word(word)]
