import math
import re
from typing import Iterable

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_HASHTAG_RE = re.compile(r"#(\w+)")
_PUNCT_RE = re.compile(r"[^\w\s]")

MAX_CONTENT_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4
WORDS_PER_MINUTE = 200


def sanitize_content(content: str) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    return _WHITESPACE_RE.sub(" ", content.strip())


def sanitize_tags(tags: Iterable[str]) -> list[str]:
    """Lower-case alphanumeric tags, empties dropped, order kept."""
    cleaned = (_NON_ALNUM_RE.sub("", tag.strip().lower()) for tag in tags)
    return [tag for tag in cleaned if tag]


def extract_search_keywords(content: str, tags: Iterable[str]) -> list[str]:
    """Keyword set for search: tags, #hashtags and the first distinct content words.

    Content words are lower-cased, punctuation is replaced by spaces and only
    tokens longer than three characters count. Duplicates are dropped.
    """
    keywords: list[str] = [tag.lower() for tag in tags]
    keywords.extend(tag.lower() for tag in _HASHTAG_RE.findall(content))

    words: list[str] = []
    for word in _PUNCT_RE.sub(" ", content.lower()).split():
        if len(word) < MIN_KEYWORD_LENGTH or word in words:
            continue
        words.append(word)
        if len(words) == MAX_CONTENT_KEYWORDS:
            break
    keywords.extend(words)

    return list(dict.fromkeys(keywords))


def estimate_reading_time(content: str) -> int:
    """Minutes to read, rounded up, at least one."""
    return max(1, math.ceil(len(content.split()) / WORDS_PER_MINUTE))
