"""Content hashing for approximate duplicate detection."""

import hashlib
import re

SIGNIFICANT_WORD_MIN_LENGTH = 4
MAX_HASHED_WORDS = 10
SEMANTIC_HASH_LENGTH = 16
DEDUP_FRAGMENT_LENGTH = 8

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_HASH_MARKER = re.compile(r"\s*\[sh:([0-9a-f]+)\]$")


def normalize(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    text = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def significant_words(text: str) -> list[str]:
    """Sorted words longer than three characters, capped at ten."""
    words = [w for w in normalize(text).split(" ") if len(w) >= SIGNIFICANT_WORD_MIN_LENGTH]
    return sorted(words)[:MAX_HASHED_WORDS]


def semantic_hash(text: str) -> str:
    """Stable 16-hex-char hash of a message's significant words.

    Messages sharing the same sorted significant words collide on purpose;
    word order, case, punctuation and short words do not affect the result.
    """
    key_content = "|".join(significant_words(text))
    return hashlib.md5(key_content.encode("utf-8")).hexdigest()[:SEMANTIC_HASH_LENGTH]


def short_hash(text: str) -> str:
    """Eight hex chars of MD5, for compact cache keys."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()[:8]


def dedup_fragment(hash_value: str) -> str:
    """Portion of a semantic hash searched for in stored content."""
    return hash_value[:DEDUP_FRAGMENT_LENGTH]


def embed_hash(content: str, hash_value: str) -> str:
    """Append the semantic hash marker to memory content."""
    return f"{strip_hash(content)} [sh:{hash_value}]"


def strip_hash(content: str) -> str:
    """Remove a trailing semantic hash marker, if any."""
    return _HASH_MARKER.sub("", content)


def extract_hash(content: str) -> str | None:
    """Return the embedded semantic hash, or None."""
    match = _HASH_MARKER.search(content)
    return match.group(1) if match else None
