"""
usmcore/match/pattern.py
Wildcard URL patterns.

A pattern is a URL-shaped string where "*" stands for any run of characters
(including none) and every other character matches itself literally. A
pattern must match the WHOLE url, never a part of it:

    *://*.example.com/*   matches  https://sub.example.com/path
                          rejects  https://example.org/

Matching does not use regular expressions. The pattern is split on "*" into
literal segments; the first segment must be a prefix, the last a suffix, and
the middle segments must appear in order in between. Taking the leftmost
occurrence of each middle segment is always safe for "*"-only globs, so a
match costs one pass over the url per segment with no backtracking.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Tuple

from usmcore.base.config import MatchConfig, get_config
from usmcore.base.exceptions import PatternCompileError

logger = logging.getLogger(__name__)

Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class WildcardPattern:
    """A compiled pattern. `segments` is None when compilation failed."""

    raw: str
    segments: Optional[Tuple[str, ...]]
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.segments is not None

    def __call__(self, url: str) -> bool:
        return self.matches(url)

    def matches(self, url: str) -> bool:
        if self.segments is None:
            return False
        return _segments_match(self.segments, url)


def _segments_match(segments: Tuple[str, ...], text: str) -> bool:
    if len(segments) == 1:
        return text == segments[0]

    first, last = segments[0], segments[-1]
    end = len(text) - len(last)
    if end < len(first):
        return False
    if not text.startswith(first) or not text.endswith(last):
        return False

    pos = len(first)
    for segment in segments[1:-1]:
        if not segment:
            continue
        found = text.find(segment, pos, end)
        if found < 0:
            return False
        pos = found + len(segment)
    return True


def wildcard_to_regex(pattern: str) -> str:
    """The equivalent anchored regular expression, for display and diagnostics."""
    return "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"


class PatternMatcher:
    """
    Compiles patterns under the configured limits and caches the results.

    Patterns that break the limits compile to a predicate that never matches;
    the problem is logged once per distinct pattern (the cache remembers it).
    """

    def __init__(self, config: Optional[MatchConfig] = None):
        self.config = config or get_config().match
        self._compile_cached = lru_cache(maxsize=self.config.cache_size)(self._compile)

    def compile(self, pattern: str) -> WildcardPattern:
        return self._compile_cached(pattern)

    def matches(self, url: str, pattern: str) -> bool:
        return self.compile(pattern.strip()).matches(url)

    def clear_cache(self) -> None:
        self._compile_cached.cache_clear()

    def _compile(self, pattern: str) -> WildcardPattern:
        try:
            segments = self._split(pattern)
        except PatternCompileError as e:
            logger.warning("[Pattern] %s", e)
            return WildcardPattern(raw=pattern, segments=None, error=e.reason)
        return WildcardPattern(raw=pattern, segments=segments)

    def _split(self, pattern: str) -> Tuple[str, ...]:
        if not isinstance(pattern, str):
            raise PatternCompileError(repr(pattern), "pattern is not a string")
        if len(pattern) > self.config.max_pattern_length:
            raise PatternCompileError(
                pattern[:64] + "...",
                f"longer than {self.config.max_pattern_length} characters",
            )
        wildcards = pattern.count("*")
        if wildcards > self.config.max_wildcards:
            raise PatternCompileError(pattern, f"{wildcards} wildcards (limit {self.config.max_wildcards})")
        return tuple(pattern.split("*"))


_default_matcher: Optional[PatternMatcher] = None


def get_matcher() -> PatternMatcher:
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = PatternMatcher()
    return _default_matcher


def reset_matcher() -> None:
    """Drop the shared matcher so the next use picks up the current config."""
    global _default_matcher
    _default_matcher = None


def compile_pattern(pattern: str) -> WildcardPattern:
    return get_matcher().compile(pattern)


def url_matches_pattern(url: str, pattern: str) -> bool:
    return get_matcher().matches(url, pattern)
