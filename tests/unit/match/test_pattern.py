"""
Unit tests for wildcard URL patterns.
"""
import logging
import time

import pytest

from usmcore.base.config import MatchConfig
from usmcore.match.pattern import (
    PatternMatcher,
    compile_pattern,
    url_matches_pattern,
    wildcard_to_regex,
)


class TestWildcardMatching:
    """The pattern must cover the whole URL; '*' is the only special character."""

    @pytest.mark.parametrize("url", [
        "https://sub.example.com/path",
        "http://a.b.example.com/",
        "https://x.example.com/deep/path?q=1",
    ])
    def test_scheme_and_subdomain_wildcards(self, url):
        assert url_matches_pattern(url, "*://*.example.com/*")

    def test_other_domain_rejected(self):
        assert not url_matches_pattern("https://example.org/", "*://*.example.com/*")

    def test_anchored_at_both_ends(self):
        assert not url_matches_pattern("https://example.com/path/extra", "https://example.com/path")
        assert not url_matches_pattern("xhttps://example.com/path", "https://example.com/path")

    def test_exact_pattern_without_wildcards(self):
        assert url_matches_pattern("https://example.com/path", "https://example.com/path")

    def test_star_matches_empty_run(self):
        assert url_matches_pattern("https://example.com/", "https://example.com/*")

    def test_lone_star_matches_everything(self):
        assert url_matches_pattern("", "*")
        assert url_matches_pattern("ftp://whatever", "*")

    @pytest.mark.parametrize("pattern,url", [
        ("https://example.com/a.b", "https://example.com/a.b"),
        ("https://example.com/?q=(1)", "https://example.com/?q=(1)"),
        ("https://example.com/[x]+$", "https://example.com/[x]+$"),
    ])
    def test_regex_metacharacters_are_literal(self, pattern, url):
        assert url_matches_pattern(url, pattern)

    def test_dot_is_not_any_character(self):
        assert not url_matches_pattern("https://exampleXcom/", "https://example.com/")

    def test_surrounding_whitespace_is_trimmed(self):
        assert url_matches_pattern("https://example.com/", "  https://example.com/*\t")

    def test_prefix_and_suffix_must_not_overlap(self):
        assert not url_matches_pattern("ab", "ab*b")
        assert url_matches_pattern("abb", "ab*b")

    def test_middle_segments_in_order(self):
        assert url_matches_pattern("https://a.test/x/1/y/2", "https://*/x/*/y/*")
        assert not url_matches_pattern("https://a.test/y/1/x/2", "https://*/x/*/y/*")

    def test_adversarial_pattern_is_fast(self):
        """Many wildcards against a long near-miss must not backtrack."""
        pattern = "*a" * 30 + "b"
        url = "a" * 5000
        started = time.perf_counter()
        assert not url_matches_pattern(url, pattern)
        assert time.perf_counter() - started < 1.0


class TestPatternLimits:
    """Patterns beyond the limits never match and are logged."""

    def test_too_many_wildcards(self, caplog):
        matcher = PatternMatcher(MatchConfig(max_wildcards=3))
        with caplog.at_level(logging.WARNING):
            compiled = matcher.compile("*a*b*c*")
        assert not compiled.valid
        assert not compiled.matches("xaxbxcx")
        assert "wildcards" in caplog.text

    def test_too_long(self):
        matcher = PatternMatcher(MatchConfig(max_pattern_length=10))
        assert not matcher.matches("https://example.com/", "https://example.com/*")

    def test_compiled_once_per_pattern(self, caplog):
        matcher = PatternMatcher(MatchConfig(max_wildcards=1))
        with caplog.at_level(logging.WARNING):
            for _ in range(5):
                matcher.matches("u", "**")
        assert caplog.text.count("[Pattern]") == 1

    def test_clear_cache(self):
        matcher = PatternMatcher()
        first = matcher.compile("https://*")
        matcher.clear_cache()
        assert matcher.compile("https://*") is not first

    def test_compile_pattern_is_callable(self):
        predicate = compile_pattern("*://example.com/*")
        assert predicate("https://example.com/x")
        assert not predicate("https://example.net/x")


class TestWildcardToRegex:

    def test_escapes_and_anchors(self):
        assert wildcard_to_regex("https://*.a.b/*") == r"^https://.*\.a\.b/.*$"
