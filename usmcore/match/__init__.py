"""
usmcore/match
Wildcard URL patterns and per-script URL eligibility.

Usage:
    from usmcore.match import url_matches_pattern, is_eligible

    url_matches_pattern("https://sub.example.com/x", "*://*.example.com/*")  # True
    is_eligible("https://a.test/page", script)
"""

from usmcore.match.pattern import (
    PatternMatcher,
    WildcardPattern,
    compile_pattern,
    get_matcher,
    reset_matcher,
    url_matches_pattern,
    wildcard_to_regex,
)
from usmcore.match.eligibility import (
    EligibilityDecision,
    EligibilityReason,
    evaluate,
    is_eligible,
)

__all__ = [
    "PatternMatcher",
    "WildcardPattern",
    "compile_pattern",
    "get_matcher",
    "reset_matcher",
    "url_matches_pattern",
    "wildcard_to_regex",
    "EligibilityDecision",
    "EligibilityReason",
    "evaluate",
    "is_eligible",
]
