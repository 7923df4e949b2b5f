"""
usmcore/match/eligibility.py
Decides whether a URL is in scope for a script.

Evaluation order:
  1. No @match and no @include patterns  → in scope (match-all)
  2. Any @match pattern matches          → in scope
  3. Any @include pattern matches        → in scope
  4. Nothing matched                     → out of scope
  5. In scope but an @exclude matches    → out of scope (exclude always wins)

@match and @include are simply OR'd; neither list takes precedence.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from usmcore.catalog.models import Script
from usmcore.match.pattern import PatternMatcher, get_matcher


class EligibilityReason(str, Enum):
    MATCH_ALL = "match-all"      # no match/include patterns at all
    MATCHED = "matched"          # an @match pattern hit
    INCLUDED = "included"        # an @include pattern hit
    EXCLUDED = "excluded"        # positive hit revoked by an @exclude
    UNMATCHED = "unmatched"      # no positive pattern hit


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: EligibilityReason
    pattern: Optional[str] = None   # the pattern that decided it, if any

    def __bool__(self) -> bool:
        return self.eligible


def _first_hit(url: str, patterns: Iterable[str], matcher: PatternMatcher) -> Optional[str]:
    for pattern in patterns:
        if matcher.matches(url, pattern):
            return pattern
    return None


def evaluate(url: str, script: Script, matcher: Optional[PatternMatcher] = None) -> EligibilityDecision:
    """Eligibility plus the reason for it."""
    matcher = matcher or get_matcher()
    matches = script.matches or []
    includes = script.includes or []
    excludes = script.excludes or []

    if not matches and not includes:
        decision = EligibilityDecision(True, EligibilityReason.MATCH_ALL)
    else:
        hit = _first_hit(url, matches, matcher)
        if hit is not None:
            decision = EligibilityDecision(True, EligibilityReason.MATCHED, hit)
        else:
            hit = _first_hit(url, includes, matcher)
            if hit is None:
                return EligibilityDecision(False, EligibilityReason.UNMATCHED)
            decision = EligibilityDecision(True, EligibilityReason.INCLUDED, hit)

    excluded_by = _first_hit(url, excludes, matcher)
    if excluded_by is not None:
        return EligibilityDecision(False, EligibilityReason.EXCLUDED, excluded_by)
    return decision


def is_eligible(url: str, script: Script, matcher: Optional[PatternMatcher] = None) -> bool:
    return evaluate(url, script, matcher).eligible
