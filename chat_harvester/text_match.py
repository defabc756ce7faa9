# text_match.py
# Display-name normalization and fuzzy matching.
#
# Chat names come back from the page decorated (emoji, hearts, flags) and in whatever Unicode
# form the client rendered; user queries are plain. Matching therefore runs through tiers,
# highest confidence first:
#
#   1. exact normalized equality
#   2. exact base-form equality (symbols/emoji stripped)
#   3. boundary-anchored base-form containment, either direction
#   4. boundary-anchored normalized containment, either direction
#   5. whitespace-free equality
#
# The first tier with any candidate wins; ties go to the first candidate seen.

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional

TIER_EXACT = 1
TIER_BASE_EXACT = 2
TIER_BASE_CONTAINS = 3
TIER_CONTAINS = 4
TIER_NO_SPACE = 5

TIER_NAMES = {
    TIER_EXACT: "exact",
    TIER_BASE_EXACT: "base exact",
    TIER_BASE_CONTAINS: "base contains",
    TIER_CONTAINS: "normalized contains",
    TIER_NO_SPACE: "no-space exact",
}

_WS_RE = re.compile(r"\s+")
# \w is Unicode-aware, so Hebrew/Arabic/Cyrillic letters survive; emoji and punctuation do not.
_NON_WORD_RE = re.compile(r"[^\w\s]")
_BOUNDARY_CHARS = frozenset(" \t\r\n\f\v,")


def normalize(s: Optional[str]) -> str:
    """Collapse whitespace, trim, and compose to NFKC."""
    if not s:
        return ""
    return unicodedata.normalize("NFKC", _WS_RE.sub(" ", s).strip())


def base_form(s: Optional[str]) -> str:
    """normalize() minus everything that is neither a word character nor whitespace."""
    stripped = _NON_WORD_RE.sub("", normalize(s))
    return _WS_RE.sub(" ", stripped).strip()


def _no_space(s: str) -> str:
    return _WS_RE.sub("", s)


def _is_boundary(ch: str) -> bool:
    return ch in _BOUNDARY_CHARS or ch.isspace()


def matches_at_word_boundary(haystack: Optional[str], needle: Optional[str]) -> bool:
    """
    True iff `needle` occurs in `haystack` starting at start-of-string or after whitespace/comma
    and ending at end-of-string or before whitespace/comma.

    >>> matches_at_word_boundary("Tal Cohen", "Tal")
    True
    >>> matches_at_word_boundary("Mital", "tal")
    False
    """
    if not haystack or not needle:
        return False
    n = len(needle)
    start = haystack.find(needle)
    while start != -1:
        end = start + n
        before_ok = start == 0 or _is_boundary(haystack[start - 1])
        after_ok = end == len(haystack) or _is_boundary(haystack[end])
        if before_ok and after_ok:
            return True
        start = haystack.find(needle, start + 1)
    return False


def match_tier(query: Optional[str], candidate: Optional[str]) -> Optional[int]:
    """Strongest tier at which `candidate` matches `query`, or None."""
    q_norm = normalize(query)
    c_norm = normalize(candidate)
    if not q_norm or not c_norm:
        return None

    if q_norm == c_norm:
        return TIER_EXACT

    q_base = base_form(q_norm)
    c_base = base_form(c_norm)
    if q_base and c_base:
        if q_base == c_base:
            return TIER_BASE_EXACT
        if matches_at_word_boundary(c_base, q_base) or matches_at_word_boundary(q_base, c_base):
            return TIER_BASE_CONTAINS

    if matches_at_word_boundary(c_norm, q_norm) or matches_at_word_boundary(q_norm, c_norm):
        return TIER_CONTAINS

    if _no_space(q_norm) == _no_space(c_norm):
        return TIER_NO_SPACE
    return None


@dataclass
class Match:
    name: str
    index: int
    tier: int
    candidates_at_tier: int = 1

    @property
    def tier_name(self) -> str:
        return TIER_NAMES.get(self.tier, str(self.tier))


def find_best_match(query: Optional[str], candidates: Iterable[str], max_tier: int = TIER_NO_SPACE) -> Optional[Match]:
    """
    Pick the candidate matching `query` at the strongest tier <= max_tier.
    Among candidates at the same tier the first one seen wins.
    """
    names: List[str] = list(candidates or [])
    best: Optional[Match] = None
    for idx, name in enumerate(names):
        tier = match_tier(query, name)
        if tier is None or tier > max_tier:
            continue
        if best is None or tier < best.tier:
            best = Match(name=name, index=idx, tier=tier)
        elif tier == best.tier:
            best.candidates_at_tier += 1
    return best


def is_verified_match(expected: Optional[str], shown: Optional[str]) -> bool:
    """A header/title counts as the requested item only at tiers 1-3."""
    tier = match_tier(expected, shown)
    return tier is not None and tier <= TIER_BASE_CONTAINS
