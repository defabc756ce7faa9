# resolver.py
# Turn a loosely-typed name ("dan", "mom") into one exact display name from a harvested list.
# Only the confident tiers (1-3) resolve; anything weaker leaves the query as-is so a caller
# never opens a conversation on a guess.

from typing import Iterable, List, Optional

from .models import ResolvedName
from .text_match import (
    TIER_BASE_CONTAINS,
    TIER_EXACT,
    base_form,
    match_tier,
    normalize,
)


def _dedupe(candidates: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for name in candidates or []:
        norm = normalize(name)
        if not norm or norm in seen:
            continue
        seen.add(norm)
        out.append(name.strip())
    return out


def _prefix_hit(query: str, candidate: str) -> bool:
    """Query sits at the start of the candidate's base form, ending at a word boundary."""
    q = base_form(query)
    c = base_form(candidate)
    if not q or not c.startswith(q):
        return False
    return len(c) == len(q) or c[len(q)].isspace() or c[len(q)] == ","


def resolve_name(query: str, candidates: Optional[Iterable[str]]) -> ResolvedName:
    """
    Best confident match for `query` among `candidates`.

    The strongest tier wins. Within tier 3, candidates the query starts (at a word boundary) are
    preferred over ones where it appears later ("Dan" -> "Dan Levi" over "Shira Dan").
    `ambiguous` is set when the winning tier has more than one distinct candidate.
    """
    names = _dedupe(candidates)
    if not query or not names:
        return ResolvedName(query=query, resolved=query, ambiguous=False)

    by_tier = {}
    for name in names:
        tier = match_tier(query, name)
        if tier is None or tier > TIER_BASE_CONTAINS:
            continue
        by_tier.setdefault(tier, []).append(name)

    if not by_tier:
        return ResolvedName(query=query, resolved=query, ambiguous=False)

    tier = min(by_tier)
    winners = by_tier[tier]
    if tier == TIER_BASE_CONTAINS:
        prefixed = [n for n in winners if _prefix_hit(query, n)]
        rest = [n for n in winners if not _prefix_hit(query, n)]
        winners = prefixed + rest
    ambiguous = tier != TIER_EXACT and len(winners) > 1
    return ResolvedName(query=query, resolved=winners[0], ambiguous=ambiguous)
