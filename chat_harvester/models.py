# models.py
# Records produced by the harvesters / navigator, plus the reason and completion vocabularies.

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

# =========================
# Navigation failure reasons
# =========================

NOT_FOUND = "not found"
PANEL_NOT_LOADED = "panel did not load"
HEADER_MISMATCH = "header mismatch"
SURFACE_UNAVAILABLE = "surface unavailable"
EMPTY_MESSAGE = "empty message"
MESSAGE_NOT_SENT = "message not sent"

# =========================
# Harvest completion signals
# =========================

COMPLETED_STABLE = "stable"                    # N probes in a row with nothing new
COMPLETED_EDGE = "edge"                        # scroll requests kept getting clamped
COMPLETED_BOUNDARY = "boundary"                # history crossed into an older day
COMPLETED_NO_REFERENCE = "no-reference-items"  # conversation has nothing on the reference day
COMPLETED_MAX_PROBES = "max-probes"            # probe budget exhausted (timeout-completion)
COMPLETED_NOT_FOUND = "not-found"              # container / panel absent
COMPLETED_UNAVAILABLE = "unavailable"          # surface went away mid-harvest


@dataclass
class Item:
    display_name: str
    normalized_name: str
    base_name: str
    item_id: Optional[str] = None


@dataclass
class MessageRecord:
    sender: str
    timestamp: str
    text: str
    is_from_reference_day: bool
    dedupe_key: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "time": self.timestamp,
            "text": self.text,
            "is_from_reference_day": self.is_from_reference_day,
        }


@dataclass
class NavigationOutcome:
    success: bool
    reason: Optional[str] = None
    matched_name: Optional[str] = None
    state: str = "Idle"

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ResolvedName:
    query: str
    resolved: str
    ambiguous: bool = False


@dataclass
class HarvestResult:
    """
    Outcome of one harvest call. `completion` says *why* probing stopped so callers can tell
    a stable, complete harvest from a best-effort one that ran out of probes.
    """

    items: List[Any] = field(default_factory=list)
    completion: str = COMPLETED_STABLE
    probes: int = 0
    fallback_used: bool = False

    @property
    def ok(self) -> bool:
        return self.completion not in (COMPLETED_NOT_FOUND, COMPLETED_UNAVAILABLE)

    @property
    def timed_out(self) -> bool:
        return self.completion == COMPLETED_MAX_PROBES

    def names(self) -> List[str]:
        return [it.display_name for it in self.items]

    def summary(self) -> Dict[str, Any]:
        return {
            "count": len(self.items),
            "completion": self.completion,
            "probes": self.probes,
            "fallback_used": self.fallback_used,
        }


@dataclass
class HistoryResult(HarvestResult):
    reference_day: Optional[date] = None
    boundary_reached: bool = False

    def iter_all(self) -> Iterator[MessageRecord]:
        # items are stored already ordered; see history.sort_key
        return iter(self.items)

    def iter_reference_day(self) -> Iterator[MessageRecord]:
        return (m for m in self.items if m.is_from_reference_day)

    def summary(self) -> Dict[str, Any]:
        out = super().summary()
        out["reference_day"] = self.reference_day.isoformat() if self.reference_day else None
        out["reference_day_count"] = sum(1 for _ in self.iter_reference_day())
        out["boundary_reached"] = self.boundary_reached
        return out


def record_dicts(records) -> List[Dict[str, Any]]:
    out = []
    for r in records:
        if hasattr(r, "to_dict"):
            out.append(r.to_dict())
        else:
            out.append(asdict(r))
    return out
