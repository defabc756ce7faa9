from .client import ChatHarvester
from .config import HarvestConfig
from .errors import HarvestError, SurfaceUnavailable
from .history import HistoryHarvester
from .list_harvester import HarvestSession, ListHarvester
from .models import HarvestResult, HistoryResult, Item, MessageRecord, NavigationOutcome, ResolvedName
from .navigator import Navigator
from .resolver import resolve_name
from .surface import MessageRaw, RawItem, RenderingSurface, ScrollMetrics
from .text_match import base_form, matches_at_word_boundary, normalize

__all__ = [
    "ChatHarvester",
    "HarvestConfig",
    "HarvestError",
    "SurfaceUnavailable",
    "HistoryHarvester",
    "HarvestSession",
    "ListHarvester",
    "HarvestResult",
    "HistoryResult",
    "Item",
    "MessageRecord",
    "NavigationOutcome",
    "ResolvedName",
    "Navigator",
    "resolve_name",
    "MessageRaw",
    "RawItem",
    "RenderingSurface",
    "ScrollMetrics",
    "base_form",
    "matches_at_word_boundary",
    "normalize",
]
