# config.py
# Tuning knobs for harvesting / navigation. Every value can be overridden from the
# environment, e.g.
#
#   export HARVEST_SCROLL_STEP="200"        # px per probe in the chat list
#   export HARVEST_SETTLE_SEC="0.5"         # wait after each scroll for virtualization
#   export HARVEST_STABILITY="5"            # probes with nothing new before we stop
#   export HISTORY_MAX_PROBES="10"          # scroll-to-top attempts in a conversation
#   export HARVEST_VERBOSE="1"              # per-probe tracing

import os
import re
from dataclasses import dataclass, fields
from urllib.parse import urlparse


def _env_int(name: str, default: str) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


# =========================
# Browser session
# =========================

START_URL = os.environ.get("HARVEST_START_URL") or "https://web.whatsapp.com/"
HEADLESS = bool(int(os.environ.get("HARVEST_HEADLESS", "0")))
STATE_DIR = os.environ.get("HARVEST_STATE_DIR") or os.path.join("profiles", "storage")
READY_TIMEOUT_SEC = _env_float("HARVEST_READY_TIMEOUT_SEC", "120")

# =========================
# Chat list harvesting
# =========================

SCROLL_STEP = _env_int("HARVEST_SCROLL_STEP", "200")
SETTLE_SEC = _env_float("HARVEST_SETTLE_SEC", "0.5")
INITIAL_SETTLE_SEC = _env_float("HARVEST_INITIAL_SETTLE_SEC", "0.8")
STABILITY_THRESHOLD = _env_int("HARVEST_STABILITY", "5")
MAX_PROBES = _env_int("HARVEST_MAX_PROBES", "150")
REVERSE_MAX_PROBES = _env_int("HARVEST_REVERSE_MAX_PROBES", "30")
CLAMP_TOLERANCE_PX = _env_int("HARVEST_CLAMP_TOLERANCE_PX", "100")
EDGE_CLAMP_PROBES = _env_int("HARVEST_EDGE_CLAMP_PROBES", "3")
MIN_EXPECTED_ITEMS = _env_int("HARVEST_MIN_EXPECTED_ITEMS", "100")
FALLBACK_SETTLE_SEC = _env_float("HARVEST_FALLBACK_SETTLE_SEC", "0.15")
MAX_FALLBACK_VISITS = _env_int("HARVEST_MAX_FALLBACK_VISITS", "400")

# =========================
# Message history
# =========================

HISTORY_SETTLE_SEC = _env_float("HISTORY_SETTLE_SEC", "2.0")
HISTORY_MAX_PROBES = _env_int("HISTORY_MAX_PROBES", "10")
HISTORY_UNCHANGED_PROBES = _env_int("HISTORY_UNCHANGED_PROBES", "2")
HISTORY_CATCHUP_PROBES = _env_int("HISTORY_CATCHUP_PROBES", "5")
HISTORY_SAFETY_PROBES = _env_int("HISTORY_SAFETY_PROBES", "2")

# =========================
# Navigation
# =========================

NAV_MAX_PROBES = _env_int("NAV_MAX_PROBES", "50")
NAV_REVERSE_MAX_PROBES = _env_int("NAV_REVERSE_MAX_PROBES", "20")
NAV_SETTLE_SEC = _env_float("NAV_SETTLE_SEC", "0.6")
NAV_SWEEP_SETTLE_SEC = _env_float("NAV_SWEEP_SETTLE_SEC", "0.1")
NAV_CLICK_SETTLE_SEC = _env_float("NAV_CLICK_SETTLE_SEC", "0.5")
PANEL_TIMEOUT_SEC = _env_float("NAV_PANEL_TIMEOUT_SEC", "15")
PANEL_POLL_SEC = _env_float("NAV_PANEL_POLL_SEC", "0.2")
HEADER_SETTLE_SEC = _env_float("NAV_HEADER_SETTLE_SEC", "0.5")

# =========================
# Sending
# =========================

SEND_SETTLE_SEC = _env_float("SEND_SETTLE_SEC", "2.0")

VERBOSE = bool(int(os.environ.get("HARVEST_VERBOSE", "0")))


@dataclass
class HarvestConfig:
    """All tunables for one harvester/navigator instance."""

    scroll_step: int = SCROLL_STEP
    settle_sec: float = SETTLE_SEC
    initial_settle_sec: float = INITIAL_SETTLE_SEC
    stability_threshold: int = STABILITY_THRESHOLD
    max_probes: int = MAX_PROBES
    reverse_max_probes: int = REVERSE_MAX_PROBES
    clamp_tolerance_px: int = CLAMP_TOLERANCE_PX
    edge_clamp_probes: int = EDGE_CLAMP_PROBES
    min_expected_items: int = MIN_EXPECTED_ITEMS
    fallback_settle_sec: float = FALLBACK_SETTLE_SEC
    max_fallback_visits: int = MAX_FALLBACK_VISITS

    history_settle_sec: float = HISTORY_SETTLE_SEC
    history_max_probes: int = HISTORY_MAX_PROBES
    history_unchanged_probes: int = HISTORY_UNCHANGED_PROBES
    history_catchup_probes: int = HISTORY_CATCHUP_PROBES
    history_safety_probes: int = HISTORY_SAFETY_PROBES

    nav_max_probes: int = NAV_MAX_PROBES
    nav_reverse_max_probes: int = NAV_REVERSE_MAX_PROBES
    nav_settle_sec: float = NAV_SETTLE_SEC
    nav_sweep_settle_sec: float = NAV_SWEEP_SETTLE_SEC
    nav_click_settle_sec: float = NAV_CLICK_SETTLE_SEC
    panel_timeout_sec: float = PANEL_TIMEOUT_SEC
    panel_poll_sec: float = PANEL_POLL_SEC
    header_settle_sec: float = HEADER_SETTLE_SEC

    send_settle_sec: float = SEND_SETTLE_SEC

    @property
    def panel_polls(self) -> int:
        # Always bounded, even when the poll interval is configured as 0.
        if self.panel_poll_sec <= 0:
            return max(1, int(self.panel_timeout_sec * 5))
        return max(1, int(self.panel_timeout_sec / self.panel_poll_sec))

    @classmethod
    def from_env(cls) -> "HarvestConfig":
        """Re-read every HARVEST_/HISTORY_/NAV_/SEND_ variable (the module constants are read at import)."""
        env_names = {
            "scroll_step": ("HARVEST_SCROLL_STEP", int),
            "settle_sec": ("HARVEST_SETTLE_SEC", float),
            "initial_settle_sec": ("HARVEST_INITIAL_SETTLE_SEC", float),
            "stability_threshold": ("HARVEST_STABILITY", int),
            "max_probes": ("HARVEST_MAX_PROBES", int),
            "reverse_max_probes": ("HARVEST_REVERSE_MAX_PROBES", int),
            "clamp_tolerance_px": ("HARVEST_CLAMP_TOLERANCE_PX", int),
            "edge_clamp_probes": ("HARVEST_EDGE_CLAMP_PROBES", int),
            "min_expected_items": ("HARVEST_MIN_EXPECTED_ITEMS", int),
            "fallback_settle_sec": ("HARVEST_FALLBACK_SETTLE_SEC", float),
            "max_fallback_visits": ("HARVEST_MAX_FALLBACK_VISITS", int),
            "history_settle_sec": ("HISTORY_SETTLE_SEC", float),
            "history_max_probes": ("HISTORY_MAX_PROBES", int),
            "history_unchanged_probes": ("HISTORY_UNCHANGED_PROBES", int),
            "history_catchup_probes": ("HISTORY_CATCHUP_PROBES", int),
            "history_safety_probes": ("HISTORY_SAFETY_PROBES", int),
            "nav_max_probes": ("NAV_MAX_PROBES", int),
            "nav_reverse_max_probes": ("NAV_REVERSE_MAX_PROBES", int),
            "nav_settle_sec": ("NAV_SETTLE_SEC", float),
            "nav_sweep_settle_sec": ("NAV_SWEEP_SETTLE_SEC", float),
            "nav_click_settle_sec": ("NAV_CLICK_SETTLE_SEC", float),
            "panel_timeout_sec": ("NAV_PANEL_TIMEOUT_SEC", float),
            "panel_poll_sec": ("NAV_PANEL_POLL_SEC", float),
            "header_settle_sec": ("NAV_HEADER_SETTLE_SEC", float),
            "send_settle_sec": ("SEND_SETTLE_SEC", float),
        }
        kwargs = {}
        for f in fields(cls):
            name, cast = env_names[f.name]
            raw = os.environ.get(name)
            if raw is not None and raw.strip():
                kwargs[f.name] = cast(raw)
        return cls(**kwargs)


def safe_name(s: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]+", "_", (s or "").strip()) or "unnamed"


def default_storage_state_file(start_url: str = START_URL) -> str:
    """
    Storage state (cookies, localStorage) path for a start URL, e.g.
    https://web.whatsapp.com/ -> profiles/storage/web.whatsapp.com.json
    """
    parsed = urlparse(start_url if "://" in start_url else f"https://{start_url}")
    host = parsed.hostname or "default"
    return os.path.join(STATE_DIR, f"{safe_name(host)}.json")
