# trace.py
# Console tracing: "[tag] message" lines, flushed immediately so long harvests show progress.

import sys
import time

from . import config


def _now() -> str:
    return time.strftime("%H:%M:%S")


def log(tag: str, message: str) -> None:
    print(f"[{tag}] {message}", flush=True)


def debug(tag: str, message: str) -> None:
    """Per-probe detail; only printed with HARVEST_VERBOSE=1."""
    if not config.VERBOSE:
        return
    print(f"[{_now()}] [{tag}] {message}", flush=True)


def warn(tag: str, message: str) -> None:
    print(f"[{tag}] WARNING: {message}", file=sys.stderr, flush=True)
