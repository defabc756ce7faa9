# export.py
# Harvest report (JSON) and message export (CSV).

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import pandas as pd

from .models import HarvestResult, MessageRecord, NavigationOutcome, record_dicts
from . import trace

MESSAGE_COLUMNS = ["chat", "sender", "time", "text", "is_from_reference_day"]


def ts() -> str:
    return datetime.utcnow().strftime("%Y%m%dT%H%M%SZ")


def hostname(u: str) -> str:
    try:
        return urlparse(u).hostname or "unknown"
    except ValueError:
        return "unknown"


# =========================
# Report
# =========================

def new_report(site: str) -> Dict[str, Any]:
    return {
        "site": site,
        "ts_iso": datetime.utcnow().isoformat() + "Z",
        "actions": [],
        "results": {},
        "errors": [],
        "metrics": {
            "run_start_ts": None,
            "run_end_ts": None,
            "total_runtime_sec": None,
            "steps": {
                "list_probes": 0,
                "history_probes": 0,
                "navigations": 0,
                "navigation_failures": 0,
            },
        },
    }


def log_action(report: Dict[str, Any], kind: str, detail: Dict[str, Any]) -> None:
    report["actions"].append({"ts": ts(), "kind": kind, **detail})


def record_list_harvest(report: Dict[str, Any], result: HarvestResult) -> None:
    report["metrics"]["steps"]["list_probes"] += result.probes
    report["results"]["chats"] = result.names()
    log_action(report, "list_harvest", result.summary())


def record_navigation(report: Dict[str, Any], name: str, outcome: NavigationOutcome) -> None:
    steps = report["metrics"]["steps"]
    steps["navigations"] += 1
    if not outcome.success:
        steps["navigation_failures"] += 1
        report["errors"].append({"ts": ts(), "error": outcome.reason, "chat": name})
    log_action(report, "navigate", {
        "chat": name,
        "ok": outcome.success,
        "reason": outcome.reason,
        "matched": outcome.matched_name,
        "state": outcome.state,
    })


def record_history(report: Dict[str, Any], chat: Optional[str], result: HarvestResult) -> None:
    report["metrics"]["steps"]["history_probes"] += result.probes
    report["results"].setdefault("messages", {})[chat or "(current)"] = record_dicts(result.items)
    log_action(report, "history_harvest", {"chat": chat, **result.summary()})


def finish_report(report: Dict[str, Any], started: datetime) -> None:
    ended = datetime.utcnow()
    m = report["metrics"]
    m["run_start_ts"] = started.isoformat() + "Z"
    m["run_end_ts"] = ended.isoformat() + "Z"
    m["total_runtime_sec"] = round((ended - started).total_seconds(), 3)


def save_report(report: Dict[str, Any], path: str) -> str:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    trace.log("report", path)
    return path


# =========================
# CSV
# =========================

def messages_to_dataframe(records: Iterable[MessageRecord], chat: Optional[str] = None) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for r in records:
        row = r.to_dict()
        row["chat"] = chat
        rows.append(row)
    return pd.DataFrame(rows, columns=MESSAGE_COLUMNS)


def save_messages_csv(records: Iterable[MessageRecord], path: str, chat: Optional[str] = None) -> pd.DataFrame:
    df = messages_to_dataframe(records, chat=chat)
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False)
    trace.log("report", f"{len(df)} messages -> {out}")
    return df
