import json
from datetime import date, datetime

import pandas as pd

from chat_harvester import export
from chat_harvester.models import HarvestResult, HistoryResult, Item, MessageRecord, NavigationOutcome


def _records():
    return [
        MessageRecord("Dana", "09:00, 23.1.2026", "good morning", True, "[09:00, 23.1.2026] Dana: "),
        MessageRecord("You", "09:05, 23.1.2026", "hi, all good", True, "[09:05, 23.1.2026] "),
    ]


def test_messages_csv(tmp_path):
    out = tmp_path / "out" / "messages.csv"
    export.save_messages_csv(_records(), str(out), chat="Dana")
    df = pd.read_csv(out)
    assert list(df.columns) == export.MESSAGE_COLUMNS
    assert len(df) == 2
    assert df["text"].tolist() == ["good morning", "hi, all good"]
    assert set(df["chat"]) == {"Dana"}


def test_empty_dataframe_still_has_columns():
    df = export.messages_to_dataframe([])
    assert list(df.columns) == export.MESSAGE_COLUMNS
    assert df.empty


def test_report_roundtrip(tmp_path):
    report = export.new_report(export.hostname("https://web.whatsapp.com/"))
    names = HarvestResult(items=[Item("Dana", "Dana", "Dana", "row-0")], completion="stable", probes=7)
    export.record_list_harvest(report, names)
    export.record_navigation(report, "Noa", NavigationOutcome(False, "header mismatch", state="Failed"))
    history = HistoryResult(items=_records(), completion="boundary", probes=3, reference_day=date(2026, 1, 23))
    export.record_history(report, "Dana", history)
    export.finish_report(report, datetime.utcnow())

    path = export.save_report(report, str(tmp_path / "report.json"))
    saved = json.loads(open(path, encoding="utf-8").read())

    assert saved["site"] == "web.whatsapp.com"
    assert saved["results"]["chats"] == ["Dana"]
    assert saved["results"]["messages"]["Dana"][1]["sender"] == "You"
    assert saved["metrics"]["steps"] == {
        "list_probes": 7,
        "history_probes": 3,
        "navigations": 1,
        "navigation_failures": 1,
    }
    assert saved["errors"][0]["error"] == "header mismatch"
    assert [a["kind"] for a in saved["actions"]] == ["list_harvest", "navigate", "history_harvest"]
    assert saved["metrics"]["total_runtime_sec"] is not None
