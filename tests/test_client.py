import asyncio

from chat_harvester.client import ChatHarvester
from chat_harvester.config import HarvestConfig, default_storage_state_file
from chat_harvester.models import EMPTY_MESSAGE, HEADER_MISMATCH, MESSAGE_NOT_SENT, NOT_FOUND

from fake_surface import FakeListSurface, no_sleep


def _client(surface, **cfg):
    return ChatHarvester(surface, HarvestConfig(**cfg), sleep=no_sleep)


def test_wait_until_ready():
    assert asyncio.run(_client(FakeListSurface(["Dana", "Noa"])).wait_until_ready(timeout=2, poll=1)) is True
    missing = FakeListSurface(["Dana"], has_container=False)
    assert asyncio.run(_client(missing).wait_until_ready(timeout=2, poll=1)) is False


def test_wait_until_ready_on_closed_surface():
    surface = FakeListSurface(["Dana"])
    surface.closed = True
    assert asyncio.run(_client(surface).wait_until_ready(timeout=2, poll=1)) is False


def test_list_names_and_resolve_against_list():
    client = _client(FakeListSurface(["David Cohen", "David Levi", "Noa"]))
    assert sorted(asyncio.run(client.list_names())) == ["David Cohen", "David Levi", "Noa"]
    resolved = asyncio.run(client.resolve_against_list("David"))
    assert resolved.ambiguous is True
    assert resolved.resolved in ("David Cohen", "David Levi")


def test_open_and_harvest_skips_history_when_navigation_fails():
    outcome, history = asyncio.run(_client(FakeListSurface(["Noa"])).open_and_harvest("Zed"))
    assert outcome.reason == NOT_FOUND
    assert history is None


def test_send_to_types_only_into_the_verified_chat():
    surface = FakeListSurface(["Dana Levi", "Noa Cohen"])
    outcome = asyncio.run(_client(surface).send_to("Noa", "running late"))
    assert outcome.success is True
    assert outcome.matched_name == "Noa Cohen"
    assert surface.sent == [("Noa Cohen", "running late")]


def test_send_to_wrong_chat_sends_nothing():
    surface = FakeListSurface(["Dana Levi", "Noa Cohen"], opens={"Noa Cohen": "Dana Levi"})
    outcome = asyncio.run(_client(surface).send_to("Noa", "running late"))
    assert outcome.reason == HEADER_MISMATCH
    assert surface.sent == []


def test_send_to_without_composer():
    surface = FakeListSurface(["Noa Cohen"], has_composer=False)
    outcome = asyncio.run(_client(surface).send_to("Noa Cohen", "hi"))
    assert outcome.success is False
    assert outcome.reason == MESSAGE_NOT_SENT
    assert outcome.matched_name == "Noa Cohen"


def test_send_to_rejects_empty_text_before_navigating():
    surface = FakeListSurface(["Noa Cohen"])
    outcome = asyncio.run(_client(surface).send_to("Noa Cohen", "   "))
    assert outcome.reason == EMPTY_MESSAGE
    assert surface.activations == []


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("HARVEST_SCROLL_STEP", "120")
    monkeypatch.setenv("HISTORY_MAX_PROBES", "3")
    monkeypatch.setenv("NAV_PANEL_POLL_SEC", "")
    cfg = HarvestConfig.from_env()
    assert cfg.scroll_step == 120
    assert cfg.history_max_probes == 3
    assert cfg.panel_poll_sec == HarvestConfig().panel_poll_sec


def test_panel_polls_are_bounded():
    assert HarvestConfig(panel_timeout_sec=10, panel_poll_sec=0.5).panel_polls == 20
    assert HarvestConfig(panel_timeout_sec=2, panel_poll_sec=0).panel_polls == 10
    assert HarvestConfig(panel_timeout_sec=0, panel_poll_sec=0.5).panel_polls == 1


def test_storage_state_path_per_host():
    path = default_storage_state_file("https://web.whatsapp.com/")
    assert path.endswith("web.whatsapp.com.json")
    assert "storage" in path
