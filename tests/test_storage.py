import json

import pytest

from linkanalysis.core.config import API_KEY_STORE_KEY, DEFAULT_BASE_URL, LLMSettings, save_api_key
from linkanalysis.core.storage import DAY, HOUR, MINUTE, WEEK, InMemoryStore, JsonFileStore, TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_ttl_constants():
    assert (MINUTE, HOUR, DAY, WEEK) == (60, 3600, 86400, 604800)


def test_cache_expires_and_evicts():
    store = InMemoryStore()
    clock = FakeClock()
    cache = TTLCache(store, default_ttl=10, clock=clock)

    cache.set("k", "v")
    assert cache.get("k") == "v"
    assert cache.has("k")

    clock.now += 10
    assert cache.get("k") is None
    assert store.get("k") is None


def test_get_or_set_recomputes_after_expiry():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    calls = []

    def factory():
        calls.append(1)
        return len(calls)

    assert cache.get_or_set("k", factory, expires_in=MINUTE) == 1
    assert cache.get_or_set("k", factory, expires_in=MINUTE) == 1
    clock.now += MINUTE
    assert cache.get_or_set("k", factory, expires_in=MINUTE) == 2


def test_clear_only_removes_cache_entries():
    store = InMemoryStore()
    store.set("other", 1)
    cache = TTLCache(store)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.clear()

    assert store.keys() == ["other"]


def test_json_file_store_persists(tmp_path):
    path = tmp_path / "state" / "store.json"
    store = JsonFileStore(path)
    store.set("analysis", {"nodes": 2})
    store.delete("missing")

    reopened = JsonFileStore(path)
    assert reopened.get("analysis") == {"nodes": 2}

    reopened.delete("analysis")
    assert json.loads(path.read_text(encoding="utf-8")) == {}


def test_json_file_store_rejects_corruption(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(json.JSONDecodeError):
        JsonFileStore(path)


def test_settings_prefer_stored_key(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "env-key")
    store = InMemoryStore()
    save_api_key(store, "  stored-key ")

    settings = LLMSettings.load(store)

    assert store.get(API_KEY_STORE_KEY) == "stored-key"
    assert settings.api_key == "stored-key"
    assert settings.configured


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "env-key")
    monkeypatch.setenv("LINKANALYSIS_LLM_MODEL", "llama-3.1-8b-instant")
    monkeypatch.delenv("LINKANALYSIS_LLM_BASE_URL", raising=False)

    settings = LLMSettings.load()

    assert settings.api_key == "env-key"
    assert settings.model == "llama-3.1-8b-instant"
    assert settings.base_url == DEFAULT_BASE_URL


def test_settings_without_key(monkeypatch):
    monkeypatch.setattr("linkanalysis.core.config.load_dotenv", lambda: None)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    assert not LLMSettings.load(InMemoryStore()).configured
