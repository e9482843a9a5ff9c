from __future__ import annotations

import json
from pathlib import Path

import pytest

from inkwell.services.settings import (
    AISettings,
    OpenAISettings,
    ProviderSettings,
    SecretVault,
    SettingsStore,
    redact_secret,
)

_ENV_NAMES = (
    "INKWELL_AI_ENABLED",
    "INKWELL_AI_STREAMING",
    "INKWELL_OPENAI_API_KEY",
    "INKWELL_OPENAI_ENABLED",
    "INKWELL_REQUESTS_PER_MINUTE",
    "INKWELL_OPENAI_TIMEOUT",
    "INKWELL_DEFAULT_TEXT_PROVIDER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "ai_settings.json")


def test_missing_file_yields_defaults(store: SettingsStore) -> None:
    settings = store.load()

    assert settings == AISettings()
    assert not settings.enabled
    assert settings.providers.default_text_provider_id == "mock-text"
    assert settings.rate_limiting.requests_per_minute == 100


def test_round_trip_encrypts_the_api_key(store: SettingsStore) -> None:
    settings = AISettings(
        enabled=True,
        providers=ProviderSettings(openai=OpenAISettings(enabled=True, api_key="sk-secret", text_model="gpt-x")),
    )

    path = store.save(settings)
    raw = path.read_text(encoding="utf-8")
    payload = json.loads(raw)

    assert "sk-secret" not in raw
    assert payload["api_key_ciphertext"].startswith("fernet:")
    assert payload["version"] == 1
    assert store.load() == settings


def test_invalid_json_falls_back_to_defaults(store: SettingsStore, caplog) -> None:
    store.path.write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING"):
        settings = store.load()

    assert settings == AISettings()
    assert "not valid JSON" in caplog.text


def test_undecryptable_key_is_dropped(store: SettingsStore) -> None:
    store.path.write_text(json.dumps({"enabled": True, "api_key_ciphertext": "fernet:garbage"}), encoding="utf-8")

    settings = store.load()

    assert settings.enabled
    assert settings.providers.openai.api_key == ""


def test_runtime_overrides_ignore_unknown_paths(store: SettingsStore) -> None:
    settings = store.load(overrides={"streaming.enabled": True, "providers.nope": "x", "enabled": None})

    assert settings.streaming.enabled
    assert not settings.enabled


def test_environment_overrides_win(store: SettingsStore, monkeypatch: pytest.MonkeyPatch) -> None:
    store.save(AISettings(enabled=False))
    monkeypatch.setenv("INKWELL_AI_ENABLED", "yes")
    monkeypatch.setenv("INKWELL_OPENAI_ENABLED", "1")
    monkeypatch.setenv("INKWELL_OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("INKWELL_REQUESTS_PER_MINUTE", "7")
    monkeypatch.setenv("INKWELL_OPENAI_TIMEOUT", "not-a-number")

    settings = store.load()

    assert settings.enabled
    assert settings.providers.openai.enabled
    assert settings.providers.openai.api_key == "sk-env"
    assert settings.rate_limiting.requests_per_minute == 7
    assert settings.providers.openai.request_timeout == 60.0


def test_provider_callable_rereads_disk(store: SettingsStore) -> None:
    read = store.provider()
    assert not read().enabled

    store.save(AISettings(enabled=True))

    assert read().enabled


def test_vault_reuses_its_key(tmp_path: Path) -> None:
    key_path = tmp_path / "vault.key"
    token = SecretVault(key_path=key_path).encrypt("hunter2")

    assert SecretVault(key_path=key_path).decrypt(token) == "hunter2"
    assert SecretVault(key_path=key_path).encrypt("") == ""
    with pytest.raises(ValueError):
        SecretVault(key_path=key_path).decrypt("dpapi:abc")


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("sk-123456") == "sk*****56"
