import logging

import pytest

from env_validation import ConfigurationError, get_env_bool, load_insight_settings, validate_environment


def test_defaults_without_environment():
    settings = load_insight_settings()

    assert settings.openai_api_key is None
    assert settings.huggingface_api_key is None
    assert settings.openai_api_url == "https://api.openai.com/v1/chat/completions"
    assert settings.provider_timeout == 8.0
    assert settings.fallback_timeout == 10.0
    assert settings.cache_ttl == 300.0
    assert settings.providers_enabled is True
    assert settings.configured_providers == 0


def test_blank_keys_count_as_missing(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf-token")

    settings = load_insight_settings()
    assert settings.openai_api_key is None
    assert settings.configured_providers == 1


def test_invalid_float_falls_back_to_default(monkeypatch, caplog):
    monkeypatch.setenv("INSIGHT_CACHE_TTL", "five minutes")

    with caplog.at_level(logging.WARNING):
        settings = load_insight_settings()

    assert settings.cache_ttl == 300.0
    assert "INSIGHT_CACHE_TTL" in caplog.text


def test_validate_environment_without_keys_warns(caplog):
    with caplog.at_level(logging.WARNING):
        settings = validate_environment()

    assert settings.configured_providers == 0
    assert "OPENAI_API_KEY" in caplog.text
    assert "HUGGINGFACE_API_KEY" in caplog.text


def test_invalid_url_raises(monkeypatch):
    monkeypatch.setenv("OPENAI_API_URL", "api.openai.com/v1/chat/completions")

    with pytest.raises(ConfigurationError, match="OPENAI_API_URL"):
        validate_environment()


@pytest.mark.parametrize("var", ["INSIGHT_PROVIDER_TIMEOUT", "INSIGHT_FALLBACK_TIMEOUT", "INSIGHT_CACHE_TTL"])
def test_non_positive_durations_raise(monkeypatch, var):
    monkeypatch.setenv(var, "0")

    with pytest.raises(ConfigurationError, match=var):
        validate_environment()


@pytest.mark.parametrize(
    "raw,expected",
    [("1", True), ("TRUE", True), ("yes", True), ("on", True), ("0", False), ("off", False), ("nope", False)],
)
def test_get_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("INSIGHT_PROVIDERS_ENABLED", raw)
    assert get_env_bool("INSIGHT_PROVIDERS_ENABLED", default=not expected) is expected


def test_get_env_bool_default(monkeypatch):
    monkeypatch.delenv("PADHLO_UNSET_FLAG", raising=False)
    assert get_env_bool("PADHLO_UNSET_FLAG") is False
    assert get_env_bool("PADHLO_UNSET_FLAG", True) is True
