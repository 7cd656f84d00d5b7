from __future__ import annotations

import pytest
from pydantic import ValidationError

from callprice.core.config import Settings, get_settings
from callprice.core.container import _selector


def test_settings_read_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALLPRICE_COINGECKO_API_KEY", "cg-key")
    monkeypatch.setenv("CALLPRICE_TEST_MODE", "true")
    monkeypatch.setenv("CALLPRICE_MAX_CONCURRENT_QUERIES", "3")

    settings = Settings()

    assert settings.coingecko_api_key == "cg-key"
    assert settings.test_mode is True
    assert settings.max_concurrent_queries == 3


def test_settings_reject_nonsense(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALLPRICE_HTTP_TIMEOUT", "0")
    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def test_history_limits_come_from_settings() -> None:
    selector = _selector(Settings(coingecko_max_history_days=30, geckoterminal_max_history_days=7))
    assert selector.policy_for("coingecko").max_history.days == 30
    assert selector.policy_for("geckoterminal").max_history.days == 7
    assert selector.policy_for("yahoo").max_history is None
