import pytest

from taskcal.settings import get_settings


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    monkeypatch.setenv("LEDGER_RETENTION_DAYS", "90")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = get_settings()
    assert settings.timezone == "Asia/Tokyo"
    assert settings.ledger_retention_days == 90
    assert settings.search_horizon_days == 730
    assert settings.log_level == "DEBUG"


def test_non_integer_setting_is_rejected(monkeypatch):
    monkeypatch.setenv("SEARCH_HORIZON_DAYS", "two years")
    with pytest.raises(RuntimeError):
        get_settings()
