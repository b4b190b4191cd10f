import json

import pytest

from common.config import load_env, validate_currency


def test_defaults(monkeypatch, tmp_path):
    for key in ("CURRENCY", "PAYMENT_SESSION_TTL_MINUTES", "GATEWAY_BASE_URL", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    cfg = load_env(tmp_path / "missing.json")
    assert cfg.currency == "MYR"
    assert cfg.payment_session_ttl_minutes == 60
    assert cfg.gateway_timeout_seconds > 0
    assert cfg.get_payments_url().endswith("/payments")


def test_settings_file_wins_over_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CURRENCY", "SGD")
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"CURRENCY": "usd", "GATEWAY_BASE_URL": "https://pay.test/v1/"}), encoding="utf-8")
    cfg = load_env(path)
    assert cfg.currency == "USD"
    assert cfg.gateway_base_url == "https://pay.test/v1"


def test_environment_used_when_file_silent(monkeypatch, tmp_path):
    monkeypatch.setenv("PAYMENT_SESSION_TTL_MINUTES", "15")
    cfg = load_env(tmp_path / "missing.json")
    assert cfg.payment_session_ttl_minutes == 15


@pytest.mark.parametrize("value", ["0", "-5", "soon"])
def test_invalid_ttl_rejected(monkeypatch, tmp_path, value):
    monkeypatch.setenv("PAYMENT_SESSION_TTL_MINUTES", value)
    with pytest.raises(ValueError):
        load_env(tmp_path / "missing.json")


def test_currency_validation():
    assert validate_currency(" eur ") == "EUR"
    with pytest.raises(ValueError):
        validate_currency("EURO")
