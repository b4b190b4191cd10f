import os
from dataclasses import dataclass
from pathlib import Path
import json
from typing import Optional

from dotenv import load_dotenv


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    currency: str
    gateway_base_url: str
    gateway_api_key: str
    gateway_timeout_seconds: int
    payment_redirect_url: str
    payment_webhook_url: str
    payment_session_ttl_minutes: int

    def get_payments_url(self) -> str:
        base = self.gateway_base_url.rstrip("/")
        return f"{base}/payments"


def validate_currency(value: Optional[str]) -> str:
    v = (value or "MYR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_positive(value, field: str, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an integer")
    if v <= 0:
        raise ValueError(f"{field} must be > 0")
    return v


def _load_settings_file(path: Optional[Path] = None) -> dict:
    try:
        path = path or Path(__file__).resolve().parents[1] / "data" / "settings.json"
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pass
    return {}


def load_env(settings_path: Optional[Path] = None) -> AppConfig:
    # data/settings.json wins, .env / process environment is the fallback
    load_dotenv()
    s = _load_settings_file(settings_path)

    def pick(key: str, default: Optional[str] = None) -> Optional[str]:
        return s.get(key) or os.getenv(key) or default

    return AppConfig(
        database_url=pick("DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=pick("SECRET_KEY", "dev_secret"),
        log_level=(pick("LOG_LEVEL", "INFO") or "INFO").upper(),
        currency=validate_currency(pick("CURRENCY")),
        gateway_base_url=(pick("GATEWAY_BASE_URL", "https://api.sandbox.hit-pay.com/v1")).rstrip("/"),
        gateway_api_key=pick("GATEWAY_API_KEY", ""),
        gateway_timeout_seconds=validate_positive(pick("GATEWAY_TIMEOUT_SECONDS"), "GATEWAY_TIMEOUT_SECONDS", 15),
        payment_redirect_url=pick("PAYMENT_REDIRECT_URL", "http://127.0.0.1:5173/payment-success"),
        payment_webhook_url=pick("PAYMENT_WEBHOOK_URL", "http://127.0.0.1:5000/api/payments/callback"),
        payment_session_ttl_minutes=validate_positive(
            pick("PAYMENT_SESSION_TTL_MINUTES"), "PAYMENT_SESSION_TTL_MINUTES", 60
        ),
    )
