"""
Hosted payment gateway client.

Outbound protocol only:
- POST {base}/payments                 -> {url, paymentId} | {error}
- GET  {base}/payments/{id}/status     -> {status}

The client knows nothing about orders beyond the reference it forwards;
deciding what a completed payment means is the reconciliation engine's job.
Failures are raised as GatewayError and never retried here.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from ..config import AppConfig
from ..errors import GatewayError
from ..models.enums import SessionStatus
from ..utils.money import quantize
from .logging import log_event

# gateway vocabulary -> session lattice
STATUS_MAP = {
    "created": SessionStatus.CREATED,
    "pending": SessionStatus.PENDING,
    "processing": SessionStatus.PENDING,
    "completed": SessionStatus.COMPLETED,
    "succeeded": SessionStatus.COMPLETED,
    "paid": SessionStatus.COMPLETED,
    "failed": SessionStatus.FAILED,
    "canceled": SessionStatus.FAILED,
    "cancelled": SessionStatus.FAILED,
    "expired": SessionStatus.FAILED,
}


def normalize_gateway_status(value: Any) -> SessionStatus:
    status = STATUS_MAP.get(str(value or "").strip().lower())
    if status is None:
        raise GatewayError(f"unknown payment status {value!r}", kind=GatewayError.VALIDATION)
    return status


@dataclass(frozen=True)
class PaymentCustomer:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class HostedPayment:
    payment_id: str
    url: str
    status: SessionStatus = SessionStatus.CREATED


class PaymentGateway:
    """requests-based client for the hosted payment page provider."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: int = 15,
        redirect_url: Optional[str] = None,
        webhook_url: Optional[str] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.redirect_url = redirect_url
        self.webhook_url = webhook_url
        self._http = http or requests.Session()

    @classmethod
    def from_config(cls, config: AppConfig, http: Optional[requests.Session] = None) -> "PaymentGateway":
        return cls(
            config.gateway_base_url,
            config.gateway_api_key,
            timeout=config.gateway_timeout_seconds,
            redirect_url=config.payment_redirect_url,
            webhook_url=config.payment_webhook_url,
            http=http,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-BUSINESS-API-KEY": self.api_key or "",
        }

    def create_payment_session(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        purpose: str,
        customer: PaymentCustomer,
    ) -> HostedPayment:
        if amount is None or amount <= 0:
            raise GatewayError("amount must be > 0", kind=GatewayError.VALIDATION)
        if not currency or len(currency) != 3:
            raise GatewayError("currency must be an ISO4217 code", kind=GatewayError.VALIDATION)
        if not customer.name or not customer.email:
            raise GatewayError("customer name and email are required", kind=GatewayError.VALIDATION)

        payload = {
            "amount": str(quantize(amount)),
            "currency": currency.upper(),
            "purpose": purpose,
            "name": customer.name,
            "email": customer.email,
            "phone": customer.phone or "",
            "reference_number": order_id,
        }
        if self.redirect_url:
            payload["redirect_url"] = self.redirect_url
        if self.webhook_url:
            payload["webhook"] = self.webhook_url

        data = self._request("POST", f"{self.base_url}/payments", json=payload)
        payment_id = data.get("paymentId") or data.get("payment_id") or data.get("id")
        url = data.get("url")
        if not payment_id or not url:
            raise GatewayError("gateway response missing paymentId or url", kind=GatewayError.VALIDATION)
        log_event("info", "payment.gateway_session_created", order_id=order_id, payment_id=payment_id)
        return HostedPayment(payment_id=str(payment_id), url=str(url))

    def check_status(self, payment_id: str) -> SessionStatus:
        """Read the gateway's current status. Safe to call any number of times."""
        if not payment_id:
            raise GatewayError("payment_id required", kind=GatewayError.VALIDATION)
        data = self._request("GET", f"{self.base_url}/payments/{payment_id}/status")
        return normalize_gateway_status(data.get("status"))

    def _request(self, method: str, url: str, **kwargs) -> Dict:
        try:
            response = self._http.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            log_event("warning", "payment.gateway_timeout", method=method, url=url)
            raise GatewayError("payment gateway timed out", kind=GatewayError.NETWORK)
        except requests.exceptions.RequestException as exc:
            log_event("warning", "payment.gateway_unreachable", method=method, url=url, error=type(exc).__name__)
            raise GatewayError(f"payment gateway unreachable: {exc}", kind=GatewayError.NETWORK)

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 500:
            raise GatewayError(f"payment gateway error: HTTP {response.status_code}", kind=GatewayError.NETWORK)
        if response.status_code >= 400:
            message = self._error_message(data) or f"HTTP {response.status_code}"
            kind = GatewayError.VALIDATION if response.status_code in (400, 422) else GatewayError.REJECTED
            log_event("warning", "payment.gateway_rejected", url=url, http_status=response.status_code, message=message)
            raise GatewayError(f"payment gateway refused request: {message}", kind=kind)
        if not isinstance(data, dict):
            raise GatewayError("payment gateway returned a non-JSON body", kind=GatewayError.VALIDATION)
        if data.get("error"):
            raise GatewayError(f"payment gateway refused request: {self._error_message(data)}", kind=GatewayError.REJECTED)
        return data

    @staticmethod
    def _error_message(data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        error = data.get("error") or data.get("message")
        if isinstance(error, dict):
            error = error.get("message")
        return str(error) if error else None
