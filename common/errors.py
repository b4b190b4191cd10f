"""Error taxonomy shared by services and routes.

Every error is a per-request failure: routes translate them into JSON
responses, nothing here is fatal to the process.
"""
from dataclasses import dataclass
from typing import Optional


class RestaurantError(Exception):
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(RestaurantError):
    """Malformed or missing input. Never retried."""

    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(RestaurantError):
    http_status = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class AuthenticationRequired(RestaurantError):
    http_status = 401

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class PermissionDenied(RestaurantError):
    http_status = 403


class InvalidTransition(RestaurantError):
    """Illegal state-machine move; carries the current and requested state."""

    http_status = 409

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'")
        self.entity = entity
        self.current = current
        self.target = target

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"current": self.current, "target": self.target})
        return data


class GatewayError(RestaurantError):
    """Failure creating or querying a payment at the hosted gateway.

    kind is one of ``network``, ``validation`` or ``rejected``; only network
    failures are transient and worth retrying by the caller.
    """

    NETWORK = "network"
    VALIDATION = "validation"
    REJECTED = "rejected"

    def __init__(self, message: str, kind: str = NETWORK):
        super().__init__(message)
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind == self.NETWORK

    @property
    def http_status(self) -> int:  # type: ignore[override]
        return 502 if self.transient else 402

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"kind": self.kind, "transient": self.transient})
        return data


@dataclass(frozen=True)
class ReconciliationConflict:
    """A terminal signal that disagreed with the already-recorded terminal status.

    Recorded and logged for manual review, never raised.
    """

    payment_id: str
    recorded: str
    reported: str
    source: str

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "recorded": self.recorded,
            "reported": self.reported,
            "source": self.source,
        }
