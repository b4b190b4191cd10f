"""Principals handed to the core by the identity collaborator.

Issuing credentials is somebody else's job; this module only turns a bearer
token into a ``Principal`` and answers role questions about it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import jwt

from .errors import AuthenticationRequired, PermissionDenied


class Role(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role
    restaurant_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_customer(self) -> bool:
        return self.role is Role.CUSTOMER

    def can_manage(self, restaurant_id: Optional[str]) -> bool:
        if self.role is Role.ADMIN:
            return True
        if self.role is Role.STAFF:
            return self.restaurant_id is not None and str(self.restaurant_id) == str(restaurant_id)
        return False

    def require_staff(self) -> "Principal":
        if self.role not in (Role.STAFF, Role.ADMIN):
            raise PermissionDenied("staff or admin role required")
        return self

    def require_customer(self) -> "Principal":
        if self.role is not Role.CUSTOMER:
            raise PermissionDenied("customer role required")
        return self


class IdentityProvider(Protocol):
    def verify(self, token: str) -> Principal:
        ...


class JwtIdentityProvider:
    """Validates HS256 bearer tokens minted by the identity service."""

    def __init__(self, secret: str, algorithms=("HS256",)):
        self._secret = secret
        self._algorithms = list(algorithms)

    def verify(self, token: str) -> Principal:
        if not token:
            raise AuthenticationRequired()
        try:
            claims = jwt.decode(token, self._secret, algorithms=self._algorithms)
        except jwt.PyJWTError as exc:
            raise AuthenticationRequired(f"invalid token: {exc}")
        try:
            role = Role(claims.get("role", Role.CUSTOMER.value))
        except ValueError:
            raise AuthenticationRequired("unknown role in token")
        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationRequired("token has no subject")
        restaurant_id = claims.get("restaurant_id")
        if role is Role.STAFF and restaurant_id is None:
            raise AuthenticationRequired("staff token has no restaurant_id")
        return Principal(
            user_id=str(user_id),
            role=role,
            restaurant_id=str(restaurant_id) if restaurant_id is not None else None,
            name=claims.get("name"),
            email=claims.get("email"),
            phone=claims.get("phone"),
        )


def bearer_token(header_value: Optional[str]) -> str:
    if not header_value:
        raise AuthenticationRequired()
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationRequired("expected 'Authorization: Bearer <token>'")
    return token.strip()
