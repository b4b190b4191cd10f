from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional
from uuid import uuid4
from ..db.session import get_session, session_scope
from ..errors import ValidationError
from ..models.cart_item import CartItem
from ..utils.money import parse_decimal, quantize, to_json_number
from .logging import log_event


class MenuItem(NamedTuple):
    item_id: str
    name: str
    unit_price: Decimal


@dataclass
class CartLine:
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return quantize(self.unit_price * Decimal(self.quantity))

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "unit_price": to_json_number(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_json_number(self.line_total),
        }


@dataclass
class Cart:
    """In-memory cart: one line per item id, quantities clamped rather than rejected."""

    restaurant_id: Optional[str] = None
    lines: Dict[str, CartLine] = field(default_factory=dict)

    def add_item(self, item: MenuItem, qty: int = 1) -> CartLine:
        qty = max(int(qty or 1), 1)
        line = self.lines.get(item.item_id)
        if line:
            line.quantity += qty
        else:
            line = CartLine(item.item_id, item.name, parse_decimal(item.unit_price, "unit_price"), qty)
            self.lines[item.item_id] = line
        return line

    def remove_item(self, item_id: str) -> None:
        self.lines.pop(item_id, None)

    def set_quantity(self, item_id: str, qty: int) -> None:
        qty = int(qty or 0)
        if qty <= 0:
            self.remove_item(item_id)
            return
        line = self.lines.get(item_id)
        if line:
            line.quantity = qty

    def clear(self) -> None:
        self.lines.clear()
        self.restaurant_id = None

    def subtotal(self) -> Decimal:
        return quantize(sum((line.unit_price * Decimal(line.quantity) for line in self.lines.values()), Decimal("0")))

    def items(self) -> List[CartLine]:
        return list(self.lines.values())

    def is_empty(self) -> bool:
        return not self.lines

    def to_dict(self) -> Dict:
        return {
            "restaurant_id": self.restaurant_id,
            "items": [line.to_dict() for line in self.items()],
            "subtotal": to_json_number(self.subtotal()),
        }


class CartService:
    """Cart operations backed by DB, keyed by customer."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    @staticmethod
    def _rows(session, customer_id: str) -> List[CartItem]:
        return (
            session.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .order_by(CartItem.added_at, CartItem.id)
            .all()
        )

    @staticmethod
    def _to_cart(rows: List[CartItem]) -> Cart:
        cart = Cart(restaurant_id=rows[0].restaurant_id if rows else None)
        for it in rows:
            cart.lines[it.item_id] = CartLine(it.item_id, it.name, parse_decimal(it.unit_price, "unit_price"), it.quantity)
        return cart

    def get_cart(self, customer_id: str) -> Cart:
        with self._session_factory() as session:
            return self._to_cart(self._rows(session, customer_id))

    def add_item(self, customer_id: str, restaurant_id: str, item: MenuItem, qty: int = 1) -> Cart:
        if not customer_id:
            raise ValidationError("customer_id required", field="customer_id")
        if not item.item_id:
            raise ValidationError("item_id required", field="item_id")
        if not restaurant_id:
            raise ValidationError("restaurant_id required", field="restaurant_id")
        with self._session_factory() as session:
            rows = self._rows(session, customer_id)
            # one restaurant per cart: switching restaurants starts a fresh cart
            if rows and rows[0].restaurant_id != str(restaurant_id):
                for it in rows:
                    session.delete(it)
                session.flush()
                log_event("info", "cart.replaced", customer_id=customer_id, restaurant_id=restaurant_id)
                rows = []
            cart = self._to_cart(rows)
            cart.restaurant_id = str(restaurant_id)
            line = cart.add_item(item, qty)
            existing = next((it for it in rows if it.item_id == item.item_id), None)
            if existing:
                existing.quantity = line.quantity
            else:
                session.add(
                    CartItem(
                        id=str(uuid4()),
                        customer_id=customer_id,
                        restaurant_id=str(restaurant_id),
                        item_id=line.item_id,
                        name=line.name,
                        unit_price=line.unit_price,
                        quantity=line.quantity,
                    )
                )
            session.flush()
            log_event("info", "cart.item_added", customer_id=customer_id, item_id=item.item_id, quantity=line.quantity)
            return cart

    def set_quantity(self, customer_id: str, item_id: str, qty: int) -> Cart:
        with self._session_factory() as session:
            rows = self._rows(session, customer_id)
            cart = self._to_cart(rows)
            cart.set_quantity(item_id, qty)
            for it in rows:
                line = cart.lines.get(it.item_id)
                if line is None:
                    session.delete(it)
                else:
                    it.quantity = line.quantity
            session.flush()
            if cart.is_empty():
                cart.restaurant_id = None
            return cart

    def remove_item(self, customer_id: str, item_id: str) -> Cart:
        return self.set_quantity(customer_id, item_id, 0)

    def clear(self, customer_id: str, session=None) -> int:
        """Delete every line of the customer's cart; joins ``session`` when given."""
        with session_scope(self._session_factory, session) as session:
            return self._clear_in(session, customer_id)

    @staticmethod
    def _clear_in(session, customer_id: str) -> int:
        removed = (
            session.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .delete(synchronize_session=False)
        )
        if removed:
            log_event("info", "cart.cleared", customer_id=customer_id, lines=removed)
        return removed
