"""Restaurant ordering, reservation and payment reconciliation Flask application."""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify

from common.auth import IdentityProvider, JwtIdentityProvider
from common.config import AppConfig, load_env
from common.db.session import init_db, make_engine, make_session_factory
from common.errors import RestaurantError
from common.services.cart_service import CartService
from common.services.checkout_service import CheckoutService
from common.services.history_service import HistoryService
from common.services.logging import log_event, set_log_level
from common.services.order_service import OrderService
from common.services.payment_gateway import PaymentGateway
from common.services.payment_service import PaymentService
from common.services.reconciliation_service import ReconciliationEngine
from common.services.reservation_service import ReservationService
from routes import api, staff


def build_components(config: AppConfig, session_factory, gateway, identity: IdentityProvider) -> dict:
    carts = CartService(session_factory)
    orders = OrderService(session_factory)
    reservations = ReservationService(session_factory)
    payments = PaymentService(gateway, session_factory, ttl_minutes=config.payment_session_ttl_minutes)
    reconciliation = ReconciliationEngine(gateway, orders, carts, session_factory)
    return {
        "identity": identity,
        "cart_service": carts,
        "order_service": orders,
        "reservation_service": reservations,
        "payment_service": payments,
        "reconciliation": reconciliation,
        "checkout_service": CheckoutService(carts, orders, payments, reconciliation, config.currency, session_factory),
        "history_service": HistoryService(reservations, orders),
    }


def create_app(
    config: Optional[AppConfig] = None,
    *,
    gateway=None,
    identity: Optional[IdentityProvider] = None,
) -> Flask:
    config = config or load_env()
    set_log_level(config.log_level)
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_CONFIG"] = config

    engine = make_engine(config.database_url)
    init_db(engine)
    session_factory = make_session_factory(engine)

    components = build_components(
        config,
        session_factory,
        gateway or PaymentGateway.from_config(config),
        identity or JwtIdentityProvider(config.secret_key),
    )
    app.extensions["restaurant_components"] = components

    app.register_blueprint(api.api_bp)
    app.register_blueprint(staff.staff_bp)

    @app.errorhandler(RestaurantError)
    def handle_domain_error(exc: RestaurantError):
        level = "warning" if exc.http_status >= 500 else "info"
        log_event(level, "request.failed", error=type(exc).__name__, message=exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=False)


if __name__ == "__main__":
    main()
