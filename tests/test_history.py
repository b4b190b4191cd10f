from decimal import Decimal

from common.services.history_service import build_customer_history, build_restaurant_summary


def test_numeric_strings_are_summed_not_concatenated():
    reservations = [{"id": "r-1", "status": "confirmed"}]
    orders = [
        {"id": "o-1", "reservation_id": "r-1", "total_amount": "155.96"},
        {"id": "o-2", "reservation_id": "r-1", "total_amount": "0"},
    ]
    history = build_customer_history(reservations, orders)
    view = history.reservations[0]
    assert view.total_order_amount == Decimal("155.96")
    assert len(view.orders) == 2
    assert view.to_dict()["total_order_amount"] == 155.96


def test_orders_without_reservation_listed_separately():
    reservations = [{"id": "r-1"}, {"id": "r-2"}]
    orders = [
        {"id": "o-1", "reservation_id": "r-1", "total_amount": 10},
        {"id": "o-2", "reservation_id": None, "total_amount": "5.50"},
        {"id": "o-3", "reservation_id": "r-unknown", "total_amount": "1"},
    ]
    history = build_customer_history(reservations, orders)
    assert [v.total_order_amount for v in history.reservations] == [Decimal("10.00"), Decimal("0.00")]
    assert [o["id"] for o in history.standalone_orders] == ["o-2", "o-3"]


def test_history_from_database(services, customer, fill_cart):
    reservation = services["reservation_service"].create_reservation(
        customer, {"restaurant_id": "r1", "date": "2026-11-02", "time": "12:00", "party_size": 2}
    )
    fill_cart(customer)
    services["checkout_service"].checkout(customer, "counter", reservation_id=reservation.id)
    fill_cart(customer)
    services["checkout_service"].checkout(customer, "counter", reservation_id=reservation.id)
    fill_cart(customer)
    services["checkout_service"].checkout(customer, "counter")

    history = services["history_service"].customer_history(customer.user_id)
    assert len(history.reservations) == 1
    assert history.reservations[0].total_order_amount == Decimal("136.00")
    assert len(history.standalone_orders) == 1
    data = history.to_dict()
    assert data["reservations"][0]["id"] == reservation.id
    assert data["orders"][0]["total_amount"] == 68.0


def test_restaurant_summary_counts_and_revenue():
    reservations = [{"status": "pending"}, {"status": "cancellation_requested"}, {"status": "confirmed"}]
    orders = [
        {"status": "confirmed", "payment_status": "paid", "total_amount": "68.00"},
        {"status": "pending", "payment_status": "unpaid", "total_amount": "12.50"},
        {"status": "cancelled", "payment_status": "unpaid", "total_amount": "99"},
    ]
    summary = build_restaurant_summary(reservations, orders)
    assert summary["reservations"]["pending"] == 1
    assert summary["reservations"]["no_show"] == 0
    assert summary["pending_cancellation_requests"] == 1
    assert summary["orders"]["cancelled"] == 1
    assert summary["paid_revenue"] == 68.0
    assert summary["outstanding_amount"] == 12.5
