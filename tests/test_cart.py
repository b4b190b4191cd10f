from decimal import Decimal

from common.services.cart_service import Cart, MenuItem


def test_adding_same_item_twice_merges_quantity():
    cart = Cart()
    cart.add_item(MenuItem("1", "Satay", Decimal("12.50")), 2)
    cart.add_item(MenuItem("1", "Satay", Decimal("12.50")), 3)
    assert len(cart.items()) == 1
    assert cart.lines["1"].quantity == 5
    assert cart.subtotal() == Decimal("62.50")


def test_set_quantity_zero_removes_entry():
    cart = Cart()
    cart.add_item(MenuItem("1", "Satay", Decimal("12.50")))
    cart.set_quantity("1", 0)
    assert cart.is_empty()


def test_quantities_are_clamped_not_rejected():
    cart = Cart()
    cart.add_item(MenuItem("1", "Satay", Decimal("10")), 0)
    assert cart.lines["1"].quantity == 1
    cart.set_quantity("1", -4)
    assert cart.is_empty()
    cart.set_quantity("missing", 3)
    cart.remove_item("missing")
    assert cart.is_empty()


def test_subtotal_of_scenario_cart():
    cart = Cart()
    cart.add_item(MenuItem("1", "Nasi Lemak", Decimal("25")), 2)
    cart.add_item(MenuItem("2", "Teh Tarik", Decimal("18")), 1)
    assert cart.subtotal() == Decimal("68")


def test_string_prices_are_parsed():
    cart = Cart()
    cart.add_item(MenuItem("1", "Roti", "1.10"), 3)
    assert cart.subtotal() == Decimal("3.30")


def test_cart_service_persists_merges_and_clears(services, customer):
    carts = services["cart_service"]
    carts.add_item(customer.user_id, "r1", MenuItem("1", "Satay", Decimal("12.50")), 1)
    carts.add_item(customer.user_id, "r1", MenuItem("1", "Satay", Decimal("12.50")), 1)
    cart = carts.get_cart(customer.user_id)
    assert cart.restaurant_id == "r1"
    assert cart.lines["1"].quantity == 2

    cart = carts.set_quantity(customer.user_id, "1", 5)
    assert cart.lines["1"].quantity == 5
    assert carts.get_cart(customer.user_id).subtotal() == Decimal("62.50")

    assert carts.clear(customer.user_id) == 1
    assert carts.get_cart(customer.user_id).is_empty()


def test_cart_service_remove_item(services, customer):
    carts = services["cart_service"]
    carts.add_item(customer.user_id, "r1", MenuItem("1", "Satay", Decimal("12.50")))
    carts.add_item(customer.user_id, "r1", MenuItem("2", "Cendol", Decimal("6")))
    cart = carts.remove_item(customer.user_id, "1")
    assert list(cart.lines) == ["2"]


def test_switching_restaurant_starts_new_cart(services, customer):
    carts = services["cart_service"]
    carts.add_item(customer.user_id, "r1", MenuItem("1", "Satay", Decimal("12.50")))
    cart = carts.add_item(customer.user_id, "r2", MenuItem("9", "Dim Sum", Decimal("8")))
    assert cart.restaurant_id == "r2"
    assert list(carts.get_cart(customer.user_id).lines) == ["9"]


def test_carts_are_isolated_per_customer(services, customer, other_customer):
    carts = services["cart_service"]
    carts.add_item(customer.user_id, "r1", MenuItem("1", "Satay", Decimal("12.50")))
    assert carts.get_cart(other_customer.user_id).is_empty()
