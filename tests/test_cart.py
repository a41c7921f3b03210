from decimal import Decimal

from django.contrib.sessions.backends.signed_cookies import SessionStore

from pos.cart import Cart, cart_total
from pos.models import Product


MENU = [
    Product("x-salada", "X-Salada", "", Decimal("25.00")),
    Product("x-bacon", "X-Bacon", "", Decimal("28.00")),
]


def test_cart_total_for_two_salads_and_one_bacon():
    cart = Cart(SessionStore())
    cart.add("x-salada")
    cart.add("x-salada")
    cart.add("x-bacon")

    lines = cart.lines(MENU)

    assert {(l.name, l.quantity) for l in lines} == {("X-Salada", 2), ("X-Bacon", 1)}
    assert cart_total(lines) == Decimal("78.00")
    assert len(cart) == 3


def test_cart_survives_in_session():
    session = SessionStore()
    Cart(session).add("x-bacon")
    assert Cart(session).quantities == {"x-bacon": 1}


def test_remove_takes_one_unit_then_the_line():
    cart = Cart(SessionStore())
    cart.add("x-bacon", 2)

    cart.remove("x-bacon")
    assert cart.quantities == {"x-bacon": 1}
    cart.remove("x-bacon")
    assert cart.is_empty


def test_products_gone_from_menu_are_dropped():
    cart = Cart(SessionStore())
    cart.add("x-egg")
    cart.add("x-bacon")

    assert [l.product_id for l in cart.lines(MENU)] == ["x-bacon"]


def test_empty_cart_total_is_zero():
    assert cart_total([]) == Decimal("0.00")
