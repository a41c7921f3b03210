"""Order-entry cart kept in the Django session."""
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class CartLine:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self):
        return self.unit_price * self.quantity


def cart_total(lines):
    return sum((line.subtotal for line in lines), Decimal("0.00"))


class Cart:
    SESSION_KEY = "cart"

    def __init__(self, session):
        self.session = session
        # product id -> quantity
        self.quantities = dict(session.get(self.SESSION_KEY, {}))

    def __len__(self):
        return sum(self.quantities.values())

    @property
    def is_empty(self):
        return not self.quantities

    def add(self, product_id, quantity=1):
        self.quantities[product_id] = self.quantities.get(product_id, 0) + quantity
        self.save()

    def remove(self, product_id):
        """Take one unit off a line, dropping the line at zero."""
        remaining = self.quantities.get(product_id, 0) - 1
        if remaining > 0:
            self.quantities[product_id] = remaining
        else:
            self.quantities.pop(product_id, None)
        self.save()

    def clear(self):
        self.quantities = {}
        self.save()

    def save(self):
        self.session[self.SESSION_KEY] = self.quantities
        self.session.modified = True

    def lines(self, products):
        """
        Priced lines for the products still on the menu. Prices are taken
        from the current menu, not from the moment the product was added.
        """
        by_id = {p.id: p for p in products}
        return [
            CartLine(product_id=pid, name=by_id[pid].name, quantity=qty, unit_price=by_id[pid].price)
            for pid, qty in self.quantities.items()
            if pid in by_id
        ]
