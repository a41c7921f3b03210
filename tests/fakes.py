"""In-memory stand-ins for the backend clients, with the same method signatures."""
import copy
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal

from aws_backend.exceptions import (
    BackendError,
    ConditionFailed,
    ForeignKeyViolation,
    ProcedureError,
)
from aws_config import (
    INGREDIENTS_TABLE,
    ORDER_ITEMS_TABLE,
    ORDERS_TABLE,
    PRODUCTS_TABLE,
    PROFILES_TABLE,
    RECIPE_LINES_TABLE,
    TABLE_KEYS,
)


class FakeDynamoDB:
    def __init__(self):
        self.tables = defaultdict(dict)
        # method names that raise BackendError, e.g. {"put_many"}
        self.failing = set()

    def _fail(self, op):
        if op in self.failing:
            raise BackendError(f"simulated {op} failure")

    def _key(self, table, item):
        partition_key, sort_key = TABLE_KEYS[table]
        return (item[partition_key], item[sort_key] if sort_key else None)

    def rows(self, table):
        return list(self.tables[table].values())

    def put(self, table, item, condition=None):
        self._fail("put")
        key = self._key(table, item)
        # only attribute_not_exists conditions are used with put
        if condition is not None and key in self.tables[table]:
            raise ConditionFailed(f"{table}: condition failed")
        self.tables[table][key] = copy.deepcopy(item)

    def get(self, table, key):
        self._fail("get")
        return copy.deepcopy(self.tables[table].get(self._key(table, key), {}))

    def scan(self, table, **filters):
        self._fail("scan")
        return [
            copy.deepcopy(row) for row in self.tables[table].values()
            if all(row.get(name) == value for name, value in filters.items())
        ]

    def query(self, table, key_name, value):
        self._fail("query")
        return [copy.deepcopy(row) for row in self.tables[table].values() if row.get(key_name) == value]

    def update(self, table, key, values, condition=None):
        self._fail("update")
        row = self.tables[table].get(self._key(table, key))
        if row is None:
            raise ConditionFailed(f"{table}: condition failed")
        if condition is not None:
            expression = condition.get_expression()
            attr, expected = expression["values"]
            if expression["operator"] != "=" or row.get(attr.name) != expected:
                raise ConditionFailed(f"{table}: condition failed")
        row.update(copy.deepcopy(values))

    def delete(self, table, key):
        self._fail("delete")
        self.tables[table].pop(self._key(table, key), None)

    def check_unreferenced(self, table, key, references):
        row_id = next(iter(key.values()))
        for ref_table, attribute in references:
            if self.scan(ref_table, **{attribute: row_id}):
                raise ForeignKeyViolation(table, row_id, ref_table)

    def delete_unreferenced(self, table, key, references):
        self.check_unreferenced(table, key, references)
        return self.delete(table, key)

    def put_many(self, table, items):
        self._fail("put_many")
        for item in items:
            self.tables[table][self._key(table, item)] = copy.deepcopy(item)

    def delete_many(self, table, keys):
        self._fail("delete_many")
        for key in keys:
            self.tables[table].pop(self._key(table, key), None)


class FakeS3:
    def __init__(self):
        self.uploads = {}
        self.fail = False

    def upload(self, bucket, key, fileobj, content_type=None):
        if self.fail:
            raise BackendError("simulated upload failure")
        self.uploads[key] = fileobj
        return self.public_url(bucket, key)

    def public_url(self, bucket, key):
        return f"https://{bucket}.s3.us-east-1.amazonaws.com/{key}"


class FakeOrderProcedure:
    """Behaves like the order Lambda: all-or-nothing against FakeDynamoDB."""

    def __init__(self, ddb):
        self.ddb = ddb
        self.calls = []
        self.fail = False

    def invoke(self, function_name, payload):
        self.calls.append(payload)
        if self.fail:
            raise BackendError("simulated network failure")

        needed = defaultdict(Decimal)
        for line in payload["items"]:
            if not self.ddb.tables[PRODUCTS_TABLE].get((line["product_id"], None)):
                raise ProcedureError("unknown product", code="unknown_product")
            for row in self.ddb.query(RECIPE_LINES_TABLE, "product_id", line["product_id"]):
                needed[row["ingredient_id"]] += Decimal(row["quantity"]) * line["quantity"]

        stock = self.ddb.tables[INGREDIENTS_TABLE]
        for ingredient_id, amount in needed.items():
            row = stock.get((ingredient_id, None))
            if row is None:
                raise ProcedureError("missing ingredient", code="unknown_ingredient")
            if row["quantity"] < amount:
                raise ProcedureError("not enough stock", code="insufficient_stock")

        for ingredient_id, amount in needed.items():
            stock[(ingredient_id, None)]["quantity"] -= amount

        order_id = str(uuid.uuid4())
        self.ddb.tables[ORDERS_TABLE][(order_id, None)] = {
            "id": order_id,
            "customer_name": payload["customer_name"],
            "status": "Pending",
            "total": Decimal(payload["total"]),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        for line in payload["items"]:
            self.ddb.tables[ORDER_ITEMS_TABLE][(order_id, line["product_id"])] = {
                "order_id": order_id,
                "product_id": line["product_id"],
                "quantity": line["quantity"],
                "unit_price": Decimal(line["unit_price"]),
            }
        return {"ok": True, "order_id": order_id}


class FakeBackend:
    def __init__(self):
        self.ddb = FakeDynamoDB()
        self.s3 = FakeS3()
        self.functions = FakeOrderProcedure(self.ddb)

    def add_ingredient(self, ingredient_id, name, quantity, min_quantity, unit="un"):
        self.ddb.tables[INGREDIENTS_TABLE][(ingredient_id, None)] = {
            "id": ingredient_id,
            "name": name,
            "quantity": Decimal(str(quantity)),
            "min_quantity": Decimal(str(min_quantity)),
            "unit": unit,
        }

    def add_product(self, product_id, name, price, recipe, description=""):
        self.ddb.tables[PRODUCTS_TABLE][(product_id, None)] = {
            "id": product_id,
            "name": name,
            "description": description or name,
            "price": Decimal(price),
            "image_url": "",
        }
        for ingredient_id, quantity in recipe.items():
            self.ddb.tables[RECIPE_LINES_TABLE][(product_id, ingredient_id)] = {
                "product_id": product_id,
                "ingredient_id": ingredient_id,
                "quantity": Decimal(str(quantity)),
            }

    def add_order(self, order_id, status="Pending", items=(), total="0", created_at=None):
        self.ddb.tables[ORDERS_TABLE][(order_id, None)] = {
            "id": order_id,
            "customer_name": "Balcão",
            "status": status,
            "total": Decimal(total),
            "created_at": created_at or datetime.now(timezone.utc).isoformat(),
        }
        for product_id, quantity, unit_price in items:
            self.ddb.tables[ORDER_ITEMS_TABLE][(order_id, product_id)] = {
                "order_id": order_id,
                "product_id": product_id,
                "quantity": quantity,
                "unit_price": Decimal(unit_price),
            }

    def set_profile(self, user_id, role, email=""):
        self.ddb.tables[PROFILES_TABLE][(str(user_id), None)] = {
            "id": str(user_id), "email": email, "role": role,
        }
