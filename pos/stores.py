"""
Stores: service objects that own the app's view of the remote backend.

Every mutation goes to the backend first and then re-fetches the affected
collections; local snapshots are only replaced by fresh backend reads, so a
failed call leaves them as they were.
"""
import logging
import os
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from boto3.dynamodb.conditions import Attr
from django.core.cache import cache

from aws_backend.exceptions import (
    BackendError,
    ConditionFailed,
    ForeignKeyViolation,
    ProcedureError,
)
from aws_config import (
    INGREDIENTS_TABLE,
    ORDER_ITEMS_TABLE,
    ORDER_PROCESSOR_FUNCTION,
    ORDERS_TABLE,
    PRODUCTS_TABLE,
    PROFILES_TABLE,
    RECIPE_LINES_TABLE,
    S3_IMAGE_BUCKET,
    SETTINGS_TABLE,
    STOCK_MOVEMENTS_TABLE,
)

from .cart import cart_total
from .exceptions import (
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    NotFound,
    ReferenceInUse,
    StoreError,
)
from .models import (
    MOVEMENT_IN,
    MOVEMENT_OUT,
    Ingredient,
    Order,
    OrderItem,
    Product,
    Profile,
    RecipeLine,
    Settings,
    StockMovement,
    next_status,
)
from .permissions import CUSTOMER, GUEST, ROLES

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER = "Balcão"

# order refusals, other than a stock shortfall, worth telling the user about
PROCEDURE_MESSAGES = {
    "conflict": "Stock changed while the order was being placed. Please try again.",
    "unknown_ingredient": "A recipe on this order uses an ingredient that no longer exists.",
    "unknown_product": "A product on this order is no longer on the menu.",
}


def _now():
    return datetime.now(timezone.utc)


@contextmanager
def translate_errors(action, in_use_message=None):
    """Re-raise backend failures as StoreError with a user-facing message."""
    try:
        yield
    except ForeignKeyViolation as exc:
        logger.info("Cannot %s: %s", action, exc)
        raise ReferenceInUse(in_use_message) from exc
    except BackendError as exc:
        logger.exception("Failed to %s", action)
        raise StoreError(f"Could not {action}. Please try again.") from exc


@dataclass
class Shortfall:
    ingredient_id: str
    name: str
    unit: str
    required: Decimal
    available: Decimal


class SettingsStore:
    """Branding settings, fetched once per cache lifetime and refreshed on demand."""

    CACHE_KEY = "pos:settings"

    def __init__(self, backend, bucket=S3_IMAGE_BUCKET):
        self.ddb = backend.ddb
        self.s3 = backend.s3
        self.bucket = bucket

    def current(self):
        settings = cache.get(self.CACHE_KEY)
        if settings is None:
            settings = self.refresh()
        return settings

    def refresh(self):
        try:
            item = self.ddb.get(SETTINGS_TABLE, {"id": 1})
        except BackendError:
            # branding is cosmetic: keep whatever we had
            logger.exception("Failed to fetch settings")
            return cache.get(self.CACHE_KEY) or Settings()

        settings = Settings.from_item(item) if item else Settings()
        cache.set(self.CACHE_KEY, settings, None)
        return settings

    def save(self, brand_name, text_color, accent_color, background_image=None):
        if not brand_name or not brand_name.strip():
            raise InvalidInput("The brand name is required.")

        image_url = self.current().background_image_url
        if background_image is not None:
            ext = os.path.splitext(background_image.name)[1].lstrip(".") or "png"
            key = f"bg-{int(time.time() * 1000)}.{ext}"
            with translate_errors("upload the background image"):
                image_url = self.s3.upload(
                    self.bucket, key, background_image,
                    getattr(background_image, "content_type", None),
                )

        settings = Settings(
            brand_name=brand_name.strip(),
            text_color=text_color,
            accent_color=accent_color,
            background_image_url=image_url,
        )
        with translate_errors("save the settings"):
            self.ddb.put(SETTINGS_TABLE, settings.to_item())
        logger.info("Settings saved for %s", settings.brand_name)
        return self.refresh()


class IdentityStore:
    """Resolves the signed-in user's role from the profile table."""

    # any lookup failure or missing profile resolves to the most restricted
    # signed-in role rather than an error
    FALLBACK_ROLE = CUSTOMER

    def __init__(self, backend):
        self.ddb = backend.ddb

    def resolve_role(self, user):
        if user is None or not user.is_authenticated:
            return GUEST
        try:
            item = self.ddb.get(PROFILES_TABLE, {"id": str(user.pk)})
        except BackendError:
            logger.exception("Role lookup failed for user %s, using %s", user.pk, self.FALLBACK_ROLE)
            return self.FALLBACK_ROLE

        role = item.get("role") if item else None
        if not role:
            return self.FALLBACK_ROLE
        return role

    def ensure_profile(self, user):
        """Create a customer profile on first sign-in; never fails the login."""
        try:
            self.ddb.put(
                PROFILES_TABLE,
                {"id": str(user.pk), "email": user.email or user.get_username(), "role": CUSTOMER},
                condition=Attr("id").not_exists(),
            )
            logger.info("Created profile for user %s", user.pk)
        except ConditionFailed:
            pass
        except BackendError:
            logger.exception("Could not create profile for user %s", user.pk)

    def list_profiles(self):
        with translate_errors("load the team"):
            items = self.ddb.scan(PROFILES_TABLE)
        return sorted((Profile.from_item(i) for i in items), key=lambda p: p.email.lower())

    def set_role(self, user_id, role):
        if role not in ROLES:
            raise InvalidInput(f"Unknown role: {role}")
        try:
            self.ddb.update(PROFILES_TABLE, {"id": str(user_id)}, {"role": role})
        except ConditionFailed as exc:
            raise NotFound("That team member no longer exists.") from exc
        except BackendError as exc:
            logger.exception("Failed to change the role of %s", user_id)
            raise StoreError("Could not change the role. Please try again.") from exc
        logger.info("User %s is now %s", user_id, role)

    def assign_role(self, user, role):
        """Write the user's profile with `role`, creating it if missing."""
        if role not in ROLES:
            raise InvalidInput(f"Unknown role: {role}")
        profile = Profile(id=str(user.pk), email=user.email or user.get_username(), role=role)
        with translate_errors("assign the role"):
            self.ddb.put(PROFILES_TABLE, profile.to_item())
        logger.info("User %s assigned %s", user.pk, role)
        return profile


class StockStore:
    """Ingredients, menu, orders and stock movements."""

    def __init__(self, backend, bucket=S3_IMAGE_BUCKET, order_function=ORDER_PROCESSOR_FUNCTION):
        self.ddb = backend.ddb
        self.s3 = backend.s3
        self.functions = backend.functions
        self.bucket = bucket
        self.order_function = order_function

        self.ingredients = []
        self.products = []
        self.orders = []
        self.movements = []

    # ------------------------------------------------------------------
    # fetching
    # ------------------------------------------------------------------
    def fetch_ingredients(self):
        with translate_errors("load ingredients"):
            items = self.ddb.scan(INGREDIENTS_TABLE)
        self.ingredients = sorted(
            (Ingredient.from_item(i) for i in items), key=lambda i: i.name.lower()
        )
        return self.ingredients

    def fetch_products(self):
        with translate_errors("load the menu"):
            items = self.ddb.scan(PRODUCTS_TABLE)
            lines = self.ddb.scan(RECIPE_LINES_TABLE)

        recipes = defaultdict(list)
        for line in lines:
            recipes[line["product_id"]].append(RecipeLine.from_item(line))
        self.products = sorted(
            (Product.from_item(i, recipes.get(i["id"])) for i in items),
            key=lambda p: p.name.lower(),
        )
        return self.products

    def fetch_orders(self):
        with translate_errors("load orders"):
            items = self.ddb.scan(ORDERS_TABLE)
            lines = self.ddb.scan(ORDER_ITEMS_TABLE)

        by_order = defaultdict(list)
        for line in lines:
            by_order[line["order_id"]].append(OrderItem.from_item(line))
        orders = [Order.from_item(i, by_order.get(i["id"])) for i in items]
        orders.sort(key=lambda o: o.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        self.orders = orders
        return self.orders

    def fetch_movements(self, limit=50):
        with translate_errors("load stock movements"):
            items = self.ddb.scan(STOCK_MOVEMENTS_TABLE)
        movements = [StockMovement.from_item(i) for i in items]
        movements.sort(key=lambda m: m.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        self.movements = movements[:limit] if limit else movements
        return self.movements

    def refresh(self, *collections):
        """
        Re-fetch the named collections ("ingredients", "products", "orders",
        "movements"), or all of them.
        """
        for name in collections or ("ingredients", "products", "orders", "movements"):
            getattr(self, f"fetch_{name}")()

    def _refresh_after_write(self, *collections):
        # the write already happened; a failed re-read only leaves stale data
        try:
            self.refresh(*collections)
        except StoreError:
            logger.warning("Refresh of %s failed after a successful write", collections)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def product(self, product_id):
        for product in self.products:
            if product.id == product_id:
                return product
        raise NotFound("That product no longer exists.")

    def ingredient(self, ingredient_id):
        for ingredient in self.ingredients:
            if ingredient.id == ingredient_id:
                return ingredient
        raise NotFound("That ingredient no longer exists.")

    def product_names(self):
        return {p.id: p.name for p in self.products}

    def ingredient_names(self):
        return {i.id: i.name for i in self.ingredients}

    # ------------------------------------------------------------------
    # orders
    # ------------------------------------------------------------------
    def stock_shortfalls(self, lines):
        """
        Ingredients whose recorded stock does not cover the cart, summed
        over all lines. Advisory only; the order procedure has the final say.
        """
        products = {p.id: p for p in self.products}
        needed = defaultdict(Decimal)
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                continue
            for recipe_line in product.recipe:
                needed[recipe_line.ingredient_id] += recipe_line.quantity * line.quantity

        stock = {i.id: i for i in self.ingredients}
        shortfalls = []
        for ingredient_id, required in needed.items():
            ingredient = stock.get(ingredient_id)
            available = ingredient.quantity if ingredient else Decimal("0")
            if available < required:
                shortfalls.append(Shortfall(
                    ingredient_id=ingredient_id,
                    name=ingredient.name if ingredient else ingredient_id,
                    unit=ingredient.unit if ingredient else "",
                    required=required,
                    available=available,
                ))
        return shortfalls

    def add_order(self, customer_name, lines):
        lines = [line for line in lines if line.quantity > 0]
        if not lines:
            raise InvalidInput("The cart is empty.")

        customer_name = (customer_name or "").strip() or DEFAULT_CUSTOMER
        total = cart_total(lines)
        payload = {
            "customer_name": customer_name,
            "total": str(total),
            "items": [
                {"product_id": l.product_id, "quantity": l.quantity, "unit_price": str(l.unit_price)}
                for l in lines
            ],
        }

        try:
            result = self.functions.invoke(self.order_function, payload)
        except ProcedureError as exc:
            if exc.code == "insufficient_stock":
                logger.info("Order for %s refused: insufficient stock", customer_name)
                raise InsufficientStock() from exc
            if exc.code in PROCEDURE_MESSAGES:
                logger.warning("Order for %s refused: %s", customer_name, exc.code)
                raise StoreError(PROCEDURE_MESSAGES[exc.code]) from exc
            logger.exception("Order procedure failed")
            raise StoreError("Could not place the order. Please try again.") from exc
        except BackendError as exc:
            logger.exception("Order procedure unreachable")
            raise StoreError("Could not place the order. Please try again.") from exc

        order_id = result["order_id"]
        logger.info("Order %s placed for %s, total %s", order_id, customer_name, total)
        self._log_consumption(order_id, lines)
        self._refresh_after_write("orders", "ingredients", "movements")
        return order_id

    def _log_consumption(self, order_id, lines):
        """Best-effort audit trail for an order; never fails the order."""
        if not self.products:
            try:
                self.fetch_products()
            except StoreError:
                logger.warning("No recipes available, skipping movements for order %s", order_id)
                return

        now = _now()
        movements = []
        for line in lines:
            product = next((p for p in self.products if p.id == line.product_id), None)
            if product is None:
                continue
            for recipe_line in product.recipe:
                movements.append(StockMovement(
                    id=str(uuid.uuid4()),
                    ingredient_id=recipe_line.ingredient_id,
                    direction=MOVEMENT_OUT,
                    quantity=recipe_line.quantity * line.quantity,
                    description=f"Order {order_id[:8]}: {line.quantity}x {product.name}",
                    created_at=now,
                ).to_item())
        if not movements:
            return
        try:
            self.ddb.put_many(STOCK_MOVEMENTS_TABLE, movements)
        except BackendError:
            logger.exception("Stock movements for order %s were not recorded", order_id)

    def _fetch_order(self, order_id):
        with translate_errors("load the order"):
            item = self.ddb.get(ORDERS_TABLE, {"id": order_id})
        if not item:
            raise NotFound("That order no longer exists.")
        return Order.from_item(item)

    def update_order_status(self, order_id, status):
        order = self._fetch_order(order_id)
        if next_status(order.status) != status:
            raise InvalidTransition(f"An order that is {order.status} cannot become {status}.")
        try:
            self.ddb.update(
                ORDERS_TABLE, {"id": order_id}, {"status": status},
                condition=Attr("status").eq(order.status),
            )
        except ConditionFailed as exc:
            raise InvalidTransition("The order was already updated.") from exc
        except BackendError as exc:
            logger.exception("Failed to update order %s", order_id)
            raise StoreError("Could not update the order. Please try again.") from exc
        logger.info("Order %s: %s -> %s", order_id, order.status, status)
        self._refresh_after_write("orders")

    def advance_order(self, order_id):
        order = self._fetch_order(order_id)
        status = order.next_status
        if status is None:
            raise InvalidTransition(f"An order that is {order.status} cannot move further.")
        self.update_order_status(order_id, status)
        return status

    # ------------------------------------------------------------------
    # ingredients
    # ------------------------------------------------------------------
    def restock_ingredient(self, ingredient_id, amount):
        amount = Decimal(str(amount))
        if amount <= 0:
            raise InvalidInput("The restock amount must be positive.")

        with translate_errors("restock the ingredient"):
            item = self.ddb.get(INGREDIENTS_TABLE, {"id": ingredient_id})
        if not item:
            raise NotFound("That ingredient no longer exists.")
        ingredient = Ingredient.from_item(item)

        # plain read-modify-write: two terminals restocking at once can lose one
        with translate_errors("restock the ingredient"):
            self.ddb.update(
                INGREDIENTS_TABLE, {"id": ingredient_id},
                {"quantity": ingredient.quantity + amount},
            )
        logger.info("Restocked %s by %s %s", ingredient.name, amount, ingredient.unit)

        movement = StockMovement(
            id=str(uuid.uuid4()),
            ingredient_id=ingredient_id,
            direction=MOVEMENT_IN,
            quantity=amount,
            description=f"Restock: {ingredient.name}",
            created_at=_now(),
        )
        try:
            self.ddb.put(STOCK_MOVEMENTS_TABLE, movement.to_item())
        except BackendError:
            logger.exception("Restock movement for %s was not recorded", ingredient_id)

        self._refresh_after_write("ingredients", "movements")
        return ingredient.quantity + amount

    def _validate_ingredient(self, name, quantity, min_quantity, unit):
        if not name or not name.strip() or not unit or not unit.strip():
            raise InvalidInput()
        quantity, min_quantity = Decimal(str(quantity)), Decimal(str(min_quantity))
        if quantity < 0 or min_quantity < 0:
            raise InvalidInput("Quantities cannot be negative.")
        return name.strip(), quantity, min_quantity, unit.strip()

    def add_ingredient(self, name, quantity, min_quantity, unit):
        name, quantity, min_quantity, unit = self._validate_ingredient(name, quantity, min_quantity, unit)
        ingredient = Ingredient(
            id=str(uuid.uuid4()), name=name, quantity=quantity,
            min_quantity=min_quantity, unit=unit,
        )
        with translate_errors("add the ingredient"):
            self.ddb.put(INGREDIENTS_TABLE, ingredient.to_item())
        logger.info("Added ingredient %s", name)
        self._refresh_after_write("ingredients")
        return ingredient

    def update_ingredient(self, ingredient_id, name, quantity, min_quantity, unit):
        name, quantity, min_quantity, unit = self._validate_ingredient(name, quantity, min_quantity, unit)
        try:
            self.ddb.update(
                INGREDIENTS_TABLE, {"id": ingredient_id},
                {"name": name, "quantity": quantity, "min_quantity": min_quantity, "unit": unit},
            )
        except ConditionFailed as exc:
            raise NotFound("That ingredient no longer exists.") from exc
        except BackendError as exc:
            logger.exception("Failed to update ingredient %s", ingredient_id)
            raise StoreError("Could not update the ingredient. Please try again.") from exc
        self._refresh_after_write("ingredients")

    def delete_ingredient(self, ingredient_id):
        with translate_errors(
            "delete the ingredient",
            in_use_message="This ingredient is used in a recipe and cannot be deleted.",
        ):
            self.ddb.delete_unreferenced(
                INGREDIENTS_TABLE, {"id": ingredient_id},
                [(RECIPE_LINES_TABLE, "ingredient_id")],
            )
        logger.info("Deleted ingredient %s", ingredient_id)
        self._refresh_after_write("ingredients")

    # ------------------------------------------------------------------
    # products
    # ------------------------------------------------------------------
    def _validate_product(self, name, price, description, recipe):
        if not name or not name.strip() or not description or not description.strip():
            raise InvalidInput()
        if not recipe:
            raise InvalidInput("Add at least one ingredient to the recipe.")
        price = Decimal(str(price))
        if price <= 0:
            raise InvalidInput("The price must be positive.")
        return name.strip(), price, description.strip()

    def _upload_image(self, product_id, image):
        key = f"products/{product_id}/{image.name}"
        with translate_errors("upload the product image"):
            return self.s3.upload(self.bucket, key, image, getattr(image, "content_type", None))

    def _recipe_rows(self, product_id, recipe):
        # recipe: iterable of (ingredient_id, quantity); one row per ingredient
        rows = {}
        for ingredient_id, quantity in recipe:
            rows[ingredient_id] = RecipeLine(product_id, ingredient_id, Decimal(str(quantity))).to_item()
        return list(rows.values())

    def add_product(self, name, price, description, recipe, image=None):
        name, price, description = self._validate_product(name, price, description, recipe)
        product_id = str(uuid.uuid4())
        image_url = self._upload_image(product_id, image) if image is not None else ""

        product = Product(product_id, name, description, price, image_url)
        with translate_errors("add the product"):
            self.ddb.put(PRODUCTS_TABLE, product.to_item())
            self.ddb.put_many(RECIPE_LINES_TABLE, self._recipe_rows(product_id, recipe))
        logger.info("Added product %s", name)
        self._refresh_after_write("products")
        return product_id

    def update_product(self, product_id, name, price, description, recipe, image=None):
        name, price, description = self._validate_product(name, price, description, recipe)

        with translate_errors("update the product"):
            item = self.ddb.get(PRODUCTS_TABLE, {"id": product_id})
        if not item:
            raise NotFound("That product no longer exists.")
        image_url = item.get("image_url") or ""
        if image is not None:
            image_url = self._upload_image(product_id, image)

        product = Product(product_id, name, description, price, image_url)
        with translate_errors("update the product"):
            self.ddb.put(PRODUCTS_TABLE, product.to_item())
            # the new recipe replaces the old one entirely
            old = self.ddb.query(RECIPE_LINES_TABLE, "product_id", product_id)
            self.ddb.delete_many(
                RECIPE_LINES_TABLE,
                [{"product_id": product_id, "ingredient_id": r["ingredient_id"]} for r in old],
            )
            self.ddb.put_many(RECIPE_LINES_TABLE, self._recipe_rows(product_id, recipe))
        logger.info("Updated product %s", name)
        self._refresh_after_write("products")

    def delete_product(self, product_id):
        with translate_errors(
            "delete the product",
            in_use_message="This product appears in existing orders and cannot be deleted.",
        ):
            self.ddb.check_unreferenced(
                PRODUCTS_TABLE, {"id": product_id},
                [(ORDER_ITEMS_TABLE, "product_id")],
            )
            # recipe lines before the product row, so no line is ever left without its product
            lines = self.ddb.query(RECIPE_LINES_TABLE, "product_id", product_id)
            self.ddb.delete_many(
                RECIPE_LINES_TABLE,
                [{"product_id": product_id, "ingredient_id": r["ingredient_id"]} for r in lines],
            )
            self.ddb.delete(PRODUCTS_TABLE, {"id": product_id})
        logger.info("Deleted product %s", product_id)
        self._refresh_after_write("products")

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------
    def revenue(self):
        return sum((o.total for o in self.orders), Decimal("0.00"))

    def low_stock(self):
        return [i for i in self.ingredients if i.is_low]
