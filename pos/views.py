import logging
from contextlib import contextmanager

from django.contrib import messages
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from . import services
from .cart import Cart, cart_total
from .exceptions import StoreError
from .forms import (
    CheckoutForm,
    IngredientForm,
    ProductForm,
    RestockForm,
    SettingsForm,
    TeamRoleForm,
    recipe_text,
)
from .models import PENDING, READY
from .permissions import ADMIN, tab_required

logger = logging.getLogger(__name__)


@contextmanager
def notify_failures(request):
    """Show a StoreError to the user instead of failing the request."""
    try:
        yield
    except StoreError as exc:
        messages.error(request, exc.message)


def _load(request, store, *collections):
    with notify_failures(request):
        store.refresh(*collections)


# order entry (point of sale)
@tab_required("pos")
def order_entry(request):
    """
    Menu cards plus the session cart with its total, stock warnings and
    the checkout form.
    """
    store = services.stock_store()
    _load(request, store, "products", "ingredients")

    lines = Cart(request.session).lines(store.products)
    return render(request, "pos/order_entry.html", {
        "products": store.products,
        "lines": lines,
        "total": cart_total(lines),
        "shortfalls": store.stock_shortfalls(lines),
        "form": CheckoutForm(),
    })


@require_POST
@tab_required("pos")
def cart_add(request, product_id):
    Cart(request.session).add(product_id)
    return redirect("order_entry")


@require_POST
@tab_required("pos")
def cart_remove(request, product_id):
    Cart(request.session).remove(product_id)
    return redirect("order_entry")


@require_POST
@tab_required("pos")
def cart_clear(request):
    Cart(request.session).clear()
    return redirect("order_entry")


@require_POST
@tab_required("pos")
def checkout(request):
    cart = Cart(request.session)
    form = CheckoutForm(request.POST)
    if cart.is_empty:
        messages.error(request, "The cart is empty.")
        return redirect("order_entry")
    if not form.is_valid():
        messages.error(request, "Customer names can be at most 100 characters.")
        return redirect("order_entry")

    store = services.stock_store()
    with notify_failures(request):
        store.refresh("products", "ingredients")
        lines = cart.lines(store.products)

        shortfalls = store.stock_shortfalls(lines)
        if shortfalls:
            names = ", ".join(s.name for s in shortfalls)
            messages.warning(request, f"Not enough stock for this order: {names}.")
            return redirect("order_entry")

        store.add_order(form.cleaned_data["customer_name"], lines)
        cart.clear()
        messages.success(request, f"Order placed. Total R$ {cart_total(lines):.2f}")

    return redirect("order_entry")


# kitchen status board
def _order_cards(orders, product_names):
    return [
        {
            "order": order,
            "lines": [(item.quantity, product_names.get(item.product_id, "Unknown item")) for item in order.items],
        }
        for order in orders
    ]


@tab_required("kitchen")
def kitchen_board(request):
    store = services.stock_store()
    _load(request, store, "orders", "products")

    names = store.product_names()
    return render(request, "pos/kitchen.html", {
        "pending": _order_cards([o for o in store.orders if o.status == PENDING], names),
        "ready": _order_cards([o for o in store.orders if o.status == READY], names),
    })


@require_POST
@tab_required("kitchen")
def advance_order(request, order_id):
    with notify_failures(request):
        status = services.stock_store().advance_order(order_id)
        messages.success(request, f"Order marked as {status}.")
    return redirect("kitchen_board")


# inventory page views operations
@tab_required("inventory")
def inventory_list(request):
    """Displays all ingredients with their low-stock flag."""
    store = services.stock_store()
    _load(request, store, "ingredients")
    return render(request, "pos/inventory.html", {
        "ingredients": store.ingredients,
        "restock_form": RestockForm(),
    })


@tab_required("inventory")
def add_ingredient(request):
    if request.method == "POST":
        form = IngredientForm(request.POST)
        if form.is_valid():
            with notify_failures(request):
                services.stock_store().add_ingredient(**form.cleaned_data)
                messages.success(request, f"{form.cleaned_data['name']} added.")
                return redirect("inventory_list")
    else:
        form = IngredientForm()

    return render(request, "pos/ingredient_form.html", {"form": form})


@tab_required("inventory")
def edit_ingredient(request, ingredient_id):
    store = services.stock_store()
    _load(request, store, "ingredients")
    try:
        ingredient = store.ingredient(ingredient_id)
    except StoreError as exc:
        messages.error(request, exc.message)
        return redirect("inventory_list")

    if request.method == "POST":
        form = IngredientForm(request.POST)
        if form.is_valid():
            with notify_failures(request):
                store.update_ingredient(ingredient_id, **form.cleaned_data)
                messages.success(request, f"{form.cleaned_data['name']} updated.")
                return redirect("inventory_list")
    else:
        # Pre-fill form with existing values
        form = IngredientForm(initial={
            "name": ingredient.name,
            "quantity": ingredient.quantity,
            "min_quantity": ingredient.min_quantity,
            "unit": ingredient.unit,
        })

    return render(request, "pos/ingredient_form.html", {"form": form, "ingredient": ingredient})


@require_POST
@tab_required("inventory")
def delete_ingredient(request, ingredient_id):
    with notify_failures(request):
        services.stock_store().delete_ingredient(ingredient_id)
        messages.success(request, "Ingredient deleted.")
    return redirect("inventory_list")


@require_POST
@tab_required("inventory")
def restock_ingredient(request, ingredient_id):
    form = RestockForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Enter a positive amount to restock.")
        return redirect("inventory_list")

    with notify_failures(request):
        quantity = services.stock_store().restock_ingredient(ingredient_id, form.cleaned_data["amount"])
        messages.success(request, f"Stock updated to {quantity.normalize():f}.")
    return redirect("inventory_list")


# menu and recipe operations
@tab_required("menu")
def menu_list(request):
    """Shows all products with their recipes."""
    store = services.stock_store()
    _load(request, store, "products", "ingredients")

    names = store.ingredient_names()
    products = [
        {
            "product": p,
            "recipe": [(names.get(line.ingredient_id, "Unknown"), line.quantity) for line in p.recipe],
        }
        for p in store.products
    ]
    return render(request, "pos/menu.html", {"products": products})


@tab_required("menu")
def add_product(request):
    """
    Adds a new product with its recipe.
    Uploads optional image to S3.
    """
    store = services.stock_store()
    _load(request, store, "ingredients")

    if request.method == "POST":
        form = ProductForm(request.POST, request.FILES, ingredients=store.ingredients)
        if form.is_valid():
            data = form.cleaned_data
            with notify_failures(request):
                store.add_product(
                    data["name"], data["price"], data["description"], data["recipe"],
                    image=request.FILES.get("image"),
                )
                messages.success(request, f"{data['name']} added to the menu.")
                return redirect("menu_list")
    else:
        form = ProductForm(ingredients=store.ingredients)

    return render(request, "pos/product_form.html", {"form": form, "ingredients": store.ingredients})


@tab_required("menu")
def edit_product(request, product_id):
    """
    Edit a product; the submitted recipe replaces the previous one.
    """
    store = services.stock_store()
    _load(request, store, "products", "ingredients")
    try:
        product = store.product(product_id)
    except StoreError as exc:
        messages.error(request, exc.message)
        return redirect("menu_list")

    if request.method == "POST":
        form = ProductForm(request.POST, request.FILES, ingredients=store.ingredients)
        if form.is_valid():
            data = form.cleaned_data
            with notify_failures(request):
                store.update_product(
                    product_id, data["name"], data["price"], data["description"], data["recipe"],
                    image=request.FILES.get("image"),
                )
                messages.success(request, f"{data['name']} updated.")
                return redirect("menu_list")
    else:
        # Populate form with readable recipe text
        form = ProductForm(ingredients=store.ingredients, initial={
            "name": product.name,
            "price": product.price,
            "description": product.description,
            "recipe": recipe_text(product, store.ingredient_names()),
        })

    return render(request, "pos/product_form.html", {
        "form": form, "product": product, "ingredients": store.ingredients,
    })


@require_POST
@tab_required("menu")
def delete_product(request, product_id):
    with notify_failures(request):
        services.stock_store().delete_product(product_id)
        messages.success(request, "Product deleted.")
    return redirect("menu_list")


# management: reports, settings, team
@tab_required("management")
def management(request):
    """
    Loads:
    - Revenue, order count and low-stock count
    - Recent orders and stock movements
    - Settings form and, for admins, the team role editor
    """
    store = services.stock_store()
    _load(request, store, "orders", "ingredients", "movements")

    branding = services.settings_store().current()
    settings_form = SettingsForm(initial={
        "brand_name": branding.brand_name,
        "text_color": branding.text_color,
        "accent_color": branding.accent_color,
    })

    team = []
    if request.role == ADMIN:
        with notify_failures(request):
            team = [
                (profile, TeamRoleForm(initial={"user_id": profile.id, "role": profile.role}))
                for profile in services.identity_store().list_profiles()
            ]

    names = store.ingredient_names()
    return render(request, "pos/management.html", {
        "revenue": store.revenue(),
        "order_count": len(store.orders),
        "low_stock_count": len(store.low_stock()),
        "recent_orders": store.orders[:5],
        "recent_movements": [(m, names.get(m.ingredient_id, "Unknown")) for m in store.movements[:10]],
        "settings_form": settings_form,
        "team": team,
    })


@require_POST
@tab_required("management")
def save_settings(request):
    form = SettingsForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, "Please check the settings fields.")
        return redirect("management")

    data = form.cleaned_data
    with notify_failures(request):
        services.settings_store().save(
            data["brand_name"], data["text_color"], data["accent_color"],
            background_image=request.FILES.get("background_image"),
        )
        messages.success(request, "Settings saved.")
    return redirect("management")


@require_POST
@tab_required("management")
def set_team_role(request):
    if request.role != ADMIN:
        messages.error(request, "Only admins can change roles.")
        return redirect("management")

    form = TeamRoleForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Choose a valid role.")
        return redirect("management")

    user_id, role = form.cleaned_data["user_id"], form.cleaned_data["role"]
    with notify_failures(request):
        services.identity_store().set_role(user_id, role)
        messages.success(request, f"Role changed to {role}.")
    return redirect("management")
