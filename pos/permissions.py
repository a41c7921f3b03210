"""Which navigation tabs each role may open."""
import functools
import logging

from django.contrib import messages
from django.shortcuts import redirect

logger = logging.getLogger(__name__)

ADMIN = "admin"
MANAGER = "manager"
KITCHEN = "kitchen"
CUSTOMER = "customer"
GUEST = "guest"

ROLES = (ADMIN, MANAGER, KITCHEN, CUSTOMER)

# (tab, url name, label) in navigation order
TABS = (
    ("pos", "order_entry", "Order entry"),
    ("kitchen", "kitchen_board", "Kitchen"),
    ("inventory", "inventory_list", "Inventory"),
    ("menu", "menu_list", "Menu"),
    ("management", "management", "Management"),
)

ALLOWED_TABS = {
    ADMIN: ("pos", "kitchen", "inventory", "menu", "management"),
    MANAGER: ("inventory", "menu"),
    KITCHEN: ("kitchen",),
    CUSTOMER: ("pos",),
    GUEST: ("pos",),
}


def allowed_tabs(role):
    return ALLOWED_TABS.get(role, ALLOWED_TABS[GUEST])


def can_open(role, tab):
    return tab in allowed_tabs(role)


def navigation(role):
    """Tabs visible to `role`, as (tab, url name, label) tuples."""
    allowed = allowed_tabs(role)
    return [t for t in TABS if t[0] in allowed]


def first_tab_url(role):
    return navigation(role)[0][1]


def tab_required(tab):
    """
    Gate a view behind a navigation tab. A role that may not see the tab is
    sent to the first tab it is allowed to open.
    """
    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            role = getattr(request, "role", GUEST)
            if not can_open(role, tab):
                logger.info("Role %s may not open %s, redirecting", role, tab)
                if role == GUEST:
                    messages.info(request, "Please sign in to open that page.")
                return redirect(first_tab_url(role))
            return view(request, *args, **kwargs)
        return wrapper
    return decorator
