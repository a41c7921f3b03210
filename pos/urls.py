from django.contrib.auth import views as auth_views
from django.urls import path

from . import views

urlpatterns = [
    # Order entry
    path("", views.order_entry, name="order_entry"),
    path("cart/add/<str:product_id>/", views.cart_add, name="cart_add"),
    path("cart/remove/<str:product_id>/", views.cart_remove, name="cart_remove"),
    path("cart/clear/", views.cart_clear, name="cart_clear"),
    path("checkout/", views.checkout, name="checkout"),

    # Auth
    path("login/", auth_views.LoginView.as_view(template_name="pos/login.html"), name="login"),
    path("logout/", auth_views.LogoutView.as_view(), name="logout"),

    # Kitchen
    path("kitchen/", views.kitchen_board, name="kitchen_board"),
    path("kitchen/orders/<str:order_id>/advance/", views.advance_order, name="advance_order"),

    # Inventory
    path("inventory/", views.inventory_list, name="inventory_list"),
    path("inventory/add/", views.add_ingredient, name="add_ingredient"),
    path("inventory/edit/<str:ingredient_id>/", views.edit_ingredient, name="edit_ingredient"),
    path("inventory/delete/<str:ingredient_id>/", views.delete_ingredient, name="delete_ingredient"),
    path("inventory/restock/<str:ingredient_id>/", views.restock_ingredient, name="restock_ingredient"),

    # Menu
    path("menu/", views.menu_list, name="menu_list"),
    path("menu/add/", views.add_product, name="add_product"),
    path("menu/edit/<str:product_id>/", views.edit_product, name="edit_product"),
    path("menu/delete/<str:product_id>/", views.delete_product, name="delete_product"),

    # Management
    path("management/", views.management, name="management"),
    path("management/settings/", views.save_settings, name="save_settings"),
    path("management/team/", views.set_team_role, name="set_team_role"),
]
