"""
Pytest configuration and fixtures.

Every test runs against an in-memory backend injected through
pos.services, so nothing reaches AWS.
"""
import pytest
from django.core.cache import cache

from pos import services
from pos.stores import IdentityStore, SettingsStore, StockStore
from tests.fakes import FakeBackend


@pytest.fixture(autouse=True)
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(services, "get_backend", lambda: fake)
    cache.clear()
    yield fake
    cache.clear()


@pytest.fixture
def burger_menu(backend):
    """The demo shop: six ingredients, X-Salada and X-Bacon."""
    backend.add_ingredient("pao", "Pão", 100, 20)
    backend.add_ingredient("blend", "Blend 180g", 50, 10)
    backend.add_ingredient("queijo", "Queijo Prato", 200, 40, "fatia")
    backend.add_ingredient("bacon", "Bacon", 150, 30, "fatia")
    backend.add_ingredient("alface", "Alface", 10, 1, "folha")
    backend.add_ingredient("tomate", "Tomate", 10, 1, "fatia")
    backend.add_product("x-salada", "X-Salada", "25.00", {
        "pao": 1, "blend": 1, "queijo": 2, "alface": 1, "tomate": 1,
    })
    backend.add_product("x-bacon", "X-Bacon", "28.00", {
        "pao": 1, "blend": 1, "queijo": 2, "bacon": 3,
    })
    return backend


@pytest.fixture
def stock(backend):
    return StockStore(backend)


@pytest.fixture
def identity(backend):
    return IdentityStore(backend)


@pytest.fixture
def branding(backend):
    return SettingsStore(backend)


@pytest.fixture
def login_as(db, client, backend, django_user_model):
    """Sign a user in with the given profile role (None = no profile row)."""
    def _login(role, username=None):
        username = username or f"{role or 'nobody'}-user"
        user = django_user_model.objects.create_user(
            username=username, email=f"{username}@example.com", password="secret",
        )
        if role is not None:
            backend.set_profile(user.pk, role, user.email)
        client.force_login(user)
        return user
    return _login
