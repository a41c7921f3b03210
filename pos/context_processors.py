from . import services
from .permissions import GUEST, navigation


def branding(request):
    """Branding settings, current role and the tabs it may open."""
    role = getattr(request, "role", GUEST)
    return {
        "branding": services.settings_store().current(),
        "role": role,
        "nav_tabs": navigation(role),
    }
