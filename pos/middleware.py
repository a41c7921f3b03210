from . import services
from .permissions import GUEST


class IdentityMiddleware:
    """
    Sets `request.role`, read from the profile table on every request so a
    role change applies on the user's next page load.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.role = self.role_for(request)
        return self.get_response(request)

    def role_for(self, request):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return GUEST
        return services.identity_store().resolve_role(user)
