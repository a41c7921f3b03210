"""Profile bookkeeping on authentication events."""
import logging

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from . import services

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def ensure_profile_on_login(sender, request, user, **kwargs):
    store = services.identity_store()
    store.ensure_profile(user)
    logger.info("User %s signed in as %s", user.pk, store.resolve_role(user))


@receiver(user_logged_out)
def log_logout(sender, request, user, **kwargs):
    if user is not None:
        logger.info("User %s signed out", user.pk)
