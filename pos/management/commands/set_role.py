"""
Give a signed-up user a role, creating their profile row if needed.

    python manage.py set_role alice admin
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from pos import services
from pos.exceptions import StoreError
from pos.permissions import ROLES


class Command(BaseCommand):
    help = "Assign a role (admin, manager, kitchen, customer) to an existing user."

    def add_arguments(self, parser):
        parser.add_argument("username")
        parser.add_argument("role", choices=ROLES)

    def handle(self, *args, **options):
        User = get_user_model()
        try:
            user = User.objects.get_by_natural_key(options["username"])
        except User.DoesNotExist as exc:
            raise CommandError(f"No user named {options['username']!r}") from exc

        try:
            profile = services.identity_store().assign_role(user, options["role"])
        except StoreError as exc:
            raise CommandError(exc.message) from exc

        self.stdout.write(self.style.SUCCESS(f"{profile.email} is now {profile.role}"))
