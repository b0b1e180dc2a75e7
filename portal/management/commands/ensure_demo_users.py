from django.core.management.base import BaseCommand

from portal.models import User
from portal.services.accounts import DEMO_ACCOUNTS, ensure_demo_account


class Command(BaseCommand):
    help = "Ensure the shared demo accounts exist and are active (idempotent)."

    def handle(self, *args, **opts):
        for role in DEMO_ACCOUNTS:
            u = ensure_demo_account(role)
            if not u.is_active or u.role != role:
                u.is_active = True
                u.role = role
                u.save(update_fields=["is_active", "role"])
            self.stdout.write(self.style.SUCCESS(f"ok: {u.email} ({role})"))
        self.stdout.write(self.style.SUCCESS(f"All demo users ensured ({User.objects.filter(is_demo=True).count()})."))
