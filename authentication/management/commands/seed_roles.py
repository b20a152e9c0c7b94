from django.core.management.base import BaseCommand

from authentication.models import Role
from authentication.permissions import DEFAULT_ROLES


class Command(BaseCommand):
    help = 'Create or update the default admin, manager, cashier and kitchen_staff roles'

    def handle(self, *args, **options):
        for name, definition in DEFAULT_ROLES.items():
            role, created = Role.objects.update_or_create(
                name=name,
                defaults={
                    'display_name': definition['display_name'],
                    'description': definition['description'],
                    'permissions': list(definition['permissions']),
                    'is_active': True,
                },
            )
            self.stdout.write(
                f"{'Created' if created else 'Updated'}: {role.display_name} ({len(role.permissions)} permissions)"
            )
        self.stdout.write(self.style.SUCCESS(f'{len(DEFAULT_ROLES)} roles ready'))
