from django.core.management.base import BaseCommand
from commerce.core.models import Setting

DEFAULT_SETTINGS = [
    ('store.name', 'CE Industrial Supply', 'Storefront display name'),
    ('store.email', 'sales@example.com', 'Contact email shown on invoices and the contact page'),
    ('store.phone', '', 'Contact phone'),
    ('store.address', '', 'Registered company address'),
    ('orders.bank_transfer_note', 'Please include the order code in the transfer description', 'Shown on checkout for bank transfers'),
]


class Command(BaseCommand):
    help = 'Create default runtime settings (existing keys are left untouched)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--overwrite',
            action='store_true',
            help='Reset values of existing keys to their defaults',
        )

    def handle(self, *args, **options):
        overwrite = options.get('overwrite', False)
        created_count = 0
        updated_count = 0

        for key, value, description in DEFAULT_SETTINGS:
            setting, created = Setting.objects.get_or_create(
                key=key, defaults={'value': value, 'description': description}
            )
            if created:
                created_count += 1
                self.stdout.write(f"  + {key}")
            elif overwrite:
                setting.value = value
                setting.description = description
                setting.save(update_fields=['value', 'description', 'updated_at'])
                updated_count += 1
                self.stdout.write(f"  ~ {key}")

        self.stdout.write(self.style.SUCCESS(f"Settings created: {created_count}, updated: {updated_count}"))
