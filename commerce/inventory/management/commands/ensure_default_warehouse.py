from django.core.management.base import BaseCommand
from commerce.inventory.services import ensure_default_warehouse


class Command(BaseCommand):
    help = 'Make sure a default warehouse exists (promotes MAIN or creates it)'

    def handle(self, *args, **options):
        warehouse = ensure_default_warehouse()
        self.stdout.write(self.style.SUCCESS(f"Default warehouse: {warehouse.code} - {warehouse.name}"))
