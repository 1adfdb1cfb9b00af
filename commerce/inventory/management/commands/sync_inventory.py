"""
Recompute Product.stock_quantity from inventory balances
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db.models import Sum

from commerce.catalog.models import Product
from commerce.inventory.models import InventoryItem


class Command(BaseCommand):
    help = 'Recompute product stock quantity as the sum of available qty across warehouses'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-id',
            type=int,
            help='Sync a specific product ID only',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would change without writing',
        )

    def handle(self, *args, **options):
        product_id = options.get('product_id')
        dry_run = options.get('dry_run', False)

        totals = {
            row['product_id']: row['total'] or Decimal('0')
            for row in InventoryItem.objects.order_by().values('product_id').annotate(total=Sum('available_qty'))
        }

        products = Product.objects.all().order_by('id')
        if product_id:
            products = products.filter(id=product_id)

        changed = 0
        for product in products.only('id', 'sku', 'stock_quantity'):
            expected = totals.get(product.id, Decimal('0'))
            if product.stock_quantity == expected:
                continue
            changed += 1
            self.stdout.write(f"  {product.sku}: {product.stock_quantity} -> {expected}")
            if not dry_run:
                Product.objects.filter(pk=product.pk).update(stock_quantity=expected)

        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run: {changed} products would be updated"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Updated {changed} products"))
