from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from catalog.models import Product
from inventory.ledger import create_ingredient
from inventory.models import Ingredient
from orders.models import Table


PRODUCTS = [
    {"name": "Flat White", "price": Decimal("3.50")},
    {"name": "Croissant", "price": Decimal("2.80")},
    {"name": "Iced Tea", "price": Decimal("3.00")},
    {"name": "Kids Meal", "price": Decimal("7.00")},
    {"name": "Pizza Margherita", "price": Decimal("12.00")},
    {"name": "Coca Cola", "price": Decimal("3.00")},
    {"name": "Caesar Salad", "price": Decimal("9.00")},
    {"name": "Chocolate Cake", "price": Decimal("4.50")},
]

TABLES = [
    {"number": 1, "seats": 2},
    {"number": 2, "seats": 4},
    {"number": 3, "seats": 4},
    {"number": 4, "seats": 6},
    {"number": 5, "seats": 8},
]

INGREDIENTS = [
    {"name": "Flour", "unit": Ingredient.Unit.KILOGRAM, "initial_stock": Decimal("10.000"),
     "min_stock": Decimal("5.000"), "cost_per_unit": Decimal("1.20")},
    {"name": "Mozzarella", "unit": Ingredient.Unit.KILOGRAM, "initial_stock": Decimal("4.000"),
     "min_stock": Decimal("2.000"), "cost_per_unit": Decimal("8.50")},
    {"name": "Milk", "unit": Ingredient.Unit.LITER, "initial_stock": Decimal("12.000"),
     "min_stock": Decimal("6.000"), "cost_per_unit": Decimal("0.95")},
    {"name": "Coffee Beans", "unit": Ingredient.Unit.GRAM, "initial_stock": Decimal("2000.000"),
     "min_stock": Decimal("500.000"), "cost_per_unit": Decimal("0.03")},
    {"name": "Eggs", "unit": Ingredient.Unit.PIECE, "initial_stock": Decimal("60.000"),
     "min_stock": Decimal("24.000"), "cost_per_unit": Decimal("0.25")},
]


class Command(BaseCommand):
    help = 'Seed the database with menu products, tables and ingredients'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing products not referenced by orders before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing unused menu products...')
            Product.objects.filter(order_items__isnull=True).delete()
            self.stdout.write(
                self.style.SUCCESS('Successfully cleared menu products')
            )

        with transaction.atomic():
            created_products = self._seed_products()
            created_tables = self._seed_tables()
            created_ingredients = self._seed_ingredients()

        self.stdout.write(
            self.style.SUCCESS(
                f'\nCreated {created_products} products, {created_tables} tables, '
                f'{created_ingredients} ingredients'
            )
        )

        # Display the menu
        self.stdout.write("\nAll products in database:")
        self.stdout.write("-" * 50)
        for product in Product.objects.all().order_by('name'):
            self.stdout.write(
                f"ID: {product.id:2d} | {product.name:20s} | {product.price:6.2f} | "
                f"{'available' if product.available else 'unavailable'}"
            )

    def _seed_products(self):
        created_count = 0
        for item_data in PRODUCTS:
            product, created = Product.objects.get_or_create(
                name=item_data['name'],
                defaults={'price': item_data['price']}
            )
            if created:
                created_count += 1
                self.stdout.write(f"Created: {product.name} - {product.price:.2f}")
            else:
                self.stdout.write(f"Already exists: {product.name}")
        return created_count

    def _seed_tables(self):
        created_count = 0
        for table_data in TABLES:
            _, created = Table.objects.get_or_create(
                number=table_data['number'],
                defaults={'seats': table_data['seats']}
            )
            created_count += int(created)
        return created_count

    def _seed_ingredients(self):
        created_count = 0
        for ingredient_data in INGREDIENTS:
            if Ingredient.objects.filter(name=ingredient_data['name']).exists():
                self.stdout.write(f"Already exists: {ingredient_data['name']}")
                continue
            ingredient = create_ingredient(**ingredient_data)
            created_count += 1
            self.stdout.write(
                f"Created: {ingredient.name} - {ingredient.current_stock} {ingredient.get_unit_display()}"
            )
        return created_count
