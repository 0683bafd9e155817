from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.ledger import derived_balance
from inventory.models import Ingredient
from orders.models import Table
from .models import Product
from .reader import CatalogReader, DatabaseCatalogReader, ProductSnapshot, get_catalog_reader


class FixedCatalogReader(CatalogReader):
    def lookup(self, product_ids):
        return {1: ProductSnapshot(price=Decimal('1.00'), available=True)}


class CatalogReaderTests(TestCase):
    """Test batched product lookups"""

    def setUp(self):
        self.coffee = Product.objects.create(name="Coffee", price=Decimal('3.50'))
        self.cake = Product.objects.create(name="Cake", price=Decimal('4.50'), available=False)

    def test_lookup_returns_price_and_availability(self):
        """Test each known id maps to its current price and availability"""
        snapshots = DatabaseCatalogReader().lookup([self.coffee.id, self.cake.id])

        self.assertEqual(snapshots[self.coffee.id], ProductSnapshot(Decimal('3.50'), True))
        self.assertEqual(snapshots[self.cake.id], ProductSnapshot(Decimal('4.50'), False))

    def test_unknown_ids_are_absent(self):
        """Test ids with no product are left out of the result"""
        snapshots = DatabaseCatalogReader().lookup([self.coffee.id, 9999])

        self.assertIn(self.coffee.id, snapshots)
        self.assertNotIn(9999, snapshots)

    def test_lookup_uses_one_query(self):
        """Test the whole batch is read in a single query"""
        with self.assertNumQueries(1):
            DatabaseCatalogReader().lookup([self.coffee.id, self.cake.id, 9999])

    def test_empty_lookup(self):
        """Test an empty request does not touch the database"""
        with self.assertNumQueries(0):
            self.assertEqual(DatabaseCatalogReader().lookup([]), {})

    def test_reader_is_configurable(self):
        """Test the reader class comes from settings.CATALOG_READER"""
        self.assertIsInstance(get_catalog_reader(), DatabaseCatalogReader)

        with override_settings(CATALOG_READER='catalog.tests.FixedCatalogReader'):
            self.assertIsInstance(get_catalog_reader(), FixedCatalogReader)


class ProductAPITests(APITestCase):
    """Test the public menu endpoint"""

    def setUp(self):
        Product.objects.create(name="Coffee", price=Decimal('3.50'))
        Product.objects.create(name="Cake", price=Decimal('4.50'), available=False)

    def test_lists_available_products_without_api_key(self):
        """Test the menu is public and hides unavailable products"""
        response = self.client.get(reverse('product_list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [product['name'] for product in response.data['results']]
        self.assertEqual(names, ['Coffee'])
        self.assertEqual(response.data['results'][0]['price'], '3.50')


class SeedMenuCommandTests(TestCase):
    """Test the seed_menu management command"""

    def test_seeds_products_tables_and_ingredients(self):
        """Test seeding creates the menu with ledger-backed opening stock"""
        call_command('seed_menu', stdout=StringIO())

        self.assertTrue(Product.objects.exists())
        self.assertEqual(Table.objects.count(), 5)

        flour = Ingredient.objects.get(name="Flour")
        self.assertEqual(flour.current_stock, Decimal('10.000'))
        self.assertEqual(derived_balance(flour.id), flour.current_stock)

    def test_seeding_twice_does_not_duplicate(self):
        """Test the command can be run again safely"""
        call_command('seed_menu', stdout=StringIO())
        products = Product.objects.count()
        ingredients = Ingredient.objects.count()

        call_command('seed_menu', stdout=StringIO())

        self.assertEqual(Product.objects.count(), products)
        self.assertEqual(Ingredient.objects.count(), ingredients)
        self.assertEqual(Table.objects.count(), 5)
