from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .exceptions import IngredientNotFound, LedgerValidationError, NegativeStock
from .ledger import (
    apply_stock_transaction, create_ingredient, derived_balance,
    find_ledger_drift, transaction_history
)
from .models import Ingredient, StockTransaction


class StockLedgerTests(TestCase):
    """Test stock transactions and the running balance"""

    def setUp(self):
        self.flour = create_ingredient(
            name="Flour",
            unit=Ingredient.Unit.KILOGRAM,
            min_stock=Decimal('5'),
            cost_per_unit=Decimal('1.20'),
            initial_stock=Decimal('10'),
        )

    def assertLedgerMatches(self, ingredient):
        ingredient.refresh_from_db()
        self.assertEqual(derived_balance(ingredient.id), ingredient.current_stock)

    def test_opening_stock_is_in_ledger(self):
        """Test opening stock is booked as an ADJUSTMENT entry"""
        self.assertEqual(self.flour.current_stock, Decimal('10.000'))

        entry = StockTransaction.objects.get(ingredient=self.flour)
        self.assertEqual(entry.kind, StockTransaction.Kind.ADJUSTMENT)
        self.assertEqual(entry.quantity, Decimal('10.000'))
        self.assertLedgerMatches(self.flour)

    def test_flour_scenario(self):
        """Test usage beyond stock is rejected, then purchase and usage apply"""
        with self.assertRaises(NegativeStock) as ctx:
            apply_stock_transaction(self.flour.id, 'USAGE', Decimal('12'))

        self.assertEqual(ctx.exception.delta, Decimal('-12.000'))
        self.assertEqual(ctx.exception.current_stock, Decimal('10.000'))
        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock, Decimal('10.000'))
        self.assertEqual(StockTransaction.objects.filter(ingredient=self.flour).count(), 1)

        purchase = apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('12'))
        self.assertEqual(purchase.balance_after, Decimal('22.000'))

        usage = apply_stock_transaction(self.flour.id, 'USAGE', Decimal('12'))
        self.assertEqual(usage.quantity, Decimal('-12.000'))
        self.assertEqual(usage.balance_after, Decimal('10.000'))

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock, Decimal('10.000'))
        self.assertLedgerMatches(self.flour)

    def test_signs_by_kind(self):
        """Test increase and decrease kinds ignore the sign of the quantity"""
        cases = [
            ('PURCHASE', Decimal('2'), Decimal('2.000')),
            ('RETURN', Decimal('-1'), Decimal('1.000')),
            ('USAGE', Decimal('-3'), Decimal('-3.000')),
            ('WASTE', Decimal('0.5'), Decimal('-0.500')),
        ]
        for kind, quantity, expected in cases:
            entry = apply_stock_transaction(self.flour.id, kind, quantity)
            self.assertEqual(entry.quantity, expected, kind)

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock, Decimal('9.500'))
        self.assertLedgerMatches(self.flour)

    def test_adjustment_sets_counted_stock(self):
        """Test an ADJUSTMENT records the difference to the counted stock"""
        entry = apply_stock_transaction(self.flour.id, 'ADJUSTMENT', Decimal('7.25'))

        self.assertEqual(entry.quantity, Decimal('-2.750'))
        self.assertEqual(entry.balance_after, Decimal('7.250'))

        entry = apply_stock_transaction(self.flour.id, 'ADJUSTMENT', Decimal('0'))
        self.assertEqual(entry.quantity, Decimal('-7.250'))
        self.flour.refresh_from_db()
        self.assertTrue(self.flour.is_out_of_stock)
        self.assertLedgerMatches(self.flour)

    def test_negative_adjustment_rejected(self):
        """Test a negative count cannot be recorded"""
        with self.assertRaises(NegativeStock):
            apply_stock_transaction(self.flour.id, 'ADJUSTMENT', Decimal('-1'))

    def test_legacy_kind_names(self):
        """Test IN and OUT are accepted as purchase and usage"""
        stock_in = apply_stock_transaction(self.flour.id, 'IN', Decimal('1'))
        stock_out = apply_stock_transaction(self.flour.id, 'out', Decimal('2'))

        self.assertEqual(stock_in.kind, StockTransaction.Kind.PURCHASE)
        self.assertEqual(stock_out.kind, StockTransaction.Kind.USAGE)

    def test_unknown_kind_rejected(self):
        """Test kinds outside the enumeration are rejected"""
        with self.assertRaises(LedgerValidationError):
            apply_stock_transaction(self.flour.id, 'THEFT', Decimal('1'))

    def test_zero_quantity_rejected(self):
        """Test zero quantity is rejected for purchases and usage"""
        for kind in ('PURCHASE', 'USAGE'):
            with self.assertRaises(LedgerValidationError):
                apply_stock_transaction(self.flour.id, kind, Decimal('0'))

    def test_float_quantity_rejected(self):
        """Test binary floats are not accepted as quantities"""
        with self.assertRaises(LedgerValidationError):
            apply_stock_transaction(self.flour.id, 'PURCHASE', 1.5)

    def test_oversized_quantity_rejected(self):
        """Test quantities too large to hold three decimal places are rejected"""
        for quantity in (Decimal('1e30'), 'Infinity', 'NaN'):
            with self.assertRaises(LedgerValidationError):
                apply_stock_transaction(self.flour.id, 'PURCHASE', quantity)

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock, Decimal('10.000'))
        self.assertLedgerMatches(self.flour)

    def test_string_quantity_accepted(self):
        """Test decimal strings are accepted and quantised"""
        entry = apply_stock_transaction(self.flour.id, 'PURCHASE', '0.1234')
        self.assertEqual(entry.quantity, Decimal('0.123'))

    def test_purchase_cost_defaults(self):
        """Test a purchase without a cost is priced at cost_per_unit"""
        entry = apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('3'))
        self.assertEqual(entry.total_cost, Decimal('3.60'))

        entry = apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('3'), total_cost=Decimal('3.00'))
        self.assertEqual(entry.total_cost, Decimal('3.00'))

        entry = apply_stock_transaction(self.flour.id, 'USAGE', Decimal('1'))
        self.assertIsNone(entry.total_cost)

    def test_negative_cost_rejected(self):
        """Test a negative total cost is rejected"""
        with self.assertRaises(LedgerValidationError):
            apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('1'), total_cost=Decimal('-1'))

    def test_missing_ingredient(self):
        """Test a transaction for an unknown ingredient"""
        with self.assertRaises(IngredientNotFound):
            apply_stock_transaction(9999, 'PURCHASE', Decimal('1'))

    def test_low_stock_flags(self):
        """Test low stock is below minimum and out of stock is zero or less"""
        self.assertFalse(self.flour.is_low_stock)

        apply_stock_transaction(self.flour.id, 'USAGE', Decimal('6'))
        self.flour.refresh_from_db()
        self.assertTrue(self.flour.is_low_stock)
        self.assertFalse(self.flour.is_out_of_stock)
        self.assertIn(self.flour, Ingredient.objects.low_stock())
        self.assertNotIn(self.flour, Ingredient.objects.out_of_stock())

    def test_ledger_entries_are_append_only(self):
        """Test stored transactions cannot be edited or deleted"""
        entry = StockTransaction.objects.get(ingredient=self.flour)

        entry.notes = "edited"
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()

    def test_history_newest_first(self):
        """Test history is filtered by ingredient and newest first"""
        sugar = create_ingredient(name="Sugar", unit=Ingredient.Unit.GRAM, initial_stock=Decimal('500'))
        apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('1'))
        last = apply_stock_transaction(self.flour.id, 'USAGE', Decimal('1'))

        history = list(transaction_history(ingredient_id=self.flour.id))

        self.assertEqual(len(history), 3)
        self.assertEqual(history[0], last)
        self.assertTrue(all(entry.ingredient_id == self.flour.id for entry in history))
        self.assertEqual(transaction_history().count(), 4)
        self.assertEqual(transaction_history(ingredient_id=sugar.id).count(), 1)

    def test_drift_detection(self):
        """Test a balance changed outside the ledger is reported"""
        self.assertEqual(find_ledger_drift(), [])
        call_command('check_ledger', stdout=StringIO())

        Ingredient.objects.filter(pk=self.flour.pk).update(current_stock=Decimal('11'))

        drift = find_ledger_drift()
        self.assertEqual(len(drift), 1)
        self.assertEqual(drift[0]['ingredient_id'], self.flour.id)
        self.assertEqual(drift[0]['ledger_total'], Decimal('10.000'))
        with self.assertRaises(CommandError):
            call_command('check_ledger', stdout=StringIO())


class InventoryAPITests(APITestCase):
    """Test inventory API endpoints"""

    def setUp(self):
        self.flour = create_ingredient(
            name="Flour",
            unit=Ingredient.Unit.KILOGRAM,
            min_stock=Decimal('5'),
            cost_per_unit=Decimal('1.20'),
            initial_stock=Decimal('10'),
        )
        # Add API key to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'

    def test_create_ingredient(self):
        """Test creating an ingredient with opening stock"""
        data = {
            'name': 'Milk',
            'unit': 'LITER',
            'min_stock': '2.000',
            'cost_per_unit': '0.95',
            'initial_stock': '6.000',
        }

        response = self.client.post(reverse('ingredient_list'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['current_stock'], '6.000')
        self.assertFalse(response.data['is_low_stock'])
        milk = Ingredient.objects.get(name='Milk')
        self.assertEqual(derived_balance(milk.id), Decimal('6.000'))

    def test_duplicate_ingredient_name(self):
        """Test ingredient names are unique regardless of case"""
        response = self.client.post(
            reverse('ingredient_list'), {'name': 'flour', 'unit': 'KILOGRAM'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_list_low_stock(self):
        """Test filtering ingredients below their minimum"""
        create_ingredient(name="Salt", unit=Ingredient.Unit.GRAM, min_stock=Decimal('100'))

        response = self.client.get(reverse('ingredient_list'), {'low_stock': 'true'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data['results']], ['Salt'])
        self.assertTrue(response.data['results'][0]['is_out_of_stock'])

    def test_get_ingredient(self):
        """Test retrieving one ingredient"""
        response = self.client.get(reverse('get_ingredient', kwargs={'ingredient_id': self.flour.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Flour')

        response = self.client.get(reverse('get_ingredient', kwargs={'ingredient_id': 9999}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'ingredient_not_found')

    def test_apply_stock_transaction(self):
        """Test recording a purchase"""
        data = {'ingredient_id': self.flour.id, 'kind': 'PURCHASE', 'quantity': '12.000'}

        response = self.client.post(reverse('stock_transactions'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity'], '12.000')
        self.assertEqual(response.data['balance_after'], '22.000')
        self.assertEqual(response.data['total_cost'], '14.40')

    def test_negative_stock_rejected(self):
        """Test usage beyond stock returns 400 with the delta and balance"""
        data = {'ingredient_id': self.flour.id, 'kind': 'USAGE', 'quantity': '12.000'}

        response = self.client.post(reverse('stock_transactions'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'negative_stock')
        self.assertEqual(response.data['delta'], '-12.000')
        self.assertEqual(response.data['current_stock'], '10.000')
        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock, Decimal('10.000'))

    def test_unknown_kind(self):
        """Test an unknown kind returns 400"""
        data = {'ingredient_id': self.flour.id, 'kind': 'THEFT', 'quantity': '1.000'}

        response = self.client.post(reverse('stock_transactions'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_stock_transaction')

    def test_history(self):
        """Test listing ledger entries for one ingredient"""
        apply_stock_transaction(self.flour.id, 'PURCHASE', Decimal('2'))

        response = self.client.get(reverse('stock_transactions'), {'ingredient': self.flour.id})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['kind'], 'PURCHASE')
        self.assertEqual(response.data['results'][0]['ingredient_name'], 'Flour')

        response = self.client.get(reverse('stock_transactions'), {'ingredient': 'flour'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_api_key(self):
        """Test inventory endpoints are not public"""
        self.client.defaults.pop('HTTP_X_API_KEY')

        response = self.client.get(reverse('ingredient_list'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
