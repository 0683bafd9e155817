from decimal import Decimal
from unittest.mock import patch

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from catalog.models import Product
from catalog.reader import CatalogReader, ProductSnapshot
from .exceptions import (
    EmptyOrder, InvalidTransition, OrderNotFound, OrderValidationError,
    ProductUnavailable, TableBusy, TableNotFound, TableRequired
)
from .models import Order, OrderItem, Table
from .services import ItemRequest, compute_totals, create_order, update_order_status
from .state import can_transition, check_transition
from .tables import change_table_status, count_active_orders


class CountingCatalogReader(CatalogReader):
    def __init__(self, snapshots):
        self.snapshots = snapshots
        self.calls = 0

    def lookup(self, product_ids):
        self.calls += 1
        return {pid: self.snapshots[pid] for pid in product_ids if pid in self.snapshots}


class OrderTotalsTests(TestCase):
    """Test subtotal, tax and total arithmetic"""

    def test_two_item_totals(self):
        """Test $5.00 x 2 + $3.00 x 1 at 10% tax"""
        subtotal, tax, total = compute_totals(
            [(Decimal('5.00'), 2), (Decimal('3.00'), 1)], tax_rate=Decimal('0.10')
        )

        self.assertEqual(subtotal, Decimal('13.00'))
        self.assertEqual(tax, Decimal('1.30'))
        self.assertEqual(total, Decimal('14.30'))

    def test_tax_rounds_half_up(self):
        """Test tax is rounded half-up to the cent"""
        # 0.25 x 10% = 0.025
        subtotal, tax, total = compute_totals([(Decimal('0.25'), 1)], tax_rate=Decimal('0.10'))

        self.assertEqual(tax, Decimal('0.03'))
        self.assertEqual(total, Decimal('0.28'))

    def test_total_is_subtotal_plus_tax(self):
        """Test total equals subtotal + tax for awkward prices"""
        prices = [Decimal('0.99'), Decimal('1.15'), Decimal('7.33'), Decimal('12.45')]
        for price in prices:
            for quantity in (1, 3, 7):
                subtotal, tax, total = compute_totals([(price, quantity)], tax_rate=Decimal('0.0825'))
                self.assertEqual(total, subtotal + tax)
                self.assertEqual(tax, tax.quantize(Decimal('0.01')))

    def test_uses_configured_tax_rate(self):
        """Test the default rate comes from settings.TAX_RATE"""
        with self.settings(TAX_RATE=Decimal('0.20')):
            _, tax, _ = compute_totals([(Decimal('10.00'), 1)])
        self.assertEqual(tax, Decimal('2.00'))


class CreateOrderTests(TestCase):
    """Test order creation and pricing"""

    def setUp(self):
        self.burger = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.soda = Product.objects.create(name="Soda", price=Decimal('3.00'))
        self.sold_out = Product.objects.create(name="Special", price=Decimal('9.00'), available=False)
        self.table = Table.objects.create(number=1, seats=4)

    def test_table_order_is_priced_from_catalog(self):
        """Test items store catalog prices and the order carries computed totals"""
        order = create_order(
            Order.Type.TABLE,
            [ItemRequest(self.burger.id, 2), ItemRequest(self.soda.id, 1, notes="no ice")],
            table_id=self.table.id,
            customer_name="  Sam ",
        )

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.subtotal, Decimal('13.00'))
        self.assertEqual(order.tax, Decimal('1.30'))
        self.assertEqual(order.total, Decimal('14.30'))
        self.assertEqual(order.customer_name, "Sam")
        self.assertTrue(order.is_public)

        prices = dict(order.items.values_list('product_id', 'price'))
        self.assertEqual(prices, {self.burger.id: Decimal('5.00'), self.soda.id: Decimal('3.00')})
        self.assertEqual(order.items.get(product=self.soda).notes, "no ice")

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)

    def test_price_snapshot_survives_catalog_change(self):
        """Test later price changes do not alter an existing order"""
        order = create_order(Order.Type.COUNTER, [ItemRequest(self.burger.id, 1)])

        self.burger.price = Decimal('6.50')
        self.burger.save()

        item = order.items.get()
        self.assertEqual(item.price, Decimal('5.00'))
        order.refresh_from_db()
        self.assertEqual(order.subtotal, Decimal('5.00'))

    def test_order_numbers_increase(self):
        """Test each order gets the next order number"""
        first = create_order(Order.Type.COUNTER, [ItemRequest(self.burger.id, 1)])
        second = create_order(Order.Type.COUNTER, [ItemRequest(self.soda.id, 1)])

        self.assertEqual(second.order_number, first.order_number + 1)

    def test_catalog_is_read_once(self):
        """Test one batched catalog lookup per order"""
        catalog = CountingCatalogReader({
            self.burger.id: ProductSnapshot(Decimal('4.00'), True),
            self.soda.id: ProductSnapshot(Decimal('2.00'), True),
        })

        order = create_order(
            Order.Type.COUNTER,
            [ItemRequest(self.burger.id, 1), ItemRequest(self.soda.id, 2), ItemRequest(self.burger.id, 1)],
            catalog=catalog,
        )

        self.assertEqual(catalog.calls, 1)
        self.assertEqual(order.subtotal, Decimal('12.00'))

    def test_empty_order_rejected(self):
        """Test an order without items is rejected"""
        with self.assertRaises(EmptyOrder):
            create_order(Order.Type.COUNTER, [])
        self.assertEqual(Order.objects.count(), 0)

    def test_table_required(self):
        """Test a TABLE order without a table is rejected"""
        with self.assertRaises(TableRequired):
            create_order(Order.Type.TABLE, [ItemRequest(self.burger.id, 1)])
        self.assertEqual(Order.objects.count(), 0)

    def test_counter_order_with_table_rejected(self):
        """Test a COUNTER order cannot be assigned to a table"""
        with self.assertRaises(OrderValidationError):
            create_order(Order.Type.COUNTER, [ItemRequest(self.burger.id, 1)], table_id=self.table.id)

    def test_non_positive_quantity_rejected(self):
        """Test zero and negative quantities are rejected"""
        for quantity in (0, -1):
            with self.assertRaises(OrderValidationError):
                create_order(Order.Type.COUNTER, [ItemRequest(self.burger.id, quantity)])
        self.assertEqual(Order.objects.count(), 0)

    def test_unavailable_products_listed(self):
        """Test every missing or unavailable product is reported and nothing is written"""
        with self.assertRaises(ProductUnavailable) as ctx:
            create_order(
                Order.Type.TABLE,
                [ItemRequest(self.burger.id, 1), ItemRequest(self.sold_out.id, 1), ItemRequest(9999, 1)],
                table_id=self.table.id,
            )

        self.assertEqual(ctx.exception.context['product_ids'], sorted([self.sold_out.id, 9999]))
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.AVAILABLE)

    def test_failure_after_insert_rolls_back(self):
        """Test a failure while occupying the table leaves no order or items behind"""
        with patch('orders.services.set_table_status', side_effect=RuntimeError("database went away")):
            with self.assertRaises(RuntimeError):
                create_order(
                    Order.Type.TABLE,
                    [ItemRequest(self.burger.id, 2), ItemRequest(self.soda.id, 1)],
                    table_id=self.table.id,
                )

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.AVAILABLE)

    def test_unknown_table(self):
        """Test an order for a missing table is rejected"""
        with self.assertRaises(TableNotFound):
            create_order(Order.Type.TABLE, [ItemRequest(self.burger.id, 1)], table_id=9999)
        self.assertEqual(Order.objects.count(), 0)


class OrderStateMachineTests(TestCase):
    """Test order status transitions"""

    def setUp(self):
        self.product = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.table = Table.objects.create(number=1)

    def _order(self, table=None):
        return create_order(
            Order.Type.TABLE if table else Order.Type.COUNTER,
            [ItemRequest(self.product.id, 1)],
            table_id=table.id if table else None,
        )

    def test_legal_edges(self):
        """Test only the forward chain and cancellation are allowed"""
        S = Order.Status
        allowed = {
            (S.PENDING, S.PREPARING), (S.PREPARING, S.READY), (S.READY, S.COMPLETED),
            (S.PENDING, S.CANCELLED), (S.PREPARING, S.CANCELLED), (S.READY, S.CANCELLED),
        }
        for current in S:
            for requested in S:
                self.assertEqual(
                    can_transition(current, requested),
                    (current, requested) in allowed,
                    f"{current} -> {requested}",
                )

    def test_same_status_is_noop(self):
        """Test re-applying the current status succeeds without change"""
        self.assertFalse(check_transition(Order.Status.READY, Order.Status.READY))
        self.assertFalse(check_transition(Order.Status.COMPLETED, Order.Status.COMPLETED))

    def test_full_lifecycle(self):
        """Test PENDING -> PREPARING -> READY -> COMPLETED"""
        order = self._order()
        for new_status in ('PREPARING', 'READY', 'COMPLETED'):
            update_order_status(order.id, new_status)
            order.refresh_from_db()
            self.assertEqual(order.status, new_status)

    def test_backwards_transition_rejected(self):
        """Test READY -> PENDING is rejected and the status is unchanged"""
        order = self._order()
        update_order_status(order.id, 'PREPARING')
        update_order_status(order.id, 'READY')

        with self.assertRaises(InvalidTransition) as ctx:
            update_order_status(order.id, 'PENDING')

        self.assertEqual(ctx.exception.context, {'current': 'READY', 'requested': 'PENDING'})
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.READY)

    def test_skipping_steps_rejected(self):
        """Test PENDING -> COMPLETED is not a single legal step"""
        order = self._order()
        with self.assertRaises(InvalidTransition):
            update_order_status(order.id, 'COMPLETED')

    def test_terminal_states_are_final(self):
        """Test a cancelled order cannot be reopened"""
        order = self._order()
        update_order_status(order.id, 'CANCELLED')

        for new_status in ('PENDING', 'PREPARING', 'READY', 'COMPLETED'):
            with self.assertRaises(InvalidTransition):
                update_order_status(order.id, new_status)

    def test_unknown_status_rejected(self):
        """Test a status outside the enumeration is a validation error"""
        order = self._order()
        with self.assertRaises(OrderValidationError):
            update_order_status(order.id, 'SERVED')

    def test_missing_order(self):
        """Test updating an unknown order"""
        with self.assertRaises(OrderNotFound):
            update_order_status(9999, 'PREPARING')

    def test_completing_last_order_releases_table(self):
        """Test the table stays OCCUPIED until its last active order completes"""
        first = self._order(self.table)
        second = self._order(self.table)

        for new_status in ('PREPARING', 'READY', 'COMPLETED'):
            update_order_status(first.id, new_status)

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)
        self.assertEqual(count_active_orders(self.table.id), 1)

        for new_status in ('PREPARING', 'READY', 'COMPLETED'):
            update_order_status(second.id, new_status)

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.AVAILABLE)

    def test_cancelling_does_not_release_table(self):
        """Test only completion frees the table"""
        order = self._order(self.table)
        update_order_status(order.id, 'CANCELLED')

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)


class TableStatusTests(TestCase):
    """Test staff changes to table status"""

    def setUp(self):
        self.product = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.table = Table.objects.create(number=2)

    def test_reserve_free_table(self):
        """Test an idle table can be reserved"""
        table = change_table_status(self.table.id, Table.Status.RESERVED)
        self.assertEqual(table.status, Table.Status.RESERVED)

    def test_busy_table_cannot_be_freed(self):
        """Test a table with active orders cannot be set AVAILABLE"""
        create_order(Order.Type.TABLE, [ItemRequest(self.product.id, 1)], table_id=self.table.id)

        with self.assertRaises(TableBusy):
            change_table_status(self.table.id, Table.Status.AVAILABLE)

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)

    def test_unknown_table(self):
        """Test changing a missing table"""
        with self.assertRaises(TableNotFound):
            change_table_status(9999, Table.Status.RESERVED)

    def test_admin_cannot_edit_status(self):
        """Test the admin shows table status read-only"""
        table_admin = admin.site._registry[Table]

        self.assertIn('status', table_admin.get_readonly_fields(request=None, obj=self.table))


class OrderAPITests(APITestCase):
    """Test order API endpoints"""

    def setUp(self):
        self.burger = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.soda = Product.objects.create(name="Soda", price=Decimal('3.00'))
        self.table = Table.objects.create(number=3, seats=4)
        # Add API key to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'

    def _create(self, **overrides):
        data = {
            'type': 'TABLE',
            'table_id': self.table.id,
            'items': [
                {'product_id': self.burger.id, 'quantity': 2},
                {'product_id': self.soda.id, 'quantity': 1},
            ],
        }
        data.update(overrides)
        return self.client.post(reverse('order_list'), data, format='json')

    def test_create_order(self):
        """Test creating an order returns the priced order"""
        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['subtotal'], '13.00')
        self.assertEqual(response.data['tax'], '1.30')
        self.assertEqual(response.data['total'], '14.30')
        self.assertEqual(len(response.data['items']), 2)
        self.assertIsNone(response.data['payment'])
        self.assertEqual(response.data['table']['status'], 'OCCUPIED')

    def test_client_prices_ignored(self):
        """Test prices sent by the client have no effect"""
        response = self._create(items=[
            {'product_id': self.burger.id, 'quantity': 1, 'price': '0.01'},
        ])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['items'][0]['price'], '5.00')
        self.assertEqual(response.data['subtotal'], '5.00')

    def test_create_requires_api_key(self):
        """Test staff endpoints reject requests without a key"""
        self.client.defaults.pop('HTTP_X_API_KEY')
        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(Order.objects.count(), 0)

    def test_wrong_api_key(self):
        """Test an invalid key is rejected"""
        self.client.defaults['HTTP_X_API_KEY'] = 'wrong'
        response = self.client.get(reverse('order_list'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_table_required_error(self):
        """Test service errors render as error/code JSON"""
        response = self._create(table_id=None)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'table_required')
        self.assertIn('error', response.data)

    def test_unavailable_product_error(self):
        """Test unavailable products are listed in the response"""
        response = self._create(items=[{'product_id': 9999, 'quantity': 1}])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'product_unavailable')
        self.assertEqual(response.data['product_ids'], [9999])

    def test_invalid_quantity(self):
        """Test serializer validation of quantity"""
        response = self._create(items=[{'product_id': self.burger.id, 'quantity': 0}])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_staff_user_is_recorded(self):
        """Test orders from a logged-in staff session are attributed"""
        staff = get_user_model().objects.create_user('cashier', password='pw', is_staff=True)
        self.client.defaults.pop('HTTP_X_API_KEY')
        self.client.force_authenticate(user=staff)

        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['placed_by'], staff.id)
        self.assertFalse(response.data['is_public'])

    def test_get_order(self):
        """Test retrieving an order"""
        order_id = self._create().data['id']

        response = self.client.get(reverse('get_order', kwargs={'order_id': order_id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], order_id)
        self.assertEqual(response.data['items'][0]['product_name'], 'Burger')

    def test_get_missing_order(self):
        """Test 404 for an unknown order"""
        response = self.client.get(reverse('get_order', kwargs={'order_id': 9999}))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'order_not_found')

    def test_update_status(self):
        """Test the kitchen moving an order forward"""
        order_id = self._create().data['id']
        url = reverse('update_order_status', kwargs={'order_id': order_id})

        response = self.client.patch(url, {'status': 'PREPARING'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PREPARING')

        # Same status again is accepted
        response = self.client.patch(url, {'status': 'PREPARING'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_illegal_status_change_conflict(self):
        """Test READY -> PENDING returns 409 with the current and requested status"""
        order_id = self._create().data['id']
        url = reverse('update_order_status', kwargs={'order_id': order_id})
        self.client.patch(url, {'status': 'PREPARING'}, format='json')
        self.client.patch(url, {'status': 'READY'}, format='json')

        response = self.client.patch(url, {'status': 'PENDING'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_transition')
        self.assertEqual(response.data['current'], 'READY')
        self.assertEqual(response.data['requested'], 'PENDING')
        self.assertEqual(Order.objects.get(pk=order_id).status, Order.Status.READY)

    def test_unknown_status_value(self):
        """Test an unknown status is a 400"""
        order_id = self._create().data['id']
        url = reverse('update_order_status', kwargs={'order_id': order_id})

        response = self.client.patch(url, {'status': 'SERVED'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_orders_filters_and_pages(self):
        """Test listing orders newest first with filters and paging"""
        for _ in range(3):
            self._create()
        counter = self._create(type='COUNTER', table_id=None).data

        response = self.client.get(reverse('order_list'), {'limit': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 4)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['results'][0]['id'], counter['id'])

        response = self.client.get(reverse('order_list'), {'type': 'COUNTER'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(reverse('order_list'), {'table': self.table.id, 'status': 'PENDING'})
        self.assertEqual(response.data['count'], 3)

    def test_list_orders_bad_table_filter(self):
        """Test a non-numeric table filter is a 400"""
        response = self.client.get(reverse('order_list'), {'table': 'abc'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_tables(self):
        """Test listing tables"""
        response = self.client.get(reverse('table_list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['number'], 3)

    def test_table_status_conflict(self):
        """Test freeing a table with active orders returns 409"""
        self._create()
        url = reverse('update_table_status', kwargs={'table_id': self.table.id})

        response = self.client.patch(url, {'status': 'AVAILABLE'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'table_busy')
        self.assertEqual(response.data['active_orders'], 1)

    def test_reserve_table(self):
        """Test reserving an idle table"""
        url = reverse('update_table_status', kwargs={'table_id': self.table.id})

        response = self.client.patch(url, {'status': 'RESERVED'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'RESERVED')

    def test_table_status_unknown_value(self):
        """Test serializer validation of the table status"""
        url = reverse('update_table_status', kwargs={'table_id': self.table.id})

        response = self.client.patch(url, {'status': 'BROKEN'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('status', response.data)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.AVAILABLE)


class PublicOrderAPITests(APITestCase):
    """Test ordering from the customer menu"""

    def setUp(self):
        self.burger = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.table = Table.objects.create(number=7)

    def test_public_order_without_api_key(self):
        """Test customers can order and track without a key"""
        data = {
            'type': 'TABLE',
            'table_id': self.table.id,
            'customer_name': 'Alex',
            'items': [{'product_id': self.burger.id, 'quantity': 1}],
        }

        response = self.client.post(reverse('create_public_order'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['table_number'], 7)
        self.assertEqual(response.data['total'], '5.50')
        self.assertNotIn('placed_by', response.data)

        order = Order.objects.get(pk=response.data['id'])
        self.assertIsNone(order.placed_by)
        self.assertTrue(order.is_public)

        response = self.client.get(reverse('get_public_order', kwargs={'order_id': order.id}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PENDING')

    def test_public_errors_render(self):
        """Test service errors on the public endpoint"""
        data = {'type': 'COUNTER', 'items': []}

        response = self.client.post(reverse('create_public_order'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'empty_order')
