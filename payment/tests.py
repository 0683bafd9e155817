from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from catalog.models import Product
from orders.exceptions import InvalidTransition, OrderNotFound
from orders.models import Order, Table
from orders.services import ItemRequest, create_order, update_order_status
from .exceptions import AlreadyPaid, AmountMismatch, PaymentValidationError
from .models import Payment
from .settlement import settle_payment


class SettlementTests(TestCase):
    """Test settling orders"""

    def setUp(self):
        self.burger = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.soda = Product.objects.create(name="Soda", price=Decimal('3.00'))
        self.table = Table.objects.create(number=1, seats=4)
        # 2 x $5.00 + 1 x $3.00 = $13.00 + $1.30 tax = $14.30
        self.order = create_order(
            Order.Type.TABLE,
            [ItemRequest(self.burger.id, 2), ItemRequest(self.soda.id, 1)],
            table_id=self.table.id,
        )
        # Kitchen has finished the order
        update_order_status(self.order.id, 'PREPARING')
        update_order_status(self.order.id, 'READY')

    def test_amount_must_match_total(self):
        """Test $14.29 is rejected and $14.30 completes the order"""
        with self.assertRaises(AmountMismatch) as ctx:
            settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.29'))

        self.assertEqual(ctx.exception.context['expected'], Decimal('14.30'))
        self.assertEqual(Payment.objects.count(), 0)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.READY)

        payment = settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        self.assertEqual(payment.amount, Decimal('14.30'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.COMPLETED)

    def test_settlement_releases_table(self):
        """Test paying the last active order frees the table"""
        settle_payment(self.order.id, Payment.Method.CARD, Decimal('14.30'))

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.AVAILABLE)

    def test_table_kept_while_other_orders_active(self):
        """Test the table stays occupied while another order is open"""
        create_order(Order.Type.TABLE, [ItemRequest(self.soda.id, 1)], table_id=self.table.id)

        settle_payment(self.order.id, Payment.Method.CARD, Decimal('14.30'))

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)

    def test_unfinished_orders_cannot_be_paid(self):
        """Test PENDING and PREPARING orders cannot jump to COMPLETED through payment"""
        pending = create_order(Order.Type.COUNTER, [ItemRequest(self.soda.id, 1)])
        preparing = create_order(Order.Type.COUNTER, [ItemRequest(self.soda.id, 1)])
        update_order_status(preparing.id, 'PREPARING')

        for order, current in ((pending, 'PENDING'), (preparing, 'PREPARING')):
            with self.assertRaises(InvalidTransition) as ctx:
                settle_payment(order.id, Payment.Method.CASH, Decimal('3.30'))

            self.assertEqual(ctx.exception.context, {'current': current, 'requested': 'COMPLETED'})
            order.refresh_from_db()
            self.assertEqual(order.status, current)

        self.assertEqual(Payment.objects.count(), 0)

    def test_failed_insert_rolls_back_completion(self):
        """Test the order stays READY when recording the payment fails"""
        with patch.object(Payment.objects, 'create', side_effect=RuntimeError("database went away")):
            with self.assertRaises(RuntimeError):
                settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        self.assertEqual(Payment.objects.count(), 0)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.READY)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.Status.OCCUPIED)

    def test_completed_unpaid_order(self):
        """Test an order completed by the kitchen can still be paid once"""
        update_order_status(self.order.id, 'COMPLETED')

        payment = settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        self.assertEqual(payment.order_id, self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.COMPLETED)

    def test_second_payment_rejected(self):
        """Test an order can only be paid once"""
        settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        with self.assertRaises(AlreadyPaid):
            settle_payment(self.order.id, Payment.Method.CARD, Decimal('14.30'))

        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_concurrent_payment_hits_unique_constraint(self):
        """Test a payment that slips past the check is still rejected"""
        settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        with patch('payment.settlement.has_payment', return_value=False):
            with self.assertRaises(AlreadyPaid):
                settle_payment(self.order.id, Payment.Method.CARD, Decimal('14.30'))

        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)
        self.assertEqual(Payment.objects.get().method, Payment.Method.CASH)

    def test_cancelled_order_cannot_be_paid(self):
        """Test settling a cancelled order fails without recording a payment"""
        update_order_status(self.order.id, 'CANCELLED')

        with self.assertRaises(InvalidTransition):
            settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        self.assertEqual(Payment.objects.count(), 0)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CANCELLED)

    def test_missing_order(self):
        """Test settling an unknown order"""
        with self.assertRaises(OrderNotFound):
            settle_payment(9999, Payment.Method.CASH, Decimal('1.00'))

    def test_invalid_amounts(self):
        """Test floats, zero and unknown methods are rejected"""
        for amount in (14.30, Decimal('0'), Decimal('-14.30'), 'abc'):
            with self.assertRaises(PaymentValidationError):
                settle_payment(self.order.id, Payment.Method.CASH, amount)

        with self.assertRaises(PaymentValidationError):
            settle_payment(self.order.id, 'CHEQUE', Decimal('14.30'))

        self.assertEqual(Payment.objects.count(), 0)

    def test_payments_are_immutable(self):
        """Test a recorded payment cannot be changed"""
        payment = settle_payment(self.order.id, Payment.Method.CASH, Decimal('14.30'))

        payment.amount = Decimal('1.00')
        with self.assertRaises(ValueError):
            payment.save()


class PaymentAPITests(APITestCase):
    """Test payment API endpoints"""

    def setUp(self):
        self.burger = Product.objects.create(name="Burger", price=Decimal('5.00'))
        self.soda = Product.objects.create(name="Soda", price=Decimal('3.00'))
        self.order = create_order(
            Order.Type.COUNTER,
            [ItemRequest(self.burger.id, 2), ItemRequest(self.soda.id, 1)],
        )
        update_order_status(self.order.id, 'PREPARING')
        update_order_status(self.order.id, 'READY')
        # Add API key to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'

    def _settle(self, amount, order_id=None, method='CASH'):
        data = {'order_id': order_id or self.order.id, 'method': method, 'amount': amount}
        return self.client.post(reverse('settle_payment'), data, format='json')

    def test_settle_payment(self):
        """Test successful settlement"""
        response = self._settle('14.30')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount'], '14.30')
        self.assertEqual(response.data['order'], self.order.id)

        # The order now shows its payment
        response = self.client.get(reverse('get_order', kwargs={'order_id': self.order.id}))
        self.assertEqual(response.data['status'], 'COMPLETED')
        self.assertEqual(response.data['payment']['method'], 'CASH')

    def test_amount_mismatch(self):
        """Test a wrong amount returns 400 with the expected total"""
        response = self._settle('14.29')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'amount_mismatch')
        self.assertEqual(response.data['expected'], '14.30')
        self.assertEqual(response.data['received'], '14.29')

    def test_already_paid(self):
        """Test a second payment returns 409"""
        self._settle('14.30')

        response = self._settle('14.30', method='CARD')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_paid')
        self.assertEqual(Payment.objects.count(), 1)

    def test_pending_order_conflict(self):
        """Test paying an order the kitchen has not finished returns 409"""
        pending = create_order(Order.Type.COUNTER, [ItemRequest(self.soda.id, 1)])

        response = self._settle('3.30', order_id=pending.id)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_transition')
        self.assertEqual(response.data['current'], 'PENDING')
        self.assertEqual(Payment.objects.count(), 0)

    def test_missing_order(self):
        """Test 404 for an unknown order"""
        response = self._settle('14.30', order_id=9999)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'order_not_found')

    def test_invalid_method(self):
        """Test serializer validation of the payment method"""
        response = self._settle('14.30', method='CHEQUE')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('method', response.data)

    def test_requires_api_key(self):
        """Test settlement is not public"""
        self.client.defaults.pop('HTTP_X_API_KEY')

        response = self._settle('14.30')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(Payment.objects.count(), 0)
