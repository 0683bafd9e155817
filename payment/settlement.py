"""Settle an order: record its single payment and complete it in one transaction."""

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction

from orders.services import close_order, lock_order

from .exceptions import AlreadyPaid, AmountMismatch, PaymentValidationError
from .models import Payment

logger = logging.getLogger(__name__)


def _to_amount(amount) -> Decimal:
    # Floats are rejected, amounts must arrive as Decimal or str
    if isinstance(amount, float) or isinstance(amount, bool):
        raise PaymentValidationError("Amount must be a decimal value, not a float")
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise PaymentValidationError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise PaymentValidationError("Amount must be positive")
    return value


def has_payment(order) -> bool:
    return Payment.objects.filter(order=order).exists()


def settle_payment(order_id, method, amount, received_by=None) -> Payment:
    """
    Record the payment for an order and mark the order COMPLETED.

    The order row stays locked from the already-paid check to the insert,
    and the one-to-one key rejects a second payment that gets past the
    check, so concurrent settlements of one order produce one payment.

    Args:
        order_id: order being paid
        method: Payment.Method.CASH or Payment.Method.CARD
        amount: must equal the order total exactly
        received_by: cashier, if known

    Returns:
        The recorded payment

    Raises:
        OrderNotFound, AlreadyPaid, AmountMismatch, InvalidTransition
    """
    if method not in Payment.Method.values:
        raise PaymentValidationError(f"Unknown payment method: {method!r}")
    amount = _to_amount(amount)

    with transaction.atomic():
        order = lock_order(order_id)

        if has_payment(order):
            raise AlreadyPaid(order.pk)

        if amount != order.total:
            raise AmountMismatch(expected=order.total, received=amount)

        close_order(order)

        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    order=order,
                    method=method,
                    amount=amount,
                    received_by=received_by,
                )
        except IntegrityError:
            raise AlreadyPaid(order.pk) from None

    logger.info(
        "Order #%s settled by %s for %s", order.order_number, method, amount
    )
    return payment
