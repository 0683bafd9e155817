"""Order creation, status transitions and reads.

All writes go through transaction.atomic() with the affected order and
table rows locked, so the customer menu, kitchen display and POS terminals
can act on the same order at the same time.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Max

from catalog.reader import CatalogReader, get_catalog_reader

from .exceptions import (
    EmptyOrder,
    OrderNotFound,
    OrderValidationError,
    ProductUnavailable,
    TableRequired,
)
from .models import Order, OrderItem, Table
from .state import check_transition, parse_status
from .tables import lock_table, release_table_if_idle, set_table_status

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

# Attempts at claiming the next order number before giving up
ORDER_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True)
class ItemRequest:
    product_id: int
    quantity: int
    notes: str = ''


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(lines: Iterable[Tuple[Decimal, int]], tax_rate: Decimal = None):
    """
    Price an order from (unit price, quantity) pairs

    Args:
        lines: resolved catalog price and quantity per item
        tax_rate: defaults to settings.TAX_RATE

    Returns:
        (subtotal, tax, total); tax is rounded half-up to the cent and
        total is exactly subtotal + tax
    """
    if tax_rate is None:
        tax_rate = settings.TAX_RATE
    subtotal = sum((price * quantity for price, quantity in lines), Decimal('0'))
    subtotal = round_money(subtotal)
    tax = round_money(subtotal * tax_rate)
    return subtotal, tax, subtotal + tax


def _validate_request(order_type, table_id, items: List[ItemRequest]):
    if order_type not in Order.Type.values:
        raise OrderValidationError(f"Unknown order type: {order_type!r}")
    if not items:
        raise EmptyOrder()
    for item in items:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity <= 0:
            raise OrderValidationError(
                f"Quantity for product {item.product_id} must be a positive integer"
            )
    if order_type == Order.Type.TABLE and table_id is None:
        raise TableRequired()
    if order_type == Order.Type.COUNTER and table_id is not None:
        raise OrderValidationError('Counter orders cannot be assigned to a table')


def _resolve_prices(catalog: CatalogReader, items: List[ItemRequest]):
    requested = {item.product_id for item in items}
    snapshots = catalog.lookup(requested)
    missing = [
        product_id for product_id in requested
        if product_id not in snapshots or not snapshots[product_id].available
    ]
    if missing:
        raise ProductUnavailable(missing)
    return {product_id: snapshots[product_id].price for product_id in requested}


def _next_order_number():
    # Unlocked read; the unique order_number constraint settles concurrent claims
    last = Order.objects.aggregate(last=Max('order_number'))['last']
    return (last or 0) + 1


def _insert_order(**fields) -> Order:
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                return Order.objects.create(order_number=_next_order_number(), **fields)
        except IntegrityError:
            # Another terminal claimed the same number first
            if attempt == ORDER_NUMBER_ATTEMPTS:
                raise
            logger.debug("Order number collision, attempt %s", attempt)


def create_order(
    order_type,
    items: List[ItemRequest],
    table_id=None,
    customer_name: str = '',
    notes: str = '',
    placed_by=None,
    catalog: Optional[CatalogReader] = None,
) -> Order:
    """
    Create an order priced from the catalog.

    Prices sent by the client are never used; each item stores the catalog
    price at this moment. The order, its items and the table flip to
    OCCUPIED commit together or not at all.

    Args:
        order_type: Order.Type.COUNTER or Order.Type.TABLE
        items: requested products and quantities
        table_id: required for, and only allowed on, TABLE orders
        placed_by: staff user, or None for orders from the public menu
        catalog: price lookup, defaults to settings.CATALOG_READER

    Returns:
        The persisted PENDING order
    """
    items = list(items)
    _validate_request(order_type, table_id, items)

    # Catalog lookup happens before anything is written
    prices = _resolve_prices(catalog or get_catalog_reader(), items)
    subtotal, tax, total = compute_totals(
        (prices[item.product_id], item.quantity) for item in items
    )

    with transaction.atomic():
        if table_id is not None:
            lock_table(table_id)

        order = _insert_order(
            type=order_type,
            table_id=table_id,
            customer_name=(customer_name or '').strip(),
            notes=notes or '',
            status=Order.Status.PENDING,
            subtotal=subtotal,
            tax=tax,
            total=total,
            placed_by=placed_by,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=item.product_id,
                quantity=item.quantity,
                price=prices[item.product_id],
                notes=item.notes or '',
            )
            for item in items
        ])

        if table_id is not None:
            set_table_status(table_id, Table.Status.OCCUPIED)

    logger.info(
        "Order #%s created (%s, %d items, total %s)",
        order.order_number, order_type, len(items), total,
    )
    return order


def lock_order(order_id) -> Order:
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound(order_id) from None


def _set_status(order: Order, status) -> None:
    previous = order.status
    order.status = status
    order.save(update_fields=['status', 'updated_at'])
    logger.info("Order #%s %s -> %s", order.order_number, previous, status)

    if status == Order.Status.COMPLETED and order.table_id is not None:
        release_table_if_idle(order.table_id, order.pk)


def apply_transition(order: Order, new_status) -> bool:
    """
    Move a locked order to new_status. Must run inside transaction.atomic().

    Returns:
        False when the order already had new_status
    """
    if not check_transition(order.status, new_status):
        return False
    _set_status(order, parse_status(new_status))
    return True


def close_order(order: Order) -> None:
    """
    Complete a locked order for settlement. Must run inside transaction.atomic().

    Uses the same transition as a status update: READY moves to COMPLETED,
    an already COMPLETED order is left as is, anything else raises
    InvalidTransition.
    """
    apply_transition(order, Order.Status.COMPLETED)


def update_order_status(order_id, new_status) -> Order:
    """Apply a kitchen/POS status change; re-applying the current status is a no-op."""
    new_status = parse_status(new_status)
    with transaction.atomic():
        order = lock_order(order_id)
        apply_transition(order, new_status)
    return order


def get_order(order_id) -> Order:
    try:
        return (
            Order.objects
            .select_related('table', 'payment', 'placed_by')
            .prefetch_related('items__product')
            .get(pk=order_id)
        )
    except Order.DoesNotExist:
        raise OrderNotFound(order_id) from None


def list_orders(status=None, order_type=None, table_id=None):
    orders = (
        Order.objects
        .select_related('table', 'payment')
        .prefetch_related('items__product')
    )
    if status:
        orders = orders.filter(status=parse_status(status))
    if order_type:
        orders = orders.filter(type=order_type)
    if table_id:
        orders = orders.filter(table_id=table_id)
    return orders
