"""Table occupancy, maintained as a side effect of the order lifecycle.

These helpers must be called inside the caller's transaction.atomic()
block; lock_table() holds the table row until that transaction ends.
"""

import logging

from django.db import transaction

from .exceptions import TableBusy, TableNotFound
from .models import Order, Table
from .state import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


def lock_table(table_id) -> Table:
    try:
        return Table.objects.select_for_update().get(pk=table_id)
    except Table.DoesNotExist:
        raise TableNotFound(table_id) from None


def set_table_status(table_id, status) -> None:
    Table.objects.filter(pk=table_id).update(status=status)


def count_active_orders(table_id, excluding_order_id=None) -> int:
    orders = Order.objects.filter(table_id=table_id, status__in=ACTIVE_STATUSES)
    if excluding_order_id is not None:
        orders = orders.exclude(pk=excluding_order_id)
    return orders.count()


def release_table_if_idle(table_id, completed_order_id) -> bool:
    """
    Set the table AVAILABLE when no other order on it is still active.

    The table row is locked before counting so that an order created for the
    table concurrently is either counted here or waits for this transaction.

    Returns:
        True if the table was released
    """
    lock_table(table_id)
    remaining = count_active_orders(table_id, excluding_order_id=completed_order_id)
    if remaining:
        return False
    set_table_status(table_id, Table.Status.AVAILABLE)
    logger.info("Table %s released after order %s", table_id, completed_order_id)
    return True


def change_table_status(table_id, status) -> Table:
    """Staff change of a table's status, e.g. to mark it RESERVED."""
    status = Table.Status(status)
    with transaction.atomic():
        table = lock_table(table_id)
        if table.status == status:
            return table
        active = count_active_orders(table_id)
        if active:
            raise TableBusy(table_id, active)
        table.status = status
        table.save(update_fields=['status'])

    logger.info("Table %s set to %s", table.number, status)
    return table
