from restopos.exceptions import ServiceError


class OrderValidationError(ServiceError):
    code = 'invalid_order'
    default_message = 'Invalid order'


class EmptyOrder(OrderValidationError):
    code = 'empty_order'
    default_message = 'Order must have at least one item'


class TableRequired(OrderValidationError):
    code = 'table_required'
    default_message = 'Table ID is required for table orders'


class ProductUnavailable(OrderValidationError):
    code = 'product_unavailable'

    def __init__(self, product_ids):
        ids = sorted(product_ids)
        super().__init__(
            f"Products not found or not available: {', '.join(str(i) for i in ids)}",
            product_ids=ids,
        )


class InvalidTransition(ServiceError):
    status_code = 409
    code = 'invalid_transition'

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move order from {current} to {requested}",
            current=str(current),
            requested=str(requested),
        )


class TableBusy(ServiceError):
    status_code = 409
    code = 'table_busy'

    def __init__(self, table_id, active_orders):
        super().__init__(
            f"Table {table_id} has {active_orders} active order(s)",
            table_id=table_id,
            active_orders=active_orders,
        )


class OrderNotFound(ServiceError):
    status_code = 404
    code = 'order_not_found'

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class TableNotFound(ServiceError):
    status_code = 404
    code = 'table_not_found'

    def __init__(self, table_id):
        super().__init__(f"Table {table_id} not found", table_id=table_id)
