from restopos.exceptions import ServiceError


class PaymentValidationError(ServiceError):
    code = 'invalid_payment'
    default_message = 'Invalid payment'


class AlreadyPaid(ServiceError):
    status_code = 409
    code = 'already_paid'

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} already has a payment", order_id=order_id)


class AmountMismatch(ServiceError):
    code = 'amount_mismatch'

    def __init__(self, expected, received):
        super().__init__(
            f"Payment amount {received} does not match order total {expected}",
            expected=expected,
            received=received,
        )
