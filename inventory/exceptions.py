from restopos.exceptions import ServiceError


class LedgerValidationError(ServiceError):
    code = 'invalid_stock_transaction'
    default_message = 'Invalid stock transaction'


class IngredientNotFound(ServiceError):
    status_code = 404
    code = 'ingredient_not_found'

    def __init__(self, ingredient_id):
        super().__init__(f"Ingredient {ingredient_id} not found", ingredient_id=ingredient_id)


class NegativeStock(ServiceError):
    code = 'negative_stock'

    def __init__(self, delta, current_stock):
        self.delta = delta
        self.current_stock = current_stock
        super().__init__(
            f"Stock cannot be negative: applying {delta} to {current_stock}",
            delta=delta,
            current_stock=current_stock,
        )
