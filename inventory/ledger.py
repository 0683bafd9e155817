"""Stock ledger: append-only transactions plus a running balance per ingredient.

For every ingredient, current_stock equals the sum of the signed quantities
of its transactions and is never negative. Each write locks the ingredient
row, so adjustments to one ingredient are serialised while different
ingredients proceed independently.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List

from django.db import models, transaction
from django.db.models import Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from .exceptions import IngredientNotFound, LedgerValidationError, NegativeStock
from .models import Ingredient, StockTransaction

logger = logging.getLogger(__name__)

Kind = StockTransaction.Kind

INCREASE_KINDS = frozenset({Kind.PURCHASE, Kind.RETURN})
DECREASE_KINDS = frozenset({Kind.USAGE, Kind.WASTE})

# Names used by older clients for the same kinds
KIND_ALIASES = {
    'IN': Kind.PURCHASE,
    'STOCK_IN': Kind.PURCHASE,
    'OUT': Kind.USAGE,
    'STOCK_OUT': Kind.USAGE,
}

STOCK_PLACES = Decimal('0.001')
CENT = Decimal('0.01')


def parse_kind(value) -> Kind:
    key = str(value).strip().upper()
    if key in KIND_ALIASES:
        return KIND_ALIASES[key]
    try:
        return Kind(key)
    except ValueError:
        raise LedgerValidationError(f"Unknown stock transaction kind: {value!r}") from None


def to_quantity(value) -> Decimal:
    if isinstance(value, (float, bool)):
        raise LedgerValidationError("Quantity must be a decimal value, not a float")
    try:
        quantity = Decimal(value)
        if not quantity.is_finite():
            raise InvalidOperation
        return quantity.quantize(STOCK_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid quantity: {value!r}") from None


def signed_delta(kind, quantity: Decimal, current_stock: Decimal) -> Decimal:
    """
    Change in stock produced by a transaction

    PURCHASE/RETURN add abs(quantity), USAGE/WASTE remove abs(quantity) and
    ADJUSTMENT treats quantity as the counted stock, returning the
    difference needed to reach it.
    """
    if kind in INCREASE_KINDS:
        return abs(quantity)
    if kind in DECREASE_KINDS:
        return -abs(quantity)
    if kind == Kind.ADJUSTMENT:
        return quantity - current_stock
    raise LedgerValidationError(f"Unknown stock transaction kind: {kind!r}")


def lock_ingredient(ingredient_id) -> Ingredient:
    try:
        return Ingredient.objects.select_for_update().get(pk=ingredient_id)
    except Ingredient.DoesNotExist:
        raise IngredientNotFound(ingredient_id) from None


def apply_stock_transaction(
    ingredient_id,
    kind,
    quantity,
    total_cost=None,
    notes: str = '',
    actor=None,
) -> StockTransaction:
    """
    Append a transaction to an ingredient's ledger and move its balance.

    Args:
        ingredient_id: ingredient to adjust
        kind: StockTransaction.Kind (or a legacy alias such as IN / OUT)
        quantity: amount purchased, used, wasted or returned; for
            ADJUSTMENT, the counted stock to set
        total_cost: expense of the transaction; defaults to
            quantity x cost_per_unit for purchases
        notes: free text kept with the entry
        actor: user recording the transaction, if known

    Returns:
        The stored transaction, whose quantity is the signed change applied

    Raises:
        IngredientNotFound, NegativeStock, LedgerValidationError
    """
    kind = parse_kind(kind)
    quantity = to_quantity(quantity)
    if kind != Kind.ADJUSTMENT and quantity == 0:
        raise LedgerValidationError("Quantity cannot be zero")
    if total_cost is not None:
        total_cost = to_quantity(total_cost).quantize(CENT, rounding=ROUND_HALF_UP)
        if total_cost < 0:
            raise LedgerValidationError("Total cost cannot be negative")

    with transaction.atomic():
        ingredient = lock_ingredient(ingredient_id)
        current = ingredient.current_stock
        delta = signed_delta(kind, quantity, current)
        new_balance = current + delta

        if new_balance < 0:
            raise NegativeStock(delta=delta, current_stock=current)

        if total_cost is None and kind == Kind.PURCHASE:
            total_cost = (abs(quantity) * ingredient.cost_per_unit).quantize(CENT, rounding=ROUND_HALF_UP)

        entry = StockTransaction.objects.create(
            ingredient=ingredient,
            kind=kind,
            quantity=delta,
            balance_after=new_balance,
            total_cost=total_cost,
            notes=notes or '',
            created_by=actor,
        )
        Ingredient.objects.filter(pk=ingredient.pk).update(
            current_stock=new_balance,
            updated_at=timezone.now(),
        )
        ingredient.current_stock = new_balance

    logger.info(
        "%s of %s on %s: %s -> %s",
        kind, delta, ingredient.name, current, new_balance,
    )
    return entry


def create_ingredient(
    name: str,
    unit,
    min_stock=Decimal('0'),
    cost_per_unit=Decimal('0'),
    initial_stock=Decimal('0'),
    actor=None,
) -> Ingredient:
    """Create an ingredient; opening stock is booked as an ADJUSTMENT entry."""
    initial_stock = to_quantity(initial_stock)
    if initial_stock < 0:
        raise LedgerValidationError("Initial stock cannot be negative")

    with transaction.atomic():
        ingredient = Ingredient.objects.create(
            name=name,
            unit=unit,
            min_stock=to_quantity(min_stock),
            cost_per_unit=to_quantity(cost_per_unit).quantize(CENT, rounding=ROUND_HALF_UP),
        )
        if initial_stock > 0:
            apply_stock_transaction(
                ingredient.pk,
                Kind.ADJUSTMENT,
                initial_stock,
                notes='Opening stock',
                actor=actor,
            )
            ingredient.refresh_from_db()

    logger.info("Ingredient %s created with %s %s", name, initial_stock, unit)
    return ingredient


def transaction_history(ingredient_id=None):
    entries = StockTransaction.objects.select_related('ingredient', 'created_by')
    if ingredient_id is not None:
        entries = entries.filter(ingredient_id=ingredient_id)
    return entries


def derived_balance(ingredient_id) -> Decimal:
    """Balance recomputed from the ledger alone"""
    total = StockTransaction.objects.filter(ingredient_id=ingredient_id).aggregate(
        total=Sum('quantity')
    )['total']
    return (total or Decimal('0')).quantize(STOCK_PLACES)


def find_ledger_drift() -> List[dict]:
    """Ingredients whose running balance disagrees with their ledger."""
    ingredients = Ingredient.objects.annotate(
        ledger_total=Coalesce(
            Sum('transactions__quantity'),
            Value(Decimal('0')),
            output_field=models.DecimalField(max_digits=14, decimal_places=3),
        )
    )
    drift = []
    for ingredient in ingredients:
        ledger_total = Decimal(ingredient.ledger_total).quantize(STOCK_PLACES)
        if ledger_total != ingredient.current_stock:
            drift.append({
                'ingredient_id': ingredient.pk,
                'name': ingredient.name,
                'current_stock': ingredient.current_stock,
                'ledger_total': ledger_total,
            })
    return drift


def get_ingredient(ingredient_id) -> Ingredient:
    try:
        return Ingredient.objects.get(pk=ingredient_id)
    except Ingredient.DoesNotExist:
        raise IngredientNotFound(ingredient_id) from None
