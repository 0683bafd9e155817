from django.conf import settings
from django.db import models
from django.db.models import F, Q


class IngredientQuerySet(models.QuerySet):
    def low_stock(self):
        return self.filter(current_stock__lt=F('min_stock'))

    def out_of_stock(self):
        return self.filter(current_stock__lte=0)


class Ingredient(models.Model):
    class Unit(models.TextChoices):
        KILOGRAM = 'KILOGRAM', 'kg'
        GRAM = 'GRAM', 'g'
        LITER = 'LITER', 'L'
        MILLILITER = 'MILLILITER', 'mL'
        PIECE = 'PIECE', 'pcs'

    name = models.CharField(max_length=100, unique=True)
    unit = models.CharField(max_length=10, choices=Unit.choices)
    # Running balance; always the sum of this ingredient's ledger entries
    current_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0, editable=False)
    min_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    cost_per_unit = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = IngredientQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name='ingredient_stock_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.current_stock} {self.get_unit_display()})"

    @property
    def is_low_stock(self):
        return self.current_stock < self.min_stock

    @property
    def is_out_of_stock(self):
        return self.current_stock <= 0


class StockTransaction(models.Model):
    class Kind(models.TextChoices):
        PURCHASE = 'PURCHASE', 'Purchase'
        RETURN = 'RETURN', 'Return'
        USAGE = 'USAGE', 'Usage'
        WASTE = 'WASTE', 'Waste'
        ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'

    ingredient = models.ForeignKey(Ingredient, on_delete=models.PROTECT, related_name='transactions')
    kind = models.CharField(max_length=10, choices=Kind.choices)
    # Signed change actually applied to the balance; for ADJUSTMENT this is
    # the difference to the counted stock, not the count itself
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    balance_after = models.DecimalField(max_digits=12, decimal_places=3)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='stock_transactions',
        null=True,
        blank=True,
    )

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['ingredient', 'created_at'], name='stock_txn_ingredient_idx'),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.quantity} of {self.ingredient.name}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock transactions are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock transactions are append-only")
