from django.conf import settings
from django.db import models

from orders.models import Order


class Payment(models.Model):
    class Method(models.TextChoices):
        CASH = 'CASH', 'Cash'
        CARD = 'CARD', 'Card'

    # One payment per order, enforced by the unique constraint of the one-to-one key
    order = models.OneToOneField(Order, on_delete=models.PROTECT, related_name='payment')
    method = models.CharField(max_length=10, choices=Method.choices)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    paid_at = models.DateTimeField(auto_now_add=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='payments',
        null=True,
        blank=True,
    )

    class Meta:
        ordering = ['-paid_at']

    def __str__(self):
        return f"Payment {self.id} for Order #{self.order.order_number} - {self.method}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Payments are immutable once recorded")
        super().save(*args, **kwargs)
