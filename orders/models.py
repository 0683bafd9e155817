from django.conf import settings
from django.db import models

from catalog.models import Product


class Table(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = 'AVAILABLE', 'Available'
        OCCUPIED = 'OCCUPIED', 'Occupied'
        RESERVED = 'RESERVED', 'Reserved'

    number = models.PositiveIntegerField(unique=True)
    seats = models.PositiveIntegerField(default=4)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.AVAILABLE)

    class Meta:
        ordering = ['number']

    def __str__(self):
        return f"Table {self.number}"


class Order(models.Model):
    class Type(models.TextChoices):
        COUNTER = 'COUNTER', 'Counter'
        TABLE = 'TABLE', 'Table'

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PREPARING = 'PREPARING', 'Preparing'
        READY = 'READY', 'Ready'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    order_number = models.PositiveIntegerField(unique=True, editable=False)
    type = models.CharField(max_length=10, choices=Type.choices)
    table = models.ForeignKey(
        Table, on_delete=models.PROTECT, related_name='orders', null=True, blank=True
    )
    customer_name = models.CharField(max_length=100, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tax = models.DecimalField(max_digits=10, decimal_places=2)
    total = models.DecimalField(max_digits=10, decimal_places=2)
    # NULL means the order came from the public menu, not a staff member
    placed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='orders',
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-order_number']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
            models.Index(fields=['table', 'status'], name='order_table_status_idx'),
        ]

    def __str__(self):
        return f"Order #{self.order_number} ({self.get_status_display()})"

    @property
    def is_public(self):
        return self.placed_by_id is None


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField()
    # Price copied from the catalog when the order was created
    price = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.CharField(max_length=255, blank=True, default='')

    def __str__(self):
        return f"{self.quantity} x {self.product.name} for Order #{self.order.order_number}"

    @property
    def line_total(self):
        return self.price * self.quantity
