from django.contrib import admin
from .models import Table, Order, OrderItem


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ['id', 'number', 'seats', 'status']
    list_filter = ['status']
    search_fields = ['number']
    # Occupancy follows the orders; staff changes go through the table status API
    readonly_fields = ['status']


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ['product', 'quantity', 'price', 'notes']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'type', 'table', 'status', 'total', 'created_at']
    list_filter = ['status', 'type', 'created_at']
    search_fields = ['order_number', 'customer_name', 'table__number']
    # Totals are fixed at creation and status changes go through the API
    readonly_fields = ['order_number', 'type', 'table', 'status', 'subtotal', 'tax', 'total',
                       'placed_by', 'created_at', 'updated_at']
    inlines = [OrderItemInline]

    def has_delete_permission(self, request, obj=None):
        return False
