from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'method', 'amount', 'paid_at']
    list_filter = ['method', 'paid_at']
    search_fields = ['order__order_number']
    readonly_fields = ['order', 'method', 'amount', 'paid_at', 'received_by']

    # Payments are recorded through settlement only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
