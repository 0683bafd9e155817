from django.contrib import admin
from .models import Ingredient, StockTransaction


@admin.register(Ingredient)
class IngredientAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'unit', 'current_stock', 'min_stock', 'cost_per_unit']
    list_filter = ['unit']
    search_fields = ['name']
    readonly_fields = ['current_stock', 'created_at', 'updated_at']


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'ingredient', 'kind', 'quantity', 'balance_after', 'total_cost', 'created_at']
    list_filter = ['kind', 'created_at']
    search_fields = ['ingredient__name', 'notes']

    # The ledger is written by inventory.ledger only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
