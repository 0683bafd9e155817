from rest_framework import serializers
from .models import Ingredient, StockTransaction


class IngredientSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Ingredient
        fields = ['id', 'name', 'unit', 'current_stock', 'min_stock', 'cost_per_unit',
                  'is_low_stock', 'is_out_of_stock', 'created_at', 'updated_at']
        read_only_fields = ['id', 'current_stock', 'created_at', 'updated_at']
        extra_kwargs = {
            'min_stock': {'help_text': 'Stock below this level is reported as low'},
        }


class CreateIngredientSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    unit = serializers.ChoiceField(choices=Ingredient.Unit.choices)
    min_stock = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, default=0)
    cost_per_unit = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    initial_stock = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        min_value=0,
        default=0,
        help_text="Opening stock, recorded as an adjustment in the ledger"
    )

    def validate_name(self, value):
        if Ingredient.objects.filter(name__iexact=value.strip()).exists():
            raise serializers.ValidationError("An ingredient with this name already exists")
        return value.strip()


class StockTransactionSerializer(serializers.ModelSerializer):
    ingredient_name = serializers.CharField(source='ingredient.name', read_only=True)
    unit = serializers.CharField(source='ingredient.unit', read_only=True)

    class Meta:
        model = StockTransaction
        fields = ['id', 'ingredient', 'ingredient_name', 'unit', 'kind', 'quantity',
                  'balance_after', 'total_cost', 'notes', 'created_at', 'created_by']
        read_only_fields = fields
        extra_kwargs = {
            'quantity': {'help_text': 'Signed change applied to the stock'},
        }


class ApplyStockTransactionSerializer(serializers.Serializer):
    ingredient_id = serializers.IntegerField(help_text="Ingredient to adjust")
    kind = serializers.CharField(
        max_length=20,
        help_text="PURCHASE, RETURN, USAGE, WASTE or ADJUSTMENT (IN and OUT are also accepted)"
    )
    quantity = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        help_text="Amount moved; for ADJUSTMENT, the counted stock to set"
    )
    total_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, default=None)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
