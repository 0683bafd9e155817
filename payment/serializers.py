from rest_framework import serializers
from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ['id', 'order', 'method', 'amount', 'paid_at', 'received_by']
        read_only_fields = fields


class SettlePaymentSerializer(serializers.Serializer):
    """Serializer for settling an order"""
    order_id = serializers.IntegerField(help_text="Order being paid")
    method = serializers.ChoiceField(choices=Payment.Method.choices)
    amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Must equal the order total exactly (e.g., \"14.30\")"
    )
