from rest_framework import serializers

from payment.serializers import PaymentSerializer

from .models import Order, OrderItem, Table
from .services import ItemRequest


class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ['id', 'number', 'seats', 'status']


class TableStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Table.Status.choices)


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'price', 'line_total', 'notes']
        extra_kwargs = {
            'price': {'help_text': 'Catalog price when the order was placed'},
        }


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    table = TableSerializer(read_only=True)
    payment = PaymentSerializer(read_only=True, allow_null=True)
    is_public = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'type', 'table', 'customer_name', 'notes', 'status',
                  'subtotal', 'tax', 'total', 'placed_by', 'is_public', 'created_at',
                  'updated_at', 'items', 'payment']
        read_only_fields = fields
        extra_kwargs = {
            'subtotal': {'help_text': 'Sum of item price x quantity'},
            'tax': {'help_text': 'Subtotal x tax rate, rounded half-up to the cent'},
            'total': {'help_text': 'Subtotal + tax; the exact amount a payment must match'},
        }


class PublicOrderSerializer(serializers.ModelSerializer):
    """Order as shown on the customer's order tracker"""

    items = OrderItemSerializer(many=True, read_only=True)
    table_number = serializers.IntegerField(source='table.number', read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'type', 'table_number', 'customer_name', 'status',
                  'subtotal', 'tax', 'total', 'created_at', 'items']
        read_only_fields = fields


class OrderItemRequestSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(help_text="ID of the product to order")
    quantity = serializers.IntegerField(min_value=1, help_text="Quantity (minimum 1)")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class CreateOrderSerializer(serializers.Serializer):
    """
    Order request. Any price sent with the items is ignored; the order is
    priced from the catalog.
    """

    type = serializers.ChoiceField(choices=Order.Type.choices)
    table_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = OrderItemRequestSerializer(many=True)

    def item_requests(self):
        return [
            ItemRequest(
                product_id=item['product_id'],
                quantity=item['quantity'],
                notes=item.get('notes', ''),
            )
            for item in self.validated_data['items']
        ]


class UpdateOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)
