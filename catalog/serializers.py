from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'price', 'available']
        extra_kwargs = {
            'price': {'help_text': 'Current menu price (e.g., "3.50")'},
        }
