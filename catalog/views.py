from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny
from drf_spectacular.utils import extend_schema

from .models import Product
from .serializers import ProductSerializer


class ProductListView(ListAPIView):
    """Menu as shown to customers and POS terminals"""

    serializer_class = ProductSerializer
    permission_classes = [AllowAny]
    queryset = Product.objects.filter(available=True)

    @extend_schema(
        summary="List available products",
        description="Products that can currently be ordered, with their menu price",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
