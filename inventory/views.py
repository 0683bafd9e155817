from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from restopos.authentication import staff_user
from restopos.pagination import PagePagination

from .models import Ingredient
from .serializers import (
    IngredientSerializer, CreateIngredientSerializer,
    StockTransactionSerializer, ApplyStockTransactionSerializer
)
from . import ledger


class IngredientListCreateView(APIView):
    pagination_class = PagePagination

    @extend_schema(
        summary="List ingredients",
        description="Ingredients with stock levels; filter with ?search= and ?low_stock=true",
        parameters=[
            OpenApiParameter(name='search', type=OpenApiTypes.STR, description='Name contains'),
            OpenApiParameter(name='low_stock', type=OpenApiTypes.BOOL, description='Only ingredients below minimum stock'),
            OpenApiParameter(name='page', type=OpenApiTypes.INT, description='Page number'),
            OpenApiParameter(name='limit', type=OpenApiTypes.INT, description='Page size'),
        ],
        responses={200: IngredientSerializer(many=True)}
    )
    def get(self, request):
        ingredients = Ingredient.objects.all()

        search = request.query_params.get('search')
        if search:
            ingredients = ingredients.filter(name__icontains=search)
        if request.query_params.get('low_stock', '').lower() in ('1', 'true', 'yes'):
            ingredients = ingredients.low_stock()

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(ingredients, request, view=self)
        serializer = IngredientSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        summary="Create an ingredient",
        description="Create an ingredient; any opening stock is recorded in its ledger",
        request=CreateIngredientSerializer,
        responses={201: IngredientSerializer},
        examples=[
            OpenApiExample(
                'Create Ingredient Example',
                summary='Flour with 10 kg in stock',
                value={
                    'name': 'Flour',
                    'unit': 'KILOGRAM',
                    'min_stock': '5.000',
                    'cost_per_unit': '1.20',
                    'initial_stock': '10.000'
                }
            )
        ]
    )
    def post(self, request):
        serializer = CreateIngredientSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        ingredient = ledger.create_ingredient(actor=staff_user(request), **serializer.validated_data)
        return Response(IngredientSerializer(ingredient).data, status=status.HTTP_201_CREATED)


class IngredientDetailView(APIView):
    @extend_schema(
        summary="Get ingredient",
        description="Current balance and low/out-of-stock flags",
        parameters=[
            OpenApiParameter(
                name='ingredient_id',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.PATH,
                description='Ingredient ID'
            )
        ],
        responses={200: IngredientSerializer}
    )
    def get(self, request, ingredient_id):
        ingredient = ledger.get_ingredient(ingredient_id)
        return Response(IngredientSerializer(ingredient).data)


class StockTransactionView(APIView):
    pagination_class = PagePagination

    @extend_schema(
        summary="Stock transaction history",
        description="Ledger entries newest first, optionally for one ingredient",
        parameters=[
            OpenApiParameter(name='ingredient', type=OpenApiTypes.INT, description='Ingredient ID'),
            OpenApiParameter(name='page', type=OpenApiTypes.INT, description='Page number'),
            OpenApiParameter(name='limit', type=OpenApiTypes.INT, description='Page size'),
        ],
        responses={200: StockTransactionSerializer(many=True)}
    )
    def get(self, request):
        ingredient_id = request.query_params.get('ingredient') or None
        if ingredient_id is not None and not ingredient_id.isdigit():
            return Response({'error': 'ingredient must be an ingredient ID'}, status=status.HTTP_400_BAD_REQUEST)
        entries = ledger.transaction_history(ingredient_id=ingredient_id)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(entries, request, view=self)
        serializer = StockTransactionSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        summary="Apply a stock transaction",
        description=(
            "Record a purchase, return, usage, waste or stock count. "
            "Rejected if the stock would go below zero."
        ),
        request=ApplyStockTransactionSerializer,
        responses={201: StockTransactionSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Purchase Example',
                summary='12 kg of flour delivered',
                value={'ingredient_id': 1, 'kind': 'PURCHASE', 'quantity': '12.000'}
            ),
            OpenApiExample(
                'Negative Stock',
                summary='Usage larger than stock',
                value={
                    'error': 'Stock cannot be negative: applying -12.000 to 10.000',
                    'code': 'negative_stock',
                    'delta': '-12.000',
                    'current_stock': '10.000'
                },
                response_only=True,
                status_codes=['400']
            )
        ]
    )
    def post(self, request):
        serializer = ApplyStockTransactionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        entry = ledger.apply_stock_transaction(
            ingredient_id=data['ingredient_id'],
            kind=data['kind'],
            quantity=data['quantity'],
            total_cost=data['total_cost'],
            notes=data['notes'],
            actor=staff_user(request),
        )
        return Response(StockTransactionSerializer(entry).data, status=status.HTTP_201_CREATED)
