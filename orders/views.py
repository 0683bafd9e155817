from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from restopos.authentication import staff_user
from restopos.pagination import PagePagination

from .models import Table
from .serializers import (
    CreateOrderSerializer, OrderSerializer, PublicOrderSerializer,
    UpdateOrderStatusSerializer, TableSerializer, TableStatusSerializer
)
from . import services
from .tables import change_table_status

ORDER_ID_PARAMETER = OpenApiParameter(
    name='order_id',
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description='Order ID'
)

CREATE_ORDER_EXAMPLE = OpenApiExample(
    'Create Order Example',
    summary='Table order with two products',
    description='Two of product 1 and one of product 2 for table 3',
    value={
        'type': 'TABLE',
        'table_id': 3,
        'customer_name': 'Sam',
        'items': [
            {'product_id': 1, 'quantity': 2},
            {'product_id': 2, 'quantity': 1, 'notes': 'no ice'}
        ]
    }
)


def _create_order(serializer, placed_by):
    data = serializer.validated_data
    order = services.create_order(
        order_type=data['type'],
        items=serializer.item_requests(),
        table_id=data['table_id'],
        customer_name=data['customer_name'],
        notes=data['notes'],
        placed_by=placed_by,
    )
    return services.get_order(order.pk)


class OrderListCreateView(APIView):
    pagination_class = PagePagination

    @extend_schema(
        summary="List orders",
        description="Orders newest first, for the kitchen display and POS to poll",
        parameters=[
            OpenApiParameter(name='status', type=OpenApiTypes.STR, description='Filter by status'),
            OpenApiParameter(name='type', type=OpenApiTypes.STR, description='COUNTER or TABLE'),
            OpenApiParameter(name='table', type=OpenApiTypes.INT, description='Filter by table ID'),
            OpenApiParameter(name='page', type=OpenApiTypes.INT, description='Page number'),
            OpenApiParameter(name='limit', type=OpenApiTypes.INT, description='Page size'),
        ],
        responses={200: OrderSerializer(many=True)}
    )
    def get(self, request):
        table_id = request.query_params.get('table') or None
        if table_id is not None and not table_id.isdigit():
            return Response({'error': 'table must be a table ID'}, status=status.HTTP_400_BAD_REQUEST)

        orders = services.list_orders(
            status=request.query_params.get('status'),
            order_type=request.query_params.get('type'),
            table_id=table_id,
        )
        paginator = self.pagination_class()
        page = paginator.paginate_queryset(orders, request, view=self)
        serializer = OrderSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        summary="Create an order",
        description="Create an order from a POS terminal. Items are priced from the catalog.",
        request=CreateOrderSerializer,
        responses={201: OrderSerializer},
        examples=[CREATE_ORDER_EXAMPLE]
    )
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        order = _create_order(serializer, placed_by=staff_user(request))
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    @extend_schema(
        summary="Get order details",
        description="Order with its items, table and payment",
        parameters=[ORDER_ID_PARAMETER],
        responses={200: OrderSerializer}
    )
    def get(self, request, order_id):
        order = services.get_order(order_id)
        return Response(OrderSerializer(order).data)


class OrderStatusView(APIView):
    @extend_schema(
        summary="Update order status",
        description=(
            "Move an order along PENDING -> PREPARING -> READY -> COMPLETED, or cancel it. "
            "Sending the current status again succeeds without change."
        ),
        parameters=[ORDER_ID_PARAMETER],
        request=UpdateOrderStatusSerializer,
        responses={200: OrderSerializer, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Status Example',
                summary='Kitchen starts preparing',
                value={'status': 'PREPARING'}
            ),
            OpenApiExample(
                'Invalid Transition',
                summary='Rejected status change',
                value={
                    'error': 'Cannot move order from READY to PENDING',
                    'code': 'invalid_transition',
                    'current': 'READY',
                    'requested': 'PENDING'
                },
                response_only=True,
                status_codes=['409']
            )
        ]
    )
    def patch(self, request, order_id):
        serializer = UpdateOrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        services.update_order_status(order_id, serializer.validated_data['status'])
        order = services.get_order(order_id)
        return Response(OrderSerializer(order).data)


class PublicOrderCreateView(APIView):
    """Orders placed by customers from the table QR menu"""

    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Create an order from the customer menu",
        description="Public ordering; the order has no staff attribution",
        request=CreateOrderSerializer,
        responses={201: PublicOrderSerializer},
        examples=[CREATE_ORDER_EXAMPLE]
    )
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        order = _create_order(serializer, placed_by=None)
        return Response(PublicOrderSerializer(order).data, status=status.HTTP_201_CREATED)


class PublicOrderDetailView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Track an order",
        description="Status and items of an order, for the customer's order tracker",
        parameters=[ORDER_ID_PARAMETER],
        responses={200: PublicOrderSerializer}
    )
    def get(self, request, order_id):
        order = services.get_order(order_id)
        return Response(PublicOrderSerializer(order).data)


class TableListView(APIView):
    @extend_schema(
        summary="List tables",
        description="Tables with their current occupancy",
        responses={200: TableSerializer(many=True)}
    )
    def get(self, request):
        tables = Table.objects.all()
        return Response(TableSerializer(tables, many=True).data)


class TableStatusView(APIView):
    @extend_schema(
        summary="Set table status",
        description="Mark a table AVAILABLE or RESERVED. Refused while the table has active orders.",
        parameters=[
            OpenApiParameter(
                name='table_id',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.PATH,
                description='Table ID'
            )
        ],
        request=TableStatusSerializer,
        responses={200: TableSerializer, 409: OpenApiTypes.OBJECT}
    )
    def patch(self, request, table_id):
        serializer = TableStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        table = change_table_status(table_id, serializer.validated_data['status'])
        return Response(TableSerializer(table).data)
