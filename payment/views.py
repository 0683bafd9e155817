from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from restopos.authentication import staff_user

from .serializers import PaymentSerializer, SettlePaymentSerializer
from .settlement import settle_payment


class SettlePaymentView(APIView):
    """Take payment for an order and complete it"""

    @extend_schema(
        summary="Settle payment",
        description=(
            "Record the single payment for an order and mark it COMPLETED. "
            "The amount must equal the order total."
        ),
        request=SettlePaymentSerializer,
        responses={
            201: PaymentSerializer,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT
        },
        examples=[
            OpenApiExample(
                'Payment Request',
                summary='Cash payment',
                description='Request body for settling order 12',
                value={'order_id': 12, 'method': 'CASH', 'amount': '14.30'}
            ),
            OpenApiExample(
                'Amount Mismatch',
                summary='Wrong amount',
                description='Response when the amount differs from the order total',
                value={
                    'error': 'Payment amount 14.29 does not match order total 14.30',
                    'code': 'amount_mismatch',
                    'expected': '14.30',
                    'received': '14.29'
                },
                response_only=True,
                status_codes=['400']
            ),
            OpenApiExample(
                'Already Paid',
                summary='Second payment',
                description='Response when the order already has a payment',
                value={
                    'error': 'Order 12 already has a payment',
                    'code': 'already_paid',
                    'order_id': 12
                },
                response_only=True,
                status_codes=['409']
            )
        ]
    )
    def post(self, request):
        serializer = SettlePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        payment = settle_payment(
            order_id=data['order_id'],
            method=data['method'],
            amount=data['amount'],
            received_by=staff_user(request),
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)
