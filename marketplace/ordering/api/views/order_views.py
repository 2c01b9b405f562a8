from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from marketplace.api.serializers import ErrorResponseSerializer, ResultEnvelopeSerializer
from marketplace.api.views import result_response, serializer_error_response
from marketplace.ordering.api.serializers import (
    CreateOrderRequestSerializer,
    OrderSerializer,
    PaymentProofRequestSerializer,
    ReasonRequestSerializer,
)
from marketplace.ordering.domain.models.order import Order
from marketplace.services import ErrorKind, FulfillmentService, get_or_none, service_err, service_ok
from utils.rbac import is_admin, is_owner


def serialize_order(order):
    return OrderSerializer(order).data


class OrderViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def get_service(self) -> FulfillmentService:
        return FulfillmentService()

    @extend_schema(
        operation_id="orders_list",
        summary="List the user's orders (as buyer)",
        responses={200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Orders retrieved")},
        tags=["Marketplace - Orders"],
    )
    def list(self, request):
        orders = Order.objects.filter(buyer=request.user).select_related("listing", "buyer")
        status_filter = request.query_params.get("status")
        if status_filter:
            orders = orders.filter(status=status_filter)
        return result_response(service_ok(orders), lambda data: OrderSerializer(data, many=True).data)

    @extend_schema(
        operation_id="orders_retrieve",
        summary="Get order details (buyer, seller or admin)",
        responses={
            200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Order retrieved"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this order"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
        },
        tags=["Marketplace - Orders"],
    )
    def retrieve(self, request, pk=None):
        order = get_or_none(Order.objects.select_related("listing", "buyer"), pk)
        if order is None:
            return result_response(service_err(ErrorKind.NOT_FOUND, "Order not found"))
        if request.user.pk != order.buyer_id and not (is_owner(request.user, order.listing) or is_admin(request.user)):
            return result_response(service_err(ErrorKind.FORBIDDEN, "You cannot view this order"))
        return result_response(service_ok(order), serialize_order)

    @extend_schema(
        operation_id="orders_create",
        summary="Buy a listing outright",
        description="""
        **What it receives:**
        - `listing_id`, `payment_method`, `shipping_method`, `shipping_address`, `shipping_region`

        **What it returns:**
        - The pending order with subtotal, shipping, tax, total and payment deadline

        **Fails with:** 404 (listing missing), 422 (listing unavailable or already
        held by another order, invalid shipping address)
        """,
        request=CreateOrderRequestSerializer,
        responses={
            201: OpenApiResponse(response=ResultEnvelopeSerializer, description="Order created"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request body"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Listing not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Listing unavailable or bad address"),
        },
        tags=["Marketplace - Orders"],
    )
    def create(self, request):
        serializer = CreateOrderRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return serializer_error_response(serializer.errors)

        params = dict(serializer.validated_data)
        params["shipping_address"] = dict(params.get("shipping_address") or {})
        result = self.get_service().create_order(request.user, params)
        return result_response(result, serialize_order, status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="orders_payment_proof",
        summary="Submit bank-transfer payment proof (buyer only)",
        request=PaymentProofRequestSerializer,
        responses={
            200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Payment awaiting confirmation"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the buyer"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Order not awaiting payment"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"], url_path="payment-proof")
    def payment_proof(self, request, pk=None):
        serializer = PaymentProofRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return serializer_error_response(serializer.errors)

        result = self.get_service().submit_payment_proof(pk, request.user, serializer.validated_data)
        return result_response(result, serialize_order)

    @extend_schema(
        operation_id="orders_cancel",
        summary="Cancel an unpaid order (buyer only)",
        request=ReasonRequestSerializer,
        responses={
            200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Order cancelled"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the buyer"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Order can no longer be cancelled"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = ReasonRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return serializer_error_response(serializer.errors)

        result = self.get_service().cancel_order(pk, request.user, serializer.validated_data.get("reason"))
        return result_response(result, serialize_order)
