from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from marketplace.api.serializers import ErrorResponseSerializer, ResultEnvelopeSerializer
from marketplace.api.views import result_response, serializer_error_response
from marketplace.ordering.api.serializers import ReasonRequestSerializer
from marketplace.ordering.api.views.order_views import serialize_order
from marketplace.services import FulfillmentService

ADMIN_RESPONSES = {
    200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Order updated"),
    403: OpenApiResponse(response=ErrorResponseSerializer, description="Administrator access required"),
    404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
    422: OpenApiResponse(response=ErrorResponseSerializer, description="Order not in a reviewable state"),
}


class AdminOrderViewSet(viewsets.ViewSet):
    """
    Admin-mediated payment confirmation and sale review.

    Admin rights are checked by FulfillmentService so that non-admins get the
    same 403 envelope as any other forbidden operation.
    """

    permission_classes = [IsAuthenticated]

    def get_service(self) -> FulfillmentService:
        return FulfillmentService()

    @extend_schema(
        operation_id="admin_orders_confirm_payment",
        summary="Confirm a submitted bank transfer",
        description="Payment becomes paid, the order processing and a directly purchased listing reserved.",
        request=None,
        responses=ADMIN_RESPONSES,
        tags=["Marketplace - Admin Orders"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-payment")
    def confirm_payment(self, request, pk=None):
        result = self.get_service().confirm_payment(pk, request.user)
        return result_response(result, serialize_order)

    @extend_schema(
        operation_id="admin_orders_approve_sale",
        summary="Approve a paid sale",
        description="The listing becomes sold and the order completed.",
        request=None,
        responses=ADMIN_RESPONSES,
        tags=["Marketplace - Admin Orders"],
    )
    @action(detail=True, methods=["post"], url_path="approve-sale")
    def approve_sale(self, request, pk=None):
        result = self.get_service().approve_sale(pk, request.user)
        return result_response(result, serialize_order)

    @extend_schema(
        operation_id="admin_orders_reject_sale",
        summary="Reject a paid sale and refund the buyer",
        description="Payment is refunded, the order cancelled and the listing returned to the market.",
        request=ReasonRequestSerializer,
        responses=ADMIN_RESPONSES,
        tags=["Marketplace - Admin Orders"],
    )
    @action(detail=True, methods=["post"], url_path="reject-sale")
    def reject_sale(self, request, pk=None):
        serializer = ReasonRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return serializer_error_response(serializer.errors)

        result = self.get_service().reject_sale(pk, request.user, serializer.validated_data.get("reason"))
        return result_response(result, serialize_order)
