from django.db.models import Q
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from marketplace.api.serializers import (
    ErrorResponseSerializer,
    MessageSerializer,
    OfferAcceptedResponseSerializer,
    OfferRejectedResponseSerializer,
    ResultEnvelopeSerializer,
)
from marketplace.api.views import result_response, serializer_error_response
from marketplace.negotiation.api.serializers import CreateOfferRequestSerializer, OfferSerializer
from marketplace.negotiation.domain.models.offer import Offer
from marketplace.ordering.api.serializers import OrderSerializer
from marketplace.services import NegotiationService, service_ok


class OfferViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def get_service(self) -> NegotiationService:
        return NegotiationService()

    @extend_schema(
        operation_id="offers_list",
        summary="List offers the user made or received",
        responses={200: OpenApiResponse(response=ResultEnvelopeSerializer, description="Offers retrieved")},
        tags=["Marketplace - Offers"],
    )
    def list(self, request):
        offers = (
            Offer.objects.filter(Q(proposer=request.user) | Q(counterparty=request.user))
            .select_related("listing", "proposer", "counterparty")
            .order_by("-created_at")
        )
        status_filter = request.query_params.get("status")
        if status_filter:
            offers = offers.filter(status=status_filter)
        return result_response(service_ok(offers), lambda data: OfferSerializer(data, many=True).data)

    @extend_schema(
        operation_id="offers_create",
        summary="Make an offer on a listing",
        description="""
        **What it receives:**
        - `listing_id`, `amount`, optional `counterparty_id` (the listing owner) and `note`

        **What it returns:**
        - The pending offer. A note that does not mention the amount is replaced by "Offer: NT$<amount>".

        **Fails with:** 400 (invalid amount), 404 (listing/counterparty missing),
        422 (own listing, listing not available, already a pending offer)
        """,
        request=CreateOfferRequestSerializer,
        responses={
            201: OpenApiResponse(response=ResultEnvelopeSerializer, description="Offer created"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request body"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Listing or counterparty not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Offer not allowed"),
        },
        tags=["Marketplace - Offers"],
    )
    def create(self, request):
        serializer = CreateOfferRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return serializer_error_response(serializer.errors)

        result = self.get_service().create_offer(request.user, serializer.validated_data)
        return result_response(result, lambda offer: OfferSerializer(offer).data, status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="offers_accept",
        summary="Accept an offer (counterparty only)",
        description="""
        Accepting marks the listing sold, creates an order for the proposer at the offer
        amount, sends an acceptance message and rejects all other pending offers on the listing.
        """,
        request=None,
        responses={
            200: OpenApiResponse(response=OfferAcceptedResponseSerializer, description="Offer accepted"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the offer recipient"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Offer not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Offer or listing no longer open"),
        },
        tags=["Marketplace - Offers"],
    )
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        result = self.get_service().accept_offer(pk, request.user)
        return result_response(
            result,
            lambda data: {
                "accepted_offer": OfferSerializer(data["accepted_offer"]).data,
                "response_message": MessageSerializer(data["response_message"]).data,
                "order": OrderSerializer(data["order"]).data,
            },
        )

    @extend_schema(
        operation_id="offers_reject",
        summary="Reject an offer (counterparty only)",
        request=None,
        responses={
            200: OpenApiResponse(response=OfferRejectedResponseSerializer, description="Offer rejected"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the offer recipient"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Offer not found"),
            422: OpenApiResponse(response=ErrorResponseSerializer, description="Offer no longer pending"),
        },
        tags=["Marketplace - Offers"],
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        result = self.get_service().reject_offer(pk, request.user)
        return result_response(
            result,
            lambda data: {
                "rejected_offer": OfferSerializer(data["rejected_offer"]).data,
                "response_message": MessageSerializer(data["response_message"]).data,
            },
        )
