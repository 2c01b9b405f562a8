from rest_framework import serializers

from marketplace.api.serializers import ListingSummarySerializer, UserSummarySerializer
from marketplace.ordering.domain.models.order import Order
from marketplace.pricing import commission, delivery_window, format_amount


class OrderSerializer(serializers.ModelSerializer):
    buyer = UserSummarySerializer(read_only=True)
    listing = ListingSummarySerializer(read_only=True)
    formatted_total = serializers.SerializerMethodField()
    commission = serializers.SerializerMethodField()
    delivery_window = serializers.SerializerMethodField()
    payment_instructions = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "buyer",
            "listing",
            "offer",
            "status",
            "payment_status",
            "payment_method",
            "payment_deadline",
            "payment_instructions",
            "subtotal",
            "shipping_cost",
            "tax_amount",
            "total_price",
            "formatted_total",
            "commission",
            "shipping_method",
            "shipping_region",
            "shipping_address",
            "delivery_window",
            "cancellation_reason",
            "created_at",
            "updated_at",
            "paid_at",
            "completed_at",
            "cancelled_at",
        ]
        read_only_fields = fields

    def get_formatted_total(self, obj):
        return format_amount(obj.total_price)

    def get_commission(self, obj):
        breakdown = commission(obj.subtotal)
        return {key: str(value) for key, value in breakdown.items()}

    def get_delivery_window(self, obj):
        if obj.shipping_method == Order.SELF_PICKUP:
            return None
        return delivery_window(obj.shipping_region)

    def get_payment_instructions(self, obj):
        instructions = obj.payment_instructions
        if not instructions:
            return None
        deadline = instructions["deadline"]
        return {
            **instructions,
            "amount": serializers.DecimalField(max_digits=12, decimal_places=2).to_representation(
                instructions["amount"]
            ),
            "formatted_amount": format_amount(instructions["amount"]),
            "deadline": serializers.DateTimeField().to_representation(deadline) if deadline else None,
        }


class ShippingAddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=30)
    county = serializers.CharField(required=False, allow_blank=True, max_length=50)
    district = serializers.CharField(required=False, allow_blank=True, max_length=50)
    address_line1 = serializers.CharField(required=False, allow_blank=True, max_length=255)
    address_line2 = serializers.CharField(required=False, allow_blank=True, max_length=255)
    postal_code = serializers.CharField(required=False, allow_blank=True, max_length=10)


class CreateOrderRequestSerializer(serializers.Serializer):
    """Request body for a direct purchase. Required address fields are checked by FulfillmentService."""

    listing_id = serializers.UUIDField(help_text="Listing to buy")
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES, default=Order.BANK_TRANSFER)
    shipping_method = serializers.ChoiceField(choices=Order.SHIPPING_METHOD_CHOICES, default=Order.ASSISTED_DELIVERY)
    shipping_address = ShippingAddressSerializer(required=False)
    shipping_region = serializers.CharField(
        required=False, allow_blank=True, max_length=50, help_text="Region slug (defaults to the address county)"
    )


class PaymentProofRequestSerializer(serializers.Serializer):
    account_last_five_digits = serializers.CharField(max_length=10, help_text="Last five digits of the paying account")
    transfer_note = serializers.CharField(required=False, allow_blank=True, max_length=500)


class ReasonRequestSerializer(serializers.Serializer):
    """Optional free-text reason (cancellation, sale rejection)"""

    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)
