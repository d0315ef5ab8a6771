from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from ..models import ShippingRate
from .resolver import validate_province


class ShippingRateSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.store_name", read_only=True, default=None)

    class Meta:
        model = ShippingRate
        fields = [
            "id", "vendor", "vendor_name", "province", "city", "price", "active", "note",
            "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def validate_province(self, value):
        try:
            return validate_province(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)

    def validate_city(self, value):
        return (value or "").strip()


class ShippingQuoteQuerySerializer(serializers.Serializer):
    province = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")


class ShippingTraceQuerySerializer(ShippingQuoteQuerySerializer):
    vendor = serializers.IntegerField(required=False, allow_null=True, default=None)
