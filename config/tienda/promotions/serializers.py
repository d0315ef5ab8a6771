from rest_framework import serializers

from ..models import Coupon
from .services import coupon_is_valid


class CouponSerializer(serializers.ModelSerializer):
    is_valid_now = serializers.SerializerMethodField()
    uses = serializers.SerializerMethodField()

    class Meta:
        model = Coupon
        fields = [
            "id", "code", "description", "discount_amount", "starts_at", "ends_at",
            "active", "max_uses", "uses", "is_valid_now", "created_at",
        ]
        read_only_fields = ["created_at"]

    def get_is_valid_now(self, obj):
        return coupon_is_valid(obj)

    def get_uses(self, obj):
        return obj.sales.count()

    def validate_code(self, value):
        code = value.strip().upper()
        queryset = Coupon.objects.filter(code=code)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Ya existe un cupón con ese código")
        return code

    def validate_discount_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("El descuento debe ser mayor que cero")
        return value

    def validate(self, attrs):
        starts_at = attrs.get("starts_at", getattr(self.instance, "starts_at", None))
        ends_at = attrs.get("ends_at", getattr(self.instance, "ends_at", None))
        if starts_at and ends_at and ends_at < starts_at:
            raise serializers.ValidationError({"ends_at": "La fecha de fin debe ser posterior al inicio"})
        return attrs


class CouponValidateQuerySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
