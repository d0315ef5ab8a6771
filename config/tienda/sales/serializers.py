"""
Serializers para ventas, checkout y devoluciones
"""
from rest_framework import serializers

from ..models import Sale, SaleDetail, SaleReturn, SaleReversal, SaleStatusHistory


class SaleDetailReadSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    variant_info = serializers.SerializerMethodField()
    vendor_name = serializers.CharField(source="vendor.store_name", read_only=True, default=None)
    returned_quantity = serializers.SerializerMethodField()

    class Meta:
        model = SaleDetail
        fields = [
            "id", "product", "product_name", "variant", "variant_info", "vendor", "vendor_name",
            "quantity", "unit_price", "discount", "subtotal", "returned_quantity",
        ]

    def get_variant_info(self, obj):
        if obj.variant is None:
            return None
        return f"{obj.variant.color} / {obj.variant.size}"

    def get_returned_quantity(self, obj):
        return sum(sale_return.quantity for sale_return in obj.returns.all() if sale_return.approved)


class SaleStatusHistorySerializer(serializers.ModelSerializer):
    changed_by = serializers.CharField(source="changed_by.username", read_only=True, default=None)

    class Meta:
        model = SaleStatusHistory
        fields = ["from_status", "to_status", "comment", "changed_by", "created_at"]


class SaleReturnSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = SaleReturn
        fields = ["id", "detail", "quantity", "reason", "approved", "created_by", "created_at"]


class SaleReversalSerializer(serializers.ModelSerializer):
    admin = serializers.CharField(source="admin.username", read_only=True, default=None)
    reason_label = serializers.CharField(source="get_reason_display", read_only=True)

    class Meta:
        model = SaleReversal
        fields = ["reason", "reason_label", "note", "admin", "created_at"]


class SaleListSerializer(serializers.ModelSerializer):
    customer = serializers.CharField(source="customer.username", read_only=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)
    payment_method_label = serializers.CharField(source="get_payment_method_display", read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id", "customer", "status", "status_label", "payment_method", "payment_method_label",
            "subtotal", "discount", "shipping_total", "total", "is_multi_vendor", "created_at",
        ]


class SaleReadSerializer(SaleListSerializer):
    """Venta con líneas, historial de estados, devoluciones y reversión"""
    coupon = serializers.CharField(source="coupon.code", read_only=True, default=None)
    details = SaleDetailReadSerializer(many=True, read_only=True)
    history = SaleStatusHistorySerializer(many=True, read_only=True)
    returns = serializers.SerializerMethodField()
    reversal = serializers.SerializerMethodField()
    payment_proof_url = serializers.SerializerMethodField()

    class Meta(SaleListSerializer.Meta):
        fields = SaleListSerializer.Meta.fields + [
            "coupon", "payment_reference", "payment_proof_url",
            "shipping_province", "shipping_city", "shipping_address", "phone",
            "updated_at", "paid_at", "shipped_at", "delivered_at", "canceled_at",
            "details", "history", "returns", "reversal",
        ]

    def get_returns(self, obj):
        returns = SaleReturn.objects.filter(detail__sale=obj).select_related("created_by")
        return SaleReturnSerializer(returns, many=True).data

    def get_reversal(self, obj):
        reversal = SaleReversal.objects.filter(sale=obj).select_related("admin").first()
        return SaleReversalSerializer(reversal).data if reversal else None

    def get_payment_proof_url(self, obj):
        if not obj.payment_proof:
            return None
        try:
            return obj.payment_proof.url
        except ValueError:
            return obj.payment_proof.name


class CheckoutSerializer(serializers.Serializer):
    province = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    payment_method = serializers.ChoiceField(choices=Sale.PaymentMethod.choices, default=Sale.PaymentMethod.TRANSFER)
    payment_reference = serializers.CharField(max_length=80, required=False, allow_blank=True, default="")


class SaleStatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Sale.Status.choices)
    comment = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SaleReverseSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=40)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class SaleReturnLineSerializer(serializers.Serializer):
    detail_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class SaleReturnCreateSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)
    lines = SaleReturnLineSerializer(many=True, allow_empty=False)


class PaymentProofSerializer(serializers.Serializer):
    image = serializers.ImageField()
    payment_reference = serializers.CharField(max_length=80, required=False, allow_blank=True, default="")
