from rest_framework import serializers

from ..models import BankAccount


class BankAccountSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.store_name", read_only=True, default=None)
    account_type_label = serializers.CharField(source="get_account_type_display", read_only=True)

    class Meta:
        model = BankAccount
        fields = [
            "id", "vendor", "vendor_name", "bank_code", "bank_name", "number",
            "account_type", "account_type_label", "holder", "tax_id", "logo_url",
            "active", "sort_order", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def validate_number(self, value):
        cleaned = value.strip()
        if not cleaned:
            raise serializers.ValidationError("El número de cuenta es obligatorio")
        return cleaned


class PublicBankAccountSerializer(serializers.ModelSerializer):
    account_type_label = serializers.CharField(source="get_account_type_display", read_only=True)

    class Meta:
        model = BankAccount
        fields = [
            "id", "bank_code", "bank_name", "number", "account_type", "account_type_label",
            "holder", "tax_id", "logo_url",
        ]
