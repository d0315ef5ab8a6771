"""
Views de cuentas bancarias y opciones de pago del carrito
"""
from django.core.exceptions import ValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView

from ..cart.services import get_open_cart
from ..core.api_responses import service_error_response, success_response
from ..models import AuditLog, BankAccount
from ..permissions import IsOwnerVendorOrAdmin, IsVendorOrAdmin
from ..shipping.resolver import validate_province
from ..shipping.serializers import ShippingQuoteQuerySerializer
from ..shipping.services import quote_for_cart
from ..shipping.views import default_destination
from ..vendors.services import get_vendor_for_user
from .resolver import bank_accounts_for, resolve_payment_decision
from .serializers import BankAccountSerializer, PublicBankAccountSerializer


@extend_schema(tags=["Payments"])
class BankAccountViewSet(viewsets.ModelViewSet):
    """
    Cuentas bancarias para transferencias

    - Administradores: cuentas de la tienda (sin vendedor) y de cualquier vendedor
    - Vendedores: solo sus cuentas
    """
    queryset = BankAccount.objects.select_related("vendor")
    serializer_class = BankAccountSerializer
    permission_classes = [permissions.IsAuthenticated, IsVendorOrAdmin, IsOwnerVendorOrAdmin]
    filterset_fields = ["vendor", "active", "account_type"]
    search_fields = ["bank_name", "holder", "number"]
    ordering = ["sort_order", "id"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(vendor=get_vendor_for_user(self.request.user))

    def perform_create(self, serializer):
        if self.request.user.is_staff:
            serializer.save()
        else:
            serializer.save(vendor=get_vendor_for_user(self.request.user))

    def perform_update(self, serializer):
        if self.request.user.is_staff:
            serializer.save()
        else:
            serializer.save(vendor=serializer.instance.vendor)

    @action(detail=True, methods=["post"])
    def toggle(self, request, pk=None):
        """Activa o desactiva la cuenta"""
        account = self.get_object()
        account.active = not account.active
        account.save(update_fields=["active", "updated_at"])

        AuditLog.objects.create(
            action="bank_account_toggled",
            entity="bank_account",
            entity_id=account.id,
            performed_by=request.user.username,
            extra_data={"active": account.active},
        )
        return success_response(
            detail="Cuenta activada" if account.active else "Cuenta desactivada",
            code="BANK_ACCOUNT_TOGGLED",
            account=BankAccountSerializer(account).data,
        )


@extend_schema(tags=["Payments"], parameters=[ShippingQuoteQuerySerializer])
class PaymentOptionsView(APIView):
    """
    Opciones de pago del carrito abierto: a quién se paga, cuentas a mostrar
    y envío cuando hay destino.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        query = ShippingQuoteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        cart = get_open_cart(request.user)
        decision = resolve_payment_decision(cart)
        accounts = bank_accounts_for(decision)

        province, city = default_destination(
            request.user, query.validated_data["province"], query.validated_data["city"]
        )
        shipping = None
        if province:
            try:
                province = validate_province(province)
            except ValidationError as exc:
                return service_error_response(
                    exc,
                    default_detail="Destino de envío inválido",
                    default_code="SHIPPING_DESTINATION_INVALID",
                )
            shipping = quote_for_cart(cart, province, city).as_dict()

        return success_response(
            detail="Opciones de pago obtenidas correctamente",
            code="PAYMENT_OPTIONS_OK",
            decision=decision.as_dict(),
            bank_accounts=PublicBankAccountSerializer(accounts, many=True).data,
            shipping=shipping,
        )
