"""
Views para checkout y gestión de ventas
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import Prefetch
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.views import APIView

from ..cart.mixins import CartCountHeaderMixin
from ..core.api_responses import service_error_response, success_response
from ..models import SaleDetail, SaleStatusHistory
from ..permissions import IsStaff
from . import services
from .serializers import (
    CheckoutSerializer,
    PaymentProofSerializer,
    SaleListSerializer,
    SaleReadSerializer,
    SaleReturnCreateSerializer,
    SaleReturnSerializer,
    SaleReverseSerializer,
    SaleStatusChangeSerializer,
)


@extend_schema(tags=["Checkout"], request=CheckoutSerializer)
class CheckoutView(CartCountHeaderMixin, APIView):
    """
    Procesa el carrito abierto y crea una venta pendiente de pago.

    El destino por defecto es el del perfil del cliente.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            sale = services.checkout_cart(user=request.user, **serializer.validated_data)
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo procesar el carrito",
                default_code="CHECKOUT_FAILED",
            )

        return success_response(
            detail="Pedido creado correctamente",
            code="CHECKOUT_CREATED",
            http_status=status.HTTP_201_CREATED,
            sale=SaleReadSerializer(sale).data,
            shipping_messages=sale.shipping_messages,
        )


@extend_schema(tags=["Sales"])
class SaleViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet de ventas

    - Administradores: todas las ventas y cambios de estado, devoluciones y reversiones
    - Vendedores: ventas que incluyen sus productos
    - Clientes: sus ventas y carga del comprobante de pago
    """
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "payment_method", "is_multi_vendor"]
    search_fields = ["customer__username", "payment_reference"]
    ordering_fields = ["created_at", "total"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return services.sales_visible_to(self.request.user).prefetch_related(
            Prefetch(
                "details",
                queryset=SaleDetail.objects.select_related("product", "variant", "vendor").prefetch_related("returns"),
            ),
            Prefetch("history", queryset=SaleStatusHistory.objects.select_related("changed_by")),
        )

    def get_serializer_class(self):
        if self.action == "list":
            return SaleListSerializer
        return SaleReadSerializer

    @extend_schema(request=SaleStatusChangeSerializer)
    @action(detail=True, methods=["post"], url_path="status", permission_classes=[IsStaff])
    def change_status(self, request, pk=None):
        """
        Cambia el estado de la venta:
        Pendiente -> Pagada | Cancelada, Pagada -> Enviado | Cancelada,
        Enviado -> Entregado, Entregado -> Completada
        """
        sale = self.get_object()
        serializer = SaleStatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            sale = services.change_sale_status(
                sale_id=sale.id,
                new_status=serializer.validated_data["status"],
                comment=serializer.validated_data["comment"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo cambiar el estado",
                default_code="SALE_STATUS_CHANGE_FAILED",
            )

        return success_response(
            detail=f"Estado actualizado a {sale.get_status_display()}",
            code="SALE_STATUS_CHANGED",
            sale_id=sale.id,
            status=sale.status,
            status_label=sale.get_status_display(),
        )

    @extend_schema(request=SaleReverseSerializer)
    @action(detail=True, methods=["post"], permission_classes=[IsStaff])
    def reverse(self, request, pk=None):
        """
        Revierte la venta:
        1. Repone el stock no devuelto
        2. Registra devoluciones y la reversión
        3. Marca la venta como revertida
        """
        sale = self.get_object()
        serializer = SaleReverseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            sale = services.reverse_sale(
                sale_id=sale.id,
                reason=serializer.validated_data["reason"],
                note=serializer.validated_data["note"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo revertir la venta",
                default_code="SALE_REVERSAL_FAILED",
            )

        return success_response(
            detail="Venta revertida y stock repuesto",
            code="SALE_REVERSED",
            sale_id=sale.id,
            status=sale.status,
        )

    @extend_schema(request=SaleReturnCreateSerializer)
    @action(detail=True, methods=["post"], permission_classes=[IsStaff])
    def returns(self, request, pk=None):
        """Registra devoluciones por línea y repone stock"""
        sale = self.get_object()
        serializer = SaleReturnCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = services.register_returns(
                sale_id=sale.id,
                lines=serializer.validated_data["lines"],
                reason=serializer.validated_data["reason"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo registrar la devolución",
                default_code="SALE_RETURN_FAILED",
            )

        return success_response(
            detail="Devolución registrada correctamente",
            code="SALE_RETURN_CREATED",
            http_status=status.HTTP_201_CREATED,
            sale_id=sale.id,
            sale_canceled=result["sale_canceled"],
            returns=SaleReturnSerializer(result["returns"], many=True).data,
        )

    @extend_schema(request=PaymentProofSerializer)
    @action(
        detail=True,
        methods=["post"],
        url_path="payment-proof",
        parser_classes=[MultiPartParser, FormParser],
    )
    def payment_proof(self, request, pk=None):
        """Sube el comprobante de transferencia de una venta pendiente propia"""
        sale = self.get_object()
        serializer = PaymentProofSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            sale = services.upload_payment_proof(
                sale=sale,
                image=serializer.validated_data["image"],
                reference=serializer.validated_data["payment_reference"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo subir el comprobante",
                default_code="PAYMENT_PROOF_FAILED",
            )

        return success_response(
            detail="Comprobante recibido. Verificaremos tu pago",
            code="PAYMENT_PROOF_UPLOADED",
            sale_id=sale.id,
            payment_reference=sale.payment_reference,
            max_size_mb=int(getattr(settings, "STORE_PAYMENT_PROOF_MAX_MB", 5)),
        )
