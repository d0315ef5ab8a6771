"""
Views de proveedores y compras
"""
from django.core.exceptions import ValidationError
from django.db.models import ProtectedError
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action

from ..core.api_responses import error_response, service_error_response, success_response
from ..models import MovementInventory, Supplier
from ..permissions import IsStaff
from .serializers import PurchaseSerializer, SupplierMovementSerializer, SupplierSerializer
from .services import register_purchase


@extend_schema(tags=["Suppliers"])
class SupplierViewSet(viewsets.ModelViewSet):
    """
    Gestión de proveedores de la tienda

    - `purchase` registra una compra que ingresa stock
    - `purchases` lista las entradas hechas al proveedor
    """
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = [IsStaff]
    filterset_fields = ["is_active"]
    search_fields = ["name", "contact", "tax_id"]
    ordering_fields = ["name", "last_purchase_date", "created_at"]
    ordering = ["name"]

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user.username)

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return error_response(
                detail="El proveedor tiene productos o compras asociadas",
                code="SUPPLIER_IN_USE",
                http_status=status.HTTP_409_CONFLICT,
            )

    @extend_schema(request=PurchaseSerializer)
    @action(detail=True, methods=["post"])
    def purchase(self, request, pk=None):
        supplier = self.get_object()
        serializer = PurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            movements = register_purchase(
                supplier_id=supplier.id,
                lines=serializer.validated_data["lines"],
                user=request.user,
                observation=serializer.validated_data["observation"],
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo registrar la compra",
                default_code="PURCHASE_FAILED",
            )

        return success_response(
            detail="Compra registrada correctamente",
            code="PURCHASE_CREATED",
            http_status=status.HTTP_201_CREATED,
            movements=SupplierMovementSerializer(movements, many=True).data,
        )

    @action(detail=True, methods=["get"])
    def purchases(self, request, pk=None):
        supplier = self.get_object()
        movements = (
            MovementInventory.objects.filter(supplier=supplier)
            .select_related("product")
            .order_by("-created_at", "-id")
        )
        page = self.paginate_queryset(movements)
        if page is not None:
            return self.get_paginated_response(SupplierMovementSerializer(page, many=True).data)
        return success_response(
            detail="Compras del proveedor",
            code="SUPPLIER_PURCHASES",
            movements=SupplierMovementSerializer(movements, many=True).data,
        )
