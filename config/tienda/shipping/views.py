"""
Views de tarifas de envío y cotización
"""
from dataclasses import asdict

from django.core.exceptions import ValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, viewsets
from rest_framework.views import APIView

from ..cart.services import get_open_cart
from ..core.api_responses import service_error_response, success_response
from ..models import CustomerProfile, ShippingRate
from ..permissions import IsOwnerVendorOrAdmin, IsStaff, IsVendorOrAdmin
from ..vendors.services import get_vendor_for_user
from .resolver import ShippingRateResolver, validate_province
from .serializers import ShippingQuoteQuerySerializer, ShippingRateSerializer, ShippingTraceQuerySerializer
from .services import quote_for_cart


def default_destination(user, province: str = "", city: str = "") -> tuple[str, str]:
    """Provincia y ciudad indicadas o, en su defecto, las del perfil del cliente"""
    province = (province or "").strip()
    city = (city or "").strip()
    if province:
        return province, city
    profile = CustomerProfile.objects.filter(user=user).first()
    if profile is None:
        return "", city
    return profile.province, city or profile.city


@extend_schema(tags=["Shipping"])
class ShippingRateViewSet(viewsets.ModelViewSet):
    """
    Tarifas de envío

    - Administradores: reglas de la tienda (sin vendedor) y de cualquier vendedor
    - Vendedores: solo sus reglas
    """
    queryset = ShippingRate.objects.select_related("vendor")
    serializer_class = ShippingRateSerializer
    permission_classes = [permissions.IsAuthenticated, IsVendorOrAdmin, IsOwnerVendorOrAdmin]
    filterset_fields = ["vendor", "province", "active"]
    search_fields = ["province", "city", "note"]
    ordering_fields = ["province", "city", "price", "created_at"]
    ordering = ["province", "city", "id"]

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


@extend_schema(tags=["Shipping"], parameters=[ShippingQuoteQuerySerializer])
class ShippingQuoteView(APIView):
    """Cotiza el envío del carrito abierto: una tarifa por vendedor"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        query = ShippingQuoteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        province, city = default_destination(
            request.user, query.validated_data["province"], query.validated_data["city"]
        )

        try:
            province = validate_province(province)
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="Destino de envío inválido",
                default_code="SHIPPING_DESTINATION_INVALID",
            )

        quote = quote_for_cart(get_open_cart(request.user), province, city)
        return success_response(
            detail="Envío calculado correctamente",
            code="SHIPPING_QUOTE_OK",
            province=province,
            city=city,
            shipping=quote.as_dict(),
        )


@extend_schema(tags=["Shipping"], parameters=[ShippingTraceQuerySerializer])
class ShippingTraceView(APIView):
    """Diagnóstico: pasos intentados para resolver la tarifa de un vendedor"""
    permission_classes = [IsStaff]

    def get(self, request):
        query = ShippingTraceQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        resolver = ShippingRateResolver()
        resolved = resolver.resolve(data["vendor"], data["province"], data["city"])
        steps = resolver.trace(data["vendor"], data["province"], data["city"])
        return success_response(
            detail="Traza de resolución generada",
            code="SHIPPING_TRACE_OK",
            resolved=(
                {
                    "price": str(resolved.price),
                    "source": resolved.source,
                    "level": resolved.level,
                    "rule_id": resolved.rule_id,
                }
                if resolved
                else None
            ),
            steps=[asdict(step) for step in steps],
        )
