"""
Views de vendedores y reglas de comisión
"""
from django.core.exceptions import ValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from ..core.api_responses import error_response, service_error_response, success_response
from ..models import CommissionRule, Vendor
from ..permissions import IsStaff
from .serializers import CommissionRuleSerializer, VendorCreateSerializer, VendorSerializer
from .services import create_vendor_profile, deactivate_vendor, get_vendor_for_user


@extend_schema(tags=["Vendors"])
class VendorViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Gestión de vendedores (solo administradores)

    - Crear habilita un usuario existente como vendedor
    - Eliminar desactiva el perfil
    """
    queryset = Vendor.objects.select_related("user")
    serializer_class = VendorSerializer
    permission_classes = [IsStaff]
    filterset_fields = ["is_active"]
    search_fields = ["store_name", "tax_id", "user__username"]
    ordering_fields = ["store_name", "created_at"]
    ordering = ["store_name"]

    def get_serializer_class(self):
        if self.action == "create":
            return VendorCreateSerializer
        return VendorSerializer

    def create(self, request, *args, **kwargs):
        serializer = VendorCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        user = data.pop("user")

        try:
            vendor = create_vendor_profile(user=user, performed_by=request.user.username, **data)
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo crear el vendedor",
                default_code="VENDOR_CREATE_FAILED",
            )

        return success_response(
            detail="Vendedor habilitado correctamente",
            code="VENDOR_CREATED",
            http_status=status.HTTP_201_CREATED,
            vendor=VendorSerializer(vendor).data,
        )

    def destroy(self, request, *args, **kwargs):
        vendor = self.get_object()
        deactivate_vendor(vendor=vendor, performed_by=request.user.username)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(tags=["Vendors"])
class VendorMeView(APIView):
    """Perfil del vendedor autenticado"""
    permission_classes = [permissions.IsAuthenticated]

    def _current_vendor(self, request):
        return get_vendor_for_user(request.user)

    def get(self, request):
        vendor = self._current_vendor(request)
        if vendor is None:
            return error_response(
                detail="No tienes un perfil de vendedor activo",
                code="VENDOR_NOT_FOUND",
                http_status=status.HTTP_404_NOT_FOUND,
            )
        return success_response(
            detail="Perfil de vendedor obtenido correctamente",
            code="VENDOR_PROFILE_OK",
            vendor=VendorSerializer(vendor).data,
        )

    @extend_schema(request=VendorSerializer)
    def patch(self, request):
        vendor = self._current_vendor(request)
        if vendor is None:
            return error_response(
                detail="No tienes un perfil de vendedor activo",
                code="VENDOR_NOT_FOUND",
                http_status=status.HTTP_404_NOT_FOUND,
            )
        serializer = VendorSerializer(vendor, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(
            detail="Perfil de vendedor actualizado",
            code="VENDOR_PROFILE_UPDATED",
            vendor=serializer.data,
        )


@extend_schema(tags=["Vendors"])
class CommissionRuleViewSet(viewsets.ModelViewSet):
    """Reglas de comisión por vendedor, categoría o global (solo administradores)"""
    queryset = CommissionRule.objects.select_related("vendor", "category")
    serializer_class = CommissionRuleSerializer
    permission_classes = [IsStaff]
    filterset_fields = ["vendor", "category", "active"]
    ordering = ["-created_at", "-id"]
