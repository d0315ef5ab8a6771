"""
Views de cupones de descuento
"""
from django.core.exceptions import ValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, viewsets
from rest_framework.views import APIView

from ..core.api_responses import service_error_response, success_response
from ..models import Coupon
from ..permissions import IsStaff
from .serializers import CouponSerializer, CouponValidateQuerySerializer
from .services import find_valid_coupon


@extend_schema(tags=["Coupons"])
class CouponViewSet(viewsets.ModelViewSet):
    """Gestión de cupones (solo administradores)"""
    queryset = Coupon.objects.all()
    serializer_class = CouponSerializer
    permission_classes = [IsStaff]
    filterset_fields = ["active"]
    search_fields = ["code", "description"]
    ordering_fields = ["code", "created_at", "ends_at"]
    ordering = ["-created_at"]


@extend_schema(tags=["Coupons"], parameters=[CouponValidateQuerySerializer])
class CouponValidateView(APIView):
    """Valida un código de cupón sin aplicarlo"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        query = CouponValidateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            coupon = find_valid_coupon(query.validated_data["code"])
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="Cupón inválido",
                default_code="COUPON_INVALID",
            )

        return success_response(
            detail="Cupón válido",
            code="COUPON_VALID",
            coupon={
                "code": coupon.code,
                "description": coupon.description,
                "discount_amount": str(coupon.discount_amount),
                "ends_at": coupon.ends_at,
            },
        )
