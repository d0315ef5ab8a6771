"""
Registro, inicio de sesión y perfil de clientes de la tienda
"""
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from ..core.api_responses import success_response
from ..models import AuditLog, CustomerProfile
from ..vendors.services import get_vendor_for_user
from .serializers import CustomerLoginSerializer, CustomerProfileSerializer, CustomerRegisterSerializer

logger = logging.getLogger(__name__)

User = get_user_model()

CUSTOMER_GROUP_NAME = "Customers"


def _serialize_user(user) -> dict:
    vendor = get_vendor_for_user(user)
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_staff": user.is_staff,
        "vendor_id": vendor.id if vendor else None,
        "groups": list(user.groups.values_list("name", flat=True)),
    }


@extend_schema(tags=["Customers"], request=CustomerRegisterSerializer)
class CustomerRegisterView(APIView):
    permission_classes = [permissions.AllowAny]

    @transaction.atomic
    def post(self, request):
        serializer = CustomerRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        user = User.objects.create_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            is_staff=False,
        )
        CustomerProfile.objects.create(
            user=user,
            phone=data.get("phone", ""),
            province=data.get("province", ""),
            city=data.get("city", ""),
            address=data.get("address", ""),
        )

        customers_group, _ = Group.objects.get_or_create(name=CUSTOMER_GROUP_NAME)
        user.groups.add(customers_group)

        AuditLog.objects.create(
            action="customer_registered",
            entity="user",
            entity_id=user.id,
            performed_by=user.username,
        )
        logger.info("Cliente registrado: %s", user.username)

        refresh = RefreshToken.for_user(user)
        return success_response(
            detail="Cliente registrado correctamente",
            code="CUSTOMER_REGISTERED",
            http_status=status.HTTP_201_CREATED,
            access=str(refresh.access_token),
            refresh=str(refresh),
            user=_serialize_user(user),
        )


@extend_schema(tags=["Customers"], request=CustomerLoginSerializer)
class CustomerLoginView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = CustomerLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data["user"]
        refresh = RefreshToken.for_user(user)
        return success_response(
            detail="Sesion iniciada correctamente",
            code="CUSTOMER_LOGIN_OK",
            access=str(refresh.access_token),
            refresh=str(refresh),
            user=_serialize_user(user),
        )


@extend_schema(tags=["Customers"])
class CustomerProfileView(APIView):
    """Perfil del cliente; provincia y ciudad son el destino de envío por defecto"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        profile, _ = CustomerProfile.objects.get_or_create(user=request.user)
        return success_response(
            detail="Perfil obtenido correctamente",
            code="CUSTOMER_PROFILE_OK",
            profile=CustomerProfileSerializer(profile).data,
        )

    @extend_schema(request=CustomerProfileSerializer)
    def patch(self, request):
        profile, _ = CustomerProfile.objects.get_or_create(user=request.user)
        serializer = CustomerProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(
            detail="Perfil actualizado correctamente",
            code="CUSTOMER_PROFILE_UPDATED",
            profile=serializer.data,
        )
