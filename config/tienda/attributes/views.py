"""
Views de atributos por categoría
"""
from django.core.exceptions import ValidationError
from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action

from ..core.api_responses import error_response, service_error_response, success_response
from ..models import Category, CategoryAttribute
from ..permissions import IsAdminOrReadOnly, IsStaff
from .serializers import CategoryAttributeSerializer, CopyAttributesSerializer
from .services import (
    attribute_filters_for_category,
    copy_attributes,
    duplicate_attribute,
    generate_technical_name,
    next_sort_order,
    toggle_attribute,
    unique_technical_name,
)


@extend_schema(tags=["Attributes"])
class CategoryAttributeViewSet(viewsets.ModelViewSet):
    """
    Atributos dinámicos de cada categoría (talla, material, largo de manga...)

    Lectura pública de los atributos activos; la gestión es de administradores.
    """
    serializer_class = CategoryAttributeSerializer
    permission_classes = [IsAdminOrReadOnly]
    filterset_fields = ["category", "active", "filterable", "field_type"]
    search_fields = ["name", "technical_name", "group"]
    ordering_fields = ["sort_order", "name", "usage_count"]
    ordering = ["category__name", "sort_order", "id"]

    def get_queryset(self):
        queryset = CategoryAttribute.objects.select_related("category")
        if not self.request.user.is_staff:
            queryset = queryset.filter(active=True, category__active=True)
        return queryset

    def perform_create(self, serializer):
        category = serializer.validated_data["category"]
        technical_name = unique_technical_name(
            category.id, generate_technical_name(serializer.validated_data["name"])
        )
        sort_order = serializer.validated_data.get("sort_order") or next_sort_order(category.id)
        serializer.save(technical_name=technical_name, sort_order=sort_order)

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return error_response(
                detail="El atributo tiene valores asignados en productos",
                code="ATTRIBUTE_IN_USE",
                http_status=status.HTTP_409_CONFLICT,
            )

    @action(detail=True, methods=["post"], permission_classes=[IsStaff])
    def duplicate(self, request, pk=None):
        copy = duplicate_attribute(attribute=self.get_object(), user=request.user)
        return success_response(
            detail="Atributo duplicado correctamente",
            code="ATTRIBUTE_DUPLICATED",
            http_status=status.HTTP_201_CREATED,
            attribute=CategoryAttributeSerializer(copy).data,
        )

    @action(detail=True, methods=["post"], permission_classes=[IsStaff])
    def toggle(self, request, pk=None):
        attribute = toggle_attribute(attribute=self.get_object(), user=request.user)
        return success_response(
            detail="Atributo activado" if attribute.active else "Atributo desactivado",
            code="ATTRIBUTE_TOGGLED",
            attribute=CategoryAttributeSerializer(attribute).data,
        )

    @extend_schema(request=CopyAttributesSerializer)
    @action(detail=False, methods=["post"], url_path="copy-to-category", permission_classes=[IsStaff])
    def copy_to_category(self, request):
        serializer = CopyAttributesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            copies = copy_attributes(
                source=serializer.validated_data["source_category"],
                target=serializer.validated_data["target_category"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudieron copiar los atributos",
                default_code="ATTRIBUTE_COPY_FAILED",
            )
        return success_response(
            detail=f"Se copiaron {len(copies)} atributos",
            code="ATTRIBUTES_COPIED",
            http_status=status.HTTP_201_CREATED,
            attributes=CategoryAttributeSerializer(copies, many=True).data,
        )

    @extend_schema(parameters=[OpenApiParameter("category", int, required=True)])
    @action(detail=False, methods=["get"], permission_classes=[permissions.AllowAny])
    def filters(self, request):
        """Filtros del catálogo para una categoría, con conteo de productos por valor"""
        category_id = request.query_params.get("category")
        if not category_id or not str(category_id).isdigit():
            return error_response(
                detail="Debe indicar la categoría",
                code="CATEGORY_REQUIRED",
            )
        category = get_object_or_404(Category, pk=category_id, active=True)
        return success_response(
            detail="Filtros de la categoría",
            code="ATTRIBUTE_FILTERS",
            category=category.id,
            filters=attribute_filters_for_category(category),
        )
