"""
Views del catálogo: tienda pública y gestión de productos por vendedor
"""
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import ProtectedError
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from ..attributes.serializers import ProductAttributeValueSerializer, ProductAttributeValuesInputSerializer
from ..attributes.services import save_product_attribute_values
from ..cart.mixins import CartCountHeaderMixin
from ..core.api_responses import error_response, service_error_response, success_response
from ..models import Category, Favorite, Product, ProductImage, ProductVariant, Subcategory
from ..permissions import IsAdminOrReadOnly, IsOwnerVendorOrAdmin, IsVendorOrAdmin
from ..vendors.services import get_vendor_for_user
from .serializers import (
    CategorySerializer,
    FavoriteSerializer,
    ProductImageSerializer,
    ProductReadSerializer,
    ProductSerializer,
    ProductVariantSerializer,
    StockAdjustmentSerializer,
    SubcategorySerializer,
)
from .services import (
    ImageService,
    adjust_stock,
    catalog_queryset,
    filter_catalog,
    record_opening_stock,
    with_stock_and_price_filters,
)


def _ensure_owns_product(user, product: Product) -> None:
    if user.is_staff:
        return
    vendor = get_vendor_for_user(user)
    if vendor is None or product.vendor_id != vendor.id:
        raise PermissionDenied("No puedes modificar productos de otro vendedor")


@extend_schema(tags=["Catalog"])
class StoreProductListView(CartCountHeaderMixin, APIView):
    """
    Catálogo público con filtros por categoría, vendedor, texto y precio
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        params = request.query_params
        queryset = filter_catalog(catalog_queryset(), params)
        products = with_stock_and_price_filters(list(queryset), params)

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(products, request, view=self)
        serializer = ProductReadSerializer(page, many=True, context={"request": request})

        return success_response(
            detail="Catálogo obtenido correctamente",
            code="CATALOG_OK",
            count=paginator.page.paginator.count,
            next=paginator.get_next_link(),
            previous=paginator.get_previous_link(),
            products=serializer.data,
        )


@extend_schema(tags=["Catalog"])
class StoreProductDetailView(CartCountHeaderMixin, APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, product_id: int):
        product = catalog_queryset().filter(id=product_id).first()
        if not product:
            return error_response(
                detail="Producto no disponible",
                code="PRODUCT_NOT_FOUND",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        serializer = ProductReadSerializer(product, context={"request": request})
        return success_response(
            detail="Producto obtenido correctamente",
            code="PRODUCT_OK",
            product=serializer.data,
        )


@extend_schema(tags=["Categories"])
class CategoryViewSet(viewsets.ModelViewSet):
    """
    - Lectura: pública (solo activas para no administradores)
    - Escritura: administradores
    """
    queryset = Category.objects.prefetch_related("subcategories")
    serializer_class = CategorySerializer
    permission_classes = [IsAdminOrReadOnly]
    pagination_class = None
    search_fields = ["name"]
    ordering = ["name"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if not self.request.user.is_staff:
            queryset = queryset.filter(active=True)
        return queryset

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return error_response(
                detail="La categoría tiene productos o subcategorías asociadas",
                code="CATEGORY_IN_USE",
                http_status=status.HTTP_409_CONFLICT,
            )


@extend_schema(tags=["Categories"])
class SubcategoryViewSet(viewsets.ModelViewSet):
    queryset = Subcategory.objects.select_related("category")
    serializer_class = SubcategorySerializer
    permission_classes = [IsAdminOrReadOnly]
    pagination_class = None
    filterset_fields = ["category", "active"]
    search_fields = ["name"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if not self.request.user.is_staff:
            queryset = queryset.filter(active=True, category__active=True)
        return queryset

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return error_response(
                detail="La subcategoría tiene productos asociados",
                code="SUBCATEGORY_IN_USE",
                http_status=status.HTTP_409_CONFLICT,
            )


@extend_schema(tags=["Products"])
class ProductViewSet(viewsets.ModelViewSet):
    """
    ViewSet para gestión de productos

    - Administradores: todos los productos
    - Vendedores: solo sus productos (el vendedor se asigna automáticamente)
    - Eliminar desactiva el producto
    """
    queryset = Product.objects.select_related("vendor", "category", "subcategory").prefetch_related("images")
    serializer_class = ProductSerializer
    permission_classes = [permissions.IsAuthenticated, IsVendorOrAdmin, IsOwnerVendorOrAdmin]
    filterset_fields = ["category", "subcategory", "vendor", "active"]
    search_fields = ["name", "brand", "description"]
    ordering_fields = ["name", "price", "created_at", "updated_at"]
    ordering = ["name"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(vendor=get_vendor_for_user(self.request.user))

    def get_serializer_class(self):
        if self.action in ["list", "retrieve"]:
            return ProductReadSerializer
        if self.action == "adjust_stock":
            return StockAdjustmentSerializer
        return ProductSerializer

    @transaction.atomic
    def perform_create(self, serializer):
        user = self.request.user
        vendor = serializer.validated_data.get("vendor") if user.is_staff else get_vendor_for_user(user)
        product = serializer.save(vendor=vendor, created_by=user.username, updated_by=user.username)
        record_opening_stock(product=product, user=user)

    def perform_update(self, serializer):
        user = self.request.user
        if user.is_staff:
            serializer.save(updated_by=user.username)
        else:
            serializer.save(vendor=serializer.instance.vendor, updated_by=user.username)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        instance.active = False
        instance.updated_by = request.user.username
        instance.save(update_fields=["active", "updated_by", "updated_at"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="adjust-stock")
    def adjust_stock(self, request, pk=None):
        """
        Ajusta el stock de una variante (o del producto sin variantes) y
        registra un movimiento de ajuste.
        """
        product = self.get_object()
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            new_stock = adjust_stock(
                product_id=product.id,
                variant_id=data.get("variant_id"),
                quantity=data["quantity"],
                mode=data["mode"],
                observation=data.get("observation", ""),
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo ajustar el stock",
                default_code="STOCK_ADJUSTMENT_FAILED",
            )

        return success_response(
            detail="Stock ajustado correctamente",
            code="STOCK_ADJUSTED",
            product_id=product.id,
            variant_id=data.get("variant_id"),
            stock=new_stock,
        )

    @extend_schema(request=ProductAttributeValuesInputSerializer)
    @action(detail=True, methods=["get", "put"])
    def attributes(self, request, pk=None):
        """
        GET lista los valores de atributos del producto.
        PUT reemplaza los valores: `{"values": {"<id_atributo>": valor}}`.
        """
        product = self.get_object()
        if request.method == "GET":
            values = product.attribute_values.select_related("attribute")
            return success_response(
                detail="Atributos del producto",
                code="PRODUCT_ATTRIBUTES",
                product_id=product.id,
                values=ProductAttributeValueSerializer(values, many=True).data,
            )

        serializer = ProductAttributeValuesInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            saved = save_product_attribute_values(
                product=product,
                values=serializer.validated_data["values"],
                user=request.user,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="Los atributos no son válidos",
                default_code="PRODUCT_ATTRIBUTES_INVALID",
            )
        return success_response(
            detail="Atributos guardados correctamente",
            code="PRODUCT_ATTRIBUTES_SAVED",
            product_id=product.id,
            values=ProductAttributeValueSerializer(saved, many=True).data,
        )


@extend_schema(tags=["ProductsVariants"])
class ProductVariantViewSet(viewsets.ModelViewSet):
    """
    ViewSet para variantes (color y talla). Eliminar desactiva la variante.
    """
    queryset = ProductVariant.objects.select_related("product")
    serializer_class = ProductVariantSerializer
    permission_classes = [permissions.IsAuthenticated, IsVendorOrAdmin, IsOwnerVendorOrAdmin]
    filterset_fields = ["product", "color", "size", "active"]
    search_fields = ["product__name", "color", "size", "sku"]
    ordering_fields = ["price", "stock", "created_at", "product__name"]
    ordering = ["product__name", "color", "size"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(product__vendor=get_vendor_for_user(self.request.user))

    @transaction.atomic
    def perform_create(self, serializer):
        _ensure_owns_product(self.request.user, serializer.validated_data["product"])
        variant = serializer.save()
        record_opening_stock(product=variant.product, variant=variant, user=self.request.user)

    def perform_update(self, serializer):
        if "product" in serializer.validated_data:
            _ensure_owns_product(self.request.user, serializer.validated_data["product"])
        serializer.save()

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        instance.active = False
        instance.save(update_fields=["active", "updated_at"])
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(tags=["ProductsImages"])
class ProductImageViewSet(viewsets.ModelViewSet):
    """
    ViewSet para imágenes de productos

    Al crear se validan formato y tamaño y se guardan los metadatos.
    """
    queryset = ProductImage.objects.select_related("product")
    serializer_class = ProductImageSerializer
    permission_classes = [permissions.IsAuthenticated, IsVendorOrAdmin, IsOwnerVendorOrAdmin]
    filterset_fields = ["product", "is_primary"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(product__vendor=get_vendor_for_user(self.request.user))

    def perform_create(self, serializer):
        """Extrae metadatos de imagen y resuelve la imagen principal"""
        product = serializer.validated_data["product"]
        _ensure_owns_product(self.request.user, product)

        metadata = ImageService.extract_image_metadata(serializer.validated_data["image"])
        make_primary = serializer.validated_data.pop("is_primary", False)
        image = serializer.save(
            is_primary=False,
            file_size=metadata["file_size"],
            width=metadata["width"],
            height=metadata["height"],
        )
        if make_primary or not product.images.exclude(pk=image.pk).exists():
            ImageService.set_primary_image(product, image.id)
            image.refresh_from_db()

    def perform_update(self, serializer):
        if "product" in serializer.validated_data:
            _ensure_owns_product(self.request.user, serializer.validated_data["product"])
        make_primary = serializer.validated_data.pop("is_primary", None)
        image = serializer.save()
        if make_primary:
            ImageService.set_primary_image(image.product, image.id)
            image.refresh_from_db()
        elif make_primary is False and image.is_primary:
            image.is_primary = False
            image.save(update_fields=["is_primary"])

    @action(detail=True, methods=["post"], url_path="set-primary")
    def set_primary(self, request, pk=None):
        image = self.get_object()
        ImageService.set_primary_image(image.product, image.id)
        return success_response(
            detail="Imagen principal actualizada",
            code="PRIMARY_IMAGE_SET",
            image_id=image.id,
            product_id=image.product_id,
        )


@extend_schema(tags=["Favorites"])
class FavoriteViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Favoritos del usuario autenticado"""
    serializer_class = FavoriteSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Favorite.objects.filter(user=self.request.user).select_related("product")

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        favorite, created = Favorite.objects.get_or_create(
            user=request.user, product=serializer.validated_data["product"]
        )
        return Response(
            self.get_serializer(favorite).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
