"""
Views del carrito persistente del cliente
"""
from django.core.exceptions import ValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.views import APIView

from ..core.api_responses import error_response, service_error_response, success_response
from ..models import CartItem
from . import services
from .mixins import CartCountHeaderMixin
from .serializers import CartItemAddSerializer, CartItemUpdateSerializer, CouponCodeSerializer


@extend_schema(tags=["Cart"])
class CartView(CartCountHeaderMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        cart = services.get_open_cart(request.user)
        return success_response(
            detail="Carrito obtenido correctamente",
            code="CART_OK",
            cart=services.cart_summary(cart),
        )

    def delete(self, request):
        cart = services.clear_cart(user=request.user)
        return success_response(
            detail="Carrito vaciado correctamente",
            code="CART_CLEARED",
            cart=services.cart_summary(cart),
        )


@extend_schema(tags=["Cart"], request=CartItemAddSerializer)
class CartItemsView(CartCountHeaderMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CartItemAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            item = services.add_item(
                user=request.user,
                product_id=data["product_id"],
                variant_id=data.get("variant_id"),
                quantity=data["quantity"],
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo agregar el producto al carrito",
                default_code="CART_ADD_FAILED",
            )

        return success_response(
            detail="Producto agregado al carrito",
            code="CART_ITEM_ADDED",
            http_status=status.HTTP_201_CREATED,
            item_id=item.id,
            cart=services.cart_summary(item.cart),
        )


@extend_schema(tags=["Cart"], request=CartItemUpdateSerializer)
class CartItemDetailView(CartCountHeaderMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, item_id: int):
        serializer = CartItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            item, subtotal = services.update_item_quantity(
                user=request.user,
                item_id=item_id,
                quantity=serializer.validated_data["quantity"],
            )
        except CartItem.DoesNotExist:
            return error_response(
                detail="Ítem del carrito no encontrado",
                code="CART_ITEM_NOT_FOUND",
                http_status=status.HTTP_404_NOT_FOUND,
            )
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo actualizar la cantidad",
                default_code="CART_UPDATE_FAILED",
            )

        return success_response(
            detail="Cantidad actualizada",
            code="CART_ITEM_UPDATED",
            item_id=item.id,
            quantity=item.quantity,
            subtotal=str(subtotal),
            cart=services.cart_summary(item.cart),
        )

    def delete(self, request, item_id: int):
        try:
            cart = services.remove_item(user=request.user, item_id=item_id)
        except CartItem.DoesNotExist:
            return error_response(
                detail="Ítem del carrito no encontrado",
                code="CART_ITEM_NOT_FOUND",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        return success_response(
            detail="Producto eliminado del carrito",
            code="CART_ITEM_REMOVED",
            cart=services.cart_summary(cart),
        )


@extend_schema(tags=["Cart"], request=CouponCodeSerializer)
class CartCouponView(CartCountHeaderMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CouponCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            cart = services.apply_coupon(user=request.user, code=serializer.validated_data["code"])
        except ValidationError as exc:
            return service_error_response(
                exc,
                default_detail="No se pudo aplicar el cupón",
                default_code="COUPON_INVALID",
            )

        return success_response(
            detail="Cupón aplicado correctamente",
            code="COUPON_APPLIED",
            cart=services.cart_summary(cart),
        )

    def delete(self, request):
        cart = services.remove_coupon(user=request.user)
        return success_response(
            detail="Cupón eliminado del carrito",
            code="COUPON_REMOVED",
            cart=services.cart_summary(cart),
        )
