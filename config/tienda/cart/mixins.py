from .services import cart_item_count

CART_COUNT_HEADER = "X-Cart-Items"


class CartCountHeaderMixin:
    """
    Agrega a la respuesta la cantidad de unidades del carrito abierto del
    usuario autenticado.
    """

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            response[CART_COUNT_HEADER] = str(cart_item_count(user))
        return response
