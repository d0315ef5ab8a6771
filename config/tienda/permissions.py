from rest_framework import permissions

from .vendors.services import get_vendor_for_user


class IsAdminOrReadOnly(permissions.BasePermission):
    """
    Lectura pública, escritura solo para administradores.
    """

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_staff)


class IsStaff(permissions.BasePermission):
    """
    Solo administradores de la tienda.
    """

    message = "Solo los administradores pueden realizar esta acción"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_staff)


class IsVendorOrAdmin(permissions.BasePermission):
    """
    Permite acceso a vendedores activos y administradores.
    """

    message = "Necesitas un perfil de vendedor activo"

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_staff or get_vendor_for_user(request.user) is not None


class IsOwnerVendorOrAdmin(permissions.BasePermission):
    """
    Permite acceso al vendedor dueño del objeto o administradores.

    El objeto debe tener un campo vendor (o un product con vendor).
    """

    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True

        vendor = get_vendor_for_user(request.user)
        if vendor is None:
            return False

        if hasattr(obj, "vendor_id"):
            return obj.vendor_id == vendor.id

        product = getattr(obj, "product", None)
        if product is not None:
            return product.vendor_id == vendor.id

        return False
