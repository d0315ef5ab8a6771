"""
Documentación y metadatos para la API de Simone Tienda
Información organizada para Swagger/ReDoc
"""

# ============================================================================
# API METADATA
# ============================================================================

API_INFO = {
    'title': 'Simone Tienda API',
    'description': (
        'Tienda en línea multi-vendedor: catálogo con variantes, carrito '
        'persistente, checkout con pago por transferencia, tarifas de envío '
        'por vendedor, cupones y reportes'
    ),
    'version': '1.0.0',
    'contact': {
        'name': 'Simone Tienda Team',
        'email': 'soporte@simone-tienda.com',
    },
}

# ============================================================================
# TAGS ORGANIZADAS
# ============================================================================

API_TAGS = [
    {
        'name': 'Authentication',
        'description': 'Autenticación JWT y gestión de tokens de acceso'
    },
    {
        'name': 'Customers',
        'description': 'Registro, inicio de sesión y perfil de clientes'
    },
    {
        'name': 'Catalog',
        'description': 'Catálogo público con filtros por categoría, vendedor y precio'
    },
    {
        'name': 'Categories',
        'description': 'Categorías y subcategorías del catálogo'
    },
    {
        'name': 'Products',
        'description': 'Gestión de productos por vendedores y administradores, con ajuste de stock'
    },
    {
        'name': 'Attributes',
        'description': 'Atributos dinámicos por categoría, valores por producto y filtros del catálogo'
    },
    {
        'name': 'ProductsVariants',
        'description': 'Variantes de producto (color y talla)'
    },
    {
        'name': 'ProductsImages',
        'description': 'Imágenes de productos con validación y metadatos'
    },
    {
        'name': 'Favorites',
        'description': 'Productos favoritos del cliente'
    },
    {
        'name': 'Cart',
        'description': 'Carrito persistente: ítems, cantidades y cupón'
    },
    {
        'name': 'Checkout',
        'description': 'Procesamiento del carrito y creación de la venta'
    },
    {
        'name': 'Sales',
        'description': 'Ventas, cambios de estado, devoluciones, reversiones y comprobantes'
    },
    {
        'name': 'Shipping',
        'description': 'Tarifas de envío por vendedor y cotización del carrito'
    },
    {
        'name': 'Payments',
        'description': 'Cuentas bancarias y opciones de pago por transferencia'
    },
    {
        'name': 'Coupons',
        'description': 'Cupones de descuento de monto fijo'
    },
    {
        'name': 'Suppliers',
        'description': 'Proveedores de la tienda y compras que ingresan stock'
    },
    {
        'name': 'Vendors',
        'description': 'Vendedores externos y reglas de comisión'
    },
    {
        'name': 'Reports',
        'description': 'Resumen de ventas, comisiones por vendedor y stock bajo'
    },
    {
        'name': 'Export',
        'description': 'Descarga de ventas, comisiones y stock bajo en CSV o Excel'
    },
]

# ============================================================================
# ERROR CODES
# ============================================================================

ERROR_CODES = {
    400: 'Bad Request - Datos inválidos o regla de negocio incumplida',
    401: 'Unauthorized - No autenticado o token inválido',
    403: 'Forbidden - No tienes permisos para esta acción',
    404: 'Not Found - Recurso no encontrado',
    409: 'Conflict - Stock insuficiente o recurso en uso',
    500: 'Internal Server Error - Error del servidor',
}
