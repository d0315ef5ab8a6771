"""
Tienda App - Simone
Tienda en línea multi-vendedor: catálogo, carrito, checkout, envíos y reportes
"""

__version__ = '1.0.0'

APP_NAME = 'Simone Tienda'
APP_DESCRIPTION = 'Tienda en línea con vendedores externos, tarifas de envío por vendedor y pagos por transferencia'
