"""
Módulo de documentación
"""

from .docs import API_INFO, API_TAGS, ERROR_CODES

__all__ = [
    'API_INFO',
    'API_TAGS',
    'ERROR_CODES',
]
