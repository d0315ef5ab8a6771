from django.apps import AppConfig


class TiendaConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tienda'
    verbose_name = 'Tienda'

    def ready(self):
        from .core import signals  # noqa: F401
        return super().ready()
