from decimal import Decimal

from django.db.models import Sum
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from ..models import Sale, SaleDetail


def _recalculate_sale_totals(sale: Sale) -> None:
    subtotal = sale.details.aggregate(total=Sum("subtotal"))["total"] or Decimal("0.00")
    sale.subtotal = subtotal
    sale.total = max(subtotal - sale.discount, Decimal("0.00")) + sale.shipping_total
    sale.save(update_fields=["subtotal", "total", "updated_at"])


@receiver(post_save, sender=SaleDetail)
def update_sale_total_on_save(sender, instance, **kwargs):
    """Se ejecuta después de crear o editar un detalle"""
    _recalculate_sale_totals(instance.sale)


@receiver(post_delete, sender=SaleDetail)
def update_sale_total_on_delete(sender, instance, **kwargs):
    """Se ejecuta después de eliminar un detalle"""
    # Al borrar la venta en cascada el padre ya no existe
    sale = Sale.objects.filter(pk=instance.sale_id).first()
    if sale is not None:
        _recalculate_sale_totals(sale)
