"""
Decide a quién se paga un carrito y qué cuentas bancarias se muestran.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.db.models import QuerySet

from ..models import BankAccount, Cart
from ..shipping.services import cart_vendor_ids


@dataclass(frozen=True)
class PaymentDecision:
    is_multi_vendor: bool
    single_vendor_id: int | None
    vendor_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "is_multi_vendor": self.is_multi_vendor,
            "single_vendor_id": self.single_vendor_id,
            "vendor_ids": list(self.vendor_ids),
        }


def resolve_payment_decision(cart: Cart | None) -> PaymentDecision:
    """
    Vendedores distintos del carrito; los productos de la tienda no cuentan
    como vendedor.
    """
    vendor_ids = [vendor_id for vendor_id in cart_vendor_ids(cart) if vendor_id is not None]
    return PaymentDecision(
        is_multi_vendor=len(vendor_ids) > 1,
        single_vendor_id=vendor_ids[0] if len(vendor_ids) == 1 else None,
        vendor_ids=vendor_ids,
    )


def store_bank_accounts() -> QuerySet:
    return BankAccount.objects.filter(vendor__isnull=True, active=True).order_by("sort_order", "id")


def bank_accounts_for(decision: PaymentDecision) -> QuerySet:
    """
    Cuentas a mostrar para el pago.

    Un solo vendedor paga a sus cuentas activas (o a las de la tienda si no
    tiene); carritos de varios vendedores o solo de la tienda pagan a la tienda.
    """
    if decision.single_vendor_id is not None:
        vendor_accounts = BankAccount.objects.filter(
            vendor_id=decision.single_vendor_id, active=True
        ).order_by("sort_order", "id")
        if vendor_accounts.exists():
            return vendor_accounts
    return store_bank_accounts()
