"""
Comando de Django para cargar los datos base de la tienda
Ejecutar con: python manage.py seed_store [--with-demo]

Es idempotente: solo crea lo que falta.
"""

from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from tienda.models import BankAccount, Category, ShippingRate, Subcategory

DEFAULT_CATALOG = {
    "Blusas": ["Manga larga", "Manga corta", "Sin manga", "Campesina", "Formal"],
    "Tops": ["Crop top", "Tank top", "Halter", "Básico", "Con tirantes"],
    "Body's": ["Manga larga", "Manga corta", "Sin manga", "Encaje", "Liso"],
    "Trajes de Baño": ["Bikini", "Entero", "Tankini", "Monokini", "High waist"],
    "Conjuntos": ["Casual", "Formal", "Deportivo", "Dos piezas", "Coordinado"],
    "Vestidos": ["Casual", "Fiesta", "Cóctel", "Largo", "Midi", "Mini"],
    "Faldas": ["Mini", "Midi", "Larga", "Lápiz", "Plisada", "Acampanada"],
    "Pantalones": ["Casual", "Formal", "Deportivo", "Palazzo", "Cargo", "Chino"],
    "Jeans": ["Skinny", "Boyfriend", "Mom", "Bootcut", "Flare", "Straight"],
    "Bolsas": ["Crossbody", "Clutch", "Tote", "Mochila", "Bandolera", "Shopper"],
}

DEMO_SHIPPING_RATE = {"province": "Pichincha", "city": "", "price": Decimal("4.50"), "note": "Tarifa base"}

DEMO_BANK_ACCOUNT = {
    "bank_code": "pichincha",
    "bank_name": "Banco Pichincha",
    "number": "2200000000",
    "account_type": BankAccount.AccountType.SAVINGS,
    "holder": "Simone Tienda",
}


class Command(BaseCommand):
    help = 'Crea categorías y subcategorías por defecto de la tienda'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-demo',
            action='store_true',
            help='Agrega una tarifa de envío y una cuenta bancaria de la tienda',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('🌱 Cargando catálogo base...')

        created_categories = 0
        created_subcategories = 0
        for category_name, subcategory_names in DEFAULT_CATALOG.items():
            category, created = Category.objects.get_or_create(name=category_name)
            created_categories += int(created)
            for subcategory_name in subcategory_names:
                _, sub_created = Subcategory.objects.get_or_create(category=category, name=subcategory_name)
                created_subcategories += int(sub_created)

        self.stdout.write(
            f"✅ Categorías nuevas: {created_categories}, subcategorías nuevas: {created_subcategories}"
        )

        if options['with_demo']:
            if not ShippingRate.objects.filter(vendor__isnull=True).exists():
                ShippingRate.objects.create(**DEMO_SHIPPING_RATE)
                self.stdout.write("✅ Tarifa de envío de la tienda creada")
            else:
                self.stdout.write("📋 La tienda ya tiene tarifas de envío")

            if not BankAccount.objects.filter(vendor__isnull=True).exists():
                BankAccount.objects.create(**DEMO_BANK_ACCOUNT)
                self.stdout.write("✅ Cuenta bancaria de la tienda creada")
            else:
                self.stdout.write("📋 La tienda ya tiene cuentas bancarias")

        self.stdout.write(self.style.SUCCESS('\n🎉 Datos base cargados!'))
