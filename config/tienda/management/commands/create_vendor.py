"""
Comando de Django para habilitar un vendedor
Ejecutar con: python manage.py create_vendor --username=ana --email=ana@example.com --store-name="Ana Moda"
"""

import getpass

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from tienda.vendors.services import create_vendor_profile

User = get_user_model()


class Command(BaseCommand):
    help = 'Crea (o reutiliza) un usuario y le asigna un perfil de vendedor activo'

    def add_arguments(self, parser):
        parser.add_argument('--username', required=True, help='Nombre de usuario')
        parser.add_argument('--email', required=True, help='Email del usuario')
        parser.add_argument('--store-name', required=True, help='Nombre comercial del vendedor')
        parser.add_argument('--password', help='Contraseña (solo para usuarios nuevos; se pedirá si falta)')
        parser.add_argument('--tax-id', default='', help='RUC o cédula')
        parser.add_argument('--phone', default='', help='Teléfono de contacto')

    def handle(self, *args, **options):
        username = options['username']
        email = options['email']

        user = User.objects.filter(username=username).first()
        if user is None:
            password = options['password']
            if not password:
                password = getpass.getpass('Contraseña: ')
                if not password:
                    raise CommandError('La contraseña es requerida')
            user = User.objects.create_user(username=username, email=email, password=password)
            self.stdout.write(f"✅ Usuario '{username}' creado")
        else:
            self.stdout.write(f"📋 Usuario '{username}' ya existe, se reutiliza")

        try:
            vendor = create_vendor_profile(
                user=user,
                store_name=options['store_name'],
                performed_by='manage.py',
                tax_id=options['tax_id'],
                phone=options['phone'],
                email=email,
            )
        except ValidationError as e:
            raise CommandError("; ".join(e.messages))

        self.stdout.write(self.style.SUCCESS(f"✅ Vendedor '{vendor.store_name}' (#{vendor.id}) habilitado"))
