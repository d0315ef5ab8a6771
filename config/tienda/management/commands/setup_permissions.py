"""
Comando de Django para configurar grupos y permisos de la tienda
Ejecutar con: python manage.py setup_permissions
"""

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand

GROUPS_DATA = {
    'Customers': {
        'description': 'Clientes de la tienda',
        'permissions': [
            # Solo ven catálogo y sus propias compras
            'tienda.view_product',
            'tienda.view_sale',
            'tienda.add_sale',
            'tienda.add_favorite',
            'tienda.delete_favorite',
        ]
    },
    'Vendors': {
        'description': 'Vendedores externos',
        'permissions': [
            'tienda.view_product',
            'tienda.add_product',
            'tienda.change_product',
            'tienda.view_productvariant',
            'tienda.add_productvariant',
            'tienda.change_productvariant',
            'tienda.add_productimage',
            'tienda.change_productimage',
            'tienda.delete_productimage',
            'tienda.view_categoryattribute',
            'tienda.view_productattributevalue',
            'tienda.add_productattributevalue',
            'tienda.change_productattributevalue',
            'tienda.delete_productattributevalue',
            'tienda.view_shippingrate',
            'tienda.add_shippingrate',
            'tienda.change_shippingrate',
            'tienda.delete_shippingrate',
            'tienda.view_bankaccount',
            'tienda.add_bankaccount',
            'tienda.change_bankaccount',
            'tienda.view_sale',
            'tienda.manage_inventory',
        ]
    },
    'StoreOps': {
        'description': 'Operación de pedidos de la tienda',
        'permissions': [
            'tienda.view_sale',
            'tienda.change_sale',
            'tienda.change_sale_status',
            'tienda.view_product',
            'tienda.view_salereturn',
            'tienda.add_salereturn',
        ]
    },
    'Managers': {
        'description': 'Administradores de la tienda',
        'permissions': [
            # Catálogo
            'tienda.view_product',
            'tienda.add_product',
            'tienda.change_product',
            'tienda.delete_product',
            'tienda.view_category',
            'tienda.add_category',
            'tienda.change_category',
            'tienda.delete_category',
            'tienda.view_categoryattribute',
            'tienda.add_categoryattribute',
            'tienda.change_categoryattribute',
            'tienda.delete_categoryattribute',
            'tienda.manage_inventory',
            # Proveedores
            'tienda.view_supplier',
            'tienda.add_supplier',
            'tienda.change_supplier',
            'tienda.delete_supplier',
            # Ventas
            'tienda.view_sale',
            'tienda.change_sale',
            'tienda.change_sale_status',
            'tienda.reverse_sale',
            'tienda.add_salereturn',
            # Vendedores, cupones y comisiones
            'tienda.view_vendor',
            'tienda.add_vendor',
            'tienda.change_vendor',
            'tienda.view_coupon',
            'tienda.add_coupon',
            'tienda.change_coupon',
            'tienda.delete_coupon',
            'tienda.view_commissionrule',
            'tienda.add_commissionrule',
            'tienda.change_commissionrule',
            # Usuarios y grupos
            'auth.view_user',
            'auth.add_user',
            'auth.change_user',
            'auth.view_group',
        ]
    },
}


class Command(BaseCommand):
    help = 'Configura grupos y permisos iniciales de la tienda'

    def handle(self, *args, **options):
        self.stdout.write('🔧 Configurando grupos y permisos...')

        for group_name, group_info in GROUPS_DATA.items():
            group, created = Group.objects.get_or_create(name=group_name)
            if created:
                self.stdout.write(f"✅ Grupo '{group_name}' creado")
            else:
                self.stdout.write(f"📋 Grupo '{group_name}' ya existe")

            group.permissions.clear()

            for perm_label in group_info['permissions']:
                app_label, codename = perm_label.split('.', 1)
                permission = Permission.objects.filter(
                    content_type__app_label=app_label, codename=codename
                ).first()
                if permission is None:
                    self.stdout.write(f"  ❌ Permiso '{perm_label}' no encontrado")
                    continue
                group.permissions.add(permission)
                self.stdout.write(f"  ✅ Permiso '{perm_label}' asignado a '{group_name}'")

        self.stdout.write(self.style.SUCCESS('\n🎉 Configuración de permisos completada!'))

        self.stdout.write('\n📊 Resumen de grupos y permisos:')
        for group_name in GROUPS_DATA:
            group = Group.objects.get(name=group_name)
            self.stdout.write(f"🔸 {group_name}: {group.permissions.count()} permisos")
