import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("tienda", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Supplier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                ("contact", models.CharField(blank=True, default="", max_length=120)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("tax_id", models.CharField(blank=True, default="", max_length=20)),
                ("last_purchase_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.AddField(
            model_name="product",
            name="supplier",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="products",
                to="tienda.supplier",
            ),
        ),
        migrations.AddField(
            model_name="movementinventory",
            name="supplier",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="movements",
                to="tienda.supplier",
            ),
        ),
        migrations.CreateModel(
            name="CategoryAttribute",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("technical_name", models.CharField(blank=True, max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=300)),
                (
                    "field_type",
                    models.CharField(
                        choices=[
                            ("text", "Texto"),
                            ("textarea", "Texto largo"),
                            ("number", "Número"),
                            ("range", "Rango"),
                            ("select", "Selección"),
                            ("multiselect", "Selección múltiple"),
                            ("checkbox", "Sí/No"),
                            ("color", "Color"),
                            ("date", "Fecha"),
                        ],
                        default="select",
                        max_length=20,
                    ),
                ),
                ("options", models.JSONField(blank=True, default=list)),
                ("unit", models.CharField(blank=True, default="", max_length=20)),
                ("required", models.BooleanField(default=False)),
                ("filterable", models.BooleanField(default=True)),
                ("show_in_detail", models.BooleanField(default=True)),
                ("show_in_card", models.BooleanField(default=False)),
                ("min_value", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("max_value", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("validation_pattern", models.CharField(blank=True, default="", max_length=200)),
                ("error_message", models.CharField(blank=True, default="", max_length=200)),
                ("group", models.CharField(blank=True, default="", max_length=100)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("active", models.BooleanField(default=True)),
                ("usage_count", models.PositiveIntegerField(default=0, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attributes",
                        to="tienda.category",
                    ),
                ),
            ],
            options={
                "ordering": ["category__name", "sort_order", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("category", "technical_name"), name="unique_attribute_technical_name_per_category"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductAttributeValue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("value", models.TextField()),
                ("display_value", models.CharField(blank=True, default="", max_length=500)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "attribute",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="product_values",
                        to="tienda.categoryattribute",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attribute_values",
                        to="tienda.product",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "unique_together": {("product", "attribute")},
            },
        ),
    ]
