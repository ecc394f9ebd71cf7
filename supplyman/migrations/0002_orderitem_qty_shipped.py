"""
Track what picking already consumed per order line.
"""

from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('supplyman', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='orderitem',
            name='qty_shipped',
            field=models.DecimalField(
                decimal_places=3,
                default=Decimal('0'),
                help_text='Consumido em picking. Sai da demanda em aberto.',
                max_digits=12,
                verbose_name='Expedido',
            ),
        ),
    ]
