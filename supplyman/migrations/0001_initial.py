"""
Initial migration for Supplyman models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ORDER_STATUS_CHOICES = [
    ('RASCUNHO', 'Rascunho'),
    ('ABERTO', 'Aberto'),
    ('EM_PICKING', 'Em picking'),
    ('SAIDA_CONCLUIDA', 'Saída concluída'),
    ('FINALIZADO', 'Finalizado'),
    ('CANCELADO', 'Cancelado'),
]

NOTIFICATION_TYPE_CHOICES = [
    ('ALOCACAO_DISPONIVEL', 'Alocação disponível'),
    ('ESTOQUE_MINIMO', 'Estoque mínimo'),
    ('ESTOQUE_PONTO_PEDIDO', 'Ponto de pedido'),
    ('RUPTURA', 'Ruptura'),
    ('PRODUCAO_PENDENTE', 'Produção pendente'),
    ('SISTEMA', 'Sistema'),
    ('PEDIDO_FLUXO', 'Fluxo do pedido'),
]

ROLE_CHOICES = [
    ('Admin', 'Administrador'),
    ('Manager', 'Gestor'),
    ('Seller', 'Vendedor'),
    ('Input Operator', 'Operador de entrada'),
    ('Production Operator', 'Operador de produção'),
    ('Picker', 'Separador'),
]


def qty_field(verbose_name, **kwargs):
    return models.DecimalField(decimal_places=3, max_digits=12, verbose_name=verbose_name, **kwargs)


class Migration(migrations.Migration):
    """Create Supplyman models: Material, balances, ledger, orders, reservations, production, receipts, notifications."""

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Material',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(blank=True, max_length=64, null=True, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Nome')),
                ('description', models.TextField(blank=True, default='', verbose_name='Descrição')),
                ('unit', models.CharField(default='EA', help_text='Unidade de medida padrão (ex: EA, KG, M)', max_length=16, verbose_name='Unidade')),
                ('min_stock', qty_field('Estoque mínimo', default=Decimal('0'))),
                ('reorder_point', qty_field('Ponto de pedido', default=Decimal('0'))),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Material',
                'verbose_name_plural': 'Materiais',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='StockBalance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('on_hand', qty_field('Em estoque', default=Decimal('0'))),
                ('reserved_total', qty_field('Reservado', default=Decimal('0'))),
                ('production_reserved', qty_field('Reservado p/ produção', default=Decimal('0'))),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('material', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='balance', to='supplyman.material', verbose_name='Material')),
            ],
            options={
                'verbose_name': 'Saldo',
                'verbose_name_plural': 'Saldos',
            },
        ),
        migrations.CreateModel(
            name='StockMove',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('delta', qty_field('Variação', help_text='Positivo = entrada, Negativo = saída')),
                ('reference_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='ID da Referência')),
                ('reason', models.CharField(help_text='Obrigatório. Ex: "Recebimento #12", "Picking 2026101801"', max_length=255, verbose_name='Motivo')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadados')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Data/Hora')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='moves', to='supplyman.material', verbose_name='Material')),
                ('reference_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Referência')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Movimento',
                'verbose_name_plural': 'Movimentos',
                'ordering': ['timestamp'],
                'indexes': [models.Index(fields=['material', 'timestamp'], name='supplyman_move_material_ts')],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(blank=True, help_text='AAAAMMDD + sequência do dia, ou MRP-<id>. Imutável.', max_length=32, null=True, unique=True, verbose_name='Número')),
                ('client_name', models.CharField(blank=True, default='', max_length=200, verbose_name='Cliente')),
                ('status', models.CharField(choices=ORDER_STATUS_CHOICES, db_index=True, default='RASCUNHO', max_length=20, verbose_name='Status')),
                ('readiness', models.CharField(choices=[('NOT_READY', 'Sem reserva'), ('READY_PARTIAL', 'Parcial'), ('READY_FULL', 'Completo')], default='NOT_READY', max_length=20, verbose_name='Prontidão')),
                ('source', models.CharField(choices=[('manual', 'Manual'), ('mrp', 'Reposição automática (MRP)')], default='manual', max_length=10, verbose_name='Origem')),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Total')),
                ('due_date', models.DateTimeField(blank=True, null=True, verbose_name='Entrega')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('trashed_at', models.DateTimeField(blank=True, null=True, verbose_name='Na lixeira desde')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Criado por')),
            ],
            options={
                'verbose_name': 'Pedido',
                'verbose_name_plural': 'Pedidos',
                'ordering': ['created_at', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty_requested', qty_field('Solicitado', default=Decimal('0'))),
                ('qty_reserved_from_stock', qty_field('Reservado do estoque', default=Decimal('0'))),
                ('qty_to_produce', qty_field('A produzir', default=Decimal('0'))),
                ('qty_separated', qty_field('Separado', default=Decimal('0'))),
                ('shortage_action', models.CharField(choices=[('PRODUCE', 'Produzir'), ('BUY', 'Comprar')], default='PRODUCE', max_length=10, verbose_name='Em ruptura')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Preço unitário')),
                ('description', models.TextField(blank=True, default='', verbose_name='Descrição')),
                ('conditions', models.JSONField(blank=True, default=list, verbose_name='Condições')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_items', to='supplyman.material', verbose_name='Material')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='supplyman.order', verbose_name='Pedido')),
            ],
            options={
                'verbose_name': 'Item do pedido',
                'verbose_name_plural': 'Itens do pedido',
                'ordering': ['pk'],
                'indexes': [models.Index(fields=['material', 'order'], name='supplyman_item_material_ord')],
            },
        ),
        migrations.CreateModel(
            name='OrderAuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=50, verbose_name='Ação')),
                ('actor', models.CharField(blank=True, default='', max_length=150, verbose_name='Responsável')),
                ('details', models.TextField(blank=True, default='', verbose_name='Detalhes')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_events', to='supplyman.order', verbose_name='Pedido')),
            ],
            options={
                'verbose_name': 'Evento do pedido',
                'verbose_name_plural': 'Eventos do pedido',
                'ordering': ['-timestamp', '-pk'],
            },
        ),
        migrations.CreateModel(
            name='OrderNumberCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day', models.DateField(unique=True, verbose_name='Dia')),
                ('last_seq', models.PositiveIntegerField(default=0, verbose_name='Última sequência')),
            ],
            options={
                'verbose_name': 'Contador de pedidos',
                'verbose_name_plural': 'Contadores de pedidos',
            },
        ),
        migrations.CreateModel(
            name='StockReservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty', qty_field('Quantidade')),
                ('expires_at', models.DateTimeField(db_index=True, help_text='Após esta data a reserva é liberada automaticamente', verbose_name='Expira em')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to='supplyman.material', verbose_name='Material')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to='supplyman.order', verbose_name='Pedido')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Reservado por')),
            ],
            options={
                'verbose_name': 'Reserva de estoque',
                'verbose_name_plural': 'Reservas de estoque',
                'indexes': [models.Index(fields=['material', 'expires_at'], name='supplyman_resv_material_exp')],
                'constraints': [models.UniqueConstraint(fields=('order', 'material'), name='unique_stock_reservation_per_order_material')],
            },
        ),
        migrations.CreateModel(
            name='ProductionReservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty', qty_field('Quantidade')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_reservations', to='supplyman.material', verbose_name='Material')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_reservations', to='supplyman.order', verbose_name='Pedido')),
            ],
            options={
                'verbose_name': 'Reserva de produção',
                'verbose_name_plural': 'Reservas de produção',
                'constraints': [models.UniqueConstraint(fields=('order', 'material'), name='unique_production_reservation_per_order_material')],
            },
        ),
        migrations.CreateModel(
            name='ProductionTask',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty_to_produce', qty_field('A produzir')),
                ('qty_produced', qty_field('Produzido', blank=True, help_text='Quantidade capturada na conclusão', null=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pendente'), ('IN_PROGRESS', 'Em produção'), ('DONE', 'Concluída')], db_index=True, default='PENDING', max_length=20, verbose_name='Status')),
                ('started_at', models.DateTimeField(blank=True, null=True, verbose_name='Iniciada em')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Concluída em')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_tasks', to='supplyman.material', verbose_name='Material')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_tasks', to='supplyman.order', verbose_name='Pedido')),
            ],
            options={
                'verbose_name': 'Tarefa de produção',
                'verbose_name_plural': 'Tarefas de produção',
                'ordering': ['created_at', 'pk'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status', 'DONE'), _negated=True), fields=('order', 'material'), name='unique_open_production_task')],
            },
        ),
        migrations.CreateModel(
            name='InventoryReceipt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('PRODUCTION', 'Produção'), ('PURCHASE', 'Compra')], default='PURCHASE', max_length=20, verbose_name='Tipo')),
                ('status', models.CharField(choices=[('DRAFT', 'Rascunho'), ('POSTED', 'Lançado')], db_index=True, default='DRAFT', max_length=10, verbose_name='Status')),
                ('source_ref', models.CharField(blank=True, default='', max_length=64, verbose_name='Origem')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('posted_at', models.DateTimeField(blank=True, null=True, verbose_name='Lançado em')),
                ('auto_allocated', models.BooleanField(default=False, verbose_name='Alocado automaticamente')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Criado por')),
                ('posted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Lançado por')),
            ],
            options={
                'verbose_name': 'Recebimento',
                'verbose_name_plural': 'Recebimentos',
                'ordering': ['-created_at', '-pk'],
            },
        ),
        migrations.CreateModel(
            name='InventoryReceiptItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty', qty_field('Quantidade')),
                ('uom', models.CharField(blank=True, default='', max_length=16, verbose_name='Unidade')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receipt_items', to='supplyman.material', verbose_name='Material')),
                ('receipt', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='supplyman.inventoryreceipt', verbose_name='Recebimento')),
            ],
            options={
                'verbose_name': 'Item do recebimento',
                'verbose_name_plural': 'Itens do recebimento',
                'ordering': ['pk'],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=NOTIFICATION_TYPE_CHOICES, max_length=30, verbose_name='Tipo')),
                ('title', models.CharField(max_length=200, verbose_name='Título')),
                ('message', models.TextField(blank=True, default='', verbose_name='Mensagem')),
                ('role_target', models.CharField(blank=True, choices=ROLE_CHOICES, db_index=True, default='', max_length=30, verbose_name='Perfil')),
                ('dedupe_key', models.CharField(blank=True, max_length=120, null=True, verbose_name='Chave de deduplicação')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='Lida em')),
                ('material', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='supplyman.material', verbose_name='Material')),
                ('order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='supplyman.order', verbose_name='Pedido')),
                ('user_target', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Notificação',
                'verbose_name_plural': 'Notificações',
                'ordering': ['-created_at', '-pk'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('dedupe_key__isnull', False), ('read_at__isnull', True)), fields=('dedupe_key',), name='unique_unread_notification_dedupe_key')],
            },
        ),
    ]
