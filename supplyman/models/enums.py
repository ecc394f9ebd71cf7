"""
Enums for Supplyman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class OrderStatus(models.TextChoices):
    """
    Order lifecycle.

    RASCUNHO → ABERTO → EM_PICKING → SAIDA_CONCLUIDA | FINALIZADO
    Any non-terminal status can go to CANCELADO.
    """
    RASCUNHO = 'RASCUNHO', _('Rascunho')
    ABERTO = 'ABERTO', _('Aberto')
    EM_PICKING = 'EM_PICKING', _('Em picking')
    SAIDA_CONCLUIDA = 'SAIDA_CONCLUIDA', _('Saída concluída')
    FINALIZADO = 'FINALIZADO', _('Finalizado')
    CANCELADO = 'CANCELADO', _('Cancelado')


# Never reopened by the engine
TERMINAL_STATUSES = (OrderStatus.FINALIZADO, OrderStatus.CANCELADO)

# Drafts hold reservations but do not compete for stock
NON_COMPETING_STATUSES = (OrderStatus.FINALIZADO, OrderStatus.CANCELADO, OrderStatus.RASCUNHO)


class Readiness(models.TextChoices):
    """How much of the order's demand is currently reserved."""
    NOT_READY = 'NOT_READY', _('Sem reserva')
    READY_PARTIAL = 'READY_PARTIAL', _('Parcial')
    READY_FULL = 'READY_FULL', _('Completo')


class OrderSource(models.TextChoices):
    MANUAL = 'manual', _('Manual')
    MRP = 'mrp', _('Reposição automática (MRP)')


class ShortageAction(models.TextChoices):
    """What to do with the part of a line not covered by stock."""
    PRODUCE = 'PRODUCE', _('Produzir')   # Shortage becomes a production task
    BUY = 'BUY', _('Comprar')            # Shortage is bought externally


class ProductionTaskStatus(models.TextChoices):
    """Production task lifecycle. DONE is terminal."""
    PENDING = 'PENDING', _('Pendente')
    IN_PROGRESS = 'IN_PROGRESS', _('Em produção')
    DONE = 'DONE', _('Concluída')


class ReceiptStatus(models.TextChoices):
    DRAFT = 'DRAFT', _('Rascunho')
    POSTED = 'POSTED', _('Lançado')


class ReceiptType(models.TextChoices):
    PRODUCTION = 'PRODUCTION', _('Produção')
    PURCHASE = 'PURCHASE', _('Compra')


class NotificationType(models.TextChoices):
    ALOCACAO_DISPONIVEL = 'ALOCACAO_DISPONIVEL', _('Alocação disponível')
    ESTOQUE_MINIMO = 'ESTOQUE_MINIMO', _('Estoque mínimo')
    ESTOQUE_PONTO_PEDIDO = 'ESTOQUE_PONTO_PEDIDO', _('Ponto de pedido')
    RUPTURA = 'RUPTURA', _('Ruptura')
    PRODUCAO_PENDENTE = 'PRODUCAO_PENDENTE', _('Produção pendente')
    SISTEMA = 'SISTEMA', _('Sistema')
    PEDIDO_FLUXO = 'PEDIDO_FLUXO', _('Fluxo do pedido')


class Role(models.TextChoices):
    """Operator roles targeted by notifications."""
    ADMIN = 'Admin', _('Administrador')
    MANAGER = 'Manager', _('Gestor')
    SELLER = 'Seller', _('Vendedor')
    INPUT_OPERATOR = 'Input Operator', _('Operador de entrada')
    PRODUCTION_OPERATOR = 'Production Operator', _('Operador de produção')
    PICKER = 'Picker', _('Separador')
