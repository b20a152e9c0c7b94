"""
Inventory operations used by the API views and the order workflow.

Each operation validates its input with the matching serializer, resolves
referenced rows (NotFound when missing) and hands the stock change to the
ledger.
"""
import logging

from django.db import transaction
from rest_framework.exceptions import NotFound

from . import deduction, ledger
from .mapping import auto_link_ingredients
from .models import InventoryItem, MenuItem, Supplier, ZERO
from .serializers import (
    AddStockSerializer, AdjustStockSerializer, InventoryItemWriteSerializer, UseStockSerializer,
)

logger = logging.getLogger(__name__)

INITIAL_STOCK_REASON = 'initial_stock'
PURCHASE_REASON = 'purchase'
ADJUSTMENT_REASON = 'manual_adjustment'


def get_inventory_item(item_id):
    try:
        return InventoryItem.objects.select_related('category', 'supplier').get(pk=item_id)
    except (InventoryItem.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Inventory item {item_id} not found.")


def get_menu_item(menu_item_id):
    try:
        return MenuItem.objects.get(pk=menu_item_id)
    except (MenuItem.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Menu item {menu_item_id} not found.")


def create_inventory_item(fields, *, actor, at):
    """
    Create an inventory item. Opening stock is booked as an ``initial_stock``
    receipt so the ledger accounts for it, then auto-linking runs.
    """
    serializer = InventoryItemWriteSerializer(data=fields)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    initial_stock = data.pop('current_stock', ZERO) or ZERO

    with transaction.atomic():
        item = InventoryItem.objects.create(
            **data, current_stock=ZERO, created_by=actor, updated_by=actor,
        )
        if initial_stock > 0:
            ledger.record_in(
                item, initial_stock, item.unit_cost, INITIAL_STOCK_REASON,
                actor=actor, at=at, supplier=item.supplier, notes='Initial stock entry',
            )
        auto_link_ingredients(item)

    logger.info(f"Inventory item created: {item.name} ({item.sku}) with {item.current_stock} {item.unit_of_measure}")
    return item


def add_stock(item_id, fields, *, actor, at):
    item = get_inventory_item(item_id)
    serializer = AddStockSerializer(data=fields, context={'at': at})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    supplier = data.get('supplier') or item.supplier
    unit_cost = data.get('unit_cost')
    if unit_cost is None:
        unit_cost = item.unit_cost

    with transaction.atomic():
        movement = ledger.record_in(
            item, data['quantity'], unit_cost, data.get('reason') or PURCHASE_REASON,
            actor=actor, at=at, supplier=supplier,
            batch_number=data.get('batch_number', ''), expiry_date=data.get('expiry_date'),
            notes=data.get('notes', ''),
        )
        if supplier is not None:
            Supplier.objects.filter(pk=supplier.pk).update(last_order_date=ledger.as_local_date(at))
    return movement


def use_stock(item_id, fields, *, actor, at):
    item = get_inventory_item(item_id)
    serializer = UseStockSerializer(data=fields)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return ledger.record_out(
        item, data['quantity'], data['reason'], actor=actor, at=at, notes=data.get('notes', ''),
    )


def adjust_stock(item_id, fields, *, actor, at):
    item = get_inventory_item(item_id)
    serializer = AdjustStockSerializer(data=fields)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return ledger.record_adjustment(
        item, data['new_quantity'], data.get('reason') or ADJUSTMENT_REASON,
        actor=actor, at=at, notes=data.get('notes') or 'Stock level adjusted manually',
    )


def deduct_for_sale(menu_item_id, units, *, actor, at, reference_type='', reference_id=''):
    menu_item = get_menu_item(menu_item_id)
    return deduction.deduct(
        menu_item, units, actor=actor, at=at,
        reference_type=reference_type, reference_id=reference_id,
    )
