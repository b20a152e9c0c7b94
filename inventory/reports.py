"""
Read-only stock reports. Nothing in here writes to the database.
"""
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db.models import ExpressionWrapper, F, DecimalField, Sum

from . import ledger
from .models import InventoryItem, MenuItemIngredient, Supplier, MONEY, ZERO

SEVERITY_CRITICAL = 'critical'
SEVERITY_HIGH = 'high'
SEVERITY_MEDIUM = 'medium'


def days_until_stockout(current_stock, minimum_stock, projection_days=None):
    """
    Rough projection: ``max(1, round(current / minimum * days))``, 0 when no
    minimum is set.
    """
    if projection_days is None:
        projection_days = settings.STOCKOUT_PROJECTION_DAYS
    if not minimum_stock or minimum_stock <= 0:
        return 0
    ratio = Decimal(current_stock) / Decimal(minimum_stock) * projection_days
    return max(1, int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP)))


def restock_severity(current_stock, minimum_stock):
    if current_stock <= 0:
        return SEVERITY_CRITICAL, 'Out of Stock'
    if minimum_stock > 0:
        level = current_stock / minimum_stock * 100
        if level <= 25:
            return SEVERITY_CRITICAL, 'Critically Low'
        if level <= 50:
            return SEVERITY_HIGH, 'Very Low'
    return SEVERITY_MEDIUM, 'Low Stock'


def get_low_stock_items(limit=20):
    """Tracked items at or below minimum, emptiest first"""
    items = (
        InventoryItem.objects.needs_restock()
        .select_related('category', 'supplier')
        .order_by('current_stock', 'name')
    )
    if limit:
        items = items[:limit]

    rows = []
    for item in items:
        severity, label = restock_severity(item.current_stock, item.minimum_stock)
        rows.append({
            'id': item.pk,
            'name': item.name,
            'sku': item.sku,
            'category': item.category.name,
            'supplier': item.supplier.name if item.supplier else None,
            'current': item.current_stock,
            'minimum': item.minimum_stock,
            'unit': item.unit_of_measure,
            'days_until_stockout': days_until_stockout(item.current_stock, item.minimum_stock),
            'status': item.stock_status,
            'severity': severity,
            'severity_label': label,
        })
    return rows


def get_comprehensive_stats():
    active = InventoryItem.objects.active()
    value_expr = ExpressionWrapper(F('current_stock') * F('unit_cost'), output_field=DecimalField(max_digits=18, decimal_places=5))
    total_value = active.aggregate(total=Sum(value_expr))['total'] or ZERO

    # Items without a positive maximum have no fill level and are left out
    levels = [
        item.current_stock / item.maximum_stock * 100
        for item in active.filter(maximum_stock__gt=0).only('current_stock', 'maximum_stock')
    ]
    avg_level = sum(levels, ZERO) / len(levels) if levels else None

    auto_deduct_items = (
        MenuItemIngredient.objects.filter(is_active=True, inventory_item__is_active=True)
        .values('inventory_item').distinct().count()
    )

    return {
        'total_items': active.count(),
        'low_stock_count': InventoryItem.objects.low_stock().count(),
        'out_of_stock_count': InventoryItem.objects.out_of_stock().count(),
        'needs_restock_count': InventoryItem.objects.needs_restock().count(),
        'total_value': Decimal(total_value).quantize(MONEY),
        'avg_stock_level_pct': avg_level.quantize(MONEY) if avg_level is not None else ZERO,
        'auto_deduct_item_count': auto_deduct_items,
        'supplier_count': Supplier.objects.filter(is_active=True).count(),
    }


def get_period_report(start, end, queryset=None):
    """
    Opening, received, used and closing stock per active item for the
    inclusive window ``[start, end]``.
    """
    if queryset is None:
        queryset = InventoryItem.objects.active().select_related('category')

    rows = []
    for item in queryset:
        opening = ledger.opening_stock(item, start)
        received = ledger.period_received(item, start, end)
        used = ledger.period_used(item, start, end)
        rows.append({
            'id': item.pk,
            'name': item.name,
            'sku': item.sku,
            'category': item.category.name,
            'unit': item.unit_of_measure,
            'opening_stock': opening,
            'stock_received': received,
            'stock_used': used,
            'closing_stock': ledger.opening_stock(item, _day_after(end)),
            'current_stock': item.current_stock,
            'unit_cost': item.unit_cost,
        })
    return rows


def _day_after(end):
    if isinstance(end, datetime):
        return end + timedelta(microseconds=1)
    return end + timedelta(days=1)
