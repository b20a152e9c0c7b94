"""
Stock ledger.

Every change to ``InventoryItem.current_stock`` goes through this module. Each
mutating call locks the item row, writes one ``StockMovement`` and updates the
stock snapshot inside a single transaction, so the stored stock always equals
the signed sum of the item's movements.

Callers pass the acting user and the movement timestamp explicitly.
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation

from django.db import DatabaseError, transaction
from django.db.models import Case, Count, DecimalField, F, Q, Sum, When
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from .exceptions import InsufficientStock, PersistenceFailure
from .models import InventoryItem, StockMovement, MONEY, QUANTITY, ZERO

logger = logging.getLogger(__name__)

OUTGOING_TYPES = (StockMovement.OUT, StockMovement.WASTE, StockMovement.TRANSFER)
USAGE_REASON = 'usage'


def to_quantity(value, field='quantity'):
    try:
        return Decimal(str(value)).quantize(QUANTITY)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: [f"'{value}' is not a valid number."]})


def to_money(value, field='unit_cost'):
    try:
        return Decimal(str(value)).quantize(MONEY)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: [f"'{value}' is not a valid amount."]})


def _require_positive(quantity):
    if quantity <= 0:
        raise ValidationError({'quantity': ['Quantity must be greater than zero.']})


@contextmanager
def ledger_transaction():
    """Atomic block that reports storage failures as PersistenceFailure"""
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.error(f"Stock ledger write failed: {exc}")
        raise PersistenceFailure() from exc


def _lock(item):
    return InventoryItem.objects.select_for_update().get(pk=item.pk)


def _write(item, locked, movement_type, quantity, new_stock, *, reason, actor, at,
           unit_cost=None, supplier=None, notes='', batch_number='', expiry_date=None,
           reference_type='', reference_id='', restocked=False):
    total_cost = (quantity * unit_cost).quantize(MONEY) if unit_cost is not None else None
    movement = StockMovement.objects.create(
        inventory_item=locked,
        movement_type=movement_type,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=total_cost,
        previous_stock=locked.current_stock,
        new_stock=new_stock,
        reason=reason,
        notes=notes or '',
        supplier=supplier,
        batch_number=batch_number or '',
        expiry_date=expiry_date,
        reference_type=reference_type or '',
        reference_id=str(reference_id) if reference_id not in (None, '') else '',
        created_by=actor,
        movement_date=at,
    )

    locked.current_stock = new_stock
    locked.updated_by = actor
    update_fields = ['current_stock', 'updated_by', 'updated_at']
    if restocked:
        locked.last_restocked = at
        update_fields.append('last_restocked')
    locked.save(update_fields=update_fields)

    # Keep the caller's instance in step with the committed row
    item.current_stock = locked.current_stock
    item.last_restocked = locked.last_restocked
    item.updated_by = actor
    return movement


def record_in(item, quantity, unit_cost, reason, *, actor, at, supplier=None,
              batch_number='', expiry_date=None, notes='', reference_type='', reference_id=''):
    """Receive ``quantity`` into stock, valued at ``unit_cost`` per unit."""
    quantity = to_quantity(quantity)
    unit_cost = to_money(unit_cost)
    _require_positive(quantity)
    if unit_cost < 0:
        raise ValidationError({'unit_cost': ['Unit cost cannot be negative.']})

    with ledger_transaction():
        locked = _lock(item)
        movement = _write(
            item, locked, StockMovement.IN, quantity, locked.current_stock + quantity,
            reason=reason, actor=actor, at=at, unit_cost=unit_cost, supplier=supplier,
            notes=notes, batch_number=batch_number, expiry_date=expiry_date,
            reference_type=reference_type, reference_id=reference_id, restocked=True,
        )

    logger.info(f"Stock in: {quantity} {item.unit_of_measure} of {item.name} ({reason}), now {movement.new_stock}")
    return movement


def record_out(item, quantity, reason=USAGE_REASON, *, actor, at, notes='', reference_type='', reference_id=''):
    """
    Take ``quantity`` out of stock at the item's standing unit cost.

    Raises InsufficientStock, without writing anything, when the item holds
    less than ``quantity``.
    """
    quantity = to_quantity(quantity)
    _require_positive(quantity)

    with ledger_transaction():
        locked = _lock(item)
        if quantity > locked.current_stock:
            raise InsufficientStock(locked, quantity, locked.current_stock)
        movement = _write(
            item, locked, StockMovement.OUT, quantity, locked.current_stock - quantity,
            reason=reason, actor=actor, at=at, unit_cost=locked.unit_cost, notes=notes,
            reference_type=reference_type, reference_id=reference_id,
        )

    logger.info(f"Stock out: {quantity} {item.unit_of_measure} of {item.name} ({reason}), now {movement.new_stock}")
    return movement


def record_adjustment(item, target_quantity, reason='manual_adjustment', *, actor, at,
                      notes='Stock level adjusted manually'):
    """
    Set stock to ``target_quantity``. The movement is ``in`` or ``out`` for the
    difference, or a zero ``adjustment`` when the level is unchanged.
    """
    target = to_quantity(target_quantity, field='new_quantity')
    if target < 0:
        raise ValidationError({'new_quantity': ['Stock level cannot be negative.']})

    with ledger_transaction():
        locked = _lock(item)
        delta = target - locked.current_stock
        if delta > 0:
            movement_type = StockMovement.IN
        elif delta < 0:
            movement_type = StockMovement.OUT
        else:
            movement_type = StockMovement.ADJUSTMENT
        movement = _write(
            item, locked, movement_type, abs(delta), target,
            reason=reason or 'manual_adjustment', actor=actor, at=at,
            unit_cost=locked.unit_cost, notes=notes,
        )

    logger.info(f"Stock adjusted: {item.name} {movement.previous_stock} -> {target} ({movement.reason})")
    return movement


# =============== PERIOD QUERIES ===============

def _as_datetime(value, end_of_day=False):
    if isinstance(value, datetime):
        return value
    moment = datetime.combine(value, time.max if end_of_day else time.min)
    return timezone.make_aware(moment)


def opening_stock(item, as_of):
    """Stock after the latest movement strictly before ``as_of``, else 0"""
    latest = (
        item.stock_movements
        .filter(movement_date__lt=_as_datetime(as_of))
        .order_by('-movement_date', '-id')
        .first()
    )
    return latest.new_stock if latest else ZERO


def _period_total(item, movement_type, start, end):
    total = item.stock_movements.filter(
        movement_type=movement_type,
        movement_date__gte=_as_datetime(start),
        movement_date__lte=_as_datetime(end, end_of_day=True),
    ).aggregate(total=Sum('quantity'))['total']
    return total or ZERO


def period_received(item, start, end):
    return _period_total(item, StockMovement.IN, start, end)


def period_used(item, start, end):
    return _period_total(item, StockMovement.OUT, start, end)


def ledger_balance(item):
    """Signed sum of every movement recorded for ``item``"""
    signed = Case(
        When(movement_type=StockMovement.IN, then=F('quantity')),
        When(movement_type__in=OUTGOING_TYPES, then=-F('quantity')),
        default=F('new_stock') - F('previous_stock'),
        output_field=DecimalField(max_digits=12, decimal_places=3),
    )
    return item.stock_movements.aggregate(total=Sum(signed))['total'] or ZERO


def movement_summary(item, at):
    month_start = timezone.localtime(at).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    summary = item.stock_movements.aggregate(
        total_movements=Count('id'),
        total_in=Sum('quantity', filter=Q(movement_type=StockMovement.IN)),
        total_out=Sum('quantity', filter=Q(movement_type=StockMovement.OUT)),
        this_month=Count('id', filter=Q(movement_date__gte=month_start)),
    )
    return {
        'total_movements': summary['total_movements'],
        'total_in': summary['total_in'] or ZERO,
        'total_out': summary['total_out'] or ZERO,
        'this_month': summary['this_month'],
    }


def month_bounds(day):
    """First and last calendar day of the month containing ``day``"""
    if isinstance(day, datetime):
        day = timezone.localtime(day).date() if timezone.is_aware(day) else day.date()
    first = day.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


def as_local_date(value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
