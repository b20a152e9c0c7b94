"""
Ingredient deduction for menu item sales.

``deduct`` walks the active ingredient mappings of a menu item and takes the
required quantity of each linked inventory item out through the stock ledger.
Every ingredient is handled in its own savepoint: a shortfall on one is
reported in the outcome list and does not stop the others.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from rest_framework.exceptions import ValidationError

from . import ledger
from .exceptions import InsufficientStock
from .models import InventoryItem, StockMovement, ZERO

logger = logging.getLogger(__name__)

SALE_REASON = 'sale'


@dataclass
class DeductionOutcome:
    inventory_item: InventoryItem
    required: Decimal
    deducted: Decimal = ZERO
    remaining: Optional[Decimal] = None
    available: Optional[Decimal] = None
    error: Optional[str] = None
    movement: Optional[StockMovement] = field(default=None, repr=False)

    @property
    def ok(self):
        return self.error is None

    def as_dict(self):
        data = {
            'inventory_item_id': self.inventory_item.pk,
            'inventory_item': self.inventory_item.name,
            'unit': self.inventory_item.unit_of_measure,
            'required': self.required,
        }
        if self.ok:
            data.update(deducted=self.deducted, remaining=self.remaining)
        else:
            data.update(deducted=ZERO, error=self.error, available=self.available)
        return data


def _validate_units(units):
    try:
        units = int(units)
    except (TypeError, ValueError):
        raise ValidationError({'units': ['Units sold must be a whole number.']})
    if units < 1:
        raise ValidationError({'units': ['Units sold must be at least 1.']})
    return units


def deduct(menu_item, units_sold, *, actor, at, reference_type='', reference_id=''):
    """
    Consume the ingredients of ``units_sold`` portions of ``menu_item``.

    Returns one DeductionOutcome per active mapping. Whether a sale with
    shortfalls goes ahead is up to the caller.
    """
    units_sold = _validate_units(units_sold)
    outcomes = []

    mappings = menu_item.ingredients.filter(is_active=True).select_related('inventory_item')
    for mapping in mappings:
        item = mapping.inventory_item
        required = mapping.required_for(units_sold)
        if required <= 0:
            continue
        try:
            movement = ledger.record_out(
                item, required, SALE_REASON, actor=actor, at=at,
                notes=f"Auto-deducted for {units_sold} x {menu_item.name}",
                reference_type=reference_type, reference_id=reference_id,
            )
        except InsufficientStock as exc:
            logger.warning(
                f"Insufficient {item.name} for {units_sold} x {menu_item.name}: "
                f"required {exc.required}, available {exc.available}"
            )
            outcomes.append(DeductionOutcome(
                inventory_item=item,
                required=required,
                available=exc.available,
                error=InsufficientStock.default_code,
            ))
            continue

        outcomes.append(DeductionOutcome(
            inventory_item=item,
            required=required,
            deducted=movement.quantity,
            remaining=movement.new_stock,
            movement=movement,
        ))

    logger.info(
        f"Deducted ingredients for {units_sold} x {menu_item.name}: "
        f"{sum(1 for o in outcomes if o.ok)}/{len(outcomes)} succeeded"
    )
    return outcomes


def can_make(mapping, portions=1):
    return mapping.can_make(portions)


def max_portions(mapping):
    return mapping.max_portions()


def menu_item_capacity(menu_item):
    """Portions of ``menu_item`` the current stock supports, None without mappings"""
    portions = [m.max_portions() for m in menu_item.ingredients.filter(is_active=True).select_related('inventory_item')]
    return min(portions) if portions else None
