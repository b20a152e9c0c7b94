"""
Automatic ingredient mapping for newly created inventory items.

A matcher proposes ``(menu item name, quantity, unit)`` candidates from the
inventory item's name. The matcher class is configurable through
``settings.INGREDIENT_MATCHER`` and linking as a whole through
``settings.INGREDIENT_AUTO_LINKING_ENABLED``.
"""
import logging
from collections import namedtuple
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string
from rest_framework.exceptions import ValidationError

from .models import MenuItem, MenuItemIngredient

logger = logging.getLogger(__name__)

IngredientSuggestion = namedtuple('IngredientSuggestion', ['menu_item_name', 'quantity', 'unit'])


class IngredientMatcher:
    """Base strategy: propose ingredient mappings for an inventory item name."""

    def suggest(self, item_name):
        raise NotImplementedError


class KeywordIngredientMatcher(IngredientMatcher):
    """
    Substring match of the lower-cased item name against a keyword table.

    Any name containing a keyword matches, so "Chicken Stock Cubes" links to
    the chicken dishes as well. Review the created mappings.
    """
    KEYWORD_TABLE = {
        'chicken': [
            ('1/4 Chicken', '1.0', 'pcs'),
            ('1/2 Chicken', '2.0', 'pcs'),
            ('Full Chicken', '4.0', 'pcs'),
            ('1/4 Chicken + Chips Plain', '1.0', 'pcs'),
            ('1/4 Chicken + Garlic Chips', '1.0', 'pcs'),
            ('1/4 Chicken + Sauteed Chips', '1.0', 'pcs'),
            ('1/4 Chicken + Chips Masala', '1.0', 'pcs'),
            ('1/4 Chicken + Bhajia', '1.0', 'pcs'),
        ],
        'potato': [
            ('Chips Plain', '0.5', 'kg'),
            ('Garlic Chips', '0.5', 'kg'),
            ('Chips Masala', '0.5', 'kg'),
            ('Sauteed Chips', '0.5', 'kg'),
            ('Bhajia', '0.4', 'kg'),
            ('1/4 Chicken + Chips Plain', '0.4', 'kg'),
            ('1/4 Chicken + Garlic Chips', '0.4', 'kg'),
            ('1/4 Chicken + Sauteed Chips', '0.4', 'kg'),
            ('1/4 Chicken + Chips Masala', '0.4', 'kg'),
            ('1/4 Chicken + Bhajia', '0.3', 'kg'),
            ('2pcs Wings + Chips Plain', '0.35', 'kg'),
        ],
        'wing': [
            ('2pcs Wings', '2.0', 'pcs'),
            ('4pcs Wings', '4.0', 'pcs'),
            ('1pc Lollipop', '1.0', 'pcs'),
            ('2pcs Lollipops', '2.0', 'pcs'),
            ('2pcs Wings + Chips Plain', '2.0', 'pcs'),
        ],
    }

    def suggest(self, item_name):
        name = (item_name or '').lower()
        suggestions = []
        seen = set()
        for keyword, candidates in self.KEYWORD_TABLE.items():
            if keyword not in name:
                continue
            for menu_item_name, quantity, unit in candidates:
                if menu_item_name in seen:
                    continue
                seen.add(menu_item_name)
                suggestions.append(IngredientSuggestion(menu_item_name, Decimal(quantity), unit))
        return suggestions


def get_matcher():
    return import_string(settings.INGREDIENT_MATCHER)()


def suggest_mappings(item_name, matcher=None):
    """Suggestions paired with the menu item they resolve to, or None"""
    matcher = matcher or get_matcher()
    suggestions = matcher.suggest(item_name)
    menu_items = {m.name: m for m in MenuItem.objects.filter(name__in=[s.menu_item_name for s in suggestions])}
    return [(suggestion, menu_items.get(suggestion.menu_item_name)) for suggestion in suggestions]


def auto_link_ingredients(inventory_item, matcher=None):
    """
    Create the mappings the matcher proposes for ``inventory_item``.

    Candidates whose menu item does not exist, or that are already mapped,
    are skipped. Returns the mappings created.
    """
    if not settings.INGREDIENT_AUTO_LINKING_ENABLED:
        return []

    created = []
    for suggestion, menu_item in suggest_mappings(inventory_item.name, matcher):
        if menu_item is None:
            continue
        already_mapped = MenuItemIngredient.objects.filter(
            menu_item=menu_item, inventory_item=inventory_item, is_active=True,
        ).exists()
        if already_mapped:
            continue
        created.append(MenuItemIngredient.objects.create(
            menu_item=menu_item,
            inventory_item=inventory_item,
            quantity_used=suggestion.quantity,
            unit=suggestion.unit,
        ))

    if created:
        logger.info(f"Auto-linked {inventory_item.name} to {len(created)} menu items")
    return created


@transaction.atomic
def replace_mappings(inventory_item, mappings):
    """
    Make ``mappings`` (dicts of menu_item, quantity_used, unit) the active
    ingredient mappings of ``inventory_item``. Earlier mappings are
    deactivated, not deleted.
    """
    menu_item_ids = [m['menu_item'].pk for m in mappings]
    if len(menu_item_ids) != len(set(menu_item_ids)):
        raise ValidationError({'mappings': ['Each menu item can only be mapped once.']})

    inventory_item.menu_item_ingredients.filter(is_active=True).update(is_active=False)
    created = [
        MenuItemIngredient.objects.create(
            menu_item=m['menu_item'],
            inventory_item=inventory_item,
            quantity_used=m['quantity_used'],
            unit=m.get('unit') or inventory_item.unit_of_measure,
        )
        for m in mappings
    ]
    logger.info(f"Ingredient mappings for {inventory_item.name} replaced: {len(created)} active")
    return created
