from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from authentication.models import CustomUser
from authentication.permissions import Roles
from . import deduction, ledger, mapping, reports, services
from .exceptions import InsufficientStock, PersistenceFailure
from .models import (
    FoodCategory, InventoryCategory, InventoryItem, MenuItem, MenuItemIngredient, StockMovement, Supplier,
)


def moment(year, month, day, hour=12):
    return timezone.make_aware(datetime(year, month, day, hour))


def make_item(name, category, stock='0', minimum='0', unit='pcs', unit_cost='10.00', at=None, **extra):
    item = InventoryItem.objects.create(
        name=name, category=category, unit_of_measure=unit,
        minimum_stock=Decimal(minimum), unit_cost=Decimal(unit_cost), **extra,
    )
    if Decimal(stock) > 0:
        ledger.record_in(item, stock, item.unit_cost, 'initial_stock', actor=None, at=at or timezone.now())
    return item


def make_menu_item(name, price='100.00', category=None):
    category = category or FoodCategory.objects.get_or_create(name='Fried Chicken')[0]
    return MenuItem.objects.create(name=name, category=category, price=Decimal(price))


class StockLedgerTests(TestCase):

    def setUp(self):
        self.category = InventoryCategory.objects.create(name='Proteins & Meat')
        self.item = make_item('Chicken', self.category, minimum='5', unit_cost='250.00')

    def test_record_in_and_out_keep_stock_equal_to_ledger(self):
        at = timezone.now()
        receipt = ledger.record_in(self.item, '10', '250.00', 'purchase', actor=None, at=at)
        self.assertEqual(receipt.previous_stock, Decimal('0'))
        self.assertEqual(receipt.new_stock, Decimal('10'))
        self.assertEqual(receipt.total_cost, Decimal('2500.00'))

        usage = ledger.record_out(self.item, '3', 'kitchen_use', actor=None, at=at)
        self.assertEqual(usage.movement_type, StockMovement.OUT)
        self.assertEqual(usage.previous_stock, Decimal('10'))
        self.assertEqual(usage.new_stock, Decimal('7'))

        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('7'))
        self.assertEqual(ledger.ledger_balance(self.item), self.item.current_stock)
        self.assertEqual(self.item.last_restocked, at)

    def test_insufficient_stock_writes_nothing(self):
        ledger.record_in(self.item, '4', '250.00', 'purchase', actor=None, at=timezone.now())

        with self.assertRaises(InsufficientStock) as raised:
            ledger.record_out(self.item, '6', 'kitchen_use', actor=None, at=timezone.now())

        self.assertEqual(raised.exception.required, Decimal('6'))
        self.assertEqual(raised.exception.available, Decimal('4'))
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('4'))
        self.assertEqual(self.item.stock_movements.count(), 1)

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValidationError):
            ledger.record_in(self.item, '0', '250.00', 'purchase', actor=None, at=timezone.now())
        with self.assertRaises(ValidationError):
            ledger.record_out(self.item, '-1', 'kitchen_use', actor=None, at=timezone.now())
        self.assertFalse(self.item.stock_movements.exists())

    def test_adjustment_direction(self):
        ledger.record_in(self.item, '10', '250.00', 'purchase', actor=None, at=timezone.now())

        down = ledger.record_adjustment(self.item, '8', actor=None, at=timezone.now())
        self.assertEqual(down.movement_type, StockMovement.OUT)
        self.assertEqual(down.quantity, Decimal('2'))

        up = ledger.record_adjustment(self.item, '12.5', actor=None, at=timezone.now())
        self.assertEqual(up.movement_type, StockMovement.IN)
        self.assertEqual(up.quantity, Decimal('4.5'))

        same = ledger.record_adjustment(self.item, '12.5', actor=None, at=timezone.now())
        self.assertEqual(same.movement_type, StockMovement.ADJUSTMENT)
        self.assertEqual(same.quantity, Decimal('0'))

        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('12.5'))
        self.assertEqual(ledger.ledger_balance(self.item), Decimal('12.5'))

    def test_record_out_default_reason(self):
        ledger.record_in(self.item, '2', '250.00', 'purchase', actor=None, at=timezone.now())
        movement = ledger.record_out(self.item, '1', actor=None, at=timezone.now())
        self.assertEqual(movement.reason, ledger.USAGE_REASON)
        self.assertEqual(movement.unit_cost, Decimal('250.00'))

    def test_negative_adjustment_rejected(self):
        with self.assertRaises(ValidationError):
            ledger.record_adjustment(self.item, '-1', actor=None, at=timezone.now())

    def test_movements_are_immutable(self):
        movement = ledger.record_in(self.item, '1', '250.00', 'purchase', actor=None, at=timezone.now())
        movement.notes = 'edited'
        with self.assertRaises(ValueError):
            movement.save()

    def test_failed_movement_write_rolls_back(self):
        ledger.record_in(self.item, '5', '250.00', 'purchase', actor=None, at=timezone.now())

        with patch.object(StockMovement.objects, 'create', side_effect=DatabaseError('disk I/O error')):
            with self.assertRaises(PersistenceFailure):
                ledger.record_out(self.item, '2', 'kitchen_use', actor=None, at=timezone.now())

        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('5'))
        self.assertEqual(self.item.stock_movements.count(), 1)

    def test_failed_stock_update_discards_movement(self):
        with patch.object(InventoryItem, 'save', side_effect=DatabaseError('database is locked')):
            with self.assertRaises(PersistenceFailure):
                ledger.record_in(self.item, '5', '250.00', 'purchase', actor=None, at=timezone.now())

        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('0'))
        self.assertFalse(self.item.stock_movements.exists())

    def test_use_stock_classification_and_projection(self):
        ledger.record_in(self.item, '10', '250.00', 'purchase', actor=None, at=timezone.now())

        first = services.use_stock(self.item.pk, {'quantity': '3', 'reason': 'kitchen_use'}, actor=None, at=timezone.now())
        self.assertEqual((first.previous_stock, first.new_stock), (Decimal('10'), Decimal('7')))
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_status, InventoryItem.IN_STOCK)

        services.use_stock(self.item.pk, {'quantity': '5', 'reason': 'kitchen_use'}, actor=None, at=timezone.now())
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('2'))
        self.assertEqual(self.item.stock_status, InventoryItem.LOW_STOCK)
        self.assertEqual(reports.days_until_stockout(self.item.current_stock, self.item.minimum_stock), 6)


class StockClassificationTests(TestCase):

    def test_classify_stock(self):
        self.assertEqual(InventoryItem.classify_stock(Decimal('0'), Decimal('5')), InventoryItem.OUT_OF_STOCK)
        self.assertEqual(InventoryItem.classify_stock(Decimal('-1'), Decimal('0')), InventoryItem.OUT_OF_STOCK)
        self.assertEqual(InventoryItem.classify_stock(Decimal('5'), Decimal('5')), InventoryItem.LOW_STOCK)
        self.assertEqual(InventoryItem.classify_stock(Decimal('5.001'), Decimal('5')), InventoryItem.IN_STOCK)

    def test_days_until_stockout(self):
        self.assertEqual(reports.days_until_stockout(Decimal('10'), Decimal('5')), 28)
        self.assertEqual(reports.days_until_stockout(Decimal('0.01'), Decimal('5')), 1)
        self.assertEqual(reports.days_until_stockout(Decimal('3'), Decimal('0')), 0)

    def test_low_stock_report_includes_out_of_stock(self):
        category = InventoryCategory.objects.create(name='Cooking Essentials')
        make_item('Salt', category, stock='0', minimum='2', unit='kg')
        make_item('Cooking Oil', category, stock='3', minimum='10', unit='l')
        make_item('Sugar', category, stock='20', minimum='2', unit='kg')
        make_item('Napkins', category, stock='0', minimum='5', track_stock=False)

        rows = reports.get_low_stock_items()
        self.assertEqual([row['name'] for row in rows], ['Salt', 'Cooking Oil'])
        self.assertEqual(rows[0]['severity'], reports.SEVERITY_CRITICAL)
        self.assertEqual(rows[0]['status'], InventoryItem.OUT_OF_STOCK)
        self.assertEqual(rows[1]['severity'], reports.SEVERITY_HIGH)

        stats = reports.get_comprehensive_stats()
        self.assertEqual(stats['low_stock_count'], 1)
        self.assertEqual(stats['out_of_stock_count'], 1)
        self.assertEqual(stats['needs_restock_count'], 2)

    def test_average_stock_level_skips_items_without_maximum(self):
        category = InventoryCategory.objects.create(name='Proteins & Meat')
        make_item('Chicken', category, stock='3', maximum_stock=Decimal('40'))
        make_item('Beef', category, stock='7')

        stats = reports.get_comprehensive_stats()
        self.assertEqual(stats['avg_stock_level_pct'], Decimal('7.50'))

        make_item('Liver', category, stock='1', maximum_stock=Decimal('3'))
        # (7.5 + 33.333...) / 2
        self.assertEqual(reports.get_comprehensive_stats()['avg_stock_level_pct'], Decimal('20.42'))

    def test_auto_deduct_and_supplier_counts(self):
        category = InventoryCategory.objects.create(name='Proteins & Meat')
        chicken = make_item('Chicken', category, stock='10')
        sausage = make_item('Sausage', category, stock='10')
        make_item('Beef', category, stock='10')
        quarter = make_menu_item('1/4 Chicken')
        half = make_menu_item('1/2 Chicken')
        MenuItemIngredient.objects.create(menu_item=quarter, inventory_item=chicken, quantity_used=Decimal('1'), unit='pcs')
        MenuItemIngredient.objects.create(menu_item=half, inventory_item=chicken, quantity_used=Decimal('2'), unit='pcs')
        MenuItemIngredient.objects.create(
            menu_item=quarter, inventory_item=sausage, quantity_used=Decimal('1'), unit='pcs', is_active=False,
        )
        Supplier.objects.create(name='Kenchic')
        Supplier.objects.create(name='Farmers Choice', is_active=False)

        stats = reports.get_comprehensive_stats()
        self.assertEqual(stats['total_items'], 3)
        self.assertEqual(stats['auto_deduct_item_count'], 1)
        self.assertEqual(stats['supplier_count'], 1)
        self.assertEqual(stats['avg_stock_level_pct'], Decimal('0'))


class DeductionTests(TestCase):

    def setUp(self):
        category = InventoryCategory.objects.create(name='Proteins & Meat')
        self.chicken = make_item('Chicken', category, stock='5')
        self.wings = make_item('Wings', category, stock='4')
        self.combo = make_menu_item('Chicken and Wings Platter')
        MenuItemIngredient.objects.create(menu_item=self.combo, inventory_item=self.chicken, quantity_used=Decimal('1'), unit='pcs')
        MenuItemIngredient.objects.create(menu_item=self.combo, inventory_item=self.wings, quantity_used=Decimal('3'), unit='pcs')

    def test_shortfall_on_one_ingredient_does_not_stop_others(self):
        outcomes = deduction.deduct(self.combo, 2, actor=None, at=timezone.now(), reference_type='order', reference_id='7')
        by_item = {outcome.inventory_item.name: outcome for outcome in outcomes}

        self.assertTrue(by_item['Chicken'].ok)
        self.assertEqual(by_item['Chicken'].deducted, Decimal('2'))
        self.assertEqual(by_item['Chicken'].remaining, Decimal('3'))

        self.assertFalse(by_item['Wings'].ok)
        self.assertEqual(by_item['Wings'].required, Decimal('6'))
        self.assertEqual(by_item['Wings'].available, Decimal('4'))
        self.assertEqual(by_item['Wings'].error, 'insufficient_stock')

        self.chicken.refresh_from_db()
        self.wings.refresh_from_db()
        self.assertEqual(self.chicken.current_stock, Decimal('3'))
        self.assertEqual(self.wings.current_stock, Decimal('4'))

        sale = self.chicken.stock_movements.get(reason=deduction.SALE_REASON)
        self.assertEqual((sale.reference_type, sale.reference_id), ('order', '7'))

    def test_inactive_mappings_are_skipped(self):
        self.wings.menu_item_ingredients.update(is_active=False)
        outcomes = deduction.deduct(self.combo, 1, actor=None, at=timezone.now())
        self.assertEqual([o.inventory_item.name for o in outcomes], ['Chicken'])

    def test_units_must_be_positive(self):
        with self.assertRaises(ValidationError):
            deduction.deduct(self.combo, 0, actor=None, at=timezone.now())

    def test_menu_item_capacity(self):
        self.assertEqual(deduction.menu_item_capacity(self.combo), 1)
        self.assertIsNone(deduction.menu_item_capacity(make_menu_item('Bhajia')))

    def test_can_make(self):
        chicken_mapping = self.chicken.menu_item_ingredients.get()
        wings_mapping = self.wings.menu_item_ingredients.get()
        self.assertTrue(deduction.can_make(chicken_mapping, 5))
        self.assertFalse(deduction.can_make(chicken_mapping, 6))
        self.assertTrue(deduction.can_make(wings_mapping))
        self.assertFalse(deduction.can_make(wings_mapping, 2))

    def test_max_portions(self):
        self.assertEqual(deduction.max_portions(self.wings.menu_item_ingredients.get()), 1)

        free = MenuItemIngredient.objects.create(
            menu_item=make_menu_item('Chips Plain'), inventory_item=self.chicken,
            quantity_used=Decimal('0'), unit='pcs',
        )
        self.assertEqual(deduction.max_portions(free), 0)


class InventoryItemCreationTests(TestCase):

    def setUp(self):
        self.category = InventoryCategory.objects.create(name='Proteins & Meat')
        self.quarter = make_menu_item('1/4 Chicken', price='280.00')
        self.half = make_menu_item('1/2 Chicken', price='550.00')

    def create(self, name, stock='20'):
        return services.create_inventory_item({
            'name': name,
            'category': self.category.pk,
            'unit_of_measure': 'pcs',
            'current_stock': stock,
            'minimum_stock': '5',
            'unit_cost': '250.00',
        }, actor=None, at=moment(2026, 3, 1))

    def test_opening_stock_is_booked_as_initial_stock(self):
        item = self.create('Chicken')
        self.assertEqual(item.current_stock, Decimal('20'))
        movement = item.stock_movements.get()
        self.assertEqual(movement.reason, services.INITIAL_STOCK_REASON)
        self.assertEqual(movement.movement_type, StockMovement.IN)
        self.assertEqual(movement.movement_date, moment(2026, 3, 1))
        self.assertTrue(item.sku.startswith('PRO-CHI-'))

    def test_zero_opening_stock_writes_no_movement(self):
        item = self.create('Chicken Thighs', stock='0')
        self.assertFalse(item.stock_movements.exists())

    def test_new_item_is_auto_linked_to_matching_menu_items(self):
        item = self.create('Chicken')
        links = {m.menu_item.name: m.quantity_used for m in item.menu_item_ingredients.all()}
        self.assertEqual(links, {'1/4 Chicken': Decimal('1'), '1/2 Chicken': Decimal('2')})

    @override_settings(INGREDIENT_AUTO_LINKING_ENABLED=False)
    def test_auto_linking_can_be_disabled(self):
        item = self.create('Chicken')
        self.assertFalse(item.menu_item_ingredients.exists())

    def test_auto_link_skips_existing_mappings(self):
        item = self.create('Chicken')
        self.assertEqual(mapping.auto_link_ingredients(item), [])
        self.assertEqual(item.menu_item_ingredients.count(), 2)

    def test_replace_mappings_deactivates_previous(self):
        item = self.create('Chicken')
        mapping.replace_mappings(item, [{'menu_item': self.half, 'quantity_used': Decimal('2.5'), 'unit': 'pcs'}])
        active = item.menu_item_ingredients.filter(is_active=True)
        self.assertEqual([m.menu_item.name for m in active], ['1/2 Chicken'])
        self.assertEqual(item.menu_item_ingredients.filter(is_active=False).count(), 2)

    def test_replace_mappings_rejects_duplicates(self):
        item = self.create('Chicken')
        duplicate = {'menu_item': self.half, 'quantity_used': Decimal('1'), 'unit': 'pcs'}
        with self.assertRaises(ValidationError):
            mapping.replace_mappings(item, [duplicate, duplicate])

    def test_keyword_matcher_suggestions(self):
        suggestions = mapping.KeywordIngredientMatcher().suggest('Fresh Potatoes')
        self.assertIn(('Chips Plain', Decimal('0.5'), 'kg'), suggestions)
        self.assertEqual(mapping.KeywordIngredientMatcher().suggest('Salt'), [])


class PeriodReportTests(TestCase):

    def setUp(self):
        category = InventoryCategory.objects.create(name='Vegetables & Fresh Produce')
        self.item = make_item('Potatoes', category, stock='50', unit='kg', at=moment(2026, 2, 20))
        ledger.record_out(self.item, '5', 'kitchen_use', actor=None, at=moment(2026, 3, 2))
        ledger.record_in(self.item, '20', '80.00', 'purchase', actor=None, at=moment(2026, 3, 15))
        ledger.record_out(self.item, '12', 'kitchen_use', actor=None, at=moment(2026, 3, 31, 23))
        ledger.record_out(self.item, '3', 'kitchen_use', actor=None, at=moment(2026, 4, 1, 8))

    def test_opening_received_used_closing(self):
        row = reports.get_period_report(date(2026, 3, 1), date(2026, 3, 31))[0]
        self.assertEqual(row['opening_stock'], Decimal('50'))
        self.assertEqual(row['stock_received'], Decimal('20'))
        self.assertEqual(row['stock_used'], Decimal('17'))
        self.assertEqual(row['closing_stock'], Decimal('53'))
        self.assertEqual(row['current_stock'], Decimal('50'))

    def test_opening_stock_before_first_movement_is_zero(self):
        self.assertEqual(ledger.opening_stock(self.item, date(2026, 1, 1)), Decimal('0'))

    def test_month_bounds(self):
        self.assertEqual(ledger.month_bounds(date(2026, 2, 14)), (date(2026, 2, 1), date(2026, 2, 28)))
        self.assertEqual(ledger.month_bounds(date(2026, 12, 31)), (date(2026, 12, 1), date(2026, 12, 31)))


class InventoryAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        call_command('seed_roles', stdout=StringIO())
        cls.manager = CustomUser.objects.create_user(email='manager@kash.test', password='x')
        cls.manager.assign_role(Roles.MANAGER)
        cls.cashier = CustomUser.objects.create_user(email='cashier@kash.test', password='x')
        cls.cashier.assign_role(Roles.CASHIER)
        cls.category = InventoryCategory.objects.create(name='Cooking Essentials')

    def setUp(self):
        self.item = make_item('Cooking Oil', self.category, stock='10', minimum='4', unit='l', unit_cost='320.00')

    def test_cashier_cannot_manage_inventory(self):
        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('inventory-item-list-create'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cashier_can_read_menu(self):
        make_menu_item('Chips Plain', price='150.00')
        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('menu-list-create'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_create_item_books_opening_stock(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('inventory-item-list-create'), {
            'name': 'Salt',
            'category': self.category.pk,
            'unit_of_measure': 'kg',
            'current_stock': '6',
            'minimum_stock': '2',
            'unit_cost': '60.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item = InventoryItem.objects.get(name='Salt')
        self.assertEqual(item.current_stock, Decimal('6'))
        self.assertEqual(item.stock_movements.get().created_by, self.manager)

    def test_add_stock(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('inventory-add-stock', args=[self.item.pk]), {
            'quantity': '5',
            'unit_cost': '300.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['current_stock'], Decimal('15'))
        self.assertEqual(response.data['movement']['reason'], services.PURCHASE_REASON)

    def test_use_more_than_available(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('inventory-use-stock', args=[self.item.pk]), {
            'quantity': '11',
            'reason': 'spillage',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Insufficient stock')
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('10'))

    def test_adjust_stock(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('inventory-adjust-stock', args=[self.item.pk]), {
            'new_quantity': '7.5',
            'reason': 'stock_take',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['movement']['movement_type'], StockMovement.OUT)
        self.assertEqual(response.data['current_stock'], Decimal('7.5'))

    def test_update_cannot_change_stock(self):
        self.client.force_authenticate(self.manager)
        response = self.client.patch(reverse('inventory-item-detail', args=[self.item.pk]), {
            'current_stock': '999',
            'minimum_stock': '6',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_stock, Decimal('10'))
        self.assertEqual(self.item.minimum_stock, Decimal('6'))

    def test_stock_status_filter(self):
        make_item('Salt', self.category, stock='1', minimum='2', unit='kg')
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('inventory-item-list-create'), {'stock_status': 'low_stock'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data['results']], ['Salt'])

    def test_missing_item_is_404(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('inventory-use-stock', args=[9999]), {
            'quantity': '1', 'reason': 'spillage',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SeedKitchenCommandTests(TestCase):

    def test_seed_links_baseline_ingredients(self):
        call_command('seed_kitchen', stdout=StringIO())
        chicken = InventoryItem.objects.get(name='Chicken')
        self.assertEqual(chicken.current_stock, Decimal('100'))
        self.assertTrue(MenuItemIngredient.objects.filter(
            menu_item__name='1/4 Chicken + Chips Plain', inventory_item__name='Potatoes',
        ).exists())

        call_command('seed_kitchen', stdout=StringIO())
        self.assertEqual(InventoryItem.objects.filter(name='Chicken').count(), 1)
