from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from authentication.models import CustomUser
from authentication.permissions import Roles
from inventory import ledger
from inventory.models import FoodCategory, InventoryCategory, InventoryItem, MenuItem, MenuItemIngredient
from . import services
from .models import Order, OrderItem, OrderStatusHistory


class KitchenFixtureMixin:
    """Roles, staff and a quarter chicken that uses one piece of chicken"""

    @classmethod
    def setUpTestData(cls):
        call_command('seed_roles', stdout=StringIO())
        cls.cashier = cls.make_user('cashier@kash.test', Roles.CASHIER)
        cls.manager = cls.make_user('manager@kash.test', Roles.MANAGER)
        cls.kitchen = cls.make_user('kitchen@kash.test', Roles.KITCHEN_STAFF)

        menu_category = FoodCategory.objects.create(name='Fried Chicken')
        cls.quarter = MenuItem.objects.create(name='1/4 Chicken', category=menu_category, price=Decimal('100.00'))
        cls.chips = MenuItem.objects.create(name='Chips Plain', category=menu_category, price=Decimal('150.00'))

        stock_category = InventoryCategory.objects.create(name='Proteins & Meat')
        cls.chicken = InventoryItem.objects.create(
            name='Chicken', category=stock_category, unit_of_measure='pcs', minimum_stock=Decimal('2'),
        )
        MenuItemIngredient.objects.create(
            menu_item=cls.quarter, inventory_item=cls.chicken, quantity_used=Decimal('1'), unit='pcs',
        )

    @staticmethod
    def make_user(email, role):
        user = CustomUser.objects.create_user(email=email, password='x', first_name='Staff', last_name=role)
        user.assign_role(role)
        return user

    def stock_chicken(self, quantity):
        ledger.record_in(self.chicken, quantity, '250.00', 'purchase', actor=None, at=timezone.now())

    def order_payload(self, **overrides):
        payload = {
            'order_type': 'takeaway',
            'payment_method': 'cash',
            'items': [{'menu_item_id': self.quarter.pk, 'quantity': 2}],
        }
        payload.update(overrides)
        return payload


class OrderModelTests(KitchenFixtureMixin, TestCase):

    def place(self, **overrides):
        order, _deductions = services.place_order(self.order_payload(**overrides), actor=self.cashier, at=timezone.now())
        return order

    def test_order_numbers_are_sequential(self):
        first = self.place()
        second = self.place()
        self.assertEqual(first.order_number, 'K0001')
        self.assertEqual(second.order_number, f"K{first.pk + 1:04d}")

    def test_totals_include_tax_and_discount(self):
        order = self.place(
            items=[
                {'menu_item_id': self.quarter.pk, 'quantity': 2},
                {'menu_item_id': self.chips.pk, 'quantity': 1},
            ],
            discount_amount='20.00',
        )
        self.assertEqual(order.subtotal, Decimal('350.00'))
        self.assertEqual(order.tax_amount, Decimal('56.00'))
        self.assertEqual(order.total_amount, Decimal('386.00'))

    @override_settings(ORDER_TAX_RATE=Decimal('0'))
    def test_tax_rate_is_configurable(self):
        order = self.place()
        self.assertEqual(order.tax_amount, Decimal('0.00'))
        self.assertEqual(order.total_amount, Decimal('200.00'))

    def test_placed_order_is_paid_and_confirmed(self):
        order = self.place(payment_method='mpesa', mpesa_reference='QKX12345')
        self.assertEqual(order.order_status, Order.CONFIRMED)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(order.payment_reference, 'QKX12345')
        self.assertIsNotNone(order.confirmed_at)

        history = order.status_history.get()
        self.assertEqual((history.old_status, history.new_status), ('', Order.CONFIRMED))
        self.assertEqual(history.user, self.cashier)

    def test_generated_payment_reference(self):
        order = self.place()
        self.assertTrue(order.payment_reference.startswith('CASH-'))

    def test_placing_an_order_deducts_ingredients(self):
        self.stock_chicken('10')
        order, deductions = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())

        self.chicken.refresh_from_db()
        self.assertEqual(self.chicken.current_stock, Decimal('8'))
        movement = self.chicken.stock_movements.get(reason='sale')
        self.assertEqual((movement.reference_type, movement.reference_id), ('order', str(order.pk)))

        outcomes = deductions[order.items.get().pk]
        self.assertTrue(all(outcome.ok for outcome in outcomes))

    def test_stock_shortfall_does_not_block_the_sale(self):
        self.stock_chicken('1')
        order, deductions = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.chicken.refresh_from_db()
        self.assertEqual(self.chicken.current_stock, Decimal('1'))

        serialized = services.serialize_deductions(deductions)
        outcome = serialized[str(order.items.get().pk)][0]
        self.assertEqual(outcome['error'], 'insufficient_stock')
        self.assertEqual(outcome['required'], Decimal('2'))
        self.assertEqual(outcome['available'], Decimal('1'))

    @override_settings(AUTO_DEDUCT_STOCK_ON_SALE=False)
    def test_deduction_can_be_switched_off(self):
        self.stock_chicken('10')
        _order, deductions = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())
        self.assertEqual(deductions, {})
        self.chicken.refresh_from_db()
        self.assertEqual(self.chicken.current_stock, Decimal('10'))

    def test_discount_above_total_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.place(discount_amount='1000.00')
        self.assertFalse(Order.objects.exists())

    def test_delivery_needs_address(self):
        with self.assertRaises(ValidationError):
            self.place(order_type='delivery')
        order = self.place(order_type='delivery', delivery_address='Moi Avenue, Nairobi')
        self.assertEqual(order.order_type, 'delivery')

    def test_unavailable_menu_item_is_rejected(self):
        MenuItem.objects.filter(pk=self.chips.pk).update(is_available=False)
        with self.assertRaises(ValidationError):
            self.place(items=[{'menu_item_id': self.chips.pk, 'quantity': 1}])

    def test_status_flow_stamps_timestamps(self):
        order = self.place()
        ready_at = timezone.now() + timedelta(minutes=12)
        order.update_status(Order.READY, actor=self.kitchen, at=ready_at)
        self.assertEqual(order.ready_at, ready_at)

        completed_at = ready_at + timedelta(minutes=3)
        order.update_status(Order.COMPLETED, actor=self.cashier, at=completed_at, notes='Collected')

        order.refresh_from_db()
        self.assertEqual(order.order_status, Order.COMPLETED)
        self.assertEqual(order.completed_at, completed_at)
        self.assertEqual(
            list(order.status_history.values_list('new_status', flat=True)),
            [Order.COMPLETED, Order.READY, Order.CONFIRMED],
        )

    def test_terminal_status_cannot_move(self):
        order = self.place()
        order.update_status(Order.COMPLETED, actor=self.cashier, at=timezone.now())
        with self.assertRaises(DjangoValidationError):
            order.update_status(Order.PREPARING, actor=self.cashier, at=timezone.now())

    def test_cancel_requires_reason(self):
        order = self.place()
        with self.assertRaises(DjangoValidationError):
            order.update_status(Order.CANCELLED, actor=self.manager, at=timezone.now())

        order.update_status(Order.CANCELLED, actor=self.manager, at=timezone.now(), cancellation_reason='Customer left')
        order.refresh_from_db()
        self.assertEqual(order.cancellation_reason, 'Customer left')
        self.assertEqual(OrderStatusHistory.objects.filter(order=order).count(), 2)

    def test_item_changes_recalculate_totals(self):
        order = self.place()
        OrderItem.objects.create(order=order, menu_item=self.chips, quantity=1, unit_price=self.chips.price)
        order.refresh_from_db()
        self.assertEqual(order.subtotal, Decimal('350.00'))
        self.assertEqual(order.total_amount, Decimal('406.00'))


class OrderAPITests(KitchenFixtureMixin, APITestCase):

    def test_cashier_places_order(self):
        self.stock_chicken('5')
        self.client.force_authenticate(self.cashier)
        response = self.client.post(reverse('order-list-create'), self.order_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order_status'], Order.CONFIRMED)
        self.assertEqual(response.data['items_count'], 2)
        self.assertIn('stock_deductions', response.data)
        self.chicken.refresh_from_db()
        self.assertEqual(self.chicken.current_stock, Decimal('3'))

    def test_empty_order_is_rejected(self):
        self.client.force_authenticate(self.cashier)
        response = self.client.post(reverse('order-list-create'), self.order_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data['details'])

    def test_kitchen_staff_cannot_place_orders(self):
        self.client.force_authenticate(self.kitchen)
        response = self.client.post(reverse('order-list-create'), self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cashier_only_sees_own_orders(self):
        services.place_order(self.order_payload(), actor=self.manager, at=timezone.now())
        own, _ = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())

        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('order-list-create'))
        self.assertEqual([row['id'] for row in response.data['results']], [own.pk])

        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('order-list-create'))
        self.assertEqual(response.data['count'], 2)

    def test_cashier_cannot_cancel(self):
        order, _ = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())
        self.client.force_authenticate(self.cashier)
        response = self.client.post(reverse('order-update-status', args=[order.pk]), {
            'order_status': Order.CANCELLED,
            'cancellation_reason': 'Changed mind',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        order.refresh_from_db()
        self.assertNotEqual(order.order_status, Order.CANCELLED)

    def test_manager_cancels_with_reason(self):
        order, _ = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())
        self.client.force_authenticate(self.manager)

        response = self.client.post(reverse('order-update-status', args=[order.pk]), {
            'order_status': Order.CANCELLED,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(reverse('order-update-status', args=[order.pk]), {
            'order_status': Order.CANCELLED,
            'cancellation_reason': 'Changed mind',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_status'], Order.CANCELLED)

    def test_kitchen_moves_order_along(self):
        order, _ = services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())
        self.client.force_authenticate(self.kitchen)

        response = self.client.get(reverse('order-kitchen-queue'))
        self.assertEqual([row['id'] for row in response.data], [order.pk])

        response = self.client.post(reverse('order-update-status', args=[order.pk]), {
            'order_status': Order.PREPARING,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        item = order.items.get()
        response = self.client.post(reverse('order-item-status', args=[item.pk]), {'status': 'ready'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['ready_at'])

        response = self.client.get(reverse('order-history', args=[order.pk]))
        self.assertEqual([row['new_status'] for row in response.data], [Order.PREPARING, Order.CONFIRMED])

    def test_mark_paid_generates_reference(self):
        order = Order.objects.create(order_type='dine_in', payment_method='mpesa', table_number='4')
        self.client.force_authenticate(self.manager)
        response = self.client.patch(reverse('order-detail', args=[order.pk]), {'payment_status': 'paid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['payment_reference'].startswith('MPESA-'))

    def test_long_waiting_orders(self):
        stale, _ = services.place_order(self.order_payload(), actor=self.manager, at=timezone.now())
        services.place_order(self.order_payload(), actor=self.manager, at=timezone.now())
        Order.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(minutes=45))

        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('order-long-waiting'))
        self.assertEqual([row['id'] for row in response.data], [stale.pk])

    def test_statistics(self):
        services.place_order(self.order_payload(), actor=self.cashier, at=timezone.now())
        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('order-statistics'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['today_orders'], 1)
        self.assertEqual(response.data['today_revenue'], '232.00')
        self.assertEqual(response.data['by_status'], {Order.CONFIRMED: 1})
