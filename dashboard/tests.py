from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from authentication.models import CustomUser
from authentication.permissions import Roles
from inventory import ledger
from inventory.models import FoodCategory, InventoryCategory, InventoryItem, MenuItem
from orders.models import Order, OrderItem
from . import analytics


def make_order(menu_item, quantity=1, payment_method='cash', paid=True, created_at=None):
    order = Order.objects.create(
        order_type='takeaway',
        payment_method=payment_method,
        payment_status=Order.PAYMENT_PAID if paid else Order.PAYMENT_PENDING,
        order_status=Order.CONFIRMED,
    )
    OrderItem.objects.create(order=order, menu_item=menu_item, quantity=quantity, unit_price=menu_item.price)
    if created_at is not None:
        Order.objects.filter(pk=order.pk).update(created_at=created_at)
    order.refresh_from_db()
    return order


def local_moment(day, hour, minute=0):
    return timezone.make_aware(datetime(day.year, day.month, day.day, hour, minute))


class AnalyticsHelperTests(TestCase):

    def test_format_time_elapsed(self):
        self.assertEqual(analytics.format_time_elapsed(0), 'Just now')
        self.assertEqual(analytics.format_time_elapsed(45), '45m ago')
        self.assertEqual(analytics.format_time_elapsed(150), '2h ago')
        self.assertEqual(analytics.format_time_elapsed(3000), '2d ago')

    def test_growth_percentage(self):
        self.assertEqual(analytics.growth_percentage(Decimal('150'), Decimal('100')), Decimal('50.00'))
        self.assertEqual(analytics.growth_percentage(Decimal('50'), Decimal('200')), Decimal('-75.00'))
        self.assertEqual(analytics.growth_percentage(Decimal('80'), Decimal('0')), Decimal('0.00'))

    def test_week_and_month_starts(self):
        # 2026-03-05 is a Thursday
        self.assertEqual(analytics.week_start(date(2026, 3, 5)), date(2026, 3, 2))
        self.assertEqual(analytics.month_start(date(2026, 3, 5)), date(2026, 3, 1))
        self.assertEqual(analytics.previous_month_start(date(2026, 1, 15)), date(2025, 12, 1))


class SalesAnalyticsTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        category = FoodCategory.objects.create(name='Fried Chicken')
        cls.quarter = MenuItem.objects.create(name='1/4 Chicken', category=category, price=Decimal('100.00'))
        cls.half = MenuItem.objects.create(name='1/2 Chicken', category=category, price=Decimal('500.00'))
        cls.day = date(2026, 3, 4)

    def test_peak_hour(self):
        for hour in (13, 13, 19):
            make_order(self.quarter, created_at=local_moment(self.day, hour, 10))
        start, end = analytics.day_range(self.day)
        self.assertEqual(analytics.peak_hour(start, end), '13:00')
        self.assertEqual(analytics.peak_hour(*analytics.day_range(date(2026, 3, 5))), 'N/A')

    def test_period_stats_count_paid_orders_only(self):
        make_order(self.quarter, quantity=2, created_at=local_moment(self.day, 9))
        make_order(self.half, paid=False, created_at=local_moment(self.day, 10))
        stats = analytics.period_stats(*analytics.day_range(self.day))
        self.assertEqual(stats['orders'], 1)
        self.assertEqual(stats['revenue'], Decimal('232.00'))
        self.assertEqual(stats['average_order'], Decimal('232.00'))

    def test_payment_breakdown(self):
        make_order(self.quarter, created_at=local_moment(self.day, 9))
        make_order(self.quarter, payment_method='mpesa', quantity=3, created_at=local_moment(self.day, 11))
        breakdown = analytics.payment_breakdown(*analytics.day_range(self.day))
        self.assertEqual(breakdown['cash']['amount'], Decimal('116.00'))
        self.assertEqual(breakdown['mpesa']['count'], 1)
        self.assertEqual(breakdown['mpesa']['percentage'], Decimal('75.00'))

    def test_top_items(self):
        make_order(self.quarter, quantity=4, created_at=local_moment(self.day, 9))
        make_order(self.half, quantity=1, created_at=local_moment(self.day, 10))
        start, end = analytics.day_range(self.day)

        by_quantity = analytics.top_items(start, end)
        self.assertEqual([row['name'] for row in by_quantity], ['1/4 Chicken', '1/2 Chicken'])

        by_revenue = analytics.top_items(start, end, order_by='-revenue')
        self.assertEqual(by_revenue[0]['name'], '1/2 Chicken')
        self.assertEqual(by_revenue[0]['revenue'], Decimal('500.00'))

    def test_sales_analytics_growth(self):
        now = local_moment(self.day, 20)
        make_order(self.half, created_at=local_moment(date(2026, 2, 10), 12))
        make_order(self.half, created_at=local_moment(self.day, 12))
        make_order(self.quarter, created_at=local_moment(self.day, 13))

        data = analytics.sales_analytics(now)
        self.assertEqual(data['today']['orders'], 2)
        self.assertEqual(data['month']['revenue'], Decimal('696.00'))
        self.assertEqual(data['month']['growth'], Decimal('20.00'))
        self.assertEqual(len(data['recent_orders']), 3)


class DashboardAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        call_command('seed_roles', stdout=StringIO())
        cls.cashier = CustomUser.objects.create_user(email='cashier@kash.test', password='x')
        cls.cashier.assign_role(Roles.CASHIER)
        cls.manager = CustomUser.objects.create_user(email='manager@kash.test', password='x')
        cls.manager.assign_role(Roles.MANAGER)

        category = FoodCategory.objects.create(name='Fried Chicken')
        cls.quarter = MenuItem.objects.create(name='1/4 Chicken', category=category, price=Decimal('100.00'))

        stock_category = InventoryCategory.objects.create(name='Cooking Essentials')
        cls.salt = InventoryItem.objects.create(
            name='Salt', category=stock_category, unit_of_measure='kg', minimum_stock=Decimal('2'),
        )
        cls.oil = InventoryItem.objects.create(
            name='Cooking Oil', category=stock_category, unit_of_measure='l',
            minimum_stock=Decimal('5'), unit_cost=Decimal('320.00'),
        )

    def setUp(self):
        ledger.record_in(self.oil, '20', '320.00', 'purchase', actor=None, at=timezone.now())
        make_order(self.quarter, quantity=2)

    def test_cashier_does_not_see_sales_figures(self):
        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('dashboard'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        stats = response.data['stats']
        self.assertFalse(stats['can_view_sales'])
        self.assertIsNone(stats['today_sales'])
        self.assertIsNone(stats['cash_in_drawer'])
        self.assertEqual(stats['orders_today'], 1)
        self.assertIsNone(response.data['top_selling_items'][0]['revenue'])

    def test_manager_sees_sales_figures(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('dashboard'))
        stats = response.data['stats']
        self.assertTrue(stats['can_view_sales'])
        self.assertEqual(stats['today_sales'], Decimal('232.00'))
        self.assertEqual(stats['cash_in_drawer'], Decimal('232.00'))
        self.assertEqual(stats['low_stock_count'], 1)
        self.assertEqual(response.data['top_selling_items'][0]['name'], '1/4 Chicken')

    def test_long_wait_alerts(self):
        waiting = make_order(self.quarter, created_at=timezone.now() - timedelta(minutes=40))
        self.client.force_authenticate(self.manager)
        alerts = self.client.get(reverse('dashboard')).data['critical_alerts']
        self.assertEqual(alerts['long_wait_orders'], 1)
        self.assertEqual(alerts['urgent_orders'], 1)
        self.assertEqual(alerts['first_long_wait_order_id'], waiting.pk)

    def test_sales_analytics_is_for_managers(self):
        self.client.force_authenticate(self.cashier)
        self.assertEqual(self.client.get(reverse('sales-analytics')).status_code, status.HTTP_403_FORBIDDEN)
        self.client.force_authenticate(self.manager)
        self.assertEqual(self.client.get(reverse('sales-analytics')).status_code, status.HTTP_200_OK)

    def test_inventory_overview(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('dashboard-inventory'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total_value'], Decimal('6400.00'))
        self.assertEqual([row['name'] for row in response.data['low_stock_items']], ['Salt'])

    def test_inventory_report_defaults_to_current_month(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('inventory-report'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        first, last = ledger.month_bounds(timezone.localdate())
        self.assertEqual((response.data['start'], response.data['end']), (first, last))
        oil = next(row for row in response.data['items'] if row['name'] == 'Cooking Oil')
        self.assertEqual(oil['stock_received'], Decimal('20'))

    def test_inventory_report_rejects_inverted_range(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('inventory-report'), {'start': '2026-03-31', 'end': '2026-03-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inventory_report_rejects_start_after_default_end(self):
        self.client.force_authenticate(self.manager)
        later = timezone.localdate() + timedelta(days=45)
        response = self.client.get(reverse('inventory-report'), {'start': later.isoformat()})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end', response.data['details'])

    def test_inventory_report_excel_export(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('inventory-report'), {
            'start': '2026-03-01', 'end': '2026-03-31', 'export': 'excel',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
        self.assertIn('inventory_report_2026-03-01_2026-03-31.xlsx', response['Content-Disposition'])

    def test_inventory_report_pdf_export(self):
        self.client.force_authenticate(self.manager)
        response = self.client.get(reverse('inventory-report'), {
            'start': '2026-03-01', 'end': '2026-03-31', 'export': 'pdf',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))
