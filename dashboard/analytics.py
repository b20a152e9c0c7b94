"""
Sales analytics and the dashboard overview.

Every function takes the reference time ``now`` explicitly. Revenue figures
only count paid orders.
"""
import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db.models import Avg, Count, Sum
from django.db.models.functions import ExtractHour
from django.utils import timezone

from authentication.permissions import can_view_sales
from inventory.models import InventoryItem
from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
LONG_WAIT_MINUTES = 30
URGENT_MINUTES = 20
PENDING_STATUSES = (Order.PENDING, Order.CONFIRMED, Order.PREPARING)


def start_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def day_range(day):
    """``[start, end)`` of a local calendar day"""
    return start_of_day(day), start_of_day(day + timedelta(days=1))


def week_start(day):
    return day - timedelta(days=day.weekday())


def month_start(day):
    return day.replace(day=1)


def previous_month_start(day):
    first = month_start(day)
    return month_start(first - timedelta(days=1))


def growth_percentage(current, previous):
    if not previous:
        return ZERO
    return ((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100).quantize(Decimal('0.01'))


def period_stats(start, end):
    """Revenue, order count and average order value of paid orders in ``[start, end)``"""
    stats = Order.objects.paid().created_between(start, end).aggregate(
        revenue=Sum('total_amount'),
        orders=Count('id'),
        average_order=Avg('total_amount'),
    )
    return {
        'revenue': stats['revenue'] or ZERO,
        'orders': stats['orders'],
        'average_order': Decimal(stats['average_order'] or 0).quantize(Decimal('0.01')),
    }


def top_items(start, end=None, limit=10, order_by='-quantity_sold'):
    items = OrderItem.objects.filter(
        order__payment_status=Order.PAYMENT_PAID,
        order__created_at__gte=start,
    )
    if end is not None:
        items = items.filter(order__created_at__lt=end)
    rows = (
        items.values('menu_item_id', 'menu_item__name', 'menu_item__price')
        .annotate(
            quantity_sold=Sum('quantity'),
            orders_count=Count('order', distinct=True),
            revenue=Sum('item_total'),
        )
        .order_by(order_by, 'menu_item__name')[:limit]
    )
    return [
        {
            'menu_item_id': row['menu_item_id'],
            'name': row['menu_item__name'],
            'price': row['menu_item__price'],
            'quantity_sold': row['quantity_sold'],
            'orders_count': row['orders_count'],
            'revenue': row['revenue'],
        }
        for row in rows
    ]


def payment_breakdown(start, end):
    rows = (
        Order.objects.paid().created_between(start, end)
        .order_by()
        .values('payment_method')
        .annotate(amount=Sum('total_amount'), count=Count('id'))
    )
    by_method = {row['payment_method']: row for row in rows}
    total = sum((row['amount'] for row in rows), ZERO)

    breakdown = {}
    for method, _label in Order.PAYMENT_METHOD_CHOICES:
        row = by_method.get(method, {'amount': ZERO, 'count': 0})
        breakdown[method] = {
            'amount': row['amount'],
            'count': row['count'],
            'percentage': (row['amount'] / total * 100).quantize(Decimal('0.01')) if total else ZERO,
        }
    return breakdown


def order_summary(order, now):
    names = [item.menu_item.name for item in order.items.all()]
    summary = ', '.join(names[:2])
    if len(names) > 2:
        summary += f" +{len(names) - 2} more"
    elapsed = minutes_since(order.created_at, now)
    return {
        'id': order.pk,
        'order_number': order.order_number,
        'customer_name': order.customer_name or 'Walk-in Customer',
        'total_amount': order.total_amount,
        'payment_method': order.payment_method,
        'order_status': order.order_status,
        'created_at': order.created_at,
        'items_summary': summary or 'No items',
        'time_elapsed': elapsed,
        'time_elapsed_display': format_time_elapsed(elapsed),
    }


def minutes_since(moment, now):
    return max(0, int((now - moment).total_seconds() // 60))


def format_time_elapsed(minutes):
    if minutes < 1:
        return 'Just now'
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return f"{minutes // 1440}d ago"


def peak_hour(start, end):
    row = (
        Order.objects.created_between(start, end)
        .annotate(hour=ExtractHour('created_at'))
        .order_by()
        .values('hour')
        .annotate(orders_count=Count('id'))
        .order_by('-orders_count', 'hour')
        .first()
    )
    if row is None:
        return 'N/A'
    return f"{row['hour']:02d}:00"


def sales_analytics(now):
    today = timezone.localdate(now)
    today_start, tomorrow_start = day_range(today)

    this_week = start_of_day(week_start(today))
    last_week = this_week - timedelta(days=7)
    this_month = start_of_day(month_start(today))
    last_month = start_of_day(previous_month_start(today))

    week = period_stats(this_week, tomorrow_start)
    previous_week = period_stats(last_week, this_week)
    month = period_stats(this_month, tomorrow_start)
    previous_month = period_stats(last_month, this_month)

    recent = Order.objects.order_by('-created_at', '-id')[:20]

    return {
        'today': period_stats(today_start, tomorrow_start),
        'week': {
            'revenue': week['revenue'],
            'orders': week['orders'],
            'growth': growth_percentage(week['revenue'], previous_week['revenue']),
        },
        'month': {
            'revenue': month['revenue'],
            'orders': month['orders'],
            'growth': growth_percentage(month['revenue'], previous_month['revenue']),
        },
        'top_items': top_items(this_month, tomorrow_start, limit=10),
        'payment_breakdown': payment_breakdown(this_month, tomorrow_start),
        'recent_orders': [
            {
                'id': order.pk,
                'order_number': order.order_number,
                'customer_name': order.customer_name,
                'total_amount': order.total_amount,
                'payment_method': order.payment_method,
                'order_status': order.order_status,
                'created_at': order.created_at,
            }
            for order in recent
        ],
    }


def dashboard_overview(user, now):
    """
    Today's figures for the dashboard. Sales amounts are None for users who
    may not see them.
    """
    show_sales = can_view_sales(user)
    today = timezone.localdate(now)
    start, end = day_range(today)

    today_orders = Order.objects.created_between(start, end)
    payments = payment_breakdown(start, end)
    low_stock_count = InventoryItem.objects.needs_restock().count()

    stats = {
        'today_sales': period_stats(start, end)['revenue'] if show_sales else None,
        'orders_today': today_orders.count(),
        'pending_orders': Order.objects.filter(order_status__in=PENDING_STATUSES).count(),
        'cash_in_drawer': payments[Order.PAYMENT_CASH]['amount'] if show_sales else None,
        'mpesa_sales': payments[Order.PAYMENT_MPESA]['amount'] if show_sales else None,
        'low_stock_count': low_stock_count,
        'peak_hour': peak_hour(start, end),
        'can_view_sales': show_sales,
    }

    active = Order.objects.active().prefetch_related('items__menu_item').order_by('created_at', 'id')
    long_wait = active.filter(created_at__lt=now - timedelta(minutes=LONG_WAIT_MINUTES))
    first_long_wait = long_wait.first()
    alerts = {
        'long_wait_orders': long_wait.count(),
        'urgent_orders': active.filter(created_at__lt=now - timedelta(minutes=URGENT_MINUTES)).count(),
        'first_long_wait_order_id': first_long_wait.pk if first_long_wait else None,
        'low_stock_items': low_stock_count,
    }

    top_selling = top_items(start, end, limit=5, order_by='-revenue')
    if not top_selling:
        top_selling = top_items(now - timedelta(days=7), limit=5, order_by='-revenue')

    recent = Order.objects.prefetch_related('items__menu_item').order_by('-created_at', '-id')[:10]

    logger.debug(f"Dashboard overview for {user}: {stats['orders_today']} orders today")
    return {
        'stats': stats,
        'active_orders': [order_summary(order, now) for order in active[:5]],
        'recent_orders': [order_summary(order, now) for order in recent],
        'critical_alerts': alerts,
        'top_selling_items': [
            {
                'rank': index,
                'name': row['name'],
                'orders_count': row['orders_count'],
                'quantity_sold': row['quantity_sold'],
                'revenue': row['revenue'] if show_sales else None,
            }
            for index, row in enumerate(top_selling, start=1)
        ],
    }
