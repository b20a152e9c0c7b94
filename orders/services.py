"""
POS order placement and order updates.
"""
import logging

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import NotFound, ValidationError

from inventory import deduction
from inventory.models import MenuItem
from .models import Order, OrderItem, OrderStatusHistory
from .serializers import OrderCreateSerializer, OrderUpdateSerializer

logger = logging.getLogger(__name__)

ORDER_REFERENCE_TYPE = 'order'


def get_order(order_id, queryset=None):
    queryset = queryset if queryset is not None else Order.objects.all()
    try:
        return queryset.get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Order {order_id} not found.")


def place_order(fields, *, actor, at):
    """
    Create a paid, confirmed POS order and take its ingredients out of stock.

    Returns ``(order, deductions)`` where ``deductions`` maps each order item
    id to its list of DeductionOutcome. Stock shortfalls never block the sale.
    """
    serializer = OrderCreateSerializer(data=fields)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment_method = data['payment_method']
    payment_reference = data.get('mpesa_reference') or Order.generate_payment_reference(payment_method, at)

    with transaction.atomic():
        order = Order.objects.create(
            order_type=data['order_type'],
            customer_name=data.get('customer_name', ''),
            customer_phone=data.get('customer_phone', ''),
            table_number=data.get('table_number', ''),
            delivery_address=data.get('delivery_address', ''),
            discount_amount=data.get('discount_amount') or 0,
            payment_method=payment_method,
            payment_status=Order.PAYMENT_PAID,
            payment_reference=payment_reference,
            order_status=Order.CONFIRMED,
            confirmed_at=at,
            customer_notes=data.get('customer_notes', ''),
            kitchen_notes=data.get('kitchen_notes', ''),
            created_by=actor,
            updated_by=actor,
        )

        menu_items = MenuItem.objects.in_bulk([line['menu_item_id'] for line in data['items']])
        order_items = []
        for line in data['items']:
            menu_item = menu_items[line['menu_item_id']]
            order_items.append(OrderItem.objects.create(
                order=order,
                menu_item=menu_item,
                quantity=line['quantity'],
                unit_price=menu_item.price,
                special_instructions=line.get('special_instructions', ''),
            ))

        order.refresh_from_db()
        if order.total_amount < 0:
            raise ValidationError({'discount_amount': ["Discount cannot exceed the order total."]})

        OrderStatusHistory.objects.create(
            order=order,
            old_status='',
            new_status=Order.CONFIRMED,
            notes='Order placed',
            user=actor,
            changed_at=at,
        )

        deductions = {}
        if settings.AUTO_DEDUCT_STOCK_ON_SALE:
            for order_item in order_items:
                deductions[order_item.pk] = deduction.deduct(
                    order_item.menu_item, order_item.quantity, actor=actor, at=at,
                    reference_type=ORDER_REFERENCE_TYPE, reference_id=str(order.pk),
                )

    shortfalls = sum(1 for outcomes in deductions.values() for outcome in outcomes if not outcome.ok)
    logger.info(
        f"Order {order.order_number} placed by {actor}: total {order.total_amount} "
        f"via {payment_method}, {shortfalls} stock shortfall(s)"
    )
    return order, deductions


def update_order(order, fields, *, actor, at):
    serializer = OrderUpdateSerializer(order, data=fields, partial=True)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    mpesa_reference = data.pop('mpesa_reference', '')

    if mpesa_reference:
        data['payment_reference'] = mpesa_reference
    elif data.get('payment_status') == Order.PAYMENT_PAID and not order.payment_reference:
        data['payment_reference'] = Order.generate_payment_reference(order.payment_method, at)

    for name, value in data.items():
        setattr(order, name, value)
    order.updated_by = actor
    order.save()
    logger.info(f"Order {order.order_number} updated by {actor}: {sorted(data)}")
    return order


def change_status(order, new_status, *, actor, at, notes='', cancellation_reason=''):
    old_status = order.order_status
    history = order.update_status(
        new_status, actor=actor, at=at, notes=notes, cancellation_reason=cancellation_reason,
    )
    logger.info(f"Order {order.order_number} moved from {old_status} to {new_status} by {actor}")
    return history


def serialize_deductions(deductions):
    return {
        str(order_item_id): [outcome.as_dict() for outcome in outcomes]
        for order_item_id, outcomes in deductions.items()
    }
