import secrets
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import Max

from inventory.models import MenuItem


class OrderQuerySet(models.QuerySet):
    def active(self):
        return self.filter(order_status__in=Order.ACTIVE_STATUSES)

    def paid(self):
        return self.filter(payment_status=Order.PAYMENT_PAID)

    def created_between(self, start, end):
        return self.filter(created_at__gte=start, created_at__lt=end)


class Order(models.Model):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PREPARING = 'preparing'
    READY = 'ready'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (PREPARING, 'Preparing'),
        (READY, 'Ready'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    )

    # Timestamp stamped when an order enters each status
    STATUS_TIMESTAMP_FIELDS = {
        PENDING: None,
        CONFIRMED: 'confirmed_at',
        PREPARING: None,
        READY: 'ready_at',
        COMPLETED: 'completed_at',
        CANCELLED: None,
    }

    # Forward moves along the kitchen flow, cancel from any open status
    ALLOWED_TRANSITIONS = {
        PENDING: (CONFIRMED, PREPARING, READY, COMPLETED, CANCELLED),
        CONFIRMED: (PREPARING, READY, COMPLETED, CANCELLED),
        PREPARING: (READY, COMPLETED, CANCELLED),
        READY: (COMPLETED, CANCELLED),
        COMPLETED: (),
        CANCELLED: (),
    }

    ACTIVE_STATUSES = (PENDING, CONFIRMED, PREPARING, READY)
    KITCHEN_STATUSES = (CONFIRMED, PREPARING)

    ORDER_TYPE_CHOICES = (
        ('dine_in', 'Dine In'),
        ('takeaway', 'Takeaway'),
        ('delivery', 'Delivery'),
    )

    PAYMENT_CASH = 'cash'
    PAYMENT_MPESA = 'mpesa'
    PAYMENT_METHOD_CHOICES = (
        (PAYMENT_CASH, 'Cash'),
        (PAYMENT_MPESA, 'M-Pesa'),
    )

    PAYMENT_PENDING = 'pending'
    PAYMENT_PAID = 'paid'
    PAYMENT_STATUS_CHOICES = (
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_PAID, 'Paid'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    )

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    order_type = models.CharField(max_length=20, choices=ORDER_TYPE_CHOICES)
    customer_name = models.CharField(max_length=255, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    table_number = models.CharField(max_length=10, blank=True)
    delivery_address = models.TextField(blank=True)

    # Pricing fields
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)
    payment_reference = models.CharField(max_length=50, blank=True)

    order_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    estimated_minutes = models.PositiveIntegerField(null=True, blank=True)

    kitchen_notes = models.TextField(blank=True)
    customer_notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_orders')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['order_status', 'created_at'], name='order_status_created_idx'),
            models.Index(fields=['payment_status', 'created_at'], name='order_payment_created_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            last_id = Order.objects.aggregate(max_id=Max('id'))['max_id'] or 0
            self.order_number = f"K{last_id + 1:04d}"
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_number} - {self.get_order_type_display()} - {self.get_order_status_display()}"

    @property
    def is_active(self):
        return self.order_status in self.ACTIVE_STATUSES

    def calculate_totals(self):
        """Recalculate order totals based on items"""
        subtotal = sum((item.item_total for item in self.items.all()), Decimal('0.00'))
        self.subtotal = subtotal
        self.tax_amount = (subtotal * settings.ORDER_TAX_RATE).quantize(Decimal('0.01'))
        self.total_amount = self.subtotal + self.tax_amount - self.discount_amount

    def can_transition_to(self, new_status):
        return new_status in self.ALLOWED_TRANSITIONS.get(self.order_status, ())

    def update_status(self, new_status, *, actor, at, notes='', cancellation_reason=''):
        """
        Move the order to ``new_status``, stamp the matching timestamp field
        and append a status history row.
        """
        if new_status not in self.STATUS_TIMESTAMP_FIELDS:
            raise ValidationError(f"Unknown order status '{new_status}'.")
        if not self.can_transition_to(new_status):
            raise ValidationError(
                f"Order {self.order_number} cannot move from {self.order_status} to {new_status}."
            )
        if new_status == self.CANCELLED and not cancellation_reason:
            raise ValidationError("A cancellation reason is required.")

        old_status = self.order_status
        self.order_status = new_status
        self.updated_by = actor
        update_fields = ['order_status', 'updated_by', 'updated_at']

        timestamp_field = self.STATUS_TIMESTAMP_FIELDS[new_status]
        if timestamp_field is not None:
            setattr(self, timestamp_field, at)
            update_fields.append(timestamp_field)
        if new_status == self.CANCELLED:
            self.cancellation_reason = cancellation_reason
            update_fields.append('cancellation_reason')

        with transaction.atomic():
            self.save(update_fields=update_fields)
            history = OrderStatusHistory.objects.create(
                order=self,
                old_status=old_status,
                new_status=new_status,
                notes=notes or '',
                user=actor,
                changed_at=at,
            )
        return history

    @staticmethod
    def generate_payment_reference(payment_method, at):
        prefix = 'MPESA' if payment_method == Order.PAYMENT_MPESA else 'CASH'
        return f"{prefix}-{int(at.timestamp())}-{secrets.token_hex(4).upper()}"


class OrderItem(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
    )

    order = models.ForeignKey(Order, related_name='items', on_delete=models.CASCADE)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    item_total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    special_instructions = models.CharField(max_length=500, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    started_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']

    def save(self, *args, **kwargs):
        self.item_total = Decimal(self.unit_price) * self.quantity
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'item_total' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['item_total']
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.quantity} x {self.menu_item.name} ({self.order.order_number})"


class OrderStatusHistory(models.Model):
    order = models.ForeignKey(Order, related_name='status_history', on_delete=models.CASCADE)
    old_status = models.CharField(max_length=20, blank=True)
    new_status = models.CharField(max_length=20, choices=Order.STATUS_CHOICES)
    notes = models.TextField(blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_status_changes')
    changed_at = models.DateTimeField()

    class Meta:
        db_table = 'order_status_history'
        ordering = ['-changed_at', '-id']
        verbose_name_plural = 'Order status history'

    def __str__(self):
        return f"{self.order.order_number}: {self.old_status or '-'} -> {self.new_status}"
