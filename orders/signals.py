# Keep order totals in step with its line items
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import Order, OrderItem


@receiver([post_save, post_delete], sender=OrderItem)
def update_order_totals_on_item_change(sender, instance, **kwargs):
    """Update order totals when items are added/removed/modified"""
    try:
        order = Order.objects.get(pk=instance.order_id)
    except Order.DoesNotExist:
        # Order is being deleted along with its items
        return
    order.calculate_totals()
    order.save(update_fields=['subtotal', 'tax_amount', 'total_amount', 'updated_at'])
