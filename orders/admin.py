from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['item_total']


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ['old_status', 'new_status', 'notes', 'user', 'changed_at']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'order_type', 'order_status', 'payment_method', 'payment_status', 'total_amount', 'created_at']
    list_filter = ['order_status', 'order_type', 'payment_method', 'payment_status']
    search_fields = ['order_number', 'customer_name', 'customer_phone', 'payment_reference']
    readonly_fields = ['order_number', 'subtotal', 'tax_amount', 'total_amount']
    inlines = [OrderItemInline, OrderStatusHistoryInline]


@admin.register(OrderStatusHistory)
class OrderStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ['order', 'old_status', 'new_status', 'user', 'changed_at']
    list_filter = ['new_status']
