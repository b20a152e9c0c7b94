from decimal import Decimal

from rest_framework import serializers

from inventory.models import MenuItem
from .models import Order, OrderItem, OrderStatusHistory


class OrderItemCreateSerializer(serializers.Serializer):
    menu_item_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    special_instructions = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_menu_item_id(self, value):
        try:
            menu_item = MenuItem.objects.get(pk=value)
        except MenuItem.DoesNotExist:
            raise serializers.ValidationError("Menu item not found.")
        if not menu_item.is_available:
            raise serializers.ValidationError(f"{menu_item.name} is not available.")
        return value


class OrderItemReadSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'menu_item', 'menu_item_name', 'quantity', 'unit_price', 'item_total',
            'special_instructions', 'status', 'status_display', 'started_at', 'ready_at',
        ]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'old_status', 'new_status', 'notes', 'user', 'user_name', 'changed_at']
        read_only_fields = fields

    def get_user_name(self, obj):
        return obj.user.full_name if obj.user else None


class OrderReadSerializer(serializers.ModelSerializer):
    items = OrderItemReadSerializer(many=True, read_only=True)
    order_type_display = serializers.CharField(source='get_order_type_display', read_only=True)
    order_status_display = serializers.CharField(source='get_order_status_display', read_only=True)
    payment_method_display = serializers.CharField(source='get_payment_method_display', read_only=True)
    created_by_name = serializers.SerializerMethodField()
    items_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'order_type', 'order_type_display', 'customer_name',
            'customer_phone', 'table_number', 'delivery_address', 'subtotal', 'tax_amount',
            'discount_amount', 'total_amount', 'payment_method', 'payment_method_display',
            'payment_status', 'payment_reference', 'order_status', 'order_status_display',
            'confirmed_at', 'ready_at', 'completed_at', 'estimated_minutes', 'kitchen_notes',
            'customer_notes', 'cancellation_reason', 'items', 'items_count', 'created_by',
            'created_by_name', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj):
        return obj.created_by.full_name if obj.created_by else None

    def get_items_count(self, obj):
        return sum(item.quantity for item in obj.items.all())


class OrderCreateSerializer(serializers.Serializer):
    order_type = serializers.ChoiceField(choices=Order.ORDER_TYPE_CHOICES)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    table_number = serializers.CharField(max_length=10, required=False, allow_blank=True)
    delivery_address = serializers.CharField(required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)
    mpesa_reference = serializers.CharField(max_length=50, required=False, allow_blank=True)
    discount_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False)
    customer_notes = serializers.CharField(required=False, allow_blank=True)
    kitchen_notes = serializers.CharField(required=False, allow_blank=True)
    items = OrderItemCreateSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        if attrs['order_type'] == 'delivery' and not attrs.get('delivery_address', '').strip():
            raise serializers.ValidationError({'delivery_address': "Delivery orders need an address."})
        return attrs


class OrderUpdateSerializer(serializers.ModelSerializer):
    """Customer details, payment state and notes; status goes through the status endpoint."""

    mpesa_reference = serializers.CharField(max_length=50, required=False, allow_blank=True, write_only=True)

    class Meta:
        model = Order
        fields = [
            'customer_name', 'customer_phone', 'table_number', 'delivery_address',
            'payment_status', 'mpesa_reference', 'estimated_minutes', 'kitchen_notes',
            'customer_notes',
        ]


class OrderStatusUpdateSerializer(serializers.Serializer):
    order_status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)


class OrderItemStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderItem.STATUS_CHOICES)
