from decimal import Decimal

from rest_framework import serializers

from .models import (
    FoodCategory, InventoryCategory, InventoryItem, MenuItem, MenuItemIngredient,
    StockMovement, Supplier,
)
from . import ledger


# =============== CATALOGUE ===============

class InventoryCategorySerializer(serializers.ModelSerializer):
    total_items = serializers.SerializerMethodField()
    low_stock_items = serializers.SerializerMethodField()
    total_value = serializers.SerializerMethodField()

    class Meta:
        model = InventoryCategory
        fields = [
            'id', 'name', 'slug', 'description', 'color', 'sort_order', 'is_active',
            'total_items', 'low_stock_items', 'total_value', 'created_at', 'updated_at',
        ]
        read_only_fields = ['slug', 'created_at', 'updated_at']

    def get_total_items(self, obj):
        return obj.total_items()

    def get_low_stock_items(self, obj):
        return obj.low_stock_items_count()

    def get_total_value(self, obj):
        return str(obj.total_value())


class SupplierSerializer(serializers.ModelSerializer):
    total_orders = serializers.SerializerMethodField()
    total_value = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'supplier_code', 'contact_person', 'phone', 'email', 'address',
            'city', 'country', 'tax_number', 'payment_terms', 'credit_limit', 'supplier_type',
            'average_delivery_days', 'reliability_rating', 'notes', 'is_active',
            'last_order_date', 'total_orders', 'total_value', 'created_at', 'updated_at',
        ]
        read_only_fields = ['last_order_date', 'created_at', 'updated_at']
        extra_kwargs = {'credit_limit': {'min_value': Decimal('0')}}

    def get_total_orders(self, obj):
        return obj.total_orders()

    def get_total_value(self, obj):
        return str(obj.total_value())


# =============== INVENTORY ITEMS ===============

class InventoryItemSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    stock_status = serializers.CharField(read_only=True)
    stock_status_display = serializers.CharField(source='get_stock_status_display', read_only=True)
    stock_percentage = serializers.DecimalField(max_digits=8, decimal_places=2, read_only=True)
    stock_value = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    needs_restock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'name', 'sku', 'description', 'category', 'category_name', 'supplier',
            'supplier_name', 'current_stock', 'minimum_stock', 'maximum_stock',
            'unit_of_measure', 'unit_cost', 'selling_price', 'is_active', 'track_stock',
            'last_restocked', 'storage_requirements', 'stock_status', 'stock_status_display',
            'stock_percentage', 'stock_value', 'needs_restock', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InventoryItemWriteSerializer(serializers.ModelSerializer):
    """Validates new items; opening stock is booked through the ledger."""

    class Meta:
        model = InventoryItem
        fields = [
            'name', 'sku', 'description', 'category', 'supplier', 'current_stock',
            'minimum_stock', 'maximum_stock', 'unit_of_measure', 'unit_cost',
            'selling_price', 'is_active', 'track_stock', 'storage_requirements',
        ]
        extra_kwargs = {
            'current_stock': {'min_value': Decimal('0'), 'required': False},
            'minimum_stock': {'min_value': Decimal('0')},
            'maximum_stock': {'min_value': Decimal('0')},
            'unit_cost': {'min_value': Decimal('0')},
            'selling_price': {'min_value': Decimal('0')},
        }

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name is required.")
        return value.strip()

    def validate(self, attrs):
        minimum = attrs.get('minimum_stock', getattr(self.instance, 'minimum_stock', None))
        maximum = attrs.get('maximum_stock', getattr(self.instance, 'maximum_stock', None))
        if maximum is not None and minimum is not None and maximum < minimum:
            raise serializers.ValidationError({'maximum_stock': "Maximum stock cannot be below minimum stock."})
        return attrs


class InventoryItemUpdateSerializer(InventoryItemWriteSerializer):
    """Stock levels are read-only here; use the stock endpoints to change them."""

    class Meta(InventoryItemWriteSerializer.Meta):
        read_only_fields = ['current_stock']

    def update(self, instance, validated_data):
        request = self.context.get('request')
        if request is not None and request.user.is_authenticated:
            validated_data['updated_by'] = request.user
        return super().update(instance, validated_data)


# =============== STOCK MOVEMENTS ===============

class StockMovementSerializer(serializers.ModelSerializer):
    inventory_item_name = serializers.CharField(source='inventory_item.name', read_only=True)
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)
    color = serializers.CharField(read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = StockMovement
        fields = [
            'id', 'inventory_item', 'inventory_item_name', 'movement_type', 'movement_type_display',
            'color', 'quantity', 'unit_cost', 'total_cost', 'previous_stock', 'new_stock',
            'reference_type', 'reference_id', 'batch_number', 'expiry_date', 'reason', 'notes',
            'supplier', 'supplier_name', 'created_by', 'created_by_name', 'movement_date', 'created_at',
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj):
        return obj.created_by.full_name if obj.created_by else None


class AddStockSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0.01'))
    unit_cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True)
    supplier = serializers.PrimaryKeyRelatedField(queryset=Supplier.objects.all(), required=False, allow_null=True)
    batch_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    reason = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_expiry_date(self, value):
        at = self.context.get('at')
        if value is not None and at is not None and value <= ledger.as_local_date(at):
            raise serializers.ValidationError("Expiry date must be after today.")
        return value


class UseStockSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0.01'))
    reason = serializers.CharField(max_length=100)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


class AdjustStockSerializer(serializers.Serializer):
    new_quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0'))
    reason = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


# =============== MENU ===============

class FoodCategorySerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = FoodCategory
        fields = [
            'id', 'name', 'slug', 'description', 'color', 'icon', 'sort_order',
            'is_active', 'requires_kitchen', 'item_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['slug', 'created_at', 'updated_at']


class MenuItemIngredientSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)
    inventory_item_name = serializers.CharField(source='inventory_item.name', read_only=True)
    current_stock = serializers.DecimalField(source='inventory_item.current_stock', max_digits=12, decimal_places=3, read_only=True)
    can_make = serializers.SerializerMethodField()
    max_portions = serializers.SerializerMethodField()

    class Meta:
        model = MenuItemIngredient
        fields = [
            'id', 'menu_item', 'menu_item_name', 'inventory_item', 'inventory_item_name',
            'quantity_used', 'unit', 'is_active', 'current_stock', 'can_make', 'max_portions',
        ]
        read_only_fields = fields

    def get_can_make(self, obj):
        return obj.can_make(1)

    def get_max_portions(self, obj):
        return obj.max_portions()


class IngredientMappingInputSerializer(serializers.Serializer):
    menu_item = serializers.PrimaryKeyRelatedField(queryset=MenuItem.objects.all())
    quantity_used = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0.001'))
    unit = serializers.CharField(max_length=20, required=False, allow_blank=True)


class MenuItemSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    profit = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    profit_margin = serializers.DecimalField(max_digits=8, decimal_places=2, read_only=True)
    is_low_profit = serializers.SerializerMethodField()
    ingredients = serializers.SerializerMethodField()

    class Meta:
        model = MenuItem
        fields = [
            'id', 'category', 'category_name', 'name', 'slug', 'description', 'price',
            'cost_price', 'sku', 'is_available', 'is_combo', 'combo_items', 'requires_kitchen',
            'preparation_time_minutes', 'image_url', 'sort_order', 'allergens',
            'special_instructions', 'profit', 'profit_margin', 'is_low_profit', 'ingredients',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['slug', 'created_at', 'updated_at']
        extra_kwargs = {
            'price': {'min_value': Decimal('0')},
            'cost_price': {'min_value': Decimal('0')},
        }

    def get_is_low_profit(self, obj):
        return obj.is_low_profit()

    def get_ingredients(self, obj):
        mappings = obj.ingredients.filter(is_active=True).select_related('inventory_item', 'menu_item')
        return MenuItemIngredientSerializer(mappings, many=True).data

    def validate_allergens(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Allergens must be a list.")
        return value


class DeductForSaleSerializer(serializers.Serializer):
    units = serializers.IntegerField(min_value=1)
