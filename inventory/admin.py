from django.contrib import admin
from .models import (
    FoodCategory, InventoryCategory, InventoryItem, MenuItem, MenuItemIngredient,
    StockMovement, Supplier,
)


@admin.register(InventoryCategory)
class InventoryCategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'slug', 'sort_order', 'is_active']
    search_fields = ['name']
    list_filter = ['is_active']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'supplier_code', 'phone', 'supplier_type', 'reliability_rating', 'is_active']
    search_fields = ['name', 'supplier_code', 'contact_person']
    list_filter = ['supplier_type', 'reliability_rating', 'is_active']


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'sku', 'category', 'current_stock', 'minimum_stock', 'unit_of_measure', 'is_active']
    search_fields = ['name', 'sku']
    list_filter = ['category', 'is_active', 'track_stock']
    readonly_fields = ['current_stock', 'last_restocked']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['inventory_item', 'movement_type', 'quantity', 'previous_stock', 'new_stock', 'reason', 'movement_date']
    list_filter = ['movement_type', 'movement_date']
    search_fields = ['inventory_item__name', 'reason', 'batch_number']

    def has_change_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False


@admin.register(FoodCategory)
class FoodCategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'slug', 'sort_order', 'is_active', 'requires_kitchen']
    search_fields = ['name']


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category', 'price', 'cost_price', 'is_available', 'is_combo']
    search_fields = ['name', 'sku']
    list_filter = ['category', 'is_available', 'is_combo']


@admin.register(MenuItemIngredient)
class MenuItemIngredientAdmin(admin.ModelAdmin):
    list_display = ['menu_item', 'inventory_item', 'quantity_used', 'unit', 'is_active']
    list_filter = ['is_active']
    search_fields = ['menu_item__name', 'inventory_item__name']
