from django.urls import path
from . import views


urlpatterns = [
    # Inventory Category URLs
    path('categories/', views.InventoryCategoryListCreateView.as_view(), name='inventory-category-list-create'),
    path('categories/<int:pk>/', views.InventoryCategoryDetailView.as_view(), name='inventory-category-detail'),

    # Supplier URLs
    path('suppliers/', views.SupplierListCreateView.as_view(), name='supplier-list-create'),
    path('suppliers/<int:pk>/', views.SupplierDetailView.as_view(), name='supplier-detail'),

    # Inventory Item URLs
    path('items/', views.InventoryItemListCreateView.as_view(), name='inventory-item-list-create'),
    path('items/low-stock/', views.low_stock_report, name='inventory-low-stock'),
    path('items/suggested-mappings/', views.suggested_mappings, name='inventory-suggested-mappings'),
    path('items/<int:pk>/', views.InventoryItemDetailView.as_view(), name='inventory-item-detail'),
    path('items/<int:pk>/movements/', views.StockMovementListView.as_view(), name='inventory-item-movements'),
    path('items/<int:pk>/add-stock/', views.add_stock, name='inventory-add-stock'),
    path('items/<int:pk>/use-stock/', views.use_stock, name='inventory-use-stock'),
    path('items/<int:pk>/adjust-stock/', views.adjust_stock, name='inventory-adjust-stock'),
    path('items/<int:pk>/ingredient-mappings/', views.ingredient_mappings, name='inventory-ingredient-mappings'),
    path('stats/', views.inventory_stats, name='inventory-stats'),

    # Menu Category URLs
    path('menu/categories/', views.FoodCategoryListCreateView.as_view(), name='category-list-create'),
    path('menu/categories/<int:pk>/', views.FoodCategoryDetailView.as_view(), name='category-detail'),

    # Menu URLs
    path('menu/', views.MenuItemListCreateView.as_view(), name='menu-list-create'),
    path('menu/<int:pk>/', views.MenuItemDetailView.as_view(), name='menu-detail'),
    path('menu/<int:pk>/toggle-availability/', views.toggle_menu_item_availability, name='menu-toggle-availability'),
    path('menu/<int:pk>/ingredients/', views.menu_item_ingredients, name='menu-ingredients'),
    path('menu/<int:pk>/deduct/', views.deduct_for_sale, name='menu-deduct'),
]
