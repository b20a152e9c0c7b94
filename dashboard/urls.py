from django.urls import path
from . import views

urlpatterns = [
    path('', views.dashboard, name='dashboard'),
    path('sales-analytics/', views.sales_analytics, name='sales-analytics'),
    path('inventory/', views.inventory_overview, name='dashboard-inventory'),
    path('inventory/report/', views.inventory_report, name='inventory-report'),
]
