from django.urls import path
from . import views


urlpatterns = [
    path('', views.OrderListCreateView.as_view(), name='order-list-create'),
    path('active/', views.active_orders, name='order-active'),
    path('kitchen/', views.kitchen_queue, name='order-kitchen-queue'),
    path('long-waiting/', views.long_waiting_orders, name='order-long-waiting'),
    path('statistics/', views.order_statistics, name='order-statistics'),
    path('<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('<int:pk>/status/', views.update_order_status, name='order-update-status'),
    path('<int:pk>/history/', views.order_history, name='order-history'),
    path('items/<int:pk>/status/', views.update_order_item_status, name='order-item-status'),
]
