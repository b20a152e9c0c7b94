from datetime import timedelta

from django.db.models import Count, Sum
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import filters, generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from authentication.permissions import (
    CanCancelOrders, IsKitchenStaff, IsOrderStaff, IsPOSStaff, Roles,
)
from . import services
from .models import Order, OrderItem
from .serializers import (
    OrderCreateSerializer, OrderItemReadSerializer, OrderItemStatusSerializer, OrderReadSerializer,
    OrderStatusHistorySerializer, OrderStatusUpdateSerializer, OrderUpdateSerializer,
)

LONG_WAIT_MINUTES = 30


def order_queryset(user):
    """Orders visible to ``user``; cashiers only see the orders they took"""
    queryset = Order.objects.select_related('created_by').prefetch_related('items__menu_item')
    if not user.is_superuser and user.has_role(Roles.CASHIER) and not user.has_any_role([Roles.ADMIN, Roles.MANAGER]):
        queryset = queryset.filter(created_by=user)
    return queryset


class OrderListCreateView(generics.ListCreateAPIView):
    """
    get: List orders, filterable by status, type, payment method and date
    post: Place a POS order; it is created paid and confirmed and its ingredients are deducted
    """
    serializer_class = OrderReadSerializer
    permission_classes = [IsAuthenticated, IsPOSStaff]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['order_status', 'order_type', 'payment_method', 'payment_status']
    search_fields = ['order_number', 'customer_name', 'customer_phone']
    ordering_fields = ['created_at', 'total_amount']

    def get_queryset(self):
        queryset = order_queryset(self.request.user)
        date_filter = self.request.query_params.get('date')
        if date_filter:
            queryset = queryset.filter(created_at__date=date_filter)
        return queryset

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter('order_status', openapi.IN_QUERY, description="Filter by order status", type=openapi.TYPE_STRING),
            openapi.Parameter('order_type', openapi.IN_QUERY, description="Filter by order type", type=openapi.TYPE_STRING),
            openapi.Parameter('payment_method', openapi.IN_QUERY, description="Filter by payment method", type=openapi.TYPE_STRING),
            openapi.Parameter('date', openapi.IN_QUERY, description="Filter by date (YYYY-MM-DD)", type=openapi.TYPE_STRING),
        ]
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_description="Place a new order with items",
        request_body=OrderCreateSerializer,
        responses={201: OrderReadSerializer, 400: 'Bad Request'}
    )
    def post(self, request, *args, **kwargs):
        order, deductions = services.place_order(request.data, actor=request.user, at=timezone.now())
        data = OrderReadSerializer(order).data
        data['stock_deductions'] = services.serialize_deductions(deductions)
        return Response(data, status=status.HTTP_201_CREATED)


class OrderDetailView(generics.RetrieveUpdateAPIView):
    """
    get: Order details with items
    patch: Update customer details, payment state and notes
    """
    serializer_class = OrderReadSerializer
    permission_classes = [IsAuthenticated, IsOrderStaff]
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_queryset(self):
        return order_queryset(self.request.user)

    @swagger_auto_schema(request_body=OrderUpdateSerializer, responses={200: OrderReadSerializer})
    def patch(self, request, *args, **kwargs):
        order = services.update_order(self.get_object(), request.data, actor=request.user, at=timezone.now())
        return Response(OrderReadSerializer(order).data)


@swagger_auto_schema(
    method='post',
    operation_description="Move an order to a new status",
    request_body=OrderStatusUpdateSerializer,
    responses={200: OrderReadSerializer, 400: 'Transition not allowed'}
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOrderStaff])
def update_order_status(request, pk):
    order = services.get_order(pk, order_queryset(request.user))
    serializer = OrderStatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if data['order_status'] == Order.CANCELLED and not CanCancelOrders().has_permission(request, None):
        raise PermissionDenied(CanCancelOrders.message)

    services.change_status(
        order, data['order_status'], actor=request.user, at=timezone.now(),
        notes=data.get('notes', ''), cancellation_reason=data.get('cancellation_reason', ''),
    )
    return Response(OrderReadSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrderStaff])
def order_history(request, pk):
    """Status changes of an order, newest first"""
    order = services.get_order(pk, order_queryset(request.user))
    history = order.status_history.select_related('user')
    return Response(OrderStatusHistorySerializer(history, many=True).data)


@swagger_auto_schema(
    method='post',
    operation_description="Update the preparation status of one order item",
    request_body=OrderItemStatusSerializer,
    responses={200: OrderItemReadSerializer}
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsKitchenStaff])
def update_order_item_status(request, pk):
    try:
        order_item = OrderItem.objects.select_related('order', 'menu_item').get(pk=pk)
    except OrderItem.DoesNotExist:
        return Response({'error': 'Order item not found'}, status=status.HTTP_404_NOT_FOUND)

    serializer = OrderItemStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    new_status = serializer.validated_data['status']
    now = timezone.now()

    order_item.status = new_status
    update_fields = ['status']
    if new_status == 'preparing' and order_item.started_at is None:
        order_item.started_at = now
        update_fields.append('started_at')
    elif new_status == 'ready':
        order_item.ready_at = now
        update_fields.append('ready_at')
    order_item.save(update_fields=update_fields)
    return Response(OrderItemReadSerializer(order_item).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrderStaff])
def active_orders(request):
    """Orders that are neither completed nor cancelled, oldest first"""
    orders = order_queryset(request.user).active().order_by('created_at')
    return Response(OrderReadSerializer(orders, many=True).data)


@swagger_auto_schema(
    method='get',
    operation_description="Get kitchen display orders (confirmed and preparing)",
    responses={200: OrderReadSerializer(many=True)}
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsKitchenStaff])
def kitchen_queue(request):
    orders = (
        Order.objects.filter(order_status__in=Order.KITCHEN_STATUSES)
        .prefetch_related('items__menu_item')
        .order_by('created_at')
    )
    return Response(OrderReadSerializer(orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrderStaff])
def long_waiting_orders(request):
    """Active orders placed more than thirty minutes ago"""
    cutoff = timezone.now() - timedelta(minutes=LONG_WAIT_MINUTES)
    orders = order_queryset(request.user).active().filter(created_at__lt=cutoff).order_by('created_at')
    return Response(OrderReadSerializer(orders, many=True).data)


@swagger_auto_schema(
    method='get',
    operation_description="Get order statistics for today",
    responses={
        200: openapi.Response(
            description="Order statistics",
            schema=openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    'today_orders': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'active_orders': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'completed_orders': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'cancelled_orders': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'today_revenue': openapi.Schema(type=openapi.TYPE_STRING),
                    'by_status': openapi.Schema(type=openapi.TYPE_OBJECT),
                }
            )
        )
    }
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPOSStaff])
def order_statistics(request):
    today = timezone.localdate()
    orders = order_queryset(request.user)
    today_orders = orders.filter(created_at__date=today)

    by_status = {
        row['order_status']: row['count']
        for row in today_orders.order_by().values('order_status').annotate(count=Count('id'))
    }
    stats = {
        'today_orders': today_orders.count(),
        'active_orders': orders.active().count(),
        'completed_orders': by_status.get(Order.COMPLETED, 0),
        'cancelled_orders': by_status.get(Order.CANCELLED, 0),
        'today_revenue': str(today_orders.paid().aggregate(total=Sum('total_amount'))['total'] or 0),
        'by_status': by_status,
    }
    return Response(stats)
