from rest_framework import generics, status, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from authentication.permissions import IsAdminOrManager
from . import mapping, reports, services
from .deduction import menu_item_capacity
from .ledger import movement_summary
from .models import (
    FoodCategory, InventoryCategory, InventoryItem, MenuItem, StockMovement, Supplier,
)
from .serializers import (
    AddStockSerializer, AdjustStockSerializer, DeductForSaleSerializer, FoodCategorySerializer,
    IngredientMappingInputSerializer, InventoryCategorySerializer, InventoryItemSerializer,
    InventoryItemUpdateSerializer, InventoryItemWriteSerializer, MenuItemIngredientSerializer,
    MenuItemSerializer, StockMovementSerializer, SupplierSerializer, UseStockSerializer,
)


class ManagementAccessMixin:
    """Reads for any signed-in user, writes for admins and managers"""

    def get_permissions(self):
        if self.request.method in ['POST', 'PUT', 'PATCH', 'DELETE']:
            return [IsAuthenticated(), IsAdminOrManager()]
        return [IsAuthenticated()]


# =============== INVENTORY CATEGORIES ===============

class InventoryCategoryListCreateView(generics.ListCreateAPIView):
    """
    get: List inventory categories
    post: Create an inventory category
    """
    queryset = InventoryCategory.objects.all()
    serializer_class = InventoryCategorySerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active']
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'sort_order', 'created_at']


class InventoryCategoryDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = InventoryCategory.objects.all()
    serializer_class = InventoryCategorySerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]


# =============== SUPPLIERS ===============

class SupplierListCreateView(generics.ListCreateAPIView):
    """
    get: List suppliers
    post: Register a supplier
    """
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active', 'supplier_type', 'reliability_rating']
    search_fields = ['name', 'supplier_code', 'contact_person', 'phone', 'email']
    ordering_fields = ['name', 'created_at', 'last_order_date']


class SupplierDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])


# =============== INVENTORY ITEMS ===============

class InventoryItemListCreateView(generics.ListCreateAPIView):
    """
    get: List inventory items, filterable by category, supplier and stock_status
    post: Create an inventory item; opening stock is booked as a stock receipt
    """
    serializer_class = InventoryItemSerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'supplier', 'is_active', 'track_stock']
    search_fields = ['name', 'sku', 'description']
    ordering_fields = ['name', 'current_stock', 'unit_cost', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        queryset = InventoryItem.objects.select_related('category', 'supplier')
        stock_status = self.request.query_params.get('stock_status')
        if stock_status:
            queryset = queryset.with_stock_status(stock_status)
        return queryset

    @swagger_auto_schema(request_body=InventoryItemWriteSerializer, responses={201: InventoryItemSerializer})
    def post(self, request, *args, **kwargs):
        item = services.create_inventory_item(request.data, actor=request.user, at=timezone.now())
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_201_CREATED)


class InventoryItemDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    get: Item details with movement statistics
    put/patch: Update item details (stock levels change only through the stock endpoints)
    delete: Delete the item together with its movements and ingredient mappings
    """
    queryset = InventoryItem.objects.select_related('category', 'supplier')
    permission_classes = [IsAuthenticated, IsAdminOrManager]

    def get_serializer_class(self):
        if self.request.method in ['PUT', 'PATCH']:
            return InventoryItemUpdateSerializer
        return InventoryItemSerializer

    def retrieve(self, request, *args, **kwargs):
        item = self.get_object()
        data = InventoryItemSerializer(item).data
        data['movement_stats'] = movement_summary(item, timezone.now())
        data['days_until_stockout'] = reports.days_until_stockout(item.current_stock, item.minimum_stock)
        data['ingredient_mappings'] = MenuItemIngredientSerializer(
            item.menu_item_ingredients.filter(is_active=True).select_related('menu_item', 'inventory_item'),
            many=True,
        ).data
        return Response(data)


class StockMovementListView(generics.ListAPIView):
    """Movements of one inventory item, newest first"""
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated, IsAdminOrManager]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['movement_type', 'reason']
    ordering_fields = ['movement_date']

    def get_queryset(self):
        item = get_object_or_404(InventoryItem, pk=self.kwargs['pk'])
        return (
            StockMovement.objects.filter(inventory_item=item)
            .select_related('inventory_item', 'supplier', 'created_by')
            .order_by('-movement_date', '-id')
        )


@swagger_auto_schema(method='post', request_body=AddStockSerializer, responses={201: StockMovementSerializer})
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def add_stock(request, pk):
    """Receive stock for an inventory item"""
    movement = services.add_stock(pk, request.data, actor=request.user, at=timezone.now())
    return Response({
        'message': f"Added {movement.quantity} {movement.inventory_item.unit_of_measure} to {movement.inventory_item.name}",
        'movement': StockMovementSerializer(movement).data,
        'current_stock': movement.new_stock,
    }, status=status.HTTP_201_CREATED)


@swagger_auto_schema(method='post', request_body=UseStockSerializer, responses={201: StockMovementSerializer})
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def use_stock(request, pk):
    """Take stock out of an inventory item"""
    movement = services.use_stock(pk, request.data, actor=request.user, at=timezone.now())
    return Response({
        'message': f"Used {movement.quantity} {movement.inventory_item.unit_of_measure} of {movement.inventory_item.name}",
        'movement': StockMovementSerializer(movement).data,
        'current_stock': movement.new_stock,
    }, status=status.HTTP_201_CREATED)


@swagger_auto_schema(method='post', request_body=AdjustStockSerializer, responses={201: StockMovementSerializer})
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def adjust_stock(request, pk):
    """Set an inventory item's stock to a counted level"""
    movement = services.adjust_stock(pk, request.data, actor=request.user, at=timezone.now())
    return Response({
        'message': f"Stock for {movement.inventory_item.name} set to {movement.new_stock}",
        'movement': StockMovementSerializer(movement).data,
        'current_stock': movement.new_stock,
    }, status=status.HTTP_201_CREATED)


@swagger_auto_schema(
    methods=['put'],
    request_body=IngredientMappingInputSerializer(many=True),
    responses={200: MenuItemIngredientSerializer(many=True)},
)
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def ingredient_mappings(request, pk):
    """
    get: Active menu item mappings of an inventory item
    put: Replace them with the posted list
    """
    item = get_object_or_404(InventoryItem, pk=pk)
    if request.method == 'PUT':
        serializer = IngredientMappingInputSerializer(data=request.data, many=True)
        serializer.is_valid(raise_exception=True)
        mapping.replace_mappings(item, serializer.validated_data)

    mappings = item.menu_item_ingredients.filter(is_active=True).select_related('menu_item', 'inventory_item')
    return Response(MenuItemIngredientSerializer(mappings, many=True).data)


@swagger_auto_schema(
    method='get',
    manual_parameters=[openapi.Parameter('name', openapi.IN_QUERY, type=openapi.TYPE_STRING, required=True)],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def suggested_mappings(request):
    """Menu items a new inventory item with this name would be linked to"""
    name = request.query_params.get('name', '')
    suggestions = [
        {
            'menu_item_name': suggestion.menu_item_name,
            'menu_item_id': menu_item.pk if menu_item else None,
            'quantity_used': suggestion.quantity,
            'unit': suggestion.unit,
            'will_link': menu_item is not None,
        }
        for suggestion, menu_item in mapping.suggest_mappings(name)
    ]
    return Response({'name': name, 'suggestions': suggestions})


@swagger_auto_schema(
    method='get',
    manual_parameters=[openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER)],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def low_stock_report(request):
    try:
        limit = int(request.query_params.get('limit', 20))
    except ValueError:
        limit = 20
    items = reports.get_low_stock_items(limit=max(limit, 0))
    return Response({'count': len(items), 'items': items})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def inventory_stats(request):
    return Response(reports.get_comprehensive_stats())


# =============== MENU ===============

class FoodCategoryListCreateView(ManagementAccessMixin, generics.ListCreateAPIView):
    """
    get: List menu categories
    post: Create a menu category (admins and managers)
    """
    queryset = FoodCategory.objects.all()
    serializer_class = FoodCategorySerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active', 'requires_kitchen']
    search_fields = ['name']
    ordering_fields = ['name', 'sort_order']


class FoodCategoryDetailView(ManagementAccessMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = FoodCategory.objects.all()
    serializer_class = FoodCategorySerializer


class MenuItemListCreateView(ManagementAccessMixin, generics.ListCreateAPIView):
    """
    get: List menu items
    post: Create a menu item (admins and managers)
    """
    queryset = MenuItem.objects.select_related('category')
    serializer_class = MenuItemSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'is_available', 'is_combo', 'requires_kitchen']
    search_fields = ['name', 'description', 'sku']
    ordering_fields = ['name', 'price', 'sort_order', 'created_at']


class MenuItemDetailView(ManagementAccessMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = MenuItem.objects.select_related('category')
    serializer_class = MenuItemSerializer


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def toggle_menu_item_availability(request, pk):
    menu_item = get_object_or_404(MenuItem, pk=pk)
    menu_item.is_available = not menu_item.is_available
    menu_item.save(update_fields=['is_available', 'updated_at'])
    return Response({
        'id': menu_item.pk,
        'is_available': menu_item.is_available,
        'message': f"{menu_item.name} is now {'available' if menu_item.is_available else 'unavailable'}",
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def menu_item_ingredients(request, pk):
    """Ingredient mappings of a menu item with what the current stock allows"""
    menu_item = get_object_or_404(MenuItem, pk=pk)
    mappings = menu_item.ingredients.filter(is_active=True).select_related('menu_item', 'inventory_item')
    return Response({
        'menu_item': menu_item.name,
        'ingredients': MenuItemIngredientSerializer(mappings, many=True).data,
        'max_portions': menu_item_capacity(menu_item),
    })


@swagger_auto_schema(method='post', request_body=DeductForSaleSerializer)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def deduct_for_sale(request, pk):
    """Consume the ingredients of ``units`` portions of a menu item"""
    serializer = DeductForSaleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    outcomes = services.deduct_for_sale(
        pk, serializer.validated_data['units'], actor=request.user, at=timezone.now(),
        reference_type='manual_sale',
    )
    return Response({
        'menu_item_id': int(pk),
        'units': serializer.validated_data['units'],
        'all_deducted': all(o.ok for o in outcomes),
        'results': [o.as_dict() for o in outcomes],
    })
