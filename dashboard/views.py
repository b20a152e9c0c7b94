import logging

from django.utils import timezone
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from authentication.permissions import IsAdminOrManager
from inventory import ledger, reports
from . import analytics, exports

logger = logging.getLogger(__name__)


class InventoryReportQuerySerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)
    export = serializers.ChoiceField(choices=['json', 'excel', 'pdf'], default='json')

    def validate(self, attrs):
        # Missing bounds default to the current month
        first, last = ledger.month_bounds(timezone.localdate())
        attrs.setdefault('start', first)
        attrs.setdefault('end', last)
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': "End date cannot be before start date."})
        return attrs


@swagger_auto_schema(method='get', operation_description="Dashboard overview for today")
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    return Response(analytics.dashboard_overview(request.user, timezone.now()))


@swagger_auto_schema(method='get', operation_description="Sales for today, this week and this month")
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def sales_analytics(request):
    return Response(analytics.sales_analytics(timezone.now()))


@swagger_auto_schema(
    method='get',
    operation_description="Opening, received, used and closing stock per item; defaults to the current month",
    manual_parameters=[
        openapi.Parameter('start', openapi.IN_QUERY, description="First day (YYYY-MM-DD)", type=openapi.TYPE_STRING),
        openapi.Parameter('end', openapi.IN_QUERY, description="Last day (YYYY-MM-DD)", type=openapi.TYPE_STRING),
        openapi.Parameter('export', openapi.IN_QUERY, description="json, excel or pdf", type=openapi.TYPE_STRING),
    ]
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def inventory_report(request):
    query = InventoryReportQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    params = query.validated_data

    start, end = params['start'], params['end']
    rows = reports.get_period_report(start, end)
    logger.info(f"Inventory report {start} to {end} ({params['export']}) for {request.user}: {len(rows)} items")

    if params['export'] == 'excel':
        return exports.inventory_report_excel(rows, start, end)
    if params['export'] == 'pdf':
        return exports.inventory_report_pdf(rows, start, end)
    return Response({'start': start, 'end': end, 'items': rows})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrManager])
def inventory_overview(request):
    """Stock statistics with the most urgent restock items"""
    return Response({
        'stats': reports.get_comprehensive_stats(),
        'low_stock_items': reports.get_low_stock_items(limit=10),
    })
