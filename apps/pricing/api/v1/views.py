"""
ViewSets for the pricing API v1.
Public price reads under /prices, operator actions under /admin.
"""

from asgiref.sync import async_to_sync
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.pricing.api.v1.serializers import (
    ManualPriceSerializer,
    PriceHistoryQuerySerializer,
    PriceQuerySerializer,
    PriceRangeSerializer,
    RunListQuerySerializer,
    StatsQuerySerializer,
)
from apps.pricing.domain.services import PriceUpdateService
from apps.pricing.infrastructure.persistence.models import TriggerSource

COMMODITY = (
    r'(?P<commodity_id>[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})'
)


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


@extend_schema(tags=['Prices'])
class PriceViewSet(viewsets.ViewSet):

    permission_classes = [permissions.AllowAny]

    @extend_schema(
        parameters=[OpenApiParameter("currency", OpenApiTypes.STR, description="usd, zar or both")],
        description="Latest price of every active commodity"
    )
    @action(detail=False, methods=['get'], url_path='current')
    def current(self, request):
        params = _validated(PriceQuerySerializer, request.query_params)
        prices = async_to_sync(PriceUpdateService().list_current_prices)(params["currency"])
        return Response({"prices": prices, "count": len(prices)})

    @extend_schema(
        parameters=[
            OpenApiParameter("period", OpenApiTypes.STR, description="7d, 30d, 90d or 1y"),
            OpenApiParameter("currency", OpenApiTypes.STR, description="usd, zar or both"),
            OpenApiParameter("limit", OpenApiTypes.INT, description="Maximum rows (default 100)"),
        ],
        description="Price history of one commodity, newest first"
    )
    @action(detail=False, methods=['get'], url_path=f'history/{COMMODITY}')
    def history(self, request, commodity_id=None):
        params = _validated(PriceHistoryQuerySerializer, request.query_params)
        rows = async_to_sync(PriceUpdateService().get_price_history)(
            commodity_id,
            params["period"],
            params["currency"],
            params["limit"],
        )
        return Response({"commodity_id": commodity_id, "period": params["period"], "history": rows})

    @extend_schema(
        parameters=[OpenApiParameter("period", OpenApiTypes.STR, description="7d, 30d, 90d or 1y")],
        description="Min, max and average prices of one commodity over a period"
    )
    @action(detail=False, methods=['get'], url_path=f'stats/{COMMODITY}')
    def stats(self, request, commodity_id=None):
        params = _validated(StatsQuerySerializer, request.query_params)
        stats = async_to_sync(PriceUpdateService().get_commodity_stats)(commodity_id, params["period"])
        return Response(stats)


@extend_schema(tags=['Pricing admin'])
class PricingAdminViewSet(viewsets.ViewSet):

    permission_classes = [permissions.IsAdminUser]

    @extend_schema(request=None, description="Run the daily price update now")
    @action(detail=False, methods=['post'], url_path='update-all')
    def update_all(self, request):
        summary = async_to_sync(PriceUpdateService().update_daily_prices)(
            TriggerSource.MANUAL,
            request.user.pk,
        )
        return Response(summary.to_dict())

    @extend_schema(request=ManualPriceSerializer, description="Set one commodity's current price")
    @action(detail=False, methods=['put', 'post'], url_path=f'commodities/{COMMODITY}/price')
    def price(self, request, commodity_id=None):
        data = _validated(ManualPriceSerializer, request.data)
        result = async_to_sync(PriceUpdateService().update_commodity_price)(
            commodity_id,
            price_usd=data.get("price_usd"),
            price_zar=data.get("price_zar"),
            operator=request.user.pk,
        )
        return Response(result)

    @extend_schema(request=PriceRangeSerializer, description="Read or replace one commodity's price range")
    @action(detail=False, methods=['get', 'put'], url_path=f'commodities/{COMMODITY}/price-range')
    def price_range(self, request, commodity_id=None):
        service = PriceUpdateService()

        if request.method == 'GET':
            price_range = async_to_sync(service.get_price_range)(commodity_id)
            if price_range is None:
                return Response(
                    {"error": {"message": f"No price range for commodity {commodity_id}"}},
                    status=status.HTTP_404_NOT_FOUND
                )
            return Response(price_range)

        data = _validated(PriceRangeSerializer, request.data)
        result = async_to_sync(service.update_price_range)(commodity_id, operator=request.user.pk, **data)
        return Response(result)

    @extend_schema(description="Commodity counts, last update run and latest ZAR/USD rate")
    @action(detail=False, methods=['get'], url_path='dashboard')
    def dashboard(self, request):
        return Response(async_to_sync(PriceUpdateService().get_dashboard_summary)())

    @extend_schema(
        parameters=[OpenApiParameter("limit", OpenApiTypes.INT, description="Maximum rows (default 20, max 100)")],
        description="Recent price update runs, newest first"
    )
    @action(detail=False, methods=['get'], url_path='price-update-runs')
    def price_update_runs(self, request):
        params = _validated(RunListQuerySerializer, request.query_params)
        runs = async_to_sync(PriceUpdateService().list_update_runs)(params["limit"])
        return Response({"runs": runs, "count": len(runs)})
