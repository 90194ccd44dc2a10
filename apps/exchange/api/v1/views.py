"""
ViewSets for the currency API v1.
Sync DRF views entering the async rate resolver through async_to_sync.
"""

from asgiref.sync import async_to_sync
from django.utils import timezone
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.exchange.api.v1.serializers import (
    BatchRatesSerializer,
    ConversionSerializer,
    FallbackRateSerializer,
    RateHistorySerializer,
    RatePairSerializer,
)
from apps.exchange.domain.models import SUPPORTED_CURRENCIES
from apps.exchange.domain.services import get_rate_resolver


def _query(serializer_class, request):
    """Map `from`/`to` query params onto serializer fields and validate."""
    data = request.query_params.dict()
    if "from" in data:
        data["from_currency"] = data.pop("from")
    if "to" in data:
        data["to_currency"] = data.pop("to")
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


async def _resolve_batch(resolver, base, targets):
    rates = await resolver.get_rates(base, targets)
    # the loop closes when the request ends; pending api_batch saves must land first
    await resolver.wait_for_background_tasks()
    return rates


PAIR_PARAMETERS = [
    OpenApiParameter("from", OpenApiTypes.STR, description="Source currency code (default ZAR)"),
    OpenApiParameter("to", OpenApiTypes.STR, description="Target currency code (default USD)"),
]


@extend_schema(tags=['Currency'])
class CurrencyViewSet(viewsets.ViewSet):

    def get_permissions(self):
        if self.action == 'fallback_rate':
            return [permissions.IsAdminUser()]
        return [permissions.AllowAny()]

    @extend_schema(parameters=PAIR_PARAMETERS, description="Current exchange rate for a currency pair")
    @action(detail=False, methods=['get'], url_path='rate')
    def rate(self, request):
        params = _query(RatePairSerializer, request)
        rate = async_to_sync(get_rate_resolver().get_rate)(params["from_currency"], params["to_currency"])

        return Response({
            "from": params["from_currency"],
            "to": params["to_currency"],
            "rate": str(rate),
            "timestamp": timezone.now().isoformat(),
        })

    @extend_schema(
        parameters=[
            OpenApiParameter("base", OpenApiTypes.STR, description="Base currency code (default USD)"),
            OpenApiParameter("symbols", OpenApiTypes.STR, required=True, description="Comma separated targets (e.g. ZAR,EUR)"),
        ],
        description="Rates from one base currency to many targets"
    )
    @action(detail=False, methods=['get'], url_path='rates')
    def rates(self, request):
        params = _query(BatchRatesSerializer, request)
        resolver = get_rate_resolver()
        rates = async_to_sync(_resolve_batch)(resolver, params["base"], params["symbols"])

        return Response({
            "base": params["base"],
            "rates": {code: str(value) for code, value in rates.items()},
            "timestamp": timezone.now().isoformat(),
        })

    @extend_schema(
        parameters=[
            *PAIR_PARAMETERS,
            OpenApiParameter("amount", OpenApiTypes.DECIMAL, required=True, description="Amount to convert"),
        ],
        description="Convert an amount from one currency to another"
    )
    @action(detail=False, methods=['get'], url_path='convert')
    def convert(self, request):
        params = _query(ConversionSerializer, request)
        result = async_to_sync(get_rate_resolver().convert_currency)(
            params["amount"],
            params["from_currency"],
            params["to_currency"],
        )
        return Response(result.to_dict())

    @extend_schema(
        parameters=[
            *PAIR_PARAMETERS,
            OpenApiParameter("days", OpenApiTypes.INT, description="Look-back window in days (default 30)"),
        ],
        description="Persisted rates for a pair, newest first"
    )
    @action(detail=False, methods=['get'], url_path='history')
    def history(self, request):
        params = _query(RateHistorySerializer, request)
        rows = async_to_sync(get_rate_resolver().get_exchange_rate_history)(
            params["from_currency"],
            params["to_currency"],
            params["days"],
        )

        return Response({
            "from": params["from_currency"],
            "to": params["to_currency"],
            "days": params["days"],
            "history": [row.to_dict() for row in rows],
        })

    @extend_schema(description="Currencies the service quotes")
    @action(detail=False, methods=['get'], url_path='supported')
    def supported(self, request):
        return Response({"currencies": list(SUPPORTED_CURRENCIES)})

    @extend_schema(parameters=PAIR_PARAMETERS, description="Newest persisted rate for a pair")
    @action(detail=False, methods=['get'], url_path='latest')
    def latest(self, request):
        params = _query(RatePairSerializer, request)
        latest = async_to_sync(get_rate_resolver().get_latest_exchange_rate)(
            params["from_currency"],
            params["to_currency"],
        )
        return Response(latest.to_dict())

    @extend_schema(request=FallbackRateSerializer, description="Replace the static fallback rate (admin only)")
    @action(detail=False, methods=['put'], url_path='fallback-rate')
    def fallback_rate(self, request):
        serializer = FallbackRateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rate = get_rate_resolver().update_fallback_rate(serializer.validated_data["rate"])
        return Response({"fallback_rate": str(rate)})
