"""
Serializers for the pricing API.
Operator input only; responses are built by the pricing service.
"""

from rest_framework import serializers

CURRENCY_FILTERS = ("usd", "zar", "both")
PERIODS = ("7d", "30d", "90d", "1y")


class PriceQuerySerializer(serializers.Serializer):
    currency = serializers.ChoiceField(choices=CURRENCY_FILTERS, required=False, default="both")


class PriceHistoryQuerySerializer(PriceQuerySerializer):
    period = serializers.ChoiceField(choices=PERIODS, required=False, default="30d")
    limit = serializers.IntegerField(min_value=1, max_value=1000, required=False, default=100)


class StatsQuerySerializer(serializers.Serializer):
    # unknown periods fall back to 30d in the service
    period = serializers.CharField(required=False, default="30d")


class ManualPriceSerializer(serializers.Serializer):
    price_usd = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)
    price_zar = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get("price_usd") is None and attrs.get("price_zar") is None:
            raise serializers.ValidationError("Either price_usd or price_zar must be provided")
        return attrs


class PriceRangeSerializer(serializers.Serializer):
    min_price_usd = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)
    max_price_usd = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)
    min_price_zar = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)
    max_price_zar = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True)


class RunListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False, default=20)
