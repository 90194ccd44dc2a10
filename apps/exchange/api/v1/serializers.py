"""
Serializers for the currency API.
Validate query and body input before it reaches the rate resolver.
"""

from rest_framework import serializers

from apps.exchange.domain.models import normalise_currency_code


class CurrencyCodeField(serializers.CharField):

    def to_internal_value(self, data):
        return normalise_currency_code(super().to_internal_value(data))


class RatePairSerializer(serializers.Serializer):
    from_currency = CurrencyCodeField(max_length=10, required=False, default="ZAR")
    to_currency = CurrencyCodeField(max_length=10, required=False, default="USD")


class RateHistorySerializer(RatePairSerializer):
    days = serializers.IntegerField(min_value=1, max_value=365, required=False, default=30)


class ConversionSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=20, decimal_places=4)
    from_currency = CurrencyCodeField(max_length=10)
    to_currency = CurrencyCodeField(max_length=10)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be positive")
        return value


class BatchRatesSerializer(serializers.Serializer):
    base = CurrencyCodeField(max_length=10, required=False, default="USD")
    symbols = serializers.CharField(help_text="Comma separated target currency codes")

    def validate_symbols(self, value):
        codes = [normalise_currency_code(code) for code in value.split(",")]
        codes = [code for code in codes if code]
        if not codes:
            raise serializers.ValidationError("At least one target currency is required")
        return codes


class FallbackRateSerializer(serializers.Serializer):
    rate = serializers.DecimalField(max_digits=20, decimal_places=8)

    def validate_rate(self, value):
        if value <= 0:
            raise serializers.ValidationError("Fallback rate must be positive")
        return value
