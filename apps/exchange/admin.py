"""
Django Admin configuration for Exchange app.
"""

from django.contrib import admin
from django.utils.html import format_html

from apps.exchange.infrastructure.persistence.models import ExchangeRate, RateSource


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    """Admin interface for the exchange rate log."""

    list_display = (
        'get_currency_pair',
        'rate',
        'get_source',
        'recorded_at',
    )
    list_filter = (
        'source',
        'from_currency',
        'to_currency',
    )
    search_fields = (
        'from_currency',
        'to_currency',
    )
    readonly_fields = ('id', 'created_at', 'updated_at')
    date_hierarchy = 'recorded_at'
    ordering = ('-recorded_at',)

    fieldsets = (
        ('Exchange Rate', {
            'fields': (
                'from_currency',
                'to_currency',
                'rate',
                'source',
                'recorded_at',
            )
        }),
        ('Metadata', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_currency_pair(self, obj):
        """Display currency pair in format FROM/TO."""
        return f"{obj.from_currency}/{obj.to_currency}"
    get_currency_pair.short_description = 'Currency Pair'
    get_currency_pair.admin_order_field = 'from_currency'

    def get_source(self, obj):
        """Fallback rows stand out; they mean the provider was unreachable."""
        if obj.source == RateSource.FALLBACK:
            return format_html(
                '<span style="color: red;">{}</span>', obj.get_source_display()
            )
        return obj.get_source_display()
    get_source.short_description = 'Source'
    get_source.admin_order_field = 'source'
