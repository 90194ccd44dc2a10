"""
Django Admin configuration for Pricing app.
"""

from django.contrib import admin
from django.utils.html import format_html

from apps.pricing.infrastructure.persistence.models import (
    Commodity,
    CommodityCategory,
    CurrentPrice,
    PriceHistory,
    PriceRange,
    PriceUpdateRun,
    RunStatus,
)


@admin.register(CommodityCategory)
class CommodityCategoryAdmin(admin.ModelAdmin):

    list_display = ('name', 'display_order', 'created_at')
    search_fields = ('name',)
    readonly_fields = ('id', 'created_at', 'updated_at')
    ordering = ('display_order', 'name')


class PriceRangeInline(admin.StackedInline):
    model = PriceRange
    extra = 0
    readonly_fields = ('updated_by', 'updated_at')


@admin.register(Commodity)
class CommodityAdmin(admin.ModelAdmin):
    """Admin interface for Commodity with its price range inline."""

    list_display = ('symbol', 'name', 'category', 'unit', 'get_status', 'display_order')
    list_filter = ('is_active', 'category')
    search_fields = ('symbol', 'name')
    readonly_fields = ('id', 'created_at', 'updated_at')
    ordering = ('display_order', 'symbol')
    inlines = [PriceRangeInline]
    actions = ['activate_commodities', 'deactivate_commodities']

    fieldsets = (
        ('Commodity', {
            'fields': ('symbol', 'name', 'description', 'unit', 'category')
        }),
        ('Display', {
            'fields': ('is_active', 'display_order')
        }),
        ('Metadata', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_status(self, obj):
        """Display status with colored indicator."""
        if obj.is_active:
            return format_html(
                '<span style="color: green; font-weight: bold;">● Active</span>'
            )
        return format_html(
            '<span style="color: red;">○ Inactive</span>'
        )
    get_status.short_description = 'Status'

    @admin.action(description='Activate selected commodities')
    def activate_commodities(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f'{updated} commodity(ies) activated successfully.')

    @admin.action(description='Deactivate selected commodities')
    def deactivate_commodities(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f'{updated} commodity(ies) deactivated successfully.')


@admin.register(PriceRange)
class PriceRangeAdmin(admin.ModelAdmin):

    list_display = (
        'commodity',
        'min_price_usd',
        'max_price_usd',
        'min_price_zar',
        'max_price_zar',
        'is_active',
        'updated_at',
    )
    list_filter = ('is_active',)
    search_fields = ('commodity__symbol', 'commodity__name')
    readonly_fields = ('updated_by', 'updated_at')


@admin.register(CurrentPrice)
class CurrentPriceAdmin(admin.ModelAdmin):

    list_display = ('commodity', 'price_usd', 'price_zar', 'exchange_rate', 'change_24h_percent', 'last_updated')
    search_fields = ('commodity__symbol',)
    ordering = ('-last_updated',)


@admin.register(PriceHistory)
class PriceHistoryAdmin(admin.ModelAdmin):

    list_display = ('commodity', 'recorded_date', 'price_usd', 'price_zar', 'exchange_rate')
    list_filter = ('recorded_date',)
    search_fields = ('commodity__symbol',)
    date_hierarchy = 'recorded_date'
    ordering = ('-recorded_date', '-recorded_at')


@admin.register(PriceUpdateRun)
class PriceUpdateRunAdmin(admin.ModelAdmin):
    """Read-only audit log of update runs."""

    list_display = ('executed_at', 'trigger_source', 'triggered_by', 'get_result', 'notes')
    list_filter = ('trigger_source', 'status')
    date_hierarchy = 'executed_at'
    ordering = ('-executed_at',)

    def get_result(self, obj):
        colour = 'green' if obj.status == RunStatus.SUCCESS else 'orange'
        return format_html(
            '<span style="color: {};">{}/{} ({})</span>',
            colour,
            obj.updated_commodities,
            obj.total_commodities,
            obj.get_status_display(),
        )
    get_result.short_description = 'Result'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
