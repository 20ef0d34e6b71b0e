from django.contrib import admin

from .models import Governorate, Center, Village, ShippingRate


class CenterInline(admin.TabularInline):
    model = Center
    extra = 0


@admin.register(Governorate)
class GovernorateAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'is_active')
    search_fields = ('name', 'code')
    inlines = [CenterInline]


@admin.register(Center)
class CenterAdmin(admin.ModelAdmin):
    list_display = ('name', 'governorate', 'is_active')
    list_filter = ('governorate',)
    search_fields = ('name',)


@admin.register(Village)
class VillageAdmin(admin.ModelAdmin):
    list_display = ('name', 'center', 'is_active')
    search_fields = ('name',)


@admin.register(ShippingRate)
class ShippingRateAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'cost', 'free_threshold', 'effective_from', 'effective_to', 'is_active')
    list_filter = ('is_active',)
    fieldsets = (
        ('Scope (exactly one)', {
            'fields': ('governorate', 'center', 'village')
        }),
        ('Pricing', {
            'fields': ('cost', 'free_threshold')
        }),
        ('Validity', {
            'fields': ('effective_from', 'effective_to', 'is_active')
        }),
    )
