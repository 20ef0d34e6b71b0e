from django.contrib import admin
from .models import Address


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ('recipient_name', 'user', 'governorate', 'center', 'village', 'is_default', 'is_active')
    list_filter = ('governorate', 'is_active')
    search_fields = ('user__email', 'recipient_name', 'phone')
    raw_id_fields = ('user',)
