# core/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser, OptionSettings


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (
        (None, {'fields': ('role', 'phone_number', 'address')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        (None, {'fields': ('email', 'role')}),
    )
    list_display = ['username', 'email', 'role', 'is_active', 'is_staff', 'is_superuser']
    search_fields = ['username', 'email', 'role']
    list_filter = ['role', 'is_active', 'is_staff', 'is_superuser']

@admin.register(OptionSettings)
class OptionSettingsAdmin(admin.ModelAdmin):
    list_display = ['key', 'updated_at', 'version']
    readonly_fields = ['created_at', 'updated_at', 'version']

    def has_add_permission(self, request):
        # The single catalog row is created by migration
        return not OptionSettings.objects.exists()
