from django.contrib import admin
from .models import Activity, FollowUp, Inquiry


class FollowUpInline(admin.TabularInline):
    model = FollowUp
    extra = 0
    fields = ['type', 'inquiry_status', 'lead_stage', 'sub_stage', 'title', 'message', 'created_by', 'created_at']
    readonly_fields = ['created_by', 'created_at']


@admin.register(Inquiry)
class InquiryAdmin(admin.ModelAdmin):
    inlines = [FollowUpInline]
    list_display = ('name', 'phone', 'course', 'preferred_location', 'status', 'department',
                    'assignment_status', 'assigned_to', 'created_at')
    list_filter = ('department', 'assignment_status', 'status', 'course', 'preferred_location', 'medium')
    search_fields = ('name', 'phone', 'email', 'city')
    readonly_fields = ('created_at', 'updated_at', 'version')
    raw_id_fields = ('assigned_to', 'forwarded_by', 'created_by')
    ordering = ('-created_at',)


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ('inquiry', 'action', 'actor', 'target_user', 'created_at')
    list_filter = ('action', 'created_at')
    search_fields = ('inquiry__name', 'details')
    readonly_fields = ('created_at',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
