from django.contrib import admin

from .models import (
    DefectReport,
    Notification,
    PumpBarcode,
    Remark,
    StageDecision,
    StageLedgerEntry,
    StageRecord,
    UserProfile,
    WorkOrder,
)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "state", "district", "taluka", "village", "location")
    list_filter = ("role", "state")
    search_fields = ("user__username", "district", "village", "location")


class StageRecordInline(admin.TabularInline):
    model = StageRecord
    extra = 0
    can_delete = False
    readonly_fields = (
        "stage_name",
        "stage_order",
        "status",
        "started_at",
        "completed_at",
        "assigned_to",
        "notes",
        "error_message",
    )
    fields = readonly_fields


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    list_display = (
        "work_order_number",
        "title",
        "region",
        "total_quantity",
        "status",
        "current_stage",
        "created_at",
    )
    list_filter = ("status", "current_stage", "region")
    search_fields = ("work_order_number", "title", "region")
    # Stage fields only move through the workflow service.
    readonly_fields = (
        "work_order_number",
        "status",
        "current_stage",
        "active_stages",
        "jsr_approval_status",
        "jsr_approved_by",
        "jsr_approval_date",
        "inspection_approval_status",
        "inspection_approved_by",
        "inspection_approval_date",
    )
    inlines = [StageRecordInline]


@admin.register(StageLedgerEntry)
class StageLedgerEntryAdmin(admin.ModelAdmin):
    list_display = (
        "work_order",
        "stage",
        "received_total",
        "forwarded_total",
        "completed_at",
    )
    list_filter = ("stage",)
    search_fields = ("work_order__work_order_number",)

    def has_change_permission(self, request, obj=None):
        return False


admin.site.register(StageDecision)
admin.site.register(DefectReport)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "type", "priority", "is_read", "created_at")
    list_filter = ("type", "priority", "is_read")


@admin.register(Remark)
class RemarkAdmin(admin.ModelAdmin):
    list_display = ("work_order", "user", "role_no", "created_at")
    search_fields = ("work_order__work_order_number", "remark")


@admin.register(PumpBarcode)
class PumpBarcodeAdmin(admin.ModelAdmin):
    list_display = ("imei_number", "pump_number", "pump_type", "uploaded_by", "created_at")
    list_filter = ("pump_type",)
    search_fields = ("imei_number", "pump_number", "motor_number", "controller_number")
