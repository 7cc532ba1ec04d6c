from rest_framework import serializers

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
from .services import stages as st
from .services.quantities import HPQuantity
from .services.validation import PHOTO_FIELDS


def role_of(user_id):
    return UserProfile.objects.filter(user_id=user_id).values_list("role", flat=True).first() or ""


class QuantityInputSerializer(serializers.Serializer):
    """HP-split quantity posted to a stage operation.

    ``total_field`` lets each operation keep its own field name for the
    total, e.g. ``total_quantity_assigned`` for CP to contractor.
    """

    total_field = "total_quantity"

    hp_3 = serializers.IntegerField()
    hp_5 = serializers.IntegerField()
    hp_7_5 = serializers.IntegerField()

    def __init__(self, *args, total_field=None, **kwargs):
        super().__init__(*args, **kwargs)
        if total_field:
            self.total_field = total_field
        self.fields[self.total_field] = serializers.IntegerField()

    def quantity(self) -> HPQuantity:
        data = self.validated_data
        return HPQuantity(
            data[self.total_field],
            data["hp_3"],
            data["hp_5"],
            data["hp_7_5"],
        )


class DefectInputSerializer(serializers.Serializer):
    """Multipart defect report. Photos come as ``photos`` or ``photo_1..3``."""

    photos = serializers.ListField(child=serializers.ImageField(), required=False)
    photo_1 = serializers.ImageField(required=False)
    photo_2 = serializers.ImageField(required=False)
    photo_3 = serializers.ImageField(required=False)

    def images(self):
        data = self.validated_data
        return data.get("photos") or [
            data[name] for name in ("photo_1", "photo_2", "photo_3") if data.get(name)
        ]


class DecisionInputSerializer(serializers.Serializer):
    """Approval photos; their presence is checked by the workflow."""

    installation_site_photo = serializers.ImageField(required=False)
    lineman_installation_set_photo = serializers.ImageField(required=False)
    set_close_up_photo = serializers.ImageField(required=False)

    def images(self):
        return [self.validated_data.get(field) for field, _ in PHOTO_FIELDS]


class WorkOrderCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    region = serializers.CharField(max_length=150)
    total_quantity = serializers.IntegerField()
    hp_3_quantity = serializers.IntegerField()
    hp_5_quantity = serializers.IntegerField()
    hp_7_5_quantity = serializers.IntegerField()
    start_date = serializers.DateField()
    factory_timeline = serializers.IntegerField()
    jsr_timeline = serializers.IntegerField()
    whouse_timeline = serializers.IntegerField()
    cp_timeline = serializers.IntegerField()
    contractor_timeline = serializers.IntegerField()
    farmer_timeline = serializers.IntegerField()
    inspection_timeline = serializers.IntegerField()
    farmer_list_file = serializers.FileField()

    def workflow_kwargs(self):
        data = self.validated_data
        return {
            "title": data["title"],
            "region": data["region"],
            "quantities": HPQuantity(
                data["total_quantity"],
                data["hp_3_quantity"],
                data["hp_5_quantity"],
                data["hp_7_5_quantity"],
            ),
            "start_date": data["start_date"],
            "timelines": {name: data[field] for name, field in st.TIMELINE_FIELDS.items()},
            "farmer_list": data["farmer_list_file"],
        }


class StageDecisionSerializer(serializers.ModelSerializer):
    class Meta:
        model = StageDecision
        fields = [
            "status",
            "farmer_name",
            "state",
            "district",
            "taluka",
            "village",
            "installation_site_photo",
            "lineman_installation_set_photo",
            "set_close_up_photo",
            "notes",
            "decided_by",
            "decided_at",
        ]


class DefectReportSerializer(serializers.ModelSerializer):
    class Meta:
        model = DefectReport
        fields = ["issue_title", "description", "photo_1", "photo_2", "photo_3", "reported_at"]


class StageLedgerEntrySerializer(serializers.ModelSerializer):
    status = serializers.CharField(read_only=True)
    received = serializers.SerializerMethodField()
    forwarded = serializers.SerializerMethodField()
    remaining = serializers.SerializerMethodField()
    decision = serializers.SerializerMethodField()
    defect = serializers.SerializerMethodField()

    class Meta:
        model = StageLedgerEntry
        fields = [
            "id",
            "stage",
            "status",
            "upstream",
            "received",
            "forwarded",
            "remaining",
            "dispatch_state",
            "dispatch_district",
            "dispatch_taluka",
            "dispatch_village",
            "destination",
            "recipient_name",
            "notes",
            "completed_at",
            "decision",
            "defect",
        ]

    def get_received(self, obj):
        return obj.received.as_dict()

    def get_forwarded(self, obj):
        return obj.forwarded.as_dict()

    def get_remaining(self, obj):
        return obj.remaining.as_dict()

    def get_decision(self, obj):
        decision = StageDecision.objects.filter(ledger_entry=obj).first()
        return StageDecisionSerializer(decision).data if decision else None

    def get_defect(self, obj):
        defect = DefectReport.objects.filter(ledger_entry=obj).first()
        return DefectReportSerializer(defect).data if defect else None


class StageRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = StageRecord
        fields = [
            "stage_name",
            "stage_order",
            "status",
            "started_at",
            "completed_at",
            "assigned_to",
            "notes",
            "error_message",
            "stage_data",
        ]


class WorkOrderSerializer(serializers.ModelSerializer):
    stage_records = StageRecordSerializer(many=True, read_only=True)
    ledger = serializers.SerializerMethodField()

    class Meta:
        model = WorkOrder
        fields = [
            "id",
            "work_order_number",
            "title",
            "region",
            "farmer_list_file",
            "farmer_list_original_name",
            "total_quantity",
            "hp_3_quantity",
            "hp_5_quantity",
            "hp_7_5_quantity",
            "start_date",
            "factory_timeline",
            "jsr_timeline",
            "whouse_timeline",
            "cp_timeline",
            "contractor_timeline",
            "farmer_timeline",
            "inspection_timeline",
            "status",
            "current_stage",
            "active_stages",
            "jsr_approval_status",
            "jsr_approval_date",
            "inspection_approval_status",
            "inspection_approval_date",
            "created_by",
            "created_at",
            "stage_records",
            "ledger",
        ]
        read_only_fields = fields

    def get_ledger(self, obj):
        entries = obj.ledger_entries.all()
        return StageLedgerEntrySerializer(entries, many=True).data


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "message",
            "data",
            "work_order",
            "priority",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields


class RemarkInputSerializer(serializers.Serializer):
    remark = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    access = serializers.JSONField(required=False)
    role_no = serializers.CharField(required=False, allow_blank=True, max_length=50)


class RemarkSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source="user.username", read_only=True)
    role = serializers.SerializerMethodField()

    class Meta:
        model = Remark
        fields = [
            "id",
            "work_order",
            "remark",
            "access",
            "role_no",
            "user_name",
            "role",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_role(self, obj):
        return role_of(obj.user_id)


class PumpBarcodeInputSerializer(serializers.Serializer):
    """Shape only; numbers, pump type and module counts are checked by the registry."""

    imei_number = serializers.CharField(max_length=20, allow_blank=True)
    pump_number = serializers.CharField(max_length=20, allow_blank=True)
    motor_number = serializers.CharField(max_length=20, allow_blank=True)
    controller_number = serializers.CharField(max_length=20, allow_blank=True)
    pump_type = serializers.CharField(max_length=10, allow_blank=True)
    module_barcodes = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class PumpBarcodeSerializer(serializers.ModelSerializer):
    uploaded_by = serializers.SerializerMethodField()

    class Meta:
        model = PumpBarcode
        fields = [
            "id",
            "imei_number",
            "pump_number",
            "motor_number",
            "controller_number",
            "pump_type",
            "module_barcodes",
            "uploaded_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_uploaded_by(self, obj):
        user = obj.uploaded_by
        if user is None:
            return None
        return {
            "id": user.pk,
            "username": user.username,
            "email": user.email,
            "role": role_of(user.pk),
        }
