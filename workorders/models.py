from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone

from .services import stages as st
from .services.quantities import HPQuantity


#
# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
#
class UserProfile(models.Model):
    """Extend Django's User with a supply-chain role and assigned location."""
    FACTORY = st.FACTORY
    JSR = st.JSR
    WAREHOUSE = st.WAREHOUSE
    CP = st.CP
    CONTRACTOR = st.CONTRACTOR
    FARMER = st.FARMER
    INSPECTION = st.INSPECTION
    ADMIN = "admin"
    ROLE_CHOICES = [
        (FACTORY, "Factory"),
        (JSR, "JSR"),
        (WAREHOUSE, "Warehouse"),
        (CP, "Channel Partner"),
        (CONTRACTOR, "Contractor"),
        (FARMER, "Farmer"),
        (INSPECTION, "Inspection"),
        (ADMIN, "Admin"),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    # Blank until an admin assigns one; a user without a role cannot act on any stage.
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    state = models.CharField(max_length=100, blank=True)
    district = models.CharField(max_length=100, blank=True)
    taluka = models.CharField(max_length=100, blank=True)
    village = models.CharField(max_length=100, blank=True)
    location = models.CharField(
        max_length=150, blank=True, help_text="Region served by a channel partner."
    )
    warehouse_location = models.CharField(max_length=150, blank=True)

    def address(self):
        return (
            self.state.strip(),
            self.district.strip(),
            self.taluka.strip(),
            self.village.strip(),
        )

    def __str__(self):
        return f"{self.user.username} ({self.get_role_display() or 'no role'})"


#
# ----------------------------------------------------------------------
# Work orders
# ----------------------------------------------------------------------
#
def next_work_order_number():
    from django.db.models import Max, IntegerField
    from django.db.models.functions import Cast, Substr

    last_num = (
        WorkOrder.objects
        .filter(work_order_number__regex=r"^WO\d+$")
        .annotate(num=Cast(Substr("work_order_number", 3), IntegerField()))
        .aggregate(m=Max("num"))
        .get("m")
    ) or 0
    return "WO%02d" % (last_num + 1)


class WorkOrder(models.Model):
    """A batch of pumps travelling from the factory to farmers."""

    STATUS_CREATED = "created"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (STATUS_CREATED, "Created"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    APPROVAL_PENDING = "pending"
    APPROVAL_APPROVED = "approved"
    APPROVAL_REJECTED = "rejected"
    APPROVAL_CHOICES = [
        (APPROVAL_PENDING, "Pending"),
        (APPROVAL_APPROVED, "Approved"),
        (APPROVAL_REJECTED, "Rejected"),
    ]

    work_order_number = models.CharField(max_length=20, unique=True)
    title = models.CharField(max_length=255)
    region = models.CharField(max_length=150)
    farmer_list_file = models.FileField(upload_to="farmer_lists/")
    farmer_list_original_name = models.CharField(max_length=255, blank=True)

    total_quantity = models.PositiveIntegerField()
    hp_3_quantity = models.PositiveIntegerField(default=0)
    hp_5_quantity = models.PositiveIntegerField(default=0)
    hp_7_5_quantity = models.PositiveIntegerField(default=0)

    start_date = models.DateField()
    # Planned days per stage; used for deadline reporting only.
    factory_timeline = models.PositiveIntegerField()
    jsr_timeline = models.PositiveIntegerField()
    whouse_timeline = models.PositiveIntegerField()
    cp_timeline = models.PositiveIntegerField()
    contractor_timeline = models.PositiveIntegerField()
    farmer_timeline = models.PositiveIntegerField()
    inspection_timeline = models.PositiveIntegerField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CREATED)
    current_stage = models.CharField(
        max_length=30, choices=st.CURRENT_STAGE_CHOICES, default=st.ADMIN_CREATED
    )
    # Stages currently allowed to act; farmer and inspection run side by side.
    active_stages = models.JSONField(default=list, blank=True)

    jsr_approval_status = models.CharField(
        max_length=10, choices=APPROVAL_CHOICES, default=APPROVAL_PENDING
    )
    jsr_approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    jsr_approval_date = models.DateTimeField(null=True, blank=True)
    inspection_approval_status = models.CharField(
        max_length=10, choices=APPROVAL_CHOICES, default=APPROVAL_PENDING
    )
    inspection_approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    inspection_approval_date = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        User, on_delete=models.PROTECT, related_name="work_orders_created"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.work_order_number} {self.title}"

    @property
    def quantities(self) -> HPQuantity:
        return HPQuantity(
            self.total_quantity,
            self.hp_3_quantity,
            self.hp_5_quantity,
            self.hp_7_5_quantity,
        )

    def timeline_for(self, stage_name):
        return getattr(self, st.TIMELINE_FIELDS[stage_name])

    @property
    def is_open(self):
        return self.status not in (self.STATUS_COMPLETED, self.STATUS_CANCELLED)


#
# ----------------------------------------------------------------------
# Stage ledgers
# ----------------------------------------------------------------------
#
class StageLedgerEntry(models.Model):
    """Cumulative quantities one stage received and forwarded for a work order.

    Entries link to the upstream stage's entry, mirroring the physical
    handoff chain. The status is derived from the quantities; the only
    stored flag is ``completed_at``.
    """

    work_order = models.ForeignKey(
        WorkOrder, on_delete=models.CASCADE, related_name="ledger_entries"
    )
    stage = models.CharField(max_length=20, choices=st.LEDGER_STAGE_CHOICES)
    upstream = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="downstream_entries",
    )

    received_total = models.PositiveIntegerField(default=0)
    received_hp_3 = models.PositiveIntegerField(default=0)
    received_hp_5 = models.PositiveIntegerField(default=0)
    received_hp_7_5 = models.PositiveIntegerField(default=0)
    forwarded_total = models.PositiveIntegerField(default=0)
    forwarded_hp_3 = models.PositiveIntegerField(default=0)
    forwarded_hp_5 = models.PositiveIntegerField(default=0)
    forwarded_hp_7_5 = models.PositiveIntegerField(default=0)

    # Where the latest dispatch went
    dispatch_state = models.CharField(max_length=100, blank=True)
    dispatch_district = models.CharField(max_length=100, blank=True)
    dispatch_taluka = models.CharField(max_length=100, blank=True)
    dispatch_village = models.CharField(max_length=100, blank=True)
    destination = models.CharField(
        max_length=150, blank=True, help_text="Warehouse location or CP region."
    )
    recipient_name = models.CharField(
        max_length=150, blank=True, help_text="Contractor or farmer name."
    )
    notes = models.TextField(blank=True)

    received_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    dispatched_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    last_received_at = models.DateTimeField(null=True, blank=True)
    last_dispatched_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["work_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["work_order", "stage"], name="uniq_ledger_entry_per_stage"
            ),
        ]

    def __str__(self):
        return f"{self.work_order.work_order_number} {self.get_stage_display()}"

    @property
    def received(self) -> HPQuantity:
        return HPQuantity(
            self.received_total, self.received_hp_3, self.received_hp_5, self.received_hp_7_5
        )

    @property
    def forwarded(self) -> HPQuantity:
        return HPQuantity(
            self.forwarded_total, self.forwarded_hp_3, self.forwarded_hp_5, self.forwarded_hp_7_5
        )

    @property
    def remaining(self) -> HPQuantity:
        return self.received - self.forwarded

    def dispatch_address(self):
        return (
            self.dispatch_state.strip(),
            self.dispatch_district.strip(),
            self.dispatch_taluka.strip(),
            self.dispatch_village.strip(),
        )

    @property
    def has_defect(self):
        return DefectReport.objects.filter(ledger_entry_id=self.pk).exists()

    @property
    def farmer_status(self):
        if self.has_defect:
            return "defect_reported"
        if self.completed_at:
            return "completed"
        return st.UNITS_RECEIVED

    @property
    def status(self):
        stage = st.STAGES[self.stage]
        if self.stage == st.FARMER:
            return self.farmer_status
        if self.completed_at:
            return st.ALL_DISPATCHED if stage.forwards_units else "completed"
        if stage.forwards_units and self.forwarded_total > 0:
            return stage.dispatched_status
        return stage.initial_status


class StageDecision(models.Model):
    """Approve/reject verdict given by JSR or inspection for their ledger entry."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
    ]

    ledger_entry = models.OneToOneField(
        StageLedgerEntry, on_delete=models.CASCADE, related_name="decision"
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    farmer_name = models.CharField(max_length=150, blank=True)
    state = models.CharField(max_length=100, blank=True)
    district = models.CharField(max_length=100, blank=True)
    taluka = models.CharField(max_length=100, blank=True)
    village = models.CharField(max_length=100, blank=True)
    installation_site_photo = models.CharField(max_length=255, blank=True)
    lineman_installation_set_photo = models.CharField(max_length=255, blank=True)
    set_close_up_photo = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    decided_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.ledger_entry} decision: {self.status}"


class DefectReport(models.Model):
    """Defect raised by the farmer against the units received."""

    ledger_entry = models.OneToOneField(
        StageLedgerEntry, on_delete=models.CASCADE, related_name="defect"
    )
    issue_title = models.CharField(max_length=255)
    description = models.TextField()
    photo_1 = models.CharField(max_length=255, blank=True)
    photo_2 = models.CharField(max_length=255, blank=True)
    photo_3 = models.CharField(max_length=255, blank=True)
    reported_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reported_at = models.DateTimeField(default=timezone.now)

    def photos(self):
        return [p for p in (self.photo_1, self.photo_2, self.photo_3) if p]


#
# ----------------------------------------------------------------------
# Stage records (progress / audit trail)
# ----------------------------------------------------------------------
#
class StageRecord(models.Model):
    """Per-stage progress row, written by the stage machine only."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (IN_PROGRESS, "In progress"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
        (SKIPPED, "Skipped"),
    ]

    work_order = models.ForeignKey(
        WorkOrder, on_delete=models.CASCADE, related_name="stage_records"
    )
    stage_name = models.CharField(max_length=20, choices=st.STAGE_CHOICES)
    stage_order = models.PositiveSmallIntegerField()
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default=PENDING)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    assigned_to = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_stage_records",
    )
    notes = models.TextField(blank=True)
    error_message = models.TextField(blank=True)
    stage_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["work_order", "stage_order"]
        constraints = [
            models.UniqueConstraint(
                fields=["work_order", "stage_name"], name="uniq_stage_record_per_stage"
            ),
        ]

    def __str__(self):
        return f"{self.work_order.work_order_number} {self.stage_name}: {self.status}"


#
# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------
#
class Notification(models.Model):
    TYPE_WORK_ORDER_CREATED = "work_order_created"
    TYPE_UNITS_ASSIGNED = "units_assigned"
    TYPE_STAGE_READY = "stage_ready"
    TYPE_STAGE_COMPLETED = "stage_completed"
    TYPE_STAGE_FAILED = "stage_failed"
    TYPE_WORK_ORDER_COMPLETED = "work_order_completed"
    TYPE_DEADLINE_WARNING = "deadline_warning"
    TYPE_DEADLINE_WARNING_ADMIN = "deadline_warning_admin"
    TYPE_UNITS_NOT_DISPATCHED = "units_not_dispatched"
    TYPE_CHOICES = [
        (TYPE_WORK_ORDER_CREATED, "Work order created"),
        (TYPE_UNITS_ASSIGNED, "Units assigned"),
        (TYPE_STAGE_READY, "Stage ready"),
        (TYPE_STAGE_COMPLETED, "Stage completed"),
        (TYPE_STAGE_FAILED, "Stage failed"),
        (TYPE_WORK_ORDER_COMPLETED, "Work order completed"),
        (TYPE_DEADLINE_WARNING, "Deadline warning"),
        (TYPE_DEADLINE_WARNING_ADMIN, "Deadline warning (admin)"),
        (TYPE_UNITS_NOT_DISPATCHED, "Units not dispatched"),
    ]

    PRIORITY_LOW = "low"
    PRIORITY_MEDIUM = "medium"
    PRIORITY_HIGH = "high"
    PRIORITY_URGENT = "urgent"
    PRIORITY_CHOICES = [
        (PRIORITY_LOW, "Low"),
        (PRIORITY_MEDIUM, "Medium"),
        (PRIORITY_HIGH, "High"),
        (PRIORITY_URGENT, "Urgent"),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="pump_notifications")
    user_role = models.CharField(max_length=20, blank=True)
    type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    work_order = models.ForeignKey(
        WorkOrder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.type} -> {self.user.username}"

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])


#
# ----------------------------------------------------------------------
# Remarks
# ----------------------------------------------------------------------
#
def everyone_access():
    return [Remark.EVERYONE]


class Remark(models.Model):
    """Free-text note on a work order.

    ``access`` lists the roles allowed to read it, or holds ``"everyone"``.
    The author and admins always see their remarks.
    """

    EVERYONE = "everyone"

    work_order = models.ForeignKey(WorkOrder, on_delete=models.CASCADE, related_name="remarks")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="pump_remarks")
    remark = models.TextField()
    role_no = models.CharField(max_length=50, blank=True)
    access = models.JSONField(default=everyone_access)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Remark by {self.user.username} on {self.work_order.work_order_number}"

    def is_visible_to(self, user, role):
        if role == UserProfile.ADMIN or self.user_id == user.pk:
            return True
        return self.EVERYONE in self.access or role in self.access


#
# ----------------------------------------------------------------------
# Pump barcodes
# ----------------------------------------------------------------------
#
class PumpBarcode(models.Model):
    """Serial numbers scanned off one pump set before it leaves the factory."""

    HP_3 = "3_HP"
    HP_5 = "5_HP"
    HP_7_5 = "7.5_HP"
    PUMP_TYPE_CHOICES = [
        (HP_3, "3 HP"),
        (HP_5, "5 HP"),
        (HP_7_5, "7.5 HP"),
    ]
    # Solar panels shipped with each pump type.
    MODULE_COUNTS = {HP_3: 6, HP_5: 9, HP_7_5: 13}

    imei_number = models.CharField(max_length=20, unique=True)
    pump_number = models.CharField(max_length=20)
    motor_number = models.CharField(max_length=20)
    controller_number = models.CharField(max_length=20)
    pump_type = models.CharField(max_length=10, choices=PUMP_TYPE_CHOICES)
    module_barcodes = models.JSONField(default=list)
    uploaded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="pump_barcodes"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.imei_number} ({self.pump_type})"
