import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

STAGE_CHOICES = [
    ("admin_created", "Admin"),
    ("factory", "Factory"),
    ("jsr", "JSR"),
    ("whouse", "Warehouse"),
    ("cp", "CP"),
    ("contractor", "Contractor"),
    ("farmer", "Farmer"),
    ("inspection", "Inspection"),
]
LEDGER_STAGE_CHOICES = STAGE_CHOICES[1:]
CURRENT_STAGE_CHOICES = [
    ("admin_created", "Admin created"),
    ("factory", "Factory"),
    ("jsr", "JSR"),
    ("whouse", "Warehouse"),
    ("cp", "CP"),
    ("contractor", "Contractor"),
    ("farmer_inspection", "Farmer / Inspection"),
    ("defect_reported", "Defect reported"),
    ("rejected_by_jsr", "Rejected by JSR"),
    ("rejected_by_inspection", "Rejected by inspection"),
    ("completed", "Completed"),
]
APPROVAL_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "role",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("factory", "Factory"),
                            ("jsr", "JSR"),
                            ("whouse", "Warehouse"),
                            ("cp", "Channel Partner"),
                            ("contractor", "Contractor"),
                            ("farmer", "Farmer"),
                            ("inspection", "Inspection"),
                            ("admin", "Admin"),
                        ],
                        max_length=20,
                    ),
                ),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("state", models.CharField(blank=True, max_length=100)),
                ("district", models.CharField(blank=True, max_length=100)),
                ("taluka", models.CharField(blank=True, max_length=100)),
                ("village", models.CharField(blank=True, max_length=100)),
                (
                    "location",
                    models.CharField(blank=True, help_text="Region served by a channel partner.", max_length=150),
                ),
                ("warehouse_location", models.CharField(blank=True, max_length=150)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="WorkOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("work_order_number", models.CharField(max_length=20, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("region", models.CharField(max_length=150)),
                ("farmer_list_file", models.FileField(upload_to="farmer_lists/")),
                ("farmer_list_original_name", models.CharField(blank=True, max_length=255)),
                ("total_quantity", models.PositiveIntegerField()),
                ("hp_3_quantity", models.PositiveIntegerField(default=0)),
                ("hp_5_quantity", models.PositiveIntegerField(default=0)),
                ("hp_7_5_quantity", models.PositiveIntegerField(default=0)),
                ("start_date", models.DateField()),
                ("factory_timeline", models.PositiveIntegerField()),
                ("jsr_timeline", models.PositiveIntegerField()),
                ("whouse_timeline", models.PositiveIntegerField()),
                ("cp_timeline", models.PositiveIntegerField()),
                ("contractor_timeline", models.PositiveIntegerField()),
                ("farmer_timeline", models.PositiveIntegerField()),
                ("inspection_timeline", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="created",
                        max_length=20,
                    ),
                ),
                (
                    "current_stage",
                    models.CharField(choices=CURRENT_STAGE_CHOICES, default="admin_created", max_length=30),
                ),
                ("active_stages", models.JSONField(blank=True, default=list)),
                (
                    "jsr_approval_status",
                    models.CharField(choices=APPROVAL_CHOICES, default="pending", max_length=10),
                ),
                ("jsr_approval_date", models.DateTimeField(blank=True, null=True)),
                (
                    "inspection_approval_status",
                    models.CharField(choices=APPROVAL_CHOICES, default="pending", max_length=10),
                ),
                ("inspection_approval_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_orders_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "inspection_approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "jsr_approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="StageLedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.CharField(choices=LEDGER_STAGE_CHOICES, max_length=20)),
                ("received_total", models.PositiveIntegerField(default=0)),
                ("received_hp_3", models.PositiveIntegerField(default=0)),
                ("received_hp_5", models.PositiveIntegerField(default=0)),
                ("received_hp_7_5", models.PositiveIntegerField(default=0)),
                ("forwarded_total", models.PositiveIntegerField(default=0)),
                ("forwarded_hp_3", models.PositiveIntegerField(default=0)),
                ("forwarded_hp_5", models.PositiveIntegerField(default=0)),
                ("forwarded_hp_7_5", models.PositiveIntegerField(default=0)),
                ("dispatch_state", models.CharField(blank=True, max_length=100)),
                ("dispatch_district", models.CharField(blank=True, max_length=100)),
                ("dispatch_taluka", models.CharField(blank=True, max_length=100)),
                ("dispatch_village", models.CharField(blank=True, max_length=100)),
                (
                    "destination",
                    models.CharField(blank=True, help_text="Warehouse location or CP region.", max_length=150),
                ),
                (
                    "recipient_name",
                    models.CharField(blank=True, help_text="Contractor or farmer name.", max_length=150),
                ),
                ("notes", models.TextField(blank=True)),
                ("last_received_at", models.DateTimeField(blank=True, null=True)),
                ("last_dispatched_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "dispatched_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "upstream",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="downstream_entries",
                        to="workorders.stageledgerentry",
                    ),
                ),
                (
                    "work_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_entries",
                        to="workorders.workorder",
                    ),
                ),
            ],
            options={
                "ordering": ["work_order", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="stageledgerentry",
            constraint=models.UniqueConstraint(
                fields=("work_order", "stage"), name="uniq_ledger_entry_per_stage"
            ),
        ),
        migrations.CreateModel(
            name="StageDecision",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=APPROVAL_CHOICES, default="pending", max_length=10)),
                ("farmer_name", models.CharField(blank=True, max_length=150)),
                ("state", models.CharField(blank=True, max_length=100)),
                ("district", models.CharField(blank=True, max_length=100)),
                ("taluka", models.CharField(blank=True, max_length=100)),
                ("village", models.CharField(blank=True, max_length=100)),
                ("installation_site_photo", models.CharField(blank=True, max_length=255)),
                ("lineman_installation_set_photo", models.CharField(blank=True, max_length=255)),
                ("set_close_up_photo", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="decision",
                        to="workorders.stageledgerentry",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="DefectReport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("issue_title", models.CharField(max_length=255)),
                ("description", models.TextField()),
                ("photo_1", models.CharField(blank=True, max_length=255)),
                ("photo_2", models.CharField(blank=True, max_length=255)),
                ("photo_3", models.CharField(blank=True, max_length=255)),
                ("reported_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="defect",
                        to="workorders.stageledgerentry",
                    ),
                ),
                (
                    "reported_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="StageRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage_name", models.CharField(choices=STAGE_CHOICES, max_length=20)),
                ("stage_order", models.PositiveSmallIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="pending",
                        max_length=15,
                    ),
                ),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("error_message", models.TextField(blank=True)),
                ("stage_data", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assigned_to",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_stage_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "work_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stage_records",
                        to="workorders.workorder",
                    ),
                ),
            ],
            options={
                "ordering": ["work_order", "stage_order"],
            },
        ),
        migrations.AddConstraint(
            model_name="stagerecord",
            constraint=models.UniqueConstraint(
                fields=("work_order", "stage_name"), name="uniq_stage_record_per_stage"
            ),
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_role", models.CharField(blank=True, max_length=20)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("work_order_created", "Work order created"),
                            ("units_assigned", "Units assigned"),
                            ("stage_ready", "Stage ready"),
                            ("stage_completed", "Stage completed"),
                            ("stage_failed", "Stage failed"),
                            ("work_order_completed", "Work order completed"),
                            ("deadline_warning", "Deadline warning"),
                            ("deadline_warning_admin", "Deadline warning (admin)"),
                            ("units_not_dispatched", "Units not dispatched"),
                        ],
                        max_length=40,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("data", models.JSONField(blank=True, default=dict)),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        default="medium",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pump_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "work_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notifications",
                        to="workorders.workorder",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
