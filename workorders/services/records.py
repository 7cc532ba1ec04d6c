"""Stage record bookkeeping.

Stage records are a progress and audit trail. Only the stage machine
writes them, inside the same transaction as the ledger change they
describe, and nothing reads them to decide whether an operation is
allowed.
"""
from __future__ import annotations

from django.utils import timezone

from workorders.models import StageRecord, WorkOrder

from . import stages as st


def create_stage_records(work_order: WorkOrder, actor):
    now = timezone.now()
    records = []
    for stage in st.STAGE_SEQUENCE:
        data = {}
        if stage.timeline_field:
            data["timeline_days"] = work_order.timeline_for(stage.name)
        if stage.name == st.ADMIN_CREATED:
            records.append(
                StageRecord(
                    work_order=work_order,
                    stage_name=stage.name,
                    stage_order=stage.order,
                    status=StageRecord.COMPLETED,
                    started_at=now,
                    completed_at=now,
                    assigned_to=actor,
                    notes=f"Work order {work_order.work_order_number} created",
                    stage_data=data,
                )
            )
        else:
            records.append(
                StageRecord(
                    work_order=work_order,
                    stage_name=stage.name,
                    stage_order=stage.order,
                    stage_data=data,
                )
            )
    StageRecord.objects.bulk_create(records)


def _record(work_order, stage_name) -> StageRecord:
    return StageRecord.objects.select_for_update().get(
        work_order=work_order, stage_name=stage_name
    )


def mark_in_progress(work_order, stage_name, actor=None, notes=None):
    record = _record(work_order, stage_name)
    if record.status != StageRecord.PENDING:
        return record
    record.status = StageRecord.IN_PROGRESS
    record.started_at = timezone.now()
    fields = ["status", "started_at", "updated_at"]
    if actor is not None:
        record.assigned_to = actor
        fields.append("assigned_to")
    if notes is not None:
        record.notes = notes
        fields.append("notes")
    record.save(update_fields=fields)
    return record


def mark_completed(work_order, stage_name, actor=None, notes=None):
    record = _record(work_order, stage_name)
    now = timezone.now()
    record.status = StageRecord.COMPLETED
    record.started_at = record.started_at or now
    record.completed_at = now
    if actor is not None:
        record.assigned_to = actor
    if notes is not None:
        record.notes = notes
    record.save()
    return record


def mark_failed(work_order, stage_name, error_message, actor=None):
    record = _record(work_order, stage_name)
    record.status = StageRecord.FAILED
    record.error_message = error_message
    if actor is not None:
        record.assigned_to = actor
    record.save(update_fields=["status", "error_message", "assigned_to", "updated_at"])
    return record


def update_notes(work_order, stage_name, notes, actor=None):
    record = _record(work_order, stage_name)
    record.notes = notes
    fields = ["notes", "updated_at"]
    if actor is not None:
        record.assigned_to = actor
        fields.append("assigned_to")
    record.save(update_fields=fields)
    return record


def skip_open_records(work_order, reason):
    """Mark every stage that never finished as skipped."""
    return (
        StageRecord.objects
        .filter(work_order=work_order, status__in=[StageRecord.PENDING, StageRecord.IN_PROGRESS])
        .update(status=StageRecord.SKIPPED, notes=reason, updated_at=timezone.now())
    )


def stage_progress(work_order: WorkOrder) -> dict:
    records = list(work_order.stage_records.order_by("stage_order"))
    completed = [r for r in records if r.status == StageRecord.COMPLETED]
    pending = [r for r in records if r.status == StageRecord.PENDING]
    total = len(records)
    return {
        "work_order_number": work_order.work_order_number,
        "current_stage": work_order.current_stage,
        "active_stages": list(work_order.active_stages or []),
        "in_progress": [r.stage_name for r in records if r.status == StageRecord.IN_PROGRESS],
        "next_stage": pending[0].stage_name if pending else None,
        "completed": [r.stage_name for r in completed],
        "failed": [
            {"stage": r.stage_name, "error_message": r.error_message}
            for r in records
            if r.status == StageRecord.FAILED
        ],
        "total_stages": total,
        "progress_percentage": round(len(completed) / total * 100) if total else 0,
    }
