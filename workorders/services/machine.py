"""Work order stage machine.

The work order keeps ``active_stages``, the stage tokens allowed to act.
Normally there is exactly one; after the contractor finishes, farmer and
inspection are active together. ``current_stage`` is derived from the
tokens, except for the halted states (defect, rejections), which are
sticky.
"""
from __future__ import annotations

import logging

from django.utils import timezone

from workorders.models import StageLedgerEntry, WorkOrder

from . import records
from . import stages as st

logger = logging.getLogger(__name__)

PARALLEL_BRANCH = {st.FARMER, st.INSPECTION}


def derive_current_stage(work_order: WorkOrder) -> str:
    if work_order.current_stage in st.HALTED_STAGES:
        return work_order.current_stage
    if work_order.status == WorkOrder.STATUS_COMPLETED:
        return st.COMPLETED
    tokens = set(work_order.active_stages or [])
    if not tokens:
        return st.ADMIN_CREATED
    if tokens <= PARALLEL_BRANCH:
        return st.FARMER_INSPECTION
    return min(tokens, key=lambda name: st.STAGES[name].order)


def _save(work_order: WorkOrder, *fields):
    work_order.save(update_fields=list(fields) + ["updated_at"])


def start_factory(work_order: WorkOrder, actor):
    """First manufacturing entry hands the work order to the factory."""
    if st.FACTORY in (work_order.active_stages or []):
        return
    work_order.active_stages = [st.FACTORY]
    work_order.status = WorkOrder.STATUS_IN_PROGRESS
    work_order.current_stage = derive_current_stage(work_order)
    _save(work_order, "active_stages", "status", "current_stage")
    records.mark_in_progress(work_order, st.FACTORY, actor)
    logger.info("Work order %s moved to factory", work_order.work_order_number)


def complete_stage(work_order: WorkOrder, entry: StageLedgerEntry, actor, notes=""):
    """Close ``entry``'s stage and activate its downstream stages.

    Returns ``(from_stage, to_stage)`` where ``to_stage`` is the new
    ``current_stage`` value.
    """
    stage = st.STAGES[entry.stage]
    entry.completed_at = timezone.now()
    entry.save(update_fields=["completed_at", "updated_at"])
    records.mark_completed(work_order, stage.name, actor, notes=notes)

    tokens = [t for t in (work_order.active_stages or []) if t != stage.name]
    for name in stage.downstream:
        if name not in tokens:
            tokens.append(name)
            records.mark_in_progress(work_order, name)
    work_order.active_stages = tokens
    if not tokens and work_order.current_stage not in st.HALTED_STAGES:
        work_order.status = WorkOrder.STATUS_COMPLETED
    work_order.current_stage = derive_current_stage(work_order)
    _save(work_order, "active_stages", "status", "current_stage")
    logger.info(
        "Work order %s: %s completed, current stage now %s",
        work_order.work_order_number,
        stage.name,
        work_order.current_stage,
    )
    return stage.name, work_order.current_stage


def halt(work_order: WorkOrder, halted_stage: str, failed_stage: str, error_message: str, actor):
    """Park the work order in a terminal state and fail the responsible stage."""
    work_order.current_stage = halted_stage
    if halted_stage in (st.REJECTED_BY_JSR, st.REJECTED_BY_INSPECTION):
        work_order.active_stages = []
    _save(work_order, "current_stage", "active_stages")
    records.mark_failed(work_order, failed_stage, error_message, actor)
    logger.warning(
        "Work order %s halted at %s: %s",
        work_order.work_order_number,
        halted_stage,
        error_message,
    )


def cancel(work_order: WorkOrder, actor):
    work_order.status = WorkOrder.STATUS_CANCELLED
    work_order.active_stages = []
    _save(work_order, "status", "active_stages")
    records.skip_open_records(
        work_order, f"Work order cancelled by {getattr(actor, 'username', actor)}"
    )
    logger.info("Work order %s cancelled", work_order.work_order_number)


def pending_stages(work_order: WorkOrder):
    """Stages expected to act next, for deadline monitoring."""
    if not work_order.is_open or work_order.current_stage in (
        st.REJECTED_BY_JSR,
        st.REJECTED_BY_INSPECTION,
    ):
        return []
    tokens = list(work_order.active_stages or [])
    if not tokens and work_order.current_stage == st.ADMIN_CREATED:
        return [st.FACTORY]
    return sorted(tokens, key=lambda name: st.STAGES[name].order)
