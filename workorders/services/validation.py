"""Checks run before a stage operation writes anything.

Each check raises a distinct :mod:`errors` type with a message naming
the exact reason, so callers can show it to the user as is.
"""
from __future__ import annotations

from workorders.models import StageLedgerEntry, UserProfile, WorkOrder

from . import stages as st
from .errors import (
    StageAccessDenied,
    StageFlowError,
    WorkflowValidationError,
    WorkOrderNotFound,
)

PHOTO_FIELDS = (
    ("installation_site_photo", "Installation site photo"),
    ("lineman_installation_set_photo", "Lineman installation set photo"),
    ("set_close_up_photo", "Set close-up photo"),
)


def load_work_order(work_order_id) -> WorkOrder:
    """Fetch and lock the work order; the lock serialises all stage operations on it."""
    try:
        return WorkOrder.objects.select_for_update().get(pk=work_order_id)
    except (WorkOrder.DoesNotExist, ValueError, TypeError):
        raise WorkOrderNotFound(f"Work order {work_order_id} not found")


def ensure_open(work_order: WorkOrder):
    if work_order.status == WorkOrder.STATUS_CANCELLED:
        raise StageFlowError(f"Work order {work_order.work_order_number} has been cancelled")
    if work_order.status == WorkOrder.STATUS_COMPLETED:
        raise StageFlowError(f"Work order {work_order.work_order_number} is already completed")


def ensure_current_stage(work_order: WorkOrder, stage: st.Stage):
    if work_order.current_stage not in stage.accepted_current_stages:
        expected = " or ".join(stage.accepted_current_stages)
        raise StageFlowError(
            f"{stage.label} operations require the work order to be at stage "
            f"'{expected}', but work order {work_order.work_order_number} is at "
            f"'{work_order.current_stage}'"
        )


def ensure_role(actor, role: str) -> UserProfile:
    """Return the actor's profile, re-read from the database, if it carries ``role``."""
    profile = None
    if actor is not None and getattr(actor, "pk", None) is not None:
        profile = UserProfile.objects.filter(user_id=actor.pk).first()
    if profile is None or profile.role != role:
        label = dict(UserProfile.ROLE_CHOICES).get(role, role)
        raise StageAccessDenied(f"Access denied. Only {label} users can perform this operation")
    return profile


def get_entry(work_order: WorkOrder, stage_name: str, lock: bool = True):
    qs = StageLedgerEntry.objects.filter(work_order=work_order, stage=stage_name)
    if lock:
        qs = qs.select_for_update()
    return qs.first()


def ensure_entry(work_order: WorkOrder, stage: st.Stage) -> StageLedgerEntry:
    """The stage's own ledger entry, which exists once it has received units."""
    entry = get_entry(work_order, stage.name)
    if entry is None:
        raise StageFlowError(
            f"No {stage.label} entry found for work order {work_order.work_order_number}. "
            f"Units must be received before this operation"
        )
    return entry


def ensure_upstream_dispatched(work_order: WorkOrder, stage: st.Stage) -> StageLedgerEntry:
    upstream = st.STAGES[stage.upstream]
    entry = get_entry(work_order, upstream.name)
    if entry is None:
        raise StageFlowError(
            f"{upstream.label} has not dispatched any units for work order "
            f"{work_order.work_order_number}"
        )
    if entry.status not in stage.accepted_upstream_statuses:
        raise StageFlowError(
            f"{upstream.label} status is '{entry.status}'; {stage.label} can only receive "
            f"when it is {' or '.join(stage.accepted_upstream_statuses)}"
        )
    return entry


def format_address(parts) -> str:
    return ", ".join(parts)


def ensure_location_match(profile: UserProfile, factory_entry: StageLedgerEntry):
    """JSR users may only handle units the factory sent to their own location."""
    dispatched_to = factory_entry.dispatch_address()
    if not all(dispatched_to):
        raise StageFlowError(
            "Factory dispatch location is incomplete. State, district, taluka and "
            "village are required"
        )
    assigned = profile.address()
    if assigned != dispatched_to:
        raise StageAccessDenied(
            f"Location mismatch. You are assigned to: {format_address(assigned)}. "
            f"But work order was dispatched to: {format_address(dispatched_to)}"
        )


def require_fields(fields: dict):
    """``fields`` maps a human label to the submitted value."""
    for label, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise WorkflowValidationError(f"{label} is required")


def require_approval_photos(photos) -> dict:
    """Map the three mandatory approval photos onto their field names."""
    photos = list(photos or [])
    values = {}
    for index, (field, label) in enumerate(PHOTO_FIELDS):
        name = photos[index] if index < len(photos) else None
        if not name:
            raise WorkflowValidationError(f"{label} is required when approving")
        values[field] = name
    return values


def require_timelines(timelines: dict) -> dict:
    cleaned = {}
    for stage_name, field in st.TIMELINE_FIELDS.items():
        value = timelines.get(stage_name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise WorkflowValidationError(
                "All timeline values must be positive numbers greater than 0"
            )
        cleaned[field] = value
    return cleaned
