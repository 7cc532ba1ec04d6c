"""Cumulative receive/dispatch bookkeeping on stage ledger entries.

Every call adds to the running totals of one entry. Callers hold the work
order lock, and the increments are applied with ``F()`` expressions so the
database does the read-modify-write.
"""
from __future__ import annotations

from django.db.models import F
from django.utils import timezone

from workorders.models import StageLedgerEntry, WorkOrder

from . import stages as st
from .errors import CapacityExceeded
from .quantities import HPQuantity, field_phrase

RECEIVED_FIELDS = {
    "total": "received_total",
    "hp_3": "received_hp_3",
    "hp_5": "received_hp_5",
    "hp_7_5": "received_hp_7_5",
}
FORWARDED_FIELDS = {
    "total": "forwarded_total",
    "hp_3": "forwarded_hp_3",
    "hp_5": "forwarded_hp_5",
    "hp_7_5": "forwarded_hp_7_5",
}


def inflow_pool(work_order: WorkOrder, upstream_entry: StageLedgerEntry | None) -> HPQuantity:
    """Everything this stage can ever receive: admin totals for the factory, else upstream forwarded."""
    if upstream_entry is None:
        return work_order.quantities
    return upstream_entry.forwarded


def _increment(entry: StageLedgerEntry, columns: dict, quantity: HPQuantity, **extra):
    updates = {columns[field]: F(columns[field]) + value for field, value in quantity.parts()}
    updates.update(extra)
    updates["updated_at"] = timezone.now()
    StageLedgerEntry.objects.filter(pk=entry.pk).update(**updates)
    entry.refresh_from_db()
    return entry


def _receive_messages(stage: st.Stage, work_order: WorkOrder):
    if stage.upstream is None:
        exhausted = (
            f"All units have already been manufactured for work order "
            f"{work_order.work_order_number}"
        )

        def describe(field, requested, available):
            return (
                f"{field_phrase(field, 'manufactured quantity')} ({requested}) cannot exceed "
                f"remaining units to manufacture ({available})"
            )
    else:
        upstream = st.STAGES[stage.upstream]
        exhausted = (
            f"All units dispatched by {upstream.label} have already been received for "
            f"work order {work_order.work_order_number}"
        )

        def describe(field, requested, available):
            return (
                f"{field_phrase(field, 'received quantity')} ({requested}) cannot exceed "
                f"remaining units to receive from {upstream.label} ({available})"
            )
    return exhausted, describe


def record_receipt(
    work_order: WorkOrder,
    stage: st.Stage,
    quantity: HPQuantity,
    actor,
    upstream_entry: StageLedgerEntry | None = None,
) -> StageLedgerEntry:
    """Add ``quantity`` to the stage's cumulative received totals.

    The entry is created on the first receipt. The new cumulative amount
    may not exceed the inflow pool, checked for the total and each HP
    bucket independently.
    """
    entry = (
        StageLedgerEntry.objects.select_for_update()
        .filter(work_order=work_order, stage=stage.name)
        .first()
    )
    already = entry.received if entry else HPQuantity.zero()
    available = inflow_pool(work_order, upstream_entry) - already

    exhausted, describe = _receive_messages(stage, work_order)
    if available.total <= 0:
        raise CapacityExceeded(exhausted)
    excess = quantity.first_excess(available)
    if excess:
        raise CapacityExceeded(describe(*excess))

    if entry is None:
        entry = StageLedgerEntry.objects.create(
            work_order=work_order, stage=stage.name, upstream=upstream_entry
        )
    return _increment(
        entry,
        RECEIVED_FIELDS,
        quantity,
        received_by=actor,
        last_received_at=timezone.now(),
    )


def record_dispatch(
    entry: StageLedgerEntry,
    stage: st.Stage,
    quantity: HPQuantity,
    actor,
    **destination,
) -> StageLedgerEntry:
    """Add ``quantity`` to the cumulative forwarded totals, capped by what was received.

    ``destination`` holds the ledger's dispatch fields (address, destination,
    recipient, notes); the latest dispatch overwrites them.
    """
    available = entry.remaining
    if available.total <= 0:
        raise CapacityExceeded(
            f"No units remaining at {stage.label} to dispatch to {stage.dispatch_target_label}"
        )
    excess = quantity.first_excess(available)
    if excess:
        field, requested, left = excess
        source = "remaining manufactured units" if stage.name == st.FACTORY else (
            f"remaining units at {stage.label}"
        )
        raise CapacityExceeded(
            f"{field_phrase(field, 'quantity to ' + stage.dispatch_target_label)} "
            f"({requested}) cannot exceed {source} ({left})"
        )
    return _increment(
        entry,
        FORWARDED_FIELDS,
        quantity,
        dispatched_by=actor,
        last_dispatched_at=timezone.now(),
        **destination,
    )


def inflow_complete(work_order: WorkOrder, entry: StageLedgerEntry) -> bool:
    """True once the stage has received everything it will ever get."""
    if entry.upstream_id is None:
        return entry.received == work_order.quantities
    upstream = entry.upstream
    return upstream.completed_at is not None and entry.received.covers(upstream.forwarded)


def all_dispatched(entry: StageLedgerEntry) -> bool:
    """Total and every HP bucket forwarded in full."""
    return entry.forwarded.covers(entry.received)


def progress_note(work_order: WorkOrder, stage: st.Stage, entry: StageLedgerEntry) -> str:
    pool = inflow_pool(work_order, entry.upstream)
    verb = "Manufactured" if stage.name == st.FACTORY else "Received"
    note = f"{verb} {entry.received_total} of {pool.total}"
    if stage.forwards_units:
        note += (
            f"; dispatched {entry.forwarded_total} to {stage.dispatch_target_label}, "
            f"{entry.remaining.total} remaining"
        )
    return note
