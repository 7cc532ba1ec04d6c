"""Stage operations on work orders.

Every public method runs in one transaction, locks the work order first
and validates everything before writing. Receive and dispatch share a
single implementation each; the per-stage methods only add the checks
that are specific to that handoff.
"""
from __future__ import annotations

import logging
import os

from django.db import transaction
from django.utils import timezone

from workorders.models import (
    DefectReport,
    StageDecision,
    StageLedgerEntry,
    UserProfile,
    WorkOrder,
    next_work_order_number,
)

from . import dispatch, machine, records, validation
from . import stages as st
from .errors import StageFlowError, WorkflowValidationError
from .quantities import HPQuantity

logger = logging.getLogger(__name__)

FARMER_LIST_EXTENSIONS = (".xls", ".xlsx", ".xlsm")
MAX_DEFECT_PHOTOS = 3


class WorkOrderWorkflow:
    def __init__(self, notifier=None):
        if notifier is None:
            from workorders.notifications import NullNotifier

            notifier = NullNotifier()
        self.notifier = notifier

    # ------------------------------------------------------------------
    # notifications
    # ------------------------------------------------------------------
    def _notify(self, event, *args):
        handler = getattr(self.notifier, event, None)
        if handler is None:
            return

        def send():
            try:
                handler(*args)
            except Exception:
                logger.exception("Notification %s failed; stage operation kept", event)

        transaction.on_commit(send)

    # ------------------------------------------------------------------
    # creation / cancellation
    # ------------------------------------------------------------------
    @transaction.atomic
    def create_work_order(
        self,
        actor,
        *,
        title,
        region,
        quantities: HPQuantity,
        start_date,
        timelines: dict,
        farmer_list,
    ) -> WorkOrder:
        validation.require_fields({"Title": title, "Region": region, "Start date": start_date})
        quantities.check("total quantity")
        timeline_values = validation.require_timelines(timelines)
        if farmer_list is None:
            raise WorkflowValidationError("Farmer list Excel file is required")
        original_name = os.path.basename(getattr(farmer_list, "name", "") or "")
        if not original_name.lower().endswith(FARMER_LIST_EXTENSIONS):
            raise WorkflowValidationError(
                "Farmer list must be an Excel file (.xls, .xlsx or .xlsm)"
            )
        validation.ensure_role(actor, UserProfile.ADMIN)

        work_order = WorkOrder(
            work_order_number=next_work_order_number(),
            title=title.strip(),
            region=region.strip(),
            farmer_list_original_name=original_name,
            total_quantity=quantities.total,
            hp_3_quantity=quantities.hp_3,
            hp_5_quantity=quantities.hp_5,
            hp_7_5_quantity=quantities.hp_7_5,
            start_date=start_date,
            created_by=actor,
            **timeline_values,
        )
        work_order.farmer_list_file = farmer_list
        work_order.save()
        records.create_stage_records(work_order, actor)
        logger.info(
            "Work order %s created by %s for %s units",
            work_order.work_order_number,
            actor.username,
            work_order.total_quantity,
        )
        self._notify("work_order_created", work_order, actor)
        return work_order

    @transaction.atomic
    def cancel_work_order(self, work_order_id, actor) -> WorkOrder:
        work_order = validation.load_work_order(work_order_id)
        validation.ensure_open(work_order)
        validation.ensure_role(actor, UserProfile.ADMIN)
        machine.cancel(work_order, actor)
        return work_order

    # ------------------------------------------------------------------
    # generic receive / dispatch
    # ------------------------------------------------------------------
    def _begin(self, work_order_id, stage):
        work_order = validation.load_work_order(work_order_id)
        validation.ensure_open(work_order)
        validation.ensure_current_stage(work_order, stage)
        return work_order

    def _receive(self, work_order_id, actor, stage_name, quantities: HPQuantity, extra_check=None):
        stage = st.STAGES[stage_name]
        quantities.check(stage.receive_total_label)
        work_order = self._begin(work_order_id, stage)
        upstream = None
        if stage.upstream:
            upstream = validation.ensure_upstream_dispatched(work_order, stage)
        profile = validation.ensure_role(actor, stage.role)
        if extra_check is not None:
            extra_check(work_order, profile, upstream)

        entry = dispatch.record_receipt(work_order, stage, quantities, actor, upstream)
        logger.info(
            "%s received %s for work order %s",
            stage.label,
            quantities,
            work_order.work_order_number,
        )
        if stage.name == st.FACTORY:
            machine.start_factory(work_order, actor)
        self._reset_decision(work_order, entry)
        records.update_notes(
            work_order, stage.name, dispatch.progress_note(work_order, stage, entry), actor
        )
        self._complete_if_done(work_order, entry, actor)
        return entry

    def _dispatch(self, work_order_id, actor, stage_name, quantities: HPQuantity,
                  destination=None, extra_check=None):
        stage = st.STAGES[stage_name]
        quantities.check(stage.dispatch_total_label)
        work_order = self._begin(work_order_id, stage)
        entry = validation.ensure_entry(work_order, stage)
        profile = validation.ensure_role(actor, stage.role)
        if extra_check is not None:
            extra_check(work_order, profile, entry)

        entry = dispatch.record_dispatch(entry, stage, quantities, actor, **(destination or {}))
        logger.info(
            "%s dispatched %s to %s for work order %s",
            stage.label,
            quantities,
            stage.dispatch_target_label,
            work_order.work_order_number,
        )
        records.update_notes(
            work_order, stage.name, dispatch.progress_note(work_order, stage, entry), actor
        )
        self._complete_if_done(work_order, entry, actor)
        return entry

    def _complete_if_done(self, work_order, entry: StageLedgerEntry, actor):
        """Complete the stage when inflow is final and nothing is left to act on."""
        stage = st.STAGES[entry.stage]
        if entry.completed_at is not None:
            return False
        if not dispatch.inflow_complete(work_order, entry):
            return False
        if stage.forwards_units and not dispatch.all_dispatched(entry):
            return False
        if stage.name == st.FARMER and entry.has_defect:
            return False
        if stage.name == st.INSPECTION and self._decision_status(entry) != StageDecision.APPROVED:
            return False

        from_stage, to_stage = machine.complete_stage(
            work_order, entry, actor, notes=dispatch.progress_note(work_order, stage, entry)
        )
        self._notify("stage_completed", work_order, from_stage, to_stage, actor)
        if work_order.status == WorkOrder.STATUS_COMPLETED:
            self._notify("work_order_completed", work_order, actor)
        return True

    @staticmethod
    def _decision_status(entry):
        decision = StageDecision.objects.filter(ledger_entry=entry).first()
        return decision.status if decision else StageDecision.PENDING

    def _reset_decision(self, work_order, entry):
        """Newly received units need a fresh JSR/inspection verdict."""
        if entry.stage not in (st.JSR, st.INSPECTION):
            return
        StageDecision.objects.filter(ledger_entry=entry).exclude(
            status=StageDecision.PENDING
        ).update(status=StageDecision.PENDING, updated_at=timezone.now())
        field = f"{entry.stage}_approval_status"
        if getattr(work_order, field) != WorkOrder.APPROVAL_PENDING:
            setattr(work_order, field, WorkOrder.APPROVAL_PENDING)
            work_order.save(update_fields=[field, "updated_at"])

    # ------------------------------------------------------------------
    # factory
    # ------------------------------------------------------------------
    @transaction.atomic
    def record_manufactured_units(self, work_order_id, actor, quantities: HPQuantity):
        return self._receive(work_order_id, actor, st.FACTORY, quantities)

    @transaction.atomic
    def dispatch_to_jsr(self, work_order_id, actor, quantities: HPQuantity, *,
                        state, district, taluka, village):
        validation.require_fields(
            {"State": state, "District": district, "Taluka": taluka, "Village": village}
        )
        address = (state.strip(), district.strip(), taluka.strip(), village.strip())

        def jsr_assigned(work_order, profile, entry):
            exists = UserProfile.objects.filter(
                role=UserProfile.JSR,
                state=address[0],
                district=address[1],
                taluka=address[2],
                village=address[3],
            ).exists()
            if not exists:
                raise WorkflowValidationError(
                    f"No JSR user is assigned to {validation.format_address(address)}"
                )

        return self._dispatch(
            work_order_id,
            actor,
            st.FACTORY,
            quantities,
            destination={
                "dispatch_state": address[0],
                "dispatch_district": address[1],
                "dispatch_taluka": address[2],
                "dispatch_village": address[3],
            },
            extra_check=jsr_assigned,
        )

    # ------------------------------------------------------------------
    # JSR
    # ------------------------------------------------------------------
    @transaction.atomic
    def jsr_receive(self, work_order_id, actor, quantities: HPQuantity):
        def location_matches(work_order, profile, factory_entry):
            validation.ensure_location_match(profile, factory_entry)

        return self._receive(
            work_order_id, actor, st.JSR, quantities, extra_check=location_matches
        )

    @transaction.atomic
    def jsr_decide(self, work_order_id, actor, decision, **details):
        return self._decide(work_order_id, actor, st.JSR, decision, **details)

    @transaction.atomic
    def dispatch_to_warehouse(self, work_order_id, actor, quantities: HPQuantity, *,
                              warehouse_location):
        validation.require_fields({"Warehouse location": warehouse_location})

        def approved(work_order, profile, entry):
            if self._decision_status(entry) != StageDecision.APPROVED:
                raise StageFlowError(
                    "JSR approval is required before dispatching units to the warehouse"
                )

        return self._dispatch(
            work_order_id,
            actor,
            st.JSR,
            quantities,
            destination={"destination": warehouse_location.strip()},
            extra_check=approved,
        )

    # ------------------------------------------------------------------
    # warehouse
    # ------------------------------------------------------------------
    @transaction.atomic
    def warehouse_receive(self, work_order_id, actor, quantities: HPQuantity):
        def jsr_approved(work_order, profile, jsr_entry):
            if self._decision_status(jsr_entry) != StageDecision.APPROVED:
                raise StageFlowError(
                    f"JSR has not approved work order {work_order.work_order_number}"
                )

        return self._receive(
            work_order_id, actor, st.WAREHOUSE, quantities, extra_check=jsr_approved
        )

    @transaction.atomic
    def dispatch_to_cp(self, work_order_id, actor, quantities: HPQuantity, *, region_of_cp):
        validation.require_fields({"Region of CP": region_of_cp})
        region = region_of_cp.strip()

        def cp_exists(work_order, profile, entry):
            if not UserProfile.objects.filter(role=UserProfile.CP, location=region).exists():
                raise WorkflowValidationError(f"No CP user found for region {region}")

        return self._dispatch(
            work_order_id,
            actor,
            st.WAREHOUSE,
            quantities,
            destination={"destination": region},
            extra_check=cp_exists,
        )

    # ------------------------------------------------------------------
    # CP
    # ------------------------------------------------------------------
    @transaction.atomic
    def cp_receive(self, work_order_id, actor, quantities: HPQuantity):
        return self._receive(work_order_id, actor, st.CP, quantities)

    @transaction.atomic
    def dispatch_to_contractor(self, work_order_id, actor, quantities: HPQuantity, *,
                               contractor_name, village):
        validation.require_fields({"Contractor name": contractor_name, "Village": village})
        return self._dispatch(
            work_order_id,
            actor,
            st.CP,
            quantities,
            destination={
                "recipient_name": contractor_name.strip(),
                "dispatch_village": village.strip(),
            },
        )

    # ------------------------------------------------------------------
    # contractor
    # ------------------------------------------------------------------
    @transaction.atomic
    def contractor_receive(self, work_order_id, actor, quantities: HPQuantity):
        return self._receive(work_order_id, actor, st.CONTRACTOR, quantities)

    @transaction.atomic
    def dispatch_to_farmer(self, work_order_id, actor, quantities: HPQuantity, *,
                           farmer_name, state, district, taluka, village, notes=""):
        validation.require_fields(
            {
                "Farmer name": farmer_name,
                "State": state,
                "District": district,
                "Taluka": taluka,
                "Village": village,
            }
        )
        return self._dispatch(
            work_order_id,
            actor,
            st.CONTRACTOR,
            quantities,
            destination={
                "recipient_name": farmer_name.strip(),
                "dispatch_state": state.strip(),
                "dispatch_district": district.strip(),
                "dispatch_taluka": taluka.strip(),
                "dispatch_village": village.strip(),
                "notes": notes or "",
            },
        )

    # ------------------------------------------------------------------
    # farmer
    # ------------------------------------------------------------------
    @transaction.atomic
    def farmer_receive(self, work_order_id, actor, quantities: HPQuantity):
        return self._receive(work_order_id, actor, st.FARMER, quantities)

    @transaction.atomic
    def report_defect(self, work_order_id, actor, *, issue_title, description, photos=()):
        validation.require_fields({"Issue title": issue_title, "Description": description})
        photos = [p for p in (photos or []) if p]
        if not photos:
            raise WorkflowValidationError("At least one photo is required to report a defect")
        if len(photos) > MAX_DEFECT_PHOTOS:
            raise WorkflowValidationError(
                f"At most {MAX_DEFECT_PHOTOS} photos can be attached to a defect report"
            )
        stage = st.STAGES[st.FARMER]
        work_order = self._begin(work_order_id, stage)
        entry = validation.ensure_entry(work_order, stage)
        validation.ensure_role(actor, stage.role)

        padded = photos + [""] * (MAX_DEFECT_PHOTOS - len(photos))
        DefectReport.objects.update_or_create(
            ledger_entry=entry,
            defaults={
                "issue_title": issue_title.strip(),
                "description": description.strip(),
                "photo_1": padded[0],
                "photo_2": padded[1],
                "photo_3": padded[2],
                "reported_by": actor,
                "reported_at": timezone.now(),
            },
        )
        reason = f"Defect reported: {issue_title.strip()} - {description.strip()}"
        machine.halt(work_order, st.DEFECT_REPORTED, st.FARMER, reason, actor)
        self._notify("stage_failed", work_order, st.FARMER, reason, actor)
        return entry

    # ------------------------------------------------------------------
    # inspection
    # ------------------------------------------------------------------
    @transaction.atomic
    def inspection_receive(self, work_order_id, actor, quantities: HPQuantity):
        return self._receive(work_order_id, actor, st.INSPECTION, quantities)

    @transaction.atomic
    def inspection_decide(self, work_order_id, actor, decision, **details):
        return self._decide(work_order_id, actor, st.INSPECTION, decision, **details)

    # ------------------------------------------------------------------
    # approve / reject
    # ------------------------------------------------------------------
    def _decide(self, work_order_id, actor, stage_name, decision, *, farmer_name="",
                state="", district="", taluka="", village="", photos=(), notes=""):
        stage = st.STAGES[stage_name]
        if decision not in (StageDecision.APPROVED, StageDecision.REJECTED):
            raise WorkflowValidationError(
                f"{stage.label} status must be 'approved' or 'rejected'"
            )
        photo_values = {}
        if decision == StageDecision.APPROVED:
            validation.require_fields(
                {
                    "Farmer name": farmer_name,
                    "State": state,
                    "District": district,
                    "Taluka": taluka,
                    "Village": village,
                }
            )
            photo_values = validation.require_approval_photos(photos)

        work_order = self._begin(work_order_id, stage)
        entry = validation.ensure_entry(work_order, stage)
        profile = validation.ensure_role(actor, stage.role)
        if stage.name == st.JSR:
            validation.ensure_location_match(profile, entry.upstream)

        now = timezone.now()
        StageDecision.objects.update_or_create(
            ledger_entry=entry,
            defaults={
                "status": decision,
                "farmer_name": (farmer_name or "").strip(),
                "state": (state or "").strip(),
                "district": (district or "").strip(),
                "taluka": (taluka or "").strip(),
                "village": (village or "").strip(),
                "notes": notes or "",
                "decided_by": actor,
                "decided_at": now,
                **photo_values,
            },
        )
        prefix = stage.name
        setattr(work_order, f"{prefix}_approval_status", decision)
        setattr(work_order, f"{prefix}_approved_by", actor)
        setattr(work_order, f"{prefix}_approval_date", now)
        work_order.save(
            update_fields=[
                f"{prefix}_approval_status",
                f"{prefix}_approved_by",
                f"{prefix}_approval_date",
                "updated_at",
            ]
        )
        logger.info(
            "%s %s work order %s", stage.label, decision, work_order.work_order_number
        )

        if decision == StageDecision.REJECTED:
            halted = st.REJECTED_BY_JSR if stage.name == st.JSR else st.REJECTED_BY_INSPECTION
            reason = f"Rejected by {stage.label}"
            if notes:
                reason = f"{reason}: {notes}"
            machine.halt(work_order, halted, stage.name, reason, actor)
            self._notify("stage_failed", work_order, stage.name, reason, actor)
        else:
            records.update_notes(
                work_order,
                stage.name,
                f"Approved by {actor.username}; " + dispatch.progress_note(work_order, stage, entry),
                actor,
            )
            self._complete_if_done(work_order, entry, actor)
        return entry
