"""The fixed eight-stage pump distribution chain, described as data.

Receive, dispatch and completion are implemented once and look up the
stage-specific parts (role, upstream neighbour, accepted statuses, message
labels) here.
"""
from __future__ import annotations

from dataclasses import dataclass

ADMIN_CREATED = "admin_created"
FACTORY = "factory"
JSR = "jsr"
WAREHOUSE = "whouse"
CP = "cp"
CONTRACTOR = "contractor"
FARMER = "farmer"
INSPECTION = "inspection"

# current_stage values that are not single stages
FARMER_INSPECTION = "farmer_inspection"
DEFECT_REPORTED = "defect_reported"
REJECTED_BY_JSR = "rejected_by_jsr"
REJECTED_BY_INSPECTION = "rejected_by_inspection"
COMPLETED = "completed"

HALTED_STAGES = (DEFECT_REPORTED, REJECTED_BY_JSR, REJECTED_BY_INSPECTION)

ALL_DISPATCHED = "all_units_dispatched"
UNITS_RECEIVED = "units_received"


@dataclass(frozen=True)
class Stage:
    name: str
    order: int
    label: str
    role: str
    upstream: str | None = None
    downstream: tuple = ()
    accepted_current_stages: tuple = ()
    accepted_upstream_statuses: tuple = ()
    initial_status: str = UNITS_RECEIVED
    dispatched_status: str | None = None
    receive_total_label: str = "total quantity received"
    dispatch_total_label: str = ""
    dispatch_target_label: str = ""
    timeline_field: str | None = None

    @property
    def forwards_units(self) -> bool:
        return bool(self.downstream)

    @property
    def ledger(self) -> bool:
        return self.name != ADMIN_CREATED


_STAGE_LIST = (
    Stage(
        name=ADMIN_CREATED,
        order=1,
        label="Admin",
        role="admin",
        downstream=(FACTORY,),
    ),
    Stage(
        name=FACTORY,
        order=2,
        label="Factory",
        role=FACTORY,
        downstream=(JSR,),
        accepted_current_stages=(ADMIN_CREATED, FACTORY),
        initial_status="units_entered",
        dispatched_status="dispatched_to_jsr",
        receive_total_label="total manufactured quantity",
        dispatch_total_label="total quantity to JSR",
        dispatch_target_label="JSR",
        timeline_field="factory_timeline",
    ),
    Stage(
        name=JSR,
        order=3,
        label="JSR",
        role=JSR,
        upstream=FACTORY,
        downstream=(WAREHOUSE,),
        accepted_current_stages=(JSR,),
        accepted_upstream_statuses=("dispatched_to_jsr", ALL_DISPATCHED),
        dispatched_status="dispatched_to_whouse",
        dispatch_total_label="total quantity to warehouse",
        dispatch_target_label="warehouse",
        timeline_field="jsr_timeline",
    ),
    Stage(
        name=WAREHOUSE,
        order=4,
        label="Warehouse",
        role=WAREHOUSE,
        upstream=JSR,
        downstream=(CP,),
        accepted_current_stages=(WAREHOUSE,),
        accepted_upstream_statuses=("dispatched_to_whouse", ALL_DISPATCHED),
        dispatched_status="dispatched_to_cp",
        dispatch_total_label="total quantity to CP",
        dispatch_target_label="CP",
        timeline_field="whouse_timeline",
    ),
    Stage(
        name=CP,
        order=5,
        label="CP",
        role=CP,
        upstream=WAREHOUSE,
        downstream=(CONTRACTOR,),
        accepted_current_stages=(CP,),
        accepted_upstream_statuses=("dispatched_to_cp", ALL_DISPATCHED),
        dispatched_status="dispatched_to_contractor",
        dispatch_total_label="total quantity assigned",
        dispatch_target_label="contractor",
        timeline_field="cp_timeline",
    ),
    Stage(
        name=CONTRACTOR,
        order=6,
        label="Contractor",
        role=CONTRACTOR,
        upstream=CP,
        downstream=(FARMER, INSPECTION),
        accepted_current_stages=(CONTRACTOR,),
        accepted_upstream_statuses=("dispatched_to_contractor", ALL_DISPATCHED),
        dispatched_status="dispatched_to_farmer",
        dispatch_total_label="total quantity assigned",
        dispatch_target_label="farmer and inspection",
        timeline_field="contractor_timeline",
    ),
    Stage(
        name=FARMER,
        order=7,
        label="Farmer",
        role=FARMER,
        upstream=CONTRACTOR,
        accepted_current_stages=(FARMER_INSPECTION, DEFECT_REPORTED),
        accepted_upstream_statuses=(ALL_DISPATCHED,),
        timeline_field="farmer_timeline",
    ),
    Stage(
        name=INSPECTION,
        order=8,
        label="Inspection",
        role=INSPECTION,
        upstream=CONTRACTOR,
        accepted_current_stages=(FARMER_INSPECTION, DEFECT_REPORTED),
        accepted_upstream_statuses=(ALL_DISPATCHED,),
        receive_total_label="total quantity for inspection",
        timeline_field="inspection_timeline",
    ),
)

STAGES = {stage.name: stage for stage in _STAGE_LIST}
STAGE_SEQUENCE = tuple(sorted(_STAGE_LIST, key=lambda s: s.order))
LEDGER_STAGES = tuple(s.name for s in STAGE_SEQUENCE if s.ledger)
TIMELINE_FIELDS = {s.name: s.timeline_field for s in STAGE_SEQUENCE if s.timeline_field}

STAGE_CHOICES = [(s.name, s.label) for s in STAGE_SEQUENCE]
LEDGER_STAGE_CHOICES = [(s.name, s.label) for s in STAGE_SEQUENCE if s.ledger]

CURRENT_STAGE_CHOICES = [
    (ADMIN_CREATED, "Admin created"),
    (FACTORY, "Factory"),
    (JSR, "JSR"),
    (WAREHOUSE, "Warehouse"),
    (CP, "CP"),
    (CONTRACTOR, "Contractor"),
    (FARMER_INSPECTION, "Farmer / Inspection"),
    (DEFECT_REPORTED, "Defect reported"),
    (REJECTED_BY_JSR, "Rejected by JSR"),
    (REJECTED_BY_INSPECTION, "Rejected by inspection"),
    (COMPLETED, "Completed"),
]


def get_stage(name: str) -> Stage:
    return STAGES[name]


def upstream_chain(name: str):
    """Stages that hand units to ``name``, nearest first."""
    chain = []
    current = STAGES[name].upstream
    while current:
        chain.append(STAGES[current])
        current = STAGES[current].upstream
    return chain


def roles_for_current_stage(current_stage: str):
    """Roles expected to act next for a ``current_stage`` value."""
    if current_stage in (FARMER_INSPECTION, DEFECT_REPORTED):
        return [FARMER, INSPECTION]
    stage = STAGES.get(current_stage)
    if stage is None or not stage.ledger:
        return []
    return [stage.role]
