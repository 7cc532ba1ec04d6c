from types import SimpleNamespace

import pytest
from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from workorders.models import UserProfile, WorkOrder
from workorders.services import stages as st
from workorders.services.quantities import HPQuantity
from workorders.services.workflow import WorkOrderWorkflow

PUNE = {"state": "Maharashtra", "district": "Pune", "taluka": "Haveli", "village": "Wagholi"}
NASHIK = {"state": "Maharashtra", "district": "Nashik", "taluka": "Niphad", "village": "Ozar"}
CP_REGION = "Pune Rural"
TIMELINES = {name: 5 for name in st.TIMELINE_FIELDS}
APPROVAL_PHOTOS = ["site.jpg", "lineman.jpg", "closeup.jpg"]


def q(total, hp_3, hp_5, hp_7_5):
    return HPQuantity(total, hp_3, hp_5, hp_7_5)


def farmer_list(name="farmers.xlsx"):
    return SimpleUploadedFile(
        name,
        b"PK\x03\x04farmer-list",
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def make_user(username, role, **profile):
    user = User.objects.create_user(
        username=username, password="pass", email=f"{username}@example.com"
    )
    UserProfile.objects.filter(user=user).update(role=role, **profile)
    return user


class RecordingNotifier:
    """Collects sink calls so tests can assert on them."""

    def __init__(self):
        self.events = []

    def work_order_created(self, work_order, actor):
        self.events.append(("work_order_created", work_order.work_order_number))

    def stage_completed(self, work_order, from_stage, to_stage, actor):
        self.events.append(("stage_completed", from_stage, to_stage))

    def stage_failed(self, work_order, stage, reason, actor):
        self.events.append(("stage_failed", stage, reason))

    def work_order_completed(self, work_order, actor):
        self.events.append(("work_order_completed", work_order.work_order_number))

    def deadline_warning(self, work_order, stage, days_remaining):
        self.events.append(("deadline_warning", stage, days_remaining))

    def units_not_dispatched(self, work_order, stage, remaining):
        self.events.append(("units_not_dispatched", stage, remaining))


class Pipeline:
    """Drives a work order through the chain with full quantities."""

    def __init__(self, workflow, actors):
        self.workflow = workflow
        self.actors = actors

    def create(self, quantities=None, start_date=None, **overrides):
        kwargs = {
            "title": "Solar pumps batch",
            "region": "Pune",
            "quantities": quantities or q(18, 6, 6, 6),
            "start_date": start_date or timezone.localdate(),
            "timelines": dict(TIMELINES),
            "farmer_list": farmer_list(),
        }
        kwargs.update(overrides)
        return self.workflow.create_work_order(self.actors.admin, **kwargs)

    def factory(self, wo):
        self.workflow.record_manufactured_units(wo.pk, self.actors.factory, wo.quantities)
        self.workflow.dispatch_to_jsr(wo.pk, self.actors.factory, wo.quantities, **PUNE)

    def jsr(self, wo):
        self.workflow.jsr_receive(wo.pk, self.actors.jsr, wo.quantities)
        self.approve_jsr(wo)
        self.workflow.dispatch_to_warehouse(
            wo.pk, self.actors.jsr, wo.quantities, warehouse_location="Pune Central"
        )

    def approve_jsr(self, wo):
        return self.workflow.jsr_decide(
            wo.pk,
            self.actors.jsr,
            "approved",
            farmer_name="Ramesh Patil",
            photos=APPROVAL_PHOTOS,
            **PUNE,
        )

    def warehouse(self, wo):
        self.workflow.warehouse_receive(wo.pk, self.actors.whouse, wo.quantities)
        self.workflow.dispatch_to_cp(
            wo.pk, self.actors.whouse, wo.quantities, region_of_cp=CP_REGION
        )

    def cp(self, wo):
        self.workflow.cp_receive(wo.pk, self.actors.cp, wo.quantities)
        self.workflow.dispatch_to_contractor(
            wo.pk, self.actors.cp, wo.quantities, contractor_name="Shinde Electricals", village="Wagholi"
        )

    def contractor(self, wo):
        self.workflow.contractor_receive(wo.pk, self.actors.contractor, wo.quantities)
        self.workflow.dispatch_to_farmer(
            wo.pk,
            self.actors.contractor,
            wo.quantities,
            farmer_name="Ramesh Patil",
            notes="Deliver before monsoon",
            **PUNE,
        )

    def approve_inspection(self, wo):
        return self.workflow.inspection_decide(
            wo.pk,
            self.actors.inspection,
            "approved",
            farmer_name="Ramesh Patil",
            photos=APPROVAL_PHOTOS,
            **PUNE,
        )

    def advance(self, wo, until):
        """Run full handoffs until ``current_stage`` equals ``until``."""
        steps = [self.factory, self.jsr, self.warehouse, self.cp, self.contractor]
        for step in steps:
            wo.refresh_from_db()
            if wo.current_stage == until:
                break
            step(wo)
        wo.refresh_from_db()
        assert wo.current_stage == until
        return wo


@pytest.fixture
def actors(db):
    return SimpleNamespace(
        admin=make_user("admin1", UserProfile.ADMIN),
        factory=make_user("factory1", UserProfile.FACTORY),
        jsr=make_user("jsr_pune", UserProfile.JSR, **PUNE),
        jsr_nashik=make_user("jsr_nashik", UserProfile.JSR, **NASHIK),
        whouse=make_user("whouse1", UserProfile.WAREHOUSE, warehouse_location="Pune Central"),
        cp=make_user("cp1", UserProfile.CP, location=CP_REGION),
        contractor=make_user("contractor1", UserProfile.CONTRACTOR),
        farmer=make_user("farmer1", UserProfile.FARMER, **PUNE),
        inspection=make_user("inspector1", UserProfile.INSPECTION),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(notifier):
    return WorkOrderWorkflow(notifier=notifier)


@pytest.fixture
def pipeline(workflow, actors):
    return Pipeline(workflow, actors)


@pytest.fixture
def work_order(pipeline):
    return pipeline.create()


def fetch(wo):
    return WorkOrder.objects.get(pk=wo.pk)
