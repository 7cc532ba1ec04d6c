import os
from io import BytesIO

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient

from conftest import CP_REGION, NASHIK, PUNE, TIMELINES, farmer_list, q
from workorders.models import DefectReport, Notification, StageDecision, StageLedgerEntry


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def image(name):
    buf = BytesIO()
    Image.new("RGB", (4, 4), "green").save(buf, "PNG")
    return SimpleUploadedFile(name, buf.getvalue(), content_type="image/png")


def stored_files(media_root, folder):
    path = os.path.join(media_root, folder)
    if not os.path.isdir(path):
        return []
    return os.listdir(path)


def create_payload(**overrides):
    data = {
        "title": "Solar pumps batch",
        "region": "Pune",
        "total_quantity": 18,
        "hp_3_quantity": 6,
        "hp_5_quantity": 6,
        "hp_7_5_quantity": 6,
        "start_date": "2026-03-01",
        "farmer_list_file": farmer_list(),
    }
    data.update({f"{name}_timeline": days for name, days in TIMELINES.items()})
    data.update(overrides)
    return data


def url(wo, action=""):
    base = f"/api/work-orders/{wo.pk}/"
    return f"{base}{action}/" if action else base


@pytest.mark.django_db
def test_admin_creates_work_order(actors):
    resp = client_for(actors.admin).post(
        "/api/work-orders/", create_payload(), format="multipart"
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["work_order_number"] == "WO01"
    assert body["current_stage"] == "admin_created"
    assert len(body["stage_records"]) == 8


@pytest.mark.django_db
def test_create_errors(actors):
    admin = client_for(actors.admin)
    resp = admin.post(
        "/api/work-orders/", create_payload(hp_7_5_quantity=5), format="multipart"
    )
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Sum of HP quantities (17) must equal total quantity (18)"
    }

    resp = admin.post("/api/work-orders/", create_payload(title=""), format="multipart")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("title:")

    resp = client_for(actors.factory).post(
        "/api/work-orders/", create_payload(), format="multipart"
    )
    assert resp.status_code == 403
    assert resp.json() == {"error": "Access denied. Only Admin users can perform this operation"}


@pytest.mark.django_db
def test_requires_authentication(work_order):
    resp = APIClient().get("/api/work-orders/")
    assert resp.status_code in (401, 403)


@pytest.mark.django_db
def test_factory_endpoints(actors, work_order):
    factory = client_for(actors.factory)
    resp = factory.post(
        url(work_order, "factory/manufacture"),
        {"total_quantity": 10, "hp_3": 4, "hp_5": 3, "hp_7_5": 3},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["received"] == {"total": 10, "hp_3": 4, "hp_5": 3, "hp_7_5": 3}
    assert resp.json()["status"] == "units_entered"

    resp = factory.post(
        url(work_order, "factory/manufacture"),
        {"total_quantity": 9, "hp_3": 3, "hp_5": 3, "hp_7_5": 3},
        format="json",
    )
    assert resp.status_code == 409

    resp = factory.post(
        url(work_order, "factory/dispatch"),
        dict(PUNE, total_quantity=10, hp_3=4, hp_5=3, hp_7_5=3),
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["dispatch_village"] == "Wagholi"

    resp = factory.post(
        url(work_order, "factory/manufacture"),
        {"hp_3": 1, "hp_5": 0, "hp_7_5": 0},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("total_quantity:")


@pytest.mark.django_db
def test_hp_split_fields_are_required(actors, work_order):
    factory = client_for(actors.factory)
    resp = factory.post(
        url(work_order, "factory/manufacture"),
        {"total_quantity": 6, "hp_5": 3, "hp_7_5": 3},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "hp_3: This field is required."}
    assert StageLedgerEntry.objects.filter(work_order=work_order).count() == 0

    payload = create_payload()
    del payload["hp_7_5_quantity"]
    resp = client_for(actors.admin).post("/api/work-orders/", payload, format="multipart")
    assert resp.status_code == 400
    assert resp.json() == {"error": "hp_7_5_quantity: This field is required."}


@pytest.mark.django_db
def test_unknown_work_order_is_404(actors):
    resp = client_for(actors.factory).post(
        "/api/work-orders/999/factory/manufacture/",
        {"total_quantity": 1, "hp_3": 1, "hp_5": 0, "hp_7_5": 0},
        format="json",
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "Work order 999 not found"}


@pytest.mark.django_db
def test_jsr_location_mismatch_is_403(actors, pipeline, work_order):
    pipeline.factory(work_order)
    resp = client_for(actors.jsr_nashik).post(
        url(work_order, "jsr/receive"),
        {"total_quantity": 18, "hp_3": 6, "hp_5": 6, "hp_7_5": 6},
        format="json",
    )
    assert resp.status_code == 403
    assert ", ".join(NASHIK.values()) in resp.json()["error"]


@pytest.mark.django_db
def test_jsr_decision_with_photo_uploads(actors, pipeline, workflow, work_order):
    pipeline.factory(work_order)
    workflow.jsr_receive(work_order.pk, actors.jsr, work_order.quantities)

    resp = client_for(actors.jsr).post(
        url(work_order, "jsr/decision"),
        dict(
            PUNE,
            jsr_status="approved",
            farmer_name="Ramesh Patil",
            installation_site_photo=image("site.png"),
            lineman_installation_set_photo=image("lineman.png"),
            set_close_up_photo=image("closeup.png"),
        ),
        format="multipart",
    )
    assert resp.status_code == 200
    assert resp.json()["decision"]["status"] == "approved"
    decision = StageDecision.objects.get(ledger_entry__stage="jsr")
    assert decision.installation_site_photo.startswith(f"approvals/{work_order.pk}/")

    resp = client_for(actors.jsr).post(
        url(work_order, "jsr/decision"),
        dict(PUNE, jsr_status="approved", farmer_name="Ramesh Patil",
             installation_site_photo=SimpleUploadedFile("notes.txt", b"text")),
        format="multipart",
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("installation_site_photo:")


@pytest.mark.django_db
def test_non_image_upload_is_rejected_before_storage(actors, pipeline, settings, tmp_path, work_order):
    settings.MEDIA_ROOT = str(tmp_path)
    wo = pipeline.advance(work_order, "farmer_inspection")
    pipeline.workflow.farmer_receive(wo.pk, actors.farmer, q(10, 4, 3, 3))

    resp = client_for(actors.farmer).post(
        url(wo, "farmer/defect"),
        {"issue_title": "Motor noise", "description": "Grinding at start",
         "photo_1": SimpleUploadedFile("a.jpg", b"this is not an image", content_type="image/jpeg")},
        format="multipart",
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("photo_1:")
    assert stored_files(tmp_path, f"defects/{wo.pk}") == []
    assert not DefectReport.objects.exists()

    resp = client_for(actors.farmer).post(
        url(wo, "farmer/defect"),
        {"issue_title": "Motor noise", "description": "Grinding at start",
         "photo_1": image("motor.png")},
        format="multipart",
    )
    assert resp.status_code == 200
    report = DefectReport.objects.get()
    assert report.photo_1.startswith(f"defects/{wo.pk}/")
    assert len(stored_files(tmp_path, f"defects/{wo.pk}")) == 1


@pytest.mark.django_db
def test_rejected_requests_leave_no_uploads(actors, pipeline, settings, tmp_path, work_order):
    settings.MEDIA_ROOT = str(tmp_path)
    resp = client_for(actors.farmer).post(
        url(work_order, "farmer/defect"),
        {"issue_title": "Motor noise", "description": "Grinding at start",
         "photos": [image("one.png"), image("two.png")]},
        format="multipart",
    )
    assert resp.status_code == 400
    assert stored_files(tmp_path, f"defects/{work_order.pk}") == []

    pipeline.factory(work_order)
    resp = client_for(actors.jsr).post(
        url(work_order, "jsr/decision"),
        dict(PUNE, jsr_status="approved", farmer_name="Ramesh Patil",
             installation_site_photo=image("site.png"),
             lineman_installation_set_photo=image("lineman.png"),
             set_close_up_photo=image("closeup.png")),
        format="multipart",
    )
    assert resp.status_code == 400
    assert stored_files(tmp_path, f"approvals/{work_order.pk}") == []
    assert not StageDecision.objects.exists()


@pytest.mark.django_db
def test_contractor_assignment_uses_assigned_total(actors, pipeline, workflow):
    wo = pipeline.create()
    pipeline.advance(wo, "cp")
    workflow.cp_receive(wo.pk, actors.cp, wo.quantities)
    cp = client_for(actors.cp)

    resp = cp.post(
        url(wo, "cp/dispatch"),
        {"total_quantity_assigned": 18, "hp_3": 7, "hp_5": 6, "hp_7_5": 6,
         "contractor_name": "Shinde", "village": "Wagholi"},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Sum of HP quantities (19) must equal total quantity assigned (18)"
    }

    resp = cp.post(
        url(wo, "cp/dispatch"),
        {"total_quantity_assigned": 18, "hp_3": 6, "hp_5": 6, "hp_7_5": 6,
         "contractor_name": "Shinde", "village": "Wagholi"},
        format="json",
    )
    assert resp.status_code == 200
    assert StageLedgerEntry.objects.get(work_order=wo, stage="cp").recipient_name == "Shinde"


@pytest.mark.django_db
def test_warehouse_dispatch_unknown_region_is_400(actors, pipeline, workflow, work_order):
    wo = pipeline.advance(work_order, "whouse")
    workflow.warehouse_receive(wo.pk, actors.whouse, wo.quantities)
    resp = client_for(actors.whouse).post(
        url(wo, "warehouse/dispatch"),
        {"total_quantity": 18, "hp_3": 6, "hp_5": 6, "hp_7_5": 6, "region_of_cp": "Mumbai"},
        format="json",
    )
    assert resp.status_code == 400
    resp = client_for(actors.whouse).post(
        url(wo, "warehouse/dispatch"),
        {"total_quantity": 18, "hp_3": 6, "hp_5": 6, "hp_7_5": 6, "region_of_cp": CP_REGION},
        format="json",
    )
    assert resp.status_code == 200


@pytest.mark.django_db
def test_progress_and_deadlines(actors, pipeline, work_order):
    pipeline.factory(work_order)
    client = client_for(actors.admin)

    progress = client.get(url(work_order, "progress")).json()
    assert progress["current_stage"] == "jsr"
    assert progress["progress_percentage"] == 25

    deadlines = client.get(url(work_order, "deadlines")).json()
    assert [d["stage"] for d in deadlines][:2] == ["factory", "jsr"]
    assert client.get("/api/work-orders/999/progress/").status_code == 404


@pytest.mark.django_db
def test_cancel_endpoint(actors, work_order):
    assert client_for(actors.factory).post(url(work_order, "cancel")).status_code == 403
    resp = client_for(actors.admin).post(url(work_order, "cancel"))
    assert resp.status_code == 200
    assert resp.json() == {"status": "cancelled"}
    assert client_for(actors.admin).post(url(work_order, "cancel")).status_code == 400


@pytest.mark.django_db
def test_notifications_are_per_user(actors, work_order):
    mine = Notification.objects.create(
        user=actors.factory, type=Notification.TYPE_UNITS_ASSIGNED, title="t", message="m"
    )
    Notification.objects.create(
        user=actors.admin, type=Notification.TYPE_WORK_ORDER_CREATED, title="t", message="m"
    )
    client = client_for(actors.factory)
    listed = client.get("/api/notifications/").json()
    assert [n["id"] for n in listed] == [mine.pk]

    resp = client.post(f"/api/notifications/{mine.pk}/mark-read/")
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True
    assert client.get("/api/notifications/?unread=1").json() == []
