import pytest
from rest_framework.test import APIClient

from workorders.models import Remark
from workorders.services.errors import (
    RemarkNotFound,
    StageAccessDenied,
    WorkflowValidationError,
    WorkOrderNotFound,
)
from workorders.services.remarks import add_remark, edit_remark, visible_remarks


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.mark.django_db
def test_add_remark_defaults_to_everyone(actors, work_order):
    remark = add_remark(work_order.pk, actors.factory, "  Casting delayed by two days  ")
    assert remark.remark == "Casting delayed by two days"
    assert remark.access == ["everyone"]
    assert [r.pk for r in visible_remarks(work_order, actors.farmer)] == [remark.pk]


@pytest.mark.django_db
def test_add_remark_validation(actors, work_order):
    with pytest.raises(WorkflowValidationError) as exc:
        add_remark(work_order.pk, actors.factory, "   ")
    assert exc.value.message == "Remark cannot be empty"

    with pytest.raises(WorkflowValidationError) as exc:
        add_remark(work_order.pk, actors.factory, "Note", access=["factory", "driver"])
    assert exc.value.message == "Unknown role in remark access: driver"

    with pytest.raises(WorkOrderNotFound):
        add_remark(999, actors.factory, "Note")
    assert not Remark.objects.exists()


@pytest.mark.django_db
def test_restricted_remark_visibility(actors, work_order):
    private = add_remark(work_order.pk, actors.factory, "Pricing note", access=["cp", "cp"])
    assert private.access == ["cp"]
    public = add_remark(work_order.pk, actors.jsr, "Site looks ready", access="everyone")

    def seen_by(user):
        return {r.pk for r in visible_remarks(work_order, user)}

    assert seen_by(actors.cp) == {private.pk, public.pk}
    assert seen_by(actors.factory) == {private.pk, public.pk}
    assert seen_by(actors.admin) == {private.pk, public.pk}
    assert seen_by(actors.contractor) == {public.pk}


@pytest.mark.django_db
def test_only_author_edits_remark(actors, work_order):
    remark = add_remark(work_order.pk, actors.factory, "Casting delayed")

    with pytest.raises(StageAccessDenied) as exc:
        edit_remark(remark.pk, actors.admin, "Changed")
    assert exc.value.message == "Not authorized to edit this remark"

    with pytest.raises(RemarkNotFound) as exc:
        edit_remark(remark.pk + 100, actors.factory, "Changed")
    assert exc.value.message == "Remark not found"

    with pytest.raises(WorkflowValidationError):
        edit_remark(remark.pk, actors.factory, "")

    edited = edit_remark(remark.pk, actors.factory, "Casting delayed by a week")
    assert edited.remark == "Casting delayed by a week"
    assert edited.access == ["everyone"]


@pytest.mark.django_db
def test_remarks_endpoints(actors, work_order):
    factory = client_for(actors.factory)
    url = f"/api/work-orders/{work_order.pk}/remarks/"

    resp = factory.post(url, {"remark": "Need more crates", "access": ["jsr"]}, format="json")
    assert resp.status_code == 201
    body = resp.json()
    assert body["user_name"] == "factory1"
    assert body["role"] == "factory"
    assert body["access"] == ["jsr"]

    assert factory.post(url, {"remark": ""}, format="json").json() == {
        "error": "Remark cannot be empty"
    }
    assert [r["remark"] for r in client_for(actors.jsr).get(url).json()] == ["Need more crates"]
    assert client_for(actors.whouse).get(url).json() == []

    edit_url = f"{url}{body['id']}/"
    resp = client_for(actors.jsr).put(edit_url, {"remark": "Hijacked"}, format="json")
    assert resp.status_code == 403
    resp = factory.put(edit_url, {"remark": "Need 20 more crates"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["remark"] == "Need 20 more crates"

    other = f"/api/work-orders/{work_order.pk + 1}/remarks/{body['id']}/"
    assert factory.put(other, {"remark": "x"}, format="json").status_code == 404
