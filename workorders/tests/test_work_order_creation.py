import pytest

from conftest import TIMELINES, farmer_list, make_user, q
from workorders.models import StageRecord, UserProfile
from workorders.services.errors import StageAccessDenied, WorkflowValidationError


@pytest.mark.django_db
def test_create_work_order_initial_state(work_order):
    assert work_order.work_order_number == "WO01"
    assert work_order.status == "created"
    assert work_order.current_stage == "admin_created"
    assert work_order.active_stages == []
    assert work_order.farmer_list_original_name == "farmers.xlsx"
    assert work_order.farmer_list_file.name.startswith("farmer_lists/")

    records = list(work_order.stage_records.order_by("stage_order"))
    assert len(records) == 8
    assert [r.stage_name for r in records] == [
        "admin_created",
        "factory",
        "jsr",
        "whouse",
        "cp",
        "contractor",
        "farmer",
        "inspection",
    ]
    assert records[0].status == StageRecord.COMPLETED
    assert all(r.status == StageRecord.PENDING for r in records[1:])
    assert records[1].stage_data == {"timeline_days": 5}


@pytest.mark.django_db
def test_work_order_numbers_increment(pipeline):
    first = pipeline.create()
    second = pipeline.create()
    assert (first.work_order_number, second.work_order_number) == ("WO01", "WO02")


@pytest.mark.django_db
def test_hp_sum_must_match_total(pipeline):
    with pytest.raises(WorkflowValidationError) as exc:
        pipeline.create(quantities=q(18, 6, 6, 5))
    assert exc.value.message == "Sum of HP quantities (17) must equal total quantity (18)"
    assert not StageRecord.objects.exists()


@pytest.mark.django_db
def test_timelines_must_be_positive(pipeline):
    timelines = dict(TIMELINES, cp=0)
    with pytest.raises(WorkflowValidationError) as exc:
        pipeline.create(timelines=timelines)
    assert exc.value.message == "All timeline values must be positive numbers greater than 0"


@pytest.mark.django_db
def test_farmer_list_is_mandatory_excel(pipeline):
    with pytest.raises(WorkflowValidationError):
        pipeline.create(farmer_list=None)
    with pytest.raises(WorkflowValidationError) as exc:
        pipeline.create(farmer_list=farmer_list("farmers.pdf"))
    assert "Excel" in exc.value.message


@pytest.mark.django_db
def test_only_admin_creates(workflow, actors):
    with pytest.raises(StageAccessDenied):
        workflow.create_work_order(
            actors.factory,
            title="Batch",
            region="Pune",
            quantities=q(3, 1, 1, 1),
            start_date="2026-01-01",
            timelines=dict(TIMELINES),
            farmer_list=farmer_list(),
        )


@pytest.mark.django_db
def test_new_user_gets_profile_without_role():
    user = make_user("nobody", "")
    assert UserProfile.objects.get(user=user).role == ""
