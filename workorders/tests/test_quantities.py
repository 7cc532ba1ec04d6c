import pytest

from workorders.services.errors import WorkflowValidationError
from workorders.services.quantities import HPQuantity


def test_check_accepts_consistent_split():
    qty = HPQuantity(18, 6, 6, 6)
    assert qty.check() is qty


def test_sum_mismatch_names_sum_and_total():
    with pytest.raises(WorkflowValidationError) as exc:
        HPQuantity(10, 5, 3, 3).check("total quantity assigned")
    assert exc.value.message == "Sum of HP quantities (11) must equal total quantity assigned (10)"


def test_negative_bucket_rejected():
    with pytest.raises(WorkflowValidationError) as exc:
        HPQuantity(2, 3, -1, 0).check()
    assert "5 HP quantity cannot be negative (-1)" in exc.value.message


def test_zero_total_rejected_when_units_must_move():
    with pytest.raises(WorkflowValidationError) as exc:
        HPQuantity(0, 0, 0, 0).check("total quantity to JSR")
    assert exc.value.message == "Total quantity to JSR must be greater than 0"
    assert HPQuantity(0, 0, 0, 0).check(require_units=False).is_zero


def test_non_integer_rejected():
    with pytest.raises(WorkflowValidationError):
        HPQuantity(1.5, 1.5, 0, 0).check()


def test_arithmetic_and_coverage():
    received = HPQuantity(10, 4, 3, 3)
    forwarded = HPQuantity(6, 2, 2, 2)
    remaining = received - forwarded
    assert remaining == HPQuantity(4, 2, 1, 1)
    assert forwarded + remaining == received
    assert received.covers(forwarded)
    assert not forwarded.covers(received)


def test_first_excess_reports_offending_bucket():
    requested = HPQuantity(4, 1, 3, 0)
    available = HPQuantity(5, 2, 1, 2)
    assert requested.first_excess(available) == ("hp_5", 3, 1)
    assert HPQuantity(2, 1, 1, 0).first_excess(available) is None
