import pytest
from rest_framework.test import APIClient

from workorders.models import PumpBarcode
from workorders.services.barcodes import register_pump, search_barcodes
from workorders.services.errors import WorkflowValidationError


def modules(count, start=0):
    return [f"OS{n:016d}" for n in range(start, start + count)]


def pump(**overrides):
    data = {
        "imei_number": "864512045678901",
        "pump_number": "P1000001",
        "motor_number": "M2000001",
        "controller_number": "C3000001",
        "pump_type": "5_HP",
        "module_barcodes": modules(9),
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
def test_register_pump(actors):
    barcode = register_pump(actors.factory, **pump(imei_number=" 864512045678901 "))
    assert barcode.imei_number == "864512045678901"
    assert barcode.uploaded_by == actors.factory
    assert len(barcode.module_barcodes) == 9


@pytest.mark.parametrize(
    "pump_type, count", [("3_HP", 6), ("5_HP", 9), ("7.5_HP", 13)]
)
@pytest.mark.django_db
def test_module_count_follows_pump_type(actors, pump_type, count):
    with pytest.raises(WorkflowValidationError) as exc:
        register_pump(actors.factory, **pump(pump_type=pump_type, module_barcodes=modules(count - 1)))
    assert exc.value.message == (
        f"Invalid number of module barcodes. Expected {count} for {pump_type} pump, "
        f"but got {count - 1}"
    )
    register_pump(actors.factory, **pump(pump_type=pump_type, module_barcodes=modules(count)))


@pytest.mark.django_db
def test_register_pump_validation(actors):
    with pytest.raises(WorkflowValidationError) as exc:
        register_pump(actors.factory, **pump(pump_type="10_HP"))
    assert exc.value.message == "Invalid pump type. Must be 3_HP, 5_HP or 7.5_HP"

    with pytest.raises(WorkflowValidationError) as exc:
        register_pump(actors.factory, **pump(motor_number=""))
    assert exc.value.message == "Motor number is required"

    bad = modules(8) + ["OS123"]
    with pytest.raises(WorkflowValidationError) as exc:
        register_pump(actors.factory, **pump(module_barcodes=bad))
    assert exc.value.message == (
        "Invalid barcode format: OS123. Barcodes must be 'OS' followed by 16 digits"
    )

    with pytest.raises(WorkflowValidationError):
        register_pump(actors.factory, **pump(module_barcodes=modules(8) + ["XS0000000000000001"]))
    assert not PumpBarcode.objects.exists()


@pytest.mark.django_db
def test_imei_is_unique(actors):
    register_pump(actors.factory, **pump())
    with pytest.raises(WorkflowValidationError) as exc:
        register_pump(actors.factory, **pump(pump_number="P1000002"))
    assert exc.value.message == "IMEI number already exists"
    assert PumpBarcode.objects.count() == 1


@pytest.mark.django_db
def test_search_barcodes(actors):
    register_pump(actors.factory, **pump())
    register_pump(
        actors.factory,
        **pump(imei_number="864512045670000", pump_number="P7777777", pump_type="3_HP",
               module_barcodes=modules(6)),
    )
    assert search_barcodes(pump_type="3_HP").get().pump_number == "P7777777"
    assert search_barcodes(search="7777").get().imei_number == "864512045670000"
    assert search_barcodes().count() == 2


@pytest.mark.django_db
def test_barcode_endpoints(actors):
    client = APIClient()
    client.force_authenticate(user=actors.factory)

    resp = client.post("/api/barcodes/", pump(), format="json")
    assert resp.status_code == 201
    body = resp.json()
    assert body["uploaded_by"]["username"] == "factory1"
    assert body["uploaded_by"]["role"] == "factory"

    resp = client.post("/api/barcodes/", pump(), format="json")
    assert resp.status_code == 400
    assert resp.json() == {"error": "IMEI number already exists"}

    resp = client.post("/api/barcodes/", pump(module_barcodes="OS0000000000000001"), format="json")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("module_barcodes:")

    listed = client.get("/api/barcodes/?pump_type=5_HP&limit=5").json()
    assert listed["count"] == 1
    assert listed["results"][0]["imei_number"] == "864512045678901"
    assert client.get("/api/barcodes/?pump_type=3_HP").json()["count"] == 0
    assert client.get(f"/api/barcodes/{body['id']}/").json()["pump_type"] == "5_HP"
