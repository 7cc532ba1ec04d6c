"""Registry of pump set serial numbers."""
from __future__ import annotations

import logging
import re

from django.db import IntegrityError, transaction
from django.db.models import Q

from workorders.models import PumpBarcode

from . import validation
from .errors import WorkflowValidationError

logger = logging.getLogger(__name__)

MODULE_BARCODE = re.compile(r"OS[0-9]{16}")


def check_module_barcodes(pump_type, module_barcodes):
    if pump_type not in PumpBarcode.MODULE_COUNTS:
        raise WorkflowValidationError("Invalid pump type. Must be 3_HP, 5_HP or 7.5_HP")
    if not isinstance(module_barcodes, (list, tuple)):
        raise WorkflowValidationError("Module barcodes must be a list")
    expected = PumpBarcode.MODULE_COUNTS[pump_type]
    if len(module_barcodes) != expected:
        raise WorkflowValidationError(
            f"Invalid number of module barcodes. Expected {expected} for {pump_type} pump, "
            f"but got {len(module_barcodes)}"
        )
    for code in module_barcodes:
        if not isinstance(code, str) or not MODULE_BARCODE.fullmatch(code):
            raise WorkflowValidationError(
                f"Invalid barcode format: {code}. Barcodes must be 'OS' followed by 16 digits"
            )


def register_pump(actor, *, imei_number, pump_number, motor_number, controller_number,
                  pump_type, module_barcodes):
    validation.require_fields(
        {
            "IMEI number": imei_number,
            "Pump number": pump_number,
            "Motor number": motor_number,
            "Controller number": controller_number,
            "Pump type": pump_type,
        }
    )
    check_module_barcodes(pump_type, module_barcodes)
    imei_number = imei_number.strip()
    if PumpBarcode.objects.filter(imei_number=imei_number).exists():
        raise WorkflowValidationError("IMEI number already exists")
    try:
        with transaction.atomic():
            barcode = PumpBarcode.objects.create(
                imei_number=imei_number,
                pump_number=pump_number.strip(),
                motor_number=motor_number.strip(),
                controller_number=controller_number.strip(),
                pump_type=pump_type,
                module_barcodes=list(module_barcodes),
                uploaded_by=actor,
            )
    except IntegrityError:
        raise WorkflowValidationError("IMEI number already exists")
    logger.info("Registered %s pump %s", pump_type, imei_number)
    return barcode


def search_barcodes(pump_type=None, search=None):
    qs = PumpBarcode.objects.select_related("uploaded_by")
    if pump_type:
        qs = qs.filter(pump_type=pump_type)
    if search:
        qs = qs.filter(
            Q(imei_number__icontains=search)
            | Q(pump_number__icontains=search)
            | Q(motor_number__icontains=search)
            | Q(controller_number__icontains=search)
        )
    return qs
