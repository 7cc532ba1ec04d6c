import logging

from django.shortcuts import get_object_or_404
from rest_framework import mixins, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from .models import Notification, PumpBarcode, WorkOrder
from .notifications import get_notifier
from .serializers import (
    DecisionInputSerializer,
    DefectInputSerializer,
    NotificationSerializer,
    PumpBarcodeInputSerializer,
    PumpBarcodeSerializer,
    QuantityInputSerializer,
    RemarkInputSerializer,
    RemarkSerializer,
    StageLedgerEntrySerializer,
    WorkOrderCreateSerializer,
    WorkOrderSerializer,
)
from .services.barcodes import register_pump, search_barcodes
from .services.deadlines import stage_deadlines
from .services.errors import WorkflowError
from .services.records import stage_progress
from .services.remarks import add_remark, edit_remark, visible_remarks
from .services.workflow import WorkOrderWorkflow
from .uploads import discard_photos, save_photos

logger = logging.getLogger(__name__)

ASSIGNED_TOTAL = "total_quantity_assigned"


def _error(exc):
    return Response({"error": exc.message}, status=exc.status_code)


def _first_error(errors):
    """Flatten DRF serializer errors into one readable message."""
    for field, messages in errors.items():
        if isinstance(messages, dict):
            messages = next(iter(messages.values()))
        message = messages[0] if isinstance(messages, list) else messages
        if field == "non_field_errors":
            return str(message)
        return f"{field}: {message}"
    return "Invalid request"


def _text(request, name):
    value = request.data.get(name, "")
    return value if isinstance(value, str) else str(value)


def _run(operation, *args, **kwargs):
    try:
        return operation(*args, **kwargs), None
    except WorkflowError as exc:
        logger.info("Rejected %s: %s", operation.__name__, exc.message)
        return None, _error(exc)
    except Exception:
        logger.exception("Unexpected error in %s", operation.__name__)
        return None, Response({"error": "Internal server error"}, status=500)


class WorkOrderViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """Work orders plus one action per stage operation.

    Stage actions answer ``{"error": message}`` with the status code of the
    rejection (400 validation/flow, 403 role/location, 404 unknown work
    order, 409 capacity).
    """

    queryset = WorkOrder.objects.all().prefetch_related("stage_records", "ledger_entries")
    serializer_class = WorkOrderSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_workflow(self):
        return WorkOrderWorkflow(notifier=get_notifier())

    def _run(self, operation, *args, **kwargs):
        return _run(operation, *args, **kwargs)

    def _run_with_photos(self, photos, operation, /, *args, **kwargs):
        """Like :meth:`_run`, removing the stored photos when the operation fails."""
        result, error = self._run(operation, *args, **kwargs)
        if error is not None:
            discard_photos(photos)
        return result, error

    def _entry_response(self, entry, status=200):
        return Response(StageLedgerEntrySerializer(entry).data, status=status)

    def _quantity_action(self, request, pk, method, total_field="total_quantity", **extra):
        form = QuantityInputSerializer(data=request.data, total_field=total_field)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        operation = getattr(self.get_workflow(), method)
        entry, error = self._run(operation, pk, request.user, form.quantity(), **extra)
        if error is not None:
            return error
        return self._entry_response(entry)

    def create(self, request, *args, **kwargs):
        form = WorkOrderCreateSerializer(data=request.data)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        work_order, error = self._run(
            self.get_workflow().create_work_order, request.user, **form.workflow_kwargs()
        )
        if error is not None:
            return error
        return Response(WorkOrderSerializer(work_order).data, status=201)

    # -- factory ------------------------------------------------------
    @action(detail=True, methods=["post"], url_path="factory/manufacture")
    def factory_manufacture(self, request, pk=None):
        return self._quantity_action(request, pk, "record_manufactured_units")

    @action(detail=True, methods=["post"], url_path="factory/dispatch")
    def factory_dispatch(self, request, pk=None):
        return self._quantity_action(
            request,
            pk,
            "dispatch_to_jsr",
            state=_text(request, "state"),
            district=_text(request, "district"),
            taluka=_text(request, "taluka"),
            village=_text(request, "village"),
        )

    # -- JSR ----------------------------------------------------------
    @action(detail=True, methods=["post"], url_path="jsr/receive")
    def jsr_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "jsr_receive")

    @action(detail=True, methods=["post"], url_path="jsr/decision")
    def jsr_decision(self, request, pk=None):
        return self._decision(request, pk, "jsr_decide", "jsr_status")

    @action(detail=True, methods=["post"], url_path="jsr/dispatch")
    def jsr_dispatch(self, request, pk=None):
        return self._quantity_action(
            request,
            pk,
            "dispatch_to_warehouse",
            warehouse_location=_text(request, "warehouse_location"),
        )

    # -- warehouse ----------------------------------------------------
    @action(detail=True, methods=["post"], url_path="warehouse/receive")
    def warehouse_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "warehouse_receive")

    @action(detail=True, methods=["post"], url_path="warehouse/dispatch")
    def warehouse_dispatch(self, request, pk=None):
        return self._quantity_action(
            request, pk, "dispatch_to_cp", region_of_cp=_text(request, "region_of_cp")
        )

    # -- CP -----------------------------------------------------------
    @action(detail=True, methods=["post"], url_path="cp/receive")
    def cp_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "cp_receive")

    @action(detail=True, methods=["post"], url_path="cp/dispatch")
    def cp_dispatch(self, request, pk=None):
        return self._quantity_action(
            request,
            pk,
            "dispatch_to_contractor",
            total_field=ASSIGNED_TOTAL,
            contractor_name=_text(request, "contractor_name"),
            village=_text(request, "village"),
        )

    # -- contractor ---------------------------------------------------
    @action(detail=True, methods=["post"], url_path="contractor/receive")
    def contractor_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "contractor_receive")

    @action(detail=True, methods=["post"], url_path="contractor/dispatch")
    def contractor_dispatch(self, request, pk=None):
        return self._quantity_action(
            request,
            pk,
            "dispatch_to_farmer",
            total_field=ASSIGNED_TOTAL,
            farmer_name=_text(request, "name_of_farmer"),
            state=_text(request, "state"),
            district=_text(request, "district"),
            taluka=_text(request, "taluka"),
            village=_text(request, "village"),
            notes=_text(request, "notes"),
        )

    # -- farmer -------------------------------------------------------
    @action(detail=True, methods=["post"], url_path="farmer/receive")
    def farmer_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "farmer_receive")

    @action(detail=True, methods=["post"], url_path="farmer/defect")
    def farmer_defect(self, request, pk=None):
        form = DefectInputSerializer(data=request.data)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        photos = save_photos(form.images(), f"defects/{pk}")
        entry, error = self._run_with_photos(
            photos,
            self.get_workflow().report_defect,
            pk,
            request.user,
            issue_title=_text(request, "issue_title"),
            description=_text(request, "description"),
            photos=photos,
        )
        if error is not None:
            return error
        return self._entry_response(entry)

    # -- inspection ---------------------------------------------------
    @action(detail=True, methods=["post"], url_path="inspection/receive")
    def inspection_receive(self, request, pk=None):
        return self._quantity_action(request, pk, "inspection_receive")

    @action(detail=True, methods=["post"], url_path="inspection/decision")
    def inspection_decision(self, request, pk=None):
        return self._decision(request, pk, "inspection_decide", "inspection_status")

    def _decision(self, request, pk, method, status_field):
        form = DecisionInputSerializer(data=request.data)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        photos = save_photos(form.images(), f"approvals/{pk}")
        entry, error = self._run_with_photos(
            photos,
            getattr(self.get_workflow(), method),
            pk,
            request.user,
            _text(request, status_field),
            farmer_name=_text(request, "farmer_name"),
            state=_text(request, "state"),
            district=_text(request, "district"),
            taluka=_text(request, "taluka"),
            village=_text(request, "village"),
            photos=photos,
            notes=_text(request, "notes"),
        )
        if error is not None:
            return error
        return self._entry_response(entry)

    # -- admin / reporting --------------------------------------------
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        work_order, error = self._run(self.get_workflow().cancel_work_order, pk, request.user)
        if error is not None:
            return error
        return Response({"status": work_order.status})

    @action(detail=True, methods=["get"], url_path="progress")
    def progress(self, request, pk=None):
        work_order = get_object_or_404(WorkOrder, pk=pk)
        return Response(stage_progress(work_order))

    @action(detail=True, methods=["get"], url_path="deadlines")
    def deadlines(self, request, pk=None):
        work_order = get_object_or_404(WorkOrder, pk=pk)
        return Response([d.as_dict() for d in stage_deadlines(work_order)])

    # -- remarks ------------------------------------------------------
    @action(detail=True, methods=["get", "post"], url_path="remarks")
    def remarks(self, request, pk=None):
        if request.method == "GET":
            work_order = get_object_or_404(WorkOrder, pk=pk)
            remarks = visible_remarks(work_order, request.user)
            return Response(RemarkSerializer(remarks, many=True).data)
        form = RemarkInputSerializer(data=request.data)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        data = form.validated_data
        remark, error = self._run(
            add_remark,
            pk,
            request.user,
            data.get("remark", ""),
            access=data.get("access"),
            role_no=data.get("role_no", ""),
        )
        if error is not None:
            return error
        return Response(RemarkSerializer(remark).data, status=201)

    @action(detail=True, methods=["put", "patch"], url_path=r"remarks/(?P<remark_id>\d+)")
    def update_remark(self, request, pk=None, remark_id=None):
        remark, error = self._run(
            edit_remark, remark_id, request.user, _text(request, "remark"), work_order_id=pk
        )
        if error is not None:
            return error
        return Response(RemarkSerializer(remark).data)


class BarcodePagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 100


class PumpBarcodeViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """Pump set serial numbers, filterable by ``pump_type`` and ``search``."""

    serializer_class = PumpBarcodeSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = BarcodePagination
    queryset = PumpBarcode.objects.all()

    def get_queryset(self):
        params = self.request.query_params
        return search_barcodes(pump_type=params.get("pump_type"), search=params.get("search"))

    def create(self, request, *args, **kwargs):
        form = PumpBarcodeInputSerializer(data=request.data)
        if not form.is_valid():
            return Response({"error": _first_error(form.errors)}, status=400)
        barcode, error = _run(register_pump, request.user, **form.validated_data)
        if error is not None:
            return error
        return Response(PumpBarcodeSerializer(barcode).data, status=201)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        qs = Notification.objects.filter(user=self.request.user)
        if self.request.query_params.get("unread") in ("1", "true", "yes"):
            qs = qs.filter(is_read=False)
        return qs

    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_read()
        return Response(NotificationSerializer(notification).data)
