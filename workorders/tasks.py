import logging

from celery import shared_task
from django.utils import timezone

from .models import StageLedgerEntry, WorkOrder
from .notifications import cleanup_old_notifications as _cleanup, get_notifier
from .services import machine
from .services import stages as st
from .services.deadlines import calculate_stage_deadline

logger = logging.getLogger(__name__)

WARNING_WINDOW_DAYS = 3


def _open_work_orders():
    return WorkOrder.objects.filter(
        status__in=[WorkOrder.STATUS_CREATED, WorkOrder.STATUS_IN_PROGRESS]
    )


def check_approaching_deadlines_sync(now=None, notifier=None):
    """Warn every stage whose deadline falls within the next three days.

    Returns the number of warnings handed to the notifier.
    """
    now = now or timezone.now()
    notifier = notifier or get_notifier()
    sent = 0
    for work_order in _open_work_orders():
        for stage_name in machine.pending_stages(work_order):
            deadline = calculate_stage_deadline(stage_name, work_order, now)
            if 0 < deadline.days_remaining <= WARNING_WINDOW_DAYS and not deadline.is_overdue:
                try:
                    notifier.deadline_warning(work_order, stage_name, deadline.days_remaining)
                    sent += 1
                except Exception:
                    logger.exception(
                        "Deadline warning failed for %s/%s",
                        work_order.work_order_number,
                        stage_name,
                    )
    logger.info("Deadline check sent %d warning(s)", sent)
    return sent


def check_units_not_dispatched_sync(now=None, notifier=None):
    """Remind stages still holding received units after their deadline passed."""
    now = now or timezone.now()
    notifier = notifier or get_notifier()
    sent = 0
    for work_order in _open_work_orders():
        for stage_name in machine.pending_stages(work_order):
            if not st.STAGES[stage_name].forwards_units:
                continue
            entry = StageLedgerEntry.objects.filter(
                work_order=work_order, stage=stage_name
            ).first()
            if entry is None or entry.remaining.total <= 0:
                continue
            if not calculate_stage_deadline(stage_name, work_order, now).is_overdue:
                continue
            try:
                notifier.units_not_dispatched(work_order, stage_name, entry.remaining.total)
                sent += 1
            except Exception:
                logger.exception(
                    "Undispatched-units reminder failed for %s/%s",
                    work_order.work_order_number,
                    stage_name,
                )
    logger.info("Undispatched-units check sent %d reminder(s)", sent)
    return sent


@shared_task
def check_approaching_deadlines():
    return check_approaching_deadlines_sync()


@shared_task
def check_units_not_dispatched():
    return check_units_not_dispatched_sync()


@shared_task
def cleanup_old_notifications(days=None):
    deleted = _cleanup(days=days)
    logger.info("Removed %d old notification(s)", deleted)
    return deleted
