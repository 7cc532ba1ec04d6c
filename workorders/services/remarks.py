"""Remarks attached to work orders and who may read them."""
from __future__ import annotations

import logging

from django.db import transaction

from workorders.models import Remark, UserProfile, WorkOrder

from .errors import RemarkNotFound, StageAccessDenied, WorkflowValidationError, WorkOrderNotFound

logger = logging.getLogger(__name__)

ROLES = {role for role, _ in UserProfile.ROLE_CHOICES}


def _role_of(user):
    # read from the database, a cached ``user.profile`` may predate a role change
    profile = UserProfile.objects.filter(user_id=user.pk).first()
    return profile.role if profile else ""


def _clean_text(text):
    if not isinstance(text, str) or not text.strip():
        raise WorkflowValidationError("Remark cannot be empty")
    return text.strip()


def normalize_access(access):
    """``None`` and ``"everyone"`` open the remark to all roles; otherwise a list of roles."""
    if access is None or access == Remark.EVERYONE:
        return [Remark.EVERYONE]
    if isinstance(access, str):
        access = [access]
    roles = []
    for role in access:
        if role != Remark.EVERYONE and role not in ROLES:
            raise WorkflowValidationError(f"Unknown role in remark access: {role}")
        if role not in roles:
            roles.append(role)
    if not roles:
        raise WorkflowValidationError("Remark access needs at least one role or 'everyone'")
    return roles


@transaction.atomic
def add_remark(work_order_id, actor, text, access=None, role_no=""):
    text = _clean_text(text)
    access = normalize_access(access)
    try:
        work_order = WorkOrder.objects.get(pk=work_order_id)
    except (WorkOrder.DoesNotExist, ValueError, TypeError):
        raise WorkOrderNotFound(f"Work order {work_order_id} not found")
    remark = Remark.objects.create(
        work_order=work_order,
        user=actor,
        remark=text,
        role_no=role_no or "",
        access=access,
    )
    logger.info(
        "%s added remark %s on work order %s", actor.username, remark.pk, work_order.work_order_number
    )
    return remark


@transaction.atomic
def edit_remark(remark_id, actor, text, work_order_id=None):
    """Only the author may change the text; access stays as created."""
    text = _clean_text(text)
    qs = Remark.objects.select_for_update()
    if work_order_id is not None:
        qs = qs.filter(work_order_id=work_order_id)
    try:
        remark = qs.get(pk=remark_id)
    except (Remark.DoesNotExist, ValueError, TypeError):
        raise RemarkNotFound("Remark not found")
    if remark.user_id != actor.pk:
        raise StageAccessDenied("Not authorized to edit this remark")
    remark.remark = text
    remark.save(update_fields=["remark", "updated_at"])
    return remark


def visible_remarks(work_order, viewer):
    """Remarks on ``work_order`` the viewer may read, newest first."""
    role = _role_of(viewer)
    remarks = Remark.objects.filter(work_order=work_order).select_related("user")
    return [r for r in remarks if r.is_visible_to(viewer, role)]
