"""Stage deadlines derived from the planned timelines of a work order.

Read-only: nothing here changes the state of a work order.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from django.conf import settings
from django.utils import timezone

from . import stages as st


@dataclass(frozen=True)
class StageDeadline:
    stage: str
    stage_start_date: datetime
    deadline_date: datetime
    days_remaining: int
    is_overdue: bool

    def as_dict(self):
        return {
            "stage": self.stage,
            "stage_start_date": self.stage_start_date.isoformat(),
            "deadline_date": self.deadline_date.isoformat(),
            "days_remaining": self.days_remaining,
            "is_overdue": self.is_overdue,
        }


def effective_start(work_order, now=None) -> datetime:
    """Planned start date, or the creation time when the start date is long past."""
    now = now or timezone.now()
    start = datetime.combine(work_order.start_date, time.min)
    if timezone.is_naive(start):
        start = timezone.make_aware(start, timezone.get_current_timezone())
    grace = getattr(settings, "PUMP_START_DATE_GRACE_DAYS", 30)
    if start < now - timedelta(days=grace) and work_order.created_at:
        return work_order.created_at
    return start


def calculate_stage_deadline(stage_name, work_order, now=None) -> StageDeadline:
    """Deadline of one downstream stage.

    A stage starts once every stage upstream of it has used up its
    timeline; farmer and inspection both start after the contractor.
    """
    now = now or timezone.now()
    stage = st.STAGES[stage_name]
    if not stage.timeline_field:
        raise ValueError(f"Stage {stage_name} has no timeline")
    offset = sum(work_order.timeline_for(s.name) for s in st.upstream_chain(stage_name))
    stage_start = effective_start(work_order, now) + timedelta(days=offset)
    deadline = stage_start + timedelta(days=work_order.timeline_for(stage_name))
    seconds_left = (deadline - now).total_seconds()
    return StageDeadline(
        stage=stage_name,
        stage_start_date=stage_start,
        deadline_date=deadline,
        days_remaining=max(0, math.ceil(seconds_left / 86400)),
        is_overdue=now > deadline,
    )


def stage_deadlines(work_order, now=None):
    return [
        calculate_stage_deadline(name, work_order, now)
        for name in st.TIMELINE_FIELDS
    ]
