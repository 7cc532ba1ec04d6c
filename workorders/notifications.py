"""Notification sinks handed to :class:`WorkOrderWorkflow`.

A sink is any object with some of the methods below; the workflow calls
them after the stage operation has committed and logs, then discards,
whatever they raise.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import User
from django.core.mail import send_mail
from django.utils import timezone
from django.utils.module_loading import import_string

from .models import Notification, StageLedgerEntry, UserProfile
from .services import stages as st

logger = logging.getLogger(__name__)


class NullNotifier:
    """Sink that drops every event."""

    def work_order_created(self, work_order, actor):
        pass

    def stage_completed(self, work_order, from_stage, to_stage, actor):
        pass

    def stage_failed(self, work_order, stage, reason, actor):
        pass

    def work_order_completed(self, work_order, actor):
        pass

    def deadline_warning(self, work_order, stage, days_remaining):
        pass

    def units_not_dispatched(self, work_order, stage, remaining):
        pass


def deadline_priority(days_remaining):
    if days_remaining <= 1:
        return Notification.PRIORITY_URGENT
    if days_remaining <= 3:
        return Notification.PRIORITY_HIGH
    return Notification.PRIORITY_MEDIUM


class DatabaseNotifier(NullNotifier):
    """Store one :class:`Notification` per recipient and optionally email them."""

    def __init__(self, send_emails=None):
        if send_emails is None:
            send_emails = getattr(settings, "PUMP_NOTIFICATION_EMAILS", False)
        self.send_emails = send_emails

    # recipients ---------------------------------------------------------
    def users_with_role(self, role):
        return list(
            User.objects.filter(is_active=True, profile__role=role).select_related("profile")
        )

    def stage_users(self, work_order, stage_name):
        """Users of the stage's role, narrowed to the dispatch target where one is known."""
        qs = User.objects.filter(is_active=True, profile__role=st.STAGES[stage_name].role)
        if stage_name == st.JSR:
            factory = StageLedgerEntry.objects.filter(
                work_order=work_order, stage=st.FACTORY
            ).first()
            if factory and all(factory.dispatch_address()):
                state, district, taluka, village = factory.dispatch_address()
                qs = qs.filter(
                    profile__state=state,
                    profile__district=district,
                    profile__taluka=taluka,
                    profile__village=village,
                )
        elif stage_name == st.CP:
            warehouse = StageLedgerEntry.objects.filter(
                work_order=work_order, stage=st.WAREHOUSE
            ).first()
            if warehouse and warehouse.destination:
                qs = qs.filter(profile__location=warehouse.destination)
        return list(qs.select_related("profile"))

    # delivery -----------------------------------------------------------
    def _send(self, users, role, type, title, message, work_order=None, data=None,
              priority=Notification.PRIORITY_MEDIUM):
        created = []
        for user in users:
            created.append(
                Notification.objects.create(
                    user=user,
                    user_role=role or getattr(getattr(user, "profile", None), "role", ""),
                    type=type,
                    title=title,
                    message=message,
                    data=data or {},
                    work_order=work_order,
                    priority=priority,
                )
            )
        if self.send_emails:
            recipients = [u.email for u in users if u.email]
            if recipients:
                send_mail(title, message, settings.DEFAULT_FROM_EMAIL, recipients)
        logger.debug("Sent %s notification to %d user(s)", type, len(created))
        return created

    @staticmethod
    def _payload(work_order, **extra):
        data = {
            "work_order_id": work_order.pk,
            "work_order_number": work_order.work_order_number,
        }
        data.update(extra)
        return data

    # events -------------------------------------------------------------
    def work_order_created(self, work_order, actor):
        data = self._payload(work_order, total_quantity=work_order.total_quantity)
        self._send(
            self.users_with_role(UserProfile.ADMIN),
            UserProfile.ADMIN,
            Notification.TYPE_WORK_ORDER_CREATED,
            f"Work order {work_order.work_order_number} created",
            f"{work_order.title} for {work_order.region}: {work_order.quantities}",
            work_order,
            data,
        )
        self._send(
            self.users_with_role(UserProfile.FACTORY),
            UserProfile.FACTORY,
            Notification.TYPE_UNITS_ASSIGNED,
            f"New units assigned: {work_order.work_order_number}",
            f"Manufacture {work_order.quantities} within {work_order.factory_timeline} days",
            work_order,
            data,
            Notification.PRIORITY_HIGH,
        )

    def stage_completed(self, work_order, from_stage, to_stage, actor):
        data = self._payload(work_order, from_stage=from_stage, to_stage=to_stage)
        for role in st.roles_for_current_stage(to_stage):
            stage_name = role
            self._send(
                self.stage_users(work_order, stage_name),
                role,
                Notification.TYPE_STAGE_READY,
                f"Work order {work_order.work_order_number} ready for {st.STAGES[stage_name].label}",
                f"{st.STAGES[from_stage].label} has dispatched all units. Please receive them.",
                work_order,
                data,
                Notification.PRIORITY_HIGH,
            )
        self._send(
            self.users_with_role(UserProfile.ADMIN),
            UserProfile.ADMIN,
            Notification.TYPE_STAGE_COMPLETED,
            f"{st.STAGES[from_stage].label} stage completed",
            f"Work order {work_order.work_order_number} moved from {from_stage} to {to_stage}",
            work_order,
            data,
        )

    def stage_failed(self, work_order, stage, reason, actor):
        self._send(
            self.users_with_role(UserProfile.ADMIN),
            UserProfile.ADMIN,
            Notification.TYPE_STAGE_FAILED,
            f"Work order {work_order.work_order_number} stopped at {st.STAGES[stage].label}",
            reason,
            work_order,
            self._payload(work_order, stage=stage),
            Notification.PRIORITY_URGENT,
        )

    def work_order_completed(self, work_order, actor):
        self._send(
            self.users_with_role(UserProfile.ADMIN),
            UserProfile.ADMIN,
            Notification.TYPE_WORK_ORDER_COMPLETED,
            f"Work order {work_order.work_order_number} completed",
            f"All {work_order.total_quantity} units delivered and inspected",
            work_order,
            self._payload(work_order),
        )

    def _recently_warned(self, work_order, stage, *types):
        since = timezone.now() - timedelta(hours=24)
        return Notification.objects.filter(
            work_order=work_order,
            type__in=types,
            data__stage=stage,
            created_at__gte=since,
        ).exists()

    def deadline_warning(self, work_order, stage, days_remaining):
        # admin copies count so a stage without active users still warns once a day
        if self._recently_warned(
            work_order,
            stage,
            Notification.TYPE_DEADLINE_WARNING,
            Notification.TYPE_DEADLINE_WARNING_ADMIN,
        ):
            return
        priority = deadline_priority(days_remaining)
        label = st.STAGES[stage].label
        data = self._payload(work_order, stage=stage, days_remaining=days_remaining)
        message = (
            f"{label} stage of work order {work_order.work_order_number} is due in "
            f"{days_remaining} day(s)"
        )
        self._send(
            self.stage_users(work_order, stage),
            st.STAGES[stage].role,
            Notification.TYPE_DEADLINE_WARNING,
            f"Deadline approaching: {work_order.work_order_number}",
            message,
            work_order,
            data,
            priority,
        )
        self._send(
            self.users_with_role(UserProfile.ADMIN),
            UserProfile.ADMIN,
            Notification.TYPE_DEADLINE_WARNING_ADMIN,
            f"Deadline approaching: {work_order.work_order_number} ({label})",
            message,
            work_order,
            data,
            priority,
        )

    def units_not_dispatched(self, work_order, stage, remaining):
        if self._recently_warned(work_order, stage, Notification.TYPE_UNITS_NOT_DISPATCHED):
            return
        label = st.STAGES[stage].label
        self._send(
            self.stage_users(work_order, stage),
            st.STAGES[stage].role,
            Notification.TYPE_UNITS_NOT_DISPATCHED,
            f"Units waiting at {label}: {work_order.work_order_number}",
            f"{remaining} unit(s) received at {label} have not been dispatched yet",
            work_order,
            self._payload(work_order, stage=stage, remaining=remaining),
            Notification.PRIORITY_LOW,
        )


def get_notifier():
    """Instantiate the sink configured by ``PUMP_NOTIFIER``."""
    path = getattr(settings, "PUMP_NOTIFIER", "workorders.notifications.DatabaseNotifier")
    return import_string(path)()


def cleanup_old_notifications(days=None, now=None):
    days = days if days is not None else settings.PUMP_NOTIFICATION_RETENTION_DAYS
    cutoff = (now or timezone.now()) - timedelta(days=days)
    deleted, _ = Notification.objects.filter(is_read=True, created_at__lt=cutoff).delete()
    return deleted
