from django.core.management.base import BaseCommand

from workorders.tasks import (
    check_approaching_deadlines_sync,
    check_units_not_dispatched_sync,
)


class Command(BaseCommand):
    help = "Send deadline warnings and undispatched-unit reminders without a Celery worker"

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-undispatched",
            action="store_true",
            help="Only check approaching deadlines",
        )

    def handle(self, *args, **options):
        warnings = check_approaching_deadlines_sync()
        self.stdout.write(f"Deadline warnings sent: {warnings}")
        if not options["skip_undispatched"]:
            reminders = check_units_not_dispatched_sync()
            self.stdout.write(f"Undispatched-unit reminders sent: {reminders}")
        self.stdout.write(self.style.SUCCESS("Deadline check finished"))
