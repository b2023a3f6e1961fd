import datetime

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from flow.errors import FlowError
from flow.services.appointments import unpaid_booking_candidates
from flow.services.facade import Orchestrator


class Command(BaseCommand):
    help = "Cancel video bookings that are still unpaid after the payment window."

    def add_arguments(self, parser):
        parser.add_argument(
            '--minutes', type=int, default=None,
            help='Payment window in minutes (default: FLOW_UNPAID_BOOKING_TTL_MINUTES)',
        )
        parser.add_argument('--dry-run', action='store_true', help='List candidates without expiring them')

    def handle(self, *args, **options):
        minutes = options['minutes'] or settings.FLOW_UNPAID_BOOKING_TTL_MINUTES
        cutoff = timezone.now() - datetime.timedelta(minutes=minutes)
        candidates = unpaid_booking_candidates(cutoff)
        if options['dry_run']:
            self.stdout.write(f"{len(candidates)} unpaid bookings older than {minutes} min: {candidates}")
            return

        orchestrator = Orchestrator()
        expired, skipped = 0, 0
        for appointment_id in candidates:
            try:
                orchestrator.dispatch('ExpireUnpaidBooking', {'appointmentId': appointment_id})
            except FlowError as exc:
                # paid or cancelled since the candidate list was read
                skipped += 1
                self.stderr.write(f"appointment {appointment_id}: {exc.code} {exc}")
                continue
            expired += 1

        self.stdout.write(self.style.SUCCESS(f"Expired {expired} unpaid bookings, skipped {skipped}"))
