import logging
import time

from django.core.management.base import BaseCommand, CommandError

from tickets.domain.errors import DependencyFailureError
from tickets.services import build_ticket_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Cancel reservations whose expiry has passed"

    def add_arguments(self, parser):
        parser.add_argument(
            "--interval",
            type=int,
            default=0,
            help="Repeat every N seconds instead of running once",
        )

    def handle(self, *args, **options):
        interval = options["interval"]
        service = build_ticket_service()
        while True:
            try:
                cancelled = service.cleanup_expired_reservations()
            except DependencyFailureError as exc:
                if interval <= 0:
                    raise CommandError(f"Expiry sweep failed: {exc}") from exc
                logger.exception("Expiry sweep failed, retrying in %ds", interval)
                self.stderr.write(f"Expiry sweep failed: {exc}")
            else:
                self.stdout.write(f"Cancelled {len(cancelled)} expired reservation(s)")
            if interval <= 0:
                break
            time.sleep(interval)
