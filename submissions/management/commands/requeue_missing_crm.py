"""
Requeue create jobs for submissions that never reached the CRM.

Usage:
    python manage.py requeue_missing_crm --older-than-min 10 --limit 200 [--dry-run]
"""
import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from submissions.models import AuditLog, DeliveryAttempt, Submission
from submissions.services.queue import DeliveryJob, enqueue

logger = logging.getLogger(__name__)

STUCK_STATUSES = [Submission.Status.RECEIVED, Submission.Status.DELIVERING]


class Command(BaseCommand):
    help = 'Requeue create jobs for submissions without a CRM lead id'

    def add_arguments(self, parser):
        parser.add_argument('--older-than-min', type=int, default=10,
                            help='Only submissions created at least this many minutes ago')
        parser.add_argument('--limit', type=int, default=200,
                            help='Maximum number of submissions to requeue')
        parser.add_argument('--dry-run', action='store_true',
                            help='List the submissions without enqueueing anything')
        parser.add_argument('--include-failed', action='store_true',
                            help='Also redrive submissions whose delivery failed out')
        parser.add_argument('--tenant', help='Restrict to one tenant id')

    def handle(self, *args, **options):
        cutoff = timezone.now() - timedelta(minutes=options['older_than_min'])
        statuses = list(STUCK_STATUSES)
        if options['include_failed']:
            statuses.append(Submission.Status.FAILED)

        candidates = Submission.objects.filter(
            crm_lead_id__isnull=True,
            created_at__lt=cutoff,
            status__in=statuses,
        )
        if options['tenant']:
            candidates = candidates.filter(tenant_id=options['tenant'])
        candidates = list(candidates.order_by('created_at')[:options['limit']])

        if not candidates:
            self.stdout.write('No submissions require backfill.')
            return

        queued = 0
        for submission in candidates:
            if options['dry_run']:
                self.stdout.write(f"[dry-run] would requeue {submission.id}")
                queued += 1
                continue

            job = DeliveryJob.for_submission(submission, DeliveryAttempt.JobType.CREATE)
            if not enqueue(job):
                self.stdout.write(f"{job.job_id} is already queued, skipping")
                continue

            AuditLog.objects.create(
                tenant_id=submission.tenant_id,
                submission=submission,
                event='requeued_create',
                payload={'source': 'backfill', 'previousStatus': submission.status},
            )
            logger.info(f"[{submission.id}] Requeued create job from backfill")
            queued += 1

        verb = 'Would queue' if options['dry_run'] else 'Queued'
        self.stdout.write(self.style.SUCCESS(f"{verb} {queued} create jobs."))
