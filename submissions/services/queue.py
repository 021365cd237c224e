"""
Delivery job queue.

Jobs are Celery messages. Each job also has a `QueuedJob` registry row,
keyed by its logical id. The row makes enqueue idempotent, implements the
retention policy (drop on completion, keep on failure) and backs the
queue-depth metrics.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from submissions.models import DeliveryAttempt, QueuedJob, Submission, Target, build_target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryJob:
    """One unit of delivery work: a submission's create, or one step update."""

    job_type: str
    submission_id: str
    tenant_id: str
    scheme: str
    owner_id: str
    site_id: Optional[str]
    program_id: str
    step_index: int = 0
    max_attempts: int = 5
    backoff_base_ms: int = 10000

    @property
    def job_id(self) -> str:
        if self.job_type == DeliveryAttempt.JobType.CREATE:
            return f"create-{self.submission_id}"
        return f"update-{self.submission_id}-{self.step_index}"

    @property
    def target(self) -> Target:
        return build_target(self.scheme, self.owner_id, self.site_id, self.program_id)

    def backoff_seconds(self, retries: int) -> float:
        """Exponential delay before the next attempt, given retries already made."""
        return (self.backoff_base_ms / 1000.0) * (2 ** retries)

    def to_message(self) -> dict:
        message = {
            'jobId': self.job_id,
            'jobType': self.job_type,
            'submissionId': self.submission_id,
            'tenantId': self.tenant_id,
            'scheme': self.scheme,
            'stepIndex': self.step_index,
            'maxAttempts': self.max_attempts,
            'backoffBaseMs': self.backoff_base_ms,
        }
        message.update(self.target.as_payload())
        return message

    @classmethod
    def from_message(cls, message: dict) -> 'DeliveryJob':
        scheme = message.get('scheme', Submission.Scheme.ACCOUNT)
        if scheme == Submission.Scheme.LEGACY:
            owner_id, site_id = message.get('schoolId'), message.get('campusId')
        else:
            owner_id, site_id = message.get('accountId'), message.get('locationId')
        return cls(
            job_type=message['jobType'],
            submission_id=str(message['submissionId']),
            tenant_id=message['tenantId'],
            scheme=scheme,
            owner_id=owner_id,
            site_id=site_id,
            program_id=message.get('programId'),
            step_index=int(message.get('stepIndex') or 0),
            max_attempts=int(message.get('maxAttempts') or settings.DELIVERY_MAX_ATTEMPTS),
            backoff_base_ms=int(message.get('backoffBaseMs') or settings.DELIVERY_BACKOFF_MS),
        )

    @classmethod
    def for_submission(cls, submission: Submission, job_type: str, step_index: int = 0) -> 'DeliveryJob':
        target = submission.target
        return cls(
            job_type=job_type,
            submission_id=str(submission.id),
            tenant_id=submission.tenant_id,
            scheme=submission.scheme,
            owner_id=target.owner_id,
            site_id=target.site_id,
            program_id=target.program_id,
            step_index=step_index,
            max_attempts=settings.DELIVERY_MAX_ATTEMPTS,
            backoff_base_ms=settings.DELIVERY_BACKOFF_MS,
        )


def enqueue(job: DeliveryJob) -> bool:
    """
    Adds a delivery job to the queue unless it is already pending.

    A job id that is waiting, active or delayed makes this a no-op. A job
    id whose previous run failed out is reset and dispatched again.

    Args:
        job: The job to enqueue

    Returns:
        True if the job was dispatched, False if it was already queued
    """
    message = job.to_message()

    with transaction.atomic():
        record = QueuedJob.objects.select_for_update().filter(job_id=job.job_id).first()

        if record is not None and record.state != QueuedJob.State.FAILED:
            logger.info(f"[{job.submission_id}] Job {job.job_id} already {record.state}, not re-enqueued")
            return False

        if record is None:
            try:
                with transaction.atomic():
                    QueuedJob.objects.create(
                        job_id=job.job_id,
                        job_type=job.job_type,
                        submission_id=job.submission_id,
                        tenant_id=job.tenant_id,
                        max_attempts=job.max_attempts,
                        message=message,
                    )
            except IntegrityError:
                logger.info(f"[{job.submission_id}] Job {job.job_id} enqueued concurrently, skipping")
                return False
        else:
            record.state = QueuedJob.State.WAITING
            record.attempts_made = 0
            record.last_error = None
            record.message = message
            record.save(update_fields=['state', 'attempts_made', 'last_error', 'message', 'updated_at'])
            logger.info(f"[{job.submission_id}] Redriving failed job {job.job_id}")

    _dispatch(job, message)
    logger.info(f"[{job.submission_id}] Job {job.job_id} queued")
    return True


def _dispatch(job: DeliveryJob, message: dict) -> None:
    from submissions.tasks import deliver_submission

    deliver_submission.apply_async(args=[message], task_id=job.job_id)


def mark_active(job_id: str, attempt_number: int) -> None:
    QueuedJob.objects.filter(job_id=job_id).update(
        state=QueuedJob.State.ACTIVE,
        attempts_made=attempt_number,
        updated_at=timezone.now(),
    )


def mark_delayed(job_id: str, error: str) -> None:
    QueuedJob.objects.filter(job_id=job_id).update(
        state=QueuedJob.State.DELAYED,
        last_error=error,
        updated_at=timezone.now(),
    )


def mark_failed(job_id: str, error: str) -> None:
    QueuedJob.objects.filter(job_id=job_id).update(
        state=QueuedJob.State.FAILED,
        last_error=error,
        updated_at=timezone.now(),
    )


def mark_completed(job_id: str) -> None:
    QueuedJob.objects.filter(job_id=job_id).delete()


def queue_depth(tenant_id: Optional[str] = None) -> Dict[str, int]:
    """Count registered jobs by state; every state is always present."""
    jobs = QueuedJob.objects.all()
    if tenant_id:
        jobs = jobs.filter(tenant_id=tenant_id)

    counts = {state: 0 for state in QueuedJob.State.values}
    for row in jobs.order_by().values('state').annotate(count=Count('job_id')):
        counts[row['state']] = row['count']
    return counts
