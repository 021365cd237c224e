"""
Celery tasks for asynchronous lead delivery.
"""
import logging
from dataclasses import replace
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from submissions.exceptions import (
    DeliveryError,
    DeliveryPipelineError,
    SubmissionMissingError,
    TenantMismatchError,
    TransportError,
)
from submissions.models import AuditLog, DeliveryAttempt, Submission
from submissions.services.adapters import AdapterResult
from submissions.services.notifications import notify_lead_delivered
from submissions.services.queue import (
    DeliveryJob,
    mark_active,
    mark_completed,
    mark_delayed,
    mark_failed,
)
from submissions.services.tenant_config import DeliveryChannel, load_delivery_channel

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True)
def deliver_submission(self, message: dict):
    """
    Deliver one job (a submission's create, or one step update) to the
    tenant's CRM.

    Workflow:
    1. Load the submission and check it against the job's tenant and targets
    2. Skip if this (job type, step) already has a delivered attempt
    3. Mark the submission delivering and open a started attempt
    4. Resolve the tenant's CRM connection
    5. Call the adapter with the canonical payload
    6. Record the outcome on the attempt and the submission
    7. Send the optional notification email

    Failures are raised so that Celery retries them with exponential
    backoff. Once the last allowed attempt fails, the submission is marked
    FAILED and the job is kept in the registry as failed.

    Args:
        message: Job message produced by DeliveryJob.to_message()

    Returns:
        {'delivered': True, ...} or {'skipped': True, 'reason': ...}
    """
    job = DeliveryJob.from_message(message)
    attempt_number = self.request.retries + 1
    logger.info(
        f"[{job.submission_id}] Delivery attempt {attempt_number}/{job.max_attempts} "
        f"for {job.job_id}"
    )
    mark_active(job.job_id, attempt_number)

    try:
        outcome = run_delivery(job, attempt_number)
    except Exception as e:
        retryable = getattr(e, 'retryable', True)
        final = attempt_number >= job.max_attempts or (
            settings.DELIVERY_FAIL_FAST_ON_FATAL and not retryable
        )

        if final:
            record_failure(job, attempt_number, e, final=True)
            mark_failed(job.job_id, str(e))
            logger.error(
                f"[{job.submission_id}] {job.job_id} FAILED after {attempt_number} attempts: {e}"
            )
            raise

        countdown = job.backoff_seconds(self.request.retries)
        record_failure(job, attempt_number, e, final=False, countdown=countdown)
        mark_delayed(job.job_id, str(e))
        logger.warning(
            f"[{job.submission_id}] {job.job_id} attempt {attempt_number} failed: {e}, "
            f"retrying in {countdown:.0f}s"
        )
        raise self.retry(exc=e, countdown=countdown, max_retries=job.max_attempts - 1)

    mark_completed(job.job_id)
    return outcome


def run_delivery(job: DeliveryJob, attempt_number: int) -> dict:
    """
    Execute a single delivery attempt. Raises on any failure.
    """
    submission = load_submission(job)

    if has_delivered_attempt(submission, job):
        logger.info(f"[{submission.id}] {job.job_id} already delivered, skipping")
        return {'skipped': True, 'reason': 'already_delivered'}

    if job.job_type == DeliveryAttempt.JobType.CREATE and submission.status == Submission.Status.DELIVERED:
        logger.info(f"[{submission.id}] Submission already delivered, skipping create")
        return {'skipped': True, 'reason': 'submission_delivered'}

    submission.status = Submission.Status.DELIVERING
    submission.save(update_fields=['status', 'updated_at'])

    attempt = DeliveryAttempt.objects.create(
        tenant_id=submission.tenant_id,
        submission=submission,
        attempt_number=attempt_number,
        job_type=job.job_type,
        step_index=job.step_index,
        status=DeliveryAttempt.Status.STARTED,
    )

    try:
        channel = load_delivery_channel(submission)
        payload = build_payload(submission, job, channel)
        result = channel.adapter(payload, channel.connection.config or {})
    except Exception as e:
        finish_attempt(attempt, DeliveryAttempt.Status.FAILED, error=str(e) or e.__class__.__name__)
        raise

    if result.success and job.job_type == DeliveryAttempt.JobType.CREATE and not result.external_lead_id:
        result = replace(result, success=False, error='CRM response did not include a lead id')

    if not result.success:
        finish_attempt(attempt, DeliveryAttempt.Status.FAILED, result=result)
        raise error_for_result(result)

    try:
        with transaction.atomic():
            finish_attempt(attempt, DeliveryAttempt.Status.DELIVERED, result=result)
    except IntegrityError:
        # Another worker recorded this step as delivered while we were in flight.
        finish_attempt(
            attempt,
            DeliveryAttempt.Status.FAILED,
            result=result,
            error='Already delivered by a concurrent attempt',
        )
        submission.status = Submission.Status.DELIVERED
        submission.save(update_fields=['status', 'updated_at'])
        logger.warning(f"[{submission.id}] {job.job_id} lost a concurrent delivery race")
        return {'skipped': True, 'reason': 'concurrent_delivery'}

    submission.status = Submission.Status.DELIVERED
    update_fields = ['status', 'updated_at']
    if job.job_type == DeliveryAttempt.JobType.CREATE:
        submission.crm_lead_id = result.external_lead_id
        submission.delivered_at = timezone.now()
        update_fields += ['crm_lead_id', 'delivered_at']
    submission.save(update_fields=update_fields)

    AuditLog.objects.create(
        tenant_id=submission.tenant_id,
        submission=submission,
        event='delivered',
        payload={
            'jobType': job.job_type,
            'stepIndex': job.step_index,
            'statusCode': result.status_code,
            'crmLeadId': submission.crm_lead_id,
        },
    )
    logger.info(f"[{submission.id}] {job.job_id} DELIVERED")

    notify_lead_delivered(payload, channel.notifications, notification_subject(channel, job))

    return {'delivered': True, 'crmLeadId': submission.crm_lead_id}


def load_submission(job: DeliveryJob) -> Submission:
    """
    Load the job's submission and check that it belongs to the job's tenant
    and targets.

    Raises:
        SubmissionMissingError: If no submission exists with that id
        TenantMismatchError: If tenant or target identifiers disagree
    """
    submission = Submission.objects.filter(pk=job.submission_id, tenant_id=job.tenant_id).first()

    if submission is None:
        stray = Submission.objects.filter(pk=job.submission_id).first()
        if stray is None:
            raise SubmissionMissingError(f"Submission {job.submission_id} not found")
        log_tenant_mismatch(stray, job, 'tenant')
        raise TenantMismatchError(f"Job tenant {job.tenant_id} does not own submission {job.submission_id}")

    if submission.target != job.target:
        log_tenant_mismatch(submission, job, 'target')
        raise TenantMismatchError(f"Job targets do not match submission {job.submission_id}")

    return submission


def log_tenant_mismatch(submission: Submission, job: DeliveryJob, field: str) -> None:
    logger.warning(
        f"[{submission.id}] SECURITY: {job.job_id} {field} mismatch "
        f"(job tenant={job.tenant_id}, stored tenant={submission.tenant_id})"
    )
    AuditLog.objects.create(
        tenant_id=submission.tenant_id,
        submission=submission,
        event='tenant_mismatch',
        payload={'jobId': job.job_id, 'field': field, 'job': job.to_message()},
    )


def has_delivered_attempt(submission: Submission, job: DeliveryJob) -> bool:
    return DeliveryAttempt.objects.filter(
        submission=submission,
        job_type=job.job_type,
        step_index=job.step_index,
        status=DeliveryAttempt.Status.DELIVERED,
    ).exists()


def build_payload(submission: Submission, job: DeliveryJob, channel: DeliveryChannel) -> dict:
    """Build the channel-agnostic payload handed to every adapter."""
    payload = {
        'submissionId': str(submission.id),
        'idempotencyKey': submission.idempotency_key,
        'action': job.job_type,
        'crmLeadId': submission.crm_lead_id,
        'stepIndex': job.step_index,
        'tenantId': submission.tenant_id,
    }
    payload.update(submission.target.as_payload())
    payload.update({
        'contact': {
            'firstName': submission.first_name,
            'lastName': submission.last_name,
            'email': submission.email,
            'phone': submission.phone,
        },
        'answers': submission.answers or {},
        'metadata': submission.metadata or {},
        'consent': {
            'consented': submission.consented,
            'textVersion': submission.consent_text_version,
            'timestamp': submission.consent_timestamp.isoformat(),
        },
        'routingTags': channel.routing_tags,
    })
    return payload


def truncate(value: Optional[str], limit: Optional[int] = None) -> Optional[str]:
    limit = limit or settings.DELIVERY_RESPONSE_BODY_LIMIT
    if not value:
        return value
    return value[:limit]


def finish_attempt(
    attempt: DeliveryAttempt,
    status: str,
    result: Optional[AdapterResult] = None,
    error: Optional[str] = None,
) -> None:
    attempt.status = status
    if result is not None:
        attempt.response_code = result.status_code
        attempt.response_body = truncate(result.response_body)
        attempt.error = result.error
    if error is not None:
        attempt.error = error
    attempt.save(update_fields=['status', 'response_code', 'response_body', 'error', 'updated_at'])


def error_for_result(result: AdapterResult) -> DeliveryPipelineError:
    """Map a failed adapter result onto the error taxonomy."""
    if result.status_code is None:
        return TransportError(result.error or 'Delivery transport failed')
    return DeliveryError(
        result.error or f"Delivery failed with status {result.status_code}",
        status_code=result.status_code,
    )


def record_failure(
    job: DeliveryJob,
    attempt_number: int,
    error: Exception,
    final: bool,
    countdown: Optional[float] = None,
) -> None:
    """
    Write the failure audit record and, on the final attempt, mark the
    submission FAILED. Rows outside the job's tenant are never touched.
    """
    submission = Submission.objects.filter(pk=job.submission_id, tenant_id=job.tenant_id).first()
    if submission is None:
        return

    payload = {
        'jobId': job.job_id,
        'jobType': job.job_type,
        'stepIndex': job.step_index,
        'attemptNumber': attempt_number,
        'error': error.__class__.__name__,
        'reason': str(error) or 'Delivery failed',
    }

    if final:
        submission.status = Submission.Status.FAILED
        submission.save(update_fields=['status', 'updated_at'])
        AuditLog.objects.create(
            tenant_id=submission.tenant_id,
            submission=submission,
            event='failed',
            payload=payload,
        )
    else:
        payload['nextAttempt'] = attempt_number + 1
        payload['delaySeconds'] = countdown
        AuditLog.objects.create(
            tenant_id=submission.tenant_id,
            submission=submission,
            event='retry_scheduled',
            payload=payload,
        )


def notification_subject(channel: DeliveryChannel, job: DeliveryJob) -> str:
    site = channel.location.name if channel.location is not None else channel.account.name
    if job.job_type == DeliveryAttempt.JobType.UPDATE:
        return f"Lead update (step {job.step_index}): {channel.program.name} ({site})"
    return f"New lead: {channel.program.name} ({site})"
