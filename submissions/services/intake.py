"""
Intake service: idempotent acceptance of new leads and step updates.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from submissions.exceptions import NotFoundError, ValidationError
from submissions.models import AuditLog, DeliveryAttempt, Submission, build_target
from submissions.services.idempotency import derive_idempotency_key
from submissions.services.normalization import normalize_contact, normalize_dict
from submissions.services.queue import DeliveryJob, enqueue
from submissions.services.tenant_config import resolve_targets

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    submission: Submission
    created: bool


def check_honeypot(raw_data: dict) -> None:
    """
    Rejects submissions where a hidden anti-bot field was filled in.

    Both the `honeypot` key and the field named by HONEYPOT_FIELD are checked.

    Raises:
        ValidationError: If either field has a value
    """
    if not isinstance(raw_data, dict):
        return
    if raw_data.get('honeypot') or raw_data.get(settings.HONEYPOT_FIELD):
        raise ValidationError('Invalid submission')


def build_metadata(metadata: Optional[dict], request_meta: dict) -> dict:
    """
    Combines client-supplied metadata with request headers.

    Client values win for user agent and referrer; the IP always comes from
    the request.
    """
    metadata = normalize_dict(metadata or {})
    forwarded_for = request_meta.get('HTTP_X_FORWARDED_FOR', '')
    ip = forwarded_for.split(',')[0].strip() if forwarded_for else request_meta.get('REMOTE_ADDR')

    return {
        'referrer': metadata.get('referrer') or request_meta.get('HTTP_REFERER') or None,
        'userAgent': metadata.get('userAgent') or request_meta.get('HTTP_USER_AGENT') or None,
        'utm': metadata.get('utm') or {},
        'ip': ip or None,
        'source': metadata.get('source') or 'landing_page',
    }


def submit_lead(data: dict, metadata: dict) -> IntakeResult:
    """
    Accepts a new lead exactly once per idempotency key.

    The row is inserted inside a savepoint. A key conflict resolves to the
    existing row and nothing is enqueued; a real insert writes a `received`
    audit record and enqueues the create job.

    Args:
        data: Validated intake payload (see IntakeSerializer)
        metadata: Request metadata from build_metadata

    Returns:
        IntakeResult with the submission and whether it was newly created

    Raises:
        NotFoundError: If the target identifiers do not resolve
    """
    target = build_target(data['scheme'], data['owner_id'], data.get('site_id'), data['program_id'])
    resolved = resolve_targets(target)
    contact = normalize_contact(data)
    consent = data['consent']

    idempotency_key = derive_idempotency_key(
        resolved.tenant.id,
        contact['email'],
        contact['phone'],
        target.owner_id,
        target.site_id,
        target.program_id,
    )

    try:
        with transaction.atomic():
            submission = Submission.objects.create(
                tenant=resolved.tenant,
                scheme=target.scheme,
                account=resolved.account,
                location=resolved.location,
                program=resolved.program,
                first_name=contact['first_name'],
                last_name=contact['last_name'],
                email=contact['email'],
                phone=contact['phone'],
                answers=data.get('answers') or {},
                metadata=metadata,
                consented=consent['consented'],
                consent_text_version=consent['text_version'],
                consent_timestamp=consent['timestamp'],
                idempotency_key=idempotency_key,
                status=Submission.Status.RECEIVED,
            )
            AuditLog.objects.create(
                tenant=resolved.tenant,
                submission=submission,
                event='received',
                payload={'metadata': metadata, 'stepIndex': 0},
            )
    except IntegrityError:
        submission = Submission.objects.filter(
            idempotency_key=idempotency_key,
            tenant=resolved.tenant
        ).first()
        if submission is None:
            raise
        AuditLog.objects.create(
            tenant=resolved.tenant,
            submission=submission,
            event='duplicate_received',
            payload={'metadata': metadata},
        )
        logger.info(f"[{submission.id}] Duplicate submission accepted")
        return IntakeResult(submission=submission, created=False)

    logger.info(f"[{submission.id}] Submission received")
    enqueue(DeliveryJob.for_submission(submission, DeliveryAttempt.JobType.CREATE))
    return IntakeResult(submission=submission, created=True)


def record_step(submission_id, step_index: int, answers: dict) -> Submission:
    """
    Merges a partial-answer step into a submission and enqueues its update job.

    `last_step_completed` only moves forward. The merge runs under a row
    lock so concurrent steps do not drop each other's answers.

    Raises:
        NotFoundError: If the submission does not exist
    """
    with transaction.atomic():
        submission = Submission.objects.select_for_update().filter(pk=submission_id).first()
        if submission is None:
            raise NotFoundError('Submission not found')

        merged = dict(submission.answers or {})
        merged.update(answers)
        submission.answers = merged
        submission.last_step_completed = max(submission.last_step_completed, step_index)
        submission.save(update_fields=['answers', 'last_step_completed', 'updated_at'])

        AuditLog.objects.create(
            tenant_id=submission.tenant_id,
            submission=submission,
            event='step_update',
            payload={'stepIndex': step_index},
        )

    logger.info(f"[{submission.id}] Step {step_index} recorded")
    enqueue(DeliveryJob.for_submission(submission, DeliveryAttempt.JobType.UPDATE, step_index))
    return submission
