"""
Unit tests for the requeue_missing_crm management command.
"""
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from submissions.models import AuditLog, QueuedJob, Submission
from submissions.services.queue import DeliveryJob, enqueue, mark_failed


def age(submission, minutes):
    Submission.objects.filter(pk=submission.pk).update(created_at=timezone.now() - timedelta(minutes=minutes))


def run_command(*args):
    out = StringIO()
    call_command('requeue_missing_crm', *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestRequeueMissingCrm:
    """Tests for the operator backfill of undelivered creates."""

    def test_requeues_stuck_submissions(self, make_submission, mock_dispatch):
        received = make_submission()
        delivering = make_submission(status=Submission.Status.DELIVERING)
        age(received, 30)
        age(delivering, 30)

        output = run_command('--older-than-min', '10')

        assert 'Queued 2 create jobs.' in output
        assert mock_dispatch.call_count == 2
        assert QueuedJob.objects.filter(job_id=f"create-{received.id}").exists()
        audit = AuditLog.objects.get(submission=received, event='requeued_create')
        assert audit.payload['source'] == 'backfill'
        assert audit.tenant_id == received.tenant_id

    def test_skips_recent_delivered_and_failed(self, make_submission, mock_dispatch):
        recent = make_submission()
        delivered = make_submission(status=Submission.Status.DELIVERED, crm_lead_id='ext-1')
        failed = make_submission(status=Submission.Status.FAILED)
        age(recent, 2)
        age(delivered, 30)
        age(failed, 30)

        output = run_command('--older-than-min', '10')

        assert 'No submissions require backfill.' in output
        mock_dispatch.assert_not_called()

    def test_include_failed_redrives_failed_job(self, make_submission, mock_dispatch):
        failed = make_submission(status=Submission.Status.FAILED)
        age(failed, 30)
        job = DeliveryJob.for_submission(failed, 'create')
        enqueue(job)
        mark_failed(job.job_id, 'Delivery failed with status 503')
        mock_dispatch.reset_mock()

        output = run_command('--include-failed')

        assert 'Queued 1 create jobs.' in output
        mock_dispatch.assert_called_once()
        assert QueuedJob.objects.get(job_id=job.job_id).state == QueuedJob.State.WAITING

    def test_dry_run_changes_nothing(self, make_submission, mock_dispatch):
        submission = make_submission()
        age(submission, 30)

        output = run_command('--dry-run')

        assert f"[dry-run] would requeue {submission.id}" in output
        assert 'Would queue 1 create jobs.' in output
        mock_dispatch.assert_not_called()
        assert not QueuedJob.objects.exists()
        assert not AuditLog.objects.filter(event='requeued_create').exists()

    def test_limit_takes_oldest_first(self, make_submission, mock_dispatch):
        older = make_submission()
        newer = make_submission()
        age(older, 60)
        age(newer, 30)

        run_command('--limit', '1')

        assert QueuedJob.objects.filter(job_id=f"create-{older.id}").exists()
        assert not QueuedJob.objects.filter(job_id=f"create-{newer.id}").exists()

    def test_already_queued_job_is_not_audited(self, make_submission, mock_dispatch):
        submission = make_submission()
        age(submission, 30)
        enqueue(DeliveryJob.for_submission(submission, 'create'))
        mock_dispatch.reset_mock()

        output = run_command()

        assert 'already queued' in output
        assert 'Queued 0 create jobs.' in output
        mock_dispatch.assert_not_called()
        assert not AuditLog.objects.filter(event='requeued_create').exists()

    def test_tenant_filter(self, make_submission, mock_dispatch):
        submission = make_submission()
        age(submission, 30)

        output = run_command('--tenant', 'tenant-b')

        assert 'No submissions require backfill.' in output
