"""
Unit tests for operational metrics.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from submissions.models import DeliveryAttempt, Submission, Tenant
from submissions.services.metrics import collect_metrics
from submissions.services.queue import DeliveryJob, enqueue


def add_attempt(submission, status, number=1, step_index=0):
    return DeliveryAttempt.objects.create(
        tenant_id=submission.tenant_id,
        submission=submission,
        attempt_number=number,
        job_type='create' if step_index == 0 else 'update',
        step_index=step_index,
        status=status,
    )


@pytest.mark.django_db
class TestCollectMetrics:
    """Tests for the metrics snapshot."""

    def test_empty_snapshot(self):
        metrics = collect_metrics()

        assert metrics['tenant'] is None
        assert metrics['queue'] == {'waiting': 0, 'active': 0, 'delayed': 0, 'failed': 0}
        assert metrics['deliveries'] == {'delivered': 0, 'failed': 0, 'inFlight': 0}
        assert metrics['submissions'] == {'received': 0, 'delivering': 0, 'delivered': 0, 'failed': 0}
        assert metrics['window']['lookbackHours'] == 720

    def test_counts_attempts_and_submissions(self, make_submission, mock_dispatch):
        delivered = make_submission(status=Submission.Status.DELIVERED)
        failing = make_submission(status=Submission.Status.DELIVERING)
        add_attempt(delivered, DeliveryAttempt.Status.DELIVERED)
        add_attempt(failing, DeliveryAttempt.Status.FAILED, number=1)
        add_attempt(failing, DeliveryAttempt.Status.FAILED, number=2)
        add_attempt(failing, DeliveryAttempt.Status.STARTED, number=3)
        enqueue(DeliveryJob.for_submission(failing, 'create'))

        metrics = collect_metrics()

        assert metrics['deliveries'] == {'delivered': 1, 'failed': 2, 'inFlight': 1}
        assert metrics['submissions']['delivered'] == 1
        assert metrics['submissions']['delivering'] == 1
        assert metrics['queue']['waiting'] == 1

    def test_tenant_filter(self, make_submission, tenant, location, program, account):
        ours = make_submission()
        add_attempt(ours, DeliveryAttempt.Status.DELIVERED)

        other = Tenant.objects.create(id='tenant-c', name='Tenant C')
        theirs = make_submission(tenant=other)
        add_attempt(theirs, DeliveryAttempt.Status.DELIVERED)

        assert collect_metrics(tenant_id=tenant.id)['deliveries']['delivered'] == 1
        assert collect_metrics(tenant_id=other.id)['deliveries']['delivered'] == 1
        assert collect_metrics()['deliveries']['delivered'] == 2
        assert collect_metrics(tenant_id='nobody')['submissions']['received'] == 0

    def test_lookback_window_excludes_old_rows(self, make_submission):
        submission = make_submission()
        old = add_attempt(submission, DeliveryAttempt.Status.FAILED)
        DeliveryAttempt.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(hours=5))
        add_attempt(submission, DeliveryAttempt.Status.DELIVERED, number=2)

        assert collect_metrics(lookback_hours=1)['deliveries'] == {'delivered': 1, 'failed': 0, 'inFlight': 0}
        assert collect_metrics(lookback_hours=6)['deliveries']['failed'] == 1

    @patch('submissions.services.metrics.timezone')
    def test_window_bounds(self, mock_timezone):
        now = timezone.now()
        mock_timezone.now.return_value = now

        window = collect_metrics(lookback_hours=2)['window']

        assert window['to'] == now.isoformat()
        assert window['from'] == (now - timedelta(hours=2)).isoformat()
