"""
Operational metrics: queue depth and delivery outcomes.
"""
from datetime import timedelta
from typing import Optional

from django.db.models import Count
from django.utils import timezone

from submissions.models import DeliveryAttempt, Submission
from submissions.services.queue import queue_depth


def collect_metrics(tenant_id: Optional[str] = None, lookback_hours: int = 720) -> dict:
    """
    Builds the metrics snapshot.

    Args:
        tenant_id: Restrict delivery and submission counts (and queue depth)
            to one tenant
        lookback_hours: Size of the window for delivery and submission counts

    Returns:
        Dictionary with `window`, `queue`, `deliveries` and `submissions`
    """
    until = timezone.now()
    since = until - timedelta(hours=lookback_hours)

    attempts = DeliveryAttempt.objects.filter(created_at__gte=since, created_at__lt=until)
    submissions = Submission.objects.filter(created_at__gte=since, created_at__lt=until)
    if tenant_id:
        attempts = attempts.filter(tenant_id=tenant_id)
        submissions = submissions.filter(tenant_id=tenant_id)

    attempt_counts = {status: 0 for status in DeliveryAttempt.Status.values}
    for row in attempts.order_by().values('status').annotate(count=Count('id')):
        attempt_counts[row['status']] = row['count']

    submission_counts = {status: 0 for status in Submission.Status.values}
    for row in submissions.order_by().values('status').annotate(count=Count('id')):
        submission_counts[row['status']] = row['count']

    return {
        'tenant': tenant_id,
        'window': {
            'from': since.isoformat(),
            'to': until.isoformat(),
            'lookbackHours': lookback_hours,
        },
        'queue': queue_depth(tenant_id),
        'deliveries': {
            'delivered': attempt_counts[DeliveryAttempt.Status.DELIVERED],
            'failed': attempt_counts[DeliveryAttempt.Status.FAILED],
            'inFlight': attempt_counts[DeliveryAttempt.Status.STARTED],
        },
        'submissions': submission_counts,
    }
