"""
Data models for the lead intake and delivery pipeline.
"""
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from django.core.exceptions import ValidationError as ModelValidationError
from django.db import models


class Tenant(models.Model):
    """
    A client organization. Every submission, connection and piece of
    configuration is scoped to exactly one tenant.
    """

    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class CrmConnection(models.Model):
    """
    Tenant-level delivery channel configuration.

    `config` is opaque to the pipeline and interpreted by the adapter
    registered for `type`.
    """

    class Type(models.TextChoices):
        WEBHOOK = 'webhook', 'Webhook'
        GENERIC = 'generic', 'Generic'

    id = models.CharField(primary_key=True, max_length=64)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='crm_connections')
    type = models.CharField(max_length=20, choices=Type.choices)
    config = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def clean(self):
        from submissions.services.adapters import ADAPTERS

        if self.type not in ADAPTERS:
            raise ModelValidationError({'type': f"Unsupported CRM connection type: {self.type}"})
        if not isinstance(self.config, dict):
            raise ModelValidationError({'config': 'Connection config must be an object'})
        if not self.config.get('endpoint'):
            raise ModelValidationError({'config': 'Connection config requires an endpoint'})

    def __str__(self):
        return f"{self.id} ({self.type})"


class Account(models.Model):
    """A customer account. Legacy intake requests call this a school."""

    id = models.CharField(primary_key=True, max_length=64)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='accounts')
    slug = models.SlugField(max_length=100)
    name = models.CharField(max_length=200)
    crm_connection = models.ForeignKey(
        CrmConnection,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='accounts'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class Location(models.Model):
    """A physical location of an account. Legacy intake requests call this a campus."""

    id = models.CharField(primary_key=True, max_length=64)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='locations')
    account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name='locations')
    slug = models.SlugField(max_length=100)
    name = models.CharField(max_length=200)
    routing_tags = models.JSONField(default=list, blank=True)
    notifications = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class Program(models.Model):
    """A program or service offering of an account."""

    id = models.CharField(primary_key=True, max_length=64)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='programs')
    account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name='programs')
    slug = models.SlugField(max_length=100)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class LegacyTarget:
    """School/campus addressing used by older landing pages."""

    school_id: str
    campus_id: Optional[str]
    program_id: str

    scheme = 'legacy'

    @property
    def owner_id(self) -> str:
        return self.school_id

    @property
    def site_id(self) -> Optional[str]:
        return self.campus_id

    def as_payload(self) -> dict:
        return {'schoolId': self.school_id, 'campusId': self.campus_id, 'programId': self.program_id}


@dataclass(frozen=True)
class AccountTarget:
    """Account/location addressing used by current landing pages."""

    account_id: str
    location_id: Optional[str]
    program_id: str

    scheme = 'account'

    @property
    def owner_id(self) -> str:
        return self.account_id

    @property
    def site_id(self) -> Optional[str]:
        return self.location_id

    def as_payload(self) -> dict:
        return {'accountId': self.account_id, 'locationId': self.location_id, 'programId': self.program_id}


Target = Union[LegacyTarget, AccountTarget]


def build_target(scheme: str, owner_id: str, site_id: Optional[str], program_id: str) -> Target:
    """Build the addressing variant for a scheme tag."""
    if scheme == Submission.Scheme.LEGACY:
        return LegacyTarget(school_id=owner_id, campus_id=site_id, program_id=program_id)
    return AccountTarget(account_id=owner_id, location_id=site_id, program_id=program_id)


class Submission(models.Model):
    """
    One inbound lead and its delivery lifecycle.

    Exactly one row exists per idempotency key; duplicate intake requests
    resolve to the same row.
    """

    class Status(models.TextChoices):
        RECEIVED = 'received', 'Received'
        DELIVERING = 'delivering', 'Delivering'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'

    class Scheme(models.TextChoices):
        LEGACY = 'legacy', 'School / campus'
        ACCOUNT = 'account', 'Account / location'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name='submissions')
    scheme = models.CharField(max_length=10, choices=Scheme.choices, default=Scheme.ACCOUNT)
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='submissions')
    location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submissions'
    )
    program = models.ForeignKey(Program, on_delete=models.PROTECT, related_name='submissions')

    first_name = models.CharField(max_length=200)
    last_name = models.CharField(max_length=200)
    email = models.CharField(max_length=254, db_index=True)
    phone = models.CharField(max_length=50, null=True, blank=True)
    answers = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    consented = models.BooleanField(default=False)
    consent_text_version = models.CharField(max_length=100)
    consent_timestamp = models.DateTimeField()

    idempotency_key = models.CharField(max_length=64, unique=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.RECEIVED,
        db_index=True
    )
    crm_lead_id = models.CharField(max_length=255, null=True, blank=True)
    last_step_completed = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status', 'created_at'], name='submission_tenant_status_idx'),
        ]

    @property
    def target(self) -> Target:
        """The addressing variant this submission was received under."""
        return build_target(self.scheme, self.account_id, self.location_id, self.program_id)

    def __str__(self):
        return f"Submission {self.id} - {self.status}"


class DeliveryAttempt(models.Model):
    """
    One execution of one delivery job.

    Append-style ledger used for auditing and per-step dedup: at most one
    row per (submission, job_type, step_index) may reach DELIVERED.
    """

    class JobType(models.TextChoices):
        CREATE = 'create', 'Create'
        UPDATE = 'update', 'Update'

    class Status(models.TextChoices):
        STARTED = 'started', 'Started'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name='delivery_attempts')
    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        related_name='delivery_attempts'
    )
    attempt_number = models.PositiveIntegerField()
    job_type = models.CharField(max_length=10, choices=JobType.choices)
    step_index = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.STARTED)
    response_code = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(null=True, blank=True)
    error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['submission', 'job_type', 'step_index', 'attempt_number']
        indexes = [
            models.Index(fields=['submission', 'job_type', 'step_index'], name='attempt_submission_step_idx'),
            models.Index(fields=['status', 'created_at'], name='attempt_status_created_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['submission', 'job_type', 'step_index'],
                condition=models.Q(status='delivered'),
                name='uniq_delivered_attempt_per_step',
            ),
        ]

    def __str__(self):
        return (
            f"Attempt {self.attempt_number} ({self.job_type}, step {self.step_index}) "
            f"for Submission {self.submission_id} - {self.status}"
        )


class AuditLog(models.Model):
    """Lifecycle events for submissions, written by intake and the worker."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name='audit_events')
    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_events'
    )
    event = models.CharField(max_length=50, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.event} for Submission {self.submission_id}"


class QueuedJob(models.Model):
    """
    Registry entry for a delivery job living in the Celery queue.

    Keyed by the job's logical id so that enqueue is idempotent. Completed
    jobs are removed; jobs that fail out are kept for inspection.
    """

    class State(models.TextChoices):
        WAITING = 'waiting', 'Waiting'
        ACTIVE = 'active', 'Active'
        DELAYED = 'delayed', 'Delayed'
        FAILED = 'failed', 'Failed'

    job_id = models.CharField(primary_key=True, max_length=120)
    job_type = models.CharField(max_length=10, choices=DeliveryAttempt.JobType.choices)
    submission_id = models.UUIDField(db_index=True)
    tenant_id = models.CharField(max_length=64, db_index=True)
    state = models.CharField(max_length=10, choices=State.choices, default=State.WAITING, db_index=True)
    attempts_made = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField()
    message = models.JSONField()
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.job_id} - {self.state}"
