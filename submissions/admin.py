"""
Django admin configuration for the submissions app.
"""
from django.contrib import admin
from submissions.models import (
    Account,
    AuditLog,
    CrmConnection,
    DeliveryAttempt,
    Location,
    Program,
    QueuedJob,
    Submission,
    Tenant,
)


class ReadOnlyAdminMixin:
    """Ledger tables are written by the pipeline only."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class DeliveryAttemptInline(ReadOnlyAdminMixin, admin.TabularInline):
    """Inline display of delivery attempts for a submission."""
    model = DeliveryAttempt
    extra = 0
    readonly_fields = ('job_type', 'step_index', 'attempt_number', 'status', 'response_code', 'error', 'created_at')
    fields = readonly_fields


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('id', 'name')


@admin.register(CrmConnection)
class CrmConnectionAdmin(admin.ModelAdmin):
    list_display = ('id', 'tenant', 'type', 'is_active')
    list_filter = ('type', 'is_active')
    search_fields = ('id', 'tenant__id')


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ('id', 'tenant', 'name', 'crm_connection', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('id', 'slug', 'name')


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ('id', 'account', 'name', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('id', 'slug', 'name')


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = ('id', 'account', 'name', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('id', 'slug', 'name')


@admin.register(Submission)
class SubmissionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for Submission model."""

    list_display = ('id', 'tenant', 'email', 'status', 'last_step_completed', 'created_at')
    list_filter = ('status', 'scheme', 'created_at')
    search_fields = ('id', 'email', 'idempotency_key', 'crm_lead_id')
    readonly_fields = (
        'id', 'tenant', 'scheme', 'account', 'location', 'program', 'idempotency_key',
        'crm_lead_id', 'created_at', 'updated_at', 'delivered_at', 'answers', 'metadata',
        'consented', 'consent_text_version', 'consent_timestamp',
    )

    fieldsets = (
        ('Status', {
            'fields': ('id', 'status', 'crm_lead_id', 'last_step_completed')
        }),
        ('Target', {
            'fields': ('tenant', 'scheme', 'account', 'location', 'program')
        }),
        ('Contact', {
            'fields': ('first_name', 'last_name', 'email', 'phone')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'delivered_at')
        }),
        ('Payloads', {
            'fields': ('answers', 'metadata'),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('idempotency_key', 'consented', 'consent_text_version', 'consent_timestamp'),
            'classes': ('collapse',)
        }),
    )

    inlines = [DeliveryAttemptInline]


@admin.register(DeliveryAttempt)
class DeliveryAttemptAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for DeliveryAttempt model."""

    list_display = ('id', 'submission', 'job_type', 'step_index', 'attempt_number', 'status', 'response_code')
    list_filter = ('status', 'job_type', 'created_at')
    search_fields = ('submission__id',)
    readonly_fields = (
        'tenant', 'submission', 'job_type', 'step_index', 'attempt_number', 'status',
        'response_code', 'response_body', 'error', 'created_at', 'updated_at',
    )

    fieldsets = (
        ('Delivery Information', {
            'fields': ('tenant', 'submission', 'job_type', 'step_index', 'attempt_number', 'status')
        }),
        ('Response', {
            'fields': ('response_code', 'response_body', 'error')
        }),
    )


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ('event', 'tenant', 'submission', 'created_at')
    list_filter = ('event', 'created_at')
    search_fields = ('submission__id',)
    readonly_fields = ('tenant', 'submission', 'event', 'payload', 'created_at')


@admin.register(QueuedJob)
class QueuedJobAdmin(admin.ModelAdmin):
    list_display = ('job_id', 'tenant_id', 'state', 'attempts_made', 'max_attempts', 'updated_at')
    list_filter = ('state', 'job_type')
    search_fields = ('job_id', 'submission_id')
    readonly_fields = ('job_id', 'job_type', 'submission_id', 'tenant_id', 'message', 'created_at', 'updated_at')
