"""
Tenant configuration lookups for intake and delivery.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from submissions.exceptions import ConfigurationError, NotFoundError
from submissions.models import Account, CrmConnection, Location, Program, Submission, Target, Tenant
from submissions.services.adapters import CrmAdapter, get_adapter

logger = logging.getLogger(__name__)


@dataclass
class ResolvedTargets:
    """Configuration rows an intake request's target identifiers point at."""

    tenant: Tenant
    account: Account
    location: Optional[Location]
    program: Program


@dataclass
class DeliveryChannel:
    """Everything the worker needs to deliver one submission."""

    connection: CrmConnection
    adapter: CrmAdapter
    account: Account
    location: Optional[Location]
    program: Program
    routing_tags: List[str] = field(default_factory=list)
    notifications: dict = field(default_factory=dict)


def resolve_targets(target: Target) -> ResolvedTargets:
    """
    Resolves intake target identifiers against tenant configuration.

    The account determines the tenant; the location (if given) and the
    program must belong to that account.

    Raises:
        NotFoundError: If any identifier does not resolve
    """
    account = (
        Account.objects.select_related('tenant')
        .filter(id=target.owner_id, is_active=True)
        .first()
    )
    if account is None:
        raise NotFoundError(f"Unknown {'school' if target.scheme == 'legacy' else 'account'}")

    location = None
    if target.site_id:
        location = Location.objects.filter(
            id=target.site_id,
            account=account,
            is_active=True
        ).first()
        if location is None:
            raise NotFoundError(f"Unknown {'campus' if target.scheme == 'legacy' else 'location'}")

    program = Program.objects.filter(id=target.program_id, account=account, is_active=True).first()
    if program is None:
        raise NotFoundError('Unknown program')

    return ResolvedTargets(tenant=account.tenant, account=account, location=location, program=program)


def load_delivery_channel(submission: Submission) -> DeliveryChannel:
    """
    Loads the delivery channel for a submission.

    Routing tags are only sent for the legacy school/campus scheme.
    Notification settings come from the location, when there is one.

    Raises:
        ConfigurationError: If the tenant configuration is incomplete or
            names an adapter type that is not registered
    """
    account = (
        Account.objects.select_related('crm_connection')
        .filter(id=submission.account_id, tenant_id=submission.tenant_id)
        .first()
    )
    program = Program.objects.filter(
        id=submission.program_id,
        account_id=submission.account_id,
        tenant_id=submission.tenant_id
    ).first()
    if account is None or program is None:
        raise ConfigurationError('Missing config entities')

    location = None
    if submission.location_id:
        location = Location.objects.filter(
            id=submission.location_id,
            account_id=submission.account_id,
            tenant_id=submission.tenant_id
        ).first()
        if location is None:
            raise ConfigurationError('Missing config entities')

    connection = account.crm_connection
    if connection is None or not connection.is_active or connection.tenant_id != submission.tenant_id:
        raise ConfigurationError('Missing CRM connection')

    adapter = get_adapter(connection.type)
    if not isinstance(connection.config, dict) or not connection.config.get('endpoint'):
        raise ConfigurationError(f"CRM connection {connection.id} has no endpoint")

    routing_tags = []
    if submission.scheme == Submission.Scheme.LEGACY and location is not None:
        routing_tags = list(location.routing_tags or [])

    return DeliveryChannel(
        connection=connection,
        adapter=adapter,
        account=account,
        location=location,
        program=program,
        routing_tags=routing_tags,
        notifications=dict(location.notifications or {}) if location else {},
    )
