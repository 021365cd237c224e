import os
import sys
from unittest.mock import patch

import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lead_relay.settings')


@pytest.fixture
def tenant(db):
    from submissions.models import Tenant
    return Tenant.objects.create(id='tenant-a', name='Tenant A')


@pytest.fixture
def other_tenant(db):
    from submissions.models import Tenant
    return Tenant.objects.create(id='tenant-b', name='Tenant B')


@pytest.fixture
def webhook_connection(tenant):
    from submissions.models import CrmConnection
    return CrmConnection.objects.create(
        id='conn-webhook',
        tenant=tenant,
        type=CrmConnection.Type.WEBHOOK,
        config={'endpoint': 'https://crm.example.com/leads', 'leadIdField': 'lead.id'},
    )


@pytest.fixture
def account(tenant, webhook_connection):
    from submissions.models import Account
    return Account.objects.create(
        id='acct-1',
        tenant=tenant,
        slug='tech-institute',
        name='Tech Institute',
        crm_connection=webhook_connection,
    )


@pytest.fixture
def location(tenant, account):
    from submissions.models import Location
    return Location.objects.create(
        id='loc-1',
        tenant=tenant,
        account=account,
        slug='downtown',
        name='Downtown Campus',
        routing_tags=['north', 'evening'],
        notifications={'enabled': True, 'recipients': ['admissions@example.com']},
    )


@pytest.fixture
def program(tenant, account):
    from submissions.models import Program
    return Program.objects.create(
        id='prog-1',
        tenant=tenant,
        account=account,
        slug='nursing',
        name='Nursing',
    )


@pytest.fixture
def valid_intake_payload(account, location, program):
    """Return a valid account/location intake payload for testing."""
    return {
        'firstName': 'Ada',
        'lastName': 'Lovelace',
        'email': 'A@B.com',
        'phone': '(555) 000-1111',
        'accountId': account.id,
        'locationId': location.id,
        'programId': program.id,
        'answers': {'startDate': 'fall'},
        'metadata': {'utm': {'source': 'google'}, 'referrer': 'https://ads.example.com'},
        'consent': {
            'consented': True,
            'textVersion': '1.0',
            'timestamp': '2024-05-01T12:00:00Z',
        },
    }


@pytest.fixture
def legacy_intake_payload(valid_intake_payload):
    """Return the same lead addressed with school/campus identifiers."""
    payload = dict(valid_intake_payload)
    payload['schoolId'] = payload.pop('accountId')
    payload['campusId'] = payload.pop('locationId')
    return payload


@pytest.fixture
def mock_dispatch():
    """Capture delivery jobs instead of running them."""
    with patch('submissions.tasks.deliver_submission.apply_async') as mock_apply:
        yield mock_apply


@pytest.fixture
def make_submission(tenant, account, location, program):
    """Factory for stored submissions that bypasses the intake API."""
    from datetime import datetime, timezone as dt_timezone
    from submissions.models import Submission

    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        fields = {
            'tenant': tenant,
            'scheme': Submission.Scheme.ACCOUNT,
            'account': account,
            'location': location,
            'program': program,
            'first_name': 'Ada',
            'last_name': 'Lovelace',
            'email': f"lead{counter['n']}@example.com",
            'phone': '5550001111',
            'answers': {'startDate': 'fall'},
            'metadata': {'source': 'landing_page'},
            'consented': True,
            'consent_text_version': '1.0',
            'consent_timestamp': datetime(2024, 5, 1, 12, 0, tzinfo=dt_timezone.utc),
            'idempotency_key': f"{counter['n']:064d}",
        }
        fields.update(overrides)
        return Submission.objects.create(**fields)

    return _make
