"""
End-to-end tests: intake API through the eager Celery worker to a mocked CRM.

Celery runs in eager mode under pytest, so every enqueue executes the
delivery task (including its retries) before the request returns.
"""
from unittest.mock import patch

import httpx
import pytest
from rest_framework.test import APIClient

from submissions.models import (
    Account,
    AuditLog,
    CrmConnection,
    DeliveryAttempt,
    Location,
    Program,
    QueuedJob,
    Submission,
)

WEBHOOK_POST = 'submissions.services.adapters.webhook.httpx.post'


@pytest.fixture
def api_client():
    return APIClient()


@pytest.mark.django_db
class TestLeadLifecycle:
    """Create, then step update, through the public endpoints."""

    @patch(WEBHOOK_POST)
    def test_create_then_step_update(self, mock_post, api_client, valid_intake_payload):
        mock_post.return_value = httpx.Response(200, json={'lead': {'id': 'ext-1'}})

        response = api_client.post('/api/lead/start', valid_intake_payload, format='json')

        assert response.status_code == 202
        submission = Submission.objects.get(pk=response.data['submissionId'])
        assert submission.status == Submission.Status.DELIVERED
        assert submission.crm_lead_id == 'ext-1'
        assert submission.email == 'a@b.com'
        assert not QueuedJob.objects.exists()

        mock_post.return_value = httpx.Response(200, json={'ok': True})
        response = api_client.post(
            '/api/lead/step',
            {'submissionId': str(submission.id), 'stepIndex': 2, 'answers': {'q1': 'a'}},
            format='json',
        )

        assert response.status_code == 202
        submission.refresh_from_db()
        assert submission.answers == {'startDate': 'fall', 'q1': 'a'}
        assert submission.last_step_completed == 2
        assert submission.crm_lead_id == 'ext-1'
        assert submission.delivery_attempts.filter(
            job_type='update', step_index=2, status=DeliveryAttempt.Status.DELIVERED
        ).exists()

        update_payload = mock_post.call_args.kwargs['json']
        assert update_payload['action'] == 'update'
        assert update_payload['crmLeadId'] == 'ext-1'

        events = set(AuditLog.objects.filter(submission=submission).values_list('event', flat=True))
        assert {'received', 'delivered', 'step_update'} <= events

    @patch(WEBHOOK_POST)
    def test_duplicate_intake_delivers_once(self, mock_post, api_client, valid_intake_payload):
        mock_post.return_value = httpx.Response(201, json={'lead': {'id': 'ext-1'}})

        first = api_client.post('/api/lead/start', valid_intake_payload, format='json')
        valid_intake_payload['email'] = 'a@b.com'
        valid_intake_payload['phone'] = '555.000.1111'
        second = api_client.post('/api/submit', valid_intake_payload, format='json')

        assert first.data['submissionId'] == second.data['submissionId']
        assert mock_post.call_count == 1
        assert DeliveryAttempt.objects.filter(status=DeliveryAttempt.Status.DELIVERED).count() == 1

    @patch(WEBHOOK_POST)
    def test_repeated_step_is_delivered_once(self, mock_post, api_client, valid_intake_payload):
        mock_post.return_value = httpx.Response(200, json={'lead': {'id': 'ext-1'}})
        response = api_client.post('/api/lead/start', valid_intake_payload, format='json')
        body = {'submissionId': response.data['submissionId'], 'stepIndex': 1, 'answers': {'q1': 'a'}}

        api_client.post('/api/lead/step', body, format='json')
        api_client.post('/api/lead/step', body, format='json')

        assert mock_post.call_count == 2
        assert DeliveryAttempt.objects.filter(job_type='update', step_index=1).count() == 1


@pytest.mark.django_db
class TestFailureLifecycle:
    """Delivery failures seen from the intake side."""

    @patch(WEBHOOK_POST)
    def test_unreachable_crm_exhausts_attempts(self, mock_post, api_client, valid_intake_payload, settings):
        settings.DELIVERY_MAX_ATTEMPTS = 3
        mock_post.side_effect = httpx.ConnectTimeout('timed out')

        response = api_client.post('/api/lead/start', valid_intake_payload, format='json')

        assert response.status_code == 202
        submission = Submission.objects.get(pk=response.data['submissionId'])
        assert submission.status == Submission.Status.FAILED
        assert submission.delivery_attempts.count() == 3
        assert mock_post.call_count == 3
        assert QueuedJob.objects.get(job_id=f"create-{submission.id}").state == QueuedJob.State.FAILED

        # Resubmitting the same lead does not redrive delivery
        api_client.post('/api/lead/start', valid_intake_payload, format='json')
        assert mock_post.call_count == 3

    @patch(WEBHOOK_POST)
    def test_generic_connection_with_field_map(self, mock_post, api_client, valid_intake_payload, tenant, account):
        generic = CrmConnection.objects.create(
            id='conn-generic',
            tenant=tenant,
            type=CrmConnection.Type.GENERIC,
            config={
                'endpoint': 'https://crm.example.com/api',
                'fieldMap': {'person.email': 'contact.email', 'ref': 'submissionId'},
                'staticFields': {'vendor': 'lead-relay'},
                'leadIdField': 'recordId',
            },
        )
        Account.objects.filter(pk=account.pk).update(crm_connection=generic)

        with patch('submissions.services.adapters.generic.httpx.request') as mock_request:
            mock_request.return_value = httpx.Response(200, json={'recordId': 'rec-77'})
            response = api_client.post('/api/lead/start', valid_intake_payload, format='json')

        submission = Submission.objects.get(pk=response.data['submissionId'])
        assert submission.crm_lead_id == 'rec-77'
        assert mock_request.call_args.kwargs['json'] == {
            'vendor': 'lead-relay',
            'person': {'email': 'a@b.com'},
            'ref': str(submission.id),
        }
        mock_post.assert_not_called()


@pytest.mark.django_db
class TestTenantIsolation:
    """Identical contacts under different tenants stay separate."""

    @patch(WEBHOOK_POST)
    def test_same_contact_two_tenants(self, mock_post, api_client, valid_intake_payload, other_tenant):
        mock_post.return_value = httpx.Response(200, json={'lead': {'id': 'ext-1'}})
        connection = CrmConnection.objects.create(
            id='conn-b',
            tenant=other_tenant,
            type=CrmConnection.Type.WEBHOOK,
            config={'endpoint': 'https://crm-b.example.com/leads', 'leadIdField': 'lead.id'},
        )
        account = Account.objects.create(
            id='acct-b', tenant=other_tenant, slug='b', name='B', crm_connection=connection
        )
        Location.objects.create(id='loc-b', tenant=other_tenant, account=account, slug='b', name='B')
        Program.objects.create(id='prog-b', tenant=other_tenant, account=account, slug='b', name='B')

        first = api_client.post('/api/lead/start', valid_intake_payload, format='json')
        valid_intake_payload.update({'accountId': 'acct-b', 'locationId': 'loc-b', 'programId': 'prog-b'})
        second = api_client.post('/api/lead/start', valid_intake_payload, format='json')

        assert first.data['submissionId'] != second.data['submissionId']
        assert first.data['idempotencyKey'] != second.data['idempotencyKey']
        assert Submission.objects.get(pk=second.data['submissionId']).tenant == other_tenant
        endpoints = [c.args[0] for c in mock_post.call_args_list]
        assert endpoints == ['https://crm.example.com/leads', 'https://crm-b.example.com/leads']
