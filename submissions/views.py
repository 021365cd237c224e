"""
API views for the Lead Relay service.
"""
import logging
import uuid

from django.conf import settings
from django.db import connection
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.response import Response
from rest_framework.views import APIView

from submissions.exceptions import IntakeError
from submissions.serializers import IntakeSerializer, StepSerializer
from submissions.services.intake import build_metadata, check_honeypot, record_step, submit_lead
from submissions.services.metrics import collect_metrics

logger = logging.getLogger(__name__)


def error_response(message, correlation_id, status_code, details=None):
    body = {'error': message, 'correlation_id': correlation_id}
    if details:
        body['details'] = details
    return Response(body, status=status_code)


@method_decorator(csrf_exempt, name='dispatch')
class LeadStartView(APIView):
    """
    Intake endpoint for new leads.

    POST /api/lead/start/ (also POST /api/submit/)
    - Validates the payload and rejects honeypot hits
    - Resolves the target identifiers to tenant configuration
    - Stores the submission once per idempotency key
    - Enqueues the create job for new submissions only
    - Returns 202 with submissionId, status and idempotencyKey
    """

    def post(self, request):
        """
        Handle a new lead submission.

        Returns:
            202 Accepted: Lead stored (or matched an existing one)
            400 Bad Request: Malformed JSON, invalid payload or honeypot hit
            404 Not Found: Unknown school/account, campus/location or program
            500 Internal Server Error: Unexpected error
        """
        correlation_id = str(uuid.uuid4())

        try:
            payload = request.data
            check_honeypot(payload)

            serializer = IntakeSerializer(data=payload)
            if not serializer.is_valid():
                logger.warning(
                    f"Invalid intake payload: {serializer.errors}, correlation_id={correlation_id}"
                )
                return error_response(
                    'Validation failed',
                    correlation_id,
                    status.HTTP_400_BAD_REQUEST,
                    details=serializer.errors,
                )

            metadata = build_metadata(serializer.validated_data.get('metadata'), request.META)
            result = submit_lead(serializer.to_intake_data(), metadata)
            submission = result.submission

            logger.info(
                f"[{submission.id}] Intake {'accepted' if result.created else 'deduplicated'}, "
                f"correlation_id={correlation_id}"
            )

            return Response(
                {
                    'submissionId': str(submission.id),
                    'status': submission.status,
                    'idempotencyKey': submission.idempotency_key,
                    'correlation_id': correlation_id,
                },
                status=status.HTTP_202_ACCEPTED
            )

        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return error_response('Malformed JSON', correlation_id, status.HTTP_400_BAD_REQUEST)
        except IntakeError as e:
            logger.warning(f"Intake rejected: {e.message}, correlation_id={correlation_id}")
            return error_response(e.message, correlation_id, e.status_code, details=e.details)
        except Exception as e:
            logger.error(
                f"Error processing intake request: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return error_response(
                'Internal server error',
                correlation_id,
                status.HTTP_500_INTERNAL_SERVER_ERROR
            )


@method_decorator(csrf_exempt, name='dispatch')
class LeadStepView(APIView):
    """
    Step-update endpoint for multi-step forms.

    POST /api/lead/step/
    - Merges the step's answers into the submission
    - Enqueues an update job for that step
    - Returns 202 with submissionId and status
    """

    def post(self, request):
        correlation_id = str(uuid.uuid4())

        try:
            serializer = StepSerializer(data=request.data)
            if not serializer.is_valid():
                logger.warning(f"Invalid step payload: {serializer.errors}, correlation_id={correlation_id}")
                return error_response(
                    'Validation failed',
                    correlation_id,
                    status.HTTP_400_BAD_REQUEST,
                    details=serializer.errors,
                )

            data = serializer.validated_data
            submission = record_step(data['submissionId'], data['stepIndex'], data['answers'])

            return Response(
                {
                    'submissionId': str(submission.id),
                    'status': submission.status,
                    'correlation_id': correlation_id,
                },
                status=status.HTTP_202_ACCEPTED
            )

        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return error_response('Malformed JSON', correlation_id, status.HTTP_400_BAD_REQUEST)
        except IntakeError as e:
            logger.warning(f"Step rejected: {e.message}, correlation_id={correlation_id}")
            return error_response(e.message, correlation_id, e.status_code, details=e.details)
        except Exception as e:
            logger.error(
                f"Error processing step request: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return error_response(
                'Internal server error',
                correlation_id,
                status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class HealthView(APIView):
    """GET /health/ - liveness plus a database round trip."""

    def get(self, request):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                cursor.fetchone()
        except Exception as e:
            logger.error(f"Health check database failure: {e}")
            return Response({'status': 'degraded'}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({'status': 'ok'})


class MetricsView(APIView):
    """
    GET /metrics/?tenant=<id>&lookback_hours=<n>

    Queue depth by state plus delivery and submission counts for the
    lookback window.
    """

    def get(self, request):
        tenant_id = request.query_params.get('tenant') or None
        raw_lookback = request.query_params.get('lookback_hours')

        lookback_hours = settings.METRICS_DEFAULT_LOOKBACK_HOURS
        if raw_lookback not in (None, ''):
            try:
                lookback_hours = int(raw_lookback)
            except ValueError:
                lookback_hours = 0
            if lookback_hours <= 0:
                return Response(
                    {'error': 'lookback_hours must be a positive integer'},
                    status=status.HTTP_400_BAD_REQUEST
                )

        return Response(collect_metrics(tenant_id=tenant_id, lookback_hours=lookback_hours))
