"""
Webhook-style CRM adapter: POSTs the canonical payload as JSON.
"""
import logging

import httpx
from django.conf import settings

from submissions.services.adapters.base import AdapterResult, build_headers, result_from_response

logger = logging.getLogger(__name__)


def deliver_webhook(payload: dict, config: dict) -> AdapterResult:
    """
    Sends the canonical payload to `config['endpoint']`.

    Args:
        payload: Canonical delivery payload
        config: Connection config (endpoint, authHeaderName,
            authHeaderValue | authHeaderEnv, leadIdField)

    Returns:
        AdapterResult; never raises
    """
    endpoint = config.get('endpoint')
    if not endpoint:
        return AdapterResult(success=False, error='Missing webhook endpoint')

    logger.info(f"[{payload.get('submissionId')}] Webhook {payload.get('action')} to {endpoint}")

    try:
        response = httpx.post(
            endpoint,
            json=payload,
            headers=build_headers(config),
            timeout=settings.CRM_HTTP_TIMEOUT,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"[{payload.get('submissionId')}] Webhook transport error: {e}")
        return AdapterResult(success=False, error=str(e) or e.__class__.__name__)
    except Exception as e:
        logger.exception(f"[{payload.get('submissionId')}] Webhook request could not be sent: {e}")
        return AdapterResult(success=False, error=str(e) or e.__class__.__name__)

    logger.info(f"[{payload.get('submissionId')}] Webhook response: {response.status_code}")
    return result_from_response(response, config)
