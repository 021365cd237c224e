"""
Generic CRM adapter for systems that need their own request shape.

The request body is built from the connection's `fieldMap` and
`staticFields`, and sent as JSON or as a form depending on `contentType`.
"""
import logging

import httpx
from django.conf import settings

from submissions.services.adapters.base import AdapterResult, build_headers, result_from_response
from submissions.services.mapping import apply_field_map

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ('POST', 'PUT', 'PATCH')


def deliver_generic(payload: dict, config: dict) -> AdapterResult:
    """
    Sends a mapped request to `config['endpoint']`.

    Args:
        payload: Canonical delivery payload
        config: Connection config (endpoint, method, fieldMap, staticFields,
            contentType, successStatusCodes, auth header keys, leadIdField)

    Returns:
        AdapterResult; never raises
    """
    endpoint = config.get('endpoint')
    if not endpoint:
        return AdapterResult(success=False, error='Missing generic endpoint')

    method = str(config.get('method') or 'POST').upper()
    if method not in ALLOWED_METHODS:
        return AdapterResult(success=False, error=f"Unsupported HTTP method: {method}")

    logger.info(f"[{payload.get('submissionId')}] Generic {method} {payload.get('action')} to {endpoint}")

    try:
        body = apply_field_map(payload, config.get('fieldMap'), config.get('staticFields'))
        as_form = config.get('contentType') == 'form'

        request_kwargs = {
            'headers': build_headers(
                config,
                content_type='application/x-www-form-urlencoded' if as_form else 'application/json',
            ),
            'timeout': settings.CRM_HTTP_TIMEOUT,
        }
        if as_form:
            request_kwargs['data'] = {key: '' if value is None else str(value) for key, value in body.items()}
        else:
            request_kwargs['json'] = body

        response = httpx.request(method, endpoint, **request_kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"[{payload.get('submissionId')}] Generic adapter transport error: {e}")
        return AdapterResult(success=False, error=str(e) or e.__class__.__name__)
    except Exception as e:
        logger.exception(f"[{payload.get('submissionId')}] Generic request could not be built or sent: {e}")
        return AdapterResult(success=False, error=str(e) or e.__class__.__name__)

    logger.info(f"[{payload.get('submissionId')}] Generic adapter response: {response.status_code}")
    return result_from_response(response, config, success_codes=config.get('successStatusCodes'))
