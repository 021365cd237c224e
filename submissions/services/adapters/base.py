"""
Shared types and helpers for CRM adapters.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from submissions.services.mapping import get_nested_value

logger = logging.getLogger(__name__)

DEFAULT_LEAD_ID_FIELD = 'id'


@dataclass
class AdapterResult:
    """Outcome of a single adapter call."""

    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    external_lead_id: Optional[str] = None
    error: Optional[str] = None


CrmAdapter = Callable[[Dict[str, Any], Dict[str, Any]], AdapterResult]


def build_headers(config: dict, content_type: str = 'application/json') -> dict:
    """
    Build request headers, attaching the optional auth header.

    The auth value is taken from the environment variable named by
    `authHeaderEnv` when set, otherwise from the literal `authHeaderValue`.
    """
    headers = {'Content-Type': content_type}

    header_name = config.get('authHeaderName')
    if header_name:
        env_key = config.get('authHeaderEnv')
        header_value = os.getenv(str(env_key)) if env_key else config.get('authHeaderValue')
        if header_value:
            headers[str(header_name)] = str(header_value)
        else:
            logger.warning(f"Auth header '{header_name}' configured but no value resolved")

    return headers


def extract_lead_id(response_body: str, lead_id_field: Optional[str]) -> Optional[str]:
    """
    Pull the external lead id out of a JSON response body.

    Unparseable bodies and missing paths yield None rather than an error.
    """
    path = str(lead_id_field) if lead_id_field else DEFAULT_LEAD_ID_FIELD
    try:
        parsed = json.loads(response_body)
    except (TypeError, ValueError):
        return None

    candidate = get_nested_value(parsed, path)
    if candidate is None or isinstance(candidate, (dict, list)):
        return None
    return str(candidate)


def result_from_response(
    response: httpx.Response,
    config: dict,
    success_codes: Optional[list] = None,
) -> AdapterResult:
    """Translate an HTTP response into an AdapterResult."""
    body = response.text
    ok = 200 <= response.status_code < 300
    if success_codes:
        ok = ok or response.status_code in success_codes

    if not ok:
        return AdapterResult(success=False, status_code=response.status_code, response_body=body)

    return AdapterResult(
        success=True,
        status_code=response.status_code,
        response_body=body,
        external_lead_id=extract_lead_id(body, config.get('leadIdField')),
    )
