"""
Field mapping for CRM systems that do not accept the canonical payload.

A field map is a dictionary of `{target.dot.path: source.dot.path}`. Source
paths are read from the canonical delivery payload and written into a fresh
request body at the target path.
"""
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def get_nested_value(data: Any, path: str, default=None):
    """
    Get a value from a nested dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path (e.g., 'contact.email')
        default: Default value if path not found

    Returns:
        The value at the path or default
    """
    keys = [key for key in path.split('.') if key]
    if not keys:
        return default
    value = data
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def set_nested_value(data: dict, path: str, value: Any) -> None:
    """
    Set a value in a nested dictionary using dot notation.
    Creates intermediate dictionaries as needed.

    Args:
        data: The dictionary to modify
        path: Dot-separated path (e.g., 'lead.contact.email')
        value: Value to set
    """
    keys = path.split('.')
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def apply_field_map(
    payload: dict,
    field_map: Optional[dict],
    static_fields: Optional[dict] = None,
) -> dict:
    """
    Builds a request body from the canonical payload.

    Static fields are written first so mapped values win on conflict.
    Source paths that resolve to nothing are left out of the body.

    Args:
        payload: Canonical delivery payload
        field_map: `{target_path: source_path}`; when empty the payload is
            copied as-is
        static_fields: `{target_path: literal}` constants sent with every request

    Returns:
        The mapped request body
    """
    body: dict = {}

    for target_path, literal in (static_fields or {}).items():
        set_nested_value(body, target_path, literal)

    if not field_map:
        body.update(payload)
        return body

    skipped = []
    for target_path, source_path in field_map.items():
        value = get_nested_value(payload, str(source_path))
        if value is None:
            skipped.append(target_path)
            continue
        set_nested_value(body, target_path, value)

    if skipped:
        logger.debug(f"Field map skipped {len(skipped)} empty fields: {skipped}")

    return body
