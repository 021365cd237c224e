"""
Idempotency key derivation for inbound leads.
"""
import hashlib
from typing import Optional

from submissions.services.normalization import normalize_email, normalize_phone


def derive_idempotency_key(
    tenant_id: str,
    email: Optional[str],
    phone: Optional[str],
    owner_id: str,
    site_id: Optional[str],
    program_id: str,
) -> str:
    """
    Computes a stable fingerprint for one logical lead.

    Two requests that differ only in the formatting of the same contact
    (mixed-case email, punctuation in the phone number) produce the same
    key; changing any target identifier produces a different key.

    Args:
        tenant_id: Tenant the lead belongs to
        email: Contact email, any casing or surrounding whitespace
        phone: Contact phone, any formatting, or None
        owner_id: School or account id
        site_id: Campus or location id, or None
        program_id: Program id

    Returns:
        64-character SHA-256 hex digest
    """
    normalized = '|'.join([
        tenant_id,
        normalize_email(email),
        normalize_phone(phone),
        owner_id,
        site_id or '',
        program_id,
    ])
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()
