"""
CRM adapter registry.

Every adapter has the signature `deliver(payload, config) -> AdapterResult`
and never raises.
"""
from submissions.exceptions import ConfigurationError
from submissions.services.adapters.base import AdapterResult, CrmAdapter
from submissions.services.adapters.generic import deliver_generic
from submissions.services.adapters.webhook import deliver_webhook

ADAPTERS = {
    'webhook': deliver_webhook,
    'generic': deliver_generic,
}


def get_adapter(connection_type: str) -> CrmAdapter:
    """Look up the adapter for a connection type."""
    try:
        return ADAPTERS[connection_type]
    except KeyError:
        raise ConfigurationError(f"Unsupported CRM connection type: {connection_type}") from None


__all__ = ['ADAPTERS', 'AdapterResult', 'CrmAdapter', 'get_adapter']
