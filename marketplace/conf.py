"""
Access to the app-level ``MARKETPLACE`` settings dict with defaults.
"""

from django.conf import settings

DEFAULTS = {
    'DEFAULT_CURRENCY': 'USD',
    'MINTING_CLIENT': 'marketplace.utils.minting_service.SimulatedMintingClient',
    'MINTING_SERVICE_URL': None,
    'MINTING_TIMEOUT_SECONDS': 10.0,
    'CONTRACT_ADDRESS': '0x8901B0cbe7F326b7F0482AFE3f330cb6611d8E3a',
    'TOKEN_DEFAULT_VALIDITY_DAYS': 365,
}


def get_setting(name):
    """Return ``MARKETPLACE[name]`` falling back to the built-in default."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown marketplace setting: {name}")
    overrides = getattr(settings, 'MARKETPLACE', {}) or {}
    return overrides.get(name, DEFAULTS[name])
