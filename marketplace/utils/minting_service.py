"""
Minting collaborators for on-chain token issuance.

Usage:
    from marketplace.utils.minting_service import get_minting_client

    client = get_minting_client()
    result = client.mint(token, timeout=5)
    # MintResult(success=True, chain_tx_id='0x...', ...)

The client class comes from ``MARKETPLACE['MINTING_CLIENT']``. Development
and tests use SimulatedMintingClient; deployments point the setting at
HttpMintingClient and configure ``MINTING_SERVICE_URL``.
"""

from dataclasses import dataclass
from typing import Optional
import hashlib
import logging
import time

import requests
from django.utils.module_loading import import_string

from ..conf import get_setting
from ..exceptions import MintingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MintResult:
    success: bool
    chain_tx_id: Optional[str] = None
    onchain_token_id: Optional[str] = None
    contract_address: Optional[str] = None


class MintingClient:
    """Interface: mint ``token`` on chain or raise."""

    def mint(self, token, timeout=None) -> MintResult:
        raise NotImplementedError


class HttpMintingClient(MintingClient):
    """Posts mint requests to an external minting gateway."""

    def __init__(self, base_url=None, timeout=None, session=None):
        self.base_url = base_url or get_setting('MINTING_SERVICE_URL')
        self.timeout = timeout or get_setting('MINTING_TIMEOUT_SECONDS')
        self.session = session or requests.Session()

    def mint(self, token, timeout=None) -> MintResult:
        if not self.base_url:
            raise MintingError('Minting service URL is not configured')

        timeout = timeout or self.timeout
        url = f"{self.base_url.rstrip('/')}/mint"
        payload = {
            'tokenId': str(token.id),
            'farmerId': str(token.farmer_id),
            'harvestId': str(token.harvest_id),
            'amount': str(token.token_amount),
            'tokenType': token.token_type,
        }

        try:
            logger.info(f"[MINTING] Requesting mint for token {token.id}")
            response = self.session.post(url, json=payload, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            logger.error(f"[MINTING] Timed out after {timeout}s for token {token.id}")
            raise MintingError(f'Minting request timed out after {timeout}s') from e
        except requests.RequestException as e:
            logger.error(f"[MINTING] Request failed for token {token.id}: {str(e)}")
            raise MintingError(f'Minting request failed: {str(e)}') from e
        except ValueError as e:
            raise MintingError('Minting service returned an invalid response') from e

        if not data.get('success'):
            raise MintingError(data.get('error') or 'Minting service reported failure')

        return MintResult(
            success=True,
            chain_tx_id=data.get('txHash'),
            onchain_token_id=data.get('tokenId'),
            contract_address=data.get('contractAddress') or get_setting('CONTRACT_ADDRESS'),
        )


class SimulatedMintingClient(MintingClient):
    """Fabricates a transaction hash without touching any chain."""

    def mint(self, token, timeout=None) -> MintResult:
        seed = f"{token.id}:{time.time_ns()}".encode()
        tx_hash = '0x' + hashlib.sha256(seed).hexdigest()
        logger.info(f"[MINTING] Simulated mint for token {token.id}: {tx_hash}")
        return MintResult(
            success=True,
            chain_tx_id=tx_hash,
            onchain_token_id=str(int(hashlib.sha256(str(token.id).encode()).hexdigest()[:12], 16)),
            contract_address=get_setting('CONTRACT_ADDRESS'),
        )


def get_minting_client():
    """Instantiate the configured minting client."""
    return import_string(get_setting('MINTING_CLIENT'))()
