"""
Payment rail adapters.

The rail moves settlement-asset funds out of the protocol vault:

    transfer(destination, amount, asset) -> TransferResult(signature, success, error)

A transfer never raises for an ordinary failure; callers branch on
``success``. Paper mode keeps transfers in memory.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Optional, Protocol
from uuid import uuid4

import httpx
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from pydantic import BaseModel

from whisp.config import Settings
from whisp.exceptions import ConfigurationError
from whisp.utils import now_ms

logger = logging.getLogger(__name__)


class TransferResult(BaseModel):
    """Outcome of one outbound transfer."""

    signature: Optional[str] = None
    success: bool
    error: Optional[str] = None


class PaymentRail(Protocol):
    async def transfer(self, destination: str, amount: Decimal, asset: str) -> TransferResult: ...


RailFactory = Callable[[], PaymentRail]


class VaultSigner:
    """Signs transfer requests with the vault's 64-byte ed25519 keypair."""

    def __init__(self, secret_key: bytes):
        if len(secret_key) != 64:
            raise ConfigurationError("Vault secret key must be 64 bytes")
        self.private_key = Ed25519PrivateKey.from_private_bytes(secret_key[:32])
        self.public_key = self.private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        if self.public_key != secret_key[32:]:
            logger.warning("Vault key mismatch - public half does not match seed, check configuration")

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def sign(self, payload: dict[str, Any]) -> str:
        message = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return base64.b64encode(self.private_key.sign(message)).decode("utf-8")


class HttpPaymentRail:
    """Submits signed vault transfers to the payment service."""

    def __init__(
        self,
        base_url: str,
        vault_address: str,
        signer: VaultSigner,
        timeout_seconds: float = 30.0,
    ):
        self.vault_address = vault_address
        self.signer = signer
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)

    async def close(self) -> None:
        await self.client.aclose()

    async def transfer(self, destination: str, amount: Decimal, asset: str) -> TransferResult:
        payload = {
            "source": self.vault_address,
            "destination": destination,
            "amount": str(amount),
            "asset": asset,
            "nonce": uuid4().hex,
            "timestamp": now_ms(),
        }
        headers = {
            "X-Vault-Public-Key": self.signer.public_key_hex,
            "X-Vault-Signature": self.signer.sign(payload),
        }

        logger.info(f"Transferring {amount} {asset} to {destination}")

        try:
            response = await self.client.post("/transfers", json=payload, headers=headers)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Transfer to {destination} failed: {e}")
            return TransferResult(success=False, error=str(e))

        if response.status_code >= 400 or not data.get("success"):
            error = data.get("error") or f"HTTP {response.status_code}"
            logger.error(f"Transfer to {destination} rejected: {error}")
            return TransferResult(success=False, error=error)

        return TransferResult(signature=data.get("signature"), success=True)


@dataclass
class TransferRecord:
    destination: str
    amount: Decimal
    asset: str
    signature: str


@dataclass
class PaperPaymentRail:
    """In-memory rail for paper mode: every transfer succeeds unless told otherwise."""

    transfers: list[TransferRecord] = field(default_factory=list)
    fail_destinations: set[str] = field(default_factory=set)
    fail_message: str = "Simulated transfer failure"

    async def transfer(self, destination: str, amount: Decimal, asset: str) -> TransferResult:
        if destination in self.fail_destinations:
            return TransferResult(success=False, error=self.fail_message)

        signature = f"paper_{uuid4().hex[:16]}"
        self.transfers.append(TransferRecord(destination, Decimal(amount), asset, signature))
        logger.info(f"[PAPER] Transferred {amount} {asset} to {destination}")
        return TransferResult(signature=signature, success=True)

    def transfers_to(self, destination: str) -> list[TransferRecord]:
        return [t for t in self.transfers if t.destination == destination]


def create_payment_rail(settings: Settings) -> PaymentRail:
    """Build the rail for the configured mode. Raises ConfigurationError in live mode without a key."""
    if settings.paper_mode:
        return PaperPaymentRail()

    signer = VaultSigner(settings.get_vault_secret_key())
    return HttpPaymentRail(
        base_url=settings.payment_rail_url,
        vault_address=settings.vault_address,
        signer=signer,
    )


def cached_rail_factory(settings: Settings) -> RailFactory:
    """Factory that builds the rail once and reuses it; config faults surface on every call."""
    rail: Optional[PaymentRail] = None

    def factory() -> PaymentRail:
        nonlocal rail
        if rail is None:
            rail = create_payment_rail(settings)
        return rail

    return factory
