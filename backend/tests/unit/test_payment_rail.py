"""Unit tests for the payment rail adapters."""

import asyncio
import base64
import json
from decimal import Decimal

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, PublicFormat, NoEncryption

from whisp.config import Settings
from whisp.exceptions import ConfigurationError
from whisp.services.payment_rail import (
    HttpPaymentRail,
    PaperPaymentRail,
    VaultSigner,
    cached_rail_factory,
    create_payment_rail,
)


def _keypair_bytes() -> bytes:
    private = Ed25519PrivateKey.generate()
    seed = private.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public = private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return seed + public


def test_vault_signer_signature_verifies() -> None:
    secret = _keypair_bytes()
    signer = VaultSigner(secret)
    payload = {"destination": "alice", "amount": "1.5"}

    signature = base64.b64decode(signer.sign(payload))
    message = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

    Ed25519PublicKey.from_public_bytes(secret[32:]).verify(signature, message)
    assert signer.public_key_hex == secret[32:].hex()


def test_paper_rail_records_and_fails_on_request() -> None:
    rail = PaperPaymentRail(fail_destinations={"treasury"})

    async def run() -> None:
        ok = await rail.transfer("alice", Decimal("3"), "ASSET")
        failed = await rail.transfer("treasury", Decimal("1"), "ASSET")

        assert ok.success and ok.signature.startswith("paper_")
        assert not failed.success and failed.error

    asyncio.run(run())
    assert [t.destination for t in rail.transfers] == ["alice"]


def test_live_mode_without_key_is_configuration_error() -> None:
    settings = Settings(_env_file=None, paper_mode=False, vault_secret_key="")

    with pytest.raises(ConfigurationError):
        create_payment_rail(settings)

    factory = cached_rail_factory(settings)
    with pytest.raises(ConfigurationError):
        factory()


def test_paper_mode_factory_reuses_rail() -> None:
    factory = cached_rail_factory(Settings(_env_file=None, paper_mode=True))
    assert isinstance(factory(), PaperPaymentRail)
    assert factory() is factory()


def test_http_rail_turns_errors_into_results() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        if body["destination"] == "bad":
            return httpx.Response(400, json={"success": False, "error": "insufficient funds"})
        return httpx.Response(200, json={"success": True, "signature": "sig-1"})

    rail = HttpPaymentRail("https://rail.test", "vault", VaultSigner(_keypair_bytes()))
    rail.client = httpx.AsyncClient(base_url="https://rail.test", transport=httpx.MockTransport(handler))

    async def run() -> None:
        ok = await rail.transfer("alice", Decimal("2.5"), "ASSET")
        bad = await rail.transfer("bad", Decimal("1"), "ASSET")
        await rail.close()

        assert ok.success and ok.signature == "sig-1"
        assert not bad.success and bad.error == "insufficient funds"

    asyncio.run(run())
    assert requests[0].headers["X-Vault-Signature"]
    assert json.loads(requests[0].content)["amount"] == "2.5"
