"""
Integration Tests: HTTP API

Drives the FastAPI app through TestClient and checks the JSON envelopes,
status codes and rate limits of the claim, bet and fee endpoints.
"""

ASSET = "So11111111111111111111111111111111111111112"


def place(api, tx: str, outcome: str, amount: float, wallet: str, nullifier: str | None = None):
    body = {
        "tx": tx,
        "marketId": "MKT-1",
        "marketTitle": "Will it rain?",
        "outcome": outcome,
        "amount": amount,
        "wallet": wallet,
        "mint": ASSET,
    }
    if nullifier:
        body["commitment"] = {"commitmentHash": f"hash-{tx}", "nullifier": nullifier, "timestamp": 1}
    return api.client.post("/api/bets", json=body)


def claim_body(bet_tx: str = "tx-alice", wallet: str = "alice", outcome: str = "yes") -> dict:
    return {
        "proof": {
            "commitmentHash": "hash-tx-alice",
            "nullifier": "null-alice",
            "marketId": "MKT-1",
            "outcome": outcome,
            "amount": 100,
            "signature": "sig",
            "claimable": True,
        },
        "betTx": bet_tx,
        "walletAddress": wallet,
    }


def seed(api) -> None:
    assert place(api, "tx-alice", "yes", 100, "alice", nullifier="null-alice").status_code == 201
    assert place(api, "tx-bob", "no", 300, "bob").status_code == 201


def test_health_and_root(api) -> None:
    health = api.client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["database"] == "connected"
    assert health["mode"] == "paper"

    assert api.client.get("/").json()["name"] == "Whisp API"


def test_record_and_list_bets(api) -> None:
    response = place(api, "tx-alice", "yes", 1.5, "alice", nullifier="null-alice")
    assert response.status_code == 201
    body = response.json()
    assert body["marketId"] == "MKT-1"
    assert body["mint"] == ASSET
    assert body["amount"] == 1.5
    assert body["status"] == "pending"
    assert body["commitment"]["nullifier"] == "null-alice"

    duplicate = place(api, "tx-alice", "yes", 1.5, "alice")
    assert duplicate.status_code == 409
    assert duplicate.json() == {"success": False, "error": "Bet already recorded"}

    listing = api.client.get("/api/bets", params={"wallet": "alice"}).json()
    assert listing["count"] == 1
    assert listing["bets"][0]["tx"] == "tx-alice"


def test_invalid_bet_is_rejected(api) -> None:
    response = api.client.post(
        "/api/bets",
        json={"tx": "tx-1", "marketId": "M", "outcome": "maybe", "amount": 1, "wallet": "alice"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_claim_success_envelope(api) -> None:
    seed(api)
    api.oracle.resolve("MKT-1", "yes")

    response = api.client.post("/api/claim", json=claim_body())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["payout"] == 394.0
    assert body["payoutTx"].startswith("paper_")
    assert body["message"] == "Claimed 394.00 tokens!"
    assert body["model"] == "parimutuel"

    again = api.client.post("/api/claim", json=claim_body())
    assert again.status_code == 400
    assert again.json() == {"success": False, "error": "Already claimed", "reason": "already_claimed"}


def test_claim_error_envelopes(api) -> None:
    seed(api)

    missing = api.client.post("/api/claim", json={"betTx": "tx-alice"})
    assert missing.status_code == 400
    assert missing.json() == {"success": False, "error": "Missing required fields"}

    not_found = api.client.post("/api/claim", json=claim_body(bet_tx="tx-nope"))
    assert not_found.status_code == 404
    assert not_found.json()["reason"] == "not_found"

    not_owner = api.client.post("/api/claim", json=claim_body(wallet="mallory"))
    assert not_owner.status_code == 403
    assert not_owner.json()["error"] == "Not your bet"

    unsettled = api.client.post("/api/claim", json=claim_body())
    assert unsettled.status_code == 400
    assert unsettled.json()["reason"] == "market_not_settled"

    api.oracle.resolve("MKT-1", "no")
    lost = api.client.post("/api/claim", json=claim_body())
    assert lost.status_code == 400
    assert lost.json()["error"] == "Your bet lost - outcome did not match result"

    assert api.rail.transfers == []


def test_payout_failure_envelope(api) -> None:
    seed(api)
    api.oracle.resolve("MKT-1", "yes")
    api.rail.fail_destinations.add("alice")

    response = api.client.post("/api/claim", json=claim_body())

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["reason"] == "payment_failed"
    assert body["error"].startswith("Payout failed:")


def test_claim_rate_limit(api) -> None:
    statuses = [
        api.client.post("/api/claim", json=claim_body(bet_tx="tx-nope")).status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [404] * 10
    assert statuses[10] == 429

    limited = api.client.post("/api/claim", json=claim_body(bet_tx="tx-nope"))
    assert limited.json()["retryAfter"] == 60
    assert limited.headers["Retry-After"] == "60"

    # Other wallets keep their own budget
    assert api.client.post("/api/claim", json=claim_body(bet_tx="tx-nope", wallet="bob")).status_code == 404


def test_claim_status_endpoint(api) -> None:
    seed(api)

    missing = api.client.get("/api/claim", params={"betTx": "tx-alice"})
    assert missing.status_code == 400

    pending = api.client.get("/api/claim", params={"betTx": "tx-alice", "wallet": "alice"}).json()
    assert pending == {"claimable": False, "reason": "Market not settled", "status": "pending"}

    api.oracle.resolve("MKT-1", "yes")
    winner = api.client.get("/api/claim", params={"betTx": "tx-alice", "wallet": "alice"}).json()
    assert winner == {
        "claimable": True,
        "status": "won",
        "estimatedPayout": 394.0,
        "marketResult": "yes",
        "model": "parimutuel",
    }


def test_retry_fees_requires_secret_and_reports(api) -> None:
    seed(api)
    api.oracle.resolve("MKT-1", "yes")
    api.rail.fail_destinations.add(api.settings.treasury_address)
    assert api.client.post("/api/claim", json=claim_body()).status_code == 200

    status = api.client.get("/api/retry-fees").json()
    assert status["pending"] == {"count": 1, "total": 6.0}

    unauthorized = api.client.post("/api/retry-fees")
    assert unauthorized.status_code == 401
    assert unauthorized.json() == {"error": "Unauthorized"}

    api.rail.fail_destinations.clear()
    headers = {"Authorization": "Bearer s3cret"}
    report = api.client.post("/api/retry-fees", headers=headers).json()
    assert report["success"] is True
    assert (report["processed"], report["successful"], report["failed"]) == (1, 1, 0)
    assert report["results"][0]["betTx"] == "tx-alice"

    empty = api.client.post("/api/retry-fees", headers=headers).json()
    assert empty["processed"] == 0
    assert empty["message"] == "No pending fees to process"

    status = api.client.get("/api/retry-fees").json()
    assert status["successful"] == {"count": 1, "total": 6.0}
    assert status["pending"]["count"] == 0


def test_clear_lost_bets(api) -> None:
    seed(api)
    api.oracle.resolve("MKT-1", "yes")
    api.client.get("/api/claim", params={"betTx": "tx-bob", "wallet": "bob"})

    # Status checks never mutate; losing bets are marked by a claim or the sweep
    assert api.client.delete("/api/bets/lost", params={"wallet": "bob"}).json()["deleted"] == 0

    bob_claim = claim_body(bet_tx="tx-bob", wallet="bob", outcome="no")
    bob_claim["proof"]["nullifier"] = "null-bob"
    assert api.client.post("/api/claim", json=bob_claim).status_code == 400

    assert api.client.delete("/api/bets/lost", params={"wallet": "bob"}).json() == {
        "success": True,
        "deleted": 1,
    }
    assert api.client.get("/api/bets", params={"wallet": "bob"}).json()["count"] == 0
