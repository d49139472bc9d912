"""HTTP API over an in-process engine."""

import pytest
from fastapi.testclient import TestClient

from predamm.amm.fixed_point import SCALE
from predamm.api.main import app, get_engine

DAY = 86_400


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client):
    r = client.post(
        "/markets",
        json={
            "caller": "admin",
            "question": "Will it rain?",
            "options": ["Yes", "No"],
            "duration": DAY,
            "initial_liquidity": 1000 * SCALE,
        },
    )
    assert r.status_code == 200
    return r.json()["market_id"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "markets": 0}


def test_trade_flow(client, clock):
    mid = _create(client)
    assert client.post(f"/markets/{mid}/validate", json={"caller": "admin"}).json()["phase"] == "ACTIVE"

    q = client.get(f"/markets/{mid}/quote/buy", params={"option": 0, "quantity": 100 * SCALE}).json()
    assert q["amount"] == 57_375 * SCALE // 1000

    r = client.post(f"/markets/{mid}/buy", json={"caller": "alice", "option": 0, "quantity": 100 * SCALE})
    assert r.status_code == 200
    assert r.json()["side"] == "BUY"
    shares = client.get(f"/markets/{mid}/shares/alice").json()
    assert shares["shares"] == [100 * SCALE, 0]

    clock.advance(DAY)
    r = client.post(f"/markets/{mid}/resolve", json={"caller": "oracle", "winning_option": 0})
    assert r.json()["phase"] == "RESOLVED"
    r = client.post(f"/markets/{mid}/claim", json={"caller": "alice"})
    assert r.json()["amount"] == 5625 * SCALE // 100
    assert client.get("/users/alice/portfolio").json()["total_winnings"] == 5625 * SCALE // 100
    assert len(client.get(f"/markets/{mid}/trades").json()) == 1
    assert client.get("/stats").json()["market_count"] == 1


def test_error_mapping(client):
    r = client.get("/markets/9")
    assert r.status_code == 404
    assert r.json()["code"] == "MarketNotFound"

    r = client.post(
        "/markets",
        json={"caller": "mallory", "question": "q", "options": ["a", "b"], "duration": DAY, "initial_liquidity": SCALE},
    )
    assert r.status_code == 403
    assert r.json()["code"] == "NotAuthorized"

    mid = _create(client)
    r = client.post(f"/markets/{mid}/buy", json={"caller": "alice", "option": 0, "quantity": SCALE})
    assert r.status_code == 409
    assert r.json()["code"] == "MarketNotActive"

    r = client.post(f"/markets/{mid}/buy", json={"caller": "alice", "option": 0, "quantity": 0})
    assert r.status_code == 422

    r = client.get(f"/markets/{mid}/quote/hold", params={"option": 0, "quantity": SCALE})
    assert r.status_code == 422


def test_faucet_and_roles(client):
    r = client.post("/faucet", json={"account": "zed"})
    assert r.status_code == 200
    assert r.json()["balance"] > 0
    assert client.get("/balances/zed").json()["balance"] == r.json()["balance"]

    r = client.post("/roles", json={"caller": "zed", "account": "zed", "capabilities": ["CREATE_MARKET"]})
    assert r.status_code == 403
    r = client.post("/roles", json={"caller": "admin", "account": "zed", "capabilities": ["CREATE_MARKET"]})
    assert r.json()["capabilities"] == ["CREATE_MARKET"]


def test_invalidated_market_refunds(client):
    mid = _create(client)
    r = client.post(f"/markets/{mid}/liquidity", json={"caller": "carol", "amount": 100 * SCALE})
    assert r.status_code == 200
    r = client.post(f"/markets/{mid}/invalidate", json={"caller": "admin"})
    assert r.json()["amount"] == 1000 * SCALE

    r = client.post(f"/markets/{mid}/refund", json={"caller": "carol"})
    assert r.json()["amount"] == 100 * SCALE
    r = client.post(f"/markets/{mid}/refund", json={"caller": "carol"})
    assert r.status_code == 409
    assert r.json()["code"] == "AlreadyClaimed"
