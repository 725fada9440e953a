import pytest
from fastapi.testclient import TestClient

from market_mood.mood.api.main import create_app
from market_mood.mood.core.settings import Settings

from conftest import FakeMarketSource, make_snapshot

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def engine(make_orchestrator):
    market = FakeMarketSource({"SOL": make_snapshot("SOL", pct=8.0), "DOT": make_snapshot("DOT")})
    orch = make_orchestrator(market, tokens={1: "SOL", 2: "DOT"})
    orch.run_cycle()
    return orch


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine, Settings(api_key="test-key")))


def test_health_is_open(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_api_key_required(client):
    assert client.get("/moods").status_code in (401, 403)
    assert client.get("/moods", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/status", headers={"X-API-Key": "wrong"}).status_code == 401


def test_moods(client):
    r = client.get("/moods", headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert [m["token_id"] for m in body] == [1, 2]
    assert body[0]["symbol"] == "SOL"
    assert body[0]["mood"] == "Bullish"
    assert body[1]["mood"] == "Neutral"
    assert body[0]["emoji"]
    assert body[0]["factors"]["price_change"] == 8.0


def test_sentiment(client):
    r = client.get("/sentiment/solusdt", headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert body["symbol"] == "SOL"
    assert -1.0 <= body["score"] <= 1.0
    assert body["trend"] == "stable"
    assert body["label"] in {"Very Positive", "Positive", "Neutral", "Negative", "Very Negative"}

    assert client.get("/sentiment/KSM", headers=HEADERS).status_code == 404


def test_history(client):
    r = client.get("/history/DOT", headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert len(body["points"]) == 1
    assert body["volatility"] == 0.0
    assert body["momentum"] == 0.0

    assert client.get("/history/BTC", headers=HEADERS).status_code == 404


def test_status(client, engine):
    r = client.get("/status", headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert body["cycles_run"] == 1
    assert body["tracked_tokens"] == 2
    assert body["ledger"]["confirmed"] == 2
    assert body["last_cycle"]["moods"]["Bullish"] == 1

    engine.sink.disconnect()
    r = client.get("/status", headers=HEADERS)
    assert r.status_code == 503
    assert r.json()["detail"]["sink"]["connected"] is False
