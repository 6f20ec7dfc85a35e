"""
Integration tests for the HTTP API.
"""

import time

import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.backtest.service import BacktestService
from src.infrastructure.data import TechnicalIndicatorEngine
from tests.helpers import FakeMarketData, make_candles

BACKTEST = {
    "strategy": "buy_and_hold",
    "symbols": ["BTCUSDT"],
    "timeframe": "1d",
    "start_date": "2024-01-01T00:00:00Z",
    "end_date": "2024-12-31T00:00:00Z",
    "initial_capital": 10000,
    "commission_rate": 0,
    "slippage_rate": 0,
}


def wait_until_finished(client: TestClient, backtest_id: str, attempts: int = 200) -> dict:
    for _ in range(attempts):
        body = client.get(f"/api/backtest/{backtest_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.01)
    raise AssertionError(f"Backtest {backtest_id} did not finish")


class TestBacktestApi:
    """Test suite for the backtest endpoints."""

    @pytest.fixture
    def client(self, rising_closes):
        market_data = FakeMarketData({"BTCUSDT": make_candles(rising_closes)})
        service = BacktestService(market_data, indicator_engine=TechnicalIndicatorEngine())
        with TestClient(create_app(service)) as client:
            yield client

    def test_should_accept_backtest_and_serve_results(self, client) -> None:
        # Act
        response = client.post("/api/backtest/", json=BACKTEST)
        backtest_id = response.json()["backtest_id"]
        body = wait_until_finished(client, backtest_id)

        # Assert
        assert response.status_code == 202
        assert response.json()["status"] == "pending"
        assert body["status"] == "completed"
        assert body["progress"] == 100.0
        assert body["metrics"]["final_equity"] == pytest.approx(10900.0)
        assert len(body["trades"]) == 1
        assert len(body["equity_curve"]) == 11

    def test_should_report_progress_stats_and_history(self, client) -> None:
        backtest_id = client.post("/api/backtest/", json=BACKTEST).json()["backtest_id"]
        wait_until_finished(client, backtest_id)

        progress = client.get(f"/api/backtest/{backtest_id}/progress").json()
        stats = client.get("/api/backtest/stats").json()
        history = client.get("/api/backtest/history").json()

        assert progress == {"backtest_id": backtest_id, "status": "completed", "progress": 100.0}
        assert stats["total"] == 1
        assert stats["completed"] == 1
        assert history[-1]["backtest_id"] == backtest_id

    def test_should_optimize_existing_backtest(self, client) -> None:
        payload = {**BACKTEST, "strategy": "sma_crossover"}
        backtest_id = client.post("/api/backtest/", json=payload).json()["backtest_id"]
        wait_until_finished(client, backtest_id)

        response = client.post(
            f"/api/backtest/{backtest_id}/optimize",
            json={
                "param_ranges": {
                    "fast_period": {"values": [2, 3]},
                    "slow_period": {"min": 4, "max": 5, "step": 1},
                }
            },
        )

        body = response.json()
        assert response.status_code == 200
        assert body["backtest_id"] == backtest_id
        assert body["total_combinations"] == 4
        assert len(body["ranked"]) == 4

    def test_should_cancel_finished_backtest_as_noop(self, client) -> None:
        backtest_id = client.post("/api/backtest/", json=BACKTEST).json()["backtest_id"]
        wait_until_finished(client, backtest_id)

        response = client.delete(f"/api/backtest/{backtest_id}")

        assert response.json() == {"backtest_id": backtest_id, "cancelled": False}

    def test_should_return_404_for_unknown_backtest(self, client) -> None:
        response = client.get("/api/backtest/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "BacktestNotFoundError"
        assert response.json()["backtest_id"] == "missing"

    def test_should_return_422_for_unknown_strategy(self, client) -> None:
        response = client.post("/api/backtest/", json={**BACKTEST, "strategy": "martingale"})

        assert response.status_code == 422
        assert response.json()["error"] == "ConfigurationError"

    def test_should_return_422_for_inverted_dates(self, client) -> None:
        response = client.post(
            "/api/backtest/",
            json={**BACKTEST, "start_date": "2025-01-01T00:00:00Z"},
        )

        assert response.status_code == 422


class TestDataApi:
    """Test suite for the data and health endpoints."""

    @pytest.fixture
    def client(self):
        service = BacktestService(FakeMarketData({}), indicator_engine=TechnicalIndicatorEngine())
        with TestClient(create_app(service)) as client:
            yield client

    def test_should_list_indicators_and_strategies(self, client) -> None:
        indicators = client.get("/api/data/indicators").json()["indicators"]
        strategies = client.get("/api/data/strategies").json()["strategies"]

        assert "rsi" in indicators
        assert {entry["name"] for entry in strategies} == {
            "buy_and_hold",
            "sma_crossover",
            "rsi_threshold",
        }

    def test_should_report_health(self, client) -> None:
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/").json()["status"] == "running"
