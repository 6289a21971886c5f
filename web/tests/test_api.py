"""Smoke tests for the basket engine web API."""

import inspect
import unittest

try:
    from fastapi.testclient import TestClient
except ImportError:  # pragma: no cover - optional dependency
    TestClient = None

try:
    from web import app as web_app
except ImportError:  # pragma: no cover - optional dependency
    web_app = None
from basket_state.store import InMemoryBasketStore, StrategyConfigStore
from core.config import EngineSettings
from execution_adapter.dex import SimulatedDex
from execution_adapter.oracle import InMemoryPriceOracle
from execution_controller.orchestrator import ExecutionOrchestrator, seed_registries
from registry.registry import EngineRegistries


@unittest.skipIf(TestClient is None or web_app is None, "FastAPI not available")
class WebApiTests(unittest.TestCase):
    def setUp(self) -> None:
        web_app._reset_state()
        self.now = 1_000
        self.oracle = InMemoryPriceOracle(time_provider=lambda: self.now)
        self.dex = SimulatedDex(fee_bps=0)
        for token in ("AAA", "BBB"):
            self.oracle.record(token, "1", as_of=self.now)
            self.dex.set_price(token, "1")
        registries = EngineRegistries.empty()
        seed_registries(registries, creator="alice", now=self.now)
        registries.oracles.register("memory", self.oracle, creator="alice", now=self.now)
        registries.dexes.register("sim", self.dex, creator="alice", now=self.now)
        web_app.configure(
            ExecutionOrchestrator(
                InMemoryBasketStore(),
                StrategyConfigStore(),
                registries,
                settings=EngineSettings(adapter_timeout_seconds=1.0, lock_timeout_seconds=0.0),
                time_provider=lambda: self.now,
            )
        )
        self.client = TestClient(web_app.app)

        response = self.client.post(
            "/api/strategy-configs",
            json={
                "authority": "alice",
                "strategy_name": "fixed",
                "parameters": {"weights": [6000, 4000]},
                "oracle_name": "memory",
                "dex_name": "sim",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.config_id = response.json()["config_id"]

        response = self.client.post(
            "/api/baskets",
            json={
                "authority": "alice",
                "constituents": [
                    {"token": "AAA", "balance": 6300},
                    {"token": "BBB", "balance": 3700},
                ],
                "prices": ["1", "1"],
                "total_supply": 10000,
                "strategy_config_id": self.config_id,
            },
        )
        self.assertEqual(response.status_code, 200)
        self.basket_id = response.json()["basket_id"]

    def tearDown(self) -> None:
        web_app._reset_state()

    def test_get_basket(self) -> None:
        response = self.client.get(f"/api/baskets/{self.basket_id}")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "ACTIVE")
        self.assertEqual([item["weight"] for item in payload["composition"]], [6300, 3700])

    def test_unknown_basket_is_404(self) -> None:
        response = self.client.get("/api/baskets/999")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["type"], "BasketNotFoundError")

    def test_evaluate_rebalances_drifted_basket(self) -> None:
        response = self.client.post(f"/api/baskets/{self.basket_id}/evaluate", json={})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["outcome"], "rebalanced")
        self.assertEqual(payload["reason"], "DRIFT")
        self.assertEqual(payload["legs_executed"], 1)

        basket = self.client.get(f"/api/baskets/{self.basket_id}").json()
        self.assertEqual([item["balance"] for item in basket["composition"]], [6000, 4000])

        again = self.client.post(f"/api/baskets/{self.basket_id}/evaluate", json={})
        self.assertEqual(again.json()["outcome"], "no_action")

    def test_stale_prices_reject_with_503(self) -> None:
        self.now += 3_600

        response = self.client.post(f"/api/baskets/{self.basket_id}/evaluate", json={})

        self.assertEqual(response.status_code, 503)
        payload = response.json()
        self.assertEqual(payload["outcome"], "rejected")
        self.assertEqual(payload["error"], "StaleDataError")
        self.assertTrue(payload["retryable"])

    def test_status_transitions_and_conflicts(self) -> None:
        path = f"/api/baskets/{self.basket_id}/status"

        response = self.client.post(path, json={"actor": "alice", "status": "paused"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "PAUSED")

        cases = (
            ({"actor": "alice", "status": "PAUSED"}, 409),
            ({"actor": "mallory", "status": "CLOSED"}, 409),
            ({"actor": "alice", "status": "SIDEWAYS"}, 400),
        )
        for body, status_code in cases:
            with self.subTest(body=body):
                self.assertEqual(self.client.post(path, json=body).status_code, status_code)

        evaluate = self.client.post(f"/api/baskets/{self.basket_id}/evaluate", json={})
        self.assertEqual(evaluate.status_code, 409)

    def test_fee_update_validates_range(self) -> None:
        path = f"/api/baskets/{self.basket_id}/fees"

        response = self.client.post(
            path, json={"actor": "alice", "creation_fee_bps": 25, "redemption_fee_bps": 50}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["redemption_fee_bps"], 50)

        response = self.client.post(
            path, json={"actor": "alice", "creation_fee_bps": 20000, "redemption_fee_bps": 0}
        )
        self.assertEqual(response.status_code, 400)

    def test_registry_and_config_listings(self) -> None:
        response = self.client.get("/api/registries/strategy")
        self.assertEqual(response.status_code, 200)
        names = [entry["name"] for entry in response.json()["entries"]]
        self.assertIn("fixed", names)

        self.assertEqual(self.client.get("/api/registries/unknown").status_code, 400)

        configs = self.client.get("/api/strategy-configs").json()["configs"]
        self.assertEqual([config["config_id"] for config in configs], [self.config_id])

    def test_admin_handlers_run_off_the_event_loop(self) -> None:
        for handler in (web_app.set_status, web_app.update_fees, web_app.evaluate_basket):
            with self.subTest(handler=handler.__name__):
                self.assertFalse(inspect.iscoroutinefunction(handler))


@unittest.skipIf(TestClient is None or web_app is None, "FastAPI not available")
class DefaultShellTests(unittest.TestCase):
    def setUp(self) -> None:
        web_app._reset_state()
        self.client = TestClient(web_app.app)

    def tearDown(self) -> None:
        web_app._reset_state()

    def test_creation_prices_feed_local_adapters(self) -> None:
        config = self.client.post(
            "/api/strategy-configs",
            json={
                "authority": "alice",
                "strategy_name": "fixed",
                "parameters": {"weights": [6000, 4000]},
                "oracle_name": "memory",
                "dex_name": "simulated",
            },
        ).json()
        basket_id = self.client.post(
            "/api/baskets",
            json={
                "authority": "alice",
                "constituents": [
                    {"token": "AAA", "balance": 6300},
                    {"token": "BBB", "balance": 3700},
                ],
                "prices": ["1", "1"],
                "total_supply": 10000,
                "strategy_config_id": config["config_id"],
            },
        ).json()["basket_id"]

        response = self.client.post(f"/api/baskets/{basket_id}/evaluate", json={})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["outcome"], "rebalanced")
        oracle = web_app._orchestrator().registries.oracles.resolve("memory")
        self.assertEqual(oracle.symbols(), ["AAA", "BBB"])
        stats = self.client.get(f"/api/baskets/{basket_id}").json()["execution_stats"]
        self.assertEqual(stats["success_rate_bps"], 10000)


if __name__ == "__main__":
    unittest.main()
