"""State machine, invariant and in-kind creation/redemption tests."""

import unittest
from dataclasses import replace
from decimal import Decimal

from basket_state.lifecycle import (
    apply_swap,
    bind_strategy,
    burn,
    close,
    create_basket,
    drawdown_breached,
    freeze,
    mark_to_market,
    mint,
    nav_per_unit,
    pause,
    set_fees,
    set_rebalancing_enabled,
    transition,
    unfreeze,
    unpause,
    update_signals,
    validate_state,
)
from basket_state.models import (
    BasketConstituent,
    BasketStatus,
    OptimizationSettings,
    RebalancingConfig,
    RiskSettings,
    StrategyConfig,
    WeightConfig,
)
from core.errors import InvalidStatusError, StateError, UnauthorizedError, ValidationError

PRICES = (Decimal("3"), Decimal("1"))


class BasketLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = create_basket(
            basket_id=1,
            authority="alice",
            constituents=(("AAA", 1000), ("BBB", 3000)),
            prices=PRICES,
            total_supply=600,
            strategy_config_id=1,
            now=100,
            manager="bob",
        )

    def test_create_seeds_normalized_weights(self) -> None:
        self.assertEqual(self.state.status, BasketStatus.ACTIVE)
        self.assertEqual(self.state.weights, (5000, 5000))
        self.assertEqual(self.state.total_value, Decimal("6000"))
        self.assertEqual(self.state.fee_collector, "alice")
        self.assertEqual(nav_per_unit(self.state), Decimal("10"))
        self.assertEqual(self.state.risk_metrics.peak_nav, Decimal("10"))
        self.assertEqual(self.state.risk_metrics.risk_score, 5000)

    def test_create_rejects_bad_composition(self) -> None:
        cases = {
            "empty": ((), ()),
            "duplicate": ((("AAA", 1), ("AAA", 2)), PRICES),
            "price_count": ((("AAA", 1),), PRICES),
            "zero_price": ((("AAA", 1), ("BBB", 1)), (Decimal("1"), Decimal("0"))),
        }
        for name, (constituents, prices) in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(ValidationError):
                    create_basket(1, "alice", constituents, prices, 1, 1, now=1)

    def test_validate_state_catches_broken_invariants(self) -> None:
        broken = {
            "weights": replace(
                self.state,
                composition=(
                    BasketConstituent("AAA", 1000, 5000),
                    BasketConstituent("BBB", 3000, 4999),
                ),
            ),
            "balance": replace(
                self.state,
                composition=(
                    BasketConstituent("AAA", -1, 5000),
                    BasketConstituent("BBB", 3000, 5000),
                ),
            ),
            "fee": replace(self.state, creation_fee_bps=10001),
            "rebalanced": replace(self.state, last_rebalanced=101),
        }
        for name, state in broken.items():
            with self.subTest(case=name):
                with self.assertRaises(ValidationError):
                    validate_state(state)

    def test_paused_basket_may_carry_unnormalized_weights(self) -> None:
        paused = replace(
            pause(self.state, "alice", 101),
            composition=(
                BasketConstituent("AAA", 1000, 0),
                BasketConstituent("BBB", 3000, 0),
            ),
        )

        validate_state(paused)

    def test_pause_and_unpause_by_manager(self) -> None:
        paused = pause(self.state, "bob", 101)
        resumed = unpause(paused, "bob", 102)

        self.assertEqual(paused.status, BasketStatus.PAUSED)
        self.assertEqual(resumed.status, BasketStatus.ACTIVE)
        self.assertEqual(resumed.updated_at, 102)

    def test_only_authority_freezes_and_unfreezes(self) -> None:
        with self.assertRaises(UnauthorizedError):
            freeze(self.state, "bob", 101)

        frozen = freeze(self.state, "alice", 101)
        with self.assertRaises(UnauthorizedError):
            unfreeze(frozen, "bob", 102)

        thawed = unfreeze(frozen, "alice", 102)
        self.assertEqual(thawed.status, BasketStatus.PAUSED)

    def test_frozen_basket_rejects_unpause_and_mutations(self) -> None:
        frozen = freeze(self.state, "alice", 101)

        with self.assertRaises(InvalidStatusError):
            unpause(frozen, "alice", 102)
        with self.assertRaises(InvalidStatusError):
            set_fees(frozen, "alice", 10, 10, 102)
        with self.assertRaises(InvalidStatusError):
            mint(frozen, 10, PRICES, 102)

    def test_closed_rejects_every_mutation(self) -> None:
        closed = close(self.state, "alice", 101)
        config = _config(authority="alice", config_id=2)
        calls = {
            "pause": lambda: pause(closed, "alice", 102),
            "unpause": lambda: unpause(closed, "alice", 102),
            "freeze": lambda: freeze(closed, "alice", 102),
            "unfreeze": lambda: unfreeze(closed, "alice", 102),
            "close": lambda: close(closed, "alice", 102),
            "fees": lambda: set_fees(closed, "alice", 1, 1, 102),
            "bind": lambda: bind_strategy(closed, "alice", config, 102),
            "toggle": lambda: set_rebalancing_enabled(closed, "alice", False, 102),
            "signals": lambda: update_signals(closed, "alice", 102, ai_signals=(1, 1)),
            "mint": lambda: mint(closed, 10, PRICES, 102),
            "burn": lambda: burn(closed, 10, PRICES, 102),
        }
        for name, call in calls.items():
            with self.subTest(operation=name):
                with self.assertRaises(StateError):
                    call()

    def test_transition_routes_to_lifecycle_operation(self) -> None:
        frozen = transition(self.state, BasketStatus.FROZEN, "alice", 101)
        paused = transition(frozen, BasketStatus.PAUSED, "alice", 102)
        active = transition(paused, BasketStatus.ACTIVE, "alice", 103)

        self.assertEqual(
            [frozen.status, paused.status, active.status],
            [BasketStatus.FROZEN, BasketStatus.PAUSED, BasketStatus.ACTIVE],
        )

    def test_clock_must_not_move_backwards(self) -> None:
        with self.assertRaises(ValidationError):
            pause(self.state, "alice", 99)

    def test_set_fees_validates_range(self) -> None:
        updated = set_fees(self.state, "alice", 25, 50, 101)

        self.assertEqual((updated.creation_fee_bps, updated.redemption_fee_bps), (25, 50))
        with self.assertRaises(ValidationError):
            set_fees(self.state, "alice", 10001, 0, 101)
        with self.assertRaises(UnauthorizedError):
            set_fees(self.state, "bob", 1, 1, 101)

    def test_bind_strategy_requires_matching_authority(self) -> None:
        bound = bind_strategy(self.state, "alice", _config("alice", 7), 101)

        self.assertEqual(bound.strategy_config_id, 7)
        with self.assertRaises(UnauthorizedError):
            bind_strategy(self.state, "alice", _config("mallory", 8), 101)

    def test_update_signals_requires_one_value_per_constituent(self) -> None:
        updated = update_signals(self.state, "bob", 101, external_signals=("0.5", "1.5"))

        self.assertEqual(updated.external_signals, (Decimal("0.5"), Decimal("1.5")))
        with self.assertRaises(ValidationError):
            update_signals(self.state, "bob", 101, ai_signals=(Decimal("1"),))


class InKindTransferTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = create_basket(
            1, "alice", (("AAA", 1000), ("BBB", 3000)), PRICES, 600, 1, now=100
        )

    def test_mint_takes_pro_rata_deposit_and_fee(self) -> None:
        state = set_fees(self.state, "alice", 100, 0, 101)

        minted, transfer = mint(state, 300, PRICES, 102)

        self.assertEqual(transfer.amounts, (500, 1500))
        self.assertEqual(transfer.fee_units, 3)
        self.assertEqual(minted.balances, (1500, 4500))
        self.assertEqual(minted.total_supply, 900)
        self.assertEqual(minted.fees_collected, 3)
        self.assertEqual(minted.total_value, Decimal("9000"))
        self.assertEqual(sum(minted.weights), 10000)

    def test_mint_rounds_deposits_up(self) -> None:
        _, transfer = mint(self.state, 1, PRICES, 101)

        self.assertEqual(transfer.amounts, (2, 5))

    def test_burn_retains_fee_and_rounds_withdrawals_down(self) -> None:
        state = set_fees(self.state, "alice", 0, 100, 101)

        burned, transfer = burn(state, 300, PRICES, 102)

        self.assertEqual(transfer.fee_units, 3)
        self.assertEqual(transfer.amounts, (495, 1485))
        self.assertEqual(burned.balances, (505, 1515))
        self.assertEqual(burned.total_supply, 303)
        self.assertEqual(burned.fees_collected, 3)

    def test_burn_rejects_more_than_supply(self) -> None:
        with self.assertRaises(ValidationError):
            burn(self.state, 601, PRICES, 101)
        with self.assertRaises(ValidationError):
            mint(self.state, 0, PRICES, 101)


class RiskWatermarkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = create_basket(
            1, "alice", (("AAA", 1000), ("BBB", 3000)), PRICES, 600, 1, now=100
        )

    def test_drawdown_watermark_never_decreases(self) -> None:
        fallen = mark_to_market(self.state, (Decimal("1.5"), Decimal("1")))
        recovered = mark_to_market(fallen, PRICES)

        self.assertEqual(fallen.risk_metrics.max_drawdown, Decimal("0.25"))
        self.assertEqual(recovered.risk_metrics.max_drawdown, Decimal("0.25"))
        self.assertEqual(recovered.risk_metrics.peak_nav, Decimal("10"))

    def test_unfreeze_acknowledges_current_drawdown(self) -> None:
        fallen = mark_to_market(self.state, (Decimal("1.5"), Decimal("1")))
        self.assertTrue(drawdown_breached(fallen, Decimal("0.2")))

        thawed = unfreeze(freeze(fallen, "alice", 101), "alice", 102)

        self.assertFalse(drawdown_breached(thawed, Decimal("0.2")))
        deeper = mark_to_market(thawed, (Decimal("1"), Decimal("1")))
        self.assertTrue(drawdown_breached(deeper, Decimal("0.2")))

    def test_apply_swap_moves_balances_and_reweights(self) -> None:
        swapped = apply_swap(self.state, "AAA", "BBB", 100, 290, PRICES)

        self.assertEqual(swapped.balances, (900, 3290))
        self.assertEqual(swapped.total_value, Decimal("5990"))
        self.assertEqual(sum(swapped.weights), 10000)
        with self.assertRaises(ValidationError):
            apply_swap(self.state, "AAA", "BBB", 1001, 1, PRICES)


def _config(authority: str, config_id: int) -> StrategyConfig:
    return StrategyConfig(
        config_id=config_id,
        authority=authority,
        weight_config=WeightConfig("equal"),
        rebalancing_config=RebalancingConfig("threshold", "pyth", "orca"),
        optimization_settings=OptimizationSettings(),
        risk_settings=RiskSettings(),
        created_at=1,
    )


if __name__ == "__main__":
    unittest.main()
