"""Determinism, dust and validation tests for the trade-plan builder."""

import unittest
from dataclasses import replace
from decimal import Decimal

from basket_state.models import RebalancingConfig
from core.errors import PlanValidationError
from rebalancing_policy.models import PortfolioView
from rebalancing_policy.planner import build_trade_plan, max_drift_bps, validate_plan

ONE = Decimal("1")


def _view(balances, prices=None) -> PortfolioView:
    tokens = ("AAA", "BBB", "CCC", "DDD")[: len(balances)]
    prices = prices or tuple(ONE for _ in balances)
    return PortfolioView.from_balances(tokens, balances, prices)


class TradePlanBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = RebalancingConfig("threshold", "pyth", "orca")

    def test_same_input_same_plan(self) -> None:
        view = _view((4000, 3000, 2000, 1000))
        targets = (2500, 2500, 2500, 2500)

        first = build_trade_plan(view, targets, self.config)
        second = build_trade_plan(view, targets, self.config)

        self.assertEqual(first, second)

    def test_largest_sell_pairs_with_largest_buy(self) -> None:
        plan = build_trade_plan(
            _view((4000, 3000, 2000, 1000)), (2500, 2500, 2500, 2500), self.config
        )

        self.assertEqual(
            [(leg.sequence, leg.sell_token, leg.buy_token, leg.value) for leg in plan.legs],
            [(1, "AAA", "DDD", Decimal("1500")), (2, "BBB", "CCC", Decimal("500"))],
        )

    def test_one_sell_split_across_buys_in_index_order_on_ties(self) -> None:
        plan = build_trade_plan(
            _view((5000, 2000, 2000, 1000)), (2500, 2500, 2500, 2500), self.config
        )

        self.assertEqual(
            [(leg.sell_token, leg.buy_token, leg.value) for leg in plan.legs],
            [
                ("AAA", "DDD", Decimal("1500")),
                ("AAA", "BBB", Decimal("500")),
                ("AAA", "CCC", Decimal("500")),
            ],
        )

    def test_amounts_floor_value_at_each_price(self) -> None:
        view = _view((100, 700), (Decimal("3"), ONE))

        plan = build_trade_plan(view, (5000, 5000), self.config)

        leg = plan.legs[0]
        self.assertEqual((leg.sell_token, leg.buy_token), ("BBB", "AAA"))
        self.assertEqual((leg.amount_in, leg.expected_amount_out), (200, 66))

    def test_expensive_sell_token_expects_only_realized_value(self) -> None:
        view = _view((63, 370), (Decimal("10"), ONE))

        plan = build_trade_plan(view, (6005, 3995), self.config)

        leg = plan.legs[0]
        self.assertEqual((leg.sell_token, leg.buy_token), ("AAA", "BBB"))
        self.assertEqual((leg.amount_in, leg.expected_amount_out), (2, 20))
        self.assertEqual(leg.value, Decimal("20"))

    def test_dust_is_deferred_never_traded(self) -> None:
        config = replace(self.config, min_trade_value=Decimal("5"))
        view = _view((5000, 4997, 3))

        plan = build_trade_plan(view, (5000, 5000, 0), config)

        self.assertTrue(plan.is_empty)
        self.assertEqual(len(plan.deferred), 1)
        self.assertEqual(plan.deferred[0].value, Decimal("3"))

    def test_legs_balance_buy_and_sell_value(self) -> None:
        view = _view((3100, 2900, 2500, 1500), (Decimal("1.7"), ONE, Decimal("0.9"), Decimal("2.3")))
        config = replace(self.config, min_trade_value=Decimal("10"))

        plan = build_trade_plan(view, (2500, 2500, 2500, 2500), config)

        self.assertTrue(plan.legs)
        for leg in plan.legs:
            with self.subTest(sequence=leg.sequence):
                self.assertGreaterEqual(leg.value, config.min_trade_value)
                sell_price = view.prices[view.tokens.index(leg.sell_token)]
                buy_price = view.prices[view.tokens.index(leg.buy_token)]
                self.assertLess(leg.value - leg.amount_in * sell_price, sell_price)
                self.assertLess(leg.value - leg.expected_amount_out * buy_price, buy_price)
        validate_plan(plan, view)

    def test_leg_limit_defers_overflow(self) -> None:
        plan = build_trade_plan(
            _view((4000, 3000, 2000, 1000)), (2500, 2500, 2500, 2500), self.config, max_legs=1
        )

        self.assertEqual(len(plan.legs), 1)
        self.assertEqual(
            [(item.sell_token, item.buy_token) for item in plan.deferred], [("BBB", "CCC")]
        )

    def test_max_drift(self) -> None:
        self.assertEqual(max_drift_bps((6300, 3700), (6000, 4000)), 300)


class PlanValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.view = _view((6300, 3700))
        self.plan = build_trade_plan(
            self.view, (6000, 4000), RebalancingConfig("threshold", "pyth", "orca")
        )
        self.leg = self.plan.legs[0]

    def test_valid_plan_passes(self) -> None:
        validate_plan(self.plan, self.view)

    def test_hard_rules_enforced(self) -> None:
        broken_legs = {
            "order": (self.leg, replace(self.leg, sequence=0, amount_in=1)),
            "same_token": (replace(self.leg, buy_token="AAA"),),
            "zero_amount": (replace(self.leg, amount_in=0),),
            "dust": (replace(self.leg, value=Decimal("0.5")),),
            "slippage": (replace(self.leg, max_slippage_bps=1001),),
            "oversell": (replace(self.leg, amount_in=6301),),
            "unknown": (replace(self.leg, buy_token="ZZZ"),),
        }
        for name, legs in broken_legs.items():
            with self.subTest(rule=name):
                with self.assertRaises(PlanValidationError):
                    validate_plan(replace(self.plan, legs=legs), self.view)

    def test_slippage_cap_tightens_limit(self) -> None:
        with self.assertRaises(PlanValidationError):
            validate_plan(self.plan, self.view, max_slippage_cap=10)


if __name__ == "__main__":
    unittest.main()
