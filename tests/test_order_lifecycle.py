import unittest

from hedge_bot.dataclass.order import OrderOutcome, OrderSide, OrderStatus, OrderType
from hedge_bot.dataclass.results import Disposition, HedgeStage, PassOutcome
from hedge_bot.datas.strategy import HedgeConfig
from hedge_bot.errors import ExchangeError, FillTimeout, InsufficientBalance, InsufficientForMinLimit, PersistenceError
from hedge_bot.order_lifecycle import HedgeAttempt, OrderLifecycleManager
from tests.fakes import D, FakeClock, FakeExchange, FakeLedger, FakeLogger, btc_constraints, filled, make_position


def hedge_config(**kw):
    kw.setdefault("position_amount", D("100"))
    return HedgeConfig(**kw)


class OrderLifecycleTests(unittest.TestCase):
    def setUp(self):
        self.exchange = FakeExchange(balances={"USDT": "1000", "BTC": "1"}, constraints=btc_constraints())
        self.ledger = FakeLedger()
        self.clock = FakeClock()
        self.logger = FakeLogger()

    def manager(self, **kw) -> OrderLifecycleManager:
        return OrderLifecycleManager(self.exchange, self.ledger, hedge_config(**kw), clock=self.clock, logger=self.logger)

    def fill_buy(self, *snapshots):
        self.exchange.statuses["BUY-1"] = list(snapshots)

    # ---------------- happy path ----------------
    def test_btc_scenario_places_both_legs_and_persists(self):
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        buy, sell = self.exchange.orders
        self.assertEqual((buy.side, buy.order_type, buy.quantity, buy.price), (OrderSide.BUY, OrderType.LIMIT, D("0.002"), D("50050")))
        self.assertEqual((sell.side, sell.order_type, sell.quantity, sell.price), (OrderSide.SELL, OrderType.LIMIT, D("0.002"), D("52100")))

        record = self.ledger.rows[1]
        self.assertEqual(record.order_id, "SELL-2")
        self.assertEqual(record.buy_order_id, "BUY-1")
        self.assertIs(record.status, OrderStatus.PENDING)
        self.assertEqual(record.hedge_open_price, D("50050"))
        self.assertEqual(record.hedge_take_profit_price, D("52100"))
        self.assertEqual(record.position_open_price, D("53000"))
        self.assertEqual(record.last_status_check, self.clock.now())
        self.assertEqual(result.record, record)
        self.assertEqual(result.attempts[0].stage, HedgeStage.PERSISTED)
        self.assertEqual(self.clock.sleeps, [1.0])

    def test_market_buy_records_fill_average(self):
        self.fill_buy(filled("BUY-1", "0.002", "50010"))
        result = self.manager(buy_order_type=OrderType.MARKET).hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertIs(self.exchange.orders[0].order_type, OrderType.MARKET)
        self.assertIsNone(self.exchange.orders[0].price)
        self.assertEqual(result.record.hedge_open_price, D("50010"))

    def test_limit_price_used_when_fill_has_no_average(self):
        self.fill_buy(filled("BUY-1", "0.002"))
        result = self.manager().hedge_first([make_position()])
        self.assertEqual(result.record.hedge_open_price, D("50050"))

    # ---------------- fill handling ----------------
    def test_fill_ratio_below_threshold_warns_and_sells_filled_qty(self):
        self.fill_buy(filled("BUY-1", "0.00188", "50050"))  # 94%
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.orders[1].quantity, D("0.00188"))
        self.assertEqual(result.record.hedge_amount, D("0.00188"))
        self.assertTrue(any("PARTIAL FILL" in m for m in self.logger.messages("WARNING")))

    def test_fill_ratio_above_threshold_is_a_full_fill(self):
        self.fill_buy(filled("BUY-1", "0.00192", "50050"))  # 96%
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.orders[1].quantity, D("0.00192"))
        self.assertFalse(any("PARTIAL FILL" in m for m in self.logger.messages()))

    def test_fill_timeout_is_fatal_and_nothing_is_sold(self):
        # no script: the buy stays PENDING
        result = self.manager(fill_poll_attempts=5).hedge_first([make_position(), make_position(id=2)])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertIsInstance(result.error, FillTimeout)
        self.assertEqual(result.error.context["buy_order_id"], "BUY-1")
        self.assertEqual(result.attempts[0].stage, HedgeStage.BUY_FAILED)
        self.assertEqual(len(result.attempts), 1)
        self.assertEqual(len(self.exchange.orders), 1)
        self.assertEqual(self.clock.sleeps, [1.0] * 5)
        self.assertEqual(self.ledger.rows, {})

    def test_transient_status_errors_are_tolerated(self):
        self.fill_buy(
            ExchangeError("timeout"),
            filled("BUY-1", "0.001", "50050", status=OrderStatus.PARTIALLY_FILLED),
            filled("BUY-1", "0.002", "50050"),
        )
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.status_calls, ["BUY-1"] * 3)

    def test_cancelled_with_partial_fill_sells_what_was_filled(self):
        self.fill_buy(filled("BUY-1", "0.001", "50050", status=OrderStatus.CANCELLED))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(result.record.hedge_amount, D("0.001"))

    def test_cancelled_without_fill_is_fatal(self):
        self.fill_buy(filled("BUY-1", "0", status=OrderStatus.CANCELLED))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertIsInstance(result.error, ExchangeError)
        self.assertEqual(len(self.exchange.orders), 1)

    # ---------------- base balance ----------------
    def test_sell_clamped_to_available_base_asset(self):
        self.exchange.balances["BTC"] = D("0.0019986")
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.orders[1].quantity, D("0.001998"))

    def test_no_base_asset_is_fatal(self):
        self.exchange.balances["BTC"] = D("0")
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertEqual(result.attempts[0].stage, HedgeStage.SELL_FAILED)

    def test_base_balance_check_can_be_disabled(self):
        self.exchange.balances["BTC"] = D("0")
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager(verify_base_balance=False).hedge_first([make_position()])
        self.assertIs(result.outcome, PassOutcome.HEDGED)

    def test_base_balance_lookup_failure_sells_filled_qty(self):
        self.exchange.balance_errors["BTC"] = ExchangeError("boom")
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.orders[1].quantity, D("0.002"))

    # ---------------- sell retries ----------------
    def test_sell_is_retried_with_delay(self):
        self.exchange.outcomes = [
            OrderOutcome("BUY-1", True),
            OrderOutcome("", False, "price out of range"),
            ExchangeError("network down"),
            OrderOutcome("SELL-9", True),
        ]
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(result.record.order_id, "SELL-9")
        self.assertEqual(self.clock.sleeps, [1.0, 2.0, 2.0])

    def test_sell_retries_exhausted(self):
        self.exchange.outcomes = [OrderOutcome("BUY-1", True)] + [OrderOutcome("", False, "rejected")] * 3
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager(retry_delay=0.5).hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertIn("after 3 attempts", str(result.error))
        self.assertEqual(result.attempts[0].stage, HedgeStage.SELL_FAILED)
        self.assertEqual(self.clock.sleeps, [1.0, 0.5, 0.5])
        self.assertEqual(self.ledger.rows, {})

    # ---------------- buy leg failures ----------------
    def test_buy_rejected_ends_pass(self):
        self.exchange.outcomes = [OrderOutcome("", False, "insufficient funds")]
        result = self.manager().hedge_first([make_position(), make_position(id=2)])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertEqual(len(result.attempts), 1)
        self.assertEqual(result.attempts[0].stage, HedgeStage.BUY_FAILED)

    def test_quote_balance_lookup_failure_is_fatal(self):
        self.exchange.balance_errors["USDT"] = ExchangeError("down")
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertEqual(self.exchange.orders, [])

    def test_constraints_lookup_failure_uses_defaults(self):
        self.exchange.constraints_error = ExchangeError("instrument info unavailable")
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(self.exchange.orders[0].price, D("50050"))

    # ---------------- persistence ----------------
    def test_ledger_failure_is_critical_with_order_ids(self):
        self.ledger.fail_save = True
        self.fill_buy(filled("BUY-1", "0.002", "50050"))
        result = self.manager().hedge_first([make_position()])

        self.assertIs(result.outcome, PassOutcome.FAILED)
        self.assertIsInstance(result.error, PersistenceError)
        self.assertEqual(result.attempts[0].stage, HedgeStage.SELL_FAILED)
        critical = self.logger.messages("CRITICAL")
        self.assertEqual(len(critical), 1)
        self.assertIn("BUY-1", critical[0])
        self.assertIn("SELL-2", critical[0])

    # ---------------- candidate loop ----------------
    def test_skippable_candidate_moves_to_next(self):
        too_small = make_position(id=1, current_rate="10000000")
        ok = make_position(id=2)
        self.exchange.statuses["BUY-1"] = [filled("BUY-1", "0.002", "50050")]
        result = self.manager().hedge_first([too_small, ok])

        self.assertIs(result.outcome, PassOutcome.HEDGED)
        self.assertEqual(result.record.position_id, 2)
        self.assertEqual([a.stage for a in result.attempts], [HedgeStage.REJECTED, HedgeStage.PERSISTED])
        self.assertIs(result.attempts[0].disposition, Disposition.SKIPPABLE)

    def test_all_candidates_rejected_is_benign(self):
        result = self.manager().hedge_first([make_position(id=1, current_rate="10000000"), make_position(id=2, current_rate="20000000")])

        self.assertIs(result.outcome, PassOutcome.ALL_REJECTED)
        self.assertTrue(result.is_benign)
        self.assertIsInstance(result.error, InsufficientForMinLimit)
        self.assertEqual(result.error.context["position_id"], 2)
        self.assertEqual(self.exchange.orders, [])

    def test_insufficient_balance_stops_the_pass(self):
        self.exchange.balances["USDT"] = D("50")
        result = self.manager().hedge_first([make_position(id=1), make_position(id=2)])

        self.assertIs(result.outcome, PassOutcome.INSUFFICIENT_BALANCE)
        self.assertIsInstance(result.error, InsufficientBalance)
        self.assertEqual(len(result.attempts), 1)
        self.assertEqual(self.exchange.orders, [])


class HedgeAttemptTests(unittest.TestCase):
    def test_illegal_transition_raises(self):
        attempt = HedgeAttempt(make_position())
        with self.assertRaises(RuntimeError):
            attempt.advance(HedgeStage.SELL_PLACED)

    def test_fail_picks_leg_by_stage(self):
        attempt = HedgeAttempt(make_position())
        attempt.advance(HedgeStage.BUY_PLACED)
        attempt.fail()
        self.assertIs(attempt.stage, HedgeStage.BUY_FAILED)

        attempt = HedgeAttempt(make_position())
        attempt.advance(HedgeStage.BUY_PLACED)
        attempt.advance(HedgeStage.BUY_FILLED)
        attempt.fail()
        self.assertIs(attempt.stage, HedgeStage.SELL_FAILED)


if __name__ == "__main__":
    unittest.main()
