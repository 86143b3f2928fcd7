import unittest

import ccxt

from hedge_bot.dataclass.order import OrderRequest, OrderSide, OrderStatus
from hedge_bot.errors import ExchangeError
from hedge_bot.exchange import ExchangeGateway
from tests.fakes import D, FakeLogger


class FakeCcxtClient:
    """Stands in for ccxt.bybit: records calls, returns canned payloads."""

    precisionMode = ccxt.TICK_SIZE

    def __init__(self):
        self.markets = {"BTC/USDT": {}}
        self.created = []
        self.create_error = None
        self.order = {}
        self.balance = {}
        self.markets_by_symbol = {}

    def load_markets(self):
        return self.markets

    def create_order(self, symbol, type, side, amount, price=None, params=None):
        self.created.append((symbol, type, side, amount, price, params or {}))
        if self.create_error is not None:
            raise self.create_error
        return {"id": "1500000000000000001"}

    def fetch_order(self, order_id, symbol, params=None):
        if isinstance(self.order, Exception):
            raise self.order
        return self.order

    def fetch_balance(self):
        return self.balance

    def market(self, symbol):
        if symbol not in self.markets_by_symbol:
            raise ccxt.BadSymbol(f"bybit does not have market symbol {symbol}")
        return self.markets_by_symbol[symbol]


class ExchangeGatewayTests(unittest.TestCase):
    def setUp(self):
        self.client = FakeCcxtClient()
        self.gateway = ExchangeGateway(client=self.client, logger=FakeLogger())

    def test_needs_config_or_client(self):
        with self.assertRaises(ValueError):
            ExchangeGateway()

    # ---------------- orders ----------------
    def test_limit_sell_sends_client_order_id(self):
        outcome = self.gateway.place_order(OrderRequest.limit("BTC/USDT", OrderSide.SELL, D("0.002"), D("52100")))

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.order_id, "1500000000000000001")
        symbol, type_, side, amount, price, params = self.client.created[0]
        self.assertEqual((symbol, type_, side, amount, price), ("BTC/USDT", "limit", "sell", 0.002, 52100.0))
        self.assertTrue(params["clientOrderId"].startswith("HS-"))

    def test_market_buy_is_quoted_in_base_coin(self):
        self.gateway.place_order(OrderRequest.market("BTC/USDT", OrderSide.BUY, D("0.002")))

        _, type_, side, _, price, params = self.client.created[0]
        self.assertEqual((type_, side, price), ("market", "buy", None))
        self.assertEqual(params["marketUnit"], "baseCoin")
        self.assertTrue(params["clientOrderId"].startswith("HB-"))

    def test_venue_refusal_is_an_unsuccessful_outcome(self):
        self.client.create_error = ccxt.InsufficientFunds("bybit insufficient balance")
        outcome = self.gateway.place_order(OrderRequest.limit("BTC/USDT", OrderSide.BUY, D("0.002"), D("50050")))

        self.assertFalse(outcome.success)
        self.assertIn("insufficient", outcome.error)

    def test_transport_failure_raises(self):
        self.client.create_error = ccxt.NetworkError("connection reset")
        with self.assertRaises(ExchangeError):
            self.gateway.place_order(OrderRequest.limit("BTC/USDT", OrderSide.BUY, D("0.002"), D("50050")))

    # ---------------- order status ----------------
    def test_filled_order_snapshot(self):
        self.client.order = {
            "id": "1",
            "status": "closed",
            "filled": 0.002,
            "remaining": 0.0,
            "average": 52100.0,
            "lastTradeTimestamp": 1748779200000,
            "info": {"orderStatus": "Filled"},
        }
        snap = self.gateway.get_order_status("1", "BTC/USDT")

        self.assertIs(snap.status, OrderStatus.FILLED)
        self.assertEqual(snap.filled_qty, D("0.002"))
        self.assertEqual(snap.filled_price, D("52100.0"))
        self.assertEqual(snap.filled_time.year, 2025)

    def test_partially_filled_cancel_maps_to_cancelled(self):
        self.client.order = {"id": "1", "status": "canceled", "filled": 0.001, "average": 50040.0, "info": {"orderStatus": "PartiallyFilledCanceled"}}
        snap = self.gateway.get_order_status("1", "BTC/USDT")

        self.assertIs(snap.status, OrderStatus.CANCELLED)
        self.assertEqual(snap.filled_qty, D("0.001"))

    def test_open_order_with_fills_is_partial(self):
        self.client.order = {"id": "1", "status": "open", "filled": 0.001, "average": None, "info": {}}
        snap = self.gateway.get_order_status("1", "BTC/USDT")

        self.assertIs(snap.status, OrderStatus.PARTIALLY_FILLED)
        self.assertIsNone(snap.filled_price)
        self.assertIsNone(snap.filled_time)

    def test_fetch_order_failure_raises(self):
        self.client.order = ccxt.OrderNotFound("order not found")
        with self.assertRaises(ExchangeError):
            self.gateway.get_order_status("1", "BTC/USDT")

    # ---------------- account / market ----------------
    def test_balance(self):
        self.client.balance = {"USDT": {"free": 120.5, "used": 10, "total": 130.5}}
        balance = self.gateway.get_balance("USDT")

        self.assertEqual(balance.available, D("120.5"))
        self.assertEqual(balance.total, D("130.5"))

    def test_missing_asset_is_zero(self):
        self.client.balance = {"USDT": {"free": 1, "total": 1}}
        self.assertEqual(self.gateway.get_balance("BTC").available, D("0"))

    def test_constraints_prefer_bybit_filters(self):
        self.client.markets_by_symbol["BTC/USDT"] = {
            "info": {
                "lotSizeFilter": {"basePrecision": "0.000001", "minOrderQty": "0.000048", "minOrderAmt": "1"},
                "priceFilter": {"tickSize": "0.01"},
            },
            "limits": {"amount": {"min": 0.1}, "cost": {"min": 5}},
            "precision": {"amount": 0.001, "price": 0.1},
        }
        c = self.gateway.get_instrument_constraints("BTC/USDT")

        self.assertEqual((c.min_order_qty, c.min_order_amt), (D("0.000048"), D("1")))
        self.assertEqual((c.tick_size, c.step_size), (D("0.01"), D("0.000001")))

    def test_constraints_fall_back_to_unified_market(self):
        self.client.markets_by_symbol["ETH/USDT"] = {
            "info": {},
            "limits": {"amount": {"min": 0.01}, "cost": {"min": 5}},
            "precision": {"amount": 0.0001, "price": 0.01},
        }
        c = self.gateway.get_instrument_constraints("ETH/USDT")

        self.assertEqual((c.min_order_qty, c.min_order_amt), (D("0.01"), D("5")))
        self.assertEqual((c.tick_size, c.step_size), (D("0.01"), D("0.0001")))

    def test_unknown_symbol_raises(self):
        with self.assertRaises(ExchangeError):
            self.gateway.get_instrument_constraints("NOPE/USDT")


if __name__ == "__main__":
    unittest.main()
