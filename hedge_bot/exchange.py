from decimal import Decimal
from typing import Any, Dict, Optional

import ccxt

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.instrument import Balance, InstrumentConstraints
from hedge_bot.dataclass.order import OrderOutcome, OrderRequest, OrderSide, OrderStatus, OrderStatusSnapshot, OrderType
from hedge_bot.datas.exchange import ExchangeConfig
from hedge_bot.errors import ExchangeError
from hedge_bot.interface.io_interface import IExchangeGateway
from hedge_bot.utils.util import Util, to_decimal


class ExchangeGateway(IExchangeGateway):
    """
    Bybit spot venue through ccxt. Symbols are ccxt unified (BTC/USDT).
    """

    def __init__(
        self,
        config: Optional[ExchangeConfig] = None,
        load_markets: bool = True,
        client: Any = None,
        logger: Optional[Logger] = None,
    ):
        if client is None and config is None:
            raise ValueError("ExchangeGateway needs either an ExchangeConfig or a ccxt client")
        self.client = client or self.create_spot_exchange(config)
        self.logger = logger or Logger()
        self.util = Util()
        if load_markets:
            self.ensure_markets_loaded()

    def ensure_markets_loaded(self):
        if not self.client.markets:
            try:
                self.client.load_markets()
            except ccxt.BaseError as e:
                raise ExchangeError(f"load markets failed: {e}") from e

    def create_spot_exchange(self, config: ExchangeConfig):
        spot = ccxt.bybit(
            {
                "apiKey": config.api_key,
                "secret": config.api_secret,
                "enableRateLimit": config.enable_rate_limit,
                "options": {"defaultType": "spot", "adjustForTimeDifference": config.adjust_for_time_diff},
            }
        )

        if config.testnet:
            spot.set_sandbox_mode(True)

        return spot

    # ---------------- orders ----------------
    def place_order(self, request: OrderRequest) -> OrderOutcome:
        action = "HEDGE_BUY" if request.side is OrderSide.BUY else "HEDGE_SELL"
        params: Dict[str, Any] = {"clientOrderId": self.util.generate_order_id(action)}
        price = None
        if request.order_type is OrderType.LIMIT:
            price = float(request.price)
        elif request.side is OrderSide.BUY:
            # spot market buys are quoted in the quote coin unless told otherwise
            params["marketUnit"] = "baseCoin"

        try:
            order = self.client.create_order(request.symbol, request.order_type.value, request.side.value, float(request.quantity), price, params)
        except (ccxt.InsufficientFunds, ccxt.InvalidOrder) as e:
            # venue refused the order: not a transport problem
            return OrderOutcome(order_id="", success=False, error=str(e))
        except ccxt.BaseError as e:
            raise ExchangeError(f"place {request.side.value} order failed: {e}", {"symbol": request.symbol}) from e

        order_id = str((order or {}).get("id") or "")
        if not order_id:
            return OrderOutcome(order_id="", success=False, error=f"no order id in response: {order}")
        return OrderOutcome(order_id=order_id, success=True)

    def get_order_status(self, order_id: str, symbol: str) -> OrderStatusSnapshot:
        try:
            order = self.client.fetch_order(order_id, symbol, params={"acknowledged": True})
        except ccxt.BaseError as e:
            raise ExchangeError(f"fetch order failed: {e}", {"order_id": order_id, "symbol": symbol}) from e
        return self._to_snapshot(order_id, order)

    def _to_snapshot(self, order_id: str, order: Dict[str, Any]) -> OrderStatusSnapshot:
        info = order.get("info") or {}
        filled = to_decimal(order.get("filled", info.get("cumExecQty")))
        remaining = to_decimal(order.get("remaining", info.get("leavesQty")))

        status = OrderStatus.from_string(info.get("orderStatus") or order.get("status"))
        if status is OrderStatus.PENDING and filled > 0:
            status = OrderStatus.PARTIALLY_FILLED

        snapshot = OrderStatusSnapshot(
            order_id=str(order.get("id") or order_id),
            status=status,
            filled_qty=filled,
            remaining_qty=remaining,
        )

        average = to_decimal(order.get("average", info.get("avgPrice")))
        if filled > 0 and average > 0:
            snapshot.filled_price = average
        if status.is_terminal and filled > 0:
            ts = order.get("lastTradeTimestamp") or order.get("lastUpdateTimestamp") or info.get("updatedTime")
            snapshot.filled_time = self.util.timestamp_ms_to_datetime(ts)
        return snapshot

    # ---------------- account / market ----------------
    def get_balance(self, asset: str) -> Balance:
        try:
            balance = self.client.fetch_balance()
        except ccxt.BaseError as e:
            raise ExchangeError(f"fetch balance failed: {e}", {"asset": asset}) from e

        entry = balance.get(asset) if isinstance(balance, dict) else None
        if not entry:
            self.logger.log(f"[Exchange] {asset} not present in balance, treating as 0", level="WARNING")
            return Balance(asset=asset, available=Decimal("0"), total=Decimal("0"))

        total = to_decimal(entry.get("total"))
        free = entry.get("free")
        available = to_decimal(free) if free is not None else total
        return Balance(asset=asset, available=available, total=total)

    def get_instrument_constraints(self, symbol: str) -> InstrumentConstraints:
        try:
            market = self.client.market(symbol)
        except ccxt.BaseError as e:
            raise ExchangeError(f"instrument info failed: {e}", {"symbol": symbol}) from e

        info = market.get("info") or {}
        lot = info.get("lotSizeFilter") or {}
        price_filter = info.get("priceFilter") or {}
        limits = market.get("limits") or {}
        precision = market.get("precision") or {}

        min_qty = to_decimal(lot.get("minOrderQty")) or to_decimal((limits.get("amount") or {}).get("min"))
        min_amt = to_decimal(lot.get("minOrderAmt")) or to_decimal((limits.get("cost") or {}).get("min"))
        tick = to_decimal(price_filter.get("tickSize")) or self._precision_to_step(precision.get("price"))
        step = to_decimal(lot.get("basePrecision")) or self._precision_to_step(precision.get("amount"))

        return InstrumentConstraints(symbol=symbol, min_order_qty=min_qty, min_order_amt=min_amt, tick_size=tick, step_size=step)

    def _precision_to_step(self, value: Any) -> Decimal:
        """ccxt reports precision either as a tick size or as decimal places."""
        if value is None:
            return Decimal("0")
        if getattr(self.client, "precisionMode", ccxt.TICK_SIZE) == ccxt.TICK_SIZE:
            return to_decimal(value)
        return Decimal("1").scaleb(-int(value))
