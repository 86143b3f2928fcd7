from decimal import Decimal
from typing import Optional

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.instrument import Balance, InstrumentConstraints
from hedge_bot.dataclass.order import OrderType
from hedge_bot.dataclass.position import Position
from hedge_bot.dataclass.results import SizedOrder, SizingDecision
from hedge_bot.datas.strategy import HedgeConfig
from hedge_bot.errors import InsufficientBalance, InsufficientForMinLimit, OrderValidationError
from hedge_bot.utils.util import round_to_step, round_to_tick

# below this a tick-rounded limit price is not trusted (dust-priced instruments)
MIN_LIMIT_PRICE = Decimal("0.0001")


class HedgeSizer:
    """
    Turns the fixed hedge notional into an executable buy: quantity on the
    venue's step grid and a slightly aggressive limit price on its tick grid.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or Logger()

    def size(
        self,
        position: Position,
        balance: Balance,
        constraints: Optional[InstrumentConstraints],
        config: HedgeConfig,
    ) -> SizingDecision:
        symbol = position.pair
        amount = config.position_amount

        # 1) funds: the same base currency pays for every candidate, so a shortfall ends the pass
        required = amount * config.slippage_buffer
        if not balance.covers(required):
            self.logger.log(
                f"[Sizer] {symbol}: need {required:.4f} {config.base_currency}, available {balance.available:.4f}",
                level="WARNING",
            )
            err = InsufficientBalance(required, balance.available, config.base_currency)
            return SizingDecision.fatal(err.with_context(position_id=position.id, pair=symbol))

        if position.current_rate <= 0:
            err = OrderValidationError(f"current price must be > 0, got {position.current_rate}")
            return SizingDecision.fatal(err.with_context(position_id=position.id, pair=symbol))

        # 2) venue limits, conservative defaults when missing
        if constraints is None:
            self.logger.log(f"[Sizer] {symbol}: no instrument info, using defaults", level="WARNING")
            constraints = InstrumentConstraints.defaults(symbol)
        limits = constraints.with_fallbacks()
        if limits != constraints:
            self.logger.log(
                f"[Sizer] {symbol}: venue minima not usable (qty={constraints.min_order_qty}, amt={constraints.min_order_amt}), "
                f"using qty={limits.min_order_qty}, amt={limits.min_order_amt}",
                level="WARNING",
            )

        # 3) quantity on the step grid
        raw_qty = amount / position.current_rate
        qty = round_to_step(raw_qty, limits.step_size)
        if qty != raw_qty:
            self.logger.log(f"[Sizer] {symbol}: qty {raw_qty} -> {qty} (step {limits.step_size})", level="DEBUG")

        # 4) venue minima: this candidate does not fit, the next one may
        if amount < limits.min_order_amt:
            err = InsufficientForMinLimit("notional", limits.min_order_amt, limits.min_order_qty, amount, qty)
            return SizingDecision.skip(err.with_context(position_id=position.id, pair=symbol))
        if qty < limits.min_order_qty:
            err = InsufficientForMinLimit("quantity", limits.min_order_amt, limits.min_order_qty, amount, qty)
            return SizingDecision.skip(err.with_context(position_id=position.id, pair=symbol))

        # 5) price
        price = None
        if config.buy_order_type is OrderType.LIMIT:
            price = self.buy_limit_price(position.current_rate, limits.tick_size, config.buy_price_buffer)

        return SizingDecision.ready(
            SizedOrder(
                symbol=symbol,
                order_type=config.buy_order_type,
                quantity=qty,
                price=price,
                notional=amount,
                required_notional=required,
                constraints=limits,
            )
        )

    def buy_limit_price(self, current_price: Decimal, tick_size: Decimal, buffer: Decimal = Decimal("1.001")) -> Decimal:
        buffered = current_price * buffer
        rounded = round_to_tick(buffered, tick_size)
        if rounded <= 0 or rounded < MIN_LIMIT_PRICE:
            self.logger.log(f"[Sizer] tick-rounded price {rounded} too small, using {buffered}", level="WARNING")
            return buffered
        return rounded
