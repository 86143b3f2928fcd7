# order_lifecycle.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.instrument import InstrumentConstraints
from hedge_bot.dataclass.order import OrderOutcome, OrderRequest, OrderSide, OrderStatus, OrderStatusSnapshot, OrderType
from hedge_bot.dataclass.position import Position, TradingPair
from hedge_bot.dataclass.results import (
    TRANSITIONS,
    AttemptResult,
    Disposition,
    HedgeStage,
    PassOutcome,
    PassResult,
    SizedOrder,
)
from hedge_bot.datas.strategy import HedgeConfig
from hedge_bot.errors import ExchangeError, FillTimeout, HedgeBotError, InsufficientBalance, PersistenceError
from hedge_bot.interface.io_interface import IExchangeGateway, IHedgeLedger
from hedge_bot.strategy.hedge_sizer import HedgeSizer
from hedge_bot.strategy.take_profit import TakeProfitCalculator
from hedge_bot.utils.clock import Clock, SystemClock
from hedge_bot.utils.util import floor_to_step


class HedgeAttempt:
    """
    Stage tracker for one candidate:

        SELECTED -> BUY_PLACED -> BUY_FILLED -> SELL_PLACED -> PERSISTED
        SELECTED -> REJECTED
        SELECTED | BUY_PLACED -> BUY_FAILED
        BUY_FILLED | SELL_PLACED -> SELL_FAILED
    """

    def __init__(self, position: Position) -> None:
        self.position = position
        self.stage = HedgeStage.SELECTED
        self.buy_order_id: Optional[str] = None
        self.sell_order_id: Optional[str] = None

    def advance(self, stage: HedgeStage) -> None:
        if stage not in TRANSITIONS.get(self.stage, set()):
            raise RuntimeError(f"illegal hedge transition {self.stage.value} -> {stage.value}")
        self.stage = stage

    def fail(self) -> None:
        buy_leg = self.stage in (HedgeStage.SELECTED, HedgeStage.BUY_PLACED)
        self.advance(HedgeStage.BUY_FAILED if buy_leg else HedgeStage.SELL_FAILED)

    def context(self) -> dict:
        return {
            "position_id": self.position.id,
            "pair": self.position.pair,
            "stage": self.stage.value,
            "buy_order_id": self.buy_order_id,
            "sell_order_id": self.sell_order_id,
        }


class OrderLifecycleManager:
    """
    Drives hedge attempts: buy, wait for the fill, sell at take-profit, persist.
    At most one candidate is hedged per call to ``hedge_first``.
    """

    def __init__(
        self,
        exchange: IExchangeGateway,
        ledger: IHedgeLedger,
        config: HedgeConfig,
        clock: Optional[Clock] = None,
        logger: Optional[Logger] = None,
        sizer: Optional[HedgeSizer] = None,
        take_profit: Optional[TakeProfitCalculator] = None,
    ) -> None:
        self.exchange = exchange
        self.ledger = ledger
        self.config = config
        self.clock = clock or SystemClock()
        self.logger = logger or Logger()
        self.sizer = sizer or HedgeSizer(logger=self.logger)
        self.take_profit = take_profit or TakeProfitCalculator()

    # ------------------------------------------------------------------
    # candidate loop
    # ------------------------------------------------------------------
    def hedge_first(self, candidates: List[Position]) -> PassResult:
        """
        Try candidates in order. First success wins, a skippable rejection moves
        on to the next one, anything fatal ends the pass right away.
        """
        attempts: List[AttemptResult] = []
        last_rejection: Optional[HedgeBotError] = None

        for i, position in enumerate(candidates, start=1):
            self.logger.log(
                f"[HEDGE] [{i}/{len(candidates)}] trying {position.pair} (drawdown {position.drawdown_percent:.2f}%)",
                level="INFO",
            )
            result = self.attempt(position)
            attempts.append(result)

            if result.disposition is Disposition.READY:
                self.logger.log(f"[HEDGE] hedged {position.pair}, take-profit order {result.record.order_id}", level="INFO")
                return PassResult(PassOutcome.HEDGED, record=result.record, attempts=attempts)

            if result.disposition is Disposition.SKIPPABLE:
                self.logger.log(f"[HEDGE] {position.pair} skipped: {result.error}", level="WARNING")
                last_rejection = result.error
                continue

            self.logger.log(f"[HEDGE] {position.pair} failed at {result.stage.value}: {result.error}", level="ERROR")
            outcome = PassOutcome.INSUFFICIENT_BALANCE if isinstance(result.error, InsufficientBalance) else PassOutcome.FAILED
            return PassResult(outcome, error=result.error, attempts=attempts)

        tried = [a.position.pair for a in attempts]
        self.logger.log(f"[HEDGE] none of the qualifying pairs {tried} could be hedged", level="WARNING")
        return PassResult(PassOutcome.ALL_REJECTED, error=last_rejection, attempts=attempts)

    # ------------------------------------------------------------------
    # single attempt
    # ------------------------------------------------------------------
    def attempt(self, position: Position) -> AttemptResult:
        attempt = HedgeAttempt(position)
        try:
            return self._run(attempt)
        except HedgeBotError as e:
            e.with_context(**attempt.context())
            attempt.fail()
            return AttemptResult(position=position, stage=attempt.stage, disposition=Disposition.FATAL, error=e)

    def _run(self, attempt: HedgeAttempt) -> AttemptResult:
        position = attempt.position
        cfg = self.config

        # 1) size the buy
        balance = self.exchange.get_balance(cfg.base_currency)
        decision = self.sizer.size(position, balance, self._constraints(position.pair), cfg)

        if decision.disposition is Disposition.SKIPPABLE:
            attempt.advance(HedgeStage.REJECTED)
            return AttemptResult(position=position, stage=attempt.stage, disposition=Disposition.SKIPPABLE, error=decision.error)
        if decision.disposition is Disposition.FATAL:
            attempt.advance(HedgeStage.BUY_FAILED)
            return AttemptResult(position=position, stage=attempt.stage, disposition=Disposition.FATAL, error=decision.error)

        sized = decision.order
        self.logger.log(
            f"[HEDGE] source trade {position.amount} {position.pair} @ {position.open_rate} "
            f"(P&L {position.profit_ratio * 100:.2f}%), hedge buy {sized.quantity} for {sized.notional} {cfg.base_currency}, "
            f"balance {balance.available:.4f} / required {sized.required_notional:.4f}",
            level="INFO",
        )

        # 2) buy
        buy = self._buy_request(sized)
        buy.validate()
        outcome = self.exchange.place_order(buy)
        if not outcome.success:
            raise ExchangeError(f"buy order rejected: {outcome.error}", {"quantity": sized.quantity, "price": sized.price})
        attempt.buy_order_id = outcome.order_id
        attempt.advance(HedgeStage.BUY_PLACED)
        self.logger.log(
            f"[HEDGE] buy {buy.order_type.value} {buy.quantity} {position.pair} @ {buy.price or 'market'} placed, id={outcome.order_id}",
            level="INFO",
        )

        # 3) wait for the fill
        fill = self.wait_for_fill(outcome.order_id, position.pair, sized.quantity)
        filled_qty = fill.filled_qty
        if filled_qty <= 0:
            raise ExchangeError("buy order reported filled with zero quantity")
        attempt.advance(HedgeStage.BUY_FILLED)
        self._log_fill_ratio(position.pair, filled_qty, sized.quantity)

        # 4) sell leg
        sell_qty = self._sellable_quantity(position.pair, filled_qty, sized.constraints)
        tp_price = self.take_profit.price(position, cfg.profit_ratio, sized.constraints.tick_size)
        self.logger.log(
            f"[HEDGE] take-profit {position.pair}: current {position.current_rate}, "
            f"tp {self.take_profit.take_profit_percent(position, cfg.profit_ratio):.4f}%, price {tp_price}",
            level="INFO",
        )
        sell = OrderRequest.limit(position.pair, OrderSide.SELL, sell_qty, tp_price)
        sell.validate()
        sell_outcome = self.place_with_retry(sell)
        attempt.sell_order_id = sell_outcome.order_id
        attempt.advance(HedgeStage.SELL_PLACED)

        # 5) persist
        now = self.clock.now()
        record = HedgeRecord(
            position_id=position.id,
            pair=position.pair,
            hedge_time=now,
            order_id=sell_outcome.order_id,
            buy_order_id=attempt.buy_order_id,
            position_open_price=position.open_rate,
            position_amount=position.amount,
            position_profit_ratio=position.profit_ratio,
            hedge_open_price=fill.filled_price or sized.price or position.current_rate,
            hedge_amount=sell_qty,
            hedge_take_profit_price=tp_price,
            status=OrderStatus.PENDING,
            last_status_check=now,
        )
        try:
            self.ledger.save_hedge_record(record)
        except PersistenceError as e:
            # the hedge is live on the venue but not recorded
            self.logger.log(
                f"[HEDGE] LEDGER WRITE FAILED position={position.id} pair={position.pair} "
                f"buy={attempt.buy_order_id} sell={attempt.sell_order_id}: {e}",
                level="CRITICAL",
            )
            raise
        attempt.advance(HedgeStage.PERSISTED)
        return AttemptResult(position=position, stage=attempt.stage, disposition=Disposition.READY, record=record)

    # ------------------------------------------------------------------
    # steps
    # ------------------------------------------------------------------
    def _constraints(self, symbol: str) -> Optional[InstrumentConstraints]:
        try:
            return self.exchange.get_instrument_constraints(symbol)
        except ExchangeError as e:
            self.logger.log(f"[HEDGE] instrument info for {symbol} unavailable: {e}", level="WARNING")
            return None

    def _buy_request(self, sized: SizedOrder) -> OrderRequest:
        if sized.order_type is OrderType.MARKET:
            return OrderRequest.market(sized.symbol, OrderSide.BUY, sized.quantity)
        return OrderRequest.limit(sized.symbol, OrderSide.BUY, sized.quantity, sized.price)

    def wait_for_fill(self, order_id: str, symbol: str, requested_qty: Decimal) -> OrderStatusSnapshot:
        """
        Poll until the buy reaches a terminal status, at most
        fill_poll_attempts x fill_poll_interval seconds.
        """
        attempts = self.config.fill_poll_attempts
        for n in range(1, attempts + 1):
            self.clock.sleep(self.config.fill_poll_interval)
            try:
                snapshot = self.exchange.get_order_status(order_id, symbol)
            except ExchangeError as e:
                self.logger.log(f"[HEDGE] status poll {n}/{attempts} for {order_id} failed: {e}", level="WARNING")
                continue

            if snapshot.status is OrderStatus.FILLED:
                return snapshot
            if snapshot.status.is_terminal:
                if snapshot.filled_qty > 0:
                    self.logger.log(
                        f"[HEDGE] buy {order_id} ended {snapshot.status.value} after filling {snapshot.filled_qty} of {requested_qty}",
                        level="WARNING",
                    )
                    return snapshot
                raise ExchangeError(f"buy order finished unfilled: {snapshot.status.value}", {"order_id": order_id})
            if snapshot.status is OrderStatus.PARTIALLY_FILLED:
                self.logger.log(f"[HEDGE] partial fill {snapshot.filled_qty} of {requested_qty}", level="INFO")

        waited = attempts * self.config.fill_poll_interval
        raise FillTimeout(f"buy order not filled within {waited:g}s ({attempts} polls)", {"order_id": order_id})

    def _log_fill_ratio(self, symbol: str, filled_qty: Decimal, requested_qty: Decimal) -> None:
        ratio = filled_qty / requested_qty
        if ratio < self.config.partial_fill_ratio:
            self.logger.log(
                f"[HEDGE] PARTIAL FILL {symbol}: bought {filled_qty} of {requested_qty} ({ratio * 100:.1f}%), selling what was filled",
                level="WARNING",
            )
        else:
            self.logger.log(f"[HEDGE] filled {symbol}: {filled_qty} of {requested_qty} ({ratio * 100:.1f}%)", level="INFO")

    def _sellable_quantity(self, symbol: str, filled_qty: Decimal, constraints: InstrumentConstraints) -> Decimal:
        """
        Venue fees can leave slightly less base asset than was filled; clamp the
        sell to what is actually there.
        """
        if not self.config.verify_base_balance:
            return filled_qty

        base = TradingPair(symbol).base_currency
        try:
            balance = self.exchange.get_balance(base)
        except ExchangeError as e:
            self.logger.log(f"[HEDGE] {base} balance unavailable ({e}), selling filled qty {filled_qty}", level="WARNING")
            return filled_qty

        if balance.available >= filled_qty:
            return filled_qty

        clamped = floor_to_step(balance.available, constraints.step_size)
        if clamped <= 0:
            raise ExchangeError(f"no {base} available to sell", {"filled_qty": filled_qty, "available": balance.available})
        self.logger.log(f"[HEDGE] only {balance.available} {base} available, selling {clamped} instead of {filled_qty}", level="WARNING")
        return clamped

    def place_with_retry(self, request: OrderRequest) -> OrderOutcome:
        """Sell leg only: retry_attempts tries, retry_delay seconds apart."""
        attempts = self.config.retry_attempts
        last_error = ""
        for n in range(1, attempts + 1):
            self.logger.log(f"[HEDGE] placing {request.side.value} {request.quantity} @ {request.price}, try {n}/{attempts}", level="INFO")
            try:
                outcome = self.exchange.place_order(request)
            except ExchangeError as e:
                last_error = str(e)
            else:
                if outcome.success:
                    return outcome
                last_error = outcome.error
            self.logger.log(f"[HEDGE] try {n} failed: {last_error}", level="WARNING")
            if n < attempts:
                self.clock.sleep(self.config.retry_delay)

        raise ExchangeError(f"sell order failed after {attempts} attempts: {last_error}", {"price": request.price, "quantity": request.quantity})
