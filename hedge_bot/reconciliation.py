from decimal import Decimal
from typing import Optional, Tuple

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.order import OrderStatus
from hedge_bot.dataclass.results import ReconciliationResult
from hedge_bot.errors import ExchangeError, PersistenceError
from hedge_bot.interface.io_interface import IExchangeGateway, IHedgeLedger
from hedge_bot.utils.clock import Clock, SystemClock


class ReconciliationLoop:
    """
    Brings active hedge records in line with the venue's view of their
    take-profit orders. One record failing never stops the others.
    """

    def __init__(
        self,
        exchange: IExchangeGateway,
        ledger: IHedgeLedger,
        clock: Optional[Clock] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.exchange = exchange
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.logger = logger or Logger()

    def run(self) -> ReconciliationResult:
        result = ReconciliationResult()
        try:
            records = self.ledger.query_hedge_records(OrderStatus.active())
        except PersistenceError as e:
            self.logger.log(f"[Reconcile] could not load active hedges: {e}", level="ERROR")
            result.error = e
            return result

        if not records:
            self.logger.log("[Reconcile] no active hedges", level="DEBUG")
            return result

        for record in records:
            result.examined += 1
            try:
                changed, profit = self.reconcile(record)
            except (ExchangeError, PersistenceError) as e:
                result.failed += 1
                self.logger.log(f"[Reconcile] {record.pair} order {record.order_id}: {e}", level="ERROR")
                continue
            if changed:
                result.changed += 1
            if profit is not None:
                result.realized_profit += profit

        self.logger.log(
            f"[Reconcile] examined={result.examined} changed={result.changed} failed={result.failed} "
            f"realized={result.realized_profit:.4f}",
            level="INFO",
        )
        return result

    def reconcile(self, record: HedgeRecord) -> Tuple[bool, Optional[Decimal]]:
        """
        Returns (status changed, realized profit if the take-profit filled).
        Status only moves forward; anything else just refreshes last_status_check.
        """
        now = self.clock.now()
        snapshot = self.exchange.get_order_status(record.order_id, record.pair)
        new_status = snapshot.status

        if not record.status.can_advance_to(new_status):
            if new_status is not record.status:
                self.logger.log(
                    f"[Reconcile] {record.order_id}: ignoring {record.status.value} -> {new_status.value}",
                    level="WARNING",
                )
            self.ledger.update_hedge_record_status(record.order_id, record.status, checked_at=now)
            return False, None

        close_price = None
        close_time = None
        profit = None
        if new_status is OrderStatus.FILLED:
            close_price = snapshot.filled_price
            if close_price is None:
                self.logger.log(
                    f"[Reconcile] {record.order_id}: no fill price reported, using take-profit {record.hedge_take_profit_price}",
                    level="WARNING",
                )
                close_price = record.hedge_take_profit_price
            close_time = snapshot.filled_time or now
            profit = (close_price - record.hedge_open_price) * record.hedge_amount
            self.logger.log(
                f"[Reconcile] take-profit filled {record.pair}: {record.hedge_amount} @ {close_price}, profit {profit:.4f}",
                level="INFO",
            )
        elif new_status.is_terminal:
            close_time = now
            self.logger.log(f"[Reconcile] take-profit {record.order_id} ended {new_status.value}", level="WARNING")
            if snapshot.filled_qty > 0:
                self.logger.log(
                    f"[Reconcile] {record.pair} {record.order_id}: {snapshot.filled_qty} of {record.hedge_amount} "
                    f"sold @ {snapshot.filled_price or 'n/a'} before {new_status.value}, not counted as realized",
                    level="WARNING",
                )
        else:
            self.logger.log(f"[Reconcile] {record.order_id}: {record.status.value} -> {new_status.value}", level="INFO")

        self.ledger.update_hedge_record_status(
            record.order_id,
            new_status,
            close_price=close_price,
            close_time=close_time,
            checked_at=now,
        )
        return True, profit
