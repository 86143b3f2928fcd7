from typing import List, Optional

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.position import Position
from hedge_bot.dataclass.results import PassOutcome, PassResult, ReconciliationResult
from hedge_bot.datas.strategy import HedgeConfig
from hedge_bot.errors import NoCandidates, NoQualifyingLoss, PersistenceError, PositionSourceError
from hedge_bot.interface.io_interface import IExchangeGateway, IHedgeLedger, IPositionSource
from hedge_bot.order_lifecycle import OrderLifecycleManager
from hedge_bot.reconciliation import ReconciliationLoop
from hedge_bot.strategy.candidate_selector import CandidateSelector
from hedge_bot.utils.clock import Clock, SystemClock


class HedgeEngine:
    """
    Entry point for the scheduler: one hedge pass (at most one new hedge)
    and one reconciliation pass over the ledger.
    """

    def __init__(
        self,
        position_source: IPositionSource,
        exchange: IExchangeGateway,
        ledger: IHedgeLedger,
        config: HedgeConfig,
        clock: Optional[Clock] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.position_source = position_source
        self.exchange = exchange
        self.ledger = ledger
        self.config = config
        self.clock = clock or SystemClock()
        self.logger = logger or Logger()

        self.selector = CandidateSelector()
        self.lifecycle = OrderLifecycleManager(exchange, ledger, config, clock=self.clock, logger=self.logger)
        self.reconciler = ReconciliationLoop(exchange, ledger, clock=self.clock, logger=self.logger)

    def run_hedge_pass(self) -> PassResult:
        try:
            positions = self.position_source.get_open_positions()
        except PositionSourceError as e:
            self.logger.log(f"[Engine] cannot fetch open positions: {e}", level="ERROR")
            return PassResult(PassOutcome.FAILED, error=e)

        try:
            unhedged = self._unhedged(positions)
        except PersistenceError as e:
            self.logger.log(f"[Engine] cannot read hedge ledger: {e}", level="ERROR")
            return PassResult(PassOutcome.FAILED, error=e)

        if not unhedged:
            return PassResult(PassOutcome.NO_CANDIDATES, error=NoCandidates())

        threshold = self.config.max_loss_percent
        for p in unhedged:
            if not self.selector.is_eligible(p, threshold):
                self.logger.log(
                    f"[Engine] skip {p.pair}: drawdown {p.drawdown_percent:.2f}% within {threshold:.2f}%",
                    level="DEBUG",
                )

        candidates = self.selector.select(unhedged, threshold)
        if not candidates:
            return PassResult(PassOutcome.NO_QUALIFYING_LOSS, error=NoQualifyingLoss(threshold))

        self.logger.log(
            "[Engine] candidates: " + ", ".join(f"{p.pair} {p.profit_ratio * 100:.2f}%" for p in candidates),
            level="INFO",
        )
        return self.lifecycle.hedge_first(candidates)

    def run_reconciliation_pass(self) -> ReconciliationResult:
        return self.reconciler.run()

    def _unhedged(self, positions: List[Position]) -> List[Position]:
        result = []
        for p in positions:
            if self.ledger.is_hedged(p.id):
                self.logger.log(f"[Engine] position {p.id} ({p.pair}) already hedged", level="DEBUG")
                continue
            result.append(p)
        return result
