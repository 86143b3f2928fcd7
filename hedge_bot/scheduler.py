from typing import Optional

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.results import PassOutcome, PassResult
from hedge_bot.hedge_engine import HedgeEngine
from hedge_bot.utils.clock import Clock, SystemClock


class Scheduler:
    """
    Ticks reconciliation then one hedge pass every ``interval`` seconds.
    interval == 0 runs a single tick. stop() is honoured between ticks only,
    an attempt in flight always completes.
    """

    def __init__(self, engine: HedgeEngine, interval: int, clock: Optional[Clock] = None, logger: Optional[Logger] = None):
        self.engine = engine
        self.interval = interval
        self.clock = clock or SystemClock()
        self.logger = logger or Logger()
        self.stopped = False
        self.ticks = 0

    def stop(self, *_args) -> None:
        # signature fits signal.signal handlers
        self.stopped = True

    def tick(self) -> PassResult:
        self.ticks += 1
        self.logger.log(f"[Scheduler] tick #{self.ticks}", level="INFO")

        reconciliation = self.engine.run_reconciliation_pass()
        if not reconciliation.ok:
            self.logger.log(f"[Scheduler] reconciliation failed: {reconciliation.error}", level="ERROR")

        result = self.engine.run_hedge_pass()
        self.report(result)
        return result

    def report(self, result: PassResult) -> None:
        if result.outcome is PassOutcome.HEDGED:
            self.logger.log(f"[Scheduler] {result.message}", level="INFO")
        elif result.is_benign:
            self.logger.log(f"[Scheduler] nothing to hedge: {result.message}", level="INFO")
        else:
            self.logger.log(f"[Scheduler] hedge pass {result.outcome.value}: {result.message}", level="ERROR")

    def run(self, max_ticks: Optional[int] = None) -> None:
        self.tick()
        if self.interval <= 0:
            return

        self.logger.log(f"[Scheduler] running every {self.interval}s", level="INFO")
        while not self.stopped and (max_ticks is None or self.ticks < max_ticks):
            self._wait()
            if self.stopped:
                break
            self.tick()
        self.logger.log("[Scheduler] stopped", level="INFO")

    def _wait(self) -> None:
        # 1s slices so a stop request does not wait out the whole interval
        remaining = self.interval
        while remaining > 0 and not self.stopped:
            step = min(1, remaining)
            self.clock.sleep(step)
            remaining -= step
