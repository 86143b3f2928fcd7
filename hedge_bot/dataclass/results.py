from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.instrument import InstrumentConstraints
from hedge_bot.dataclass.order import OrderType
from hedge_bot.dataclass.position import Position
from hedge_bot.errors import HedgeBotError


class Disposition(str, Enum):
    READY = "READY"
    SKIPPABLE = "SKIPPABLE"
    FATAL = "FATAL"


@dataclass(frozen=True)
class SizedOrder:
    symbol: str
    order_type: OrderType
    quantity: Decimal
    price: Optional[Decimal]  # None for market buys
    notional: Decimal
    required_notional: Decimal
    constraints: InstrumentConstraints


@dataclass(frozen=True)
class SizingDecision:
    disposition: Disposition
    order: Optional[SizedOrder] = None
    error: Optional[HedgeBotError] = None

    @classmethod
    def ready(cls, order: SizedOrder) -> "SizingDecision":
        return cls(Disposition.READY, order=order)

    @classmethod
    def skip(cls, error: HedgeBotError) -> "SizingDecision":
        return cls(Disposition.SKIPPABLE, error=error)

    @classmethod
    def fatal(cls, error: HedgeBotError) -> "SizingDecision":
        return cls(Disposition.FATAL, error=error)


class HedgeStage(str, Enum):
    SELECTED = "SELECTED"
    REJECTED = "REJECTED"
    BUY_PLACED = "BUY_PLACED"
    BUY_FAILED = "BUY_FAILED"
    BUY_FILLED = "BUY_FILLED"
    SELL_PLACED = "SELL_PLACED"
    SELL_FAILED = "SELL_FAILED"
    PERSISTED = "PERSISTED"


TRANSITIONS = {
    HedgeStage.SELECTED: {HedgeStage.BUY_PLACED, HedgeStage.REJECTED, HedgeStage.BUY_FAILED},
    HedgeStage.BUY_PLACED: {HedgeStage.BUY_FILLED, HedgeStage.BUY_FAILED},
    HedgeStage.BUY_FILLED: {HedgeStage.SELL_PLACED, HedgeStage.SELL_FAILED},
    HedgeStage.SELL_PLACED: {HedgeStage.PERSISTED, HedgeStage.SELL_FAILED},
}


@dataclass(frozen=True)
class AttemptResult:
    position: Position
    stage: HedgeStage
    disposition: Disposition
    record: Optional[HedgeRecord] = None
    error: Optional[HedgeBotError] = None


class PassOutcome(str, Enum):
    HEDGED = "HEDGED"
    NO_CANDIDATES = "NO_CANDIDATES"
    NO_QUALIFYING_LOSS = "NO_QUALIFYING_LOSS"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    ALL_REJECTED = "ALL_REJECTED"
    FAILED = "FAILED"


BENIGN_OUTCOMES = {PassOutcome.NO_CANDIDATES, PassOutcome.NO_QUALIFYING_LOSS, PassOutcome.ALL_REJECTED}


@dataclass
class PassResult:
    outcome: PassOutcome
    record: Optional[HedgeRecord] = None
    error: Optional[HedgeBotError] = None
    attempts: List[AttemptResult] = field(default_factory=list)

    @property
    def is_benign(self) -> bool:
        return self.outcome in BENIGN_OUTCOMES

    @property
    def message(self) -> str:
        if self.outcome is PassOutcome.HEDGED and self.record is not None:
            return f"hedged position {self.record.position_id} ({self.record.pair}), take-profit order {self.record.order_id}"
        return str(self.error) if self.error is not None else self.outcome.value


@dataclass
class ReconciliationResult:
    examined: int = 0
    changed: int = 0
    failed: int = 0
    realized_profit: Decimal = Decimal("0")
    error: Optional[HedgeBotError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
