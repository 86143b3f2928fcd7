from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TradingPair:
    value: str  # "BTC/USDT"

    @property
    def base_currency(self) -> str:
        return self.value.split("/")[0]


@dataclass(frozen=True)
class Position:
    """
    Snapshot of an open trade on the source platform, fetched every tick.
    """

    id: int
    pair: str
    profit_ratio: Decimal  # negative = loss, -0.06 == -6%
    current_rate: Decimal
    open_rate: Decimal
    amount: Decimal

    @property
    def drawdown_percent(self) -> Decimal:
        return -self.profit_ratio * 100
