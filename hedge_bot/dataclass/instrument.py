from dataclasses import dataclass, replace
from decimal import Decimal

DEFAULT_MIN_ORDER_AMT = Decimal("100")
DEFAULT_MIN_ORDER_QTY = Decimal("0.001")


@dataclass(frozen=True)
class InstrumentConstraints:
    symbol: str
    min_order_qty: Decimal
    min_order_amt: Decimal  # minimum notional, quote currency
    tick_size: Decimal = Decimal("0")  # 0 = not defined
    step_size: Decimal = Decimal("0")

    @classmethod
    def defaults(cls, symbol: str) -> "InstrumentConstraints":
        return cls(symbol=symbol, min_order_qty=DEFAULT_MIN_ORDER_QTY, min_order_amt=DEFAULT_MIN_ORDER_AMT)

    def with_fallbacks(self) -> "InstrumentConstraints":
        """Replace non-positive minima with the conservative defaults."""
        return replace(
            self,
            min_order_qty=self.min_order_qty if self.min_order_qty > 0 else DEFAULT_MIN_ORDER_QTY,
            min_order_amt=self.min_order_amt if self.min_order_amt > 0 else DEFAULT_MIN_ORDER_AMT,
        )


@dataclass(frozen=True)
class Balance:
    asset: str
    available: Decimal
    total: Decimal

    def covers(self, amount: Decimal) -> bool:
        return self.available >= amount