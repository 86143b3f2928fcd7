from decimal import Decimal
from typing import Any, Dict, Optional


class HedgeBotError(Exception):
    """
    Base error. ``benign`` errors mean "nothing to do this tick",
    ``skippable`` ones mean "this candidate does not fit, try the next one".
    Anything else ends the current pass.
    """

    benign = False
    skippable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def with_context(self, **context: Any) -> "HedgeBotError":
        self.context.update({k: v for k, v in context.items() if v is not None})
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class NoCandidates(HedgeBotError):
    benign = True

    def __init__(self):
        super().__init__("no open unhedged positions")


class NoQualifyingLoss(HedgeBotError):
    benign = True

    def __init__(self, max_loss_percent: Decimal):
        super().__init__(f"no positions with loss > {max_loss_percent:.2f}%")


class InsufficientBalance(HedgeBotError):
    def __init__(self, required: Decimal, available: Decimal, currency: str):
        super().__init__(f"insufficient {currency} to buy: need {required:.4f}, available {available:.4f}")
        self.required = required
        self.available = available
        self.currency = currency


class InsufficientForMinLimit(HedgeBotError):
    skippable = True

    def __init__(self, reason: str, min_order_amt: Decimal, min_order_qty: Decimal, amount: Decimal, quantity: Decimal):
        super().__init__(
            f"order below venue minimum ({reason}): amount {amount:.2f} vs min {min_order_amt:.2f}, "
            f"qty {quantity} vs min {min_order_qty}"
        )
        self.reason = reason


class ExchangeError(HedgeBotError):
    """Transport / API failure from the exchange gateway."""


class FillTimeout(HedgeBotError):
    pass


class PersistenceError(HedgeBotError):
    """Ledger read or write failed."""


class PositionSourceError(HedgeBotError):
    """Open positions could not be fetched."""


class OrderValidationError(HedgeBotError):
    pass


class ConfigError(HedgeBotError):
    pass
