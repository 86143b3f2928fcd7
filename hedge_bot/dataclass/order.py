from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from hedge_bot.errors import OrderValidationError


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED)

    @property
    def rank(self) -> int:
        """Lifecycle position; a record may only move to a higher rank."""
        if self.is_terminal:
            return 2
        if self is OrderStatus.PARTIALLY_FILLED:
            return 1
        if self is OrderStatus.PENDING:
            return 0
        return -1

    def can_advance_to(self, other: "OrderStatus") -> bool:
        return other.rank > self.rank

    @classmethod
    def active(cls) -> tuple:
        return (cls.PENDING, cls.PARTIALLY_FILLED)

    @classmethod
    def from_string(cls, status: Optional[str]) -> "OrderStatus":
        """
        Map venue / ccxt spellings onto the lifecycle statuses.
        ccxt: open, closed, canceled, rejected, expired
        bybit: New, PartiallyFilled, Filled, Cancelled, Rejected, PartiallyFilledCanceled, Deactivated
        """
        key = (status or "").replace("_", "").replace(" ", "").upper()
        mapping = {
            "PENDING": cls.PENDING,
            "NEW": cls.PENDING,
            "OPEN": cls.PENDING,
            "CREATED": cls.PENDING,
            "UNTRIGGERED": cls.PENDING,
            "FILLED": cls.FILLED,
            "CLOSED": cls.FILLED,
            "PARTIALLYFILLED": cls.PARTIALLY_FILLED,
            "PARTIAL": cls.PARTIALLY_FILLED,
            "CANCELLED": cls.CANCELLED,
            "CANCELED": cls.CANCELLED,
            "PARTIALLYFILLEDCANCELED": cls.CANCELLED,
            "DEACTIVATED": cls.CANCELLED,
            "EXPIRED": cls.CANCELLED,
            "REJECTED": cls.REJECTED,
        }
        return mapping.get(key, cls.UNKNOWN)


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: OrderSide
    order_type: OrderType
    quantity: Decimal
    price: Optional[Decimal] = None  # limit orders only

    @classmethod
    def market(cls, symbol: str, side: OrderSide, quantity: Decimal) -> "OrderRequest":
        return cls(symbol=symbol, side=side, order_type=OrderType.MARKET, quantity=quantity)

    @classmethod
    def limit(cls, symbol: str, side: OrderSide, quantity: Decimal, price: Decimal) -> "OrderRequest":
        return cls(symbol=symbol, side=side, order_type=OrderType.LIMIT, quantity=quantity, price=price)

    def validate(self) -> None:
        if not self.symbol:
            raise OrderValidationError("order symbol is empty")
        if self.quantity <= 0:
            raise OrderValidationError(f"{self.side.value} quantity must be > 0, got {self.quantity}")
        if self.order_type is OrderType.LIMIT and (self.price is None or self.price <= 0):
            raise OrderValidationError(f"{self.side.value} limit price must be > 0, got {self.price}")


@dataclass(frozen=True)
class OrderOutcome:
    order_id: str
    success: bool
    error: str = ""


@dataclass
class OrderStatusSnapshot:
    order_id: str
    status: OrderStatus
    filled_price: Optional[Decimal] = None
    filled_time: Optional[datetime] = None
    filled_qty: Decimal = Decimal("0")
    remaining_qty: Decimal = Decimal("0")
