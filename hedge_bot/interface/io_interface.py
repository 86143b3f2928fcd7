# ------------------------------------------------------------------
# Collaborator contracts consumed by the hedge engine
# ------------------------------------------------------------------
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.instrument import Balance, InstrumentConstraints
from hedge_bot.dataclass.order import OrderOutcome, OrderRequest, OrderStatus, OrderStatusSnapshot
from hedge_bot.dataclass.position import Position


class IPositionSource(ABC):

    @abstractmethod
    def get_open_positions(self) -> List[Position]:
        """
        Open positions with their unrealized P&L.
        raises PositionSourceError
        """
        raise NotImplementedError


class IExchangeGateway(ABC):
    """
    Hedging venue. Transport / API failures raise ExchangeError; an order the
    venue refuses comes back as OrderOutcome(success=False).
    """

    @abstractmethod
    def get_balance(self, asset: str) -> Balance:
        raise NotImplementedError

    @abstractmethod
    def get_instrument_constraints(self, symbol: str) -> InstrumentConstraints:
        raise NotImplementedError

    @abstractmethod
    def place_order(self, request: OrderRequest) -> OrderOutcome:
        raise NotImplementedError

    @abstractmethod
    def get_order_status(self, order_id: str, symbol: str) -> OrderStatusSnapshot:
        raise NotImplementedError


class IHedgeLedger(ABC):
    """
    Persisted hedge records. Every failure raises PersistenceError.
    """

    @abstractmethod
    def is_hedged(self, position_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def save_hedge_record(self, record: HedgeRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def query_hedge_records(self, statuses: Optional[Iterable[OrderStatus]] = None) -> List[HedgeRecord]:
        """statuses=None returns every record"""
        raise NotImplementedError

    @abstractmethod
    def update_hedge_record_status(
        self,
        order_id: str,
        status: OrderStatus,
        close_price: Optional[Decimal] = None,
        close_time: Optional[datetime] = None,
        checked_at: Optional[datetime] = None,
    ) -> None:
        raise NotImplementedError
