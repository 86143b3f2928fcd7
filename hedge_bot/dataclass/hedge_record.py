from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from hedge_bot.dataclass.order import OrderStatus


@dataclass
class HedgeRecord:
    # source position
    position_id: int
    pair: str
    hedge_time: datetime
    order_id: str  # take-profit sell, tracked by reconciliation
    position_open_price: Decimal
    position_amount: Decimal
    position_profit_ratio: Decimal

    # hedge leg
    hedge_open_price: Decimal
    hedge_amount: Decimal
    hedge_take_profit_price: Decimal

    status: OrderStatus = OrderStatus.PENDING
    buy_order_id: Optional[str] = None
    last_status_check: Optional[datetime] = None
    close_price: Optional[Decimal] = None
    close_time: Optional[datetime] = None

    @property
    def realized_profit(self) -> Optional[Decimal]:
        if self.close_price is None:
            return None
        return (self.close_price - self.hedge_open_price) * self.hedge_amount
