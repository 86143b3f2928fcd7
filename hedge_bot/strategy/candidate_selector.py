from decimal import Decimal
from typing import Iterable, List

from hedge_bot.dataclass.position import Position


class CandidateSelector:

    def __init__(self):
        pass

    def is_eligible(self, position: Position, max_loss_percent: Decimal) -> bool:
        # profit_ratio is negative on a loss: 3.0% threshold -> ratio < -0.03
        return position.profit_ratio < -(max_loss_percent / 100)

    def select(self, positions: Iterable[Position], max_loss_percent: Decimal) -> List[Position]:
        """
        Positions whose loss exceeds the threshold, deepest drawdown first.
        sorted() is stable, so equal ratios keep their input order.
        """
        eligible = [p for p in positions if self.is_eligible(p, max_loss_percent)]
        return sorted(eligible, key=lambda p: p.profit_ratio)
