from decimal import Decimal

from hedge_bot.dataclass.position import Position
from hedge_bot.utils.util import quantize_places, round_to_tick

LOW_PRICE_THRESHOLD = Decimal("0.0001")


class TakeProfitCalculator:

    def __init__(self):
        pass

    def take_profit_percent(self, position: Position, profit_ratio: Decimal) -> Decimal:
        """Share of the drawdown to capture: 6% loss * 0.7 -> 4.2%."""
        return -position.profit_ratio * 100 * profit_ratio

    def price(self, position: Position, profit_ratio: Decimal, tick_size: Decimal = Decimal("0")) -> Decimal:
        """
        current * (1 + tp%), on the tick grid, then fixed to 8 decimals for
        sub-0.0001 instruments and 4 otherwise.
        """
        current = position.current_rate
        raw = current * (1 + self.take_profit_percent(position, profit_ratio) / 100)

        price = round_to_tick(raw, tick_size)
        if price <= 0:
            price = current * Decimal("1.001")

        places = 8 if current < LOW_PRICE_THRESHOLD else 4
        return quantize_places(price, places)
