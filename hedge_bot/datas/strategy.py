from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from hedge_bot.dataclass.order import OrderType
from hedge_bot.errors import ConfigError
from hedge_bot.utils.util import to_decimal


@dataclass(frozen=True)
class HedgeConfig:
    position_amount: Decimal = Decimal("50")  # fixed hedge notional, base currency
    max_loss_percent: Decimal = Decimal("3")  # 3.0 == -3% profit ratio
    profit_ratio: Decimal = Decimal("0.7")  # share of the drawdown captured by take-profit
    base_currency: str = "USDT"
    buy_order_type: OrderType = OrderType.LIMIT
    check_interval: int = 300  # seconds, 0 = run once
    retry_attempts: int = 3  # sell leg
    retry_delay: float = 2.0
    fill_poll_attempts: int = 30
    fill_poll_interval: float = 1.0
    verify_base_balance: bool = True

    # sizing constants
    slippage_buffer: Decimal = Decimal("1.01")
    buy_price_buffer: Decimal = Decimal("1.001")
    partial_fill_ratio: Decimal = Decimal("0.95")

    @classmethod
    def from_env(cls, config: Dict[str, Any]) -> "HedgeConfig":
        """Build from the lower-cased CONFIG dict (STRATEGY_* keys)."""
        d = cls()

        def get(key: str, default: Any) -> Any:
            val = config.get(f"strategy_{key}")
            return default if val is None or val == "" else val

        try:
            built = cls(
                position_amount=to_decimal(get("position_amount", d.position_amount)),
                max_loss_percent=to_decimal(get("max_loss_percent", d.max_loss_percent)),
                profit_ratio=to_decimal(get("profit_ratio", d.profit_ratio)),
                base_currency=str(get("base_currency", d.base_currency)).upper(),
                buy_order_type=OrderType(str(get("buy_order_type", d.buy_order_type.value)).lower()),
                check_interval=int(get("check_interval", d.check_interval)),
                retry_attempts=int(get("retry_attempts", d.retry_attempts)),
                retry_delay=float(get("retry_delay", d.retry_delay)),
                fill_poll_attempts=int(get("fill_poll_attempts", d.fill_poll_attempts)),
                fill_poll_interval=float(get("fill_poll_interval", d.fill_poll_interval)),
                verify_base_balance=bool(get("verify_base_balance", d.verify_base_balance)),
            )
        except ValueError as e:
            raise ConfigError(f"invalid strategy setting: {e}") from e

        built.validate()
        return built

    def validate(self) -> None:
        if self.position_amount <= 0:
            raise ConfigError(f"strategy.position_amount must be positive, got {self.position_amount}")
        if not (0 < self.max_loss_percent < 100):
            raise ConfigError(f"strategy.max_loss_percent must be in (0, 100), got {self.max_loss_percent}")
        if self.profit_ratio <= 0:
            raise ConfigError(f"strategy.profit_ratio must be positive, got {self.profit_ratio}")
        if not self.base_currency.strip():
            raise ConfigError("strategy.base_currency must not be empty")
        if self.check_interval < 0:
            raise ConfigError(f"strategy.check_interval must not be negative, got {self.check_interval}")
        if self.retry_attempts <= 0:
            raise ConfigError(f"strategy.retry_attempts must be positive, got {self.retry_attempts}")
        if self.retry_delay < 0:
            raise ConfigError(f"strategy.retry_delay must not be negative, got {self.retry_delay}")
        if self.fill_poll_attempts <= 0:
            raise ConfigError(f"strategy.fill_poll_attempts must be positive, got {self.fill_poll_attempts}")
        if self.fill_poll_interval < 0:
            raise ConfigError(f"strategy.fill_poll_interval must not be negative, got {self.fill_poll_interval}")
