import threading
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from datetime import datetime, timezone
from typing import Any, Optional

ZERO = Decimal("0")


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Decimal:
    """
    Convert exchange / JSON numbers into Decimal without inheriting float noise.
    "" and None map to ``default`` (ZERO when not given).
    """
    if value is None or value == "":
        return ZERO if default is None else default
    if isinstance(value, Decimal):
        return value
    try:
        dec = Decimal(str(value))
        if dec.is_finite():
            return dec
    except (InvalidOperation, ValueError, TypeError):
        pass
    return ZERO if default is None else default


def round_to_step(qty: Decimal, step: Decimal) -> Decimal:
    """
    Round a quantity to the nearest multiple of step (half away from zero).
    A non-positive step means the venue defines none: qty is returned as is.
    """
    if step is None or step <= 0:
        return qty
    multiples = (qty / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return multiples * step


def floor_to_step(qty: Decimal, step: Decimal) -> Decimal:
    """Largest multiple of step not above qty. Used when selling what is on hand."""
    if step is None or step <= 0:
        return qty
    return (qty / step).to_integral_value(rounding=ROUND_DOWN) * step


def round_to_tick(price: Decimal, tick: Decimal) -> Decimal:
    """Same rule as round_to_step, for prices and tick sizes."""
    return round_to_step(price, tick)


def quantize_places(value: Decimal, places: int) -> Decimal:
    step = Decimal("1").scaleb(-places)  # 10^-places
    return value.quantize(step, rounding=ROUND_HALF_UP)


class Util:

    def __init__(self):
        self.sequence = 0
        self.sequence_lock = threading.Lock()

    def timestamp_ms_to_datetime(self, timestamp_ms: Any) -> Optional[datetime]:
        if timestamp_ms in (None, "", 0, "0"):
            return None
        return datetime.fromtimestamp(int(timestamp_ms) / 1000.0, tz=timezone.utc)

    def generate_order_id(self, action: str) -> str:
        """
        Generate a client order id composed of:
        - action: one of 'HEDGE_BUY', 'HEDGE_SELL'
        - UTC timestamp in YYMMDDHHMMSSffffff format
        - sequence number to avoid duplicates within the same microsecond

        Bybit caps orderLinkId at 36 characters, so the action is abbreviated.

        Example:
            HB-250625123456789012-1
        """
        allowed = {"HEDGE_BUY": "HB", "HEDGE_SELL": "HS"}
        if action not in allowed:
            raise ValueError(f"Invalid action '{action}'. Must be one of {set(allowed)}.")

        with self.sequence_lock:
            self.sequence += 1
            seq = self.sequence

        timestamp = datetime.now(timezone.utc).strftime("%y%m%d%H%M%S%f")

        return f"{allowed[action]}-{timestamp}-{seq}"
