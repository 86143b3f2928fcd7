from typing import Any, Dict, List, Optional

import httpx

from hedge_bot.database.logger import Logger
from hedge_bot.dataclass.position import Position
from hedge_bot.datas.exchange import FreqtradeConfig
from hedge_bot.errors import PositionSourceError
from hedge_bot.interface.io_interface import IPositionSource
from hedge_bot.utils.util import to_decimal


class FreqtradeClient(IPositionSource):
    """Open trades from the Freqtrade REST API (/api/v1/status)."""

    def __init__(self, config: FreqtradeConfig, logger: Optional[Logger] = None, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.config = config
        self.logger = logger or Logger()
        self._client = httpx.Client(
            auth=httpx.BasicAuth(config.username, config.password),
            timeout=config.timeout,
            headers={"accept": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def get_open_positions(self) -> List[Position]:
        try:
            resp = self._client.get(self.config.api_url)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise PositionSourceError(f"freqtrade returned status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PositionSourceError(f"freqtrade request failed: {e}") from e
        except ValueError as e:
            raise PositionSourceError(f"freqtrade response is not JSON: {e}") from e

        # /status answers with a list, older builds with a single trade object
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            raise PositionSourceError(f"unexpected freqtrade payload type {type(payload).__name__}")

        try:
            positions = [self._to_position(t) for t in payload if isinstance(t, dict) and t.get("is_open")]
        except (KeyError, TypeError, ValueError) as e:
            raise PositionSourceError(f"malformed freqtrade trade: {e!r}") from e
        self.logger.log(f"[Freqtrade] open trades: {len(positions)}", level="DEBUG")
        return positions

    @staticmethod
    def _to_position(trade: Dict[str, Any]) -> Position:
        return Position(
            id=int(trade["trade_id"]),
            pair=str(trade["pair"]),
            profit_ratio=to_decimal(trade.get("profit_ratio")),
            current_rate=to_decimal(trade.get("current_rate")),
            open_rate=to_decimal(trade.get("open_rate")),
            amount=to_decimal(trade.get("amount")),
        )
