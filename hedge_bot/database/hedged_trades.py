from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from decimal import Decimal

import mysql.connector
from mysql.connector import errorcode

from hedge_bot.database.base_database import BaseMySQLRepo
from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.order import OrderStatus
from hedge_bot.errors import PersistenceError
from hedge_bot.interface.io_interface import IHedgeLedger

TERMINAL_STATUSES = tuple(s.value for s in OrderStatus if s.is_terminal)

COLUMNS = [
    "position_id",
    "pair",
    "hedge_time",
    "order_id",
    "buy_order_id",
    "position_open_price",
    "position_amount",
    "position_profit_ratio",
    "hedge_open_price",
    "hedge_amount",
    "hedge_take_profit_price",
    "order_status",
    "last_status_check",
    "close_price",
    "close_time",
]


def _to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Store naive UTC (pool session runs with time_zone +00:00)."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class HedgedTrades(BaseMySQLRepo, IHedgeLedger):
    """
    Hedge ledger: one row per hedged source position.
    position_id is the primary key, so a position can only be hedged once.
    """

    def __init__(self, **db_kwargs) -> None:
        super().__init__(**db_kwargs)
        try:
            with self._cursor() as cursor:
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS hedged_trades (
                        position_id             BIGINT        NOT NULL PRIMARY KEY,  -- freqtrade trade_id
                        pair                    VARCHAR(32)   NOT NULL,              -- BTC/USDT
                        hedge_time              DATETIME(6)   NOT NULL,
                        order_id                VARCHAR(64)   NOT NULL,              -- take-profit sell on bybit
                        buy_order_id            VARCHAR(64)   NULL,

                        position_open_price     DECIMAL(36,12) NOT NULL,
                        position_amount         DECIMAL(36,12) NOT NULL,
                        position_profit_ratio   DECIMAL(18,8)  NOT NULL,

                        hedge_open_price        DECIMAL(36,12) NOT NULL,
                        hedge_amount            DECIMAL(36,12) NOT NULL,
                        hedge_take_profit_price DECIMAL(36,12) NOT NULL,

                        order_status            VARCHAR(32)   NOT NULL DEFAULT 'PENDING',
                        last_status_check       DATETIME(6)   NULL,
                        close_price             DECIMAL(36,12) NULL,
                        close_time              DATETIME(6)   NULL,

                        INDEX idx_hedged_trades_order_id (order_id),
                        INDEX idx_hedged_trades_status (order_status)
                    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
                    """
                )
        except mysql.connector.Error as e:
            raise PersistenceError(f"cannot initialise hedged_trades table: {e}") from e

    # ------------------------------------------------------------------
    # ledger contract
    # ------------------------------------------------------------------
    def is_hedged(self, position_id: int) -> bool:
        try:
            with self._cursor() as cursor:
                cursor.execute("SELECT COUNT(1) FROM hedged_trades WHERE position_id = %s", (position_id,))
                (count,) = cursor.fetchone()
                return count > 0
        except mysql.connector.Error as e:
            raise PersistenceError(f"hedged check failed: {e}", {"position_id": position_id}) from e

    def save_hedge_record(self, record: HedgeRecord) -> None:
        row = self._to_row(record)
        placeholders = ", ".join("%s" for _ in COLUMNS)
        try:
            with self._cursor() as cursor:
                cursor.execute(
                    f"INSERT INTO hedged_trades ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                    [row[col] for col in COLUMNS],
                )
        except mysql.connector.IntegrityError as e:
            if e.errno == errorcode.ER_DUP_ENTRY:
                raise PersistenceError("position already hedged", {"position_id": record.position_id}) from e
            raise PersistenceError(f"save hedge record failed: {e}", {"position_id": record.position_id}) from e
        except mysql.connector.Error as e:
            raise PersistenceError(f"save hedge record failed: {e}", {"position_id": record.position_id, "order_id": record.order_id}) from e

    def query_hedge_records(self, statuses: Optional[Iterable[OrderStatus]] = None) -> List[HedgeRecord]:
        """All records, newest first, optionally filtered by status."""
        sql = f"SELECT {', '.join(COLUMNS)} FROM hedged_trades"
        params: List[Any] = []
        if statuses is not None:
            values = [OrderStatus(s).value for s in statuses]
            if not values:
                return []
            sql += f" WHERE order_status IN ({', '.join('%s' for _ in values)})"
            params.extend(values)
        sql += " ORDER BY hedge_time DESC"

        try:
            with self._cursor(dictionary=True) as cursor:
                cursor.execute(sql, params)
                rows = cursor.fetchall()
        except mysql.connector.Error as e:
            raise PersistenceError(f"query hedge records failed: {e}") from e
        return [self._from_row(r) for r in rows]

    def update_hedge_record_status(
        self,
        order_id: str,
        status: OrderStatus,
        close_price: Optional[Decimal] = None,
        close_time: Optional[datetime] = None,
        checked_at: Optional[datetime] = None,
    ) -> None:
        """
        Status + close fields in one statement. Terminal rows are never touched
        again and close fields, once set, are kept (COALESCE).
        """
        checked_at = checked_at or datetime.now(timezone.utc)
        terminal = ", ".join("%s" for _ in TERMINAL_STATUSES)
        try:
            with self._cursor() as cursor:
                cursor.execute(
                    f"""
                    UPDATE hedged_trades
                       SET order_status = %s,
                           last_status_check = %s,
                           close_price = COALESCE(close_price, %s),
                           close_time = COALESCE(close_time, %s)
                     WHERE order_id = %s
                       AND order_status NOT IN ({terminal})
                    """,
                    (OrderStatus(status).value, _to_db_time(checked_at), close_price, _to_db_time(close_time), order_id, *TERMINAL_STATUSES),
                )
                updated = cursor.rowcount
        except mysql.connector.Error as e:
            raise PersistenceError(f"update hedge record failed: {e}", {"order_id": order_id, "status": status}) from e

        if updated == 0:
            raise PersistenceError("no active hedge record for order", {"order_id": order_id})

    def count(self) -> int:
        try:
            with self._cursor() as cursor:
                cursor.execute("SELECT COUNT(*) FROM hedged_trades")
                (count,) = cursor.fetchone()
                return int(count)
        except mysql.connector.Error as e:
            raise PersistenceError(f"count hedge records failed: {e}") from e

    # ------------------------------------------------------------------
    # mapping
    # ------------------------------------------------------------------
    @staticmethod
    def _to_row(record: HedgeRecord) -> Dict[str, Any]:
        return {
            "position_id": record.position_id,
            "pair": record.pair,
            "hedge_time": _to_db_time(record.hedge_time),
            "order_id": record.order_id,
            "buy_order_id": record.buy_order_id,
            "position_open_price": record.position_open_price,
            "position_amount": record.position_amount,
            "position_profit_ratio": record.position_profit_ratio,
            "hedge_open_price": record.hedge_open_price,
            "hedge_amount": record.hedge_amount,
            "hedge_take_profit_price": record.hedge_take_profit_price,
            "order_status": record.status.value,
            "last_status_check": _to_db_time(record.last_status_check),
            "close_price": record.close_price,
            "close_time": _to_db_time(record.close_time),
        }

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> HedgeRecord:
        return HedgeRecord(
            position_id=int(row["position_id"]),
            pair=row["pair"],
            hedge_time=_from_db_time(row["hedge_time"]),
            order_id=row["order_id"],
            buy_order_id=row.get("buy_order_id"),
            position_open_price=Decimal(row["position_open_price"]),
            position_amount=Decimal(row["position_amount"]),
            position_profit_ratio=Decimal(row["position_profit_ratio"]),
            hedge_open_price=Decimal(row["hedge_open_price"]),
            hedge_amount=Decimal(row["hedge_amount"]),
            hedge_take_profit_price=Decimal(row["hedge_take_profit_price"]),
            status=OrderStatus.from_string(row["order_status"]),
            last_status_check=_from_db_time(row.get("last_status_check")),
            close_price=Decimal(row["close_price"]) if row.get("close_price") is not None else None,
            close_time=_from_db_time(row.get("close_time")),
        )
