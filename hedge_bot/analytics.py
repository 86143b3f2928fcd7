from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from hedge_bot.dataclass.hedge_record import HedgeRecord
from hedge_bot.dataclass.order import OrderStatus
from hedge_bot.interface.io_interface import IHedgeLedger

FRAME_COLUMNS = [
    "position_id",
    "pair",
    "status",
    "hedge_time",
    "close_time",
    "hedge_open_price",
    "hedge_take_profit_price",
    "close_price",
    "hedge_amount",
    "realized_profit",
]


@dataclass
class HedgeSummary:
    total: int
    active: int
    filled: int
    closed_unfilled: int  # cancelled or rejected take-profits
    realized_profit: Decimal
    profit_by_pair: Dict[str, float]
    profit_by_month: Dict[str, float]


class HedgeAnalytics:
    """Read-only reporting over every record in the hedge ledger."""

    def __init__(self, ledger: IHedgeLedger):
        self.ledger = ledger

    def to_frame(self, records: Optional[List[HedgeRecord]] = None) -> pd.DataFrame:
        if records is None:
            records = self.ledger.query_hedge_records()
        rows = [
            {
                "position_id": r.position_id,
                "pair": r.pair,
                "status": r.status.value,
                "hedge_time": r.hedge_time,
                "close_time": r.close_time,
                "hedge_open_price": float(r.hedge_open_price),
                "hedge_take_profit_price": float(r.hedge_take_profit_price),
                "close_price": float(r.close_price) if r.close_price is not None else None,
                "hedge_amount": float(r.hedge_amount),
                "realized_profit": float(r.realized_profit) if r.realized_profit is not None else 0.0,
            }
            for r in records
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)

    def summary(self) -> HedgeSummary:
        records = self.ledger.query_hedge_records()
        df = self.to_frame(records)

        # totals stay Decimal; the frame is for grouping only
        realized = sum((r.realized_profit for r in records if r.realized_profit is not None), Decimal("0"))

        if df.empty:
            return HedgeSummary(0, 0, 0, 0, realized, {}, {})

        active = df["status"].isin([s.value for s in OrderStatus.active()])
        filled = df["status"] == OrderStatus.FILLED.value
        unfilled = df["status"].isin([OrderStatus.CANCELLED.value, OrderStatus.REJECTED.value])

        by_pair = df[filled].groupby("pair")["realized_profit"].sum()

        closed = df[filled & df["close_time"].notna()]
        if closed.empty:
            by_month = {}
        else:
            months = pd.to_datetime(closed["close_time"], utc=True).dt.strftime("%Y-%m")
            by_month = closed.groupby(months)["realized_profit"].sum().to_dict()

        return HedgeSummary(
            total=len(df),
            active=int(active.sum()),
            filled=int(filled.sum()),
            closed_unfilled=int(unfilled.sum()),
            realized_profit=realized,
            profit_by_pair={k: float(v) for k, v in by_pair.items()},
            profit_by_month={k: float(v) for k, v in by_month.items()},
        )

    def export_csv(self, path: str) -> Path:
        out = Path(path)
        self.to_frame().to_csv(out, index=False)
        return out
