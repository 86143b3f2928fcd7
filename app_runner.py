import os
import signal

from hedge_bot.analytics import HedgeAnalytics
from hedge_bot.config import CONFIG
from hedge_bot.database.hedged_trades import HedgedTrades
from hedge_bot.database.logger import Logger
from hedge_bot.datas.exchange import ExchangeConfig, FreqtradeConfig
from hedge_bot.datas.strategy import HedgeConfig
from hedge_bot.exchange import ExchangeGateway
from hedge_bot.hedge_engine import HedgeEngine
from hedge_bot.position_source import FreqtradeClient
from hedge_bot.scheduler import Scheduler


def report(ledger: HedgedTrades, logger: Logger) -> None:
    summary = HedgeAnalytics(ledger).summary()
    logger.log(f"hedged_trades rows: {ledger.count()}", level="DEBUG")
    logger.log(
        f"📊 hedges={summary.total} active={summary.active} filled={summary.filled} "
        f"cancelled/rejected={summary.closed_unfilled} realized={summary.realized_profit:.4f}",
        level="INFO",
    )
    for pair, profit in sorted(summary.profit_by_pair.items()):
        logger.log(f"   {pair}: {profit:.4f}", level="INFO")
    for month, profit in sorted(summary.profit_by_month.items()):
        logger.log(f"   {month}: {profit:.4f}", level="INFO")

    csv_path = os.getenv("REPORT_CSV")
    if csv_path:
        out = HedgeAnalytics(ledger).export_csv(csv_path)
        logger.log(f"hedge records written to {out}", level="INFO")


def main():
    logger = Logger()
    mode = os.getenv("MODE", "live")

    strategy = HedgeConfig.from_env(CONFIG)
    ledger = HedgedTrades()

    if mode == "report":
        report(ledger, logger)
        return

    exchange = ExchangeGateway(ExchangeConfig.from_env(CONFIG), logger=logger)
    source = FreqtradeClient(FreqtradeConfig.from_env(CONFIG), logger=logger)
    engine = HedgeEngine(source, exchange, ledger, strategy, logger=logger)

    scheduler = Scheduler(engine, strategy.check_interval, logger=logger)
    signal.signal(signal.SIGINT, scheduler.stop)
    signal.signal(signal.SIGTERM, scheduler.stop)

    logger.log(
        f"✅ Hedge bot started: amount={strategy.position_amount} {strategy.base_currency}, "
        f"max loss {strategy.max_loss_percent}%, tp ratio {strategy.profit_ratio}, every {strategy.check_interval}s",
        level="INFO",
    )
    try:
        scheduler.run()
    finally:
        source.close()


if __name__ == "__main__":
    main()
