import os
from datetime import datetime

import mysql.connector

from hedge_bot.database.base_database import BaseMySQLRepo


class Logger(BaseMySQLRepo):
    """
    Simple logger: prints to console in development, saves to the logs table otherwise.
    """

    def __init__(self):
        self.env = os.getenv("ENVIRONMENT", "development")
        if self.env != "development":
            super().__init__()  # initializes connection pool
            self._ensure_table()

    def _ensure_table(self):
        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    timestamp VARCHAR(19),
                    level     VARCHAR(16),
                    message   TEXT
                )
                """
            )

    def log(self, message: str, level: str = "INFO"):
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if self.env == "development":
            print(f"[{ts}] [{level}] {message}")
            return
        try:
            with self._cursor() as cursor:
                cursor.execute("INSERT INTO logs (timestamp, level, message) VALUES (%s, %s, %s)", (ts, level, message))
        except mysql.connector.Error as e:
            # DB down: keep the line on stdout
            print(f"[{ts}] [{level}] {message}")
            print(f"[{ts}] [ERROR] log insert failed: {e}")
