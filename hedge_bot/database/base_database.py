# hedge_bot/database/base_database.py
import os
from contextlib import contextmanager
from dotenv import load_dotenv
from mysql.connector import pooling
from mysql.connector.constants import ClientFlag

load_dotenv()  # reads .env file from current or parent dir


class BaseMySQLRepo:
    """
    Base class providing pooled MySQL connections with config from .env
    """
    _pool = None

    def __init__(self, **db_kwargs):
        env_config = {
            "host": os.getenv("DB_HOST", "localhost"),
            "user": os.getenv("DB_USER", "root"),
            "password": os.getenv("DB_PASSWORD", ""),
            "database": os.getenv("DB_NAME", "trade_hedge"),
            "port": int(os.getenv("DB_PORT", 3306)),
        }

        # Allow kwargs override (for tests or dynamic config)
        env_config.update(db_kwargs)
        self.config = env_config

        # Initialize connection pool once (shared)
        if not BaseMySQLRepo._pool:
            BaseMySQLRepo._pool = pooling.MySQLConnectionPool(
                pool_name="hedgebot_pool",
                pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
                pool_reset_session=True,
                time_zone="+00:00",
                client_flags=[ClientFlag.FOUND_ROWS],  # rowcount = matched rows
                **self.config
            )

    def _get_conn(self):
        """ Get pooled connection """
        return BaseMySQLRepo._pool.get_connection()

    @contextmanager
    def _cursor(self, dictionary: bool = False):
        """
        Pooled connection + cursor, committed on success, rolled back on error.
        Both are always returned to the pool.
        """
        conn = self._get_conn()
        cursor = conn.cursor(dictionary=dictionary)
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
