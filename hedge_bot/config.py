import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv, dotenv_values

load_dotenv()

# process env overrides the .env file for these prefixes (docker / systemd deployments)
ENV_PREFIXES = ("STRATEGY_", "FREQTRADE_", "BYBIT_", "DB_", "ENVIRONMENT")

# credentials and urls stay exactly as written
RAW_KEYS = {
    "BYBIT_API_KEY",
    "BYBIT_API_SECRET",
    "FREQTRADE_API_URL",
    "FREQTRADE_USERNAME",
    "FREQTRADE_PASSWORD",
    "DB_USER",
    "DB_PASSWORD",
}


def _cast_value(val: str):
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    if val.isdigit():
        return int(val)
    try:
        return float(val)
    except ValueError:
        return val


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the .env file (or ``path``), overlay matching process env vars,
    cast values (except RAW_KEYS) and lower-case the keys: STRATEGY_RETRY_DELAY -> strategy_retry_delay.
    """
    raw_env = dict(dotenv_values(path) if path else dotenv_values())
    raw_env.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIXES)})

    return {
        key.lower(): value if key.upper() in RAW_KEYS else _cast_value(value)
        for key, value in raw_env.items()
        if value is not None
    }


CONFIG = load_config()
