from dataclasses import dataclass
from typing import Any, Dict

from hedge_bot.errors import ConfigError


@dataclass(frozen=True)
class ExchangeConfig:
    api_key: str
    api_secret: str
    testnet: bool = False
    enable_rate_limit: bool = True
    adjust_for_time_diff: bool = True

    @classmethod
    def from_env(cls, config: Dict[str, Any]) -> "ExchangeConfig":
        built = cls(
            api_key=str(config.get("bybit_api_key", "") or ""),
            api_secret=str(config.get("bybit_api_secret", "") or ""),
            testnet=bool(config.get("bybit_testnet", False)),
        )
        if not built.api_key.strip():
            raise ConfigError("bybit.api_key must not be empty")
        if not built.api_secret.strip():
            raise ConfigError("bybit.api_secret must not be empty")
        return built


@dataclass(frozen=True)
class FreqtradeConfig:
    api_url: str  # full /api/v1/status url
    username: str
    password: str
    timeout: float = 10.0

    @classmethod
    def from_env(cls, config: Dict[str, Any]) -> "FreqtradeConfig":
        built = cls(
            api_url=str(config.get("freqtrade_api_url", "") or ""),
            username=str(config.get("freqtrade_username", "") or ""),
            password=str(config.get("freqtrade_password", "") or ""),
            timeout=float(config.get("freqtrade_timeout", 10.0) or 10.0),
        )
        if not built.api_url.startswith(("http://", "https://")):
            raise ConfigError(f"freqtrade.api_url must be an http(s) url, got '{built.api_url}'")
        if not built.username.strip() or not built.password.strip():
            raise ConfigError("freqtrade.username and freqtrade.password must not be empty")
        return built
