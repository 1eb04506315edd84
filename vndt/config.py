"""Deployment configuration: reads a YAML file, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .core import PRECISION, BPS_DENOMINATOR

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration value is missing or malformed."""


# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletsConfig:
    deployer: str = "deployer"
    engine: str = "vndt_engine"
    staking: str = "vndt_staking"
    dex: str = "vndt_dex"
    rate_controller: str = "vndt_rate_controller"
    oracle: str = "vndt_oracle"
    treasury: str = "vndt_treasury"

    def all(self) -> tuple[str, ...]:
        return (self.deployer, self.engine, self.staking, self.dex,
                self.rate_controller, self.oracle, self.treasury)


@dataclass(frozen=True)
class TokensConfig:
    collateral_symbol: str = "ETH"
    collateral_name: str = "Ether"
    token_symbol: str = "VNDT"
    token_name: str = "VNĐ₮ Stablecoin"
    staking_pool_symbol: str = "sVNDT"
    debt_pool_symbol: str = "dVNDT"


@dataclass(frozen=True)
class RatesConfig:
    borrow_rate: int = 0      # basis points a year
    staking_rate: int = 0     # basis points a year


@dataclass(frozen=True)
class SystemConfig:
    ledger_name: str = "vndt"
    start_time: datetime | None = None
    initial_eth_price: int = 2500 * PRECISION
    wallets: WalletsConfig = field(default_factory=WalletsConfig)
    tokens: TokensConfig = field(default_factory=TokensConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    accounts: dict[str, int] = field(default_factory=dict)   # wallet -> ETH funded at genesis
    verbose: bool = False


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------


def parse_amount(value: Any, name: str = "amount") -> int:
    """
    Convert a human amount ("2500", 1.5, "0.25") to 18-decimal fixed point.

    Raises:
        ConfigError: If the value is not a number, is negative, or has more
            than 18 decimals
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ConfigError(f"{name}: {value!r} is not a number") from exc
    if not amount.is_finite() or amount < 0:
        raise ConfigError(f"{name}: {value!r} must be a non-negative number")
    scaled = amount * PRECISION
    if scaled != scaled.to_integral_value():
        raise ConfigError(f"{name}: {value!r} has more than 18 decimals")
    return int(scaled)


def _parse_rate(value: Any, name: str) -> int:
    try:
        rate = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name}: {value!r} is not a whole number of basis points") from exc
    if rate < 0:
        raise ConfigError(f"{name}: {value!r} cannot be negative")
    return rate


_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"", "0", "false", "no", "off"}


def _parse_flag(value: Any, name: str) -> bool:
    """Accept YAML booleans and the strings an env var interpolates to."""
    if value is None or isinstance(value, bool):
        return bool(value)
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigError(f"{name}: {value!r} is not a boolean")


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ConfigError(f"start_time: {value!r} is not an ISO timestamp") from exc


# ---------------------------------------------------------------------------
# YAML -> dataclass builders
# ---------------------------------------------------------------------------


def _build_wallets(raw: dict[str, Any]) -> WalletsConfig:
    defaults = WalletsConfig()
    return WalletsConfig(**{
        name: str(raw.get(name, getattr(defaults, name)))
        for name in ("deployer", "engine", "staking", "dex", "rate_controller", "oracle", "treasury")
    })


def _build_tokens(raw: dict[str, Any]) -> TokensConfig:
    defaults = TokensConfig()
    return TokensConfig(**{
        name: str(raw.get(name, getattr(defaults, name)))
        for name in ("collateral_symbol", "collateral_name", "token_symbol",
                     "token_name", "staking_pool_symbol", "debt_pool_symbol")
    })


def _build_rates(raw: dict[str, Any]) -> RatesConfig:
    return RatesConfig(
        borrow_rate=_parse_rate(raw.get("borrow_rate", 0), "rates.borrow_rate"),
        staking_rate=_parse_rate(raw.get("staking_rate", 0), "rates.staking_rate"),
    )


def _build_accounts(raw: dict[str, Any]) -> dict[str, int]:
    return {str(wallet): parse_amount(amount, f"accounts.{wallet}") for wallet, amount in raw.items()}


def build_config(raw: dict[str, Any]) -> SystemConfig:
    """Build and validate a SystemConfig from an already-parsed mapping."""
    raw = _interpolate_env(raw or {})
    price = raw.get("initial_eth_price")
    cfg = SystemConfig(
        ledger_name=str(raw.get("ledger_name", "vndt")),
        start_time=_parse_time(raw.get("start_time")),
        initial_eth_price=(
            parse_amount(price, "initial_eth_price") if price is not None else 2500 * PRECISION
        ),
        wallets=_build_wallets(raw.get("wallets") or {}),
        tokens=_build_tokens(raw.get("tokens") or {}),
        rates=_build_rates(raw.get("rates") or {}),
        accounts=_build_accounts(raw.get("accounts") or {}),
        verbose=_parse_flag(raw.get("verbose", False), "verbose"),
    )
    _validate(cfg)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> SystemConfig:
    """Load and validate deployment configuration from YAML + .env.

    Args:
        config_path: Path to a YAML file. Without one the built-in
            deployment is used (ETH at 2500 VNDT, zero rates).
    """
    load_dotenv()

    if config_path is None:
        cfg = SystemConfig()
        _validate(cfg)
        return cfg
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")

    cfg = build_config(raw)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: SystemConfig) -> None:
    """Raise on invalid configuration."""
    identities = cfg.wallets.all()
    if any(not w for w in identities):
        raise ConfigError("wallet identities cannot be empty")
    if len(set(identities)) != len(identities):
        raise ConfigError("wallet identities must be distinct")
    if "system" in identities:
        raise ConfigError("'system' is reserved for issuance")

    symbols = (cfg.tokens.collateral_symbol, cfg.tokens.token_symbol,
               cfg.tokens.staking_pool_symbol, cfg.tokens.debt_pool_symbol)
    if any(not s for s in symbols) or len(set(symbols)) != len(symbols):
        raise ConfigError("token and pool symbols must be non-empty and distinct")

    for name in ("borrow_rate", "staking_rate"):
        if getattr(cfg.rates, name) > 100 * BPS_DENOMINATOR:
            raise ConfigError(f"rates.{name} above 10000% looks like a unit mistake")

    for wallet in cfg.accounts:
        if wallet in identities[1:] or wallet == "system":
            raise ConfigError(f"accounts.{wallet} collides with a system wallet")
