"""Configuration management for the Zento market client."""

import os
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_DEFAULT_READ_ATTEMPTS = 2
_DEFAULT_READ_RETRY_DELAY = 0.5
_DEFAULT_RECEIPT_TIMEOUT = 120
_DEFAULT_GAS = 500_000
_DEFAULT_BACKEND_TIMEOUT = 30.0


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


@dataclass(frozen=True)
class LedgerConfig:
    """Connection settings for the market and token contracts.

    Attributes:
        rpc_url: JSON-RPC endpoint of the chain hosting the contracts.
        market_contract: Address of the prediction market contract.
        token_contract: Address of the fungible token used for stakes.
        oracle: Oracle address passed to ``createMarket``.
        private_key: Hex-encoded signing key. Empty means no wallet is
            connected and every write pipeline aborts at its precondition.
        chain_id: Optional chain ID used when building transactions.
        read_attempts: Attempts per idempotent read before giving up.
        read_retry_delay: Seconds to wait between read attempts.
        receipt_timeout: Seconds to wait for a write receipt.
        gas: Gas limit per write transaction.

    """

    rpc_url: str
    market_contract: str
    token_contract: str
    oracle: str
    private_key: str = ""
    chain_id: int | None = None
    read_attempts: int = _DEFAULT_READ_ATTEMPTS
    read_retry_delay: float = _DEFAULT_READ_RETRY_DELAY
    receipt_timeout: int = _DEFAULT_RECEIPT_TIMEOUT
    gas: int = _DEFAULT_GAS


@dataclass(frozen=True)
class BackendConfig:
    """Settings for the suggestion and reward backend.

    Attributes:
        base_url: Root URL of the backend service.
        user_id: Identifier sent with every new suggestion search.
        timeout: Request timeout in seconds.

    """

    base_url: str
    user_id: str = "Creator"
    timeout: float = _DEFAULT_BACKEND_TIMEOUT


@dataclass(frozen=True)
class TradingConfig:
    """Presentation and default sizing settings for trade pipelines.

    Attributes:
        token_symbol: Symbol shown in user-facing status lines.
        default_min_liquidity: Minimum initial liquidity (token units) used
            when the contract value cannot be read.
        default_initial_liquidity: Initial liquidity (token units) offered
            for new markets.

    """

    token_symbol: str = "USDT"
    default_min_liquidity: Decimal = Decimal(2)
    default_initial_liquidity: Decimal = Decimal(10)


class ConfigLoader:
    """Load and manage configuration from YAML files with environment variable substitution."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the config loader.

        Load environment variables from a ``.env`` file (if present) and
        then read YAML configuration from the given directory.

        Args:
            config_dir: Directory containing config files. Defaults to src/zento_markets/config.

        """
        load_dotenv()
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML files."""
        settings_file = self.config_dir / "settings.yaml"
        if settings_file.exists():
            with settings_file.open() as f:
                self._config = yaml.safe_load(f) or {}

        # Local overrides are deep-merged over the base file
        local_settings = self.config_dir / "settings.local.yaml"
        if local_settings.exists():
            with local_settings.open() as f:
                local_config = cast("dict[str, Any]", yaml.safe_load(f) or {})
                self._deep_merge(self._config, local_config)

        self._config = self._substitute_env_vars(self._config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override dict into base dict.

        Args:
            base: Base dictionary to merge into (modified in place).
            override: Dictionary with values to override.

        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], cast("dict[str, Any]", value))
            else:
                base[key] = value

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in config.

        Supports format: ${VAR_NAME:default_value} or ${VAR_NAME}

        Args:
            config: Configuration value (dict, list, or str).

        Returns:
            Configuration with environment variables substituted.

        Raises:
            ConfigError: If a referenced variable is unset and has no default.

        """
        if isinstance(config, dict):
            return {
                k: self._substitute_env_vars(v)
                for k, v in config.items()  # pyright: ignore[reportUnknownVariableType]
            }
        if isinstance(config, list):
            return [
                self._substitute_env_vars(item)
                for item in config  # pyright: ignore[reportUnknownVariableType]
            ]
        if isinstance(config, str) and config.startswith("${") and config.endswith("}"):
            var_expr = config[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
            else:
                var_name, default = var_expr, None

            value = os.getenv(var_name, default)
            if value is None:
                msg = f"Required environment variable ${{{var_name}}} is not set and has no default"
                raise ConfigError(msg)
            return value

        if isinstance(config, str) and re.search(r"\$\{[^}]+\}", config):
            msg = f"Unresolved environment variable reference in: {config}"
            raise ConfigError(msg)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key.

        Args:
            key: Configuration key in dot notation (e.g., 'ledger.rpc_url').
            default: Default value if key not found.

        Returns:
            Configuration value.

        """
        keys = key.split(".")
        current: Any = self._config
        for k in keys:
            if isinstance(current, dict):
                current = cast("dict[str, Any]", current).get(k)
                if current is None:
                    return default
            else:
                return default
        return current  # pyright: ignore[reportReturnType]

    def _section(self, name: str) -> dict[str, Any]:
        """Return a top-level section as a dictionary.

        Args:
            name: Section key (e.g. ``"ledger"``).

        Returns:
            The section mapping, or an empty dict when absent.

        Raises:
            ConfigError: If the section exists but is not a mapping.

        """
        result: Any = self.get(name, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{name} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)

    def get_ledger_config(self) -> LedgerConfig:
        """Build the typed ledger configuration.

        Returns:
            Frozen ``LedgerConfig`` populated from the ``ledger`` section.

        Raises:
            ConfigError: If a required contract address or the RPC URL is missing.

        """
        section = self._section("ledger")
        for required in ("rpc_url", "market_contract", "token_contract"):
            if not section.get(required):
                msg = f"ledger.{required} is not configured"
                raise ConfigError(msg)
        chain_id = section.get("chain_id")
        return LedgerConfig(
            rpc_url=str(section["rpc_url"]),
            market_contract=str(section["market_contract"]),
            token_contract=str(section["token_contract"]),
            oracle=str(section.get("oracle") or ""),
            private_key=str(section.get("private_key") or ""),
            chain_id=int(chain_id) if chain_id not in (None, "") else None,
            read_attempts=int(section.get("read_attempts", _DEFAULT_READ_ATTEMPTS)),
            read_retry_delay=float(section.get("read_retry_delay", _DEFAULT_READ_RETRY_DELAY)),
            receipt_timeout=int(section.get("receipt_timeout", _DEFAULT_RECEIPT_TIMEOUT)),
            gas=int(section.get("gas", _DEFAULT_GAS)),
        )

    def get_backend_config(self) -> BackendConfig:
        """Build the typed backend configuration.

        Returns:
            Frozen ``BackendConfig`` populated from the ``backend`` section.

        Raises:
            ConfigError: If the backend base URL is missing.

        """
        section = self._section("backend")
        if not section.get("base_url"):
            raise ConfigError("backend.base_url is not configured")
        return BackendConfig(
            base_url=str(section["base_url"]),
            user_id=str(section.get("user_id") or "Creator"),
            timeout=float(section.get("timeout", _DEFAULT_BACKEND_TIMEOUT)),
        )

    def get_trading_config(self) -> TradingConfig:
        """Build the typed trading configuration.

        Returns:
            Frozen ``TradingConfig``; missing keys fall back to defaults.

        """
        section = self._section("trading")
        defaults = TradingConfig()
        return TradingConfig(
            token_symbol=str(section.get("token_symbol") or defaults.token_symbol),
            default_min_liquidity=Decimal(
                str(section.get("default_min_liquidity", defaults.default_min_liquidity))
            ),
            default_initial_liquidity=Decimal(
                str(section.get("default_initial_liquidity", defaults.default_initial_liquidity))
            ),
        )


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the global ``ConfigLoader`` singleton, creating it on first use.

    Lazy initialisation avoids side effects (file I/O, ``load_dotenv``)
    at import time and makes testing easier.

    Returns:
        The shared ``ConfigLoader`` instance.

    """
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
