"""
Configuration Management Module

Holds network and operational settings for the transfer bot, with optional
YAML overrides, plus the per-run transfer settings collected from the operator.
"""

import os
from pathlib import Path
from typing import Dict, Any, List, Optional, Callable
from dataclasses import dataclass, asdict, field

import yaml

# Setup basic logging for this module
import logging
logger = logging.getLogger(__name__)


DEFAULT_RPC_URLS = [
    "https://endpoints.omniatech.io/v1/unichain/sepolia/public",
    "http://5.9.111.188:8549",
    "https://sepolia.unichain.org",
]


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""
    pass


@dataclass
class Config:
    """Bot configuration settings."""

    # Network (Unichain Sepolia)
    rpc_urls: List[str] = field(default_factory=lambda: list(DEFAULT_RPC_URLS))
    chain_id: int = 1301
    rpc_timeout: int = 30
    explorer_url: str = "https://sepolia.unichain.org/tx/"

    # Source wallets
    wallet_file: str = "wallets.txt"

    # Retry settings (per RPC call, independent of the transfer delay)
    max_retries: int = 3
    retry_delay_seconds: float = 5
    error_cooldown_seconds: float = 30

    # Gas settings
    gas_limit: int = 21000
    priority_fee_gwei: Optional[float] = None  # None = ask the node

    # Operation
    max_cycles: Optional[int] = None  # None = run until stopped
    dry_run: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = "./transfer_bot.log"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        # Filter only valid fields
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**valid_fields)


@dataclass
class TransferSettings:
    """Operator-supplied ranges and counts for one run."""

    min_amount: float = 0.00001
    max_amount: float = 0.000005
    min_delay_minutes: float = 1
    max_delay_minutes: float = 5
    wallets_per_source: int = 1
    tx_per_wallet: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def prompt(cls, ask: Callable[[str], str]) -> "TransferSettings":
        """
        Collect settings interactively.

        Args:
            ask: Callable that shows a prompt and returns the raw answer

        Values are parsed but not range-checked; min > max is accepted.
        """
        min_amount = float(ask("\n💰 Enter minimum ETH amount (e.g., 0.00001): "))
        max_amount = float(ask("💰 Enter maximum ETH amount (e.g., 0.000005): "))
        min_delay = float(ask("⏱️  Enter minimum delay between transactions (minutes): "))
        max_delay = float(ask("⏱️  Enter maximum delay between transactions (minutes): "))
        wallets_per_source = int(ask("🔑 Enter number of receiver wallets to generate per source wallet: "))
        tx_per_wallet = int(ask("📤 Enter number of transactions per receiver wallet: "))

        return cls(
            min_amount=min_amount,
            max_amount=max_amount,
            min_delay_minutes=min_delay,
            max_delay_minutes=max_delay,
            wallets_per_source=wallets_per_source,
            tx_per_wallet=tx_per_wallet,
        )


class ConfigManager:
    """Loads and saves the YAML configuration file."""

    def __init__(self, config_path: Path = Path("./bot_config.yaml")):
        self.config_path = Path(config_path)

    def exists(self) -> bool:
        return self.config_path.exists()

    def load(self) -> Config:
        """Load configuration, falling back to defaults when no file exists."""
        if not self.config_path.exists():
            logger.info(f"No config at {self.config_path}, using defaults")
            return Config()

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config {self.config_path}: {e}") from e

        if data is None:
            return Config()
        if not isinstance(data, dict):
            raise ConfigError(f"Config {self.config_path} must be a mapping")

        logger.info("Configuration loaded successfully")
        return Config.from_dict(data)

    def save(self, config: Config):
        """Save configuration to YAML file."""
        # Ensure directory exists
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w') as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

        # Set restrictive permissions (owner read/write only)
        os.chmod(self.config_path, 0o600)

        logger.info(f"Configuration saved to {self.config_path}")


# Default configuration template
DEFAULT_CONFIG = """
# Transfer Bot Configuration

rpc_urls:
  - https://endpoints.omniatech.io/v1/unichain/sepolia/public
  - http://5.9.111.188:8549
  - https://sepolia.unichain.org
chain_id: 1301
rpc_timeout: 30
explorer_url: https://sepolia.unichain.org/tx/

wallet_file: wallets.txt

# Retry Settings
max_retries: 3
retry_delay_seconds: 5
error_cooldown_seconds: 30

# Gas Settings
gas_limit: 21000
priority_fee_gwei: null

# Operation Settings
max_cycles: null
dry_run: false
log_level: INFO
log_file: ./transfer_bot.log
""".strip()
