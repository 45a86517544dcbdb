"""
Utility Module

Helper functions for logging, gas pricing, sampling and formatting.

- Secure logging that redacts private keys before they reach console or file
- EIP-1559 fee selection with legacy gas price fallback
- Random amount/delay sampling for the transfer loop
"""

import os
import re
import random
import logging
from typing import Optional, Dict, Any
from decimal import Decimal

from web3 import Web3
from rich.logging import RichHandler
from rich.console import Console


# Global console for Rich output
console = Console()

MS_PER_MINUTE = 60_000
ETH_DECIMALS = 18


class SecureLogger:
    """
    Logger that sanitizes sensitive data from log messages.

    Source wallet secrets pass through the bot as plain strings, so every
    message is scrubbed before it is handed to the handlers.
    """

    # Patterns to redact from logs
    SENSITIVE_PATTERNS = [
        (r'0x[a-fA-F0-9]{64}(?![a-fA-F0-9])', '[PRIVATE_KEY_REDACTED]'),
        (r'(?<![a-fA-F0-9x])[a-fA-F0-9]{64}(?![a-fA-F0-9])', '[PRIVATE_KEY_REDACTED]'),
        (r'password["\']?\s*[:=]\s*["\'][^"\']+["\']', 'password=[REDACTED]'),
        (r'key["\']?\s*[:=]\s*["\'][^"\']{32,}["\']', 'key=[REDACTED]'),
    ]

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _sanitize(self, msg: str) -> str:
        """Remove sensitive data from log message."""
        if not isinstance(msg, str):
            msg = str(msg)

        sanitized = msg
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def debug(self, msg: str, *args, **kwargs):
        self._logger.debug(self._sanitize(msg), *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._logger.info(self._sanitize(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._logger.warning(self._sanitize(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._logger.error(self._sanitize(msg), *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        self._logger.exception(self._sanitize(msg), *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._logger.critical(self._sanitize(msg), *args, **kwargs)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = "./transfer_bot.log") -> SecureLogger:
    """
    Setup logging with both file and console output.

    Returns a SecureLogger that sanitizes sensitive data.
    """
    logger = logging.getLogger("transfer_bot")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers
    logger.handlers = []

    # Rich console handler
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True
    )
    rich_handler.setLevel(logging.INFO)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    # File handler for persistent logging
    if log_file:
        log_path = os.path.abspath(log_file)
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return SecureLogger(logger)


# Module-level logger; console only until the CLI reconfigures it
logger = SecureLogger(logging.getLogger("transfer_bot"))


# Gas utilities

def build_fee_fields(web3: Web3, priority_fee_gwei: Optional[float] = None) -> Dict[str, int]:
    """
    Pick fee fields for a transaction.

    Uses EIP-1559 when the latest block carries a base fee, falls back to
    legacy gas price otherwise.
    """
    latest_block = web3.eth.get_block('latest')

    if 'baseFeePerGas' in latest_block:
        base_fee = latest_block['baseFeePerGas']
        if priority_fee_gwei is not None:
            priority_fee = Web3.to_wei(Decimal(str(priority_fee_gwei)), 'gwei')
        else:
            priority_fee = web3.eth.max_priority_fee

        # Max fee = 2 * base fee + priority fee (conservative)
        return {
            'maxFeePerGas': base_fee * 2 + priority_fee,
            'maxPriorityFeePerGas': priority_fee,
        }

    return {'gasPrice': web3.eth.gas_price}


# Sampling utilities

def random_in_range(minimum: float, maximum: float) -> float:
    """Uniform sample between two bounds; inverted bounds are allowed."""
    return random.uniform(minimum, maximum)


def amount_to_wei(amount: float) -> int:
    """Convert a token amount to wei, truncating past 18 decimals."""
    return Web3.to_wei(Decimal(f"{amount:.{ETH_DECIMALS}f}"), 'ether')


def minutes_to_ms(minutes: float) -> float:
    return minutes * MS_PER_MINUTE


# Formatting utilities

def format_wei(wei_amount: int, decimals: int = ETH_DECIMALS) -> str:
    """Format wei amount as an exact decimal string."""
    if wei_amount == 0:
        return "0"

    value = Decimal(wei_amount) / (Decimal(10) ** decimals)
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s" if secs > 0 else f"{minutes}m"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"


def format_address(address: str, length: int = 6) -> str:
    """Format Ethereum address with ellipsis."""
    if len(address) <= length * 2 + 2:
        return address
    return f"{address[:length + 2]}...{address[-length:]}"


def format_tx_hash(tx_hash: str, length: int = 10) -> str:
    """Format transaction hash with ellipsis."""
    if len(tx_hash) <= length * 2:
        return tx_hash
    return f"{tx_hash[:length]}...{tx_hash[-length:]}"


def sanitize_error_message(error: Any) -> str:
    """
    Sanitize error messages to remove sensitive data.

    Args:
        error: Original error or message

    Returns:
        Sanitized error message safe for display
    """
    if not isinstance(error, str):
        error = str(error)

    # Patterns to redact
    patterns = [
        (r'0x[a-fA-F0-9]{64}(?![a-fA-F0-9])', '[PRIVATE_KEY]'),
        (r'https?://[^\s]+', '[URL]'),
        (r'password["\']?\s*[:=]\s*\S+', 'password=[REDACTED]'),
    ]

    sanitized = error
    for pattern, replacement in patterns:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    return sanitized
