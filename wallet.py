"""
Wallet Module - Source Secrets and Receiver Accounts
====================================================
Flat-file storage for source wallet private keys and generation of
throwaway receiver accounts.

The secret store is a newline-delimited UTF-8 text file. It is read once at
startup and only written when it was missing or empty and keys were entered
interactively.
"""

import os
import secrets
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from eth_account import Account
from eth_account.signers.local import LocalAccount

from utils import logger


class SecretStore:
    """
    Reads and writes the list of source wallet secrets.

    No format validation happens here; a malformed key surfaces later when it
    is turned into an account.
    """

    WALLET_FILE = "wallets.txt"

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or self.WALLET_FILE)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[str]:
        """Return stored secrets in file order, blank lines dropped."""
        if not self.path.exists():
            return []

        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading wallet file {self.path}: {e}")
            return []

        return _clean_lines(content.splitlines())

    def save(self, wallet_secrets: Iterable[str]):
        """Write secrets one per line with owner-only permissions."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("\n".join(wallet_secrets), encoding="utf-8")
        os.chmod(self.path, 0o600)
        logger.info(f"Saved wallets to {self.path}")

    def collect(self, stream: TextIO) -> List[str]:
        """Read secrets from a stream until end of input."""
        return _clean_lines(stream)

    def load_or_collect(self, stream: TextIO) -> List[str]:
        """
        Load stored secrets, or collect and persist them on first run.

        Args:
            stream: Input to read keys from when the store is empty

        Returns:
            Ordered list of secrets (may be empty if nothing was entered)
        """
        wallet_secrets = self.load()
        if wallet_secrets:
            return wallet_secrets

        wallet_secrets = self.collect(stream)
        self.save(wallet_secrets)
        return wallet_secrets


def _clean_lines(lines: Iterable[str]) -> List[str]:
    return [line.strip() for line in lines if line.strip()]


def load_account(secret: str) -> LocalAccount:
    """Turn a stored secret into a signing account; raises on bad keys."""
    return Account.from_key(secret)


def generate_receivers(count: int) -> List[LocalAccount]:
    """Generate fresh in-memory receiver accounts."""
    return [Account.create(extra_entropy=secrets.token_hex(32)) for _ in range(count)]
