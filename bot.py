#!/usr/bin/env python3
"""
Transfer Bot
============
Sends small native-token transfers from source wallets to freshly generated
receiver wallets on a randomized schedule, rotating across RPC endpoints.

Usage:
    python bot.py run [--dry-run] [--max-cycles N]
    python bot.py balance
"""

import sys
import signal
import argparse
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from eth_account.signers.local import LocalAccount

# Rich CLI
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.markup import escape

from config import Config, ConfigManager, ConfigError, TransferSettings
from endpoints import EndpointPool, TransferClient
from wallet import SecretStore, load_account, generate_receivers
from utils import (
    console,
    logger,
    setup_logging,
    random_in_range,
    amount_to_wei,
    minutes_to_ms,
    format_wei,
    format_address,
    format_tx_hash,
    format_duration,
    sanitize_error_message,
)

DRY_RUN_HASH = "0xDRYRUN"


@dataclass
class TransferResult:
    """A submitted transfer, as shown to the operator."""
    source: str
    receiver: str
    amount_wei: int
    tx_hash: str


class TransferBot:
    """Scheduler loop: sources -> generated receivers -> transfers per receiver."""

    def __init__(
        self,
        config: Config,
        settings: TransferSettings,
        client: TransferClient,
        wallet_secrets: List[str],
        sleep: Optional[Callable[[float], object]] = None,
    ):
        self.config = config
        self.settings = settings
        self.client = client
        self.wallet_secrets = list(wallet_secrets)

        self._stop = threading.Event()
        # Waiting on the stop event lets stop() cut a pending delay short
        self._sleep = sleep or self._stop.wait

        # Stats
        self.cycle_count = 0
        self.successful_transfers = 0
        self.failed_transfers = 0
        self.total_sent_wei = 0

    def stop(self):
        """Ask the loop to finish; safe to call from a signal handler."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _should_continue(self) -> bool:
        if self._stop.is_set():
            return False
        return self.config.max_cycles is None or self.cycle_count < self.config.max_cycles

    def run(self):
        """Main loop; runs until stopped, max_cycles is reached or Ctrl+C."""
        console.print("\n[bold green]🚀 Starting transaction process...[/bold green]")
        console.print("[dim]Press Ctrl+C to stop\n[/dim]")

        try:
            while self._should_continue():
                self.cycle_count += 1
                logger.info(f"Starting cycle {self.cycle_count}")
                self.run_cycle()
                self.show_stats()
        except KeyboardInterrupt:
            console.print("\n[yellow]⚠ Bot stopped by user[/yellow]")
            self.show_stats()

    def run_cycle(self):
        """One pass over every source wallet."""
        for secret in self.wallet_secrets:
            if self._stop.is_set():
                return

            try:
                source = load_account(secret)
            except Exception as e:
                self._handle_failure(e)
                continue

            receivers = generate_receivers(self.settings.wallets_per_source)
            console.print(f"\n[blue]📊 Processing source wallet: {source.address}[/blue]")

            for receiver in receivers:
                for _ in range(self.settings.tx_per_wallet):
                    if self._stop.is_set():
                        return
                    self.process_transfer(source, receiver)

    def process_transfer(self, source: LocalAccount, receiver: LocalAccount) -> Optional[TransferResult]:
        """
        Query balance, send one random-sized transfer, then wait a random delay.

        Any failure is logged and followed by the fixed cooldown; the transfer
        is skipped rather than retried here.

        Returns:
            TransferResult on success, None on failure
        """
        try:
            # Balance is informational only; the transfer itself fails if short
            balance = self.client.get_balance(source.address)
            logger.debug(f"Source {format_address(source.address)} balance: {format_wei(balance)} ETH")

            amount_wei = amount_to_wei(
                random_in_range(self.settings.min_amount, self.settings.max_amount)
            )
            delay_minutes = random_in_range(
                self.settings.min_delay_minutes, self.settings.max_delay_minutes
            )

            if self.config.dry_run:
                tx_hash = DRY_RUN_HASH
            else:
                tx_hash = self.client.send_transfer(
                    source, receiver.address, amount_wei, self.config.chain_id
                )

            result = TransferResult(
                source=source.address,
                receiver=receiver.address,
                amount_wei=amount_wei,
                tx_hash=tx_hash,
            )
            self.successful_transfers += 1
            self.total_sent_wei += amount_wei
            logger.info(
                f"Sent {format_wei(amount_wei)} ETH to {format_address(receiver.address)} "
                f"(tx {format_tx_hash(tx_hash)})"
            )
            self.display_transaction(result)

            console.print(f"\n[magenta]⏳ Waiting {delay_minutes:.2f} minutes...[/magenta]\n")
            self._sleep(minutes_to_ms(delay_minutes) / 1000)
            return result

        except Exception as e:
            self._handle_failure(e)
            return None

    def _handle_failure(self, error: Exception):
        self.failed_transfers += 1
        logger.error(f"Transfer error: {sanitize_error_message(error)}")
        cooldown = self.config.error_cooldown_seconds
        console.print(f"[yellow]⏳ Waiting {format_duration(cooldown)} before continuing...[/yellow]\n")
        self._sleep(cooldown)

    def display_transaction(self, result: TransferResult):
        """Show a transaction details box."""
        dry = " [yellow](DRY RUN)[/yellow]" if self.config.dry_run else ""
        content = (
            f"[bold]Transaction Details[/bold]{dry}\n\n"
            f"[blue]From:   {result.source}[/blue]\n"
            f"[green]To:     {result.receiver}[/green]\n"
            f"[yellow]Amount: {format_wei(result.amount_wei)} ETH[/yellow]\n"
            f"[magenta]Hash:   {result.tx_hash}[/magenta]\n"
            f"[cyan]Explorer: {self.config.explorer_url}{result.tx_hash}[/cyan]"
        )
        console.print(Panel(content, box=box.ROUNDED, border_style="white", padding=(1, 2)))

    def show_stats(self):
        """Display current stats"""
        table = Table(title="Bot Statistics", box=box.ROUNDED)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Cycles", str(self.cycle_count))
        table.add_row("Successful Transfers", str(self.successful_transfers))
        table.add_row("Failed Transfers", str(self.failed_transfers))
        table.add_row("Total ETH Sent", format_wei(self.total_sent_wei))
        table.add_row("Dry Run", "Yes" if self.config.dry_run else "No")

        console.print(table)


def print_banner():
    """Print the CLI banner."""
    console.print(Panel.fit(
        "[bold cyan]Automated Transaction System[/bold cyan]\n"
        "[dim]Unichain Sepolia | Native Transfers[/dim]",
        box=box.DOUBLE,
        border_style="cyan"
    ))


def load_config(config_path: str, wallet_file: Optional[str] = None) -> Config:
    config = ConfigManager(Path(config_path)).load()
    if wallet_file:
        config.wallet_file = wallet_file
    return config


def build_client(config: Config) -> TransferClient:
    pool = EndpointPool.from_urls(config.rpc_urls, timeout=config.rpc_timeout)
    return TransferClient(
        pool,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay_seconds,
        gas_limit=config.gas_limit,
        priority_fee_gwei=config.priority_fee_gwei,
    )


def read_wallet_secrets(store: SecretStore) -> List[str]:
    """Load secrets, asking for them on stdin when the store is empty."""
    if not store.load():
        console.print(f"[yellow]\n📝 No wallets found in {store.path}[/yellow]")
        console.print("[green]Please enter private keys (one per line, press Ctrl+D when done):[/green]")
    return store.load_or_collect(sys.stdin)


def run_command(config_path: str, wallet_file: Optional[str] = None,
                dry_run: bool = False, max_cycles: Optional[int] = None) -> int:
    """Run the bot"""
    config = load_config(config_path, wallet_file)
    if dry_run:
        config.dry_run = True
    if max_cycles is not None:
        config.max_cycles = max_cycles

    setup_logging(config.log_level, config.log_file)
    console.clear()
    print_banner()

    wallet_secrets = read_wallet_secrets(SecretStore(config.wallet_file))
    if not wallet_secrets:
        console.print("[red]No wallets provided.[/red]")
        return 1

    settings = TransferSettings.prompt(lambda text: console.input(f"[cyan]{text}[/cyan]"))

    transfer_bot = TransferBot(config, settings, build_client(config), wallet_secrets)
    signal.signal(signal.SIGTERM, lambda signum, frame: transfer_bot.stop())
    transfer_bot.run()
    return 0


def balance_command(config_path: str, wallet_file: Optional[str] = None) -> int:
    """Check source wallet balances"""
    config = load_config(config_path, wallet_file)
    setup_logging(config.log_level, config.log_file)

    wallet_secrets = SecretStore(config.wallet_file).load()
    if not wallet_secrets:
        console.print(f"[red]No wallets found in {config.wallet_file}[/red]")
        return 1

    client = build_client(config)

    table = Table(title="💰 Source Wallet Balances", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Address", style="cyan")
    table.add_column("Balance (ETH)", style="green", justify="right")

    for index, secret in enumerate(wallet_secrets, start=1):
        try:
            address = load_account(secret).address
        except Exception as e:
            table.add_row(str(index), "[red]invalid key[/red]", escape(sanitize_error_message(e)))
            continue

        try:
            balance = format_wei(client.get_balance(address))
        except Exception as e:
            logger.error(f"Balance query failed for {format_address(address)}: {sanitize_error_message(e)}")
            balance = "[red]error[/red]"
        table.add_row(str(index), address, balance)

    console.print(table)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Native token transfer bot")
    parser.add_argument("--config", type=str, default="bot_config.yaml",
                        help="YAML config file (default: bot_config.yaml)")
    parser.add_argument("--wallets", type=str, default=None,
                        help="Secret store file (default: from config, wallets.txt)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Start the transfer loop")
    run_parser.add_argument("--dry-run", action="store_true", help="Simulation mode")
    run_parser.add_argument("--max-cycles", type=int, default=None,
                            help="Stop after N cycles (default: run until stopped)")

    # Balance command
    subparsers.add_parser("balance", help="Check source wallet balances")

    args = parser.parse_args(argv)

    try:
        if args.command == "balance":
            return balance_command(args.config, args.wallets)
        return run_command(
            args.config,
            args.wallets,
            dry_run=getattr(args, "dry_run", False),
            max_cycles=getattr(args, "max_cycles", None),
        )
    except ConfigError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
