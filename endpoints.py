"""
RPC Endpoint Rotation Module

Round-robin pool of Web3 clients plus a fixed-delay retry wrapper.
Every attempt of a remote call is made against the next endpoint in the
pool, so a dead RPC costs one attempt and the call moves on to the next one.
"""

import time
from typing import Any, Callable, List, Optional, Sequence

from web3 import Web3
from eth_account.signers.local import LocalAccount
from tenacity import Retrying, RetryCallState, stop_after_attempt, wait_fixed

from utils import logger, build_fee_fields, sanitize_error_message


class EndpointPool:
    """
    Fixed, ordered list of endpoints handed out in round-robin order.

    The cursor is advanced before each read, so the first call to next()
    returns the endpoint at index 1 (modulo the pool size). Failing endpoints
    are not excluded; they come up again on their normal turn.
    """

    def __init__(self, endpoints: Sequence[Any]):
        if not endpoints:
            raise ValueError("Endpoint pool needs at least one endpoint")
        self._endpoints: List[Any] = list(endpoints)
        self._index = 0

    @classmethod
    def from_urls(cls, urls: Sequence[str], timeout: int = 30) -> "EndpointPool":
        """Build one Web3 HTTP client per RPC URL."""
        return cls([
            Web3(Web3.HTTPProvider(url, request_kwargs={'timeout': timeout}))
            for url in urls
        ])

    def __len__(self) -> int:
        return len(self._endpoints)

    def next(self) -> Any:
        self._index = (self._index + 1) % len(self._endpoints)
        return self._endpoints[self._index]


def _log_retry(retry_state: RetryCallState):
    error = retry_state.outcome.exception()
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed: {sanitize_error_message(error)}. "
        f"Retrying in {retry_state.next_action.sleep:.1f}s on next endpoint..."
    )


def call_with_retry(
    pool: EndpointPool,
    operation: Callable[[Any], Any],
    max_retries: int = 3,
    retry_delay: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Run operation(endpoint) with a fresh endpoint per attempt.

    Makes at most max_retries attempts with a fixed retry_delay between them.
    The last exception is re-raised unchanged once attempts are exhausted.
    """
    retryer = Retrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_fixed(retry_delay),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return retryer(lambda: operation(pool.next()))


class TransferClient:
    """Balance queries and native transfers routed through an EndpointPool."""

    def __init__(
        self,
        pool: EndpointPool,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        gas_limit: int = 21000,
        priority_fee_gwei: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.pool = pool
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.gas_limit = gas_limit
        self.priority_fee_gwei = priority_fee_gwei
        self._sleep = sleep

    def _call(self, operation: Callable[[Web3], Any]) -> Any:
        return call_with_retry(
            self.pool,
            operation,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            sleep=self._sleep,
        )

    def get_balance(self, address: str) -> int:
        """Get native balance in wei."""
        return self._call(lambda web3: web3.eth.get_balance(address))

    def send_transfer(self, account: LocalAccount, to: str, value_wei: int, chain_id: int) -> str:
        """
        Sign and broadcast a native transfer.

        Args:
            account: Local signing account
            to: Destination address
            value_wei: Amount in wei
            chain_id: Chain the transaction is signed for

        Returns:
            Transaction hash as 0x-prefixed hex
        """
        def _send(web3: Web3) -> str:
            tx = {
                'to': to,
                'value': value_wei,
                'gas': self.gas_limit,
                'nonce': web3.eth.get_transaction_count(account.address, 'pending'),
                'chainId': chain_id,
            }
            tx.update(build_fee_fields(web3, self.priority_fee_gwei))

            signed = account.sign_transaction(tx)
            tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
            return web3.to_hex(tx_hash)

        return self._call(_send)
