"""
Tests for endpoint rotation and retry behaviour.

Run with: pytest tests/ -v
"""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from endpoints import EndpointPool, TransferClient, call_with_retry


class FlakyOperation:
    """Fails a fixed number of times, then returns the endpoint it was given."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = []

    def __call__(self, endpoint):
        self.calls.append(endpoint)
        if len(self.calls) <= self.failures:
            raise ConnectionError(f"fail {len(self.calls)}")
        return f"ok via {endpoint}"


class TestEndpointPool:
    """Tests for round-robin rotation."""

    def test_cycle_returns_to_first_endpoint(self):
        """N+1 calls land back on the endpoint of the first call."""
        pool = EndpointPool(["a", "b", "c"])

        seen = [pool.next() for _ in range(4)]

        assert seen[0] == seen[3]
        assert len(set(seen[:3])) == 3

    def test_cursor_advances_before_read(self):
        """The first call hands out the second endpoint."""
        pool = EndpointPool(["a", "b", "c"])

        assert [pool.next() for _ in range(5)] == ["b", "c", "a", "b", "c"]

    def test_single_endpoint(self):
        pool = EndpointPool(["only"])

        assert pool.next() == "only"
        assert pool.next() == "only"

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            EndpointPool([])

    def test_from_urls_builds_one_client_per_url(self):
        pool = EndpointPool.from_urls(["http://localhost:8545", "http://localhost:8546"], timeout=5)

        assert len(pool) == 2
        assert pool.next() is not pool.next()


class TestCallWithRetry:
    """Tests for the fixed-delay retry wrapper."""

    def test_success_after_k_failures(self):
        """k failures then success returns the result after k+1 calls."""
        pool = EndpointPool(["a", "b", "c"])
        operation = FlakyOperation(failures=2)
        sleeps = []

        result = call_with_retry(pool, operation, max_retries=3, retry_delay=5, sleep=sleeps.append)

        assert result == "ok via a"
        assert operation.calls == ["b", "c", "a"]
        assert sleeps == [5, 5]

    def test_first_try_success_does_not_sleep(self):
        pool = EndpointPool(["a", "b"])
        operation = FlakyOperation(failures=0)
        sleeps = []

        call_with_retry(pool, operation, sleep=sleeps.append)

        assert len(operation.calls) == 1
        assert sleeps == []

    def test_always_failing_raises_after_bound(self):
        """The last error propagates after exactly max_retries calls."""
        pool = EndpointPool(["a", "b", "c"])
        operation = FlakyOperation(failures=100)
        sleeps = []

        with pytest.raises(ConnectionError, match="fail 3"):
            call_with_retry(pool, operation, max_retries=3, retry_delay=5, sleep=sleeps.append)

        assert len(operation.calls) == 3
        assert sleeps == [5, 5]

    def test_custom_bound(self):
        pool = EndpointPool(["a"])
        operation = FlakyOperation(failures=100)

        with pytest.raises(ConnectionError):
            call_with_retry(pool, operation, max_retries=5, retry_delay=0, sleep=lambda _: None)

        assert len(operation.calls) == 5


class TestTransferClient:
    """Tests for TransferClient (Web3 mocked)."""

    @pytest.fixture
    def mock_w3(self):
        """Create mock Web3 instance."""
        w3 = Mock()
        w3.eth = Mock()
        w3.eth.get_balance = Mock(return_value=10**18)  # 1 ETH
        w3.eth.get_transaction_count = Mock(return_value=7)
        w3.eth.get_block = Mock(return_value={'baseFeePerGas': 100})
        w3.eth.max_priority_fee = 5
        w3.eth.gas_price = 1000000000
        w3.eth.send_raw_transaction = Mock(return_value=b"\x12" * 32)
        w3.to_hex = Mock(return_value="0xtxhash")
        return w3

    @pytest.fixture
    def mock_account(self):
        """Create mock account."""
        account = Mock()
        account.address = "0xWalletAddress"
        account.sign_transaction = Mock(return_value=Mock(raw_transaction=b"signed"))
        return account

    def test_get_balance(self, mock_w3):
        client = TransferClient(EndpointPool([mock_w3]))

        assert client.get_balance("0xabc") == 10**18
        mock_w3.eth.get_balance.assert_called_once_with("0xabc")

    def test_send_transfer_builds_eip1559_tx(self, mock_w3, mock_account):
        client = TransferClient(EndpointPool([mock_w3]), gas_limit=21000)

        tx_hash = client.send_transfer(mock_account, "0xReceiver", 12345, 1301)

        assert tx_hash == "0xtxhash"
        tx = mock_account.sign_transaction.call_args[0][0]
        assert tx == {
            'to': "0xReceiver",
            'value': 12345,
            'gas': 21000,
            'nonce': 7,
            'chainId': 1301,
            'maxFeePerGas': 205,
            'maxPriorityFeePerGas': 5,
        }
        mock_w3.eth.get_transaction_count.assert_called_once_with("0xWalletAddress", 'pending')
        mock_w3.eth.send_raw_transaction.assert_called_once_with(b"signed")

    def test_send_transfer_rotates_on_failure(self, mock_w3, mock_account):
        """A failing endpoint is skipped for the next one in the pool."""
        broken = Mock()
        broken.eth.get_transaction_count = Mock(side_effect=ConnectionError("down"))
        # Pool hands out index 1 first, so the broken client goes there
        pool = EndpointPool([mock_w3, broken])
        sleeps = []
        client = TransferClient(pool, max_retries=3, retry_delay=5, sleep=sleeps.append)

        tx_hash = client.send_transfer(mock_account, "0xReceiver", 1, 1301)

        assert tx_hash == "0xtxhash"
        assert broken.eth.get_transaction_count.call_count == 1
        assert sleeps == [5]

    def test_send_transfer_gives_up(self, mock_account):
        broken = Mock()
        broken.eth.get_transaction_count = Mock(side_effect=ConnectionError("down"))
        client = TransferClient(EndpointPool([broken]), max_retries=3, retry_delay=0,
                                sleep=lambda _: None)

        with pytest.raises(ConnectionError):
            client.send_transfer(mock_account, "0xReceiver", 1, 1301)

        assert broken.eth.get_transaction_count.call_count == 3
        mock_account.sign_transaction.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
