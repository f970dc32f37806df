"""This module contains the asyncio facade over the synchronous JSON-RPC
client used by the transaction workflows."""
import asyncio
import logging
import time

from typing import Dict, Optional

from vunit.ethereum.interface.rpc.base_client import BaseClient
from vunit.exceptions import ReceiptTimeout

log = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 1.0


class ChainClient:
    """Runs blocking RPC calls off the event loop and polls for receipts
    cooperatively."""

    def __init__(
        self,
        eth: BaseClient,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """

        :param eth: the JSON-RPC client
        :param receipt_timeout: seconds to wait for a receipt
        :param poll_interval: seconds between receipt polls
        """
        self.eth = eth
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval

    async def _rpc(self, method: str, *args):
        return await asyncio.to_thread(getattr(self.eth, method), *args)

    async def estimate_gas(self, transaction: Dict) -> int:
        return await self._rpc("eth_estimateGas", transaction)

    async def send_transaction(self, transaction: Dict) -> str:
        return await self._rpc("eth_sendTransaction", transaction)

    async def call(self, transaction: Dict) -> str:
        return await self._rpc("eth_call", transaction)

    async def get_balance(self, address: str) -> int:
        return await self._rpc("eth_getBalance", address)

    async def get_receipt(self, transaction_hash: str) -> Optional[Dict]:
        return await self._rpc("eth_getTransactionReceipt", transaction_hash)

    async def wait_for_receipt(self, transaction_hash: str) -> Dict:
        """Poll until the transaction is mined.

        :param transaction_hash:
        :return: the receipt
        """
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            receipt = await self.get_receipt(transaction_hash)
            if receipt:
                return receipt
            if time.monotonic() >= deadline:
                raise ReceiptTimeout(transaction_hash, self.receipt_timeout)
            log.debug("No receipt yet for %s", transaction_hash)
            await asyncio.sleep(self.poll_interval)
