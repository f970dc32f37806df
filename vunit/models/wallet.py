"""This module contains the wallet session the workflows run against."""
import logging

from typing import Optional

from vunit.ethereum.chain import DEFAULT_POLL_INTERVAL, DEFAULT_RECEIPT_TIMEOUT, ChainClient
from vunit.ethereum.chains import Chain
from vunit.ethereum.interface.rpc.base_client import BaseClient
from vunit.support.support_utils import wei_to_ether
from vunit.workflow.context import ChainContext

log = logging.getLogger(__name__)


class WalletSession:
    """The account, RPC client and chain of the connected wallet."""

    def __init__(
        self,
        account: Optional[str] = None,
        eth: Optional[BaseClient] = None,
        chain: Optional[Chain] = None,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.account = account
        self.chain = chain
        self.client = (
            ChainClient(eth, receipt_timeout, poll_interval) if eth is not None else None
        )  # type: Optional[ChainClient]

    def context(self) -> ChainContext:
        return ChainContext(self.account, self.client, self.chain)

    def transaction_url(self, transaction_hash: str) -> str:
        if self.chain is None:
            return ""
        return self.chain.transaction_url(transaction_hash)

    async def balance(self) -> Optional[float]:
        """

        :return: the balance of the account in ether
        """
        if not self.account or self.client is None:
            return None
        return wei_to_ether(await self.client.get_balance(self.account))
