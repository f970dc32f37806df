"""This module contains the per-invocation view of the wallet session."""
from typing import Optional

from vunit.ethereum.chain import ChainClient
from vunit.ethereum.chains import Chain


class ChainContext:
    """The account, chain client and chain a workflow invocation runs against.

    A context is read-only for the workflows and is rebuilt from the wallet
    session for every invocation.
    """

    def __init__(
        self,
        account: Optional[str],
        client: Optional[ChainClient],
        chain: Optional[Chain] = None,
    ) -> None:
        self.account = account
        self.client = client
        self.chain = chain

    def __repr__(self) -> str:
        return "<ChainContext account={} chain={}>".format(
            self.account, self.chain.name if self.chain else None
        )
