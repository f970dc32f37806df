"""This module contains the EVM chains vunit knows how to link transactions
for."""
from typing import Dict, Optional


class Chain:
    """An EVM chain and its block explorer."""

    def __init__(
        self,
        id: int,
        name: str,
        http_rpc_url: str,
        transaction_explorer_url: str,
        namespace: str = "eip155",
    ) -> None:
        self.id = id
        self.name = name
        self.http_rpc_url = http_rpc_url
        self.transaction_explorer_url = transaction_explorer_url
        self.namespace = namespace

    def transaction_url(self, transaction_hash: str) -> str:
        """

        :param transaction_hash:
        :return: the explorer page of the transaction
        """
        return self.transaction_explorer_url.replace("{txHash}", transaction_hash)

    def as_dict(self) -> Dict:
        return {
            "namespace": self.namespace,
            "id": self.id,
            "name": self.name,
            "httpRpcUrl": self.http_rpc_url,
            "transactionExplorerUrl": self.transaction_explorer_url,
        }


SUPPORTED_CHAINS = (
    Chain(
        1,
        "Ethereum",
        "https://ethereum.publicnode.com",
        "https://etherscan.io/tx/{txHash}",
    ),
    Chain(
        11155111,
        "Ethereum Sepolia",
        "https://ethereum-sepolia.publicnode.com",
        "https://sepolia.etherscan.io/tx/{txHash}",
    ),
    Chain(
        42161,
        "Arbitrum One",
        "https://arb1.arbitrum.io/rpc",
        "https://arbiscan.io/tx/{txHash}",
    ),
    Chain(
        56,
        "BNB Smart Chain",
        "https://bsc-dataseed.binance.org",
        "https://bscscan.com/tx/{txHash}",
    ),
    Chain(
        97,
        "BNB Smart Chain Testnet",
        "https://data-seed-prebsc-1-s1.binance.org:8545",
        "https://testnet.bscscan.com/tx/{txHash}",
    ),
    Chain(
        137,
        "Polygon",
        "https://polygon-rpc.com",
        "https://polygonscan.com/tx/{txHash}",
    ),
    Chain(
        42220,
        "Celo",
        "https://forno.celo.org",
        "https://celoscan.io/tx/{txHash}",
    ),
    Chain(
        1337,
        "Localhost",
        "http://localhost:8545",
        "http://localhost:8545/tx/{txHash}",
    ),
)


def get_chain(chain_id: int) -> Optional[Chain]:
    """

    :param chain_id:
    :return: the supported chain with this id, if any
    """
    for chain in SUPPORTED_CHAINS:
        if chain.id == chain_id:
            return chain
    return None
