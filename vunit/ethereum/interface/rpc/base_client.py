"""This module provides a basic RPC interface client.

This code is adapted from: https://github.com/ConsenSys/ethjsonrpc
"""

from abc import abstractmethod

from vunit.support.support_utils import parse_quantity

GETH_DEFAULT_RPC_PORT = 8545
MAX_RETRIES = 3
JSON_MEDIA_TYPE = "application/json"

BLOCK_TAG_LATEST = "latest"
BLOCK_TAGS = ("earliest", BLOCK_TAG_LATEST, "pending", "safe", "finalized")


def _block_param(block):
    """Validate a block tag, or turn a block number into a hex quantity.

    :param block:
    :return:
    """
    if isinstance(block, int):
        return hex(block)
    if block not in BLOCK_TAGS:
        raise ValueError("invalid block tag {!r}".format(block))
    return block


def _transaction_params(transaction):
    """Encode integer fields of a transaction object as hex quantities.

    :param transaction: dict with from/to/data/gas/value
    :return:
    """
    params = {}
    for field, value in transaction.items():
        if value is None:
            continue
        if field in ("gas", "gasPrice", "value", "nonce") and isinstance(value, int):
            value = hex(value)
        params[field] = value
    return params


class BaseClient(object):
    """The base RPC client class."""

    @abstractmethod
    def _call(self, method, params=None, _id=1):
        """Send a single JSON-RPC request and return its result.

        :param method:
        :param params:
        :param _id:
        :return:
        """

        pass

    def eth_accounts(self):
        """
        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_accounts
        """
        return self._call("eth_accounts")

    def eth_chainId(self):
        """
        https://eips.ethereum.org/EIPS/eip-695
        """
        return parse_quantity(self._call("eth_chainId"))

    def eth_blockNumber(self):
        """
        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_blocknumber
        """
        return parse_quantity(self._call("eth_blockNumber"))

    def eth_getBalance(self, address, block=BLOCK_TAG_LATEST):
        """
        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_getbalance
        """
        block = _block_param(block)
        return parse_quantity(self._call("eth_getBalance", [address, block]))

    def eth_estimateGas(self, transaction):
        """Estimate the gas a transaction needs.

        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_estimategas

        :param transaction: dict with from, optional to, data
        :return: the estimate as an integer
        """
        return parse_quantity(
            self._call("eth_estimateGas", [_transaction_params(transaction)])
        )

    def eth_sendTransaction(self, transaction):
        """Submit a transaction signed by the node's wallet.

        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_sendtransaction

        :param transaction: dict with from, optional to, data, gas
        :return: the transaction hash
        """
        return self._call("eth_sendTransaction", [_transaction_params(transaction)])

    def eth_call(self, transaction, block=BLOCK_TAG_LATEST):
        """Execute a read-only call.

        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_call
        """
        block = _block_param(block)
        return self._call("eth_call", [_transaction_params(transaction), block])

    def eth_getTransactionReceipt(self, tx_hash):
        """
        https://github.com/ethereum/wiki/wiki/JSON-RPC#eth_gettransactionreceipt

        :return: the receipt, or None while the transaction is pending
        """
        return self._call("eth_getTransactionReceipt", [tx_hash])
