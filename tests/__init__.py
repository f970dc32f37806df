import asyncio

from pathlib import Path

from eth_abi import encode

from vunit.ethereum.interface.rpc.base_client import BaseClient
from vunit.ethereum.vunit_abi import CONTRACT_DEPLOYED_TOPIC

TESTS_DIR = Path(__file__).parent
PROJECT_DIR = TESTS_DIR.parent
TESTDATA = TESTS_DIR / "testdata"

ACCOUNT = "0x90f8bf6a479f320ead074411a4b0e7944ea8c9c1"
CONTRACT = "0x5b1869d9a4c187f2eaa108f3062412ecf0526b24"
BYTECODE_ADDRESS = "0xcfeb869f69431e42cdb54a4f4f105c19c080a601"
TX_HASH = "0x" + "ab" * 32


def deployed_log(address=CONTRACT, bytecode_address=BYTECODE_ADDRESS):
    return {
        "address": address,
        "topics": [CONTRACT_DEPLOYED_TOPIC],
        "data": "0x" + encode(["address"], [bytecode_address]).hex(),
    }


def runtime_return(output: bytes) -> str:
    return "0x" + encode(["bytes"], [output]).hex()


class FakeEth(BaseClient):
    """A JSON-RPC client answering from a table of canned results.

    A result may be a value, an exception to raise, or a callable taking the
    request params.
    """

    def __init__(self, **responses):
        self.calls = []
        self.responses = {
            "eth_accounts": [ACCOUNT],
            "eth_chainId": "0x539",
            "eth_getBalance": hex(2 * 10 ** 18),
            "eth_estimateGas": hex(21000),
            "eth_sendTransaction": TX_HASH,
            "eth_getTransactionReceipt": {
                "transactionHash": TX_HASH,
                "status": "0x1",
                "contractAddress": None,
                "logs": [deployed_log()],
            },
            "eth_call": runtime_return(b"\x2a"),
        }
        self.responses.update(responses)

    def _call(self, method, params=None, _id=1):
        self.calls.append((method, params))
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def sent(self, method):
        return [params for name, params in self.calls if name == method]


async def wait_for(predicate, timeout=5.0):
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within {}s".format(timeout))
        await asyncio.sleep(0.005)
