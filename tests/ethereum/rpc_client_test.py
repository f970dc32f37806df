import pytest

from mock import MagicMock, patch
from requests.exceptions import ConnectionError as RequestsConnectionError

from vunit.ethereum.interface.rpc.client import EthJsonRpc
from vunit.ethereum.interface.rpc.exceptions import (
    BadJsonError,
    BadResponseError,
    BadStatusCodeError,
    ConnectionError,
    RpcError,
)


def response(body=None, status_code=200, json_error=False):
    mocked = MagicMock()
    mocked.status_code = status_code
    mocked.text = "not json"
    if json_error:
        mocked.json.side_effect = ValueError("no json")
    else:
        mocked.json.return_value = body
    return mocked


@pytest.fixture
def client():
    client = EthJsonRpc("localhost", 8545)
    yield client
    client.close()


def test_url():
    assert EthJsonRpc("localhost", 8545).url == "http://localhost:8545"
    assert (
        EthJsonRpc("mainnet.infura.io/v3/key", None, True).url
        == "https://mainnet.infura.io/v3/key"
    )


def test_result(client):
    with patch.object(
        client.session, "post", return_value=response({"jsonrpc": "2.0", "id": 1, "result": "0x10"})
    ) as post:
        assert client.eth_blockNumber() == 16
    body = post.call_args[1]["data"]
    assert '"method": "eth_blockNumber"' in body


def test_transaction_quantities_are_hex(client):
    with patch.object(
        client.session, "post", return_value=response({"result": "0x5208"})
    ) as post:
        assert client.eth_estimateGas({"from": "0x01", "data": "0x00", "gas": 30000, "to": None}) == 21000
    body = post.call_args[1]["data"]
    assert '"gas": "0x7530"' in body
    assert '"to"' not in body


@pytest.mark.parametrize(
    "mocked,error",
    [
        (response(status_code=502), BadStatusCodeError),
        (response(json_error=True), BadJsonError),
        (response(["unexpected"]), BadResponseError),
        (response({"jsonrpc": "2.0", "id": 1}), BadResponseError),
    ],
)
def test_transport_errors(client, mocked, error):
    with patch.object(client.session, "post", return_value=mocked):
        with pytest.raises(error):
            client.eth_blockNumber()


def test_rpc_error(client):
    body = {"error": {"code": -32000, "message": "insufficient funds"}}
    with patch.object(client.session, "post", return_value=response(body)):
        with pytest.raises(RpcError) as e:
            client.eth_sendTransaction({"from": "0x01"})
    assert e.value.code == -32000
    assert "insufficient funds" in str(e.value)


def test_connection_error(client):
    with patch.object(client.session, "post", side_effect=RequestsConnectionError()):
        with pytest.raises(ConnectionError):
            client.eth_accounts()


def test_pending_receipt_is_none(client):
    with patch.object(client.session, "post", return_value=response({"result": None})):
        assert client.eth_getTransactionReceipt("0x" + "00" * 32) is None
