"""This module contains the Ethereum JSON-RPC client over HTTP.

This code is adapted from: https://github.com/ConsenSys/ethjsonrpc
"""
import json
import logging
import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import ConnectionError as RequestsConnectionError
from .exceptions import (
    ConnectionError,
    BadStatusCodeError,
    BadJsonError,
    BadResponseError,
    RpcError,
)
from .base_client import BaseClient, GETH_DEFAULT_RPC_PORT, JSON_MEDIA_TYPE, MAX_RETRIES

log = logging.getLogger(__name__)


class EthJsonRpc(BaseClient):
    """
    Ethereum JSON-RPC client class
    """

    def __init__(self, host="localhost", port=GETH_DEFAULT_RPC_PORT, tls=False):
        self.host = host
        self.port = port
        self.tls = tls
        self.session = requests.Session()
        self.session.mount(self.url, HTTPAdapter(max_retries=MAX_RETRIES))

    @property
    def url(self):
        scheme = "https" if self.tls else "http"
        if self.port is None:
            return "{}://{}".format(scheme, self.host)
        return "{}://{}:{}".format(scheme, self.host, self.port)

    def _call(self, method, params=None, _id=1):

        params = params or []
        data = {"jsonrpc": "2.0", "method": method, "params": params, "id": _id}
        headers = {"Content-Type": JSON_MEDIA_TYPE}
        log.debug("rpc send: %s" % json.dumps(data))
        try:
            r = self.session.post(self.url, headers=headers, data=json.dumps(data))
        except RequestsConnectionError:
            raise ConnectionError("Could not connect to {}".format(self.url))
        if r.status_code // 100 != 2:
            raise BadStatusCodeError(r.status_code)
        try:
            response = r.json()
            log.debug("rpc response: %s" % response)
        except ValueError:
            raise BadJsonError(r.text)
        if not isinstance(response, dict):
            raise BadResponseError(response)
        if response.get("error") is not None:
            error = response["error"]
            raise RpcError(
                method,
                error.get("code"),
                error.get("message", "unknown error"),
                error.get("data"),
            )
        try:
            return response["result"]
        except KeyError:
            raise BadResponseError(response)

    def close(self):
        self.session.close()
