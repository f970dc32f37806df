"""This module contains the client of the remote bytecode compiler."""
import json
import logging

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException

from vunit.bytecode.structure import BytecodeStructure
from vunit.compiler.files import ExecutorFile
from vunit.exceptions import CompilerError

log = logging.getLogger(__name__)

DEFAULT_COMPILER_URL = "https://api.chainsatlas.com"
JSON_MEDIA_TYPE = "application/json"
MAX_RETRIES = 3
DEFAULT_TIMEOUT = 120


class CompilerApi:
    """
    Compiles source files into parameterized bytecode structures
    """

    def __init__(
        self, url: str = DEFAULT_COMPILER_URL, token: str = "", timeout=DEFAULT_TIMEOUT
    ):
        self.url = url.rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self.session = requests.Session()
        self.session.mount(self.url, HTTPAdapter(max_retries=MAX_RETRIES))

    @property
    def auth_status(self) -> Optional[str]:
        return "authenticated" if self.token else None

    def _post(self, path: str, payload, headers=None) -> requests.Response:
        headers = dict(headers or {})
        headers["Content-Type"] = JSON_MEDIA_TYPE
        log.debug("compiler send: POST %s", path)
        try:
            return self.session.post(
                self.url + path,
                headers=headers,
                data=json.dumps(payload),
                timeout=self.timeout,
            )
        except RequestException as e:
            raise CompilerError("Could not reach the compiler at {}: {}".format(self.url, e))

    @staticmethod
    def _json(response: requests.Response):
        try:
            return response.json()
        except ValueError:
            raise CompilerError("Compiler returned invalid JSON: {}".format(response.text))

    def authenticate(self, username: str, password: str) -> str:
        """
        Exchanges credentials for an access token
        :param username:
        :param password:
        :return: the access token
        """
        response = self._post("/login", {"username": username, "password": password})
        if not response.ok:
            self.token = ""
            if response.status_code == 401:
                raise CompilerError("Invalid username and/or password.")
            raise CompilerError(
                "HTTP error! [{}]: {}".format(response.status_code, response.reason)
            )
        token = self._json(response).get("token")
        if not token:
            raise CompilerError("Login response carries no token")
        self.token = token
        log.info("Authenticated with the compiler as %s", username)
        return token

    def generate_bytecode_structure(
        self, file: ExecutorFile, nargs: int
    ) -> BytecodeStructure:
        """
        Compiles a file into a bytecode structure with nargs argument slots
        :param file:
        :param nargs: number of arguments of the entrypoint
        :return:
        """
        payload = {
            "entrypoint_nargs": nargs,
            "language": file.extension.value,
            "source_code": file.content,
        }
        response = self._post(
            "/build/generate", payload, headers={"x-access-tokens": self.token}
        )
        if not response.ok:
            if response.status_code == 401:
                self.token = ""
                raise CompilerError("Not authenticated, run `vunit login` first.")
            raise CompilerError(
                "HTTP error! [{}]: {}".format(response.status_code, response.reason)
            )
        body = self._json(response)
        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            raise CompilerError("Compiler response carries no bytecode structure")
        structure = BytecodeStructure.from_dict(data)
        log.info("Compiled %s: %r", file.path, structure)
        return structure

    def close(self):
        self.session.close()
