import codecs
import logging
import os
import re

from configparser import ConfigParser
from typing import List, Optional

from vunit.bytecode.composer import SLOT_WIDTH, SLOT_WIDTHS
from vunit.compiler.api import DEFAULT_COMPILER_URL
from vunit.ethereum.chain import DEFAULT_POLL_INTERVAL, DEFAULT_RECEIPT_TIMEOUT
from vunit.ethereum.interface.rpc.client import EthJsonRpc
from vunit.exceptions import CriticalError

log = logging.getLogger(__name__)

INFURA_NETWORKS = ["mainnet", "sepolia", "holesky", "arbitrum-mainnet", "polygon-mainnet"]
SECTION = "defaults"


class VUnitConfig:
    """
    The vunit settings
    Responsible for the data directory, config.ini and the RPC connection
    """

    def __init__(self):
        self.infura_id = os.getenv("INFURA_ID")  # type: str
        self.vunit_dir = self._init_vunit_dir()
        self.config_path = os.path.join(self.vunit_dir, "config.ini")
        self._init_config()
        self.eth = None  # type: Optional[EthJsonRpc]

    def set_api_infura_id(self, id):
        self.infura_id = id

    @staticmethod
    def _init_vunit_dir() -> str:
        """
        Initializes the vunit dir
        :return: The vunit dir's path
        """

        try:
            vunit_dir = os.environ["VUNIT_DIR"]
        except KeyError:
            vunit_dir = os.path.join(os.path.expanduser("~"), ".vunit")

        if not os.path.exists(vunit_dir):
            log.info("Creating vunit data directory")
            os.makedirs(vunit_dir)

        return vunit_dir

    def _read(self) -> ConfigParser:
        config = ConfigParser(allow_no_value=True)
        config.optionxform = str  # type:ignore
        config.read(self.config_path, "utf-8")
        return config

    def _write(self, config: ConfigParser) -> None:
        with codecs.open(self.config_path, "w", "utf-8") as fp:
            config.write(fp)

    def _init_config(self):
        """If no config file exists, create it and add default options.
        Defaults:-
            - rpc is set to localhost
            - the compiler is the hosted one
        """

        if not os.path.exists(self.config_path):
            log.info("No config file found. Creating default: " + self.config_path)
            open(self.config_path, "a").close()

        config = self._read()
        if SECTION not in config.sections():
            self._add_default_options(config)

        if not config.has_option(SECTION, "rpc"):
            self._add_rpc_option(config)

        defaults = {
            "infura_id": "",
            "account": "",
            "chain_id": "",
            "compiler_url": DEFAULT_COMPILER_URL,
            "compiler_token": "",
            "slot_width": str(SLOT_WIDTH),
            "obfuscated": "false",
            "receipt_timeout": str(DEFAULT_RECEIPT_TIMEOUT),
            "poll_interval": str(DEFAULT_POLL_INTERVAL),
            "contracts": "",
        }
        for option, value in defaults.items():
            if not config.has_option(SECTION, option):
                config.set(SECTION, option, value)

        self._write(config)

        if not self.infura_id:
            self.infura_id = config.get(SECTION, "infura_id", fallback="")

    @staticmethod
    def _add_default_options(config: ConfigParser) -> None:
        """
        Adds defaults option to config.ini
        :param config: The config file object
        :return: None
        """
        config.add_section(SECTION)

    @staticmethod
    def _add_rpc_option(config: ConfigParser) -> None:
        """
        Sets the rpc config option in .vunit/config.ini file
        :param config: The config file object
        :return: None
        """
        config.set(
            SECTION,
            "#– To connect to Rpc use rpc: HOST:PORT / ganache / infura-[network_name]",
            "",
        )
        config.set(SECTION, "#– To connect to local host use rpc: localhost", "")
        config.set(SECTION, "rpc", "localhost")

    def get(self, option: str, fallback: str = "") -> str:
        return self._read().get(SECTION, option, fallback=fallback) or fallback

    def set(self, option: str, value) -> None:
        """
        Stores an option in config.ini
        :param option:
        :param value:
        """
        config = self._read()
        if SECTION not in config.sections():
            self._add_default_options(config)
        config.set(SECTION, option, str(value))
        self._write(config)

    @property
    def compiler_url(self) -> str:
        return os.getenv("VUNIT_COMPILER_URL") or self.get(
            "compiler_url", DEFAULT_COMPILER_URL
        )

    @property
    def compiler_token(self) -> str:
        return os.getenv("VUNIT_COMPILER_TOKEN") or self.get("compiler_token")

    @property
    def account(self) -> Optional[str]:
        return self.get("account") or None

    @property
    def chain_id(self) -> Optional[int]:
        value = self.get("chain_id")
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            raise CriticalError("Invalid chain_id {!r} in {}".format(value, self.config_path))

    @property
    def slot_width(self) -> int:
        value = self.get("slot_width", str(SLOT_WIDTH))
        try:
            width = int(value)
        except ValueError:
            width = None
        if width not in SLOT_WIDTHS:
            raise CriticalError(
                "Invalid slot_width {!r}, use one of {}".format(
                    value, ", ".join(str(w) for w in SLOT_WIDTHS)
                )
            )
        return width

    @property
    def obfuscated(self) -> bool:
        return self.get("obfuscated", "false").strip().lower() in ("1", "true", "yes", "on")

    def _seconds(self, option: str, default: float) -> float:
        value = self.get(option, str(default))
        try:
            seconds = float(value)
        except ValueError:
            raise CriticalError("Invalid {} {!r}".format(option, value))
        if seconds <= 0:
            raise CriticalError("{} must be positive".format(option))
        return seconds

    @property
    def receipt_timeout(self) -> float:
        return self._seconds("receipt_timeout", DEFAULT_RECEIPT_TIMEOUT)

    @property
    def poll_interval(self) -> float:
        return self._seconds("poll_interval", DEFAULT_POLL_INTERVAL)

    @property
    def contracts(self) -> List[str]:
        return [c.strip() for c in self.get("contracts").split(",") if c.strip()]

    def add_contract(self, address: str) -> None:
        contracts = self.contracts
        if address not in contracts:
            contracts.append(address)
            self.set("contracts", ",".join(contracts))

    def set_api_rpc_infura(self, network: str = "mainnet") -> None:
        """Set the RPC mode to INFURA."""
        if not self.infura_id:
            log.info(
                "No Infura key, onchain access is disabled. Pass --infura-id, "
                "export INFURA_ID or set infura_id in %s",
                self.config_path,
            )
            self.eth = None
            return
        log.info("Using INFURA %s for RPC queries", network)
        self.eth = EthJsonRpc(
            "{}.infura.io/v3/{}".format(network, self.infura_id), None, True
        )

    def set_api_rpc(self, rpc: str = None, rpctls: bool = False) -> None:
        """
        Sets the RPC mode to either of ganache, infura or HOST:PORT
        :param rpc: either of the strings - ganache, infura-mainnet, infura-sepolia, HOST:PORT
        """
        if rpc == "ganache":
            self.eth = EthJsonRpc("localhost", 7545)
            return

        network = re.match(r"infura-(.*)", rpc)
        if network and network.group(1) in INFURA_NETWORKS:
            self.set_api_rpc_infura(network.group(1))
            return

        try:
            host, port = rpc.split(":")
            port = int(port)
        except ValueError:
            raise CriticalError(
                "Invalid RPC argument {!r}, use 'ganache', 'infura-[{}]' or 'HOST:PORT'".format(
                    rpc, "|".join(INFURA_NETWORKS)
                )
            )
        log.info("Using RPC settings: %s:%d (tls=%s)", host, port, rpctls)
        self.eth = EthJsonRpc(host, port, rpctls)

    def set_api_rpc_localhost(self) -> None:
        """Set the RPC mode to a local instance."""
        log.info("Using default RPC settings: http://localhost:8545")
        self.eth = EthJsonRpc("localhost", 8545)

    def set_api_from_config_path(self) -> None:
        """Set the RPC mode based on the config file."""
        self._set_rpc(self.get("rpc", "localhost"))

    def _set_rpc(self, rpc_type: str) -> None:
        """
        Sets rpc based on the type
        :param rpc_type: The type of connection: like infura, ganache, localhost
        :return:
        """
        if rpc_type == "infura":
            self.set_api_rpc_infura()
        elif rpc_type == "localhost":
            self.set_api_rpc_localhost()
        else:
            self.set_api_rpc(rpc_type)
