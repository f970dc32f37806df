"""This module contains the deployed virtualization unit contracts and the
deployment workflow."""
import logging
import re

from typing import Iterable, List, Optional

from vunit.exceptions import InvalidContractAddress
from vunit.workflow.transaction import DeploymentWorkflow

log = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class VirtualizationUnitModel:
    """Tracks the known virtualization unit contracts and which one is used."""

    def __init__(
        self, workflow: DeploymentWorkflow = None, contracts: Iterable[str] = ()
    ) -> None:
        self.workflow = workflow or DeploymentWorkflow()
        self.contracts = []  # type: List[str]
        self.current_contract = None  # type: Optional[str]
        for address in contracts:
            self.add_contract(address)

    def add_contract(self, address: str) -> None:
        """
        Records a contract and makes it current
        :param address:
        """
        if not isinstance(address, str) or not ADDRESS_RE.match(address):
            raise InvalidContractAddress("Invalid contract address {!r}".format(address))
        if address not in self.contracts:
            self.contracts.append(address)
        self.current_contract = address

    def set_contract(self, address: str) -> None:
        """
        Selects a known contract
        :param address:
        """
        if not address or address not in self.contracts:
            raise InvalidContractAddress("Invalid contract address {!r}".format(address))
        log.info("Using virtualization unit %s", address)
        self.current_contract = address
