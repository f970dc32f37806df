"""This module contains the interface of the virtualization unit contract.

The contract exposes `runBytecode(bytes) returns (address)`, which deploys the
given bytecode and emits `ContractDeployed(address bytecodeAddress)`, and the
view `getRuntimeReturn(address) returns (bytes)`, which returns the output of
the deployed bytecode.
"""
import logging

from pathlib import Path
from typing import Dict, List, Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from vunit.exceptions import DecodeError
from vunit.support.support_utils import safe_decode, sha3, strip_0x

log = logging.getLogger(__name__)

ASSET_DIR = Path(__file__).parent.parent / "support" / "assets"

RUN_BYTECODE_SIGNATURE = "runBytecode(bytes)"
GET_RUNTIME_RETURN_SIGNATURE = "getRuntimeReturn(address)"
CONTRACT_DEPLOYED_SIGNATURE = "ContractDeployed(address)"


def function_selector(signature: str) -> str:
    """

    :param signature: canonical function signature, e.g. "runBytecode(bytes)"
    :return: the 4 byte selector as hex without prefix
    """
    return sha3(signature)[:4].hex()


def event_topic(signature: str) -> str:
    """

    :param signature: canonical event signature
    :return: 0x-prefixed topic hash
    """
    return "0x" + sha3(signature).hex()


CONTRACT_DEPLOYED_TOPIC = event_topic(CONTRACT_DEPLOYED_SIGNATURE)


def creation_bytecode() -> str:
    """

    :return: 0x-prefixed creation bytecode of the virtualization unit
    """
    with open(str(ASSET_DIR / "virtualization_unit.bin")) as f:
        return "0x" + f.read().strip()


def encode_run_bytecode(input_bytecode: str) -> str:
    """Encode the calldata of `runBytecode(bytes)`.

    :param input_bytecode: composed, 0x-prefixed bytecode
    :return: 0x-prefixed calldata
    """
    arguments = encode(["bytes"], [safe_decode(input_bytecode)])
    return "0x" + function_selector(RUN_BYTECODE_SIGNATURE) + arguments.hex()


def encode_get_runtime_return(address: str) -> str:
    """Encode the calldata of `getRuntimeReturn(address)`.

    :param address: the address emitted by ContractDeployed
    :return: 0x-prefixed calldata
    """
    arguments = encode(["address"], [address])
    return "0x" + function_selector(GET_RUNTIME_RETURN_SIGNATURE) + arguments.hex()


def decode_runtime_return(result: str, transaction_hash: str = None) -> str:
    """

    :param result: raw eth_call result
    :param transaction_hash: attached to errors
    :return: the returned bytes as 0x-prefixed hex
    """
    try:
        (output,) = decode(["bytes"], safe_decode(result or "0x"))
    except (DecodingError, ValueError) as e:
        raise DecodeError("Cannot decode getRuntimeReturn result: {}".format(e), transaction_hash)
    return "0x" + output.hex()


def _topic0(entry: Dict) -> Optional[str]:
    topics = entry.get("topics") or []
    if not topics:
        return None
    return topics[0].lower()


def find_deployed_address(
    logs: List[Dict], contract_address: str = None, transaction_hash: str = None
) -> str:
    """Extract the `bytecodeAddress` of the single ContractDeployed log.

    :param logs: receipt logs
    :param contract_address: only consider logs emitted by this contract
    :param transaction_hash: attached to errors
    :return: the checksummed bytecode address
    """
    matches = []
    for entry in logs:
        if _topic0(entry) != CONTRACT_DEPLOYED_TOPIC:
            continue
        emitter = entry.get("address")
        if contract_address and emitter and emitter.lower() != contract_address.lower():
            continue
        matches.append(entry)

    if not matches:
        raise DecodeError("Receipt has no ContractDeployed event", transaction_hash)
    if len(matches) > 1:
        raise DecodeError(
            "Receipt has {} ContractDeployed events".format(len(matches)),
            transaction_hash,
        )

    data = strip_0x(matches[0].get("data") or "")
    if len(data) < 64:
        raise DecodeError(
            "ContractDeployed event carries no address argument", transaction_hash
        )
    try:
        (address,) = decode(["address"], bytes.fromhex(data))
    except (DecodingError, ValueError) as e:
        raise DecodeError("Cannot decode ContractDeployed event: {}".format(e), transaction_hash)
    log.debug("ContractDeployed at %s", address)
    return address
